from __future__ import annotations

import json
from pathlib import Path

from image_loader import settings as settings_mod
from image_loader.settings import TransformSettings, get_settings, set_settings


def test_defaults_without_file() -> None:
    s = TransformSettings()
    assert s.resample == "bilinear"
    assert s.round_corners_supersample == 4
    assert s.default_density == 0
    assert s.data == {}


def test_set_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    s = TransformSettings(str(path))
    s.set("resample", "Lanczos")

    assert json.loads(path.read_text(encoding="utf-8")) == {"resample": "Lanczos"}
    reloaded = TransformSettings(str(path))
    assert reloaded.has("resample")
    assert reloaded.resample == "lanczos"


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"resample": "smudge", "round_corners_supersample": 0, "default_density": "x"}),
        encoding="utf-8",
    )
    s = TransformSettings(str(path))
    assert s.resample == "bilinear"
    assert s.round_corners_supersample == 4
    assert s.default_density == 0


def test_corrupt_file_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    s = TransformSettings(str(path))
    assert s.data == {}
    assert s.get("resample") == "bilinear"
    assert s.get("missing", "fallback") == "fallback"


def test_get_settings_reads_env_path(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"resample": "nearest"}), encoding="utf-8")
    monkeypatch.setenv("IMAGE_LOADER_SETTINGS", str(path))
    set_settings(None)

    assert get_settings().resample == "nearest"
    assert get_settings() is settings_mod.get_settings()
