from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")

RESAMPLE_NAMES = ("nearest", "bilinear", "bicubic", "lanczos")


class TransformSettings:
    """Transform engine settings stored as a small JSON document.

    A missing or unreadable file yields the defaults; nothing is written until
    `set()` or `save()` is called.
    """

    DEFAULTS: dict[str, Any] = {
        "resample": "bilinear",
        "round_corners_supersample": 4,
        "default_density": 0,
    }

    def __init__(self, settings_path: str | None = None):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not self.settings_path:
            self._settings = {}
            return
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        if not self.settings_path:
            return
        parent = os.path.dirname(self.settings_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.settings_path, "w", encoding="utf-8") as f:
            json.dump(self._settings, f, ensure_ascii=False, indent=2)
        _logger.debug("settings saved: %s", self.settings_path)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def resample(self) -> str:
        val = self.get("resample")
        if isinstance(val, str) and val.lower() in RESAMPLE_NAMES:
            return val.lower()
        _logger.warning("unknown resample filter %r, using %s", val, self.DEFAULTS["resample"])
        return self.DEFAULTS["resample"]

    @property
    def round_corners_supersample(self) -> int:
        try:
            factor = int(self.get("round_corners_supersample"))
        except (TypeError, ValueError):
            factor = 0
        if factor < 1:
            _logger.warning("invalid round_corners_supersample, using default")
            return self.DEFAULTS["round_corners_supersample"]
        return factor

    @property
    def default_density(self) -> int:
        try:
            return max(0, int(self.get("default_density")))
        except (TypeError, ValueError):
            return self.DEFAULTS["default_density"]


_settings: TransformSettings | None = None


def get_settings() -> TransformSettings:
    """Return the process-wide settings, loading IMAGE_LOADER_SETTINGS on first use."""
    global _settings
    if _settings is None:
        _settings = TransformSettings(os.getenv("IMAGE_LOADER_SETTINGS") or None)
    return _settings


def set_settings(settings: TransformSettings | None) -> None:
    """Replace the process-wide settings; None resets to a lazy reload."""
    global _settings
    _settings = settings
