from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .engine.aspect import DEFAULT_TARGET, parse_aspect_ratio
from .engine.geometry import AspectRatioSpec, validate_border_percent
from .logger import get_logger

_logger = get_logger("settings")

DEFAULT_SETTINGS_PATH = Path("~/.framiq/settings.json")


def normalize_dir(path: str | Path) -> str:
    """Absolute directory for `path`; an existing file maps to its parent."""
    p = Path(path).expanduser().resolve(strict=False)
    if p.is_file():
        return str(p.parent)
    return str(p)


def default_settings_path() -> str:
    env = (os.getenv("FRAMIQ_SETTINGS") or "").strip()
    return str(Path(env or DEFAULT_SETTINGS_PATH).expanduser())


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "aspect_ratio": str(DEFAULT_TARGET),
        "border_percent": 10.0,
        "jpeg_quality": 90,
    }

    _DIR_KEYS = ("last_input_dir", "last_output_dir")

    def load(self) -> None:
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
        try:
            os.makedirs(os.path.dirname(self.settings_path) or ".", exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        if key in self._DIR_KEYS and isinstance(value, str | Path):
            value = normalize_dir(value)
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def aspect_ratio(self) -> AspectRatioSpec:
        raw = self.get("aspect_ratio")
        try:
            return parse_aspect_ratio(str(raw))
        except ValueError as e:
            _logger.warning("saved aspect_ratio invalid: %s", e)
            return DEFAULT_TARGET

    @property
    def border_percent(self) -> float:
        raw = self.get("border_percent")
        try:
            return validate_border_percent(float(raw))
        except (TypeError, ValueError) as e:
            _logger.warning("saved border_percent invalid: %s", e)
            return float(self.DEFAULTS["border_percent"])

    @property
    def jpeg_quality(self) -> int:
        try:
            return max(1, min(100, int(self.get("jpeg_quality"))))
        except (TypeError, ValueError):
            return int(self.DEFAULTS["jpeg_quality"])

    def _existing_dir(self, key: str) -> str | None:
        val = self.get(key)
        return val if isinstance(val, str) and os.path.isdir(val) else None

    @property
    def last_input_dir(self) -> str | None:
        return self._existing_dir("last_input_dir")

    @property
    def last_output_dir(self) -> str | None:
        return self._existing_dir("last_output_dir")
