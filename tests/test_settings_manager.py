from __future__ import annotations

import json
from pathlib import Path

from framiq.engine.geometry import AspectRatioSpec
from framiq.settings_manager import SettingsManager, default_settings_path


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    assert sm.aspect_ratio == AspectRatioSpec(4, 5)
    assert sm.border_percent == 10.0
    assert sm.jpeg_quality == 90
    assert sm.last_input_dir is None


def test_values_persist_across_instances(tmp_path: Path) -> None:
    settings_path = tmp_path / "cfg" / "settings.json"
    sm = SettingsManager(str(settings_path))
    sm.set("aspect_ratio", "16:9")
    sm.set("border_percent", 7.5)

    again = SettingsManager(str(settings_path))
    assert again.aspect_ratio == AspectRatioSpec(16, 9)
    assert again.border_percent == 7.5


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{not json", encoding="utf-8")
    sm = SettingsManager(str(settings_path))
    assert sm.data == {}
    assert sm.aspect_ratio == AspectRatioSpec(4, 5)


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"aspect_ratio": "wide", "border_percent": 90, "jpeg_quality": "x"}))
    sm = SettingsManager(str(settings_path))
    assert sm.aspect_ratio == AspectRatioSpec(4, 5)
    assert sm.border_percent == 10.0
    assert sm.jpeg_quality == 90


def test_dirs_are_normalized_and_file_coerces_to_parent(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    folder = tmp_path / "photos"
    folder.mkdir()
    f = folder / "x.jpg"
    f.write_bytes(b"x")

    sm.set("last_input_dir", str(folder))
    assert Path(sm.last_input_dir) == folder.resolve()

    sm.set("last_output_dir", str(f))
    assert sm.last_output_dir == str(folder.resolve())

    sm.set("last_output_dir", str(folder / "nope"))
    assert sm.last_output_dir is None


def test_settings_path_env_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FRAMIQ_SETTINGS", str(tmp_path / "s.json"))
    assert default_settings_path() == str(tmp_path / "s.json")
