from pathlib import Path

from framiq.naming import batch_output_name, batch_output_path, single_output_name, single_output_path


def test_single_output_name_keeps_extension_case():
    assert single_output_name("photo.JPG") == "photo_framiq.JPG"
    assert single_output_name("photo.jpeg") == "photo_framiq.jpeg"


def test_single_output_name_splits_at_last_dot():
    assert single_output_name("holiday.2024.png") == "holiday.2024_framiq.png"


def test_single_output_name_without_extension():
    assert single_output_name("README") == "README_framiq"


def test_batch_output_name_is_unchanged():
    assert batch_output_name("IMG_0001.HEIC") == "IMG_0001.HEIC"


def test_output_paths(tmp_path: Path):
    src = tmp_path / "in" / "photo.JPG"
    assert single_output_path(src) == tmp_path / "in" / "photo_framiq.JPG"
    assert batch_output_path(src, tmp_path / "out") == tmp_path / "out" / "photo.JPG"
