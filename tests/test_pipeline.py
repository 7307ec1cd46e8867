from __future__ import annotations

from pathlib import Path

import pytest

from framiq.engine.geometry import AspectRatioSpec
from framiq.metrics import FILE_DURATION, metrics
from framiq.pipeline import BatchPipeline, RunPhase, RunSnapshot
from tests.helpers.fake_codec import FakeCodec, write_fake_image

SQUARE = AspectRatioSpec(1, 1)


def _make_inputs(folder: Path, names: list[str], size: tuple[int, int] = (400, 300)) -> None:
    folder.mkdir(parents=True, exist_ok=True)
    for name in names:
        write_fake_image(folder / name, *size)


def test_batch_processes_supported_files_only(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.PNG", "c.tiff"])
    (src / "notes.txt").write_text("400x300")
    out = tmp_path / "out" / "nested"

    codec = FakeCodec()
    snap = BatchPipeline(codec=codec).start(src, out, SQUARE, 0)

    assert snap is not None
    assert snap.phase == RunPhase.COMPLETED
    assert snap.total_count == 3
    assert snap.processed_count == 3
    assert snap.progress == 1.0
    assert sorted(snap.processed_files) == ["a.jpg", "b.PNG", "c.tiff"]
    assert snap.skipped_files == ()
    assert "notes.txt" not in snap.processed_files + snap.skipped_files
    assert not snap.is_running
    assert snap.current_file_name == ""
    # same name in the output directory, square canvas anchored to the long side
    assert (out / "a.jpg").read_text() == "400x400"


def test_batch_applies_border(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg"], size=(4000, 3000))
    out = tmp_path / "out"

    BatchPipeline(codec=FakeCodec()).start(src, out, AspectRatioSpec(4, 5), 10)
    assert (out / "a.jpg").read_text() == f"{3200 * 1.1:g}x{4000 * 1.1:g}"


def test_decode_failures_are_skipped_not_fatal(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["good1.jpg", "good2.jpg"])
    (src / "broken.jpg").write_bytes(b"\x00\x01garbage")
    write_fake_image(src / "zero.png", 0, 100)

    snap = BatchPipeline(codec=FakeCodec()).start(src, tmp_path / "out", SQUARE, 5)

    assert snap.phase == RunPhase.COMPLETED
    assert snap.processed_count == 4
    assert sorted(snap.processed_files) == ["good1.jpg", "good2.jpg"]
    assert sorted(snap.skipped_files) == ["broken.jpg", "zero.png"]


def test_write_failures_are_skipped(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg"])

    snap = BatchPipeline(codec=FakeCodec(fail_write={"b.jpg"})).start(src, tmp_path / "out", SQUARE, 0)
    assert snap.processed_files == ("a.jpg",)
    assert snap.skipped_files == ("b.jpg",)


def test_empty_directory_ends_immediately(tmp_path: Path):
    src = tmp_path / "in"
    src.mkdir()
    (src / "readme.md").write_text("hi")
    out = tmp_path / "out"

    snap = BatchPipeline(codec=FakeCodec()).start(src, out, SQUARE, 0)
    assert snap.phase == RunPhase.COMPLETED
    assert snap.total_count == 0
    assert snap.processed_count == 0
    assert not out.exists()


def test_missing_input_directory_fails_run(tmp_path: Path):
    snap = BatchPipeline(codec=FakeCodec()).start(tmp_path / "missing", tmp_path / "out", SQUARE, 0)
    assert snap.phase == RunPhase.FAILED
    assert snap.error
    assert not snap.is_running


def test_uncreatable_output_directory_fails_run(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg"])
    blocker = tmp_path / "file"
    blocker.write_text("not a dir")

    codec = FakeCodec()
    snap = BatchPipeline(codec=codec).start(src, blocker / "out", SQUARE, 0)
    assert snap.phase == RunPhase.FAILED
    assert snap.total_count == 1
    assert snap.processed_count == 0
    assert codec.decoded == []


def test_cancel_stops_at_next_file_boundary(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, [f"img{i}.jpg" for i in range(5)])
    pipeline: BatchPipeline

    def cancel_on_first(_path: Path) -> None:
        if len(codec.decoded) == 1:
            pipeline.cancel()

    codec = FakeCodec(on_decode=cancel_on_first)
    pipeline = BatchPipeline(codec=codec)
    snap = pipeline.start(src, tmp_path / "out", SQUARE, 0)

    assert snap.phase == RunPhase.CANCELLED
    assert snap.is_cancelled
    assert snap.processed_count == 1
    assert snap.total_count == 5
    assert len(codec.decoded) == 1
    assert len(snap.processed_files) + len(snap.skipped_files) == 1


def test_request_cancel_is_marked_at_file_boundary(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, [f"img{i}.jpg" for i in range(3)])
    pipeline: BatchPipeline
    seen: list[RunSnapshot] = []
    marked_early: list[bool] = []

    def flag_on_first(_path: Path) -> None:
        pipeline.request_cancel()
        marked_early.append(pipeline.state.snapshot().is_cancelled)

    pipeline = BatchPipeline(codec=FakeCodec(on_decode=flag_on_first), listener=seen.append)
    snap = pipeline.start(src, tmp_path / "out", SQUARE, 0)

    assert snap.phase == RunPhase.CANCELLED
    assert snap.is_cancelled
    assert snap.processed_count == 1
    # only the flag moves until the loop reaches the next file
    assert marked_early == [False]
    assert any(s.is_cancelled and s.is_running for s in seen)


def test_next_run_clears_cancellation(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg"])
    pipeline = BatchPipeline(codec=FakeCodec())
    pipeline.cancel()

    snap = pipeline.start(src, tmp_path / "out", SQUARE, 0)
    assert snap.phase == RunPhase.COMPLETED
    assert snap.processed_count == 2
    assert not snap.is_cancelled


def test_start_while_running_is_dropped(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg"])
    nested: list[RunSnapshot | None] = []

    def start_again(_path: Path) -> None:
        nested.append(pipeline.start(src, tmp_path / "other", SQUARE, 0))
        nested.append(pipeline.process_single_image(src / "a.jpg", SQUARE, 0))

    pipeline = BatchPipeline(codec=FakeCodec(on_decode=start_again))
    snap = pipeline.start(src, tmp_path / "out", SQUARE, 0)

    assert nested == [None, None, None, None]
    assert snap.processed_count == 2
    assert not (tmp_path / "other").exists()


def test_progress_published_after_each_file(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg", "c.jpg", "d.jpg"])
    seen: list[RunSnapshot] = []

    BatchPipeline(codec=FakeCodec(), listener=seen.append).start(src, tmp_path / "out", SQUARE, 0)

    progress = [s.progress for s in seen]
    assert progress == sorted(progress)
    assert progress[-1] == 1.0
    counts = [s.processed_count for s in seen]
    assert counts == sorted(counts)
    assert counts.count(4) >= 1
    # current file is set before the file's work starts
    running = [s for s in seen if s.current_file_name]
    assert running
    assert all(s.is_running for s in running)
    assert seen[-1].phase == RunPhase.COMPLETED


def test_single_image_writes_next_to_input(tmp_path: Path):
    src = write_fake_image(tmp_path / "photo.JPG", 3000, 4000)
    out_dir = tmp_path / "out"

    snap = BatchPipeline(codec=FakeCodec()).process_single_image(src, AspectRatioSpec(4, 5), 10)

    assert snap.phase == RunPhase.COMPLETED
    assert snap.total_count == 1
    assert snap.processed_count == 1
    assert snap.progress == 1.0
    assert snap.processed_files == ("photo.JPG",)
    assert (tmp_path / "photo_framiq.JPG").exists()
    assert not out_dir.exists()


def test_single_image_failure_is_a_skip(tmp_path: Path):
    src = tmp_path / "photo.png"
    src.write_bytes(b"not an image")

    snap = BatchPipeline(codec=FakeCodec()).process_single_image(src, SQUARE, 0)
    assert snap.phase == RunPhase.COMPLETED
    assert snap.skipped_files == ("photo.png",)
    assert snap.processed_count == 1


def test_existing_output_is_overwritten(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg"])
    out = tmp_path / "out"
    out.mkdir()
    (out / "a.jpg").write_text("old")

    BatchPipeline(codec=FakeCodec()).start(src, out, SQUARE, 0)
    assert (out / "a.jpg").read_text() == "400x400"


def test_clear_active_only_keeps_results(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg"])
    (src / "c.jpg").write_text("bad")
    pipeline = BatchPipeline(codec=FakeCodec())
    pipeline.start(src, tmp_path / "out", SQUARE, 0)
    pipeline.detect_aspect_ratios(src)

    pipeline.clear_active_only()
    snap = pipeline.state.snapshot()
    assert not snap.is_running
    assert snap.progress == 0.0
    assert snap.current_file_name == ""
    assert snap.processed_count == 3
    assert snap.total_count == 3
    assert len(snap.processed_files) == 2
    assert snap.skipped_files == ("c.jpg",)
    assert snap.detected_aspect_ratios


def test_reset_all_clears_everything(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg"])
    pipeline = BatchPipeline(codec=FakeCodec())
    pipeline.start(src, tmp_path / "out", SQUARE, 0)
    pipeline.detect_aspect_ratios(src)

    pipeline.reset_all()
    snap = pipeline.state.snapshot()
    assert snap.phase == RunPhase.IDLE
    assert snap.processed_count == 0
    assert snap.total_count == 0
    assert snap.processed_files == ()
    assert snap.skipped_files == ()
    assert snap.detected_aspect_ratios == ()


def test_detect_aspect_ratios_groups_directory(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["w1.jpg", "w2.jpg", "w3.jpg"], size=(1920, 1080))
    _make_inputs(src, ["p1.jpg"], size=(1080, 1350))
    (src / "bad.jpg").write_text("??")

    groups = BatchPipeline(codec=FakeCodec()).detect_aspect_ratios(src)
    assert [(g.representative_ratio.width, g.representative_ratio.height, g.member_count) for g in groups] == [
        (16.0, 9.0, 3),
        (4.0, 5.0, 1),
    ]
    assert groups[1].sample_file_name == "p1.jpg"


def test_detect_aspect_ratios_missing_dir(tmp_path: Path):
    assert BatchPipeline(codec=FakeCodec()).detect_aspect_ratios(tmp_path / "nope") == []


def test_invalid_border_raises_before_run(tmp_path: Path):
    pipeline = BatchPipeline(codec=FakeCodec())
    with pytest.raises(ValueError):
        pipeline.start(tmp_path, tmp_path / "out", SQUARE, 75)
    assert pipeline.state.snapshot().phase == RunPhase.IDLE


def test_metrics_counters(tmp_path: Path):
    src = tmp_path / "in"
    _make_inputs(src, ["a.jpg", "b.jpg"])
    (src / "c.jpg").write_text("bad")
    metrics.reset()

    BatchPipeline(codec=FakeCodec()).start(src, tmp_path / "out", SQUARE, 0)

    snap = metrics.snapshot()
    assert snap["counters"]["pipeline.runs"] == 1
    assert snap["counters"]["pipeline.processed"] == 2
    assert snap["counters"]["pipeline.skipped"] == 1
    assert len(snap["timings"][FILE_DURATION]) == 3
    assert snap["counters"]["pipeline.completed"] == 1
