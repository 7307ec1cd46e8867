"""Sequential, cancellable batch pipeline.

`BatchPipeline` owns a `BatchRunState` and is its only writer. Observers
either poll `state.snapshot()` or pass a `listener` that receives an
immutable `RunSnapshot` after every mutation. Runs are blocking; callers
that must stay responsive run them on a worker thread (see
`framiq.ops.batch_worker`).

Per file the outcome is either processed or skipped. Directory-level
failures (listing the input, creating the output directory) end the run in
the FAILED phase with whatever partial counts it had reached.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from framiq.engine.aspect import DetectedAspectRatioGroup, detect_aspect_ratios
from framiq.engine.codec import ImageCodec, VipsCodec
from framiq.engine.geometry import AspectRatioSpec, Dimensions, compute_layout, validate_border_percent
from framiq.engine.scanner import list_image_files
from framiq.errors import DecodeError, WriteError
from framiq.logger import get_logger
from framiq.metrics import metrics
from framiq.naming import batch_output_path, single_output_path

_logger = get_logger("pipeline")


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class RunSnapshot:
    phase: RunPhase
    is_running: bool
    is_cancelled: bool
    processed_count: int
    total_count: int
    progress: float
    current_file_name: str
    processed_files: tuple[str, ...]
    skipped_files: tuple[str, ...]
    detected_aspect_ratios: tuple[DetectedAspectRatioGroup, ...] = ()
    error: str | None = None


class BatchRunState:
    """Published run state guarded by a lock. Mutated only by BatchPipeline."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.phase = RunPhase.IDLE
        self.is_running = False
        self.is_cancelled = False
        self.processed_count = 0
        self.total_count = 0
        self.progress = 0.0
        self.current_file_name = ""
        self.processed_files: list[str] = []
        self.skipped_files: list[str] = []
        self.detected_aspect_ratios: list[DetectedAspectRatioGroup] = []
        self.error: str | None = None

    # ---- pipeline-side mutations ----
    def begin_run(self, total: int = 0) -> bool:
        """Enter RUNNING and clear the previous run. False if a run is active."""
        with self._lock:
            if self.is_running:
                return False
            self.phase = RunPhase.RUNNING
            self.is_running = True
            self.is_cancelled = False
            self.processed_count = 0
            self.total_count = total
            self.progress = 0.0
            self.current_file_name = ""
            self.processed_files = []
            self.skipped_files = []
            self.error = None
            return True

    def set_total(self, total: int) -> None:
        with self._lock:
            self.total_count = total

    def set_current(self, name: str) -> None:
        with self._lock:
            self.current_file_name = name

    def record(self, name: str, ok: bool) -> None:
        with self._lock:
            (self.processed_files if ok else self.skipped_files).append(name)
            self.processed_count += 1
            self.progress = self.processed_count / self.total_count if self.total_count else 1.0

    def mark_cancelled(self) -> None:
        with self._lock:
            self.is_cancelled = True

    def finish(self, phase: RunPhase, error: str | None = None) -> None:
        with self._lock:
            self.phase = phase
            self.is_running = False
            self.current_file_name = ""
            self.error = error

    def set_detected(self, groups: list[DetectedAspectRatioGroup]) -> None:
        with self._lock:
            self.detected_aspect_ratios = list(groups)

    # ---- resets ----
    def reset_all(self) -> None:
        with self._lock:
            self.phase = RunPhase.IDLE
            self.is_running = False
            self.is_cancelled = False
            self.processed_count = 0
            self.total_count = 0
            self.progress = 0.0
            self.current_file_name = ""
            self.processed_files = []
            self.skipped_files = []
            self.detected_aspect_ratios = []
            self.error = None

    def clear_active_only(self) -> None:
        # Keep result lists and counts so a finished run can still be shown.
        with self._lock:
            if self.phase == RunPhase.RUNNING:
                self.phase = RunPhase.IDLE
            self.is_running = False
            self.is_cancelled = False
            self.progress = 0.0
            self.current_file_name = ""

    def snapshot(self) -> RunSnapshot:
        with self._lock:
            return RunSnapshot(
                phase=self.phase,
                is_running=self.is_running,
                is_cancelled=self.is_cancelled,
                processed_count=self.processed_count,
                total_count=self.total_count,
                progress=self.progress,
                current_file_name=self.current_file_name,
                processed_files=tuple(self.processed_files),
                skipped_files=tuple(self.skipped_files),
                detected_aspect_ratios=tuple(self.detected_aspect_ratios),
                error=self.error,
            )


Listener = Callable[[RunSnapshot], None]


class BatchPipeline:
    def __init__(
        self,
        codec: ImageCodec | None = None,
        state: BatchRunState | None = None,
        listener: Listener | None = None,
    ) -> None:
        self._codec: ImageCodec = codec or VipsCodec()
        self.state = state or BatchRunState()
        self._listener = listener
        self._cancel = threading.Event()

    def set_listener(self, listener: Listener | None) -> None:
        self._listener = listener

    def _publish(self) -> None:
        if self._listener is not None:
            self._listener(self.state.snapshot())

    # ---- control ----
    def request_cancel(self) -> None:
        """Raise the cancel flag without touching the run state.

        Safe from a signal handler running on the run thread. The loop marks
        the state cancelled when it reaches the next file boundary.
        """
        self._cancel.set()

    def cancel(self) -> None:
        """Request cancellation; honoured at the next file boundary."""
        self.request_cancel()
        self.state.mark_cancelled()
        self._publish()

    def reset_all(self) -> None:
        self.state.reset_all()
        self._publish()

    def clear_active_only(self) -> None:
        self.state.clear_active_only()
        self._publish()

    # ---- runs ----
    def start(
        self,
        input_dir: str | Path,
        output_dir: str | Path,
        target_ratio: AspectRatioSpec,
        border_percent: float,
    ) -> RunSnapshot | None:
        """Process every supported image in `input_dir` into `output_dir`.

        Blocks until the run ends. Returns the final snapshot, or None when a
        run is already active (the request is dropped).
        """
        border_percent = validate_border_percent(border_percent)
        if not self.state.begin_run():
            _logger.debug("start ignored: a run is already active")
            return None
        self._cancel.clear()
        metrics.run_started()
        self._publish()

        try:
            files = list_image_files(input_dir)
        except OSError as e:
            _logger.error("Error reading input directory %s: %s", input_dir, e)
            return self._finish(RunPhase.FAILED, f"cannot read input directory: {e}")

        self.state.set_total(len(files))
        self._publish()
        if not files:
            _logger.info("No supported image files found in %s", input_dir)
            return self._finish(RunPhase.COMPLETED)

        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            err = WriteError(f"cannot create output directory {output_dir}: {e}")
            _logger.error("%s", err)
            return self._finish(RunPhase.FAILED, str(err))

        _logger.info("Processing %d images (%s, border %g%%) -> %s", len(files), target_ratio, border_percent, output_dir)
        for path in files:
            if self._cancel.is_set():
                _logger.info("Processing cancelled")
                self.state.mark_cancelled()
                self._publish()
                break
            self.state.set_current(path.name)
            self._publish()
            ok = self._process_one(path, batch_output_path(path, output_dir), target_ratio, border_percent)
            self.state.record(path.name, ok)
            self._publish()

        snap = self.state.snapshot()
        cancelled = self._cancel.is_set() and snap.processed_count < snap.total_count
        _logger.info(
            "Processing complete. Processed: %d, Skipped: %d", len(snap.processed_files), len(snap.skipped_files)
        )
        return self._finish(RunPhase.CANCELLED if cancelled else RunPhase.COMPLETED)

    def process_single_image(
        self,
        input_path: str | Path,
        target_ratio: AspectRatioSpec,
        border_percent: float,
    ) -> RunSnapshot | None:
        """Frame one image next to the original as <stem>_framiq.<ext>.

        Failures only show up as a skipped entry; the run always completes.
        """
        border_percent = validate_border_percent(border_percent)
        if not self.state.begin_run(total=1):
            _logger.debug("process_single_image ignored: a run is already active")
            return None
        self._cancel.clear()
        metrics.run_started()
        path = Path(input_path)
        self.state.set_current(path.name)
        self._publish()
        ok = self._process_one(path, single_output_path(path), target_ratio, border_percent)
        self.state.record(path.name, ok)
        return self._finish(RunPhase.COMPLETED)

    def detect_aspect_ratios(self, input_dir: str | Path) -> list[DetectedAspectRatioGroup]:
        """Group the images of `input_dir` by common aspect ratio (headers only)."""
        self.state.set_detected([])
        try:
            files = list_image_files(input_dir)
        except OSError as e:
            _logger.error("Error detecting aspect ratios in %s: %s", input_dir, e)
            self._publish()
            return []

        items: list[tuple[str, Dimensions]] = []
        for path in files:
            try:
                dims = self._codec.read_dimensions(path)
            except DecodeError as e:
                _logger.debug("aspect detection: ignoring %s: %s", path.name, e)
                continue
            items.append((path.name, dims))

        groups = detect_aspect_ratios(items)
        self.state.set_detected(groups)
        self._publish()
        return groups

    # ---- internals ----
    def _finish(self, phase: RunPhase, error: str | None = None) -> RunSnapshot:
        metrics.run_ended(phase.value)
        self.state.finish(phase, error)
        snap = self.state.snapshot()
        if self._listener is not None:
            self._listener(snap)
        return snap

    def _process_one(
        self, path: Path, output_path: Path, target_ratio: AspectRatioSpec, border_percent: float
    ) -> bool:
        with metrics.file_timer():
            try:
                decoded = self._codec.decode(path)
                if decoded.dims.width <= 0 or decoded.dims.height <= 0:
                    raise DecodeError(f"zero-dimension image: {path.name}")
                layout = compute_layout(decoded.dims, target_ratio, border_percent)
                data = self._codec.encode(decoded, layout, output_path)
                self._codec.write(data, output_path)
            except (DecodeError, WriteError) as e:
                _logger.warning("Skipped %s: %s", path.name, e)
                metrics.file_done(ok=False)
                return False
            except Exception:
                # keep the batch resilient
                _logger.exception("Skipped %s: unexpected error", path.name)
                metrics.file_done(ok=False)
                return False

        final = layout.final_canvas_size
        _logger.debug("Processed: %s -> %dx%d", path.name, int(final.width), int(final.height))
        metrics.file_done(ok=True)
        return True
