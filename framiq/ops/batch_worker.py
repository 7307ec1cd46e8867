"""QThread worker and controller for pipeline runs.

The worker runs one blocking `BatchPipeline` operation on its own thread
and emits every `RunSnapshot` through a signal. Connected to a `RunState`
living on the GUI thread, delivery is queued, so all published state is
written from the GUI thread only.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from PySide6.QtCore import QObject, QThread, Signal

from framiq.app.state.run_state import RunState
from framiq.engine.geometry import AspectRatioSpec
from framiq.logger import get_logger
from framiq.pipeline import BatchPipeline, RunSnapshot

_logger = get_logger("batch_worker")


class BatchWorker(QThread):
    """Runs a single pipeline job. The job is a callable taking the pipeline."""

    state_changed = Signal(object)  # RunSnapshot
    run_finished = Signal(object)  # final RunSnapshot or None when dropped

    def __init__(self, pipeline: BatchPipeline, job: Callable[[BatchPipeline], object]):
        super().__init__()
        self._pipeline = pipeline
        self._job = job

    def run(self) -> None:
        self._pipeline.set_listener(self.state_changed.emit)
        result = None
        try:
            result = self._job(self._pipeline)
        except Exception:
            _logger.exception("pipeline job failed")
        finally:
            self._pipeline.set_listener(None)
            self.run_finished.emit(result)

    def cancel(self) -> None:
        self._pipeline.cancel()


class BatchController(QObject):
    """Fire-and-forget facade over BatchPipeline for a UI.

    Start requests while a worker is running are dropped, not queued.
    """

    finished = Signal(object)  # final RunSnapshot, or list of groups for detection

    def __init__(self, pipeline: BatchPipeline | None = None, state: RunState | None = None):
        super().__init__()
        self.pipeline = pipeline or BatchPipeline()
        self.state = state or RunState()
        self._worker: BatchWorker | None = None

    @property
    def is_busy(self) -> bool:
        return self._worker is not None and self._worker.isRunning()

    def _launch(self, job: Callable[[BatchPipeline], object]) -> bool:
        if self.is_busy:
            _logger.debug("controller busy; request dropped")
            return False
        worker = BatchWorker(self.pipeline, job)
        worker.state_changed.connect(self.state.apply_snapshot)
        worker.run_finished.connect(self.finished.emit)
        worker.run_finished.connect(self._on_worker_finished)
        self._worker = worker
        worker.start()
        return True

    def start_batch(
        self, input_dir: str | Path, output_dir: str | Path, target_ratio: AspectRatioSpec, border_percent: float
    ) -> bool:
        return self._launch(lambda p: p.start(input_dir, output_dir, target_ratio, border_percent))

    def start_single(self, input_path: str | Path, target_ratio: AspectRatioSpec, border_percent: float) -> bool:
        return self._launch(lambda p: p.process_single_image(input_path, target_ratio, border_percent))

    def detect(self, input_dir: str | Path) -> bool:
        return self._launch(lambda p: p.detect_aspect_ratios(input_dir))

    def cancel(self) -> None:
        if self._worker is not None:
            self._worker.cancel()

    def reset_all(self) -> None:
        self.pipeline.reset_all()
        self.state.apply_snapshot(self.pipeline.state.snapshot())

    def clear_active_only(self) -> None:
        self.pipeline.clear_active_only()
        self.state.apply_snapshot(self.pipeline.state.snapshot())

    def wait(self, msecs: int = 5000) -> bool:
        worker = self._worker
        return True if worker is None else worker.wait(msecs)

    def _on_worker_finished(self, _result: object) -> None:
        worker = self._worker
        self._worker = None
        if worker is not None and worker is not QThread.currentThread():
            # run() has returned; let the thread finish before the object is dropped
            worker.wait(1000)
