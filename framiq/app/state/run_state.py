from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal, Slot

from framiq.pipeline import RunPhase, RunSnapshot


class RunState(QObject):
    """Bindable mirror of the pipeline's BatchRunState.

    Lives on the GUI thread. Values only change through `apply_snapshot`,
    so observers always see one consistent snapshot.
    """

    runningChanged = Signal(bool)
    percentChanged = Signal(int)
    currentFileChanged = Signal(str)
    countsChanged = Signal(int, int)  # processed, total
    resultsChanged = Signal()
    phaseChanged = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._snapshot = RunSnapshot(
            phase=RunPhase.IDLE,
            is_running=False,
            is_cancelled=False,
            processed_count=0,
            total_count=0,
            progress=0.0,
            current_file_name="",
            processed_files=(),
            skipped_files=(),
        )

    @property
    def snapshot(self) -> RunSnapshot:
        return self._snapshot

    # ---- read-only properties ----
    def _get_running(self) -> bool:
        return bool(self._snapshot.is_running)

    running = Property(bool, _get_running, notify=runningChanged)  # type: ignore[arg-type]

    def _get_percent(self) -> int:
        return int(max(0, min(100, round(self._snapshot.progress * 100))))

    percent = Property(int, _get_percent, notify=percentChanged)  # type: ignore[arg-type]

    def _get_current_file(self) -> str:
        return str(self._snapshot.current_file_name)

    currentFile = Property(str, _get_current_file, notify=currentFileChanged)  # type: ignore[arg-type]

    def _get_processed_count(self) -> int:
        return int(self._snapshot.processed_count)

    processedCount = Property(int, _get_processed_count, notify=countsChanged)  # type: ignore[arg-type]

    def _get_total_count(self) -> int:
        return int(self._snapshot.total_count)

    totalCount = Property(int, _get_total_count, notify=countsChanged)  # type: ignore[arg-type]

    def _get_processed_files(self) -> list:
        return list(self._snapshot.processed_files)

    processedFiles = Property(list, _get_processed_files, notify=resultsChanged)  # type: ignore[arg-type]

    def _get_skipped_files(self) -> list:
        return list(self._snapshot.skipped_files)

    skippedFiles = Property(list, _get_skipped_files, notify=resultsChanged)  # type: ignore[arg-type]

    def _get_phase(self) -> str:
        return self._snapshot.phase.value

    phase = Property(str, _get_phase, notify=phaseChanged)  # type: ignore[arg-type]

    @Slot(object)
    def apply_snapshot(self, snap: RunSnapshot) -> None:
        old = self._snapshot
        if snap == old:
            return
        old_percent = self._get_percent()
        self._snapshot = snap
        if snap.is_running != old.is_running:
            self.runningChanged.emit(snap.is_running)
        if self._get_percent() != old_percent:
            self.percentChanged.emit(self._get_percent())
        if snap.current_file_name != old.current_file_name:
            self.currentFileChanged.emit(snap.current_file_name)
        if (snap.processed_count, snap.total_count) != (old.processed_count, old.total_count):
            self.countsChanged.emit(snap.processed_count, snap.total_count)
        if (snap.processed_files, snap.skipped_files, snap.detected_aspect_ratios) != (
            old.processed_files,
            old.skipped_files,
            old.detected_aspect_ratios,
        ):
            self.resultsChanged.emit()
        if snap.phase != old.phase:
            self.phaseChanged.emit(snap.phase.value)
