"""Qt-facing state objects.

The UI binds to `RunState`; it is updated only from snapshots delivered on
the GUI thread by `framiq.ops.batch_worker.BatchController`.
"""
