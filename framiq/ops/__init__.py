"""Use-case / operations layer.

Long-running actions invoked by a UI: batch framing, single-image framing and
aspect ratio detection, each run off the GUI thread.
"""
