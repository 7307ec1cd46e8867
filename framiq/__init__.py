"""framiq: fit images onto a fixed aspect-ratio canvas with a white passepartout.

Public entry points:
    from framiq.pipeline import BatchPipeline
    from framiq.engine.geometry import compute_layout
    from framiq.engine.aspect import detect_aspect_ratios
"""

__version__ = "0.3.0"
