"""Error taxonomy for the transform pipeline.

Only two kinds ever leave the codec: images that cannot be read and outputs
that cannot be written. The pipeline turns both into skips.
"""


class FramiqError(Exception):
    """Base class for framiq errors."""


class DecodeError(FramiqError):
    """Image is unreadable, corrupt, unsupported or has a zero dimension."""


class WriteError(FramiqError):
    """Output directory cannot be created or output file cannot be encoded/written."""
