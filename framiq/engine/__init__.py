"""Engine layer: pure geometry, aspect-ratio classification, scanning and codec.

`geometry` and `aspect` are pure and free of I/O. `scanner` lists input
directories and `codec` wraps pyvips for decode/composite/encode.
"""
