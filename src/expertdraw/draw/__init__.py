"""Draw module - sampling primitive, selection and replacement engines."""

from expertdraw.draw.allocator import AllocationOutcome, SelectionEngine
from expertdraw.draw.replacement import ReplacementEngine
from expertdraw.draw.sampler import draw, make_rng

__all__ = [
    "AllocationOutcome",
    "ReplacementEngine",
    "SelectionEngine",
    "draw",
    "make_rng",
]
