"""Photo Refine - quality-driven photo enhancement."""

__version__ = "1.0.0"
