"""Data preparation, training and serving for road segment accident risk regression."""

__version__ = "0.1.0"
