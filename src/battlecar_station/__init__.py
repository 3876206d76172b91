"""Base station controller for the two-team infrared battle-car game."""

__version__ = "0.1.0"
