"""Adaptive TDEE estimation and goal-based nutrition coaching."""

__version__ = "0.1.0"
