"""Brute-force protection layer"""

from .attempt_tracker import AttemptTracker

__all__ = ["AttemptTracker"]
