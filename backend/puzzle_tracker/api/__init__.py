"""API Routes for the Puzzle tracker."""

from puzzle_tracker.api import facilities, health, patients, views

__all__ = [
    "facilities",
    "health",
    "patients",
    "views",
]
