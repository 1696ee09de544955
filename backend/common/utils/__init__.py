"""Common utility functions."""

from .geo import calculate_distance, is_valid_coordinate
from .retry import with_retry

__all__ = [
    "calculate_distance",
    "is_valid_coordinate",
    "with_retry",
]
