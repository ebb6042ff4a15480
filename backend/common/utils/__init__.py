"""Common utility functions."""

from .geo import (
    calculate_distance,
    encode_geohash,
    geohash_query_bounds,
    is_valid_coordinate,
)

__all__ = [
    "calculate_distance",
    "encode_geohash",
    "geohash_query_bounds",
    "is_valid_coordinate",
]
