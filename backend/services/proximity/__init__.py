"""
Technician proximity search and eligibility filtering.

This module handles:
    - Geohash-bounded search for technicians around a point
    - Exact-distance pruning and deterministic ordering
    - Filtering candidates by service category and approval state
"""

from .search import Candidate, find_nearby_technicians
from .eligibility import filter_candidates

__all__ = [
    "Candidate",
    "find_nearby_technicians",
    "filter_candidates",
]
