"""
Services package - Business logic layer.

This package contains the dispatch logic that operates on Django models
but is decoupled from the HTTP/WebSocket layer.

Modules:
    - proximity: Geohash proximity search and eligibility filtering
    - assignment: Atomic assignment, response protocol and dispatch flow
"""

from .exceptions import (
    AssignmentConflictError,
    DispatchValidationError,
    JobRequestNotFoundError,
    TechnicianNotFoundError,
    TechnicianVanishedError,
    UpstreamUnavailableError,
)
from .proximity import Candidate, filter_candidates, find_nearby_technicians
from .assignment import (
    DispatchResult,
    dispatch_nearest,
    record_technician_response,
    run_negotiated_assignment,
    start_negotiated_dispatch,
)

__all__ = [
    # Proximity
    "Candidate",
    "filter_candidates",
    "find_nearby_technicians",
    # Assignment
    "DispatchResult",
    "dispatch_nearest",
    "record_technician_response",
    "run_negotiated_assignment",
    "start_negotiated_dispatch",
    # Exceptions
    "AssignmentConflictError",
    "DispatchValidationError",
    "JobRequestNotFoundError",
    "TechnicianNotFoundError",
    "TechnicianVanishedError",
    "UpstreamUnavailableError",
]
