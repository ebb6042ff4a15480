"""
Job assignment service.

This module handles:
    - Atomic finalize and response recording on a single job request
    - Scoped subscriptions to a technician's answer
    - Greedy and negotiated assignment strategies
    - The dispatch flow used by the HTTP endpoints and background tasks
"""

from .transactions import (
    FinalizeResult,
    finalize_assignment,
    record_response_timeout,
    record_technician_response,
    run_job_request_transaction,
)
from .subscription import ResponseSubscription, response_group_name
from .strategies import (
    AssignmentOutcome,
    AssignmentStrategy,
    GreedyAssignment,
    NegotiatedAssignment,
)
from .coordinator import (
    DispatchResult,
    create_job_request,
    dispatch_nearest,
    find_eligible_candidates,
    run_negotiated_assignment,
    start_negotiated_dispatch,
)

__all__ = [
    "FinalizeResult",
    "finalize_assignment",
    "record_response_timeout",
    "record_technician_response",
    "run_job_request_transaction",
    "ResponseSubscription",
    "response_group_name",
    "AssignmentOutcome",
    "AssignmentStrategy",
    "GreedyAssignment",
    "NegotiatedAssignment",
    "DispatchResult",
    "create_job_request",
    "dispatch_nearest",
    "find_eligible_candidates",
    "run_negotiated_assignment",
    "start_negotiated_dispatch",
]
