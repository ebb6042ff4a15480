"""
Atomic read-modify-write operations on a single JobRequest.

Every change to a job's assignment or response ledger goes through
`run_job_request_transaction`, which locks the job row, hands it to a
mutation function and commits all-or-nothing. Write conflicts surface as
`OperationalError` (deadlock, serialization failure, lock timeout) and are
retried; commit order, not client timestamps, decides who wins.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import OperationalError, transaction
from django.utils import timezone

from jobs.models import JobRequest, TechnicianResponse
from technicians.models import TechnicianProfile
from services.exceptions import (
    AssignmentConflictError,
    DispatchValidationError,
    JobRequestNotFoundError,
    TechnicianNotFoundError,
    TechnicianVanishedError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RESPONSE_ACCEPTED = "accepted"
RESPONSE_REJECTED = "rejected"
RESPONSE_TIMED_OUT = "timed_out"
TECHNICIAN_RESPONSES = (RESPONSE_ACCEPTED, RESPONSE_REJECTED)


@dataclass
class FinalizeResult:
    """Result of one atomic operation on a job request."""
    job_request: JobRequest
    technician_id: int
    response: Optional[str] = None
    recorded: bool = False
    assigned: bool = False


def run_job_request_transaction(
    job_request_id,
    mutate: Callable[[JobRequest], T],
    max_retries: Optional[int] = None,
) -> T:
    """
    Lock the job request, apply `mutate` to it and commit atomically.

    Args:
        job_request_id: Primary key of the job request
        mutate: Function receiving the locked JobRequest; its return value is
            passed through. Raising inside it rolls the whole unit back.
        max_retries: Attempts before giving up on write conflicts

    Raises:
        JobRequestNotFoundError: If the job request does not exist
        AssignmentConflictError: If every attempt hit a write conflict
    """
    if max_retries is None:
        max_retries = getattr(settings, "DISPATCH_FINALIZE_MAX_RETRIES", 5)

    attempt = 0
    while True:
        attempt += 1
        try:
            with transaction.atomic():
                try:
                    job_request = JobRequest.objects.select_for_update().get(pk=job_request_id)
                except (JobRequest.DoesNotExist, ValidationError, ValueError):
                    raise JobRequestNotFoundError("Job request not found")
                return mutate(job_request)
        except OperationalError as e:
            if attempt >= max_retries:
                logger.error(
                    "Giving up on job request %s after %d conflicting attempts",
                    job_request_id, attempt
                )
                raise AssignmentConflictError(
                    f"Could not update job request {job_request_id}: too many conflicting writes"
                ) from e
            logger.warning(
                "Write conflict on job request %s (attempt %d/%d), retrying: %s",
                job_request_id, attempt, max_retries, e
            )


def _claim(job_request: JobRequest, technician_id: int) -> bool:
    """
    Assign `technician_id` if the job is still open. Must run inside
    `run_job_request_transaction`.
    """
    if not job_request.is_assignable:
        return False

    if not TechnicianProfile.objects.filter(pk=technician_id).exists():
        logger.error(
            "Integrity anomaly: technician %s vanished before assignment to job %s",
            technician_id, job_request.id
        )
        raise TechnicianVanishedError(technician_id)

    now = timezone.now()
    job_request.technician_id = technician_id
    job_request.status = "confirmed"
    job_request.assigned_at = now
    job_request.save(update_fields=["technician_id", "status", "assigned_at", "updated_at"])
    return True


def _after_assignment(job_request: JobRequest) -> None:
    from realtime.notifications import notify_customer_event

    transaction.on_commit(lambda: notify_customer_event(
        "job_confirmed",
        job_request,
        "A technician has accepted your job request.",
    ))


def finalize_assignment(job_request_id, technician_id: int) -> FinalizeResult:
    """
    Directly assign the technician (no acceptance round-trip).

    A job that is already confirmed is left untouched; the returned job
    carries whichever technician won.
    """
    def mutate(job_request):
        assigned = _claim(job_request, technician_id)
        if assigned:
            _after_assignment(job_request)
        return FinalizeResult(job_request, technician_id, assigned=assigned)

    result = run_job_request_transaction(job_request_id, mutate)
    if result.assigned:
        logger.info("Assigned technician %s to job %s", technician_id, job_request_id)
    else:
        logger.info(
            "Job %s already %s with technician %s; not reassigning",
            job_request_id, result.job_request.status, result.job_request.technician_id
        )
    return result


def record_technician_response(
    job_request_id,
    technician_id: int,
    response: str,
    timestamp=None,
) -> FinalizeResult:
    """
    Record a technician's answer and, for the first accept, assign them.

    One ledger entry per technician: a repeated answer from the same
    technician is a no-op. An accept against an already confirmed job is
    kept for audit only.

    Raises:
        DispatchValidationError: If `response` is not accepted/rejected
        JobRequestNotFoundError: If the job request does not exist
        TechnicianNotFoundError: If the technician has no profile
    """
    if response not in TECHNICIAN_RESPONSES:
        raise DispatchValidationError(
            "Invalid response", ["response must be 'accepted' or 'rejected'"]
        )

    def mutate(job_request):
        if job_request.technician_responses.filter(technician_id=technician_id).exists():
            return FinalizeResult(job_request, technician_id, response)

        if not TechnicianProfile.objects.filter(pk=technician_id).exists():
            raise TechnicianNotFoundError(f"Technician {technician_id} not found")

        TechnicianResponse.objects.create(
            job_request=job_request,
            technician_id=technician_id,
            response=response,
            timestamp=timestamp,
        )

        assigned = response == RESPONSE_ACCEPTED and _claim(job_request, technician_id)
        if assigned:
            _after_assignment(job_request)
        else:
            job_request.save(update_fields=["updated_at"])

        _publish_response(job_request.id, technician_id, response)
        return FinalizeResult(job_request, technician_id, response, recorded=True, assigned=assigned)

    result = run_job_request_transaction(job_request_id, mutate)
    logger.info(
        "Technician %s %s job %s (recorded=%s, assigned=%s)",
        technician_id, response, job_request_id, result.recorded, result.assigned
    )
    return result


def record_response_timeout(job_request_id, technician_id: int) -> FinalizeResult:
    """Write a `timed_out` entry unless the technician already answered."""
    def mutate(job_request):
        if job_request.technician_responses.filter(technician_id=technician_id).exists():
            return FinalizeResult(job_request, technician_id, RESPONSE_TIMED_OUT)

        TechnicianResponse.objects.create(
            job_request=job_request,
            technician_id=technician_id,
            response=RESPONSE_TIMED_OUT,
        )
        job_request.save(update_fields=["updated_at"])
        return FinalizeResult(job_request, technician_id, RESPONSE_TIMED_OUT, recorded=True)

    return run_job_request_transaction(job_request_id, mutate)


def _publish_response(job_request_id, technician_id: int, response: str) -> None:
    """Wake a coordinator waiting on this technician once the answer is committed."""
    from realtime.notifications import publish_technician_response

    transaction.on_commit(
        lambda: publish_technician_response(job_request_id, technician_id, response)
    )
