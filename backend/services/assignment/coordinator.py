"""
Job dispatch coordinator.

Glues job request creation, proximity search, eligibility filtering and an
assignment strategy together:

    1. Validate the payload (nothing is written on failure)
    2. Persist a pending JobRequest
    3. Search around the customer location and filter by category
    4. Assign through the strategy, or report that nobody is eligible
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.conf import settings

from jobs.models import JobRequest
from jobs.serializers import JobRequestCreateSerializer
from services.exceptions import (
    DispatchValidationError,
    JobRequestNotFoundError,
)
from services.proximity import Candidate, filter_candidates, find_nearby_technicians
from technicians.models import TechnicianProfile
from .strategies import AssignmentStrategy, GreedyAssignment, NegotiatedAssignment

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of a dispatch attempt. A miss is a result, not an error."""
    success: bool
    job_request: JobRequest
    technician: Optional[TechnicianProfile] = None
    distance: Optional[float] = None
    message: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


def _flatten_errors(errors, prefix="") -> List[str]:
    """Turn DRF's nested error dict into readable 'field: message' lines."""
    messages = []
    if isinstance(errors, dict):
        for key, value in errors.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            messages.extend(_flatten_errors(value, name))
    elif isinstance(errors, list):
        for value in errors:
            messages.extend(_flatten_errors(value, prefix))
    else:
        messages.append(f"{prefix}: {errors}" if prefix else str(errors))
    return messages


def create_job_request(data: Dict[str, Any]) -> JobRequest:
    """
    Validate `data` and persist a pending, unassigned JobRequest.

    Raises:
        DispatchValidationError: Before any write, if the payload is invalid
    """
    serializer = JobRequestCreateSerializer(data=data)
    if not serializer.is_valid():
        raise DispatchValidationError("Validation failed", _flatten_errors(serializer.errors))

    job_request = serializer.save()
    logger.info(
        "Created job request %s (%s) at (%s, %s)",
        job_request.id, job_request.service_category,
        job_request.customer_latitude, job_request.customer_longitude
    )
    return job_request


def find_eligible_candidates(
    job_request: JobRequest,
    radius_meters: Optional[float] = None,
    require_active: Optional[bool] = None,
):
    """
    Search around the job's location and keep technicians of its category.

    Returns:
        (nearby, eligible) candidate lists, both sorted nearest first
    """
    if radius_meters is None:
        radius_meters = getattr(settings, "DISPATCH_DEFAULT_RADIUS_METERS", 10000)
    if require_active is None:
        require_active = getattr(settings, "DISPATCH_REQUIRE_ACTIVE_TECHNICIANS", False)

    nearby = find_nearby_technicians(
        job_request.customer_latitude,
        job_request.customer_longitude,
        radius_meters,
    )
    eligible = filter_candidates(nearby, job_request.service_category, require_active)
    logger.info(
        "Job %s: %d nearby, %d eligible for %s",
        job_request.id, len(nearby), len(eligible), job_request.service_category
    )
    return nearby, eligible


def dispatch_nearest(
    data: Dict[str, Any],
    strategy: Optional[AssignmentStrategy] = None,
) -> DispatchResult:
    """
    Create a job request and assign the nearest eligible technician.

    Raises:
        DispatchValidationError: If the payload is invalid (nothing written)
        UpstreamUnavailableError: If the search cannot reach the GeoIndex
        TechnicianVanishedError: If the chosen technician vanished before commit
        AssignmentConflictError: If the finalize transaction kept conflicting
    """
    strategy = strategy or GreedyAssignment()
    job_request = create_job_request(data)
    nearby, eligible = find_eligible_candidates(job_request)

    if not eligible:
        return DispatchResult(
            success=False,
            job_request=job_request,
            message="No technicians available in your area for this service category",
            extra={
                "nearbyTechnicians": len(nearby),
                "serviceCategory": job_request.service_category,
                "jobId": str(job_request.id),
            },
        )

    outcome = strategy.assign(job_request, eligible)
    job_request = outcome.job_request

    # The assignment is committed; a profile deleted since then is only reported
    technician = TechnicianProfile.objects.filter(pk=outcome.technician_id).first()
    if technician is None:
        logger.error(
            "Integrity anomaly: technician %s assigned to job %s has no profile",
            outcome.technician_id, job_request.id
        )

    distance = outcome.candidate.distance_meters if outcome.candidate else None
    return DispatchResult(
        success=True,
        job_request=job_request,
        technician=technician,
        distance=distance,
        message="Technician assigned successfully",
    )


def start_negotiated_dispatch(data: Dict[str, Any]) -> DispatchResult:
    """
    Create a job request and hand it to the background negotiation task.

    The request itself never fails for lack of technicians: the result
    carries the candidate counts and the job stays pending until someone
    accepts.
    """
    from jobs.tasks import negotiate_assignment_task

    job_request = create_job_request(data)
    nearby, eligible = find_eligible_candidates(job_request)

    if eligible:
        negotiate_assignment_task.delay(str(job_request.id))
        message = "Job request sent to nearby technicians"
    else:
        message = "No technicians available in your area for this service category"

    return DispatchResult(
        success=True,
        job_request=job_request,
        message=message,
        extra={
            "jobId": str(job_request.id),
            "nearbyTechnicians": len(nearby),
            "eligibleTechnicians": len(eligible),
        },
    )


def run_negotiated_assignment(
    job_request_id,
    strategy: Optional[NegotiatedAssignment] = None,
) -> DispatchResult:
    """
    Notify eligible technicians one at a time until one accepts.

    Candidates are searched afresh so a technician who moved away since the
    job was created is not asked.
    """
    from realtime.notifications import notify_customer_event

    try:
        job_request = JobRequest.objects.get(pk=job_request_id)
    except (JobRequest.DoesNotExist, ValueError):
        raise JobRequestNotFoundError("Job request not found")

    if not job_request.is_assignable:
        logger.info("Job %s is already %s; nothing to negotiate", job_request.id, job_request.status)
        return DispatchResult(
            success=job_request.technician_id is not None,
            job_request=job_request,
            message="Job request is no longer pending",
        )

    strategy = strategy or NegotiatedAssignment()
    _, eligible = find_eligible_candidates(job_request)
    outcome = strategy.assign(job_request, eligible)
    job_request = outcome.job_request

    if not outcome.assigned:
        notify_customer_event(
            "no_technician_available",
            job_request,
            "No technicians accepted your job request. Please try again later.",
        )
        return DispatchResult(
            success=False,
            job_request=job_request,
            message="No technician accepted the job request",
            extra={"notifiedTechnicians": outcome.notified},
        )

    return DispatchResult(
        success=True,
        job_request=job_request,
        technician=TechnicianProfile.objects.filter(pk=outcome.technician_id).first(),
        distance=outcome.candidate.distance_meters if outcome.candidate else None,
        message="Technician accepted the job request",
        extra={"notifiedTechnicians": outcome.notified},
    )
