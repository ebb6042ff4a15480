"""
Assignment strategies.

Both strategies take the ranked, eligible candidate list for a job request
and funnel the actual assignment through the same atomic primitives in
`transactions`, so at most one technician is ever written to a job:

    - GreedyAssignment: assign the nearest candidate directly
    - NegotiatedAssignment: notify candidates one at a time, nearest first,
      until one accepts (daisy-chain with a per-technician timeout)
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from asgiref.sync import async_to_sync, sync_to_async
from django.conf import settings

from jobs.models import JobRequest
from realtime.notifications import DeliveryResult, build_job_request_payload, send_push
from services.proximity import Candidate
from .subscription import ResponseSubscription
from .transactions import finalize_assignment, record_response_timeout

logger = logging.getLogger(__name__)


@dataclass
class AssignmentOutcome:
    """Where a job request ended up after a strategy ran."""
    job_request: JobRequest
    technician_id: Optional[int] = None
    candidate: Optional[Candidate] = None
    notified: int = 0

    @property
    def assigned(self) -> bool:
        return self.technician_id is not None


def _candidate_for(candidates: List[Candidate], technician_id) -> Optional[Candidate]:
    for candidate in candidates:
        if candidate.technician_id == technician_id:
            return candidate
    return None


class AssignmentStrategy:
    """Picks one technician for a job out of an ordered candidate list."""

    name = "base"

    def assign(self, job_request: JobRequest, candidates: List[Candidate]) -> AssignmentOutcome:
        raise NotImplementedError


class GreedyAssignment(AssignmentStrategy):
    """Assign the nearest candidate without asking."""

    name = "greedy"

    def assign(self, job_request, candidates):
        if not candidates:
            return AssignmentOutcome(job_request)

        nearest = candidates[0]
        result = finalize_assignment(job_request.id, nearest.technician_id)
        job_request = result.job_request
        return AssignmentOutcome(
            job_request,
            job_request.technician_id,
            _candidate_for(candidates, job_request.technician_id),
        )


class NegotiatedAssignment(AssignmentStrategy):
    """
    Notify candidates sequentially, nearest first, until one accepts.

    For each candidate: subscribe to their answer, push the job request,
    wait for an answer or the timeout, then release the subscription. A
    timeout is recorded as a `timed_out` ledger entry. An undeliverable push
    moves straight on to the next candidate without recording anything.
    """

    name = "negotiated"

    def __init__(
        self,
        timeout: Optional[float] = None,
        push: Callable[..., DeliveryResult] = send_push,
        subscription_class=ResponseSubscription,
    ):
        if timeout is None:
            timeout = getattr(settings, "DISPATCH_RESPONSE_TIMEOUT_SECONDS", 30)
        self.timeout = timeout
        self.push = push
        self.subscription_class = subscription_class

    def assign(self, job_request, candidates):
        return async_to_sync(self.assign_async)(job_request, candidates)

    async def assign_async(self, job_request, candidates) -> AssignmentOutcome:
        job_id = job_request.id
        notified = 0

        for candidate in candidates:
            job_request = await sync_to_async(JobRequest.objects.get)(pk=job_id)
            if not job_request.is_assignable:
                break

            technician_id = candidate.technician_id
            payload = build_job_request_payload(job_request)

            async with self.subscription_class(job_id, technician_id) as subscription:
                delivery = await sync_to_async(self.push)(technician_id, payload)
                if not delivery.delivered:
                    logger.info(
                        "Skipping technician %s for job %s: %s",
                        technician_id, job_id, delivery.reason
                    )
                    continue

                notified += 1
                logger.info("Sent job %s to technician %s, waiting for response", job_id, technician_id)
                answer = await subscription.wait(self.timeout)

            if answer is None:
                logger.info("Timeout: no response from technician %s for job %s", technician_id, job_id)
                await sync_to_async(record_response_timeout)(job_id, technician_id)
            elif answer == "accepted":
                logger.info("Technician %s accepted job %s", technician_id, job_id)
            else:
                logger.info("Technician %s rejected job %s", technician_id, job_id)

        job_request = await sync_to_async(JobRequest.objects.get)(pk=job_id)
        if job_request.technician_id is None:
            logger.info("No technician accepted job %s (%d notified)", job_id, notified)

        return AssignmentOutcome(
            job_request,
            job_request.technician_id,
            _candidate_for(candidates, job_request.technician_id),
            notified,
        )
