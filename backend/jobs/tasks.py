"""Celery tasks for job dispatch background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def negotiate_assignment_task(job_request_id: str):
    """
    Celery task running the sequential notify-and-wait negotiation.

    Scheduled by the negotiated dispatch endpoint once the job request has
    been persisted. Each technician is notified in turn and given the
    response timeout before the next one is asked.
    """
    from services.assignment import run_negotiated_assignment
    from services.exceptions import JobRequestNotFoundError

    try:
        result = run_negotiated_assignment(job_request_id)
    except JobRequestNotFoundError:
        logger.warning(f"Job request {job_request_id} not found for negotiation task")
        return None

    logger.info(
        f"Negotiation for job {job_request_id} finished: {result.message} "
        f"(technician={result.job_request.technician_id})"
    )
    return result.job_request.technician_id
