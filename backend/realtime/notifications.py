"""
Notification helpers for sending WebSocket messages to connected clients.

This module provides functions to:
- Push a job request to one technician (technician_<id> group)
- Publish a technician's committed answer to the waiting dispatcher
- Send job events to the owning customer (customer_<id> group)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from technicians.models import TechnicianProfile

logger = logging.getLogger(__name__)

# Channel group names: ASCII alphanumerics, hyphens, underscores, periods
_GROUP_SAFE = re.compile(r"^[A-Za-z0-9_.\-]{1,80}$")


@dataclass
class DeliveryResult:
    """Outcome of a push attempt. Not delivering is not a rejection."""
    delivered: bool
    reason: str = ""


def technician_group_name(technician_id) -> str:
    return f"technician_{technician_id}"


def customer_group_name(customer_id) -> str:
    return f"customer_{customer_id}"


# ---------------------- Technician Push ----------------------

def build_job_request_payload(job_request) -> Dict[str, Any]:
    """Push message announcing a new job request."""
    customer_name = job_request.customer_name or "Customer"
    return {
        "title": "New Job Request",
        "body": f"{customer_name} needs your help!",
        "data": {
            "jobId": str(job_request.id),
            "type": "JOB_REQUEST",
            "serviceCategory": job_request.service_category,
        },
    }


def send_push(technician_id: int, payload: Dict[str, Any]) -> DeliveryResult:
    """
    Deliver `payload` to the technician's personal group.

    Returns:
        DeliveryResult; delivered=False when the technician has no open
        connection, no channel layer is configured or the send failed
    """
    profile = TechnicianProfile.objects.filter(pk=technician_id).only("id", "is_online").first()
    if profile is None:
        logger.info("No technician profile for %s; push skipped", technician_id)
        return DeliveryResult(False, "technician_not_found")
    if not profile.is_online:
        logger.info("No registered endpoint for technician %s", technician_id)
        return DeliveryResult(False, "no_registered_endpoint")

    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available for push")
        return DeliveryResult(False, "no_channel_layer")

    message = {"type": "job_request", **payload}
    logger.debug("WS -> technician_%s: %s", technician_id, message)
    try:
        async_to_sync(channel_layer.group_send)(technician_group_name(technician_id), message)
    except Exception:
        logger.exception("Failed to push job request to technician %s", technician_id)
        return DeliveryResult(False, "channel_layer_error")
    return DeliveryResult(True)


# ---------------------- Response Fan-in ----------------------

def publish_technician_response(job_request_id, technician_id: int, response: str) -> bool:
    """Wake any dispatcher subscribed to this technician's answer."""
    from services.assignment.subscription import response_group_name

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    try:
        async_to_sync(channel_layer.group_send)(
            response_group_name(job_request_id, technician_id),
            {
                "type": "technician.response",
                "job_id": str(job_request_id),
                "technician_id": technician_id,
                "response": response,
            },
        )
    except Exception:
        logger.exception(
            "Failed to publish response of technician %s for job %s", technician_id, job_request_id
        )
        return False
    return True


# ---------------------- Customer Events ----------------------

def notify_customer_event(
    event_type: str,
    job_request,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """
    Send a job event to the owning customer through: customer_<customer_id>

    Args:
        event_type: Handler name in consumer (job_confirmed, no_technician_available)
        job_request: JobRequest model instance
        message: Optional message to include
        extra: Additional payload data

    Returns:
        True if sent, False otherwise
    """
    customer_id = job_request.customer_id
    if not customer_id or not _GROUP_SAFE.match(str(customer_id)):
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    payload = {
        "type": event_type,
        "job_id": str(job_request.id),
        "status": job_request.status,
        "technician_id": job_request.technician_id,
        **(extra or {}),
    }
    if message:
        payload["message"] = message

    try:
        async_to_sync(channel_layer.group_send)(customer_group_name(customer_id), payload)
    except Exception:
        logger.exception("Failed to notify customer %s for job %s", customer_id, job_request.id)
        return False
    return True
