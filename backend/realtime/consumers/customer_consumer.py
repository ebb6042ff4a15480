"""Customer WebSocket consumer for job request status notifications."""

import logging

from .base import BaseConsumer
from realtime.notifications import customer_group_name

logger = logging.getLogger(__name__)


class CustomerConsumer(BaseConsumer):
    """
    WebSocket consumer for customers.

    Receives events for the customer's own job requests through the
    customer_<user id> group.
    """

    async def on_connect(self):
        """Set up customer-specific connection."""
        if self.role != "customer":
            await self.send_error("This endpoint is for customers only")
            await self.close()
            return

        self.customer_group = customer_group_name(self.user_id)
        await self._join_group(self.customer_group)

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "message": "Customer connected successfully",
        })

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def job_confirmed(self, event):
        """Sent when a technician has been assigned to the job."""
        await self.send_json({
            "type": "job_confirmed",
            "job_id": event.get("job_id"),
            "technician_id": event.get("technician_id"),
            "status": event.get("status"),
            "message": event.get("message", ""),
        })

    async def no_technician_available(self, event):
        """Sent when every notified technician declined or timed out."""
        await self.send_json({
            "type": "no_technician_available",
            "job_id": event.get("job_id"),
            "message": event.get("message", "No technicians available"),
        })
