"""Scoped listener for a technician's answer to a job request."""

import asyncio
import logging
from typing import Optional

from channels.layers import get_channel_layer

from services.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


def response_group_name(job_request_id, technician_id) -> str:
    """Channel group that receives one technician's answer for one job."""
    return f"job_{job_request_id}_technician_{technician_id}"


class ResponseSubscription:
    """
    Listen for one technician's answer to one job request.

    Use as an async context manager. The group membership is owned by the
    caller and dropped on every exit path: an answer, a timeout or an error.

        async with ResponseSubscription(job_id, technician_id) as subscription:
            await send_push(...)
            answer = await subscription.wait(30)
    """

    def __init__(self, job_request_id, technician_id, channel_layer=None):
        self.group_name = response_group_name(job_request_id, technician_id)
        self.channel_layer = channel_layer
        self.channel_name: Optional[str] = None

    async def __aenter__(self):
        if self.channel_layer is None:
            self.channel_layer = get_channel_layer()
        if self.channel_layer is None:
            raise UpstreamUnavailableError("No channel layer available for technician responses")

        self.channel_name = await self.channel_layer.new_channel()
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self.channel_name is not None:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.debug("Listener removed for %s", self.group_name)
            self.channel_name = None
        return False

    @property
    def is_active(self) -> bool:
        return self.channel_name is not None

    async def wait(self, timeout: float) -> Optional[str]:
        """
        Wait up to `timeout` seconds for "accepted" or "rejected".

        Returns:
            The answer, or None if the timeout fired first
        """
        if self.channel_name is None:
            raise RuntimeError("wait() called outside of an active subscription")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                message = await asyncio.wait_for(
                    self.channel_layer.receive(self.channel_name), remaining
                )
            except asyncio.TimeoutError:
                return None

            response = message.get("response")
            if response in ("accepted", "rejected"):
                return response
            logger.debug("Ignoring unexpected message on %s: %s", self.group_name, message)
