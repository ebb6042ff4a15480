"""Technician WebSocket consumer for job requests and accept/reject answers."""

import logging
from typing import Dict, Any, Optional

from channels.db import database_sync_to_async

from .base import BaseConsumer
from realtime.notifications import technician_group_name
from services.exceptions import (
    AssignmentConflictError,
    DispatchValidationError,
    JobRequestNotFoundError,
    TechnicianNotFoundError,
    TechnicianVanishedError,
    UpstreamUnavailableError,
)
from technicians.models import TechnicianProfile

logger = logging.getLogger(__name__)


class TechnicianConsumer(BaseConsumer):
    """
    WebSocket consumer for technicians.

    Handles:
        - Job request pushes (technician_<profile id> group)
        - Accept/reject answers, recorded through the same atomic
          handler as the HTTP endpoint
        - Location updates feeding the GeoIndex
    """

    async def on_connect(self):
        """Join the technician's push group and mark them reachable."""
        self.profile_id = await self._get_profile_id()
        if self.profile_id is None:
            await self.send_error("This endpoint is for technicians only")
            await self.close()
            return

        self.technician_group = technician_group_name(self.profile_id)
        await self._join_group(self.technician_group)
        await self._set_online(True)

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "technician_id": self.profile_id,
            "role": self.role,
            "message": "Technician connected successfully",
        })

    async def on_disconnect(self, close_code):
        if getattr(self, "profile_id", None) is None:
            return
        await self._set_online(False)
        logger.info("Technician %s disconnected", self.profile_id)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle technician-specific messages."""

        if msg_type == "job_response":
            await self._handle_job_response(data)
        elif msg_type == "location_update":
            await self._handle_location_update(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_job_response(self, data: Dict[str, Any]):
        job_id = data.get("jobId")
        response = data.get("response")

        if not job_id or not response:
            await self.send_error("job_response requires jobId and response")
            return

        try:
            result = await self._record_response(job_id, response, data.get("timestamp"))
        except DispatchValidationError as e:
            await self.send_error(e.message, details=e.details)
            return
        except JobRequestNotFoundError:
            await self.send_error("Job request not found", jobId=job_id)
            return
        except (TechnicianNotFoundError, TechnicianVanishedError):
            await self.send_error("Technician not found")
            return
        except (AssignmentConflictError, UpstreamUnavailableError) as e:
            logger.error("Could not record response from technician %s: %s", self.profile_id, e)
            await self.send_error("Could not record response, please retry", jobId=job_id)
            return

        await self.send_success(
            "job_response_recorded",
            jobId=str(job_id),
            response=response,
            recorded=result.recorded,
            assigned=result.job_request.technician_id == self.profile_id,
        )

    async def _handle_location_update(self, data: Dict[str, Any]):
        try:
            location = await self._update_location(
                data.get("lat"), data.get("lng"), data.get("serviceCategory")
            )
        except DispatchValidationError as e:
            await self.send_error(e.message, details=e.details)
            return

        await self.send_success("location_updated", geohash=location.geohash)

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def job_request(self, event):
        """Forward a job request push to the technician."""
        await self.send_json({
            "type": "new_job_request",
            "title": event.get("title"),
            "body": event.get("body"),
            "data": event.get("data", {}),
        })

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _get_profile_id(self) -> Optional[int]:
        return (
            TechnicianProfile.objects
            .filter(user_id=self.user_id)
            .values_list("id", flat=True)
            .first()
        )

    @database_sync_to_async
    def _set_online(self, online: bool):
        TechnicianProfile.objects.filter(pk=self.profile_id).update(is_online=online)

    @database_sync_to_async
    def _record_response(self, job_id, response, timestamp):
        from django.utils.dateparse import parse_datetime
        from services.assignment import record_technician_response

        parsed = None
        if isinstance(timestamp, str):
            try:
                parsed = parse_datetime(timestamp)
            except ValueError:
                parsed = None
        return record_technician_response(job_id, self.profile_id, response, parsed)

    @database_sync_to_async
    def _update_location(self, lat, lng, service_category):
        from technicians.services import update_technician_location

        return update_technician_location(self.profile_id, lat, lng, service_category)
