# jobs/views.py

import logging

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny

from jobs.serializers import JobRequestSerializer, JobResponseSerializer
from services import assignment
from services.exceptions import (
    AssignmentConflictError,
    DispatchValidationError,
    JobRequestNotFoundError,
    TechnicianNotFoundError,
    TechnicianVanishedError,
    UpstreamUnavailableError,
)
from technicians.serializers import TechnicianProfileSerializer

logger = logging.getLogger(__name__)


def _job_request_data(request):
    """Request body, with the authenticated user as customer when none is given."""
    data = request.data.copy() if hasattr(request.data, "copy") else dict(request.data)
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated and not data.get("customerId"):
        data["customerId"] = str(user.id)
        data.setdefault("customerName", user.get_full_name() or user.username)
    return data


def _validation_error(e: DispatchValidationError):
    return Response({"error": "Validation failed", "message": e.message, "details": e.details}, status=400)


def _server_error(e: Exception, error="Internal server error"):
    return Response({"error": error, "message": str(e)}, status=500)


class NegotiatedDispatchView(APIView):
    """
    POST: Create a job request and notify nearby technicians one at a time.

    Always 200 once the job request exists, even if nobody is nearby.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            result = assignment.start_negotiated_dispatch(_job_request_data(request))
        except DispatchValidationError as e:
            return _validation_error(e)
        except UpstreamUnavailableError as e:
            logger.error("Negotiated dispatch failed: %s", e)
            return _server_error(e, "Service unavailable")

        return Response({
            "success": True,
            "message": result.message,
            **result.extra,
        })


class FindNearestTechnicianView(APIView):
    """
    POST: Create a job request and directly assign the nearest eligible technician.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            result = assignment.dispatch_nearest(_job_request_data(request))
        except DispatchValidationError as e:
            return _validation_error(e)
        except TechnicianVanishedError as e:
            return Response({"success": False, "error": "Assigned technician not found", "message": str(e)}, status=404)
        except UpstreamUnavailableError as e:
            logger.error("Dispatch failed: %s", e)
            return _server_error(e, "Service unavailable")
        except AssignmentConflictError as e:
            return _server_error(e, "Could not assign technician")

        if not result.success:
            return Response({
                "success": False,
                "message": result.message,
                "data": result.extra,
            }, status=404)

        return Response({
            "success": True,
            "message": result.message,
            "data": {
                "jobRequest": JobRequestSerializer(result.job_request).data,
                "technician": TechnicianProfileSerializer(result.technician).data if result.technician else None,
                "distance": result.distance,
            },
        })


class JobAcceptOrRejectView(APIView):
    """
    POST: A technician accepts or rejects a job request.

    The first accept to commit wins; later answers are recorded for audit only.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = JobResponseSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Validation failed", "details": serializer.errors}, status=400)

        data = serializer.validated_data
        job_id = data["jobId"]
        technician_id = data["technicianId"]
        response = data["response"]

        try:
            result = assignment.record_technician_response(
                job_id, technician_id, response, data.get("timestamp")
            )
        except DispatchValidationError as e:
            return _validation_error(e)
        except JobRequestNotFoundError:
            return Response({"error": "Job request not found"}, status=500)
        except TechnicianNotFoundError as e:
            return Response({"error": "Technician not found", "message": str(e)}, status=404)
        except TechnicianVanishedError as e:
            return Response({"error": "Technician not found", "message": str(e)}, status=404)
        except AssignmentConflictError as e:
            return _server_error(e, "Could not record response")

        if result.assigned:
            message = "Job accepted and assigned"
        elif not result.recorded:
            message = "Response already recorded"
        elif response == "accepted":
            message = "Response recorded; job already assigned"
        else:
            message = "Response recorded"

        return Response({
            "success": True,
            "jobId": job_id,
            "technicianId": technician_id,
            "response": response,
            "assigned": result.job_request.technician_id == technician_id,
            "message": message,
        })
