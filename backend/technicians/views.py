import logging

from django.conf import settings
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny

from services.exceptions import DispatchValidationError, UpstreamUnavailableError
from services.proximity import filter_candidates, find_nearby_technicians
from technicians.models import SERVICE_CATEGORIES
from technicians.serializers import LocationUpdateSerializer, NearbySearchSerializer
from technicians.services import update_technician_location

logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


class NearestTechniciansView(APIView):
    """
    POST: Raw proximity search with optional category filter. No side effects.

    Query params:
        serviceCategory: keep only technicians of this category
        requireActive: keep only approved and active technicians
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = NearbySearchSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Validation failed", "details": serializer.errors}, status=400)

        data = serializer.validated_data
        radius = data.get("radiusInM", getattr(settings, "DISPATCH_DEFAULT_RADIUS_METERS", 10000))

        service_category = request.query_params.get("serviceCategory")
        if service_category is not None and service_category not in SERVICE_CATEGORIES:
            return Response({
                "error": "Invalid service category",
                "message": f"serviceCategory must be one of: {', '.join(SERVICE_CATEGORIES)}",
            }, status=400)
        require_active = request.query_params.get("requireActive", "").lower() in TRUE_VALUES

        try:
            candidates = find_nearby_technicians(data["lat"], data["lng"], radius)
            if service_category or require_active:
                # Without a category every candidate's own category passes
                if service_category:
                    candidates = filter_candidates(candidates, service_category, require_active)
                else:
                    candidates = [
                        c for c in candidates if c.technician is not None and c.technician.is_eligible
                    ]
        except DispatchValidationError as e:
            return Response({"error": e.message, "details": e.details}, status=400)
        except UpstreamUnavailableError as e:
            logger.error("Nearby technician search failed: %s", e)
            return Response({"error": "Service unavailable", "message": str(e)}, status=500)

        return Response({
            "success": True,
            "message": f"Found {len(candidates)} technicians nearby",
            "data": [c.to_dict() for c in candidates],
            "count": len(candidates),
        })


class TechnicianLocationUpdateView(APIView):
    """
    POST: Overwrite a technician's GeoIndex record.
    """
    permission_classes = [AllowAny]

    def post(self, request, technician_id: int):
        serializer = LocationUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Validation failed", "details": serializer.errors}, status=400)

        data = serializer.validated_data
        try:
            location = update_technician_location(
                technician_id, data["lat"], data["lng"], data["serviceCategory"]
            )
        except DispatchValidationError as e:
            return Response({"error": e.message, "details": e.details}, status=400)
        except UpstreamUnavailableError as e:
            logger.error("Location update for technician %s failed: %s", technician_id, e)
            return Response({"error": "Service unavailable", "message": str(e)}, status=500)

        return Response({
            "success": True,
            "message": "Location updated",
            "technicianId": technician_id,
            "geohash": location.geohash,
            "updatedAt": location.updated_at.isoformat(),
        })
