from django.conf import settings
from django.utils import timezone

from common.utils.geo import encode_geohash, is_valid_coordinate
from services.exceptions import DispatchValidationError
from technicians.geo_index import get_geo_index
from technicians.models import SERVICE_CATEGORIES, TechnicianLocation


# LOCATION INGESTION
def update_technician_location(technician_id: int, lat, lng, service_category: str) -> TechnicianLocation:
    """
    Overwrite the technician's GeoIndex record with a fresh location.

    Used by:
    - HTTP utility endpoint
    - Technician WebSocket location events

    Last write wins; nothing from the previous record is kept.
    """
    errors = []
    if not is_valid_coordinate(lat, lng):
        errors.append("lat and lng must be finite numbers within geographic ranges")
    if service_category not in SERVICE_CATEGORIES:
        errors.append(f"serviceCategory must be one of: {', '.join(SERVICE_CATEGORIES)}")
    if errors:
        raise DispatchValidationError("Invalid location update", errors)

    precision = getattr(settings, "GEOHASH_PRECISION", 10)
    lat, lng = float(lat), float(lng)

    return get_geo_index().upsert(technician_id, {
        "geohash": encode_geohash(lat, lng, precision),
        "latitude": lat,
        "longitude": lng,
        "service_category": service_category,
        "updated_at": timezone.now(),
    })
