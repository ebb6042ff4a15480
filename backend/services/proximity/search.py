"""
Nearest-technician proximity search.

The search disc is covered by a finite set of geohash prefix ranges; each
range is queried independently against the GeoIndex, results are merged,
deduplicated by technician id and pruned by exact great-circle distance.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from django.db import DatabaseError

from common.utils import calculate_distance, geohash_query_bounds, is_valid_coordinate
from services.exceptions import DispatchValidationError, UpstreamUnavailableError
from technicians.models import TechnicianProfile

if TYPE_CHECKING:
    from technicians.geo_index import TechnicianGeoIndex

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """A technician found near a point, annotated with its distance."""
    technician_id: int
    latitude: float
    longitude: float
    geohash: str
    service_category: str
    distance_meters: float
    updated_at: Optional[datetime] = None
    technician: Optional[TechnicianProfile] = None

    @property
    def sort_key(self):
        return (self.distance_meters, str(self.technician_id))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.technician_id,
            "geohash": self.geohash,
            "serviceCategory": self.service_category,
            "location": {"lat": self.latitude, "lng": self.longitude},
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "distance": self.distance_meters,
        }
        if self.technician is not None:
            data["name"] = self.technician.name
            data["status"] = self.technician.status
            data["isActive"] = self.technician.is_active
            data["rating"] = float(self.technician.rating)
        return data


def _validate_search_input(lat, lng, radius_meters):
    errors = []
    if not is_valid_coordinate(lat, lng):
        errors.append("lat and lng must be finite numbers within geographic ranges")
    try:
        radius = float(radius_meters)
    except (TypeError, ValueError):
        radius = float("nan")
    if isinstance(radius_meters, bool) or not math.isfinite(radius) or radius <= 0:
        errors.append("radiusInM must be a positive number")
    if errors:
        raise DispatchValidationError("Invalid search parameters", errors)
    return float(lat), float(lng), radius


def find_nearby_technicians(
    lat: float,
    lng: float,
    radius_meters: float,
    geo_index: Optional["TechnicianGeoIndex"] = None,
) -> List[Candidate]:
    """
    Find technicians within `radius_meters` of (lat, lng).

    Args:
        lat: Center latitude
        lng: Center longitude
        radius_meters: Search radius in meters (> 0)
        geo_index: GeoIndex to query (defaults to the shared instance)

    Returns:
        Candidates sorted by ascending distance, ties broken by technician id

    Raises:
        DispatchValidationError: If coordinates or radius are invalid
        UpstreamUnavailableError: If the GeoIndex cannot be queried
    """
    lat, lng, radius = _validate_search_input(lat, lng, radius_meters)
    if geo_index is None:
        from technicians.geo_index import get_geo_index
        geo_index = get_geo_index()

    seen = set()
    candidates: List[Candidate] = []
    for start, end in geohash_query_bounds(lat, lng, radius):
        for record in geo_index.range_query(start, end):
            # Records near bucket boundaries can show up under several bounds
            if record.technician_id in seen:
                continue
            seen.add(record.technician_id)

            distance = calculate_distance(lat, lng, record.latitude, record.longitude)
            # Geohash bounds overshoot the disc
            if distance > radius:
                continue

            candidates.append(Candidate(
                technician_id=record.technician_id,
                latitude=record.latitude,
                longitude=record.longitude,
                geohash=record.geohash,
                service_category=record.service_category,
                distance_meters=round(distance, 2),
                updated_at=record.updated_at,
            ))

    candidates.sort(key=lambda c: c.sort_key)
    _attach_profiles(candidates)

    logger.info(
        "Found %d technicians within %sm of (%s, %s)",
        len(candidates), radius, lat, lng
    )
    return candidates


def _attach_profiles(candidates: List[Candidate]) -> None:
    """Snapshot each candidate's technician profile, if it still has one."""
    if not candidates:
        return
    try:
        profiles = TechnicianProfile.objects.in_bulk([c.technician_id for c in candidates])
    except DatabaseError as e:
        logger.exception("Failed to load technician profiles for candidates")
        raise UpstreamUnavailableError(str(e)) from e
    for candidate in candidates:
        candidate.technician = profiles.get(candidate.technician_id)
