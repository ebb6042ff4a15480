"""
Technician GeoIndex.

Stores each technician's current location as a geohash-tagged record and
answers ordered range queries over the geohash column. Proximity search
builds on top of `range_query`; location ingestion uses `upsert`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.db import DatabaseError
from django.utils import timezone

from services.exceptions import UpstreamUnavailableError
from technicians.models import TechnicianLocation

logger = logging.getLogger(__name__)


class GeoIndexUnavailableError(UpstreamUnavailableError):
    """Raised when the location store cannot be reached."""
    pass


class TechnicianGeoIndex:
    """
    Geohash index of technician locations.

    Provides:
    - Full-overwrite upsert of a technician's location record
    - Inclusive geohash range queries ordered by geohash
    """

    def upsert(self, technician_id: int, record: Dict[str, Any]) -> TechnicianLocation:
        """Replace the technician's record with `record` (no merge)."""
        defaults = {
            "geohash": record["geohash"],
            "latitude": float(record["latitude"]),
            "longitude": float(record["longitude"]),
            "service_category": record["service_category"],
            "updated_at": record.get("updated_at") or timezone.now(),
        }
        try:
            location, _ = TechnicianLocation.objects.update_or_create(
                technician_id=technician_id,
                defaults=defaults,
            )
        except DatabaseError as e:
            logger.exception("Failed to upsert location for technician %s", technician_id)
            raise GeoIndexUnavailableError(str(e)) from e
        return location

    def range_query(self, start: str, end: str) -> List[TechnicianLocation]:
        """
        Return records with start <= geohash <= end, ordered by geohash.

        An end key ending in "~" means "everything sharing this prefix" and is
        evaluated as a prefix match.
        """
        queryset = TechnicianLocation.objects.filter(geohash__gte=start)
        if end.endswith("~"):
            queryset = queryset.filter(geohash__startswith=end[:-1])
        else:
            queryset = queryset.filter(geohash__lte=end)

        try:
            return list(queryset.order_by("geohash"))
        except DatabaseError as e:
            logger.exception("GeoIndex range query failed for [%s, %s]", start, end)
            raise GeoIndexUnavailableError(str(e)) from e


# ---------------------- Singleton Instance ----------------------

_geo_index: Optional[TechnicianGeoIndex] = None


def get_geo_index() -> TechnicianGeoIndex:
    """Get singleton TechnicianGeoIndex instance."""
    global _geo_index
    if _geo_index is None:
        _geo_index = TechnicianGeoIndex()
    return _geo_index
