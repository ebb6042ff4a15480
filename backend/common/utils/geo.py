"""
Geographic utility functions.

This module provides the geospatial calculations used by technician
location ingestion and proximity search:
    - great-circle distance (haversine)
    - geohash encoding
    - geohash query bounds covering a circle
"""

import math
from decimal import Decimal
from numbers import Real
from math import radians, cos, sin, asin, sqrt
from typing import List, Tuple

EARTH_RADIUS_METERS = 6371000
DEFAULT_GEOHASH_PRECISION = 10

# Geohash cover constants
_BITS_PER_CHAR = 5
_MAXIMUM_BITS_PRECISION = 22 * _BITS_PER_CHAR
_EARTH_MERI_CIRCUMFERENCE = 40007860
_METERS_PER_DEGREE_LATITUDE = 110574
_EARTH_EQ_RADIUS = 6378137.0
_E2 = 0.00669447819799
_EPSILON = 1e-12

# Base32 alphabet for geohash
_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"


def is_valid_coordinate(lat, lon) -> bool:
    """Return True if lat/lon are finite numbers inside geographic ranges."""
    for value in (lat, lon):
        if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
            return False
    lat = float(lat)
    lon = float(lon)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))
    return c * EARTH_RADIUS_METERS


def encode_geohash(lat: float, lon: float, precision: int = DEFAULT_GEOHASH_PRECISION) -> str:
    """
    Encode latitude/longitude to geohash string.

    Args:
        lat: Latitude (-90 to 90)
        lon: Longitude (-180 to 180)
        precision: Number of characters (1-22)

    Returns:
        Geohash string
    """
    lat_range = (-90.0, 90.0)
    lon_range = (-180.0, 180.0)

    geohash = []
    bits = [16, 8, 4, 2, 1]
    bit = 0
    ch = 0
    is_lon = True

    while len(geohash) < precision:
        if is_lon:
            mid = (lon_range[0] + lon_range[1]) / 2
            if lon >= mid:
                ch |= bits[bit]
                lon_range = (mid, lon_range[1])
            else:
                lon_range = (lon_range[0], mid)
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                ch |= bits[bit]
                lat_range = (mid, lat_range[1])
            else:
                lat_range = (lat_range[0], mid)

        is_lon = not is_lon

        if bit < 4:
            bit += 1
        else:
            geohash.append(_BASE32[ch])
            bit = 0
            ch = 0

    return "".join(geohash)


# ---------------------- Geohash Query Bounds ----------------------

def meters_to_longitude_degrees(distance: float, latitude: float) -> float:
    """Convert a distance at the given latitude into degrees of longitude."""
    rad = math.radians(latitude)
    num = math.cos(rad) * _EARTH_EQ_RADIUS * math.pi / 180
    denom = 1 / math.sqrt(1 - _E2 * math.sin(rad) * math.sin(rad))
    delta_deg = num * denom
    if delta_deg < _EPSILON:
        return 360.0 if distance > 0 else 0.0
    return min(360.0, distance / delta_deg)


def _longitude_bits_for_resolution(resolution: float, latitude: float) -> float:
    degs = meters_to_longitude_degrees(resolution, latitude)
    if abs(degs) > 0.000001:
        return max(1.0, math.log2(360 / degs))
    return 1.0


def _latitude_bits_for_resolution(resolution: float) -> float:
    return min(math.log2(_EARTH_MERI_CIRCUMFERENCE / 2 / resolution), _MAXIMUM_BITS_PRECISION)


def _wrap_longitude(longitude: float) -> float:
    if -180 <= longitude <= 180:
        return longitude
    adjusted = longitude + 180
    if adjusted > 0:
        return (adjusted % 360) - 180
    return 180 - (-adjusted % 360)


def _bounding_box_bits(lat: float, lon: float, size: float) -> int:
    """Number of geohash bits whose cell is at least as large as the search box."""
    lat_delta = size / _METERS_PER_DEGREE_LATITUDE
    lat_north = min(90.0, lat + lat_delta)
    lat_south = max(-90.0, lat - lat_delta)
    bits_lat = math.floor(_latitude_bits_for_resolution(size)) * 2
    bits_long_north = math.floor(_longitude_bits_for_resolution(size, lat_north)) * 2 - 1
    bits_long_south = math.floor(_longitude_bits_for_resolution(size, lat_south)) * 2 - 1
    return min(bits_lat, bits_long_north, bits_long_south, _MAXIMUM_BITS_PRECISION)


def _bounding_box_coordinates(lat: float, lon: float, radius: float) -> List[Tuple[float, float]]:
    """Center, edge midpoints and corners of the box around the circle."""
    lat_degrees = radius / _METERS_PER_DEGREE_LATITUDE
    lat_north = min(90.0, lat + lat_degrees)
    lat_south = max(-90.0, lat - lat_degrees)
    long_degs = max(
        meters_to_longitude_degrees(radius, lat_north),
        meters_to_longitude_degrees(radius, lat_south),
    )
    west = _wrap_longitude(lon - long_degs)
    east = _wrap_longitude(lon + long_degs)
    return [
        (lat, lon),
        (lat, west),
        (lat, east),
        (lat_north, lon),
        (lat_north, west),
        (lat_south, lon),
        (lat_north, east),
        (lat_south, west),
        (lat_south, east),
    ]


def _geohash_query(geohash: str, bits: int) -> Tuple[str, str]:
    """Prefix range [start, end] of all geohashes sharing the first `bits` bits."""
    precision = math.ceil(bits / _BITS_PER_CHAR)
    if len(geohash) < precision:
        return geohash, geohash + "~"

    geohash = geohash[:precision]
    base = geohash[:-1]
    last_value = _BASE32.index(geohash[-1])
    significant_bits = bits - (len(base) * _BITS_PER_CHAR)
    unused_bits = _BITS_PER_CHAR - significant_bits
    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)
    if end_value > 31:
        return base + _BASE32[start_value], base + "~"
    return base + _BASE32[start_value], base + _BASE32[end_value]


def geohash_query_bounds(lat: float, lon: float, radius_meters: float) -> List[Tuple[str, str]]:
    """
    Cover the disc of `radius_meters` around (lat, lon) with geohash ranges.

    Each bound is an inclusive [start, end] pair of geohash strings. An end
    key ending in "~" sorts after every geohash sharing its prefix. The union
    of the ranges is a superset of the disc, so callers must prune results by
    exact distance.

    Returns:
        List of unique (start, end) tuples
    """
    query_bits = max(1, _bounding_box_bits(lat, lon, radius_meters))
    precision = math.ceil(query_bits / _BITS_PER_CHAR)

    bounds: List[Tuple[str, str]] = []
    for point_lat, point_lon in _bounding_box_coordinates(lat, lon, radius_meters):
        query = _geohash_query(encode_geohash(point_lat, point_lon, precision), query_bits)
        if query not in bounds:
            bounds.append(query)
    return bounds
