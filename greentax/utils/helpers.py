"""
Geo and time helpers shared by validation and compliance scoring
"""
import hashlib
import math
import secrets
import time
from datetime import date, datetime, timezone
from typing import Optional

EARTH_RADIUS_KM = 6371
SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_valid_coordinate(lat: Optional[float], lng: Optional[float]) -> bool:
    """Latitude in [-90, 90], longitude in [-180, 180], both finite."""
    if lat is None or lng is None:
        return False
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two GPS coordinates in km."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_within_radius(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    max_radius_km: float = 0.5
) -> bool:
    """True when the two points are at most max_radius_km apart."""
    return haversine_distance(lat1, lon1, lat2, lon2) <= max_radius_km


def minutes_between(a: datetime, b: datetime) -> float:
    """Absolute difference in minutes, tolerant of skew in either direction."""
    return abs((a - b).total_seconds()) / 60


def is_timestamp_fresh(timestamp: datetime, now: datetime, max_minutes: int = 30) -> bool:
    return minutes_between(now, timestamp) <= max_minutes


def days_since(then: datetime, now: datetime) -> int:
    """Whole days elapsed (floor of the absolute difference)."""
    return int(abs((now - then).total_seconds()) // SECONDS_PER_DAY)


def week_number(day: date) -> int:
    """
    ISO-8601 week number: weeks start Monday and week 1 is the week
    containing the year's first Thursday.
    """
    return day.isocalendar()[1]


def generate_image_hash(image_bytes: bytes) -> str:
    """SHA-256 fingerprint of the raw image bytes."""
    return hashlib.sha256(image_bytes).hexdigest()


def generate_unique_id(prefix: str = "") -> str:
    """<prefix><epoch-ms>-<8 hex chars>"""
    return f"{prefix}{int(time.time() * 1000)}-{secrets.token_hex(4)}"
