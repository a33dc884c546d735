"""
Shared pydantic building blocks for request/response validation.

DESIGN PRINCIPLE:
- Models should reflect data structure, not business logic
- Keep models simple and focused on validation
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceType(str, Enum):
    """Emergency service categories. Each maps to one kind of facility."""
    POLICE = "police"
    FIRE = "fire"
    AMBULANCE = "ambulance"


class Coordinate(BaseModel):
    """WGS84 point. Out-of-range values are rejected at construction."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
