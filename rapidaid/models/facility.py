"""
Pydantic models for responding facilities (police stations, fire stations,
health centers).

Facilities are registered outside the dispatch core and are read-only to it.
Deactivation is a soft delete: the record stays, `active` goes false.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional
import uuid

from rapidaid.models.base import Coordinate, ServiceType, utc_now


class Facility(BaseModel):
    """A facility capable of receiving dispatch."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Document ID")
    type: ServiceType
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=20)
    location: Coordinate
    push_channel_id: Optional[str] = Field(None, description="FCM registration token")
    active: bool = True
    address: Optional[str] = None
    district: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_document(self) -> dict:
        data = self.model_dump(mode="python")
        data["type"] = self.type.value
        return data


class FacilityCreate(BaseModel):
    """Registration payload (incoming POST request)."""
    type: ServiceType
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., pattern=r"^[0-9]{10}$", description="10-digit phone number")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    push_channel_id: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    district: Optional[str] = Field(None, max_length=100)

    class Config:
        json_schema_extra = {
            "example": {
                "type": "police",
                "name": "Central Police Station",
                "phone": "9876543210",
                "lat": 22.5726,
                "lng": 88.3639,
                "district": "Kolkata",
            }
        }


class FacilityResponse(BaseModel):
    """Public view of a facility. The push channel token is never exposed."""
    id: str
    type: ServiceType
    name: str
    phone: str
    lat: float
    lng: float
    active: bool
    address: Optional[str] = None
    district: Optional[str] = None
    distance_km: Optional[float] = None

    @classmethod
    def from_facility(cls, facility: Facility, distance_km: Optional[float] = None) -> "FacilityResponse":
        return cls(
            id=facility.id,
            type=facility.type,
            name=facility.name,
            phone=facility.phone,
            lat=facility.location.lat,
            lng=facility.location.lng,
            active=facility.active,
            address=facility.address,
            district=facility.district,
            distance_km=round(distance_km, 2) if distance_km is not None else None,
        )


class FacilityUpdate(BaseModel):
    """
    Editable facility details. The phone number is the facility's
    registered identity and cannot be changed here.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=500)
    district: Optional[str] = Field(None, max_length=100)

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def _lat_lng_together(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self

    def changes(self) -> dict:
        """Fields to write, with lat/lng folded into `location`."""
        data = self.model_dump(exclude_none=True, exclude={"lat", "lng"})
        if self.lat is not None:
            data["location"] = Coordinate(lat=self.lat, lng=self.lng)
        return data


class PushChannelUpdate(BaseModel):
    push_channel_id: str = Field(..., min_length=1)
