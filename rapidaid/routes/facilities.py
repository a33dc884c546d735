"""
Facility endpoints - listing, nearby search and registration upkeep.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from rapidaid.models.base import Coordinate, ServiceType
from rapidaid.models.facility import FacilityCreate, FacilityResponse, FacilityUpdate, PushChannelUpdate
from rapidaid.services.alert_service import AlertService, get_alert_service
from rapidaid.services.facility_directory import FacilityDirectory

router = APIRouter(prefix="/facilities", tags=["Facilities"])


def get_facility_directory(service: AlertService = Depends(get_alert_service)) -> FacilityDirectory:
    return service.facility_directory


def _coordinate(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinate]:
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Latitude and longitude must be provided together",
        )
    return Coordinate(lat=lat, lng=lng)


@router.get("", response_model=List[FacilityResponse])
async def list_facilities(
    type: Optional[ServiceType] = None,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    limit: Optional[int] = Query(None, ge=1, le=500),
    directory: FacilityDirectory = Depends(get_facility_directory),
):
    """Active facilities; sorted by distance when lat/lng are given, else by name."""
    ranked = await directory.list_facilities(type, _coordinate(lat, lng), limit)
    return [FacilityResponse.from_facility(f, distance) for f, distance in ranked]


@router.get("/nearby", response_model=List[FacilityResponse])
async def nearby_facilities(
    type: ServiceType,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    limit: int = Query(10, ge=1, le=100),
    directory: FacilityDirectory = Depends(get_facility_directory),
):
    ranked = await directory.find_nearest(type, Coordinate(lat=lat, lng=lng), limit)
    return [FacilityResponse.from_facility(f, distance) for f, distance in ranked]


@router.get("/{facility_id}", response_model=FacilityResponse)
async def get_facility(facility_id: str, directory: FacilityDirectory = Depends(get_facility_directory)):
    return FacilityResponse.from_facility(await directory.require(facility_id))


@router.post("", response_model=FacilityResponse, status_code=status.HTTP_201_CREATED)
async def register_facility(
    request: FacilityCreate,
    directory: FacilityDirectory = Depends(get_facility_directory),
):
    return FacilityResponse.from_facility(await directory.register(request))


@router.patch("/{facility_id}", response_model=FacilityResponse)
async def update_facility(
    facility_id: str,
    request: FacilityUpdate,
    directory: FacilityDirectory = Depends(get_facility_directory),
):
    """Edit facility details. The phone number cannot be changed."""
    return FacilityResponse.from_facility(await directory.update_details(facility_id, request))


@router.put("/{facility_id}/push-channel")
async def update_push_channel(
    facility_id: str,
    request: PushChannelUpdate,
    directory: FacilityDirectory = Depends(get_facility_directory),
):
    await directory.update_push_channel(facility_id, request.push_channel_id)
    return {"success": True, "message": "Push channel updated successfully"}


@router.delete("/{facility_id}", response_model=FacilityResponse)
async def deactivate_facility(facility_id: str, directory: FacilityDirectory = Depends(get_facility_directory)):
    """Soft delete: the facility stops receiving dispatches."""
    return FacilityResponse.from_facility(await directory.deactivate(facility_id))
