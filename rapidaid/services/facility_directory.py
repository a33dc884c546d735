"""
Facility Directory - per-service-type collection of responding facilities.

Nearest-facility search is a linear scan over the active facilities of
one type. That is fine for tens to low hundreds of facilities; a spatial
index can replace `find_nearest` behind this interface without touching
the engines.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import logging

from google.api_core import exceptions as gcp_exceptions

from rapidaid.core.exceptions import FacilityNotFound, StoreError
from rapidaid.models.base import Coordinate, ServiceType, utc_now
from rapidaid.models.facility import Facility, FacilityCreate, FacilityUpdate
from rapidaid.services.geo import EARTH_RADIUS_KM, haversine_km
from rapidaid.utils.firestore_helpers import run_blocking, where_filter

logger = logging.getLogger(__name__)

FACILITIES_COLLECTION = "facilities"

RankedFacility = Tuple[Facility, float]


class FacilityDirectory(ABC):
    """
    Read-mostly facility registry.

    Subclasses supply storage; ranking and registration helpers live here.
    """

    def __init__(self, earth_radius_km: float = EARTH_RADIUS_KM):
        self.earth_radius_km = earth_radius_km

    @abstractmethod
    async def find_active_by_type(self, facility_type: ServiceType) -> List[Facility]:
        raise NotImplementedError

    @abstractmethod
    async def get(self, facility_id: str) -> Optional[Facility]:
        raise NotImplementedError

    @abstractmethod
    async def list_all(self, facility_type: Optional[ServiceType] = None) -> List[Facility]:
        raise NotImplementedError

    @abstractmethod
    async def save(self, facility: Facility) -> Facility:
        raise NotImplementedError

    async def find_nearest(
        self,
        facility_type: ServiceType,
        coordinate: Coordinate,
        limit: int = 1,
    ) -> List[RankedFacility]:
        """
        Active facilities of `facility_type` ordered by distance (km).

        The sort is stable, so on exact distance ties the facility
        encountered first wins.
        """
        candidates = await self.find_active_by_type(facility_type)
        ranked = [
            (facility, haversine_km(coordinate, facility.location, self.earth_radius_km))
            for facility in candidates
        ]
        ranked.sort(key=lambda item: item[1])
        return ranked[:limit]

    async def list_facilities(
        self,
        facility_type: Optional[ServiceType] = None,
        coordinate: Optional[Coordinate] = None,
        limit: Optional[int] = None,
    ) -> List[RankedFacility]:
        """
        Active facilities for listing. Sorted by distance when a coordinate
        is given (distance is None otherwise), else by name.
        """
        facilities = [f for f in await self.list_all(facility_type) if f.active]
        if coordinate is None:
            facilities.sort(key=lambda f: f.name.lower())
            ranked = [(f, None) for f in facilities]
        else:
            ranked = [(f, haversine_km(coordinate, f.location, self.earth_radius_km)) for f in facilities]
            ranked.sort(key=lambda item: item[1])
        return ranked[:limit] if limit else ranked

    async def require(self, facility_id: str) -> Facility:
        facility = await self.get(facility_id)
        if facility is None:
            raise FacilityNotFound(facility_id)
        return facility

    async def register(self, request: FacilityCreate) -> Facility:
        facility = Facility(
            type=request.type,
            name=request.name,
            phone=request.phone,
            location=Coordinate(lat=request.lat, lng=request.lng),
            push_channel_id=request.push_channel_id,
            address=request.address,
            district=request.district,
        )
        await self.save(facility)
        logger.info(f"Registered {facility.type.value} facility {facility.id} ({facility.name})")
        return facility

    async def update_push_channel(self, facility_id: str, push_channel_id: str) -> Facility:
        facility = await self.require(facility_id)
        updated = facility.model_copy(update={"push_channel_id": push_channel_id, "updated_at": utc_now()})
        await self.save(updated)
        logger.info(f"Push channel updated for facility {facility_id}")
        return updated

    async def update_details(self, facility_id: str, request: FacilityUpdate) -> Facility:
        """Edit name, location, address or district. Active alerts keep their recorded distance."""
        facility = await self.require(facility_id)
        updated = facility.model_copy(update={**request.changes(), "updated_at": utc_now()})
        await self.save(updated)
        logger.info(f"Facility {facility_id} details updated")
        return updated

    async def deactivate(self, facility_id: str) -> Facility:
        """Soft delete: the facility drops out of nearest-search."""
        facility = await self.require(facility_id)
        updated = facility.model_copy(update={"active": False, "updated_at": utc_now()})
        await self.save(updated)
        logger.info(f"Facility {facility_id} deactivated")
        return updated


class FirestoreFacilityDirectory(FacilityDirectory):
    """Facility directory backed by the `facilities` Firestore collection."""

    def __init__(self, db, earth_radius_km: float = EARTH_RADIUS_KM):
        super().__init__(earth_radius_km)
        self.collection = db.collection(FACILITIES_COLLECTION)

    def _stream(self, query) -> List[Facility]:
        try:
            return [Facility.model_validate({**doc.to_dict(), "id": doc.id}) for doc in query.stream()]
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to query facilities: {e}", exc_info=True)
            raise StoreError(f"Failed to query facilities: {e}") from e

    async def find_active_by_type(self, facility_type: ServiceType) -> List[Facility]:
        query = where_filter(self.collection, "type", "==", ServiceType(facility_type).value)
        query = where_filter(query, "active", "==", True)
        return await run_blocking(self._stream, query)

    def _get(self, facility_id: str) -> Optional[Facility]:
        try:
            doc = self.collection.document(facility_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to fetch facility {facility_id}: {e}") from e
        if not doc.exists:
            return None
        return Facility.model_validate({**doc.to_dict(), "id": doc.id})

    async def get(self, facility_id: str) -> Optional[Facility]:
        return await run_blocking(self._get, facility_id)

    async def list_all(self, facility_type: Optional[ServiceType] = None) -> List[Facility]:
        query = self.collection
        if facility_type:
            query = where_filter(query, "type", "==", ServiceType(facility_type).value)
        return await run_blocking(self._stream, query)

    def _save(self, facility: Facility) -> Facility:
        try:
            self.collection.document(facility.id).set(facility.to_document())
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to save facility {facility.id}: {e}", exc_info=True)
            raise StoreError(f"Failed to save facility: {e}") from e
        return facility

    async def save(self, facility: Facility) -> Facility:
        return await run_blocking(self._save, facility)
