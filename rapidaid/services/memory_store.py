"""
In-process stores for USE_MOCK_DB mode and tests.

Records are copied on the way in and out so callers cannot mutate
stored state behind the store's back. A single asyncio.Lock makes each
mutation atomic with respect to other coroutines.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from rapidaid.core.exceptions import AlertNotFound
from rapidaid.models.alert import Alert, AlertStatus, Reporter
from rapidaid.models.base import ServiceType
from rapidaid.models.facility import Facility
from rapidaid.services.alert_store import AlertStore, apply_reporter, apply_status_change, newest_first
from rapidaid.services.facility_directory import FacilityDirectory
from rapidaid.services.geo import EARTH_RADIUS_KM


class InMemoryAlertStore(AlertStore):

    def __init__(self):
        self._alerts: Dict[str, Alert] = {}
        self._lock = asyncio.Lock()

    async def find_active_by_type_since(self, alert_type: ServiceType, since: datetime) -> List[Alert]:
        return [
            alert.model_copy(deep=True)
            for alert in self._alerts.values()
            if alert.type == alert_type and alert.is_active and alert.created_at >= since
        ]

    async def save(self, alert: Alert) -> Alert:
        async with self._lock:
            self._alerts[alert.id] = alert.model_copy(deep=True)
        return alert

    async def find_by_id(self, alert_id: str) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        return alert.model_copy(deep=True) if alert else None

    async def append_reporter(self, alert_id: str, reporter: Reporter) -> Alert:
        async with self._lock:
            stored = self._alerts.get(alert_id)
            if stored is None:
                raise AlertNotFound(alert_id)
            updated = apply_reporter(stored.model_copy(deep=True), reporter)
            self._alerts[alert_id] = updated
            return updated.model_copy(deep=True)

    async def update_status(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        changes: Dict[str, Any],
    ) -> Alert:
        async with self._lock:
            stored = self._alerts.get(alert_id)
            if stored is None:
                raise AlertNotFound(alert_id)
            updated = apply_status_change(stored.model_copy(deep=True), expected_status, changes)
            self._alerts[alert_id] = updated
            return updated.model_copy(deep=True)

    async def list_alerts(self, alert_type: Optional[ServiceType] = None, limit: int = 100) -> List[Alert]:
        alerts = [
            a for a in self._alerts.values()
            if not a.is_aggregated and (alert_type is None or a.type == alert_type)
        ]
        return [a.model_copy(deep=True) for a in newest_first(alerts, limit)]

    async def list_by_facility(
        self,
        facility_id: str,
        alert_type: Optional[ServiceType] = None,
        limit: int = 50,
    ) -> List[Alert]:
        alerts = [
            a for a in self._alerts.values()
            if a.facility_id == facility_id and not a.is_aggregated
            and (alert_type is None or a.type == alert_type)
        ]
        return [a.model_copy(deep=True) for a in newest_first(alerts, limit)]

    async def list_by_user(self, user_id: str, limit: int = 50) -> List[Alert]:
        alerts = [a for a in self._alerts.values() if a.user_id == user_id]
        return [a.model_copy(deep=True) for a in newest_first(alerts, limit)]

    async def list_all(self) -> List[Alert]:
        return [a.model_copy(deep=True) for a in self._alerts.values()]


class InMemoryFacilityDirectory(FacilityDirectory):

    def __init__(self, facilities: Optional[List[Facility]] = None, earth_radius_km: float = EARTH_RADIUS_KM):
        super().__init__(earth_radius_km)
        # dict preserves insertion order, which is the tie-break order for nearest-search
        self._facilities: Dict[str, Facility] = {}
        for facility in facilities or []:
            self._facilities[facility.id] = facility.model_copy(deep=True)

    async def find_active_by_type(self, facility_type: ServiceType) -> List[Facility]:
        return [
            f.model_copy(deep=True)
            for f in self._facilities.values()
            if f.type == facility_type and f.active
        ]

    async def get(self, facility_id: str) -> Optional[Facility]:
        facility = self._facilities.get(facility_id)
        return facility.model_copy(deep=True) if facility else None

    async def list_all(self, facility_type: Optional[ServiceType] = None) -> List[Facility]:
        return [
            f.model_copy(deep=True)
            for f in self._facilities.values()
            if facility_type is None or f.type == facility_type
        ]

    async def save(self, facility: Facility) -> Facility:
        self._facilities[facility.id] = facility.model_copy(deep=True)
        return facility
