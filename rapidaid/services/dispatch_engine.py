"""
Dispatch Engine - binds a new incident to the nearest active facility.

FAILURE CONTRACT:
- No active facility of the type: NoFacilityAvailable, nothing persisted
- Store failure: StoreError propagates, nothing is reported as created
- Push failure: logged, alert stays persisted, notification_sent = False
"""

import logging

from rapidaid.core.exceptions import InvalidTransition, NoFacilityAvailable, StoreError
from rapidaid.models.alert import (
    DEFAULT_DESCRIPTIONS,
    Alert,
    AlertStatus,
    DispatchResult,
    IncomingReport,
    StatusHistoryEntry,
    priority_for,
)
from rapidaid.models.base import ServiceType
from rapidaid.services.alert_store import AlertStore
from rapidaid.services.engine_config import Clock, EngineConfig, system_clock
from rapidaid.services.facility_directory import FacilityDirectory
from rapidaid.services.notifier import DispatchNotification, Notifier

logger = logging.getLogger(__name__)


class DispatchEngine:

    def __init__(
        self,
        alert_store: AlertStore,
        facility_directory: FacilityDirectory,
        notifier: Notifier,
        config: EngineConfig,
        clock: Clock = system_clock,
    ):
        self.alert_store = alert_store
        self.facility_directory = facility_directory
        self.notifier = notifier
        self.config = config
        self.clock = clock

    async def dispatch(self, report: IncomingReport, facility_type: ServiceType) -> DispatchResult:
        """
        Create a new alert for `report` and notify the nearest facility.
        
        Flow:
        1. Rank active facilities of `facility_type` by distance
        2. Build the alert with the creator as its single reporter
        3. Persist (MUST succeed)
        4. Push to the facility (best-effort)
        """
        facility_type = ServiceType(facility_type)
        nearest = await self.facility_directory.find_nearest(facility_type, report.location, limit=1)
        if not nearest:
            logger.warning(f"No active {facility_type.value} facilities found")
            raise NoFacilityAvailable(facility_type.value)

        facility, distance_km = nearest[0]
        logger.info(f"Nearest {facility_type.value} facility: {facility.name} ({distance_km:.2f} km)")

        now = self.clock()
        alert = Alert(
            type=facility_type,
            status=AlertStatus.PENDING,
            priority=priority_for(facility_type),
            location=report.location,
            user_id=report.user_id,
            user_phone=report.user_phone,
            description=report.description or DEFAULT_DESCRIPTIONS[facility_type],
            facility_id=facility.id,
            facility_name=facility.name,
            distance_km=distance_km,
            reporters=[report.to_reporter(reported_at=now)],
            status_history=[StatusHistoryEntry(
                from_status="",
                to_status=AlertStatus.PENDING.value,
                changed_by="system",
                timestamp=now,
                note="Alert created",
            )],
            created_at=now,
            updated_at=now,
        )

        await self.alert_store.save(alert)

        notification_sent = await self._notify(alert, facility.push_channel_id)
        if notification_sent:
            alert = await self._mark_notified(alert)

        return DispatchResult(
            alert=alert,
            facility_id=facility.id,
            facility_name=facility.name,
            distance_km=distance_km,
            notification_sent=notification_sent,
        )

    async def _notify(self, alert: Alert, push_channel_id) -> bool:
        if not push_channel_id:
            logger.info(f"Facility {alert.facility_id} has no push channel, alert {alert.id} not pushed")
            return False

        notification = DispatchNotification(
            alert_id=alert.id,
            type=alert.type,
            lat=alert.location.lat,
            lng=alert.location.lng,
            distance_km=alert.distance_km,
            user_phone=alert.user_phone,
        )
        try:
            return await self.notifier.send(push_channel_id, notification)
        except Exception as e:
            # Notifiers must not raise; guard anyway so dispatch never fails on push
            logger.error(f"⚠️ Notifier raised for alert {alert.id}: {e}", exc_info=True)
            return False

    async def _mark_notified(self, alert: Alert) -> Alert:
        try:
            return await self.alert_store.update_status(
                alert.id,
                expected_status=alert.status,
                changes={"notification_sent": True},
            )
        except (InvalidTransition, StoreError) as e:
            # The push went out; failing to record it must not undo the dispatch
            logger.warning(f"Failed to record notification for alert {alert.id}: {e}")
            return alert.model_copy(update={"notification_sent": True})
