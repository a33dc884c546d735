"""
Alert service - orchestrates report intake for the dispatch core.

Flow for every incoming report:
1. Aggregation Engine looks for a recent nearby alert of the same type
2. Found: the report is appended as a reporter (no dispatch)
3. Not found: Dispatch Engine binds the nearest facility, persists the
   alert and pushes a notification

CONCURRENCY NOTE:
Steps 1-3 are read-then-write. With SERIALIZE_AGGREGATION the decision
runs under a per-type asyncio.Lock so concurrent reports in this process
converge on one alert. Separate processes can still race and create two
alerts for one incident.
"""

import asyncio
from collections import Counter
from typing import Dict, List, Optional
import logging

from pydantic import ValidationError

from rapidaid.core.exceptions import AlertNotFound, DuplicateReporter, ReportValidationError
from rapidaid.core.settings import Settings, settings as default_settings
from rapidaid.models.alert import (
    Alert,
    AlertStatus,
    DispatchSummary,
    IncomingReport,
    SubmissionOutcome,
    SubmissionResult,
)
from rapidaid.models.base import ServiceType
from rapidaid.services.aggregation_engine import AggregationEngine
from rapidaid.services.alert_lifecycle import AlertLifecycleManager
from rapidaid.services.alert_store import AlertStore
from rapidaid.services.dispatch_engine import DispatchEngine
from rapidaid.services.engine_config import Clock, EngineConfig, system_clock
from rapidaid.services.facility_directory import FacilityDirectory
from rapidaid.services.notifier import Notifier

logger = logging.getLogger(__name__)


def parse_report(data: dict) -> IncomingReport:
    """
    Boundary validation for programmatic callers.
    
    Raises:
        ReportValidationError: missing/invalid type or coordinate
    """
    try:
        return IncomingReport.model_validate(data)
    except ValidationError as e:
        raise ReportValidationError(str(e)) from e


class AlertService:

    def __init__(
        self,
        alert_store: AlertStore,
        facility_directory: FacilityDirectory,
        notifier: Notifier,
        config: Optional[EngineConfig] = None,
        clock: Clock = system_clock,
        serialize: bool = True,
    ):
        self.alert_store = alert_store
        self.facility_directory = facility_directory
        self.config = config or EngineConfig()
        self.aggregation = AggregationEngine(alert_store, self.config, clock)
        self.dispatcher = DispatchEngine(alert_store, facility_directory, notifier, self.config, clock)
        self.lifecycle = AlertLifecycleManager(alert_store, clock)
        self.serialize = serialize
        self._locks: Dict[ServiceType, asyncio.Lock] = {t: asyncio.Lock() for t in ServiceType}

    async def submit_report(self, report: IncomingReport) -> SubmissionResult:
        """
        Merge the report into an existing incident or dispatch a new one.
        
        Raises:
            NoFacilityAvailable: nothing to dispatch to (no alert persisted)
            StoreError: persistence failure
        """
        logger.info(f"Received {report.type.value} report from {report.user_id} at ({report.location.lat}, {report.location.lng})")
        if self.serialize:
            async with self._locks[report.type]:
                return await self._merge_or_dispatch(report)
        return await self._merge_or_dispatch(report)

    async def _merge_or_dispatch(self, report: IncomingReport) -> SubmissionResult:
        try:
            merge = await self.aggregation.try_aggregate(report)
        except DuplicateReporter as e:
            logger.warning(f"Duplicate report ignored: {e}")
            alert = await self.get_alert(e.alert_id)
            return SubmissionResult(
                outcome=SubmissionOutcome.DUPLICATE,
                merged=False,
                duplicate=True,
                alert=alert,
                report_count=alert.report_count,
                message="You have already reported this incident",
            )

        if merge.merged:
            return SubmissionResult(
                outcome=SubmissionOutcome.MERGED,
                merged=True,
                alert=merge.alert,
                report_count=merge.alert.report_count,
                message="Your report has been added to an existing incident",
            )

        result = await self.dispatcher.dispatch(report, report.type)
        return SubmissionResult(
            outcome=SubmissionOutcome.CREATED,
            merged=False,
            alert=result.alert,
            report_count=result.alert.report_count,
            dispatch=DispatchSummary(
                facility_id=result.facility_id,
                facility_name=result.facility_name,
                distance_km=result.distance_km,
                notification_sent=result.notification_sent,
            ),
            message=f"{report.type.value.capitalize()} alert sent successfully",
        )

    async def get_alert(self, alert_id: str) -> Alert:
        alert = await self.alert_store.find_by_id(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert

    async def list_alerts(self, alert_type: Optional[ServiceType] = None, limit: int = 100) -> List[Alert]:
        return await self.alert_store.list_alerts(alert_type, limit)

    async def list_facility_alerts(
        self,
        facility_id: str,
        alert_type: Optional[ServiceType] = None,
        limit: int = 50,
    ) -> List[Alert]:
        await self.facility_directory.require(facility_id)
        return await self.alert_store.list_by_facility(facility_id, alert_type, limit)

    async def list_user_alerts(self, user_id: str, limit: int = 50) -> List[Alert]:
        """Incidents a user created, newest first."""
        return await self.alert_store.list_by_user(user_id, limit)

    async def alert_stats(self) -> dict:
        """Counts by status and type, plus mean acknowledge latency."""
        alerts = await self.alert_store.list_all()
        by_status = Counter(a.status.value for a in alerts)
        by_type = Counter(a.type.value for a in alerts)

        response_seconds = [
            (a.response_time - a.created_at).total_seconds()
            for a in alerts
            if a.response_time is not None
        ]
        avg_response = sum(response_seconds) / len(response_seconds) if response_seconds else None

        return {
            "total": len(alerts),
            "by_status": {status.value: by_status.get(status.value, 0) for status in AlertStatus},
            "by_type": {t.value: by_type.get(t.value, 0) for t in ServiceType},
            "total_reports": sum(a.report_count for a in alerts),
            "avg_response_seconds": round(avg_response, 1) if avg_response is not None else None,
        }


def build_alert_service(config: Settings = default_settings) -> AlertService:
    """
    Wire stores and notifier from settings:
    - USE_MOCK_DB: in-process stores with a simulated notifier
    - otherwise Firestore stores, FCM push unless PUSH_ENABLED is false
    """
    from rapidaid.config.firebase import initialize_firestore
    from rapidaid.services.alert_store import FirestoreAlertStore
    from rapidaid.services.facility_directory import FirestoreFacilityDirectory
    from rapidaid.services.memory_store import InMemoryAlertStore, InMemoryFacilityDirectory
    from rapidaid.services.notifier import FCMNotifier, LoggingNotifier

    engine_config = EngineConfig.from_settings(config)

    if config.USE_MOCK_DB:
        logger.info("Alert service using in-process stores")
        alert_store = InMemoryAlertStore()
        facility_directory = InMemoryFacilityDirectory(earth_radius_km=engine_config.earth_radius_km)
        notifier = LoggingNotifier()
    else:
        db = initialize_firestore()
        alert_store = FirestoreAlertStore(db)
        facility_directory = FirestoreFacilityDirectory(db, earth_radius_km=engine_config.earth_radius_km)
        notifier = FCMNotifier(android_channel_id=config.ANDROID_CHANNEL_ID) if config.PUSH_ENABLED else LoggingNotifier()

    return AlertService(
        alert_store,
        facility_directory,
        notifier,
        config=engine_config,
        serialize=config.SERIALIZE_AGGREGATION,
    )


# Global service instance (singleton pattern)
_alert_service: Optional[AlertService] = None


def get_alert_service() -> AlertService:
    """
    Get or create AlertService singleton instance.
    
    Returns:
        AlertService: The global alert service instance
    """
    global _alert_service
    if _alert_service is None:
        _alert_service = build_alert_service()
    return _alert_service
