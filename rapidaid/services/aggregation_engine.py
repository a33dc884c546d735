"""
Aggregation Engine - merges repeat reports of the same incident.

MERGE RULE:
A new report joins an existing alert when the alert
- has the same type
- is active (pending or acknowledged)
- was created within the last `window_seconds`
- lies within `radius_meters` of the report

Candidates are scanned in store order and the FIRST one inside the
radius wins, not necessarily the nearest.
"""

from typing import List
import logging

from rapidaid.core.exceptions import InvalidTransition
from rapidaid.models.alert import Alert, IncomingReport, MergeResult
from rapidaid.services.alert_store import AlertStore
from rapidaid.services.engine_config import Clock, EngineConfig, system_clock
from rapidaid.services.geo import haversine_meters

logger = logging.getLogger(__name__)


class AggregationEngine:

    def __init__(self, alert_store: AlertStore, config: EngineConfig, clock: Clock = system_clock):
        self.alert_store = alert_store
        self.config = config
        self.clock = clock

    async def find_candidates(self, report: IncomingReport) -> List[Alert]:
        """Active same-type alerts inside the window and radius, in store order."""
        time_threshold = self.clock() - self.config.window
        recent = await self.alert_store.find_active_by_type_since(report.type, time_threshold)

        candidates = []
        for alert in recent:
            distance = haversine_meters(report.location, alert.location, self.config.earth_radius_km)
            if distance <= self.config.radius_meters:
                logger.info(f"Nearby {report.type.value} alert {alert.id} found ({distance:.2f} m)")
                candidates.append(alert)
        return candidates

    async def try_aggregate(self, report: IncomingReport) -> MergeResult:
        """
        Merge `report` into a recent nearby alert if one exists.
        
        An alert that closes between the scan and the append is skipped
        and the next qualifying candidate is tried.
        
        Returns:
            MergeResult(merged=True, alert=...) on merge,
            MergeResult(merged=False) when the caller must dispatch
        
        Raises:
            DuplicateReporter: the user already reported the matched alert
            StoreError: persistence failure
        """
        reporter = report.to_reporter(reported_at=self.clock())

        for candidate in await self.find_candidates(report):
            try:
                merged = await self.alert_store.append_reporter(candidate.id, reporter)
            except InvalidTransition:
                logger.info(f"Alert {candidate.id} closed before merge, trying next candidate")
                continue

            logger.info(f"✅ Report from {report.user_id} aggregated into alert {merged.id} (count: {merged.report_count})")
            return MergeResult(merged=True, alert=merged)

        logger.info(f"No nearby {report.type.value} alert found, new incident required")
        return MergeResult(merged=False)
