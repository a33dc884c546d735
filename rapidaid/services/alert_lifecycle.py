"""
Alert Lifecycle Manager - one authoritative transition table.

DESIGN PRINCIPLES:
- Every status change goes through transition(); there is no bypass
- No transition out of a terminal state (resolved, cancelled)
- Re-entering the current state is rejected, not treated as a no-op
- All transitions are logged in status_history
- Each change is a single compare-and-set against the alert store
"""

from typing import Any, Dict, List, Optional
import logging

from rapidaid.core.exceptions import AlertNotFound, InvalidTransition
from rapidaid.models.alert import Alert, AlertStatus, StatusHistoryEntry
from rapidaid.services.alert_store import AlertStore
from rapidaid.services.engine_config import Clock, system_clock

logger = logging.getLogger(__name__)


class AlertLifecycleManager:
    """
    Status state machine:
    
        pending ──► acknowledged ──► resolved
           │              │
           ├──► resolved  └──► cancelled
           └──► cancelled
    """

    ALLOWED_TRANSITIONS: Dict[AlertStatus, List[AlertStatus]] = {
        AlertStatus.PENDING: [AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.CANCELLED],
        AlertStatus.ACKNOWLEDGED: [AlertStatus.RESOLVED, AlertStatus.CANCELLED],
        AlertStatus.RESOLVED: [],   # Terminal
        AlertStatus.CANCELLED: [],  # Terminal
    }

    def __init__(self, alert_store: AlertStore, clock: Clock = system_clock):
        self.alert_store = alert_store
        self.clock = clock

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        try:
            from_enum = AlertStatus(from_status)
            to_enum = AlertStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = AlertStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    async def transition(
        self,
        alert_id: str,
        target: AlertStatus,
        changed_by: str = "system",
        note: Optional[str] = None,
        extra_changes: Optional[Dict[str, Any]] = None,
    ) -> Alert:
        """
        Validate `target` against the table and apply it atomically.
        
        Side effects by target:
        - acknowledged: response_time = now
        - resolved: resolved_time = now
        
        Raises:
            AlertNotFound: unknown alert id
            InvalidTransition: target not allowed from the current status,
                or the status changed concurrently
        """
        target = AlertStatus(target)
        alert = await self.alert_store.find_by_id(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)

        current = alert.status
        if not self.is_valid_transition(current.value, target.value):
            allowed = self.get_allowed_transitions(current.value)
            logger.warning(f"Rejected transition for alert {alert_id}: {current.value} → {target.value}")
            raise InvalidTransition(alert_id, current.value, target.value, allowed)

        now = self.clock()
        changes: Dict[str, Any] = {
            "status": target,
            "updated_at": now,
            "status_history": [
                *alert.status_history,
                StatusHistoryEntry(
                    from_status=current.value,
                    to_status=target.value,
                    changed_by=changed_by,
                    timestamp=now,
                    note=note,
                ),
            ],
        }
        if target == AlertStatus.ACKNOWLEDGED:
            changes["response_time"] = now
        elif target == AlertStatus.RESOLVED:
            changes["resolved_time"] = now
        if extra_changes:
            changes.update(extra_changes)

        updated = await self.alert_store.update_status(alert_id, expected_status=current, changes=changes)
        logger.info(f"✅ Alert {alert_id} status: {current.value} → {target.value} (by {changed_by})")
        return updated

    async def acknowledge(self, alert_id: str, changed_by: str = "facility") -> Alert:
        return await self.transition(alert_id, AlertStatus.ACKNOWLEDGED, changed_by=changed_by)

    async def resolve(self, alert_id: str, note: Optional[str] = None, changed_by: str = "facility") -> Alert:
        """Resolve from pending or acknowledged; a note replaces the description."""
        extra = {"description": note} if note else None
        return await self.transition(
            alert_id, AlertStatus.RESOLVED, changed_by=changed_by, note=note, extra_changes=extra
        )

    async def cancel(self, alert_id: str, changed_by: str = "reporter", note: Optional[str] = None) -> Alert:
        return await self.transition(alert_id, AlertStatus.CANCELLED, changed_by=changed_by, note=note)

    async def update_status(
        self,
        alert_id: str,
        target: AlertStatus,
        changed_by: str = "facility",
        note: Optional[str] = None,
    ) -> Alert:
        """Generic setter for dashboards. Same guard as the named transitions."""
        return await self.transition(alert_id, target, changed_by=changed_by, note=note)
