"""
Alert Store - persistence collaborator for alert records.

The store exclusively owns Alert records. Every mutation is a single
atomic operation against the backend (a Firestore transaction here), so
concurrent acknowledge/resolve/aggregate calls on the same alert cannot
lose each other's updates.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from rapidaid.core.exceptions import AlertNotFound, DuplicateReporter, InvalidTransition, StoreError
from rapidaid.models.alert import ACTIVE_STATUSES, Alert, AlertStatus, Reporter
from rapidaid.models.base import ServiceType
from rapidaid.utils.firestore_helpers import ensure_utc, run_blocking, where_filter

logger = logging.getLogger(__name__)

ALERTS_COLLECTION = "alerts"


class AlertStore(ABC):
    """
    Async contract for alert persistence.

    Implementations raise StoreError for backend failures and never
    return partially-written alerts.
    """

    @abstractmethod
    async def find_active_by_type_since(self, alert_type: ServiceType, since: datetime) -> List[Alert]:
        """Alerts of `alert_type` with an active status created at or after `since`."""
        raise NotImplementedError

    @abstractmethod
    async def save(self, alert: Alert) -> Alert:
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, alert_id: str) -> Optional[Alert]:
        raise NotImplementedError

    @abstractmethod
    async def append_reporter(self, alert_id: str, reporter: Reporter) -> Alert:
        """
        Atomically append a reporter to an active alert.

        Raises:
            AlertNotFound: unknown alert id
            DuplicateReporter: the user is already a reporter (no mutation)
            InvalidTransition: the alert left the active set meanwhile
        """
        raise NotImplementedError

    @abstractmethod
    async def update_status(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        changes: Dict[str, Any],
    ) -> Alert:
        """
        Compare-and-set: apply `changes` only if the stored status still
        equals `expected_status`.

        Raises:
            AlertNotFound: unknown alert id
            InvalidTransition: the status moved under us
        """
        raise NotImplementedError

    @abstractmethod
    async def list_alerts(self, alert_type: Optional[ServiceType] = None, limit: int = 100) -> List[Alert]:
        """Root alerts, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_facility(
        self,
        facility_id: str,
        alert_type: Optional[ServiceType] = None,
        limit: int = 50,
    ) -> List[Alert]:
        raise NotImplementedError

    @abstractmethod
    async def list_by_user(self, user_id: str, limit: int = 50) -> List[Alert]:
        """Alerts created by `user_id`, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def list_all(self) -> List[Alert]:
        """Every alert; used for statistics."""
        raise NotImplementedError


def apply_reporter(alert: Alert, reporter: Reporter) -> Alert:
    """Shared append rule for every store implementation."""
    if not alert.is_active:
        raise InvalidTransition(alert.id, alert.status.value, "aggregate")
    alert.add_reporter(reporter)
    alert.updated_at = reporter.reported_at
    return alert


def apply_status_change(alert: Alert, expected_status: AlertStatus, changes: Dict[str, Any]) -> Alert:
    """Shared compare-and-set rule for every store implementation."""
    if alert.status != expected_status:
        raise InvalidTransition(alert.id, alert.status.value, str(changes.get("status", "")))
    return alert.model_copy(update=changes)


def newest_first(alerts: Iterable[Alert], limit: int) -> List[Alert]:
    return sorted(alerts, key=lambda a: a.created_at, reverse=True)[:limit]


class FirestoreAlertStore(AlertStore):
    """
    Alert store backed by the `alerts` Firestore collection.

    The client is synchronous; every call runs in the thread pool via
    run_blocking so a slow Firestore round trip does not stall other requests.
    """

    def __init__(self, db):
        self.db = db
        self.collection = db.collection(ALERTS_COLLECTION)

    def _stream(self, query) -> List[Alert]:
        try:
            return [Alert.from_document(doc.to_dict(), doc.id) for doc in query.stream()]
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to query alerts: {e}", exc_info=True)
            raise StoreError(f"Failed to query alerts: {e}") from e

    async def find_active_by_type_since(self, alert_type: ServiceType, since: datetime) -> List[Alert]:
        query = where_filter(self.collection, "type", "==", ServiceType(alert_type).value)
        query = where_filter(query, "status", "in", [s.value for s in ACTIVE_STATUSES])
        query = where_filter(query, "created_at", ">=", ensure_utc(since))
        return await run_blocking(self._stream, query)

    def _save(self, alert: Alert) -> Alert:
        try:
            self.collection.document(alert.id).set(alert.to_document())
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to save alert {alert.id} to Firestore: {e}", exc_info=True)
            raise StoreError(f"Failed to save alert: {e}") from e
        logger.info(f"Alert saved to Firestore: {alert.id}")
        return alert

    async def save(self, alert: Alert) -> Alert:
        return await run_blocking(self._save, alert)

    def _find_by_id(self, alert_id: str) -> Optional[Alert]:
        try:
            doc = self.collection.document(alert_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to fetch alert {alert_id}: {e}") from e
        if not doc.exists:
            return None
        return Alert.from_document(doc.to_dict(), doc.id)

    async def find_by_id(self, alert_id: str) -> Optional[Alert]:
        return await run_blocking(self._find_by_id, alert_id)

    def _read_in_transaction(self, transaction, doc_ref, alert_id: str) -> Alert:
        snapshot = doc_ref.get(transaction=transaction)
        if not snapshot.exists:
            raise AlertNotFound(alert_id)
        return Alert.from_document(snapshot.to_dict(), snapshot.id)

    def _append_reporter(self, alert_id: str, reporter: Reporter) -> Alert:
        doc_ref = self.collection.document(alert_id)

        @firestore.transactional
        def _append(transaction) -> Alert:
            alert = apply_reporter(self._read_in_transaction(transaction, doc_ref, alert_id), reporter)
            transaction.update(doc_ref, {
                "reporters": [r.model_dump(mode="python") for r in alert.reporters],
                "report_count": alert.report_count,
                "updated_at": alert.updated_at,
            })
            return alert

        try:
            return _append(self.db.transaction())
        except (AlertNotFound, DuplicateReporter, InvalidTransition):
            raise
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to append reporter to alert {alert_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to append reporter: {e}") from e

    async def append_reporter(self, alert_id: str, reporter: Reporter) -> Alert:
        return await run_blocking(self._append_reporter, alert_id, reporter)

    def _update_status(self, alert_id: str, expected_status: AlertStatus, changes: Dict[str, Any]) -> Alert:
        doc_ref = self.collection.document(alert_id)

        @firestore.transactional
        def _update(transaction) -> Alert:
            current = self._read_in_transaction(transaction, doc_ref, alert_id)
            updated = apply_status_change(current, expected_status, changes)
            document = updated.to_document()
            transaction.update(doc_ref, {key: document[key] for key in changes})
            return updated

        try:
            return _update(self.db.transaction())
        except (AlertNotFound, InvalidTransition):
            raise
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to update status of alert {alert_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to update alert status: {e}") from e

    async def update_status(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        changes: Dict[str, Any],
    ) -> Alert:
        return await run_blocking(self._update_status, alert_id, expected_status, changes)

    def _newest(self, query, limit: int):
        return query.order_by("created_at", direction=firestore.Query.DESCENDING).limit(limit)

    async def list_alerts(self, alert_type: Optional[ServiceType] = None, limit: int = 100) -> List[Alert]:
        query = where_filter(self.collection, "is_aggregated", "==", False)
        if alert_type:
            query = where_filter(query, "type", "==", ServiceType(alert_type).value)
        return await run_blocking(self._stream, self._newest(query, limit))

    async def list_by_facility(
        self,
        facility_id: str,
        alert_type: Optional[ServiceType] = None,
        limit: int = 50,
    ) -> List[Alert]:
        query = where_filter(self.collection, "facility_id", "==", facility_id)
        query = where_filter(query, "is_aggregated", "==", False)
        if alert_type:
            query = where_filter(query, "type", "==", ServiceType(alert_type).value)
        return await run_blocking(self._stream, self._newest(query, limit))

    async def list_by_user(self, user_id: str, limit: int = 50) -> List[Alert]:
        query = where_filter(self.collection, "user_id", "==", user_id)
        return await run_blocking(self._stream, self._newest(query, limit))

    async def list_all(self) -> List[Alert]:
        return await run_blocking(self._stream, self.collection)
