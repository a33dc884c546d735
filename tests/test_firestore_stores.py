"""
Firestore-backed stores against a mocked client. Covers the transactional
append, the status compare-and-set and error wrapping.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions

from rapidaid.core.exceptions import AlertNotFound, DuplicateReporter, InvalidTransition, StoreError
from rapidaid.models.alert import Alert, AlertStatus, Reporter
from rapidaid.models.base import ServiceType
from rapidaid.services.alert_store import FirestoreAlertStore
from rapidaid.services.facility_directory import FirestoreFacilityDirectory

from conftest import ORIGIN, make_facility

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def _mock_db():
    db = MagicMock()
    collection = db.collection.return_value
    # Chained query builders return the same mock so stream() is easy to stub
    collection.where.return_value = collection
    collection.order_by.return_value = collection
    collection.limit.return_value = collection
    transaction = db.transaction.return_value
    transaction._max_attempts = 1
    transaction._read_only = False
    return db


def _doc(data, doc_id, exists=True):
    snapshot = MagicMock()
    snapshot.exists = exists
    snapshot.id = doc_id
    snapshot.to_dict.return_value = data
    return snapshot


def _alert(status=AlertStatus.PENDING):
    return Alert(
        type=ServiceType.FIRE,
        status=status,
        location=ORIGIN,
        user_id="user-1",
        reporters=[Reporter(user_id="user-1", reported_at=NOW, location=ORIGIN)],
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def db():
    return _mock_db()


@pytest.fixture
def doc_ref(db):
    return db.collection.return_value.document.return_value


@pytest.fixture
def transaction(db):
    return db.transaction.return_value


def _stored(doc_ref, alert):
    doc_ref.get.return_value = _doc(alert.to_document(), alert.id)


class TestAppendReporter:

    def test_appends_inside_transaction(self, db, doc_ref, transaction):
        alert = _alert()
        _stored(doc_ref, alert)
        store = FirestoreAlertStore(db)

        updated = asyncio.run(store.append_reporter(alert.id, Reporter(user_id="user-2", reported_at=NOW, location=ORIGIN)))

        assert updated.report_count == 2
        doc_ref.get.assert_called_once_with(transaction=transaction)
        written_ref, fields = transaction.update.call_args.args
        assert written_ref is doc_ref
        assert set(fields) == {"reporters", "report_count", "updated_at"}
        assert fields["report_count"] == 2

    def test_duplicate_reporter_writes_nothing(self, db, doc_ref, transaction):
        alert = _alert()
        _stored(doc_ref, alert)

        with pytest.raises(DuplicateReporter):
            asyncio.run(FirestoreAlertStore(db).append_reporter(
                alert.id, Reporter(user_id="user-1", reported_at=NOW, location=ORIGIN)
            ))

        transaction.update.assert_not_called()

    def test_closed_alert_is_rejected(self, db, doc_ref, transaction):
        alert = _alert(AlertStatus.RESOLVED)
        _stored(doc_ref, alert)

        with pytest.raises(InvalidTransition):
            asyncio.run(FirestoreAlertStore(db).append_reporter(
                alert.id, Reporter(user_id="user-2", reported_at=NOW, location=ORIGIN)
            ))

        transaction.update.assert_not_called()

    def test_missing_alert(self, db, doc_ref):
        doc_ref.get.return_value = _doc(None, "gone", exists=False)

        with pytest.raises(AlertNotFound):
            asyncio.run(FirestoreAlertStore(db).append_reporter(
                "gone", Reporter(user_id="user-2", reported_at=NOW, location=ORIGIN)
            ))

    def test_backend_failure_becomes_store_error(self, db, doc_ref):
        doc_ref.get.side_effect = gcp_exceptions.ServiceUnavailable("firestore down")

        with pytest.raises(StoreError):
            asyncio.run(FirestoreAlertStore(db).append_reporter(
                "a1", Reporter(user_id="user-2", reported_at=NOW, location=ORIGIN)
            ))


class TestUpdateStatus:

    def test_writes_only_changed_keys(self, db, doc_ref, transaction):
        alert = _alert()
        _stored(doc_ref, alert)
        changes = {"status": AlertStatus.ACKNOWLEDGED, "response_time": NOW}

        updated = asyncio.run(FirestoreAlertStore(db).update_status(alert.id, AlertStatus.PENDING, changes))

        assert updated.status == AlertStatus.ACKNOWLEDGED
        _, fields = transaction.update.call_args.args
        assert set(fields) == {"status", "response_time"}
        assert fields["status"] == "acknowledged"

    def test_moved_status_is_rejected(self, db, doc_ref, transaction):
        alert = _alert(AlertStatus.ACKNOWLEDGED)
        _stored(doc_ref, alert)

        with pytest.raises(InvalidTransition) as excinfo:
            asyncio.run(FirestoreAlertStore(db).update_status(
                alert.id, AlertStatus.PENDING, {"status": AlertStatus.ACKNOWLEDGED}
            ))

        assert excinfo.value.from_status == "acknowledged"
        transaction.update.assert_not_called()

    def test_backend_failure_becomes_store_error(self, db, doc_ref):
        doc_ref.get.side_effect = gcp_exceptions.DeadlineExceeded("timeout")

        with pytest.raises(StoreError):
            asyncio.run(FirestoreAlertStore(db).update_status(
                "a1", AlertStatus.PENDING, {"status": AlertStatus.CANCELLED}
            ))


class TestAlertQueries:

    def test_recent_active_query(self, db):
        alert = _alert()
        collection = db.collection.return_value
        collection.stream.return_value = [_doc(alert.to_document(), alert.id)]

        found = asyncio.run(FirestoreAlertStore(db).find_active_by_type_since(ServiceType.FIRE, NOW))

        assert [a.id for a in found] == [alert.id]
        filters = [c.args for c in collection.where.call_args_list]
        assert ("type", "==", "fire") in filters
        assert ("status", "in", ["pending", "acknowledged"]) in filters
        assert ("created_at", ">=", NOW) in filters

    def test_user_history_query(self, db):
        collection = db.collection.return_value
        collection.stream.return_value = []

        assert asyncio.run(FirestoreAlertStore(db).list_by_user("user-7", limit=5)) == []
        assert collection.where.call_args.args == ("user_id", "==", "user-7")
        collection.limit.assert_called_with(5)

    def test_query_failure_becomes_store_error(self, db):
        db.collection.return_value.stream.side_effect = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(StoreError):
            asyncio.run(FirestoreAlertStore(db).list_all())

    def test_save_failure_becomes_store_error(self, db, doc_ref):
        doc_ref.set.side_effect = gcp_exceptions.PermissionDenied("no access")

        with pytest.raises(StoreError):
            asyncio.run(FirestoreAlertStore(db).save(_alert()))

    def test_find_by_id_missing(self, db, doc_ref):
        doc_ref.get.return_value = _doc(None, "gone", exists=False)
        assert asyncio.run(FirestoreAlertStore(db).find_by_id("gone")) is None


class TestFirestoreFacilityDirectory:

    def test_nearest_over_active_query(self, db):
        near = make_facility("Near", km_north=1.0)
        far = make_facility("Far", km_north=4.0)
        collection = db.collection.return_value
        collection.stream.return_value = [_doc(far.to_document(), far.id), _doc(near.to_document(), near.id)]

        ranked = asyncio.run(FirestoreFacilityDirectory(db).find_nearest(ServiceType.FIRE, ORIGIN))

        assert ranked[0][0].id == near.id
        filters = [c.args for c in collection.where.call_args_list]
        assert filters == [("type", "==", "fire"), ("active", "==", True)]

    def test_get_missing(self, db, doc_ref):
        doc_ref.get.return_value = _doc(None, "gone", exists=False)
        assert asyncio.run(FirestoreFacilityDirectory(db).get("gone")) is None

    def test_save_writes_document(self, db, doc_ref):
        facility = make_facility("Station")

        asyncio.run(FirestoreFacilityDirectory(db).save(facility))

        db.collection.return_value.document.assert_called_with(facility.id)
        assert doc_ref.set.call_args.args[0]["type"] == "fire"

    def test_query_failure_becomes_store_error(self, db):
        db.collection.return_value.stream.side_effect = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(StoreError):
            asyncio.run(FirestoreFacilityDirectory(db).find_active_by_type(ServiceType.POLICE))
