import pytest
from pydantic import ValidationError

from rapidaid.core.exceptions import DuplicateReporter, ReportValidationError
from rapidaid.models.alert import (
    ANONYMOUS_USER,
    Alert,
    AlertPriority,
    IncomingReport,
    Reporter,
    priority_for,
)
from rapidaid.models.base import ServiceType
from rapidaid.services.alert_service import parse_report

from conftest import ORIGIN


def test_priority_derived_from_type():
    assert priority_for(ServiceType.POLICE) == AlertPriority.HIGH
    assert priority_for(ServiceType.FIRE) == AlertPriority.CRITICAL
    assert priority_for(ServiceType.AMBULANCE) == AlertPriority.CRITICAL


def test_report_count_tracks_reporters():
    alert = Alert(
        type=ServiceType.FIRE,
        location=ORIGIN,
        reporters=[Reporter(user_id="a", location=ORIGIN)],
        report_count=7,
    )
    assert alert.report_count == 1

    alert.add_reporter(Reporter(user_id="b", location=ORIGIN))
    assert alert.report_count == 2


def test_add_reporter_rejects_same_user_without_mutation():
    alert = Alert(type=ServiceType.FIRE, location=ORIGIN, reporters=[Reporter(user_id="a", location=ORIGIN)])
    with pytest.raises(DuplicateReporter):
        alert.add_reporter(Reporter(user_id="a", location=ORIGIN))
    assert alert.report_count == 1
    assert len(alert.reporters) == 1


def test_reporter_is_immutable():
    reporter = Reporter(user_id="a", location=ORIGIN)
    with pytest.raises(ValidationError):
        reporter.user_id = "b"


def test_document_round_trip_keeps_enum_values_plain():
    alert = Alert(type=ServiceType.AMBULANCE, location=ORIGIN, reporters=[Reporter(user_id="a", location=ORIGIN)])
    doc = alert.to_document()
    assert doc["type"] == "ambulance"
    assert doc["status"] == "pending"
    assert Alert.from_document(doc, alert.id) == alert


def test_missing_user_becomes_anonymous():
    report = IncomingReport(user_id=None, type=ServiceType.POLICE, location=ORIGIN)
    assert report.user_id == ANONYMOUS_USER
    assert IncomingReport(user_id="  ", type=ServiceType.POLICE, location=ORIGIN).user_id == ANONYMOUS_USER


def test_parse_report_rejects_bad_coordinate():
    with pytest.raises(ReportValidationError):
        parse_report({"type": "fire", "location": {"lat": 123.0, "lng": 10.0}})


def test_parse_report_rejects_unknown_type():
    with pytest.raises(ReportValidationError):
        parse_report({"type": "coast_guard", "location": {"lat": 1.0, "lng": 1.0}})


def test_parse_report_requires_location():
    with pytest.raises(ReportValidationError):
        parse_report({"type": "fire"})
