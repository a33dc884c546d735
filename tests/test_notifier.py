import asyncio

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from rapidaid.models.base import ServiceType
from rapidaid.services.notifier import (
    DispatchNotification,
    FCMNotifier,
    LoggingNotifier,
    build_title_and_body,
)


def _notification(alert_type=ServiceType.FIRE):
    return DispatchNotification(
        alert_id="alert-1",
        type=alert_type,
        lat=22.5726,
        lng=88.3639,
        distance_km=2.5,
        user_phone=None,
    )


def test_data_payload_is_all_strings():
    data = _notification().data()

    assert data == {
        "alert_id": "alert-1",
        "type": "fire",
        "lat": "22.5726",
        "lng": "88.3639",
        "user_phone": "",
        "distance": "2.5",
    }


@pytest.mark.parametrize(
    "alert_type, title",
    [
        (ServiceType.FIRE, "🔥 FIRE EMERGENCY"),
        (ServiceType.AMBULANCE, "🚑 MEDICAL EMERGENCY - Ambulance Required"),
        (ServiceType.POLICE, "🚨 EMERGENCY ALERT - Police Assistance Required"),
    ],
)
def test_title_per_type(alert_type, title):
    got_title, body = build_title_and_body(_notification(alert_type))

    assert got_title == title
    assert "2.50 km" in body


def test_fcm_message_shape():
    notifier = FCMNotifier(android_channel_id="emergency_alerts")

    message = notifier.build_message("token-xyz", _notification())

    assert message.token == "token-xyz"
    assert message.data["alert_id"] == "alert-1"
    assert message.android.priority == "high"
    assert message.android.notification.channel_id == "emergency_alerts"
    assert message.android.notification.sound == "default"


def test_fcm_send_success(monkeypatch):
    sent = []

    def fake_send(message, app=None):
        sent.append(message)
        return "projects/demo/messages/1"

    monkeypatch.setattr(messaging, "send", fake_send)

    assert asyncio.run(FCMNotifier().send("token-xyz", _notification())) is True
    assert sent[0].token == "token-xyz"


def test_fcm_failure_returns_false(monkeypatch):
    def fake_send(message, app=None):
        raise firebase_exceptions.UnavailableError("FCM down")

    monkeypatch.setattr(messaging, "send", fake_send)

    assert asyncio.run(FCMNotifier().send("token-xyz", _notification())) is False


def test_logging_notifier_records_sends():
    notifier = LoggingNotifier()

    assert asyncio.run(notifier.send("token-1", _notification())) is True
    assert notifier.sent[0][0] == "token-1"
    assert notifier.sent[0][1].alert_id == "alert-1"
