"""
Dispatch notifications - push delivery to the chosen facility.

DESIGN PRINCIPLES:
- Delivery is BEST-EFFORT: the persisted alert is the authoritative outcome
- send() reports success as a bool and never raises into the dispatch path
- FCM is the real channel; LoggingNotifier is the simulated one used when
  push is disabled or the app runs on in-process stores
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from pydantic import BaseModel

from rapidaid.core.exceptions import NotifierError
from rapidaid.models.base import ServiceType
from rapidaid.utils.firestore_helpers import run_blocking

logger = logging.getLogger(__name__)


class DispatchNotification(BaseModel):
    """Payload pushed to a facility for a newly dispatched alert."""
    alert_id: str
    type: ServiceType
    lat: float
    lng: float
    distance_km: float
    user_phone: Optional[str] = None

    def data(self) -> Dict[str, str]:
        # FCM data payloads must be string -> string
        return {
            "alert_id": self.alert_id,
            "type": self.type.value,
            "lat": str(self.lat),
            "lng": str(self.lng),
            "user_phone": self.user_phone or "",
            "distance": str(self.distance_km),
        }


def build_title_and_body(notification: DispatchNotification) -> tuple[str, str]:
    distance = f"{notification.distance_km:.2f}"
    if notification.type == ServiceType.FIRE:
        return "🔥 FIRE EMERGENCY", f"Fire reported at {distance} km away. Immediate response required!"
    if notification.type == ServiceType.AMBULANCE:
        return (
            "🚑 MEDICAL EMERGENCY - Ambulance Required",
            f"Medical emergency at {distance} km away. Immediate response needed!",
        )
    return (
        "🚨 EMERGENCY ALERT - Police Assistance Required",
        f"Emergency at {distance} km away. Tap to view details.",
    )


class Notifier(ABC):
    """Push-notification collaborator."""

    async def send(self, channel_id: str, notification: DispatchNotification) -> bool:
        """
        Deliver `notification` to `channel_id`.
        
        Returns:
            True if the backend accepted the message, False otherwise
        """
        try:
            await self._deliver(channel_id, notification)
        except NotifierError as e:
            logger.warning(f"⚠️ Notification for alert {notification.alert_id} failed: {e}")
            return False
        return True

    @abstractmethod
    async def _deliver(self, channel_id: str, notification: DispatchNotification) -> None:
        """Raise NotifierError on failure."""
        raise NotImplementedError


class FCMNotifier(Notifier):
    """Firebase Cloud Messaging delivery through the shared Firebase app."""

    def __init__(self, android_channel_id: str = "emergency_alerts", app=None):
        self.android_channel_id = android_channel_id
        self.app = app

    def build_message(self, channel_id: str, notification: DispatchNotification) -> messaging.Message:
        title, body = build_title_and_body(notification)
        return messaging.Message(
            token=channel_id,
            notification=messaging.Notification(title=title, body=body),
            data=notification.data(),
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound="default",
                    channel_id=self.android_channel_id,
                ),
            ),
        )

    async def _deliver(self, channel_id: str, notification: DispatchNotification) -> None:
        message = self.build_message(channel_id, notification)
        try:
            message_id = await run_blocking(lambda: messaging.send(message, app=self.app))
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise NotifierError(str(e)) from e
        logger.info(f"✅ FCM notification sent for alert {notification.alert_id} ({message_id})")


class LoggingNotifier(Notifier):
    """
    SIMULATED delivery - logs the message that would have been pushed.
    Keeps a record of sends for inspection.
    """

    def __init__(self):
        self.sent: list[tuple[str, DispatchNotification]] = []

    async def _deliver(self, channel_id: str, notification: DispatchNotification) -> None:
        title, body = build_title_and_body(notification)
        self.sent.append((channel_id, notification))
        logger.info(f"[SIMULATED PUSH] alert={notification.alert_id} title='{title}' body='{body}'")
