"""
Shared fixtures: in-process stores, a controllable clock and
notifiers with known behavior.
"""

import math
import os
from datetime import datetime, timedelta, timezone

# Must be set before rapidaid.core.settings is imported
os.environ.setdefault("USE_MOCK_DB", "true")
os.environ.setdefault("PUSH_ENABLED", "false")

import pytest

from rapidaid.core.exceptions import NotifierError
from rapidaid.models.alert import IncomingReport
from rapidaid.models.base import Coordinate, ServiceType
from rapidaid.models.facility import Facility
from rapidaid.services.alert_service import AlertService
from rapidaid.services.engine_config import EngineConfig
from rapidaid.services.memory_store import InMemoryAlertStore, InMemoryFacilityDirectory
from rapidaid.services.notifier import LoggingNotifier, Notifier

EARTH_RADIUS_KM = 6371.0
ORIGIN = Coordinate(lat=22.5726, lng=88.3639)


def north_of(point: Coordinate, meters: float) -> Coordinate:
    """Point `meters` due north; Haversine along a meridian is exact."""
    dlat = math.degrees(meters / (EARTH_RADIUS_KM * 1000.0))
    return Coordinate(lat=point.lat + dlat, lng=point.lng)


def make_report(user_id="user-1", alert_type=ServiceType.FIRE, location=ORIGIN, phone="9876543210", description=None):
    return IncomingReport(
        user_id=user_id,
        user_phone=phone,
        type=alert_type,
        location=location,
        description=description,
    )


def make_facility(name, facility_type=ServiceType.FIRE, km_north=1.0, push_channel_id="token-1", active=True):
    return Facility(
        type=facility_type,
        name=name,
        phone="9000000000",
        location=north_of(ORIGIN, km_north * 1000.0),
        push_channel_id=push_channel_id,
        active=active,
    )


class FixedClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class FailingNotifier(Notifier):
    async def _deliver(self, channel_id, notification):
        raise NotifierError("FCM unavailable")


class ExplodingNotifier(Notifier):
    """Breaks the never-raise contract."""

    async def send(self, channel_id, notification):
        raise RuntimeError("notifier crashed")

    async def _deliver(self, channel_id, notification):
        raise AssertionError("unreachable")


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    return EngineConfig(window_seconds=90, radius_meters=10.0, earth_radius_km=EARTH_RADIUS_KM)


@pytest.fixture
def alert_store():
    return InMemoryAlertStore()


@pytest.fixture
def facilities():
    return [
        make_facility("Fire Station A", km_north=5.0),
        make_facility("Fire Station B", km_north=2.0),
        make_facility("Fire Station C", km_north=8.0),
        make_facility("Police Station", facility_type=ServiceType.POLICE, km_north=3.0),
    ]


@pytest.fixture
def facility_directory(facilities):
    return InMemoryFacilityDirectory(facilities)


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def service(alert_store, facility_directory, notifier, config, clock):
    return AlertService(alert_store, facility_directory, notifier, config=config, clock=clock)
