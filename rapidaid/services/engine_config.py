"""
Thresholds handed to the aggregation and dispatch engines at construction.
"""

from datetime import datetime, timedelta
from typing import Callable

from pydantic import BaseModel, Field

from rapidaid.core.settings import Settings
from rapidaid.models.base import utc_now

Clock = Callable[[], datetime]


class EngineConfig(BaseModel):
    window_seconds: int = Field(default=90, gt=0, description="Aggregation time window")
    radius_meters: float = Field(default=10.0, gt=0, description="Aggregation radius")
    earth_radius_km: float = Field(default=6371.0, gt=0)

    class Config:
        frozen = True

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            window_seconds=settings.AGGREGATION_WINDOW_SECONDS,
            radius_meters=settings.AGGREGATION_RADIUS_METERS,
            earth_radius_km=settings.EARTH_RADIUS_KM,
        )


def system_clock() -> datetime:
    return utc_now()
