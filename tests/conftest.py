"""Pytest configuration for the long-trip generation package."""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure the project root is on sys.path so that import longtrip works under pytest.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from longtrip.core.schemas import Destination, Preferences, TripSpec  # noqa: E402


def make_trip(duration: int, **overrides) -> TripSpec:
    destination = overrides.pop(
        "destination",
        Destination(destination="Tokyo, Japan", city="Tokyo", start_date=date(2025, 3, 1)),
    )
    return TripSpec(duration=duration, destination=destination, **overrides)


@pytest.fixture
def tokyo_trip() -> TripSpec:
    return make_trip(10, preferences=Preferences(interests=["temples", "food"]))


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def trip_factory():
    return make_trip
