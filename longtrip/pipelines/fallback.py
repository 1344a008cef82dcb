"""Placeholder days used when a chunk cannot be generated."""
from __future__ import annotations

import random
from typing import List, Optional, Tuple

from longtrip.core.schemas import Activity, Chunk, Coordinates, Day, Location, TripSpec
from longtrip.core.segmentation import chunk_start_date

# Ordered (keywords, (lat, lng)); the first entry with a keyword in the destination wins.
FALLBACK_COORDINATES: Tuple[Tuple[Tuple[str, ...], Tuple[float, float]], ...] = (
    (("tokyo",), (35.6762, 139.6503)),
    (("saigon", "ho chi minh", "vietnam"), (10.7769, 106.7009)),
    (("paris",), (48.8566, 2.3522)),
    (("london",), (51.5074, -0.1278)),
    (("new york",), (40.7128, -74.0060)),
    (("bangkok",), (13.7563, 100.5018)),
    (("singapore",), (1.3521, 103.8198)),
)

FALLBACK_START_TIME = "09:00"
FALLBACK_DURATION_MINUTES = 480


class FallbackDayGenerator:
    """Builds flexible-exploration days for a chunk's day range.

    Coordinates come from a small destination table with uniform jitter in
    ``±jitter/2``; unknown destinations get ``(0, 0)``. Pass a seeded
    ``random.Random`` for reproducible output.
    """

    def __init__(self, rng: Optional[random.Random] = None, *, jitter: float = 0.01) -> None:
        self.rng = rng or random.Random()
        self.jitter = jitter

    def base_coordinates(self, destination: Optional[str]) -> Optional[Tuple[float, float]]:
        if not destination:
            return None
        lowered = destination.lower()
        for keywords, coordinates in FALLBACK_COORDINATES:
            if any(keyword in lowered for keyword in keywords):
                return coordinates
        return None

    def coordinates_for(self, destination: Optional[str]) -> Coordinates:
        base = self.base_coordinates(destination)
        if base is None:
            return Coordinates(lat=0.0, lng=0.0)
        lat, lng = base
        return Coordinates(
            lat=lat + (self.rng.random() - 0.5) * self.jitter,
            lng=lng + (self.rng.random() - 0.5) * self.jitter,
        )

    def generate_fallback_days(self, trip: TripSpec, chunk: Chunk) -> List[Day]:
        """One placeholder day per day in ``chunk``'s range."""

        destination = trip.destination.label
        days: List[Day] = []
        for day_number in range(chunk.start_day, chunk.end_day + 1):
            activity = Activity(
                time=FALLBACK_START_TIME,
                title=f"Day {day_number} - Flexible Exploration",
                description=(
                    "Open day for personal exploration and spontaneous discoveries "
                    f"in {destination}"
                ),
                location=Location(
                    name="Local Area",
                    address=destination,
                    coordinates=self.coordinates_for(destination),
                ),
                duration=FALLBACK_DURATION_MINUTES,
                cost=0,
                category="leisure",
                notes=f"Generated as fallback for chunk {chunk.id}",
                fallback_generated=True,
            )
            days.append(
                Day(
                    date=chunk_start_date(trip.destination.start_date, day_number),
                    activities=[activity],
                    notes=f"Fallback day for {chunk.id} chunk",
                    fallback_generated=True,
                    chunk_id=chunk.id,
                )
            )
        return days
