"""Trip segmentation: split a long trip into request-sized day-range chunks.

The segmenter is a pure function of its configuration and the trip: no state is
kept between calls, so the same trip always yields the same plan and the same
token estimate.
"""
from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import List, Optional

from longtrip.core.config import ChunkingConfig, GenerationConfig
from longtrip.core.schemas import Chunk, Preferences, SegmentationPlan, TripSpec
from longtrip.core.token_estimation import TokenEstimator

logger = logging.getLogger(__name__)

BASE_THEMES = (
    "cultural_immersion",
    "local_experiences",
    "nature_exploration",
    "food_discovery",
    "historical_sites",
    "entertainment_leisure",
)
RELAXED_THEMES = ("nature_exploration", "cultural_immersion", "local_experiences")
ACTIVE_THEMES = ("cultural_immersion", "food_discovery", "entertainment_leisure")
NIGHTLIFE_THEME = "nightlife_entertainment"
NIGHTLIFE_INSERT_POSITION = 2


def chunk_start_date(trip_start: Optional[date], chunk_start_day: int) -> Optional[date]:
    """Calendar date of a chunk's first day (``start_day`` is 1-based)."""

    if trip_start is None:
        return None
    return trip_start + timedelta(days=chunk_start_day - 1)


def max_tokens_for_chunk(chunk: Chunk, config: Optional[GenerationConfig] = None) -> int:
    """Output token cap for a chunk: ``floor(base × multiplier[detail_level])``."""

    cfg = config or GenerationConfig()
    multiplier = cfg.detail_multipliers.get(chunk.detail_level, 1.0)
    return math.floor(cfg.base_max_output_tokens * multiplier)


class TripSegmenter:
    """Decides whether a trip needs chunking and produces its segmentation plan."""

    def __init__(
        self,
        config: Optional[ChunkingConfig] = None,
        estimator: Optional[TokenEstimator] = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.estimator = estimator or TokenEstimator()

    def analyze_trip(self, trip: TripSpec) -> SegmentationPlan:
        """Return the segmentation plan for ``trip``."""

        duration = trip.duration
        if duration < self.config.min_days_for_chunking:
            chunk = Chunk(id="single", start_day=1, end_day=duration)
            return SegmentationPlan(
                needs_chunking=False,
                strategy="single_generation",
                chunks=[chunk],
                estimated_tokens=self.estimator.estimate_standard_trip(trip),
            )

        chunks = self.create_chunks(duration, trip.preferences)
        estimated = self.estimator.estimate_for_chunks(chunks, trip.destination)
        logger.debug(
            "Segmented %s-day trip into %s chunks (~%s tokens)", duration, len(chunks), estimated
        )
        return SegmentationPlan(
            needs_chunking=True,
            strategy="progressive_chunking",
            chunks=chunks,
            estimated_tokens=estimated,
        )

    def middle_chunk_size(self, preferences: Optional[Preferences] = None) -> int:
        size = self.config.middle_days
        pace = preferences.pace if preferences else "normal"
        if pace == "easy":
            size = math.floor(size * self.config.easy_pace_factor)
        elif pace == "intense":
            size = math.ceil(size * self.config.intense_pace_factor)
        return max(1, size)

    def create_chunks(self, duration: int, preferences: Optional[Preferences] = None) -> List[Chunk]:
        """Arrival, middle and departure chunks covering ``[1, duration]`` without gaps."""

        cfg = self.config
        preferences = preferences or Preferences()
        arrival_end = min(cfg.arrival_days, duration)
        chunks: List[Chunk] = [
            Chunk(
                id="arrival",
                start_day=1,
                end_day=arrival_end,
                priority="high",
                focus="arrival_orientation",
                detail_level="comprehensive",
            )
        ]

        departure: Optional[Chunk] = None
        middle_last_day = duration
        if duration > arrival_end:
            departure_start = max(arrival_end + 1, duration - cfg.departure_days + 1)
            departure = Chunk(
                id="departure",
                start_day=departure_start,
                end_day=duration,
                priority="low",
                focus="departure_logistics",
                detail_level="simplified",
            )
            middle_last_day = departure_start - 1

        size = self.middle_chunk_size(preferences)
        current_day = arrival_end + 1
        chunk_index = 1
        while current_day <= middle_last_day:
            end_day = min(current_day + size - 1, middle_last_day)
            chunks.append(
                Chunk(
                    id=f"middle_{chunk_index}",
                    start_day=current_day,
                    end_day=end_day,
                    priority="normal",
                    focus=self.determine_chunk_focus(chunk_index, duration, preferences),
                    detail_level="balanced",
                )
            )
            current_day = end_day + 1
            chunk_index += 1

        if departure is not None:
            chunks.append(departure)
        return chunks

    def determine_chunk_focus(
        self, chunk_index: int, total_duration: int, preferences: Optional[Preferences] = None
    ) -> str:
        """Rotate through the theme list for the pace, inserting nightlife when it applies."""

        preferences = preferences or Preferences()
        if preferences.pace == "easy":
            themes = list(RELAXED_THEMES)
        elif preferences.pace == "intense":
            themes = list(ACTIVE_THEMES)
            if preferences.nightlife == "heavy":
                themes.append(NIGHTLIFE_THEME)
        else:
            themes = list(BASE_THEMES)
            if preferences.nightlife != "none" and (
                preferences.nightlife == "heavy"
                or self.is_weekend_chunk(chunk_index, total_duration)
            ):
                themes.insert(NIGHTLIFE_INSERT_POSITION, NIGHTLIFE_THEME)
        return themes[chunk_index % len(themes)]

    @staticmethod
    def is_weekend_chunk(chunk_index: int, total_duration: int) -> bool:
        """Heuristic: middle chunks 1 and (for week-long trips) 3 probably cover a weekend."""

        return chunk_index == 1 or (chunk_index == 3 and total_duration >= 7)
