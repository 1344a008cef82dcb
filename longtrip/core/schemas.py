"""Pydantic data models for long-trip itinerary generation.

This module contains the data models shared by the segmentation, generation
and point-of-interest extraction stages. The models validate collaborator
output (raw dicts coming back from prompt/response helpers) as well as the
values this package produces.

Key model categories:
- TripSpec / Destination / Preferences: the trip being planned
- Chunk / SegmentationPlan: day-range segments produced by the segmenter
- GenerationContext / ChunkTrip: rolling state threaded between chunks
- Day / Activity / Location: the itinerary itself
- POICandidate: named places recovered from itinerary text
- ItineraryResult: assembled days plus run summary
"""
from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Any, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from longtrip.core.types import (
    Confidence,
    DetailLevel,
    Lat,
    Lon,
    Nightlife,
    NonNegMoney,
    Pace,
    PositiveDays,
    Priority,
)

__all__ = [
    "Activity",
    "Budget",
    "Chunk",
    "ChunkInfo",
    "ChunkResult",
    "ChunkTrip",
    "Coordinates",
    "Day",
    "Destination",
    "GenerationContext",
    "GenerationMetadata",
    "ItineraryResult",
    "ItinerarySummary",
    "Location",
    "POICandidate",
    "Preferences",
    "ProgressEvent",
    "SegmentationPlan",
    "TokenBudget",
    "TripSpec",
]


class Destination(BaseModel):
    """Where the trip goes and when it starts."""

    destination: Optional[str] = Field(default=None, description="Free-text destination")
    city: Optional[str] = Field(default=None, description="Main city, when known")
    country: Optional[str] = Field(default=None, description="Country, when known")
    start_date: Optional[date] = Field(default=None, description="First day of the trip")

    @model_validator(mode="after")
    def _require_name(self) -> "Destination":
        if not (self.destination or self.city):
            raise ValueError("Destination name or city is required")
        return self

    @property
    def label(self) -> str:
        """Human-facing place name (city first, then the free-text destination)."""

        return self.city or self.destination or ""


class Budget(BaseModel):
    total: Optional[NonNegMoney] = None
    currency: Optional[str] = None


class Preferences(BaseModel):
    interests: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    pace: Pace = "normal"
    nightlife: Nightlife = "none"


class TripSpec(BaseModel):
    """A trip to plan: duration, destination, budget and preferences."""

    duration: PositiveDays = Field(description="Trip length in days")
    destination: Destination
    budget: Optional[Budget] = None
    preferences: Preferences = Field(default_factory=Preferences)


class Chunk(BaseModel):
    """A contiguous, 1-based inclusive day range generated by a single AI request."""

    id: str
    start_day: PositiveDays
    end_day: PositiveDays
    priority: Priority = "normal"
    focus: str = "cultural_immersion"
    detail_level: DetailLevel = "balanced"

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _ordered_range(self) -> "Chunk":
        if self.end_day < self.start_day:
            raise ValueError("end_day must not precede start_day")
        return self

    @property
    def span(self) -> int:
        return self.end_day - self.start_day + 1

    @property
    def day_range(self) -> str:
        return f"{self.start_day}-{self.end_day}"


class SegmentationPlan(BaseModel):
    needs_chunking: bool
    strategy: Literal["single_generation", "progressive_chunking"]
    chunks: List[Chunk]
    estimated_tokens: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class TokenBudget(BaseModel):
    estimated: int
    budget_with_margin: int
    safety_margin: int
    recommended_model: Literal["flash", "pro"]
    chunks: int


class Coordinates(BaseModel):
    lat: Lat = 0.0
    lng: Lon = 0.0


class Location(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class Activity(BaseModel):
    """One scheduled item inside a day."""

    time: Optional[str] = Field(default=None, description="Start time, usually HH:MM")
    title: str = ""
    description: str = ""
    location: Optional[Location] = None
    duration: Optional[int] = Field(default=None, ge=0, description="Minutes")
    cost: NonNegMoney = 0
    category: Optional[str] = None
    notes: Optional[str] = None
    fallback_generated: bool = False


class Day(BaseModel):
    date: Optional[dt.date] = None
    activities: List[Activity] = Field(default_factory=list)
    notes: Optional[str] = None
    fallback_generated: bool = False
    chunk_id: Optional[str] = None

    @property
    def cost(self) -> float:
        return float(sum(activity.cost for activity in self.activities))


class GenerationContext(BaseModel):
    """Rolling state handed from one chunk generation to the next.

    Owned by a single orchestrator run and never shared between trips.
    ``previous_days`` is a bounded window: the orchestrator replaces it with the
    last ``overlap_days`` accumulated days after every successful chunk.
    """

    previous_days: List[Day] = Field(default_factory=list)
    overall_theme: str = "sightseeing"
    budget: Optional[Budget] = None
    constraints: List[str] = Field(default_factory=list)
    destination: Destination
    processed_chunks: int = 0
    total_budget_used: float = 0.0
    activity_categories: Set[str] = Field(default_factory=set)

    @classmethod
    def from_trip(cls, trip: TripSpec) -> "GenerationContext":
        interests = trip.preferences.interests
        return cls(
            overall_theme=interests[0] if interests else "sightseeing",
            budget=trip.budget,
            constraints=list(trip.preferences.constraints),
            destination=trip.destination,
        )

    @property
    def is_continuation(self) -> bool:
        return bool(self.previous_days)

    def remaining_budget(self) -> Optional[float]:
        if not self.budget or not self.budget.total:
            return None
        return max(0.0, self.budget.total - self.total_budget_used)


class ChunkInfo(BaseModel):
    id: str
    focus: str
    detail_level: DetailLevel
    day_range: str
    context: Literal["beginning", "continuation"]
    processed_chunks: int = 0
    remaining_budget: Optional[float] = None
    used_categories: List[str] = Field(default_factory=list)


class ChunkTrip(TripSpec):
    """Chunk-scoped view of a trip handed to the prompt and parsing helpers."""

    chunk_info: ChunkInfo


class POICandidate(BaseModel):
    """A named place recovered from itinerary text or an explicit location."""

    type: Literal["poi"] = "poi"
    name: str = Field(min_length=3)
    city: str = "Unknown"
    country: str = "Unknown"
    category: str
    confidence: Confidence
    extracted_from: Literal["text", "location"]
    original_text: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @property
    def key(self) -> str:
        return f"{self.name}-{self.city}-{self.country}".lower()


class ChunkResult(BaseModel):
    chunk_id: str
    focus: str
    success: bool
    days: int
    fallback_used: bool = False
    error: Optional[str] = None


class ItinerarySummary(BaseModel):
    total_days: int
    total_activities: int
    estimated_cost: int
    successful_chunks: int
    fallback_chunks: int

    @computed_field(return_type=float)
    @property
    def generation_success(self) -> float:
        """Share of chunks that were generated rather than synthesised."""

        total = self.successful_chunks + self.fallback_chunks
        return self.successful_chunks / total if total else 0.0


class GenerationMetadata(BaseModel):
    generated_at: datetime
    total_chunks: int
    estimated_tokens: int
    token_budget: Optional[TokenBudget] = None
    generation_method: Literal["standard", "chunked"]
    recommended_approach: Optional[str] = None
    processing_seconds: float = 0.0


class ItineraryResult(BaseModel):
    days: List[Day]
    summary: ItinerarySummary
    chunk_results: List[ChunkResult] = Field(default_factory=list)
    pois: List[POICandidate] = Field(default_factory=list)
    metadata: Optional[GenerationMetadata] = None


class ProgressEvent(BaseModel):
    current: int
    total: int
    chunk_id: str
    stage: str = "chunk_generation"

    @computed_field(return_type=int)
    @property
    def percentage(self) -> int:
        return round(self.current / self.total * 100) if self.total else 100


def coerce_days(payload: Any) -> List[Day]:
    """Validate a collaborator payload (``{"days": [...]}``, a list, or models) into days."""

    if isinstance(payload, dict):
        raw_days = payload.get("days")
        if raw_days is None and isinstance(payload.get("itinerary"), dict):
            raw_days = payload["itinerary"].get("days")
    else:
        raw_days = getattr(payload, "days", payload)
    if raw_days is None:
        return []
    if not isinstance(raw_days, (list, tuple)):
        raise TypeError(f"Expected a list of days, got {type(raw_days).__name__}")
    return [day if isinstance(day, Day) else Day.model_validate(day) for day in raw_days]
