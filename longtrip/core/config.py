"""Configuration helpers for API keys and generation tuning values."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

PLACEHOLDER_API_KEY = "mock-api-key"

# Ordered (multiplier, keywords) tiers; the first tier with a matching keyword wins.
DESTINATION_COMPLEXITY_TIERS: Tuple[Tuple[float, Tuple[str, ...]], ...] = (
    (1.4, ("multi", "tour", "several", "various")),
    (1.3, ("japan", "tokyo", "kyoto", "china", "india", "morocco")),
    (1.2, ("vietnam", "thailand", "korea", "russia", "middle east", "arabia")),
    (1.1, ("europe", "italy", "france", "spain", "germany", "brazil")),
)


def _frozen(values: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(values))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


@dataclass(slots=True)
class ApiSettings:
    """Centralised container for the generative backend credentials."""

    gemini_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    openrouter_default_model: str = "anthropic/claude-3.5-sonnet"
    openrouter_site_name: str = "LongTrip"
    openrouter_site_url: str = "https://localhost"

    @classmethod
    def from_env(cls) -> "ApiSettings":
        """Load settings from environment variables."""

        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            openrouter_default_model=os.getenv(
                "OPENROUTER_DEFAULT_MODEL", "anthropic/claude-3.5-sonnet"
            ),
            openrouter_site_name=os.getenv("OPENROUTER_SITE_NAME", "LongTrip"),
            openrouter_site_url=os.getenv("OPENROUTER_SITE_URL", "https://localhost"),
        )

    def ensure(self, field: str) -> str:
        """Return the requested field and fail fast if it is missing."""

        value = getattr(self, field)
        if not value:
            raise RuntimeError(f"Missing configuration value: {field}")
        return value


@dataclass(frozen=True, slots=True)
class ChunkingConfig:
    """Segment sizes and thresholds used to split a trip into chunks.

    Attributes:
        min_days_for_chunking: Trips shorter than this are generated in one call
        arrival_days: Length of the detailed arrival segment
        departure_days: Length of the simplified departure segment
        middle_days: Base length of each middle segment before pace adjustment
        overlap_days: Size of the previous-days window handed to the next chunk
        easy_pace_factor: Multiplier (floored) applied to ``middle_days`` for easy pace
        intense_pace_factor: Multiplier (ceiled) applied to ``middle_days`` for intense pace
    """

    min_days_for_chunking: int = 5
    arrival_days: int = 2
    departure_days: int = 1
    middle_days: int = 6
    overlap_days: int = 2
    easy_pace_factor: float = 0.8
    intense_pace_factor: float = 1.2

    @classmethod
    def from_env(cls) -> "ChunkingConfig":
        defaults = cls()
        return cls(
            min_days_for_chunking=_env_int("LONGTRIP_MIN_DAYS_FOR_CHUNKING", defaults.min_days_for_chunking),
            arrival_days=_env_int("LONGTRIP_ARRIVAL_DAYS", defaults.arrival_days),
            departure_days=_env_int("LONGTRIP_DEPARTURE_DAYS", defaults.departure_days),
            middle_days=_env_int("LONGTRIP_MIDDLE_DAYS", defaults.middle_days),
            overlap_days=_env_int("LONGTRIP_OVERLAP_DAYS", defaults.overlap_days),
            easy_pace_factor=_env_float("LONGTRIP_EASY_PACE_FACTOR", defaults.easy_pace_factor),
            intense_pace_factor=_env_float("LONGTRIP_INTENSE_PACE_FACTOR", defaults.intense_pace_factor),
        )

    def __post_init__(self) -> None:
        for name in ("min_days_for_chunking", "arrival_days", "departure_days", "middle_days"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        if self.overlap_days < 0:
            raise ValueError("overlap_days must not be negative")


@dataclass(frozen=True, slots=True)
class TokenEstimationConfig:
    """Per-detail-level token tables, complexity multipliers and thresholds.

    Attributes:
        destination_complexity_tiers: Ordered ``(multiplier, keywords)`` pairs
        standard_max_days: Longest trip ``recommend_approach`` keeps single-call
        medium_max_days: Longest trip that chunks only above ``medium_chunking_threshold``
        medium_chunking_threshold: Single-call estimate above which medium trips are chunked
    """

    base_tokens_per_day: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {"comprehensive": 400, "balanced": 280, "simplified": 180}
        )
    )
    activities_per_day: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {"comprehensive": 4.5, "balanced": 3.5, "simplified": 2.5}
        )
    )
    tokens_per_activity: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {"comprehensive": 120, "balanced": 85, "simplified": 50}
        )
    )
    focus_complexity: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {
                "arrival_orientation": 1.3,
                "cultural_immersion": 1.2,
                "food_discovery": 1.1,
                "historical_sites": 1.2,
                "nature_exploration": 1.0,
                "local_experiences": 1.1,
                "entertainment_leisure": 0.9,
                "nightlife_entertainment": 1.0,
                "departure_logistics": 0.8,
            }
        )
    )
    context_overhead: int = 50
    recommended_pro_threshold: int = 4000
    split_threshold: int = 6000
    tokens_per_split: int = 4000
    destination_complexity_tiers: Tuple[Tuple[float, Tuple[str, ...]], ...] = DESTINATION_COMPLEXITY_TIERS
    standard_max_days: int = 4
    medium_max_days: int = 7
    medium_chunking_threshold: int = 5000


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Orchestrator knobs for per-chunk gateway calls."""

    model_tier: str = "flash"
    base_max_output_tokens: int = 2000
    detail_multipliers: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {"comprehensive": 1.5, "balanced": 1.0, "simplified": 0.7}
        )
    )
    high_priority_temperature: float = 0.7
    default_temperature: float = 0.8
    inter_chunk_delay: float = 1.0

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        defaults = cls()
        return cls(
            model_tier=os.getenv("LONGTRIP_CHUNK_MODEL_TIER", defaults.model_tier),
            base_max_output_tokens=_env_int("LONGTRIP_BASE_MAX_OUTPUT_TOKENS", defaults.base_max_output_tokens),
            inter_chunk_delay=_env_float("LONGTRIP_INTER_CHUNK_DELAY", defaults.inter_chunk_delay),
        )


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    """Retry and transport settings for the AI gateway."""

    max_attempts: int = 2
    request_timeout: float = 60.0
    connect_timeout: float = 10.0
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8000

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        defaults = cls()
        return cls(
            max_attempts=_env_int("LONGTRIP_MAX_ATTEMPTS", defaults.max_attempts),
            request_timeout=_env_float("LONGTRIP_REQUEST_TIMEOUT", defaults.request_timeout),
        )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
