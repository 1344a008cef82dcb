"""Token usage estimates for chunked and single-call itinerary generation."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence, Tuple

from longtrip.core.config import DESTINATION_COMPLEXITY_TIERS, TokenEstimationConfig
from longtrip.core.schemas import Chunk, Destination, TokenBudget, TripSpec

_DEFAULT_DETAIL = "balanced"

ComplexityTiers = Tuple[Tuple[float, Tuple[str, ...]], ...]


def destination_complexity(
    destination: Optional[str], tiers: ComplexityTiers = DESTINATION_COMPLEXITY_TIERS
) -> float:
    """Keyword-matched multiplier for how much context a destination needs."""

    if not destination:
        return 1.0
    lowered = destination.lower()
    for multiplier, keywords in tiers:
        if any(keyword in lowered for keyword in keywords):
            return multiplier
    return 1.0


def _destination_text(destination: Optional[Destination]) -> Optional[str]:
    if destination is None:
        return None
    return destination.destination or destination.city


class TokenEstimator:
    """Deterministic token estimates driven entirely by ``TokenEstimationConfig``."""

    def __init__(self, config: Optional[TokenEstimationConfig] = None) -> None:
        self.config = config or TokenEstimationConfig()

    def _detail_values(self, detail_level: str) -> Tuple[float, float, float]:
        cfg = self.config
        return (
            cfg.base_tokens_per_day.get(detail_level, cfg.base_tokens_per_day[_DEFAULT_DETAIL]),
            cfg.activities_per_day.get(detail_level, cfg.activities_per_day[_DEFAULT_DETAIL]),
            cfg.tokens_per_activity.get(detail_level, cfg.tokens_per_activity[_DEFAULT_DETAIL]),
        )

    def focus_complexity(self, focus: str) -> float:
        return self.config.focus_complexity.get(focus, 1.0)

    def destination_complexity(self, destination: Optional[Destination]) -> float:
        return destination_complexity(
            _destination_text(destination), self.config.destination_complexity_tiers
        )

    def estimate_chunk(self, chunk: Chunk, destination: Optional[Destination] = None) -> int:
        """Estimate the tokens one chunk will consume.

        ``span × (base + activities × per_activity × focus × destination)``, plus a
        fixed context overhead for middle (continuation) chunks.
        """

        base, activities, per_activity = self._detail_values(chunk.detail_level)
        complexity = self.focus_complexity(chunk.focus) * self.destination_complexity(destination)
        overhead = self.config.context_overhead if chunk.id.startswith("middle_") else 0
        return round(chunk.span * (base + activities * per_activity * complexity) + overhead)

    def estimate_for_chunks(
        self, chunks: Iterable[Chunk], destination: Optional[Destination] = None
    ) -> int:
        return sum(self.estimate_chunk(chunk, destination) for chunk in chunks)

    def estimate_standard_trip(self, trip: TripSpec, detail_level: str = _DEFAULT_DETAIL) -> int:
        base, activities, per_activity = self._detail_values(detail_level)
        complexity = self.destination_complexity(trip.destination)
        return round(trip.duration * (base + activities * per_activity * complexity))

    def calculate_token_budget(self, estimated_tokens: int, safety_margin: float = 0.2) -> TokenBudget:
        cfg = self.config
        return TokenBudget(
            estimated=estimated_tokens,
            budget_with_margin=round(estimated_tokens * (1 + safety_margin)),
            safety_margin=round(estimated_tokens * safety_margin),
            recommended_model="pro" if estimated_tokens > cfg.recommended_pro_threshold else "flash",
            chunks=(
                math.ceil(estimated_tokens / cfg.tokens_per_split)
                if estimated_tokens > cfg.split_threshold
                else 1
            ),
        )

    def recommend_approach(self, trip: TripSpec, chunks: Sequence[Chunk]) -> str:
        """Pick ``standard``, ``simplified`` or ``chunked`` for a trip.

        Short trips (up to ``standard_max_days``) stay single-call unless the
        estimate passes ``split_threshold``; medium trips (up to
        ``medium_max_days``) chunk only above ``medium_chunking_threshold``; anything
        longer is always chunked.
        """

        cfg = self.config
        standard = self.estimate_standard_trip(trip)
        if trip.duration <= cfg.standard_max_days:
            return "simplified" if standard > cfg.split_threshold else "standard"
        if trip.duration <= cfg.medium_max_days:
            return "chunked" if standard > cfg.medium_chunking_threshold and len(chunks) > 1 else "standard"
        return "chunked"
