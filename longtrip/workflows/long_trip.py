"""End-to-end long-trip workflow: segmentation, generation, POI extraction."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from longtrip.core.config import ApiSettings, ChunkingConfig, GatewayConfig, GenerationConfig
from longtrip.core.schemas import GenerationMetadata, ItineraryResult, TripSpec
from longtrip.core.segmentation import TripSegmenter
from longtrip.pipelines.generation import (
    GenerationOrchestrator,
    ItineraryCollaborators,
    ProgressCallback,
)
from longtrip.services.gateway.client import create_gateway_client
from longtrip.services.poi.extractor import POIExtractor, activities_from_days

logger = logging.getLogger(__name__)


class LongTripHandler:
    """Facade that runs the whole pipeline and attaches run metadata."""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        extractor: Optional[POIExtractor] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.extractor = extractor or POIExtractor()

    @property
    def segmenter(self) -> TripSegmenter:
        return self.orchestrator.segmenter

    async def handle_long_trip(
        self,
        trip: TripSpec,
        collaborators: ItineraryCollaborators,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ItineraryResult:
        """Generate ``trip`` and return days, POIs and metadata.

        Raises:
            CredentialError: the gateway has no usable API key
        """

        started = time.perf_counter()
        plan = self.segmenter.analyze_trip(trip)
        estimator = self.segmenter.estimator
        logger.info(
            "Handling %s-day trip to %s (%s, ~%s tokens)",
            trip.duration,
            trip.destination.label,
            plan.strategy,
            plan.estimated_tokens,
        )

        result = await self.orchestrator.generate_chunked_itinerary(
            trip, collaborators, on_progress, plan=plan
        )
        pois = self.extractor.extract_pois_from_itinerary(activities_from_days(result.days), trip)
        logger.info("Extracted %s POIs from itinerary", len(pois))

        metadata = GenerationMetadata(
            generated_at=datetime.now(timezone.utc),
            total_chunks=len(plan.chunks),
            estimated_tokens=plan.estimated_tokens,
            token_budget=estimator.calculate_token_budget(plan.estimated_tokens),
            generation_method="chunked" if plan.needs_chunking else "standard",
            recommended_approach=estimator.recommend_approach(trip, plan.chunks),
            processing_seconds=round(time.perf_counter() - started, 3),
        )
        return result.model_copy(update={"pois": pois, "metadata": metadata})

    def preview_trip_chunks(self, trip: TripSpec) -> Dict[str, Any]:
        """Segmentation plan with per-chunk token estimates, without calling the backend."""

        plan = self.segmenter.analyze_trip(trip)
        estimator = self.segmenter.estimator
        return {
            "needs_chunking": plan.needs_chunking,
            "strategy": plan.strategy,
            "estimated_tokens": plan.estimated_tokens,
            "chunks": [
                {
                    "id": chunk.id,
                    "days": chunk.day_range,
                    "span": chunk.span,
                    "focus": chunk.focus,
                    "priority": chunk.priority,
                    "detail_level": chunk.detail_level,
                    "estimated_tokens": estimator.estimate_chunk(chunk, trip.destination),
                }
                for chunk in plan.chunks
            ],
        }

    def token_estimation(self, trip: TripSpec) -> Dict[str, Any]:
        plan = self.segmenter.analyze_trip(trip)
        estimator = self.segmenter.estimator
        return {
            "estimated_tokens": plan.estimated_tokens,
            "standard_estimate": estimator.estimate_standard_trip(trip),
            "token_budget": estimator.calculate_token_budget(plan.estimated_tokens).model_dump(),
            "recommended_approach": estimator.recommend_approach(trip, plan.chunks),
            "needs_chunking": plan.needs_chunking,
        }


def create_long_trip_handler(
    settings: Optional[ApiSettings] = None,
    *,
    provider: str = "gemini",
) -> LongTripHandler:
    """Wire a handler from environment settings and ``LONGTRIP_*`` overrides.

    Variables from a local ``.env`` file are loaded first; values already set in
    the process environment win.
    """

    load_dotenv()
    settings = settings or ApiSettings.from_env()
    gateway = create_gateway_client(settings, provider=provider, config=GatewayConfig.from_env())
    orchestrator = GenerationOrchestrator(
        gateway,
        TripSegmenter(ChunkingConfig.from_env()),
        GenerationConfig.from_env(),
    )
    return LongTripHandler(orchestrator)
