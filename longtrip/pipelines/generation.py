"""Sequential chunk-by-chunk itinerary generation.

``GenerationOrchestrator`` walks the chunks produced by ``TripSegmenter`` in
order. Every chunk gets its own prompt (built by a caller-supplied collaborator
from the chunk-scoped trip view and the rolling ``GenerationContext``), one
gateway call and one parse step. A chunk that fails for any reason other than
missing credentials is replaced with fallback days so the caller always gets
exactly ``trip.duration`` days back.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from longtrip.core.config import GenerationConfig
from longtrip.core.errors import (
    ChunkGenerationFailure,
    CredentialError,
    FatalError,
    TransientError,
)
from longtrip.core.schemas import (
    Chunk,
    ChunkInfo,
    ChunkResult,
    ChunkTrip,
    Day,
    GenerationContext,
    ItineraryResult,
    ItinerarySummary,
    ProgressEvent,
    SegmentationPlan,
    TripSpec,
    coerce_days,
)
from longtrip.core.segmentation import TripSegmenter, chunk_start_date, max_tokens_for_chunk
from longtrip.pipelines.fallback import FallbackDayGenerator
from longtrip.services.gateway.client import AIGatewayClient
from longtrip.services.gateway.schemas import GenerationOptions

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
ProgressCallback = Callable[[ProgressEvent], Any]


@dataclass(slots=True)
class ItineraryCollaborators:
    """Prompt and parsing helpers supplied by the caller.

    Each callable may be synchronous or return an awaitable. Parsers may return
    ``{"days": [...]}``, a list of day dicts or ``Day`` models.

    Attributes:
        build_chunked_itinerary_prompt: ``(chunk_trip, chunk, context) -> str``
        process_chunked_itinerary_response: ``(raw_content, chunk_trip, chunk) -> {"days": [...]}``
        generate_standard_itinerary: ``(trip) -> {"days": [...]}`` for trips that
            need no chunking; when omitted the single chunk goes through the
            chunked path instead
    """

    build_chunked_itinerary_prompt: Callable[..., Any]
    process_chunked_itinerary_response: Callable[..., Any]
    generate_standard_itinerary: Optional[Callable[..., Any]] = None


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def build_chunk_trip(trip: TripSpec, chunk: Chunk, context: GenerationContext) -> ChunkTrip:
    """Chunk-scoped view of ``trip``: chunk span as duration, shifted start date."""

    destination = trip.destination.model_copy(
        update={"start_date": chunk_start_date(trip.destination.start_date, chunk.start_day)}
    )
    return ChunkTrip(
        duration=chunk.span,
        destination=destination,
        budget=trip.budget,
        preferences=trip.preferences,
        chunk_info=ChunkInfo(
            id=chunk.id,
            focus=chunk.focus,
            detail_level=chunk.detail_level,
            day_range=chunk.day_range,
            context="continuation" if context.is_continuation else "beginning",
            processed_chunks=context.processed_chunks,
            remaining_budget=context.remaining_budget(),
            used_categories=sorted(context.activity_categories),
        ),
    )


def summarize_days(days: Sequence[Day], successful_chunks: int, fallback_chunks: int) -> ItinerarySummary:
    return ItinerarySummary(
        total_days=len(days),
        total_activities=sum(len(day.activities) for day in days),
        estimated_cost=round(sum(day.cost for day in days)),
        successful_chunks=successful_chunks,
        fallback_chunks=fallback_chunks,
    )


class GenerationOrchestrator:
    """Generates an itinerary chunk by chunk with fallback on failure.

    One orchestrator may serve several trips concurrently: all per-run state
    (accumulated days, ``GenerationContext``) lives inside a single
    ``generate_chunked_itinerary`` call.
    """

    def __init__(
        self,
        gateway: AIGatewayClient,
        segmenter: Optional[TripSegmenter] = None,
        config: Optional[GenerationConfig] = None,
        fallback: Optional[FallbackDayGenerator] = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.segmenter = segmenter or TripSegmenter()
        self.config = config or GenerationConfig()
        self.fallback = fallback or FallbackDayGenerator()
        self._sleep = sleep

    @property
    def overlap_days(self) -> int:
        return self.segmenter.config.overlap_days

    async def generate_chunked_itinerary(
        self,
        trip: TripSpec,
        collaborators: ItineraryCollaborators,
        on_progress: Optional[ProgressCallback] = None,
        *,
        plan: Optional[SegmentationPlan] = None,
    ) -> ItineraryResult:
        """Generate ``trip`` and return exactly ``trip.duration`` days.

        Raises:
            CredentialError: the gateway has no usable API key
        """

        plan = plan or self.segmenter.analyze_trip(trip)
        if not plan.needs_chunking and collaborators.generate_standard_itinerary is not None:
            return await self.generate_standard_itinerary(trip, collaborators, plan)

        logger.info(
            "Generating %s-day trip to %s in %s chunks",
            trip.duration,
            trip.destination.label,
            len(plan.chunks),
        )
        context = GenerationContext.from_trip(trip)
        all_days: List[Day] = []
        chunk_results: List[ChunkResult] = []
        successful = failed = 0
        total = len(plan.chunks)

        for index, chunk in enumerate(plan.chunks, start=1):
            logger.info(
                "Generating chunk %s/%s: %s (days %s)", index, total, chunk.id, chunk.day_range
            )
            try:
                chunk_days = await self.generate_chunk(trip, chunk, context, collaborators)
            except ChunkGenerationFailure as failure:
                logger.warning("Chunk %s failed, using fallback days: %s", chunk.id, failure.cause)
                fallback_days = self.fallback.generate_fallback_days(trip, chunk)
                all_days.extend(fallback_days)
                failed += 1
                chunk_results.append(
                    ChunkResult(
                        chunk_id=chunk.id,
                        focus=chunk.focus,
                        success=False,
                        days=len(fallback_days),
                        fallback_used=True,
                        error=str(failure.cause),
                    )
                )
            else:
                all_days.extend(chunk_days)
                self.update_context(context, all_days, chunk_days)
                successful += 1
                chunk_results.append(
                    ChunkResult(chunk_id=chunk.id, focus=chunk.focus, success=True, days=len(chunk_days))
                )
                logger.info("Chunk %s completed: %s days generated", chunk.id, len(chunk_days))
                await self._sleep(self.config.inter_chunk_delay)

            if on_progress is not None:
                await _resolve(on_progress(ProgressEvent(current=index, total=total, chunk_id=chunk.id)))

        days = self.fit_to_duration(all_days, trip)
        logger.info(
            "Chunked generation finished: %s days, %s/%s chunks generated",
            len(days),
            successful,
            total,
        )
        return ItineraryResult(
            days=days,
            summary=summarize_days(days, successful, failed),
            chunk_results=chunk_results,
        )

    async def generate_chunk(
        self,
        trip: TripSpec,
        chunk: Chunk,
        context: GenerationContext,
        collaborators: ItineraryCollaborators,
    ) -> List[Day]:
        """Prompt, call and parse one chunk into exactly ``chunk.span`` days.

        Raises:
            CredentialError: propagated untouched, it aborts the run
            ChunkGenerationFailure: any other failure, to be replaced by fallback days
        """

        chunk_trip = build_chunk_trip(trip, chunk, context)
        try:
            prompt = await _resolve(
                collaborators.build_chunked_itinerary_prompt(chunk_trip, chunk, context)
            )
            options = GenerationOptions(
                max_output_tokens=max_tokens_for_chunk(chunk, self.config),
                temperature=(
                    self.config.high_priority_temperature
                    if chunk.priority == "high"
                    else self.config.default_temperature
                ),
            )
            result = await self.gateway.call(self.config.model_tier, prompt, options)
            if isinstance(result, FatalError):
                raise result.error
            if isinstance(result, TransientError):
                raise ChunkGenerationFailure(chunk.id, result.error)

            parsed = await _resolve(
                collaborators.process_chunked_itinerary_response(
                    result.response.content, chunk_trip, chunk
                )
            )
            days = coerce_days(parsed)
        except (CredentialError, ChunkGenerationFailure):
            raise
        except Exception as exc:
            # Collaborators are caller code; whatever they raise costs only this chunk.
            raise ChunkGenerationFailure(chunk.id, exc) from exc

        if not days:
            raise ChunkGenerationFailure(chunk.id, "no days returned")
        for day in days:
            if day.chunk_id is None:
                day.chunk_id = chunk.id
        return self.fit_to_chunk(days, trip, chunk)

    def fit_to_chunk(self, days: Sequence[Day], trip: TripSpec, chunk: Chunk) -> List[Day]:
        """Trim or pad ``days`` so they cover exactly ``chunk``'s day range.

        Missing trailing days become fallback days tagged with the chunk's id, so
        later chunks always start on their own first day.
        """

        fitted = list(days[: chunk.span])
        if len(days) > chunk.span:
            logger.warning(
                "Chunk %s returned %s days for days %s, trimming %s",
                chunk.id,
                len(days),
                chunk.day_range,
                len(days) - chunk.span,
            )
        if len(fitted) < chunk.span:
            missing = Chunk(
                id=chunk.id,
                start_day=chunk.start_day + len(fitted),
                end_day=chunk.end_day,
                priority=chunk.priority,
                focus=chunk.focus,
                detail_level=chunk.detail_level,
            )
            logger.warning("Chunk %s short by %s days, padding with fallback days", chunk.id, missing.span)
            fitted.extend(self.fallback.generate_fallback_days(trip, missing))
        return fitted

    def update_context(
        self, context: GenerationContext, all_days: Sequence[Day], chunk_days: Sequence[Day]
    ) -> None:
        """Advance the rolling context after a successful chunk."""

        context.previous_days = list(all_days[-self.overlap_days:]) if self.overlap_days else []
        context.processed_chunks += 1
        for day in chunk_days:
            for activity in day.activities:
                if activity.category:
                    context.activity_categories.add(activity.category)
        context.total_budget_used += sum(day.cost for day in chunk_days)

    async def generate_standard_itinerary(
        self,
        trip: TripSpec,
        collaborators: ItineraryCollaborators,
        plan: SegmentationPlan,
    ) -> ItineraryResult:
        """Single-call generation for short trips, fitted to the duration like chunked runs."""

        chunk = plan.chunks[0]
        logger.info("Generating %s-day trip to %s in a single call", trip.duration, trip.destination.label)
        try:
            parsed = await _resolve(collaborators.generate_standard_itinerary(trip))
            days = coerce_days(parsed)
            if not days:
                raise ChunkGenerationFailure(chunk.id, "no days returned")
        except CredentialError:
            raise
        except Exception as exc:
            cause = exc.cause if isinstance(exc, ChunkGenerationFailure) else exc
            logger.warning("Standard generation failed, using fallback days: %s", cause)
            days = self.fallback.generate_fallback_days(trip, chunk)
            result = ChunkResult(
                chunk_id=chunk.id,
                focus=chunk.focus,
                success=False,
                days=len(days),
                fallback_used=True,
                error=str(cause),
            )
            fitted = self.fit_to_duration(days, trip)
            return ItineraryResult(
                days=fitted, summary=summarize_days(fitted, 0, 1), chunk_results=[result]
            )

        fitted = self.fit_to_duration(days, trip)
        return ItineraryResult(
            days=fitted,
            summary=summarize_days(fitted, 1, 0),
            chunk_results=[ChunkResult(chunk_id=chunk.id, focus=chunk.focus, success=True, days=len(days))],
        )

    def fit_to_duration(self, days: Sequence[Day], trip: TripSpec) -> List[Day]:
        """Trim extra days or pad with fallback days so exactly ``duration`` remain."""

        fitted = list(days[: trip.duration])
        if len(days) > trip.duration:
            logger.warning("Trimming %s surplus days", len(days) - trip.duration)
        if len(fitted) < trip.duration:
            missing = Chunk(id="padding", start_day=len(fitted) + 1, end_day=trip.duration)
            logger.warning("Padding itinerary with %s fallback days", missing.span)
            fitted.extend(self.fallback.generate_fallback_days(trip, missing))
        return fitted


async def generate_chunked_itinerary(
    trip: TripSpec,
    collaborators: ItineraryCollaborators,
    *,
    gateway: AIGatewayClient,
    segmenter: Optional[TripSegmenter] = None,
    config: Optional[GenerationConfig] = None,
    fallback: Optional[FallbackDayGenerator] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ItineraryResult:
    """Module-level entry point building a throwaway ``GenerationOrchestrator``."""

    orchestrator = GenerationOrchestrator(gateway, segmenter, config, fallback)
    return await orchestrator.generate_chunked_itinerary(trip, collaborators, on_progress)
