"""Generation pipeline: sequential chunk orchestration and fallback days."""
from longtrip.pipelines.fallback import FallbackDayGenerator
from longtrip.pipelines.generation import (
    GenerationOrchestrator,
    ItineraryCollaborators,
    build_chunk_trip,
    generate_chunked_itinerary,
)

__all__ = [
    "FallbackDayGenerator",
    "GenerationOrchestrator",
    "ItineraryCollaborators",
    "build_chunk_trip",
    "generate_chunked_itinerary",
]
