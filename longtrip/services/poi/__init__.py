"""Point-of-interest extraction from generated itineraries.

Public API:
    - POIExtractor: rule-based extractor (phrase patterns, proper nouns, scoring, dedup)
    - extract_pois_from_itinerary: convenience wrapper using the default tables
    - extract_country_from_destination: ordered country-pattern lookup
    - create_poi_extraction_tool: LangChain tool factory around the extractor
    - PatternTables / DEFAULT_PATTERNS: the declarative tables the extractor reads
"""
from longtrip.services.poi.extractor import (
    POIExtractor,
    activities_from_days,
    extract_country_from_destination,
    extract_pois_from_itinerary,
)
from longtrip.services.poi.patterns import DEFAULT_PATTERNS, PatternTables
from longtrip.services.poi.schemas import POIExtractionInput
from longtrip.services.poi.tools import create_poi_extraction_tool

__all__ = [
    "POIExtractor",
    "activities_from_days",
    "extract_country_from_destination",
    "extract_pois_from_itinerary",
    "DEFAULT_PATTERNS",
    "PatternTables",
    "POIExtractionInput",
    "create_poi_extraction_tool",
]
