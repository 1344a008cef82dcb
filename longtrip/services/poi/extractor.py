"""Rule-based extraction of points of interest from generated itineraries.

Candidates come from two places: explicit ``location`` objects on activities and
free text (titles and descriptions). Free text is scanned with location-verb
phrase patterns ("visit X", "at X", ...) and a proper-noun heuristic. Every
candidate is cleaned, filtered against generic wording, classified through the
ordered category table in ``patterns`` and scored.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from longtrip.core.schemas import (
    Activity,
    Day,
    Destination,
    Location,
    POICandidate,
    TripSpec,
)
from longtrip.services.poi.patterns import DEFAULT_PATTERNS, PatternTables

logger = logging.getLogger(__name__)

TripContext = Union[TripSpec, Destination]

_LEADING_ARTICLE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_BRACKETS = re.compile(r"[()\[\]{}]")
_EDGE_PUNCTUATION = re.compile(r"^\W+|\W+$")
_WHITESPACE = re.compile(r"\s+")


def extract_country_from_destination(
    destination: Optional[str], patterns: PatternTables = DEFAULT_PATTERNS
) -> Optional[str]:
    """Return the first country whose pattern matches ``destination``."""

    if not destination or not isinstance(destination, str):
        return None
    for country, pattern in patterns.countries:
        if pattern.search(destination):
            return country
    return None


def activities_from_days(days: Iterable[Day]) -> List[Activity]:
    return [activity for day in days for activity in day.activities]


class POIExtractor:
    """Extracts deduplicated POI candidates from itinerary activities."""

    def __init__(
        self,
        patterns: PatternTables = DEFAULT_PATTERNS,
        *,
        extra_exclude_words: Sequence[str] = (),
    ) -> None:
        self.patterns = patterns
        self.exclude_words = tuple(patterns.exclude_words) + tuple(
            word.lower() for word in extra_exclude_words
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def extract_pois_from_itinerary(
        self,
        activities: Iterable[Union[Activity, Dict[str, Any]]],
        trip_context: TripContext,
    ) -> List[POICandidate]:
        """Extract POIs from every activity and deduplicate across the itinerary."""

        extracted: List[POICandidate] = []
        for raw_activity in activities:
            try:
                activity = (
                    raw_activity
                    if isinstance(raw_activity, Activity)
                    else Activity.model_validate(raw_activity)
                )
                extracted.extend(self.extract_pois_from_activity(activity, trip_context))
            except (ValidationError, TypeError, ValueError):
                logger.exception("Error extracting POI from activity; skipping it")
                continue
        return self.deduplicate_pois(extracted)

    def extract_pois_from_activity(
        self, activity: Activity, trip_context: TripContext
    ) -> List[POICandidate]:
        if activity.fallback_generated:
            return []

        category_hint = activity.category or "unknown"
        location = activity.location
        if location and location.name and not self.is_generic_location(location.name):
            location_poi = self.create_poi_from_location(location, trip_context, category_hint)
            if location_poi is not None:
                return [location_poi]

        pois: List[POICandidate] = []
        pois.extend(self.extract_from_text(activity.title, trip_context, category_hint))
        pois.extend(self.extract_from_text(activity.description, trip_context, category_hint))
        return self.deduplicate_pois(pois)

    def extract_from_text(
        self, text: Optional[str], trip_context: TripContext, activity_category: str
    ) -> List[POICandidate]:
        if not text:
            return []

        pois: List[POICandidate] = []
        for pattern in self.patterns.location_indicators:
            match = pattern.search(text)
            if not match or not match.group(1):
                continue
            poi = self.create_poi(match.group(1), trip_context, activity_category)
            if poi is not None:
                pois.append(poi)

        for noun in self.extract_proper_nouns(text):
            poi = self.create_poi(noun, trip_context, activity_category)
            if poi is not None:
                pois.append(poi)
        return pois

    # ------------------------------------------------------------------
    # Candidate construction
    # ------------------------------------------------------------------

    def _place(self, trip_context: TripContext) -> tuple[str, str]:
        destination = trip_context.destination if isinstance(trip_context, TripSpec) else trip_context
        city = destination.city or destination.destination or "Unknown"
        country = (
            destination.country
            or extract_country_from_destination(destination.destination, self.patterns)
            or extract_country_from_destination(destination.city, self.patterns)
            or "Unknown"
        )
        return city, country

    def create_poi(
        self, place_name: str, trip_context: TripContext, activity_category: str
    ) -> Optional[POICandidate]:
        clean_name = self.clean_place_name(place_name)
        if not clean_name or self.is_generic_location(clean_name):
            return None

        category = self.classify_poi(clean_name, activity_category)
        city, country = self._place(trip_context)
        return POICandidate(
            name=clean_name,
            city=city,
            country=country,
            category=category,
            confidence=self.calculate_confidence(clean_name, category, activity_category),
            extracted_from="text",
            original_text=place_name,
        )

    def create_poi_from_location(
        self, location: Location, trip_context: TripContext, activity_category: str
    ) -> Optional[POICandidate]:
        place_name = self.clean_place_name(location.name)
        if not place_name or self.is_generic_location(place_name):
            return None

        category = self.classify_poi(place_name, activity_category)
        city, country = self._place(trip_context)
        return POICandidate(
            name=place_name,
            city=city,
            country=country,
            category=category,
            confidence=self.calculate_confidence(place_name, category, activity_category),
            extracted_from="location",
            original_text=location.name,
            coordinates=location.coordinates,
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def classify_poi(self, place_name: str, activity_category: Optional[str]) -> str:
        """Declared category first, then the full ordered table, else the default."""

        if activity_category:
            for pattern in self.patterns.category_patterns(activity_category):
                if pattern.search(place_name):
                    return activity_category

        for category, patterns in self.patterns.categories:
            if any(pattern.search(place_name) for pattern in patterns):
                return category
        return self.patterns.default_category

    @staticmethod
    def clean_place_name(place_name: Optional[str]) -> str:
        if not place_name or not isinstance(place_name, str):
            return ""
        cleaned = _LEADING_ARTICLE.sub("", place_name.strip())
        cleaned = _WHITESPACE.sub(" ", cleaned)
        cleaned = _BRACKETS.sub("", cleaned)
        cleaned = _EDGE_PUNCTUATION.sub("", cleaned)
        return cleaned.strip()

    def is_generic_location(self, location_name: Optional[str]) -> bool:
        if not location_name or not isinstance(location_name, str):
            return True

        name = location_name.lower().strip()
        if any(word in name for word in self.exclude_words):
            return True
        if any(pattern.search(name) for pattern in self.patterns.generic_patterns):
            return True
        return len(name) < 3 or len(name) > 100

    def extract_proper_nouns(self, text: Optional[str]) -> List[str]:
        """Runs of capitalised words with stoplist words trimmed from both ends."""

        if not text:
            return []

        nouns: List[str] = []
        common = self.patterns.common_words
        for match in self.patterns.proper_noun.finditer(text):
            words = match.group(0).split()
            while words and words[0] in common:
                words.pop(0)
            while words and words[-1] in common:
                words.pop()
            noun = " ".join(words)
            if len(noun) > 2 and noun not in common:
                nouns.append(noun)
        return nouns

    def calculate_confidence(
        self, place_name: str, category: str, activity_category: Optional[str]
    ) -> float:
        confidence = 0.5
        if any(pattern.search(place_name) for pattern in self.patterns.category_patterns(category)):
            confidence += 0.2
        if category == activity_category:
            confidence += 0.1
        if len(place_name) > 10:
            confidence += 0.1
        if place_name[:1].isupper():
            confidence += 0.1
        return min(round(confidence, 2), 1.0)

    @staticmethod
    def deduplicate_pois(pois: Iterable[POICandidate]) -> List[POICandidate]:
        """Keep one POI per normalised (name, city, country), preferring higher confidence."""

        best: Dict[str, POICandidate] = {}
        for poi in pois:
            existing = best.get(poi.key)
            if existing is None or poi.confidence > existing.confidence:
                best[poi.key] = poi
        return list(best.values())

    @staticmethod
    def validate_poi(poi: Any) -> bool:
        if isinstance(poi, POICandidate):
            return True
        try:
            POICandidate.model_validate(poi)
        except ValidationError:
            return False
        return True

    def service_stats(self) -> Dict[str, Any]:
        return {
            "patterns": {name: len(patterns) for name, patterns in self.patterns.categories},
            "category_keywords": [name for name, _ in self.patterns.categories],
            "location_indicators": len(self.patterns.location_indicators),
            "exclude_words": len(self.exclude_words),
        }


def extract_pois_from_itinerary(
    activities: Iterable[Union[Activity, Dict[str, Any]]],
    trip_context: TripContext,
    *,
    extractor: Optional[POIExtractor] = None,
) -> List[POICandidate]:
    """Module-level convenience wrapper around ``POIExtractor``."""

    return (extractor or POIExtractor()).extract_pois_from_itinerary(activities, trip_context)
