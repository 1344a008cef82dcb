"""Ordered pattern tables used to find and classify points of interest.

Order matters: classification and country inference return the first match.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Pattern, Tuple

CategoryTable = Tuple[Tuple[str, Tuple[Pattern[str], ...]], ...]


def _compile(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


POI_CATEGORY_PATTERNS: CategoryTable = (
    (
        "cultural",
        _compile(
            r"temple|shrine|pagoda|cathedral|church|mosque|monastery",
            r"museum|gallery|cultural center|heritage|historic",
            r"palace|castle|fort|citadel|imperial",
            r"memorial|monument|statue|tomb",
            r"ancient|archaeological|ruins",
        ),
    ),
    (
        "food",
        _compile(
            r"restaurant|cafe|coffee|dining|eatery|bistro",
            r"market|food court|street food|vendor",
            r"\bbar\b|\bpub\b|brewery|winery",
            r"cooking class|food tour",
        ),
    ),
    (
        "nature",
        _compile(
            r"park|garden|botanical|\bzoo\b|safari",
            r"beach|lake|river|waterfall|hot spring",
            r"mountain|\bhill|volcano|\bcave|canyon",
            r"forest|jungle|nature reserve|national park",
        ),
    ),
    (
        "shopping",
        _compile(
            r"\bmall\b|shopping center|market|bazaar",
            r"boutique|\bstore\b|\bshop\b|outlet",
            r"souvenir|handicraft|artisan",
        ),
    ),
    (
        "entertainment",
        _compile(
            r"theater|theatre|cinema|\bshow\b|performance|concert",
            r"amusement park|theme park|water park",
            r"nightclub|disco|karaoke|entertainment",
            r"sports|stadium|arena|\bgym\b",
        ),
    ),
    (
        "accommodation",
        _compile(
            r"hotel|resort|hostel|guesthouse|lodge",
            r"apartment|airbnb|homestay|villa",
        ),
    ),
    (
        "transportation",
        _compile(
            r"airport|station|terminal|\bport\b",
            r"\btaxi\b|\bbus\b|\btrain\b|\bmetro\b|subway",
            r"car rental|transport|transfer",
        ),
    ),
    (
        "logistics",
        _compile(
            r"check-in|check-out|arrival|departure",
            r"luggage|baggage|storage",
            r"\bvisa\b|immigration|customs",
            r"\brest\b|free time|leisure|\bbreak\b",
        ),
    ),
)

# Each pattern captures the object of a location verb up to the next punctuation.
LOCATION_INDICATORS: Tuple[Pattern[str], ...] = _compile(
    r"\bat\s+([^,.;:!?\n]+)",
    r"\bvisit\s+([^,.;:!?\n]+)",
    r"\bexplore\s+([^,.;:!?\n]+)",
    r"\bgo\s+to\s+([^,.;:!?\n]+)",
    r"\btour\s+([^,.;:!?\n]+)",
    r"\bsee\s+([^,.;:!?\n]+)",
    r"\bexperience\s+([^,.;:!?\n]+)",
)

# Runs of capitalised (optionally hyphenated) words, e.g. "Senso-ji Temple".
PROPER_NOUN_PATTERN: Pattern[str] = re.compile(
    r"\b[A-Z][a-z]+(?:-[A-Za-z]+)*(?:\s+[A-Z][a-z]+(?:-[A-Za-z]+)*)*"
)

EXCLUDE_WORDS: Tuple[str, ...] = (
    "local", "area", "vicinity", "nearby", "around", "general",
    "traditional", "authentic", "popular", "famous", "best",
    "recommended", "suggested", "optional", "various", "different",
)

GENERIC_PATTERNS: Tuple[Pattern[str], ...] = _compile(
    r"^(local|nearby|around|general)\s+",
    r"\b(area|vicinity|region|district)\b",
    r"^(city|town|village)\s+(center|centre)$",
    r"^(free\s+time|leisure|rest|break)$",
    r"^(various|different|multiple)\s+",
)

COMMON_WORDS: frozenset = frozenset({
    "Morning", "Afternoon", "Evening", "Night", "Day", "Time",
    "Visit", "Explore", "Tour", "Experience", "Enjoy", "Discover",
    "Traditional", "Local", "Famous", "Popular", "Best", "Great",
    "Beautiful", "Historic", "Ancient", "Modern", "New", "Old",
    "Food", "Meal", "Lunch", "Dinner", "Breakfast", "Activity",
    "The", "Start", "Head", "Walk", "Take", "Return", "Then", "After",
})

COUNTRY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
    (country, re.compile(pattern, re.IGNORECASE))
    for country, pattern in (
        ("Vietnam", r"vietnam|viet nam"),
        ("Japan", r"japan|nippon"),
        ("Thailand", r"thailand"),
        ("China", r"china"),
        ("Korea", r"korea"),
        ("Singapore", r"singapore"),
        ("Malaysia", r"malaysia"),
        ("Indonesia", r"indonesia"),
        ("Philippines", r"philippines"),
        ("France", r"france"),
        ("Italy", r"italy"),
        ("Spain", r"spain"),
        ("Germany", r"germany"),
        ("United Kingdom", r"\buk\b|united kingdom|britain|england"),
        ("United States", r"\busa\b|united states|america"),
    )
)


@dataclass(frozen=True)
class PatternTables:
    """All declarative tables the extractor reads; swap in a variant to customise."""

    categories: CategoryTable = POI_CATEGORY_PATTERNS
    location_indicators: Tuple[Pattern[str], ...] = LOCATION_INDICATORS
    exclude_words: Tuple[str, ...] = EXCLUDE_WORDS
    generic_patterns: Tuple[Pattern[str], ...] = GENERIC_PATTERNS
    common_words: frozenset = field(default=COMMON_WORDS)
    countries: Tuple[Tuple[str, Pattern[str]], ...] = COUNTRY_PATTERNS
    proper_noun: Pattern[str] = PROPER_NOUN_PATTERN
    default_category: str = "cultural"

    def category_patterns(self, category: str) -> Tuple[Pattern[str], ...]:
        for name, patterns in self.categories:
            if name == category:
                return patterns
        return ()


DEFAULT_PATTERNS = PatternTables()
