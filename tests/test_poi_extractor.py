"""Tests for rule-based POI extraction."""
from __future__ import annotations

import logging

import pytest

from longtrip.core.schemas import Activity, Coordinates, Day, Destination, Location, TripSpec
from longtrip.services.poi import (
    POIExtractor,
    activities_from_days,
    create_poi_extraction_tool,
    extract_country_from_destination,
    extract_pois_from_itinerary,
)


@pytest.fixture
def extractor() -> POIExtractor:
    return POIExtractor()


@pytest.fixture
def tokyo() -> Destination:
    return Destination(destination="Tokyo, Japan", city="Tokyo", country="Japan")


def test_title_extraction_finds_senso_ji(extractor, tokyo):
    activity = Activity(title="Visit the Senso-ji Temple in Asakusa")

    pois = extractor.extract_pois_from_activity(activity, tokyo)
    by_name = {poi.name: poi for poi in pois}

    assert "Senso-ji Temple" in by_name
    senso_ji = by_name["Senso-ji Temple"]
    assert senso_ji.category == "cultural"
    assert senso_ji.confidence >= 0.7
    assert senso_ji.extracted_from == "text"
    assert senso_ji.city == "Tokyo"
    assert senso_ji.country == "Japan"
    assert "Asakusa" in by_name
    assert "Senso-ji Temple in Asakusa" in by_name


def test_explicit_location_skips_text_extraction(extractor, tokyo):
    activity = Activity(
        title="Visit the Tokyo National Museum",
        category="cultural",
        location=Location(name="Meiji Shrine", coordinates=Coordinates(lat=35.6764, lng=139.6993)),
    )

    pois = extractor.extract_pois_from_activity(activity, tokyo)

    assert len(pois) == 1
    poi = pois[0]
    assert poi.name == "Meiji Shrine"
    assert poi.extracted_from == "location"
    assert poi.coordinates == Coordinates(lat=35.6764, lng=139.6993)
    assert poi.confidence == 1.0


def test_generic_location_falls_back_to_text(extractor, tokyo):
    activity = Activity(
        title="Explore Ueno Park",
        location=Location(name="Local Area", address="Tokyo"),
    )
    pois = extractor.extract_pois_from_activity(activity, tokyo)
    assert [poi.name for poi in pois] == ["Ueno Park"]
    assert pois[0].category == "nature"


def test_fallback_activities_are_ignored(extractor, tokyo):
    activity = Activity(
        title="Day 3 - Flexible Exploration",
        description="Open day for personal exploration and spontaneous discoveries in Tokyo",
        fallback_generated=True,
    )
    assert extractor.extract_pois_from_activity(activity, tokyo) == []


def test_itinerary_deduplicates_keeping_highest_confidence(extractor, tokyo):
    activities = [
        Activity(title="Lunch near Senso-ji Temple", category="food"),
        Activity(title="Evening at Senso-ji Temple", category="cultural"),
    ]

    pois = extractor.extract_pois_from_itinerary(activities, tokyo)

    matches = [poi for poi in pois if poi.name.lower() == "senso-ji temple"]
    assert len(matches) == 1
    assert matches[0].confidence == 1.0
    assert len({poi.key for poi in pois}) == len(pois)


def test_deduplicate_preserves_first_seen_order(extractor, tokyo):
    low = extractor.create_poi("Ueno Park", tokyo, "unknown")
    other = extractor.create_poi("Tsukiji Outer Market", tokyo, "food")
    high = extractor.create_poi("Ueno Park", tokyo, "nature")

    deduped = POIExtractor.deduplicate_pois([low, other, high])

    assert [poi.name for poi in deduped] == ["Ueno Park", "Tsukiji Outer Market"]
    assert deduped[0].confidence == high.confidence


def test_invalid_activity_is_logged_and_skipped(extractor, tokyo, caplog):
    activities = [
        {"title": "Visit Tokyo Tower", "cost": -5},
        {"title": "Visit Tokyo Tower", "category": "cultural"},
    ]
    with caplog.at_level(logging.ERROR, logger="longtrip.services.poi.extractor"):
        pois = extractor.extract_pois_from_itinerary(activities, tokyo)

    assert [poi.name for poi in pois] == ["Tokyo Tower"]
    assert "Error extracting POI" in caplog.text


def test_confidence_is_always_bounded(extractor, tokyo):
    texts = [
        "Visit the Imperial Palace East Gardens and see the Tokyo Metropolitan Government Building",
        "Go to Tsukiji Outer Market, then tour Hamarikyu Gardens",
        "Experience Kabuki at Kabukiza Theatre",
    ]
    for category in ("cultural", "food", "unknown"):
        for text in texts:
            for poi in extractor.extract_from_text(text, tokyo, category):
                assert 0.0 <= poi.confidence <= 1.0


@pytest.mark.parametrize(
    "name, activity_category, expected",
    [
        ("Tsukiji Market", "food", "food"),
        ("Tsukiji Market", "shopping", "shopping"),
        ("Tsukiji Market", "unknown", "food"),
        ("Park Hyatt Hotel", "accommodation", "accommodation"),
        ("Narita Airport", None, "transportation"),
        ("Golden Gai", None, "cultural"),
    ],
)
def test_classify_poi(extractor, name, activity_category, expected):
    assert extractor.classify_poi(name, activity_category) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  the   Louvre Museum!  ", "Louvre Museum"),
        ("[Ueno Park]", "Ueno Park"),
        ("An Izakaya (Shinjuku)", "Izakaya Shinjuku"),
        (None, ""),
    ],
)
def test_clean_place_name(raw, expected):
    assert POIExtractor.clean_place_name(raw) == expected


@pytest.mark.parametrize(
    "name, expected",
    [
        ("city center", True),
        ("Shopping district", True),
        ("nearby cafes", True),
        ("free time", True),
        ("ab", True),
        ("x" * 101, True),
        (None, True),
        ("Louvre Museum", False),
    ],
)
def test_is_generic_location(extractor, name, expected):
    assert extractor.is_generic_location(name) is expected


def test_extra_exclude_words(tokyo):
    extractor = POIExtractor(extra_exclude_words=["Hotel"])
    assert extractor.is_generic_location("Park Hyatt Hotel") is True


def test_extract_proper_nouns_trims_common_words(extractor):
    text = "Take the Yamanote Line to Shibuya Crossing then Dinner"
    assert extractor.extract_proper_nouns(text) == ["Yamanote Line", "Shibuya Crossing"]


def test_country_inference_when_destination_has_no_country(extractor):
    hanoi = Destination(destination="Hanoi, Vietnam")
    poi = extractor.create_poi("Hoan Kiem Lake", hanoi, "nature")
    assert poi.city == "Hanoi, Vietnam"
    assert poi.country == "Vietnam"

    atlantis = Destination(city="Atlantis")
    poi = extractor.create_poi("Poseidon Temple", atlantis, "cultural")
    assert poi.city == "Atlantis"
    assert poi.country == "Unknown"


@pytest.mark.parametrize(
    "destination, expected",
    [
        ("London, UK", "United Kingdom"),
        ("New York, USA", "United States"),
        ("Kyoto, Japan", "Japan"),
        ("Kyiv, Ukraine", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_country_from_destination(destination, expected):
    assert extract_country_from_destination(destination) == expected


def test_trip_spec_is_accepted_as_context():
    trip = TripSpec(duration=3, destination=Destination(destination="Bangkok, Thailand", city="Bangkok"))
    pois = extract_pois_from_itinerary([{"title": "Visit Wat Pho Temple"}], trip)
    assert [(poi.name, poi.city, poi.country) for poi in pois] == [("Wat Pho Temple", "Bangkok", "Thailand")]


def test_activities_from_days_flattens_in_order():
    days = [
        Day(activities=[Activity(title="a"), Activity(title="b")]),
        Day(activities=[]),
        Day(activities=[Activity(title="c")]),
    ]
    assert [activity.title for activity in activities_from_days(days)] == ["a", "b", "c"]


def test_validate_poi(extractor):
    valid = {
        "name": "Tokyo Tower",
        "category": "cultural",
        "confidence": 0.8,
        "extracted_from": "text",
    }
    assert extractor.validate_poi(valid) is True
    assert extractor.validate_poi({**valid, "name": "ab"}) is False
    assert extractor.validate_poi({**valid, "confidence": 1.5}) is False


def test_service_stats(extractor):
    stats = extractor.service_stats()
    assert stats["category_keywords"][0] == "cultural"
    assert stats["category_keywords"][-1] == "logistics"
    assert stats["location_indicators"] == 7
    assert stats["patterns"]["cultural"] == 5


def test_poi_extraction_tool(extractor):
    tool = create_poi_extraction_tool(extractor)
    assert tool.name == "extract_pois_tool"

    result = tool.invoke(
        {
            "activities": [{"title": "Visit the Senso-ji Temple in Asakusa"}],
            "destination": {"city": "Tokyo", "country": "Japan"},
        }
    )

    names = [poi["name"] for poi in result]
    assert "Senso-ji Temple" in names
    assert all(poi["country"] == "Japan" for poi in result)
