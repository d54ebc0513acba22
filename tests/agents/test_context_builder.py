"""Tests for the per-agent map context block."""

from __future__ import annotations

from agents.context_builder import build_context
from workflows.schemas import Location, Place

HERE = Location(lat=37.40, lng=126.90, address="경기도 안양시 동안구")
CENTER = Location(lat=37.57, lng=126.98)

SAVED = [
    Place(
        id="a",
        display_name="경복궁",
        type="tourist_attraction",
        rating=4.6,
        user_rating_count=50213,
        formatted_address="서울 종로구 사직로 161",
        location=Location(lat=37.5796, lng=126.977),
    ),
]

RESULTS = [
    Place(id=f"r{i}", display_name=f"Cafe {i}", rating=4.0 + i / 100, location=Location(lat=37.41, lng=126.91))
    for i in range(12)
]


def test_empty_context_is_empty_string():
    assert build_context(None, None, [], [], 5000, 4.0, "communicator") == ""
    assert build_context(None, None, [], [], None, None, "planner") == ""


def test_communicator_context_has_all_sections():
    context = build_context(HERE, CENTER, SAVED, RESULTS, 3000, 4.0, "communicator")

    assert "=== CURRENT LOCATION ===" in context
    assert "Address: 경기도 안양시 동안구" in context
    assert "=== MAP CENTER ===" in context
    assert "1. 경복궁 | type: tourist_attraction | rating: 4.6 | reviews: 50213 | address: 서울 종로구 사직로 161" in context
    assert "=== SEARCH RESULTS (12) ===" in context
    assert "10. Cafe 9" in context
    assert "Cafe 10" not in context
    assert "km from current location" in context
    assert context.rstrip().endswith("Search radius: 3.0 km | Minimum rating: 4.0")


def test_planner_context_excludes_search_results_and_map_center():
    context = build_context(HERE, CENTER, SAVED, RESULTS, 5000, 0.0, "planner")

    assert "SEARCH RESULTS" not in context
    assert "Cafe" not in context
    assert "MAP CENTER" not in context
    assert "경복궁" in context
    assert "Search radius: 5.0 km" in context


def test_location_without_coordinates_is_skipped():
    context = build_context(None, None, [], RESULTS[:1], None, None, "search_agent")

    assert "CURRENT LOCATION" not in context
    assert "1. Cafe 0" in context
    assert "km from current location" not in context
    assert "Search radius: 5.0 km | Minimum rating: 0.0" in context
