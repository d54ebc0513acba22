"""Tests for the two-call trip planner pipeline."""

from __future__ import annotations

import asyncio

import pytest

from agents.planner_agent import TripPlannerAgent, parse_order, validate_order
from errors import LLMServiceError, OrderValidationError, ParseError
from workflows.schemas import MatrixEntry, TextValue

CURRENT = {"lat": 37.40, "lng": 126.90}
SAVED = [
    {"id": "a", "displayName": {"text": "장소 A"}, "location": {"lat": 37.50, "lng": 127.00}},
    {"id": "b", "displayName": {"text": "장소 B"}, "location": {"latitude": 37.55, "longitude": 127.05}},
]
NARRATIVE = "1. 현재 위치에서 출발해 장소 A로 이동하세요 (5.2 km, 31 min).\n2. 장소 A에서 장소 B로 이동하세요."


def _run(planner, message="오늘 여행 계획 짜줘", **kwargs):
    kwargs.setdefault("language", "ko")
    return asyncio.run(planner.get_planner_response(message, [], **kwargs))


def test_vague_today_request_routes_from_current_location(fake_llm, fake_geo):
    llm = fake_llm("[0, 1, 2]", NARRATIVE)
    geo = fake_geo()
    planner = TripPlannerAgent(client=llm, geo=geo)

    result = _run(planner, current_location=CURRENT, saved_places=SAVED)

    assert [c.name for c in planner.last_run["candidates"]] == ["현재 위치", "장소 A", "장소 B"]
    assert planner.last_run["order"][0] == 0
    assert planner.last_run["accepted"] is True
    assert len(result.route_paths) == 2
    assert [(leg.origin_name, leg.destination_name) for leg in result.route_paths] == [
        ("현재 위치", "장소 A"),
        ("장소 A", "장소 B"),
    ]
    assert result.route_paths[1].destination.lat == pytest.approx(37.55)
    assert result.response
    assert "37." not in result.response

    assert all(mode == "TRANSIT" for _, _, mode in geo.direction_calls)
    assert geo.matrix_calls and geo.matrix_calls[0][2] == "DRIVE"

    order_prompt, narrative_prompt = llm.calls[0]["system_prompt"], llm.calls[1]["system_prompt"]
    assert "0: 현재 위치 (current location) [37.400000, 126.900000]" in order_prompt
    assert "2: 장소 B [37.550000, 127.050000]" in order_prompt
    assert "## Route details" in narrative_prompt
    assert "1. 현재 위치 -> 장소 A: 5.2 km, 31 min by public transit" in narrative_prompt
    assert "Always answer in 한국어" in narrative_prompt


def test_empty_saved_places_skips_routing(fake_llm, fake_geo):
    llm = fake_llm("저장된 장소가 없어요. 가고 싶은 곳을 먼저 저장해 주세요.")
    geo = fake_geo()
    planner = TripPlannerAgent(client=llm, geo=geo)

    result = _run(planner, "추천해줘", current_location=CURRENT, saved_places=[])

    assert result.route_paths == []
    assert result.response
    assert len(llm.calls) == 1
    assert "fewer than two places" in llm.calls[0]["system_prompt"]
    assert geo.matrix_calls == []
    assert geo.direction_calls == []


@pytest.mark.parametrize("raw", ["[0]", "[0, 3]", "[1, 1]", "[-1, 2]", "순서를 정할 수 없어요", "[]"])
def test_invalid_order_yields_empty_route(fake_llm, fake_geo, raw):
    llm = fake_llm(raw, "경로를 만들지 못했어요.")
    geo = fake_geo()
    planner = TripPlannerAgent(client=llm, geo=geo)

    result = _run(planner, current_location=CURRENT, saved_places=SAVED)

    assert result.route_paths == []
    assert result.response == "경로를 만들지 못했어요."
    assert planner.last_run["accepted"] is False
    assert geo.direction_calls == []
    assert "visiting order could not be determined" in llm.calls[1]["system_prompt"]


def test_failed_leg_is_skipped(fake_llm, fake_geo):
    geo = fake_geo(fail_legs=[0])
    planner = TripPlannerAgent(client=fake_llm("[0, 2, 1]", NARRATIVE), geo=geo)

    result = _run(planner, current_location=CURRENT, saved_places=SAVED)

    assert len(geo.direction_calls) == 2
    assert len(result.route_paths) == 1
    assert result.route_paths[0].origin_name == "장소 B"
    assert planner.last_run["failed_legs"] == [(0, 2)]


def test_order_inference_failure_is_swallowed(fake_llm, fake_geo, llm_failure):
    planner = TripPlannerAgent(client=fake_llm(llm_failure, NARRATIVE), geo=fake_geo())

    result = _run(planner, current_location=CURRENT, saved_places=SAVED)

    assert result.route_paths == []
    assert result.response == NARRATIVE


def test_narrative_failure_propagates(fake_llm, fake_geo, llm_failure):
    planner = TripPlannerAgent(client=fake_llm("[1, 2]", llm_failure), geo=fake_geo())

    with pytest.raises(LLMServiceError):
        _run(planner, current_location=CURRENT, saved_places=SAVED)


def test_matrix_is_shown_to_the_order_prompt(fake_llm, fake_geo):
    matrix = [
        MatrixEntry(origin_index=0, destination_index=1, distance=TextValue(text="9.1 km"), duration=TextValue(text="18 min")),
        MatrixEntry(origin_index=1, destination_index=1, distance=TextValue(text="0 m"), duration=TextValue(text="0 min")),
    ]
    llm = fake_llm("[0, 1]", NARRATIVE)
    planner = TripPlannerAgent(client=llm, geo=fake_geo(matrix=matrix))

    _run(planner, saved_places=SAVED)

    order_prompt = llm.calls[0]["system_prompt"]
    assert "0 -> 1: 18 min, 9.1 km" in order_prompt
    assert "1 -> 1" not in order_prompt


def test_matrix_skipped_for_many_candidates(fake_llm, fake_geo):
    many = [
        {"id": str(i), "display_name": f"P{i}", "location": {"lat": 37.5 + i / 100, "lng": 127.0}}
        for i in range(11)
    ]
    geo = fake_geo()
    llm = fake_llm("[0, 1]", NARRATIVE)
    planner = TripPlannerAgent(client=llm, geo=geo)

    result = _run(planner, saved_places=many)

    assert geo.matrix_calls == []
    assert "(not available)" in llm.calls[0]["system_prompt"]
    assert len(result.route_paths) == 1


def test_saved_places_without_coordinates_are_not_candidates(fake_llm, fake_geo):
    planner = TripPlannerAgent(client=fake_llm(NARRATIVE), geo=fake_geo())

    result = _run(planner, saved_places=[SAVED[0], {"id": "x", "display_name": "Unknown spot"}])

    assert [c.name for c in planner.last_run["candidates"]] == ["장소 A"]
    assert result.route_paths == []


def test_parse_and_validate_order():
    assert parse_order("Order: [2, 0, 1] because...") == [2, 0, 1]
    assert validate_order([2, 0, 1], 3) == [2, 0, 1]
    with pytest.raises(ParseError):
        parse_order("no list")
    with pytest.raises(OrderValidationError):
        validate_order([0, 3], 3)
    with pytest.raises(OrderValidationError):
        validate_order([0], 3)


def _route_body(polyline):
    return {"routes": [{"distanceMeters": 5200, "duration": "1860s", "polyline": {"encodedPolyline": polyline}}]}


def test_real_provider_tolerates_matrix_and_leg_failures(monkeypatch, fake_llm, fake_response):
    from tools import distance_matrix, routes
    from tools.geo_provider import GeoProvider

    leg_bodies = iter([ValueError("Expecting value"), _route_body("leg~2")])

    async def _matrix_not_json(method: str, url: str, **kw):
        return fake_response(ValueError("Expecting value"))

    async def _directions(method: str, url: str, **kw):
        return fake_response(next(leg_bodies))

    monkeypatch.setattr(distance_matrix, "GOOGLE_MAPS_API_KEY", "fake")
    monkeypatch.setattr(routes, "GOOGLE_MAPS_API_KEY", "fake")
    monkeypatch.setattr(distance_matrix, "_request", _matrix_not_json)
    monkeypatch.setattr(routes, "_request", _directions)
    llm = fake_llm("[0, 1, 2]", NARRATIVE)
    planner = TripPlannerAgent(client=llm, geo=GeoProvider())

    result = _run(planner, current_location=CURRENT, saved_places=SAVED)

    assert "(not available)" in llm.calls[0]["system_prompt"]
    assert [(leg.origin_name, leg.destination_name) for leg in result.route_paths] == [("장소 A", "장소 B")]
    assert result.route_paths[0].polyline == "leg~2"
    assert planner.last_run["failed_legs"] == [(0, 1)]
    assert result.response == NARRATIVE
