"""Tests for ChatRuntime.handle_chat_turn and the LangGraph turn graph."""

from __future__ import annotations

import asyncio

from agents.chat_agent import CommunicatorAgent, SearchAgent
from agents.llm_client import NO_API_KEY_MESSAGE, GeminiChatClient
from agents.planner_agent import TripPlannerAgent
from agents.supervisor_agent import SupervisorAgent
from workflows.memory import ConversationMemory, SavedPlacesRepository
from workflows.runtime import ChatRuntime
from workflows.storage import InMemoryStore
from workflows.travel_graph import ERROR_MESSAGES, build_travel_map_graph

CURRENT = {"lat": 37.40, "lng": 126.90}
SAVED = [
    {"id": "a", "displayName": {"text": "장소 A"}, "location": {"lat": 37.50, "lng": 127.00}},
    {"id": "b", "displayName": {"text": "장소 B"}, "location": {"latitude": 37.55, "longitude": 127.05}},
]


def _runtime(fake_geo, supervisor_llm, agent_llm, planner_llm=None, geo=None, store=None):
    geo = geo or fake_geo()
    store = store or InMemoryStore()
    return ChatRuntime(
        supervisor=SupervisorAgent(client=supervisor_llm),
        communicator=CommunicatorAgent(client=agent_llm),
        search_agent=SearchAgent(client=agent_llm),
        planner=TripPlannerAgent(client=planner_llm or agent_llm, geo=geo),
        geo=geo,
        memory=ConversationMemory(store),
        saved_places=SavedPlacesRepository(store),
    )


def test_korean_trip_request_is_planned_with_two_legs(fake_llm, fake_geo, llm_failure):
    # Supervisor LLM is down, so keyword routing picks the planner.
    planner_llm = fake_llm("[0, 1, 2]", "현재 위치에서 장소 A, 장소 B 순서로 이동하세요.")
    runtime = _runtime(fake_geo, fake_llm(llm_failure), fake_llm(), planner_llm)

    result = asyncio.run(runtime.handle_chat_turn(
        "오늘 여행 계획 짜줘", [], [], "ko", CURRENT, SAVED, 5000, 4.0,
    ))

    assert result.agent == "planner"
    assert len(result.route_paths) == 2
    assert result.route_paths[0].origin_name == "현재 위치"
    assert result.response
    assert "37." not in result.response
    assert result.search_query is None


def test_agent_failure_becomes_localized_apology(fake_llm, fake_geo, llm_failure):
    runtime = _runtime(fake_geo, fake_llm('{"agent": "communicator", "reason": "chat"}'), fake_llm(llm_failure))

    result = asyncio.run(runtime.handle_chat_turn("안녕", [], language="ko"))

    assert result.agent == "communicator"
    assert result.response == ERROR_MESSAGES["ko"]
    assert result.route_paths == []


def test_planner_failure_keeps_agent_and_clears_route(fake_llm, fake_geo, llm_failure):
    runtime = _runtime(
        fake_geo,
        fake_llm('{"agent": "planner", "reason": "route"}'),
        fake_llm(),
        fake_llm("[0, 1]", llm_failure),
    )

    result = asyncio.run(runtime.handle_chat_turn("Plan my day", [], language="en", saved_places=SAVED))

    assert result.agent == "planner"
    assert result.response == ERROR_MESSAGES["en"]
    assert result.route_paths == []


def test_search_query_triggers_callback(fake_llm, fake_geo):
    searched = []

    async def on_search(query):
        searched.append(query)

    runtime = _runtime(
        fake_geo,
        fake_llm('{"agent": "search_agent", "reason": "search"}'),
        fake_llm("주변 냉면집을 검색해 볼게요.\nSEARCH_QUERY: 냉면"),
    )

    result = asyncio.run(runtime.handle_chat_turn("냉면 맛집 추천해줘", [], on_search=on_search))

    assert result.agent == "search_agent"
    assert result.response == "주변 냉면집을 검색해 볼게요."
    assert result.search_query == "냉면"
    assert searched == ["냉면"]


def test_failing_search_callback_is_swallowed(fake_llm, fake_geo):
    async def on_search(query):
        raise RuntimeError("map unavailable")

    runtime = _runtime(
        fake_geo,
        fake_llm('{"agent": "search_agent", "reason": "search"}'),
        fake_llm("찾아볼게요.\nSEARCH_QUERY: 카페"),
    )

    result = asyncio.run(runtime.handle_chat_turn("카페 찾아줘", [], on_search=on_search))

    assert result.search_query == "카페"
    assert result.response == "찾아볼게요."


def test_missing_gemini_key_answers_with_fixed_message(fake_geo):
    unconfigured = GeminiChatClient(api_key="")
    runtime = _runtime(fake_geo, unconfigured, unconfigured)

    result = asyncio.run(runtime.handle_chat_turn("오늘 일정 짜줘", [], saved_places=SAVED))

    assert result.agent == "communicator"
    assert result.response == NO_API_KEY_MESSAGE
    assert result.route_paths == []


def test_current_location_is_enriched_with_address(fake_llm, fake_geo):
    agent_llm = fake_llm("안양에 계시네요.")
    runtime = _runtime(
        fake_geo,
        fake_llm('{"agent": "communicator", "reason": "chat"}'),
        agent_llm,
        geo=fake_geo(address="경기도 안양시 동안구"),
    )

    asyncio.run(runtime.handle_chat_turn("나 어디야?", [], current_location=CURRENT))

    assert "Address: 경기도 안양시 동안구" in agent_llm.calls[0]["system_prompt"]


def test_chat_persists_turns_and_uses_saved_places(fake_llm, fake_geo):
    store = InMemoryStore()
    SavedPlacesRepository(store).save(SAVED)
    planner_llm = fake_llm("[1, 2]", "장소 A에서 장소 B로 가세요.")
    runtime = _runtime(
        fake_geo,
        fake_llm('{"agent": "planner", "reason": "route"}'),
        fake_llm(),
        planner_llm,
        store=store,
    )

    result = asyncio.run(runtime.chat("경로 보여줘", current_location=CURRENT))

    assert len(result.route_paths) == 1
    history = runtime.memory.load()
    assert [(m.sender, m.text) for m in history] == [
        ("user", "경로 보여줘"),
        ("assistant", "장소 A에서 장소 B로 가세요."),
    ]


def test_reverse_geocoding_failure_does_not_break_the_turn(monkeypatch, fake_llm, fake_response):
    from tools import geocoding
    from tools.geo_provider import GeoProvider

    async def _not_json(method: str, url: str, **kw):
        return fake_response(ValueError("Expecting value"))

    monkeypatch.setattr(geocoding, "GOOGLE_MAPS_API_KEY", "fake")
    monkeypatch.setattr(geocoding, "_request", _not_json)
    agent_llm = fake_llm("안녕하세요!")
    runtime = _runtime(None, fake_llm('{"agent": "communicator", "reason": "chat"}'), agent_llm, geo=GeoProvider())

    result = asyncio.run(runtime.handle_chat_turn("안녕", [], current_location=CURRENT))

    assert result.agent == "communicator"
    assert result.response == "안녕하세요!"
    assert "Address:" not in agent_llm.calls[0]["system_prompt"]


class _ExplodingGeo:
    async def reverse_geocode(self, lat, lng, language="ko"):
        raise RuntimeError("geocoder crashed")


def test_enrich_step_swallows_unexpected_errors(fake_llm, fake_geo):
    agent_llm = fake_llm("반가워요.")
    runtime = _runtime(fake_geo, fake_llm('{"agent": "communicator", "reason": "chat"}'), agent_llm)
    runtime.graph = build_travel_map_graph(
        runtime.supervisor, runtime.communicator, runtime.search_agent, runtime.planner, _ExplodingGeo()
    )

    result = asyncio.run(runtime.handle_chat_turn("안녕", [], current_location=CURRENT))

    assert result.response == "반가워요."
