from __future__ import annotations

import logging
from typing import Any, Dict

from langgraph.graph import END, START, StateGraph

from workflows.state import ChatTurnState

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    "ko": "죄송합니다. 응답을 생성하는 중 문제가 발생했습니다. 잠시 후 다시 시도해주세요.",
    "en": "Sorry, something went wrong while preparing a response. Please try again in a moment.",
    "ja": "申し訳ありません。応答の作成中に問題が発生しました。しばらくしてからもう一度お試しください。",
    "zh": "抱歉，生成回复时出现问题。请稍后再试。",
}


def error_message(language: str) -> str:
    code = (language or "ko").split("-")[0].lower()
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES["en"])


def _failure(state: ChatTurnState, agent: str, exc: Exception) -> Dict[str, Any]:
    logger.exception(f"{agent} failed to answer: {exc}")
    return {"response": error_message(state.language), "route_paths": [], "search_query": None, "failed": True}


def build_travel_map_graph(supervisor, communicator, search_agent, planner, geo=None, *, checkpointer=None):
    """One pass per user turn: enrich -> supervisor -> exactly one specialist."""
    builder = StateGraph(ChatTurnState)

    async def enrich(state: ChatTurnState) -> Dict[str, Any]:
        location = state.current_location
        if geo is None or location is None or location.address:
            return {}
        try:
            result = await geo.reverse_geocode(location.lat, location.lng, state.language)
        except Exception as e:
            logger.warning(f"Reverse geocoding skipped for this turn: {e}")
            return {}
        if result is None or not result.formatted_address:
            return {}
        return {"current_location": location.model_copy(update={"address": result.formatted_address})}

    async def route(state: ChatTurnState) -> Dict[str, Any]:
        try:
            selection = await supervisor.select_agent(state.message, state.history, state.language)
        except Exception as e:
            logger.exception(f"Agent selection failed, answering as communicator: {e}")
            return {"agent": "communicator", "reason": "selection failed"}
        return {"agent": selection.agent, "reason": selection.reason}

    async def run_planner(state: ChatTurnState) -> Dict[str, Any]:
        try:
            result = await planner.get_planner_response(
                state.message,
                state.history,
                state.language,
                state.current_location,
                state.saved_places,
                state.radius,
                state.min_rating,
            )
        except Exception as e:
            return _failure(state, "planner", e)
        return {"response": result.response, "route_paths": result.route_paths}

    async def run_search_agent(state: ChatTurnState) -> Dict[str, Any]:
        try:
            reply = await search_agent.get_reply(
                state.message,
                state.history,
                state.search_results,
                state.language,
                state.current_location,
                state.saved_places,
                state.radius,
                state.min_rating,
                state.map_center,
                search_enabled=state.search_enabled,
            )
        except Exception as e:
            return _failure(state, "search_agent", e)
        return {"response": reply.response, "search_query": reply.search_query}

    async def run_communicator(state: ChatTurnState) -> Dict[str, Any]:
        try:
            text = await communicator.get_response(
                state.message,
                state.history,
                state.search_results,
                state.language,
                state.current_location,
                state.saved_places,
                state.radius,
                state.min_rating,
                state.map_center,
            )
        except Exception as e:
            return _failure(state, "communicator", e)
        return {"response": text}

    builder.add_node("enrich", enrich)
    builder.add_node("route", route)
    builder.add_node("planner", run_planner)
    builder.add_node("search_agent", run_search_agent)
    builder.add_node("communicator", run_communicator)

    builder.add_edge(START, "enrich")
    builder.add_edge("enrich", "route")
    builder.add_edge("planner", END)
    builder.add_edge("search_agent", END)
    builder.add_edge("communicator", END)

    def next_agent(state: ChatTurnState) -> str:
        return state.agent or "communicator"

    builder.add_conditional_edges(
        "route",
        next_agent,
        {
            "planner": "planner",
            "search_agent": "search_agent",
            "communicator": "communicator",
        },
    )

    return builder.compile(checkpointer=checkpointer)
