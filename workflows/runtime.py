"""
workflows/runtime.py

ChatRuntime owns the agent instances and the LangGraph turn graph, and is the
single entry point the API and the interactive shell use for a chat turn.

Usage:
    python -m workflows.runtime --lat 37.5665 --lng 126.9780 --language ko
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import config
from agents.chat_agent import CommunicatorAgent, SearchAgent
from agents.planner_agent import TripPlannerAgent
from agents.supervisor_agent import SupervisorAgent
from tools.geo_provider import GeoProvider
from workflows.memory import ConversationMemory, SavedPlacesRepository
from workflows.schemas import ChatTurnResult, Message, coerce_location, coerce_places
from workflows.state import ChatTurnState
from workflows.travel_graph import build_travel_map_graph, error_message

logger = logging.getLogger(__name__)

SearchCallback = Callable[[str], Awaitable[Any]]


class ChatRuntime:
    """Runtime helper that owns agent instances and LangGraph execution."""

    def __init__(
        self,
        *,
        supervisor: Optional[SupervisorAgent] = None,
        communicator: Optional[CommunicatorAgent] = None,
        search_agent: Optional[SearchAgent] = None,
        planner: Optional[TripPlannerAgent] = None,
        geo: Optional[GeoProvider] = None,
        memory: Optional[ConversationMemory] = None,
        saved_places: Optional[SavedPlacesRepository] = None,
    ) -> None:
        self.geo = geo or GeoProvider()
        self.supervisor = supervisor or SupervisorAgent()
        self.communicator = communicator or CommunicatorAgent()
        self.search_agent = search_agent or SearchAgent()
        self.planner = planner or TripPlannerAgent(geo=self.geo)
        self.memory = memory or ConversationMemory()
        self.saved_places = saved_places or SavedPlacesRepository(self.memory.store)

        self.graph = build_travel_map_graph(
            self.supervisor,
            self.communicator,
            self.search_agent,
            self.planner,
            self.geo,
        )

    async def handle_chat_turn(
        self,
        message: str,
        history: Optional[Sequence[Any]] = None,
        search_results: Sequence[Any] = (),
        language: str = config.DEFAULT_LANGUAGE,
        current_location: Any = None,
        saved_places: Optional[Sequence[Any]] = None,
        radius: Optional[float] = None,
        min_rating: Optional[float] = None,
        on_search: Optional[SearchCallback] = None,
        map_center: Any = None,
    ) -> ChatTurnResult:
        """Route one user message to a specialist and return the unified envelope.

        ``history`` and ``saved_places`` default to the persisted repositories.
        ``route_paths == []`` tells the caller to clear any drawn route. When
        the search agent proposes a query and ``on_search`` is given, the
        callback is awaited before returning; its failures are only logged.
        """
        if history is None:
            history = self.memory.load()
        if saved_places is None:
            saved_places = self.saved_places.load()

        state = ChatTurnState(
            message=message,
            history=[m if isinstance(m, Message) else Message.model_validate(m) for m in history],
            language=language or config.DEFAULT_LANGUAGE,
            current_location=coerce_location(current_location),
            map_center=coerce_location(map_center),
            saved_places=coerce_places(saved_places),
            search_results=coerce_places(search_results),
            radius=radius,
            min_rating=min_rating,
            search_enabled=on_search is not None,
        )

        result = await self.graph.ainvoke(state.model_dump())
        final = ChatTurnState.model_validate(result)
        agent = final.agent or "communicator"
        response = final.response or error_message(final.language)

        if final.search_query and on_search is not None:
            try:
                await on_search(final.search_query)
            except Exception as e:
                logger.error(f"Search callback failed for {final.search_query!r}: {e}")

        logger.info(f"Turn answered by {agent} with {len(final.route_paths)} route leg(s)")
        return ChatTurnResult(
            response=response,
            agent=agent,
            search_query=final.search_query,
            route_paths=final.route_paths,
        )

    async def chat(self, message: str, **kwargs: Any) -> ChatTurnResult:
        """Run a turn against the persisted history and record both messages."""
        history = self.memory.load()
        result = await self.handle_chat_turn(message, history, **kwargs)
        self.memory.append(
            Message(text=message, sender="user"),
            Message(text=result.response, sender="assistant"),
        )
        return result


# ==================== INTERACTIVE SHELL ====================

HELP_TEXT = "Commands: /history, /clear, /save <place query>, /quit"


async def _save_place(runtime: ChatRuntime, query: str, location: Any, language: str) -> None:
    places = await runtime.geo.search_places(query, location, language)
    if not places:
        print(f"   No place found for '{query}'.")
        return
    saved = runtime.saved_places.add(places[0])
    print(f"   ⭐ Saved {places[0].name} ({len(saved)} saved place(s))")


async def interactive(language: str, location: Any) -> None:
    runtime = ChatRuntime()
    found_results = []

    async def on_search(query: str) -> None:
        nonlocal found_results
        found_results = await runtime.geo.search_places(query, location, language)
        print(f"   🔎 Map search '{query}': {len(found_results)} result(s)")

    missing = config.validate_api_keys()
    if missing:
        print(f"⚠️  Missing API keys: {', '.join(missing)}")
    print(HELP_TEXT)

    while True:
        try:
            user_input = input("👤 You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not user_input:
            continue

        if user_input in ("/quit", "/exit"):
            return
        if user_input == "/history":
            for m in runtime.memory.load():
                print(f"   [{m.sender}] {m.text}")
            continue
        if user_input == "/clear":
            runtime.memory.clear()
            print("   History cleared.")
            continue
        if user_input.startswith("/save "):
            await _save_place(runtime, user_input[len("/save "):].strip(), location, language)
            continue
        if user_input.startswith("/"):
            print(HELP_TEXT)
            continue

        result = await runtime.chat(
            user_input,
            search_results=found_results,
            language=language,
            current_location=location,
            on_search=on_search,
        )
        print(f"\n🤖 Assistant ({result.agent}): {result.response}\n")
        for leg in result.route_paths:
            print(f"   🗺️  {leg.origin_name} -> {leg.destination_name}: {leg.distance_text}, {leg.duration_text}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the travel map assistant.")
    parser.add_argument("--language", default=config.DEFAULT_LANGUAGE, help="Reply language (ko, en, ja, zh)")
    parser.add_argument("--lat", type=float, help="Current latitude")
    parser.add_argument("--lng", type=float, help="Current longitude")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    location = coerce_location((args.lat, args.lng)) if args.lat is not None and args.lng is not None else None
    asyncio.run(interactive(args.language, location))


if __name__ == "__main__":
    main()
