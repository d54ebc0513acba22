"""
Response agents for non-planning turns.

CommunicatorAgent handles general conversation about places and the app;
SearchAgent recommends places from the live search results and can ask the
map to run a new search by ending its reply with a ``SEARCH_QUERY:`` line.
"""
from __future__ import annotations

import re
from typing import Any, Optional, Sequence, Tuple

import config
from agents.context_builder import build_context
from agents.llm_client import EMPTY_RESPONSE_MESSAGE, GeminiChatClient
from prompts import PromptTemplate, language_name, load_prompt_template
from workflows.schemas import Message, SearchAgentReply, coerce_location, coerce_places

SEARCH_QUERY_PATTERN = re.compile(r"^\s*SEARCH_QUERY:\s*(.*?)\s*$", re.MULTILINE)

SEARCH_INSTRUCTIONS = (
    "- When a fresh map search would answer the user better than the current results,\n"
    "  end your reply with one final line `SEARCH_QUERY: <short search query>` in the\n"
    "  user's language. Otherwise do not write that line."
)


def split_search_query(text: str) -> Tuple[str, Optional[str]]:
    """Strip every ``SEARCH_QUERY:`` line from ``text`` and return the last query."""
    queries = [q for q in SEARCH_QUERY_PATTERN.findall(text or "") if q]
    cleaned = SEARCH_QUERY_PATTERN.sub("", text or "").strip()
    return cleaned, (queries[-1] if queries else None)


class _ContextualAgent:
    """Role prompt + map context + history, delegated to the LLM client.

    Errors from the client propagate; the orchestrator owns the apology.
    """

    agent_type = "communicator"
    prompt_name = "communicator"

    def __init__(self, client: Optional[GeminiChatClient] = None, prompt: Optional[PromptTemplate] = None):
        self.client = client or GeminiChatClient()
        self.prompt_template = prompt or load_prompt_template(self.prompt_name, f"{self.prompt_name}.md")

    def _role_prompt(self, language: str, **extra: Any) -> str:
        return self.prompt_template.format(language=language_name(language), **extra)

    def _system_prompt(
        self,
        role_prompt: str,
        search_results: Sequence[Any],
        current_location: Any,
        saved_places: Sequence[Any],
        radius: Optional[float],
        min_rating: Optional[float],
        map_center: Any,
    ) -> str:
        context = build_context(
            coerce_location(current_location),
            coerce_location(map_center),
            coerce_places(saved_places),
            coerce_places(search_results),
            radius,
            min_rating,
            self.agent_type,
        )
        if not context:
            return role_prompt
        return f"{role_prompt}\n\n## Map context\n{context}"


class CommunicatorAgent(_ContextualAgent):
    agent_type = "communicator"
    prompt_name = "communicator"

    async def get_response(
        self,
        message: str,
        history: Sequence[Message] = (),
        search_results: Sequence[Any] = (),
        language: str = config.DEFAULT_LANGUAGE,
        current_location: Any = None,
        saved_places: Sequence[Any] = (),
        radius: Optional[float] = None,
        min_rating: Optional[float] = None,
        map_center: Any = None,
    ) -> str:
        system_prompt = self._system_prompt(
            self._role_prompt(language),
            search_results, current_location, saved_places, radius, min_rating, map_center,
        )
        return await self.client.complete_chat(system_prompt, message, history)


class SearchAgent(_ContextualAgent):
    agent_type = "search_agent"
    prompt_name = "search_agent"

    async def get_reply(
        self,
        message: str,
        history: Sequence[Message] = (),
        search_results: Sequence[Any] = (),
        language: str = config.DEFAULT_LANGUAGE,
        current_location: Any = None,
        saved_places: Sequence[Any] = (),
        radius: Optional[float] = None,
        min_rating: Optional[float] = None,
        map_center: Any = None,
        search_enabled: bool = False,
    ) -> SearchAgentReply:
        """Answer and, when ``search_enabled``, surface a follow-up map search."""
        role_prompt = self._role_prompt(
            language,
            search_instructions=SEARCH_INSTRUCTIONS if search_enabled else "",
        )
        system_prompt = self._system_prompt(
            role_prompt, search_results, current_location, saved_places, radius, min_rating, map_center,
        )
        raw = await self.client.complete_chat(system_prompt, message, history)
        text, query = split_search_query(raw)
        if not search_enabled:
            query = None
        return SearchAgentReply(response=text or EMPTY_RESPONSE_MESSAGE, search_query=query)

    async def get_response(
        self,
        message: str,
        history: Sequence[Message] = (),
        search_results: Sequence[Any] = (),
        language: str = config.DEFAULT_LANGUAGE,
        current_location: Any = None,
        saved_places: Sequence[Any] = (),
        radius: Optional[float] = None,
        min_rating: Optional[float] = None,
        map_center: Any = None,
    ) -> str:
        reply = await self.get_reply(
            message, history, search_results, language,
            current_location, saved_places, radius, min_rating, map_center,
        )
        return reply.response
