# agents/supervisor_agent.py
"""
SupervisorAgent: routes each user message to planner, search_agent or communicator.
Asks Gemini for a JSON verdict and falls back to multilingual keyword matching.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence

import config
from agents.llm_client import GeminiChatClient, format_history
from errors import LLMServiceError
from prompts import language_name, load_prompt_template
from workflows.schemas import VALID_AGENTS, AgentSelection, Message

logger = logging.getLogger(__name__)

PLANNER_KEYWORDS = (
    # ko
    "일정", "경로", "순서", "계획", "동선", "코스", "루트", "길찾기", "지도에 표시", "지도에 보여",
    # en
    "plan a", "plan my", "planning", "itinerary", "route", "visit order", "directions", "how do i get", "show on map",
    # ja
    "計画", "日程", "旅程", "ルート", "経路", "順番",
    # zh
    "计划", "行程", "路线", "顺序", "怎么走",
)

SEARCH_KEYWORDS = (
    "추천", "맛집", "카페", "찾아", "검색", "근처", "주변", "호텔", "숙소", "식당",
    "recommend", "find", "search", "nearby", "near me", "restaurant", "cafe", "hotel",
    "おすすめ", "探して", "検索", "近く", "レストラン", "カフェ", "ホテル",
    "推荐", "搜索", "附近", "餐厅", "咖啡", "酒店",
)


def _first_json_object(text: str) -> Optional[Dict[str, Any]]:
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    return None


def classify_by_keywords(message: str) -> AgentSelection:
    lowered = (message or "").lower()
    if any(keyword in lowered for keyword in PLANNER_KEYWORDS):
        return AgentSelection(agent="planner", reason="keyword match: planning")
    if any(keyword in lowered for keyword in SEARCH_KEYWORDS):
        return AgentSelection(agent="search_agent", reason="keyword match: search")
    return AgentSelection(agent="communicator", reason="default")


class SupervisorAgent:
    """Pick the specialist for a turn. ``select_agent`` never raises."""

    def __init__(self, client: Optional[GeminiChatClient] = None, history_turns: int = config.ROUTER_HISTORY_TURNS):
        self.client = client or GeminiChatClient(temperature=config.ROUTER_TEMPERATURE)
        self.history_turns = history_turns
        self.prompt_template = load_prompt_template("supervisor", "supervisor.md")

    def parse_selection(self, raw: str) -> Optional[AgentSelection]:
        data = _first_json_object(raw or "")
        if not data:
            return None
        agent = str(data.get("agent", "")).strip()
        if agent not in VALID_AGENTS:
            return None
        return AgentSelection(agent=agent, reason=str(data.get("reason") or ""))

    async def select_agent(
        self,
        message: str,
        history: Sequence[Message] = (),
        language: str = config.DEFAULT_LANGUAGE,
    ) -> AgentSelection:
        if not self.client.configured:
            return AgentSelection(agent="communicator", reason="LLM not configured")

        prompt = self.prompt_template.format(
            history=format_history(history, self.history_turns),
            message=message,
            language=language_name(language),
        )
        try:
            raw = await self.client.complete_chat(prompt, message)
        except LLMServiceError as e:
            logger.warning(f"Supervisor LLM call failed, using keyword routing: {e}")
            return classify_by_keywords(message)

        selection = self.parse_selection(raw)
        if selection is None:
            logger.warning(f"Unparseable supervisor output, using keyword routing: {raw[:200]!r}")
            selection = classify_by_keywords(message)
        logger.info(f"Routing to {selection.agent} ({selection.reason})")
        return selection
