# agents/planner_agent.py
"""
TripPlannerAgent: turns saved places into an ordered, routed day trip.

Two independent LLM calls are made per turn. The first only picks a visiting
order (a JSON array of candidate indices) and is parsed leniently; the
second writes the user-facing explanation, grounded in the legs the Routes API
actually returned rather than in the model's own estimates.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import config
from agents.context_builder import build_context
from agents.llm_client import GeminiChatClient, format_history
from errors import LLMServiceError, OrderValidationError, ParseError
from prompts import language_name, load_prompt_template
from tools.geo_provider import GeoProvider
from workflows.schemas import (
    LatLng,
    Location,
    MatrixEntry,
    Message,
    PlannerResult,
    RouteLeg,
    coerce_location,
    coerce_places,
    extract_coordinates,
)

logger = logging.getLogger(__name__)

ORDER_PATTERN = re.compile(r"\[\s*-?\d+(?:\s*,\s*-?\d+)*\s*\]")

CURRENT_LOCATION_LABELS = {
    "ko": "현재 위치",
    "en": "Current location",
    "ja": "現在地",
    "zh": "当前位置",
}


@dataclass(frozen=True)
class Candidate:
    name: str
    coords: LatLng
    is_current: bool = False


def parse_order(raw: str) -> List[int]:
    """Extract the first bracketed integer list from a completion."""
    match = ORDER_PATTERN.search(raw or "")
    if not match:
        raise ParseError(f"No visiting order found in {str(raw)[:120]!r}")
    return [int(n) for n in match.group(0).strip("[] \n").split(",")]


def validate_order(order: Sequence[int], candidate_count: int) -> List[int]:
    """Accept ``order`` only if it has >= 2 in-bounds indices covering >= 2 stops."""
    if len(order) < 2:
        raise OrderValidationError(f"Order too short: {list(order)}")
    out_of_bounds = [i for i in order if not 0 <= i < candidate_count]
    if out_of_bounds:
        raise OrderValidationError(f"Indices out of bounds for {candidate_count} candidates: {out_of_bounds}")
    if len(set(order)) < 2:
        raise OrderValidationError(f"Order visits a single stop: {list(order)}")
    return list(order)


class TripPlannerAgent:
    """Candidate assembly -> matrix -> order inference -> legs -> narrative."""

    agent_type = "planner"

    def __init__(
        self,
        client: Optional[GeminiChatClient] = None,
        geo: Optional[GeoProvider] = None,
        order_client: Optional[GeminiChatClient] = None,
    ):
        self.client = client or GeminiChatClient()
        if order_client is None:
            order_client = client if client is not None else GeminiChatClient(
                temperature=config.PLANNER_ORDER_TEMPERATURE
            )
        self.order_client = order_client
        self.geo = geo or GeoProvider()
        self.prompt_template = load_prompt_template("planner", "planner.md")
        self.order_template = load_prompt_template("planner_order", "planner_order.md")
        self.last_run: Dict[str, Any] = {}

    # ==================== PIPELINE STEPS ====================

    @staticmethod
    def build_candidates(
        current_location: Optional[Location],
        saved_places: Sequence[Any],
        language: str = config.DEFAULT_LANGUAGE,
    ) -> List[Candidate]:
        candidates: List[Candidate] = []
        here = extract_coordinates(current_location)
        if here is not None:
            label = CURRENT_LOCATION_LABELS.get((language or "ko").split("-")[0], CURRENT_LOCATION_LABELS["en"])
            candidates.append(Candidate(name=label, coords=here, is_current=True))
        for place in coerce_places(saved_places):
            coords = extract_coordinates(place)
            if coords is None:
                logger.debug(f"Skipping saved place without coordinates: {place.name}")
                continue
            candidates.append(Candidate(name=place.name, coords=coords))
        return candidates

    async def _fetch_matrix(self, candidates: List[Candidate], language: str) -> Optional[List[MatrixEntry]]:
        if not 2 <= len(candidates) <= config.PLANNER_MATRIX_MAX_CANDIDATES:
            return None
        points = [c.coords for c in candidates]
        return await self.geo.get_distance_matrix(points, points, config.PLANNER_MATRIX_MODE, language)

    @staticmethod
    def _format_candidates(candidates: List[Candidate]) -> str:
        lines = []
        for i, c in enumerate(candidates):
            marker = " (current location)" if c.is_current else ""
            lines.append(f"{i}: {c.name}{marker} [{c.coords.lat:.6f}, {c.coords.lng:.6f}]")
        return "\n".join(lines)

    @staticmethod
    def _format_matrix(matrix: Optional[List[MatrixEntry]]) -> str:
        if not matrix:
            return "(not available)"
        lines = [
            f"{e.origin_index} -> {e.destination_index}: {e.duration.text}, {e.distance.text}"
            for e in matrix
            if e.origin_index != e.destination_index
        ]
        return "\n".join(lines) or "(not available)"

    async def infer_order(
        self,
        message: str,
        history: Sequence[Message],
        candidates: List[Candidate],
        matrix: Optional[List[MatrixEntry]],
    ) -> Optional[List[int]]:
        """Ask the model for a visiting order; any failure yields ``None``."""
        prompt = self.order_template.format(
            candidate_count=len(candidates),
            candidates=self._format_candidates(candidates),
            matrix=self._format_matrix(matrix),
            history=format_history(history, config.PLANNER_HISTORY_TURNS),
            message=message,
        )
        try:
            raw = await self.order_client.complete_chat(prompt, message)
        except LLMServiceError as e:
            logger.warning(f"Order inference call failed: {e}")
            return None

        self.last_run["raw_order"] = raw
        try:
            return validate_order(parse_order(raw), len(candidates))
        except ParseError as e:
            logger.warning(f"Rejected visiting order: {e}")
            return None

    async def build_legs(self, order: Sequence[int], candidates: List[Candidate], language: str) -> List[RouteLeg]:
        legs: List[RouteLeg] = []
        failed: List[tuple] = []
        for origin_idx, dest_idx in zip(order, order[1:]):
            if origin_idx == dest_idx:
                continue
            origin, dest = candidates[origin_idx], candidates[dest_idx]
            directions = await self.geo.get_directions(origin.coords, dest.coords, config.PLANNER_LEG_MODE, language)
            if directions is None or not directions.polyline:
                logger.warning(f"No {config.PLANNER_LEG_MODE} route from {origin.name} to {dest.name}")
                failed.append((origin_idx, dest_idx))
                continue
            legs.append(RouteLeg(
                polyline=directions.polyline,
                origin=origin.coords,
                destination=dest.coords,
                origin_name=origin.name,
                destination_name=dest.name,
                distance_text=directions.distance.text,
                duration_text=directions.duration.text,
            ))
        self.last_run["failed_legs"] = failed
        return legs

    @staticmethod
    def describe_legs(legs: List[RouteLeg], order_accepted: bool, candidate_count: int) -> str:
        if legs:
            lines = [
                f"{i}. {leg.origin_name} -> {leg.destination_name}: {leg.distance_text}, {leg.duration_text} by public transit"
                for i, leg in enumerate(legs, 1)
            ]
            return "\n".join(lines)
        if candidate_count < 2:
            return "No route was computed: fewer than two places with a known location (saved places or the user's position)."
        if not order_accepted:
            return "No route was computed: a visiting order could not be determined."
        return "No route was computed: the map service found no public transit connection between the stops."

    # ==================== PUBLIC API ====================

    async def get_planner_response(
        self,
        message: str,
        history: Sequence[Message] = (),
        language: str = config.DEFAULT_LANGUAGE,
        current_location: Any = None,
        saved_places: Sequence[Any] = (),
        radius: Optional[float] = None,
        min_rating: Optional[float] = None,
    ) -> PlannerResult:
        """Plan a route through the saved places and explain it.

        Matrix, order and per-leg failures degrade to a shorter or empty route.
        A failure of the narrative call itself propagates.
        """
        location = coerce_location(current_location)
        places = coerce_places(saved_places)
        candidates = self.build_candidates(location, places, language)
        self.last_run = {"candidates": candidates, "order": None, "accepted": False, "failed_legs": []}

        legs: List[RouteLeg] = []
        if len(candidates) >= 2:
            matrix = await self._fetch_matrix(candidates, language)
            order = await self.infer_order(message, history, candidates, matrix)
            if order is not None:
                self.last_run.update(order=order, accepted=True)
                logger.info(f"Visiting order {order} over {len(candidates)} candidates")
                legs = await self.build_legs(order, candidates, language)
        else:
            logger.info(f"Routing skipped: {len(candidates)} candidate(s)")

        context = build_context(location, None, places, [], radius, min_rating, self.agent_type)
        sections = [self.prompt_template.format(language=language_name(language))]
        if context:
            sections.append(f"## Map context\n{context}")
        sections.append(
            "## Route details\n" + self.describe_legs(legs, self.last_run["accepted"], len(candidates))
        )
        response = await self.client.complete_chat("\n\n".join(sections), message, history)
        return PlannerResult(response=response, route_paths=legs)
