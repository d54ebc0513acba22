# agents/context_builder.py
"""Builds the natural-language map context injected into every agent prompt."""
from __future__ import annotations

from typing import List, Optional, Sequence

import config
from workflows.schemas import Location, Place, extract_coordinates, haversine_km

PLANNER = "planner"


def _place_type(place: Place) -> Optional[str]:
    if place.type:
        return place.type
    return place.types[0] if place.types else None


def _format_place(index: int, place: Place, origin: Optional[Location] = None) -> str:
    parts = [f"{index}. {place.name}"]
    place_type = _place_type(place)
    if place_type:
        parts.append(f"type: {place_type}")
    if place.rating is not None:
        parts.append(f"rating: {place.rating:.1f}")
    if place.user_rating_count is not None:
        parts.append(f"reviews: {place.user_rating_count}")
    if place.formatted_address:
        parts.append(f"address: {place.formatted_address}")
    distance = place.distance if place.distance is not None else haversine_km(place, origin)
    if distance is not None:
        parts.append(f"{distance:.1f} km from current location")
    return " | ".join(parts)


def _format_location(title: str, location: Optional[Location]) -> List[str]:
    coords = extract_coordinates(location)
    if coords is None:
        return []
    lines = [f"=== {title} ==="]
    if location.address:
        lines.append(f"Address: {location.address}")
    lines.append(f"Coordinates: {coords.lat:.6f}, {coords.lng:.6f}")
    return lines


def build_context(
    current_location: Optional[Location],
    map_center: Optional[Location],
    saved_places: Sequence[Place],
    search_results: Sequence[Place],
    radius: Optional[float],
    min_rating: Optional[float],
    agent_type: str,
) -> str:
    """Render the context block for ``agent_type``.

    The planner only ever sees saved places and the device location; live
    search results and the map viewport are incidental to trip planning and
    are left out for it. ``radius`` is in meters and rendered in km.
    Returns ``""`` when there is nothing to describe.
    """
    is_planner = agent_type == PLANNER
    sections: List[List[str]] = []

    current = _format_location("CURRENT LOCATION", current_location)
    if current:
        sections.append(current)

    if not is_planner:
        center = _format_location("MAP CENTER", map_center)
        if center:
            sections.append(center)

    if saved_places:
        lines = [f"=== SAVED PLACES ({len(saved_places)}) ==="]
        lines.extend(_format_place(i, p) for i, p in enumerate(saved_places, 1))
        sections.append(lines)

    if not is_planner and search_results:
        shown = list(search_results)[: config.CONTEXT_MAX_SEARCH_RESULTS]
        lines = [f"=== SEARCH RESULTS ({len(search_results)}) ==="]
        lines.extend(_format_place(i, p, current_location) for i, p in enumerate(shown, 1))
        sections.append(lines)

    if not sections:
        return ""

    radius_km = (radius if radius is not None else config.DEFAULT_SEARCH_RADIUS_M) / 1000
    rating = min_rating if min_rating is not None else config.DEFAULT_MIN_RATING
    sections.append([
        "=== SEARCH SETTINGS ===",
        f"Search radius: {radius_km:.1f} km | Minimum rating: {rating:.1f}",
    ])
    return "\n\n".join("\n".join(lines) for lines in sections)
