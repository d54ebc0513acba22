# tools/routes.py
"""Point-to-point directions using the Google Routes API (computeRoutes)."""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx

import config
from errors import ConfigurationError, GeoServiceError
from tools._http import json_body, request as _request
from workflows.schemas import Directions, TextValue, extract_coordinates

# Read the key from environment only (do NOT hardcode)
GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")
ROUTES_ENDPOINT = "https://routes.googleapis.com/directions/v2:computeRoutes"

# Legacy Directions names are accepted as aliases.
TRAVEL_MODES = {
    "DRIVE": "DRIVE",
    "DRIVING": "DRIVE",
    "WALK": "WALK",
    "WALKING": "WALK",
    "BICYCLE": "BICYCLE",
    "BICYCLING": "BICYCLE",
    "TWO_WHEELER": "TWO_WHEELER",
    "TRANSIT": "TRANSIT",
}

FIELD_MASK = ",".join([
    "routes.distanceMeters",
    "routes.duration",
    "routes.polyline.encodedPolyline",
    "routes.localizedValues",
    "routes.viewport",
    "routes.legs.steps.navigationInstruction",
    "routes.legs.steps.transitDetails",
])


class RoutesAPIError(GeoServiceError):
    """Raised when the Routes API returns an error."""


def normalize_travel_mode(mode: Optional[str]) -> str:
    return TRAVEL_MODES.get(str(mode or "DRIVE").upper(), "DRIVE")


def _waypoint(point: Any) -> Dict[str, Any]:
    coords = extract_coordinates(point)
    if coords is None:
        raise RoutesAPIError(f"Invalid waypoint: {point!r}")
    return {"location": {"latLng": {"latitude": coords.lat, "longitude": coords.lng}}}


def _duration_to_seconds(proto_duration: str) -> int:
    # Duration strings look like "123s" or "3.5s"
    s = str(proto_duration or "0s").strip().rstrip("s")
    try:
        return int(float(s))
    except ValueError:
        return 0


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{int(meters)} m"


def format_duration(seconds: float) -> str:
    minutes = max(1, round(seconds / 60)) if seconds else 0
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours} hr {minutes} min" if minutes else f"{hours} hr"
    return f"{minutes} min"


async def get_directions(
    origin: Any,
    destination: Any,
    travel_mode: str = "DRIVE",
    language: str = config.DEFAULT_LANGUAGE,
) -> Optional[Directions]:
    """
    Compute a single route between two coordinates and return distance,
    duration (text + raw value), the encoded overview polyline and viewport.
    Returns ``None`` when the API finds no route for the pair.
    """
    if not GOOGLE_MAPS_API_KEY:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is not set")

    mode = normalize_travel_mode(travel_mode)
    body: Dict[str, Any] = {
        "origin": _waypoint(origin),
        "destination": _waypoint(destination),
        "travelMode": mode,
        "languageCode": language,
        "polylineQuality": "OVERVIEW",
        "polylineEncoding": "ENCODED_POLYLINE",
    }
    # Routing preference is only valid for motorized modes.
    if mode in ("DRIVE", "TWO_WHEELER"):
        body["routingPreference"] = "TRAFFIC_AWARE"

    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": GOOGLE_MAPS_API_KEY,
        "X-Goog-FieldMask": FIELD_MASK,
    }

    try:
        resp = await _request("POST", ROUTES_ENDPOINT, headers=headers, json=body)
    except httpx.HTTPError as e:
        raise RoutesAPIError(f"HTTP error calling Routes API: {e}") from e
    if resp.status_code >= 400:
        raise RoutesAPIError(f"Routes API {resp.status_code}: {resp.text[:800]}")

    routes = json_body(resp, RoutesAPIError).get("routes") or []
    if not routes:
        return None
    try:
        return _parse_route(routes[0])
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise RoutesAPIError(f"Malformed route in Routes API response: {e}") from e


def _parse_route(route: Dict[str, Any]) -> Directions:
    distance_m = int(route.get("distanceMeters", 0))
    duration_s = _duration_to_seconds(route.get("duration", "0s"))
    localized = route.get("localizedValues") or {}
    steps = [step for leg in route.get("legs") or [] for step in leg.get("steps") or []]

    return Directions(
        distance=TextValue(
            text=(localized.get("distance") or {}).get("text") or format_distance(distance_m),
            value=distance_m,
        ),
        duration=TextValue(
            text=(localized.get("duration") or {}).get("text") or format_duration(duration_s),
            value=duration_s,
        ),
        polyline=(route.get("polyline") or {}).get("encodedPolyline", ""),
        bounds=route.get("viewport"),
        steps=steps,
    )

