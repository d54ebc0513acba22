from __future__ import annotations

import os
from typing import Any, Dict, List, Sequence

import httpx

import config
from errors import ConfigurationError, GeoServiceError
from tools._http import json_body, request as _request
from tools.routes import _duration_to_seconds, format_distance, format_duration, normalize_travel_mode
from workflows.schemas import MatrixEntry, TextValue, extract_coordinates

GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")
BASE = "https://routes.googleapis.com/distanceMatrix/v2:computeRouteMatrix"


class DistanceMatrixAPIError(GeoServiceError):
    """Raised when the Route Matrix API returns an error."""


def _waypoint_from_input(item: Any) -> Dict[str, Any]:
    coords = extract_coordinates(item)
    if coords is None:
        raise DistanceMatrixAPIError(f"Invalid matrix waypoint: {item!r}")
    return {"waypoint": {"location": {"latLng": {"latitude": coords.lat, "longitude": coords.lng}}}}


def _element_ok(elem: Dict[str, Any]) -> bool:
    # status is a google.rpc.Status; an empty object means success
    if (elem.get("status") or {}).get("code"):
        return False
    return elem.get("condition", "ROUTE_EXISTS") == "ROUTE_EXISTS"


async def get_distance_matrix(
    origins: Sequence[Any],
    destinations: Sequence[Any],
    mode: str = "DRIVE",
    language: str = config.DEFAULT_LANGUAGE,
) -> List[MatrixEntry]:
    """
    Provider: Google Routes API (Distance Matrix v2).
    Returns distance/duration for each reachable origin-destination pair;
    unreachable pairs are omitted.
    Environment: GOOGLE_MAPS_API_KEY
    Args:
        origins: coordinate-like values (Location, Place, dict or (lat, lng))
        destinations: coordinate-like values
        mode: DRIVE | WALK | BICYCLE | TRANSIT (legacy DRIVING etc. accepted)
    """
    if not GOOGLE_MAPS_API_KEY:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is not set")
    headers = {
        "X-Goog-Api-Key": GOOGLE_MAPS_API_KEY,
        "X-Goog-FieldMask": "originIndex,destinationIndex,distanceMeters,duration,status,condition,localizedValues",
        "Content-Type": "application/json",
    }
    payload = {
        "origins": [_waypoint_from_input(o) for o in origins],
        "destinations": [_waypoint_from_input(d) for d in destinations],
        "travelMode": normalize_travel_mode(mode),
        "languageCode": language,
    }
    try:
        r = await _request("POST", BASE, headers=headers, json=payload)
    except httpx.HTTPError as e:
        raise DistanceMatrixAPIError(f"HTTP error calling Route Matrix API: {e}") from e
    if r.status_code >= 400:
        raise DistanceMatrixAPIError(f"Route Matrix API {r.status_code}: {r.text[:800]}")

    data = json_body(r, DistanceMatrixAPIError, expected=list)

    out: List[MatrixEntry] = []
    for elem in data:
        if not isinstance(elem, dict) or not _element_ok(elem):
            continue
        try:
            out.append(_parse_element(elem))
        except (AttributeError, TypeError, ValueError) as e:
            raise DistanceMatrixAPIError(f"Malformed Route Matrix element {elem!r}: {e}") from e
    out.sort(key=lambda e: (e.origin_index, e.destination_index))
    return out


def _parse_element(elem: Dict[str, Any]) -> MatrixEntry:
    distance_m = elem.get("distanceMeters", 0)
    duration_s = _duration_to_seconds(elem.get("duration", "0s"))
    localized = elem.get("localizedValues") or {}
    return MatrixEntry(
        origin_index=elem.get("originIndex", 0),
        destination_index=elem.get("destinationIndex", 0),
        distance=TextValue(
            text=(localized.get("distance") or {}).get("text") or format_distance(distance_m),
            value=distance_m,
        ),
        duration=TextValue(
            text=(localized.get("duration") or {}).get("text") or format_duration(duration_s),
            value=duration_s,
        ),
    )
