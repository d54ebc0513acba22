# tools/places.py
"""Place search, autocomplete and details using Google Places API (New) v1."""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import httpx

import config
from errors import ConfigurationError, GeoServiceError
from tools._http import json_body, request as _request
from workflows.schemas import Location, Place, extract_coordinates

GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")
BASE = "https://places.googleapis.com/v1"

SEARCH_FIELDS = [
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.types",
]
CATEGORY_FIELDS = SEARCH_FIELDS + ["places.websiteUri", "places.googleMapsUri"]
DETAIL_FIELDS = [
    "id",
    "displayName",
    "formattedAddress",
    "location",
    "rating",
    "userRatingCount",
    "reviews",
    "priceLevel",
    "types",
    "currentOpeningHours",
    "websiteUri",
    "internationalPhoneNumber",
]
NEARBY_TYPES = ["restaurant", "cafe", "tourist_attraction", "lodging"]
AUTOCOMPLETE_BIAS_RADIUS_M = 50000


class PlacesAPIError(GeoServiceError):
    """Raised when the Places API returns an error."""


def _headers(field_mask: Optional[List[str]] = None) -> Dict[str, str]:
    if not GOOGLE_MAPS_API_KEY:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is not set")
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": GOOGLE_MAPS_API_KEY,
    }
    if field_mask:
        headers["X-Goog-FieldMask"] = ",".join(field_mask)
    return headers


def _circle(center: Any, radius_m: float) -> Dict[str, Any]:
    coords = extract_coordinates(center)
    if coords is None:
        raise PlacesAPIError(f"Invalid circle center: {center!r}")
    return {
        "circle": {
            "center": {"latitude": coords.lat, "longitude": coords.lng},
            "radius": float(radius_m),
        }
    }


async def _call(method: str, url: str, **kw: Any) -> Dict[str, Any]:
    try:
        resp = await _request(method, url, **kw)
    except httpx.HTTPError as e:
        raise PlacesAPIError(f"HTTP error calling Places API: {e}") from e
    if resp.status_code >= 400:
        raise PlacesAPIError(f"Places API {resp.status_code}: {resp.text[:800]}")
    return json_body(resp, PlacesAPIError)


def _to_places(data: Dict[str, Any], **overrides: Any) -> List[Place]:
    raw_places = data.get("places") or []
    if not isinstance(raw_places, list):
        raise PlacesAPIError(f"Malformed places list: {str(raw_places)[:200]}")
    places = []
    for raw in raw_places:
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        try:
            places.append(Place.from_api(raw, **overrides))
        except ValueError as e:
            raise PlacesAPIError(f"Malformed place {raw.get('id')!r}: {e}") from e
    return places


async def search_places(
    query: str,
    location: Optional[Any] = None,
    language: str = config.DEFAULT_LANGUAGE,
    radius: Optional[float] = None,
    limit: int = 10,
) -> List[Place]:
    """Text search biased to ``radius`` meters around ``location`` when both are given."""
    payload: Dict[str, Any] = {
        "textQuery": query,
        "maxResultCount": min(limit, 20),
        "languageCode": language,
    }
    if location is not None and radius:
        payload["locationBias"] = _circle(location, radius)

    data = await _call("POST", f"{BASE}/places:searchText", headers=_headers(SEARCH_FIELDS), json=payload)
    return _to_places(data)


async def search_category_places(
    category_query: str,
    center: Any,
    radius: float,
    min_rating: float,
    type_label: str,
    language: str = config.DEFAULT_LANGUAGE,
) -> List[Place]:
    """Search one category around ``center`` and tag the results with ``type_label``.

    Filtering on ``min_rating`` happens client-side so unrated places are kept.
    """
    payload = {
        "textQuery": category_query,
        "languageCode": language,
        "locationBias": _circle(center, radius),
        "maxResultCount": 20,
    }
    data = await _call("POST", f"{BASE}/places:searchText", headers=_headers(CATEGORY_FIELDS), json=payload)
    return [
        place
        for place in _to_places(data, type=type_label)
        if place.rating is None or place.rating >= min_rating
    ]


async def search_nearby_places(
    query: Optional[str],
    location: Any,
    radius: float,
    language: str = config.DEFAULT_LANGUAGE,
) -> List[Place]:
    """Popular places strictly inside ``radius`` meters of ``location``.

    Nearby search takes no free text, so a ``query`` naming a place type
    (``cafe``, ``lodging`` ...) narrows the types and anything else is ignored.
    """
    included = [query.strip().lower()] if query and query.strip().lower() in NEARBY_TYPES else NEARBY_TYPES
    payload: Dict[str, Any] = {
        "includedTypes": included,
        "maxResultCount": 10,
        "locationRestriction": _circle(location, radius),
        "languageCode": language,
    }
    data = await _call("POST", f"{BASE}/places:searchNearby", headers=_headers(SEARCH_FIELDS), json=payload)
    return _to_places(data)


async def autocomplete_places(
    input_text: str,
    location: Optional[Any] = None,
    language: str = config.DEFAULT_LANGUAGE,
) -> List[Dict[str, Any]]:
    """Raw autocomplete suggestions; inputs shorter than 2 characters return []."""
    if not input_text or len(input_text.strip()) < 2:
        return []

    payload: Dict[str, Any] = {
        "input": input_text.strip(),
        "languageCode": language,
        "includedRegionCodes": config.AUTOCOMPLETE_REGION_CODES,
    }
    if extract_coordinates(location) is not None:
        payload["locationBias"] = _circle(location, AUTOCOMPLETE_BIAS_RADIUS_M)

    data = await _call("POST", f"{BASE}/places:autocomplete", headers=_headers(), json=payload)
    return list(data.get("suggestions") or [])


async def get_place_details(place_id: str, language: Optional[str] = None) -> Optional[Place]:
    place_id = place_id.split("/", 1)[1] if place_id.startswith("places/") else place_id
    params = {"languageCode": language} if language else None
    data = await _call("GET", f"{BASE}/places/{place_id}", headers=_headers(DETAIL_FIELDS), params=params)
    if not data.get("id"):
        return None
    try:
        return Place.from_api(data)
    except ValueError as e:
        raise PlacesAPIError(f"Malformed place details for {place_id!r}: {e}") from e


async def search_location_coordinates(query: str) -> Optional[Location]:
    """Resolve free text to the coordinates of the best matching place."""
    payload = {"textQuery": query, "maxResultCount": 1}
    data = await _call("POST", f"{BASE}/places:searchText", headers=_headers(["places.location"]), json=payload)
    for raw in data.get("places") or []:
        coords = extract_coordinates(raw) if isinstance(raw, dict) else None
        if coords is not None:
            return Location(lat=coords.lat, lng=coords.lng)
    return None
