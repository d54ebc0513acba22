# tools/geocoding.py
"""Forward and reverse geocoding using the Google Geocoding web service."""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx

import config
from errors import ConfigurationError, GeoServiceError
from tools._http import json_body, request as _request
from workflows.schemas import GeocodeResult, LatLng, ReverseGeocodeResult

GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")
GEOCODE_ENDPOINT = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingAPIError(GeoServiceError):
    """Raised when the Geocoding API returns an error status."""


async def _geocode(params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the first result, ``None`` for ZERO_RESULTS, raise otherwise."""
    if not GOOGLE_MAPS_API_KEY:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is not set")

    try:
        resp = await _request("GET", GEOCODE_ENDPOINT, params={**params, "key": GOOGLE_MAPS_API_KEY})
    except httpx.HTTPError as e:
        raise GeocodingAPIError(f"HTTP error calling Geocoding API: {e}") from e
    if resp.status_code >= 400:
        raise GeocodingAPIError(f"Geocoding API {resp.status_code}: {resp.text[:800]}")

    data = json_body(resp, GeocodingAPIError)
    status = data.get("status")
    if status == "ZERO_RESULTS":
        return None
    if status != "OK":
        raise GeocodingAPIError(f"Geocoding failed: {status} {data.get('error_message', '')}".strip())

    results = data.get("results") or []
    if not results:
        return None
    if not isinstance(results, list) or not isinstance(results[0], dict):
        raise GeocodingAPIError(f"Malformed Geocoding results: {str(results)[:200]}")
    return results[0]


async def geocode_address(address: str, language: str = config.DEFAULT_LANGUAGE) -> Optional[GeocodeResult]:
    result = await _geocode({"address": address, "language": language})
    if result is None:
        return None
    try:
        location = (result.get("geometry") or {}).get("location") or {}
        return GeocodeResult(
            lat=location["lat"],
            lng=location["lng"],
            formatted_address=result.get("formatted_address", ""),
            place_id=result.get("place_id"),
            address_components=result.get("address_components") or [],
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise GeocodingAPIError(f"Malformed geocode result: {e}") from e


async def reverse_geocode(lat: float, lng: float, language: str = config.DEFAULT_LANGUAGE) -> Optional[ReverseGeocodeResult]:
    lat, lng = float(lat), float(lng)
    result = await _geocode({"latlng": f"{lat},{lng}", "language": language})
    if result is None:
        return None
    try:
        return ReverseGeocodeResult(
            formatted_address=result.get("formatted_address") or "",
            address_components=result.get("address_components") or [],
            place_id=result.get("place_id"),
            location=LatLng(lat=lat, lng=lng),
        )
    except ValueError as e:
        raise GeocodingAPIError(f"Malformed reverse geocode result: {e}") from e
