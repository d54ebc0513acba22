"""Pydantic schemas shared by the agents, the orchestrator and the API.

Raw Google Maps payloads arrive in camelCase and encode coordinates either as
``{lat, lng}`` or ``{latitude, longitude}``. Both shapes are reconciled here,
once, when a payload is validated into :class:`Location` or :class:`Place`.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

AgentName = Literal["planner", "communicator", "search_agent"]
VALID_AGENTS: Tuple[str, ...] = ("planner", "communicator", "search_agent")

EARTH_RADIUS_KM = 6371.0


# ============================================================================
# Coordinates
# ============================================================================

def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coordinate_pair(value: Any) -> Optional[Tuple[float, float]]:
    """Pull a finite (lat, lng) pair out of any supported coordinate shape."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, (tuple, list)) and len(value) == 2:
        lat, lng = _finite(value[0]), _finite(value[1])
    elif isinstance(value, dict):
        lat = _finite(value["lat"] if "lat" in value else value.get("latitude"))
        lng = _finite(value["lng"] if "lng" in value else value.get("longitude"))
    else:
        return None
    if lat is None or lng is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return lat, lng


class LatLng(BaseModel):
    """A bare coordinate pair."""

    lat: float
    lng: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


class Location(BaseModel):
    """A device position or map-viewport center."""

    lat: float = Field(allow_inf_nan=False)
    lng: float = Field(allow_inf_nan=False)
    accuracy: Optional[float] = None
    address: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_shape(cls, data: Any) -> Any:
        if isinstance(data, (tuple, list)):
            pair = _coordinate_pair(data)
            return {"lat": pair[0], "lng": pair[1]} if pair else data
        if isinstance(data, dict) and "lat" not in data and "latitude" in data:
            data = dict(data)
            data["lat"] = data.pop("latitude")
            data["lng"] = data.pop("longitude", None)
        return data

    @property
    def coordinates(self) -> LatLng:
        return LatLng(lat=self.lat, lng=self.lng)


def extract_coordinates(item: Any) -> Optional[LatLng]:
    """Return normalized ``{lat, lng}`` for a place, location or raw payload.

    Accepts :class:`Place`, :class:`Location`, ``(lat, lng)`` tuples and raw
    dicts in either the place shape (``{"location": {...}}``) or the location
    shape, with ``lat/lng`` or ``latitude/longitude`` keys. Returns ``None``
    when no finite coordinate pair can be found.
    """
    if item is None:
        return None
    if isinstance(item, Place):
        return item.location.coordinates if item.location else None
    if isinstance(item, (Location, LatLng)):
        pair = _coordinate_pair(item)
    elif isinstance(item, dict) and isinstance(item.get("location"), (dict, BaseModel)):
        pair = _coordinate_pair(item["location"])
    else:
        pair = _coordinate_pair(item)
    if pair is None:
        return None
    return LatLng(lat=pair[0], lng=pair[1])


def haversine_km(a: Any, b: Any) -> Optional[float]:
    """Great-circle distance in kilometers between two coordinate-like values."""
    first, second = extract_coordinates(a), extract_coordinates(b)
    if first is None or second is None:
        return None
    lat1, lng1 = math.radians(first.lat), math.radians(first.lng)
    lat2, lng2 = math.radians(second.lat), math.radians(second.lng)
    dlat, dlng = lat2 - lat1, lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


# ============================================================================
# Places
# ============================================================================

_CAMEL_TO_SNAKE = {
    "displayName": "display_name",
    "formattedAddress": "formatted_address",
    "shortFormattedAddress": "formatted_address",
    "userRatingCount": "user_rating_count",
    "priceLevel": "price_level",
    "websiteUri": "website_uri",
    "googleMapsUri": "google_maps_uri",
    "internationalPhoneNumber": "phone_number",
    "currentOpeningHours": "opening_hours",
    "primaryType": "type",
    "distanceFromCenter": "distance_from_center",
}


class Place(BaseModel):
    """A search result or saved place."""

    model_config = ConfigDict(extra="ignore")

    id: str
    display_name: str = ""
    formatted_address: Optional[str] = None
    location: Optional[Location] = None
    rating: Optional[float] = None
    user_rating_count: Optional[int] = None
    type: Optional[str] = None
    types: List[str] = Field(default_factory=list)
    price_level: Optional[Union[str, int]] = None
    website_uri: Optional[str] = None
    google_maps_uri: Optional[str] = None
    phone_number: Optional[str] = None
    opening_hours: Optional[List[str]] = None
    reviews: Optional[List[Dict[str, Any]]] = None
    distance: Optional[float] = None
    distance_from_center: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            target = _CAMEL_TO_SNAKE.get(key, key)
            # An explicit snake_case key wins over its camelCase twin.
            if target in normalized and target != key:
                continue
            normalized[target] = value

        name = normalized.get("display_name")
        if isinstance(name, dict):
            normalized["display_name"] = name.get("text") or ""
        elif name is None:
            normalized["display_name"] = normalized.get("name") or ""

        hours = normalized.get("opening_hours")
        if isinstance(hours, dict):
            normalized["opening_hours"] = hours.get("weekdayDescriptions")

        raw_location = normalized.get("location")
        pair = _coordinate_pair(raw_location)
        if isinstance(raw_location, BaseModel):
            raw_location = raw_location.model_dump()
        if pair is None:
            normalized["location"] = None
        elif isinstance(raw_location, dict):
            location = {k: v for k, v in raw_location.items() if k in ("accuracy", "address") and v is not None}
            normalized["location"] = {**location, "lat": pair[0], "lng": pair[1]}
        else:
            normalized["location"] = {"lat": pair[0], "lng": pair[1]}

        if normalized.get("id") is not None:
            normalized["id"] = str(normalized["id"])
        return normalized

    @classmethod
    def from_api(cls, payload: Dict[str, Any], **overrides: Any) -> "Place":
        """Validate a raw provider payload, applying ``overrides`` on top."""
        return cls.model_validate({**payload, **overrides})

    @property
    def name(self) -> str:
        return self.display_name or self.formatted_address or self.id

    @property
    def has_coordinates(self) -> bool:
        return self.location is not None


def coerce_places(items: Optional[Sequence[Any]]) -> List[Place]:
    """Validate a mixed list of raw dicts and Place objects, dropping junk."""
    places: List[Place] = []
    for item in items or []:
        if isinstance(item, Place):
            places.append(item)
            continue
        if not isinstance(item, dict) or not item.get("id"):
            continue
        try:
            places.append(Place.model_validate(item))
        except ValueError:
            continue
    return places


def coerce_location(value: Any) -> Optional[Location]:
    """Validate a device position or map center; unusable input becomes ``None``."""
    if value is None or isinstance(value, Location):
        return value
    try:
        return Location.model_validate(value)
    except ValueError:
        return None


def annotate_distances(
    places: Sequence[Place],
    current_location: Optional[Location] = None,
    map_center: Optional[Location] = None,
) -> List[Place]:
    """Return copies of ``places`` with km distances from the device and map center."""
    annotated = []
    for place in places:
        updates: Dict[str, Any] = {}
        if current_location is not None:
            updates["distance"] = haversine_km(place, current_location)
        if map_center is not None:
            updates["distance_from_center"] = haversine_km(place, map_center)
        annotated.append(place.model_copy(update=updates) if updates else place)
    return annotated


# ============================================================================
# Conversation
# ============================================================================

class Message(BaseModel):
    """One chat turn as shown in the UI and persisted in the local log."""

    text: str
    sender: Literal["user", "assistant"]


class AgentSelection(BaseModel):
    """The supervisor's routing decision for a single user turn."""

    agent: AgentName
    reason: str = ""


# ============================================================================
# Routes
# ============================================================================

class RouteLeg(BaseModel):
    """One point-to-point directions segment of a planned itinerary."""

    polyline: str
    origin: LatLng
    destination: LatLng
    origin_name: str
    destination_name: str
    distance_text: str = ""
    duration_text: str = ""


class PlannerResult(BaseModel):
    response: str
    route_paths: List[RouteLeg] = Field(default_factory=list)


class SearchAgentReply(BaseModel):
    response: str
    search_query: Optional[str] = None


class ChatTurnResult(BaseModel):
    """Unified envelope returned to the UI layer for each chat turn."""

    response: str
    agent: AgentName
    search_query: Optional[str] = None
    route_paths: List[RouteLeg] = Field(default_factory=list)


# ============================================================================
# Geo provider results
# ============================================================================

class TextValue(BaseModel):
    """A provider measurement: human text plus raw value (meters or seconds)."""

    text: str = ""
    value: float = 0


class GeocodeResult(BaseModel):
    lat: float
    lng: float
    formatted_address: str = ""
    place_id: Optional[str] = None
    address_components: List[Dict[str, Any]] = Field(default_factory=list)


class ReverseGeocodeResult(BaseModel):
    formatted_address: str
    address_components: List[Dict[str, Any]] = Field(default_factory=list)
    place_id: Optional[str] = None
    location: Optional[LatLng] = None


class Directions(BaseModel):
    distance: TextValue
    duration: TextValue
    polyline: str = ""
    start_address: Optional[str] = None
    end_address: Optional[str] = None
    bounds: Optional[Dict[str, Any]] = None
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class MatrixEntry(BaseModel):
    origin_index: int
    destination_index: int
    distance: TextValue
    duration: TextValue
