"""GeoProvider: the only door business logic uses into Google Maps.

Every operation is ``async`` and failure-tolerant: provider errors are logged
and turned into ``None`` (single results) or ``[]`` (lists), so callers only
ever branch on "got data" versus "did not".
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import config
from errors import ConfigurationError, GeoServiceError
from tools import distance_matrix, geocoding, places, routes
from workflows.schemas import (
    Directions,
    GeocodeResult,
    Location,
    MatrixEntry,
    Place,
    ReverseGeocodeResult,
)

logger = logging.getLogger(__name__)


class GeoProvider:
    """Failure-tolerant facade over the Places, Geocoding and Routes tools."""

    async def geocode(self, address: str, language: str = config.DEFAULT_LANGUAGE) -> Optional[GeocodeResult]:
        try:
            return await geocoding.geocode_address(address, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.warning(f"Geocoding failed for {address!r}: {e}")
            return None

    async def reverse_geocode(
        self, lat: float, lng: float, language: str = config.DEFAULT_LANGUAGE
    ) -> Optional[ReverseGeocodeResult]:
        try:
            return await geocoding.reverse_geocode(lat, lng, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.warning(f"Reverse geocoding failed: {e}")
            return None

    async def search_places(
        self,
        query: str,
        location: Optional[Any] = None,
        language: str = config.DEFAULT_LANGUAGE,
        radius: Optional[float] = None,
    ) -> List[Place]:
        try:
            return await places.search_places(query, location, language, radius)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"Place search failed for {query!r}: {e}")
            return []

    async def search_category_places(
        self,
        query: str,
        center: Any,
        radius: float,
        min_rating: float,
        type_label: str,
        language: str = config.DEFAULT_LANGUAGE,
    ) -> List[Place]:
        try:
            return await places.search_category_places(query, center, radius, min_rating, type_label, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"{type_label} search failed: {e}")
            return []

    async def search_nearby_places(
        self,
        query: Optional[str],
        location: Any,
        radius: float,
        language: str = config.DEFAULT_LANGUAGE,
    ) -> List[Place]:
        try:
            return await places.search_nearby_places(query, location, radius, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"Nearby search failed: {e}")
            return []

    async def search_location_coordinates(self, query: str) -> Optional[Location]:
        try:
            return await places.search_location_coordinates(query)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"Location lookup failed for {query!r}: {e}")
            return None

    async def autocomplete_places(
        self,
        input_text: str,
        location: Optional[Any] = None,
        language: str = config.DEFAULT_LANGUAGE,
    ) -> List[Dict[str, Any]]:
        try:
            return await places.autocomplete_places(input_text, location, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"Autocomplete failed: {e}")
            return []

    async def get_place_details(self, place_id: str, language: Optional[str] = None) -> Optional[Place]:
        try:
            return await places.get_place_details(place_id, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.error(f"Place details failed for {place_id}: {e}")
            return None

    async def get_directions(
        self,
        origin: Any,
        destination: Any,
        mode: str = "DRIVE",
        language: str = config.DEFAULT_LANGUAGE,
    ) -> Optional[Directions]:
        try:
            return await routes.get_directions(origin, destination, mode, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.warning(f"Directions failed: {e}")
            return None

    async def get_distance_matrix(
        self,
        origins: Sequence[Any],
        destinations: Sequence[Any],
        mode: str = "DRIVE",
        language: str = config.DEFAULT_LANGUAGE,
    ) -> Optional[List[MatrixEntry]]:
        try:
            return await distance_matrix.get_distance_matrix(origins, destinations, mode, language)
        except (GeoServiceError, ConfigurationError) as e:
            logger.warning(f"Distance matrix failed: {e}")
            return None
