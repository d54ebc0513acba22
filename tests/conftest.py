"""Pytest fixtures for offline agent, tool and runtime tests."""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

# Ensure placeholder keys exist so modules that read env on import succeed.
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ["STORAGE_BACKEND"] = "memory"

from errors import LLMServiceError  # noqa: E402
from workflows.schemas import (  # noqa: E402
    Directions,
    MatrixEntry,
    ReverseGeocodeResult,
    TextValue,
    extract_coordinates,
)


class FakeResponse:
    """Lightweight stand-in for httpx.Response used in patched requests."""

    def __init__(self, payload: Any, status_code: int = 200, headers: Dict[str, str] | None = None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = "" if status_code < 400 else str(payload)

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def fake_response():
    """Factory that returns FakeResponse objects."""

    def _factory(payload: Any, status_code: int = 200, headers: Dict[str, str] | None = None) -> FakeResponse:
        return FakeResponse(payload, status_code=status_code, headers=headers)

    return _factory


Reply = Union[str, Exception, Callable[[str, str], str]]


class FakeLLM:
    """Scripted GeminiChatClient double.

    Replies are consumed in order; an ``Exception`` reply is raised, a
    callable reply is called with ``(system_prompt, message)``. Once the
    script runs out, ``default`` is returned.
    """

    def __init__(self, replies: Sequence[Reply] = (), default: str = "ok", configured: bool = True):
        self.replies: List[Reply] = list(replies)
        self.default = default
        self.configured = configured
        self.calls: List[Dict[str, Any]] = []

    async def complete_chat(self, system_prompt: str, message: str, history: Sequence[Any] = ()) -> str:
        self.calls.append({"system_prompt": system_prompt, "message": message, "history": list(history)})
        reply: Reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(system_prompt, message)
        return reply


class FakeGeo:
    """GeoProvider double with failure-tolerant signatures and call recording."""

    def __init__(
        self,
        matrix: Optional[List[MatrixEntry]] = None,
        fail_legs: Sequence[int] = (),
        places: Sequence[Any] = (),
        address: Optional[str] = None,
    ):
        self.matrix = matrix
        self.fail_legs = set(fail_legs)
        self.places = list(places)
        self.address = address
        self.direction_calls: List[tuple] = []
        self.matrix_calls: List[tuple] = []
        self.search_calls: List[tuple] = []

    async def reverse_geocode(self, lat, lng, language="ko"):
        if self.address is None:
            return None
        return ReverseGeocodeResult(formatted_address=self.address)

    async def get_distance_matrix(self, origins, destinations, mode="DRIVE", language="ko"):
        self.matrix_calls.append((list(origins), list(destinations), mode))
        return self.matrix

    async def get_directions(self, origin, destination, mode="DRIVE", language="ko"):
        index = len(self.direction_calls)
        self.direction_calls.append((extract_coordinates(origin), extract_coordinates(destination), mode))
        if index in self.fail_legs:
            return None
        return Directions(
            distance=TextValue(text="5.2 km", value=5200),
            duration=TextValue(text="31 min", value=1860),
            polyline=f"encoded-{index}",
        )

    async def search_places(self, query, location=None, language="ko", radius=None):
        self.search_calls.append((query, location, language, radius))
        return list(self.places)

    async def search_category_places(self, query, center, radius, min_rating, type_label, language="ko"):
        self.search_calls.append((query, center, language, radius))
        return [p.model_copy(update={"type": type_label}) for p in self.places]


@pytest.fixture
def fake_llm():
    """Factory for scripted LLM clients."""

    def _factory(*replies: Reply, default: str = "ok", configured: bool = True) -> FakeLLM:
        return FakeLLM(replies, default=default, configured=configured)

    return _factory


@pytest.fixture
def fake_geo():
    """Factory for GeoProvider doubles."""

    def _factory(**kwargs: Any) -> FakeGeo:
        return FakeGeo(**kwargs)

    return _factory


@pytest.fixture
def llm_failure():
    return LLMServiceError("Gemini completion failed: 503 unavailable")
