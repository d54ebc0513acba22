"""FastAPI application exposing the travel map assistant runtime."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import config
from workflows.runtime import ChatRuntime
from workflows.schemas import Location, Place, annotate_distances

app = FastAPI(title="Travel Map Assistant API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

runtime = ChatRuntime()
# At most one chat turn in flight.
_turn_lock = asyncio.Lock()


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    language: str = config.DEFAULT_LANGUAGE
    current_location: Optional[Location] = None
    map_center: Optional[Location] = None
    search_results: List[Dict[str, Any]] = Field(default_factory=list)
    saved_places: Optional[List[Dict[str, Any]]] = None
    radius: Optional[float] = None
    min_rating: Optional[float] = None
    enable_search: bool = True


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    location: Optional[Location] = None
    language: str = config.DEFAULT_LANGUAGE
    radius: Optional[float] = None
    min_rating: Optional[float] = None
    category: Optional[str] = None


async def _search(request: SearchRequest) -> List[Place]:
    if request.category and request.location is not None:
        places = await runtime.geo.search_category_places(
            request.query,
            request.location,
            request.radius or config.DEFAULT_SEARCH_RADIUS_M,
            request.min_rating or config.DEFAULT_MIN_RATING,
            request.category,
            request.language,
        )
    else:
        places = await runtime.geo.search_places(request.query, request.location, request.language, request.radius)
    return annotate_distances(places, request.location)


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok", "missing_keys": config.validate_api_keys()}


@app.post("/chat")
async def chat(request: ChatRequest) -> Dict[str, Any]:
    found: List[Place] = []

    async def on_search(query: str) -> None:
        found.extend(await _search(SearchRequest(
            query=query,
            location=request.map_center or request.current_location,
            language=request.language,
            radius=request.radius,
        )))

    async with _turn_lock:
        result = await runtime.chat(
            request.message,
            search_results=request.search_results,
            language=request.language,
            current_location=request.current_location,
            saved_places=request.saved_places,
            radius=request.radius,
            min_rating=request.min_rating,
            on_search=on_search if request.enable_search else None,
            map_center=request.map_center,
        )

    payload = jsonable_encoder(result.model_dump())
    payload["places"] = jsonable_encoder([p.model_dump(exclude_none=True) for p in found])
    return payload


@app.get("/history")
async def get_history() -> Dict[str, Any]:
    return {"messages": jsonable_encoder([m.model_dump() for m in runtime.memory.load()])}


@app.delete("/history")
async def clear_history() -> Dict[str, str]:
    runtime.memory.clear()
    return {"status": "cleared"}


@app.get("/saved-places")
async def list_saved_places() -> Dict[str, Any]:
    places = runtime.saved_places.load()
    return {"places": jsonable_encoder([p.model_dump(exclude_none=True) for p in places])}


@app.post("/saved-places")
async def save_place(place: Place) -> Dict[str, Any]:
    places = runtime.saved_places.add(place)
    return {"places": jsonable_encoder([p.model_dump(exclude_none=True) for p in places])}


@app.delete("/saved-places/{place_id}")
async def remove_saved_place(place_id: str) -> Dict[str, Any]:
    if not runtime.saved_places.contains(place_id):
        raise HTTPException(status_code=404, detail="Saved place not found")
    places = runtime.saved_places.remove(place_id)
    return {"places": jsonable_encoder([p.model_dump(exclude_none=True) for p in places])}


@app.post("/search")
async def search(request: SearchRequest) -> Dict[str, Any]:
    places = await _search(request)
    return {"places": jsonable_encoder([p.model_dump(exclude_none=True) for p in places])}


def serve() -> None:
    import uvicorn

    uvicorn.run("api.main:app", host=config.API_HOST, port=config.API_PORT)


if __name__ == "__main__":
    serve()
