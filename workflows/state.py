"""Typed state model carried through one chat turn of the travel map graph."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

import config
from workflows.schemas import AgentName, Location, Message, Place, RouteLeg


class ChatTurnState(BaseModel):
    # inputs
    message: str
    history: List[Message] = Field(default_factory=list)
    language: str = config.DEFAULT_LANGUAGE
    current_location: Optional[Location] = None
    map_center: Optional[Location] = None
    saved_places: List[Place] = Field(default_factory=list)
    search_results: List[Place] = Field(default_factory=list)
    radius: Optional[float] = None
    min_rating: Optional[float] = None
    search_enabled: bool = False

    # routing
    agent: Optional[AgentName] = None
    reason: str = ""

    # outputs
    response: Optional[str] = None
    search_query: Optional[str] = None
    route_paths: List[RouteLeg] = Field(default_factory=list)
    failed: bool = False
