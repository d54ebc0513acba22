"""Global configuration for the Travel Map Assistant.

This module loads environment variables from .env file and provides
centralized configuration for the entire application.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env in the project root directory
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


# ============================================================================
# Language Model Configuration
# ============================================================================

# Gemini model used by every agent
GEMINI_MODEL_NAME: str = os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash-lite")

# Sampling settings for conversational replies
GEMINI_TEMPERATURE: float = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
GEMINI_MAX_OUTPUT_TOKENS: int = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "1024"))

# Classification and order inference want near-deterministic output
ROUTER_TEMPERATURE: float = float(os.getenv("ROUTER_TEMPERATURE", "0.0"))
PLANNER_ORDER_TEMPERATURE: float = float(os.getenv("PLANNER_ORDER_TEMPERATURE", "0.2"))


# ============================================================================
# Agent Configuration
# ============================================================================

DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "ko")

# Search settings (radius in meters, rating on the 0-5 Google scale)
DEFAULT_SEARCH_RADIUS_M: int = int(os.getenv("DEFAULT_SEARCH_RADIUS_M", "5000"))
DEFAULT_MIN_RATING: float = float(os.getenv("DEFAULT_MIN_RATING", "0.0"))

# Supervisor looks at this many recent turns when classifying
ROUTER_HISTORY_TURNS: int = int(os.getenv("ROUTER_HISTORY_TURNS", "5"))

# Planner defaults
PLANNER_HISTORY_TURNS: int = int(os.getenv("PLANNER_HISTORY_TURNS", "6"))
PLANNER_MATRIX_MAX_CANDIDATES: int = int(os.getenv("PLANNER_MATRIX_MAX_CANDIDATES", "10"))
PLANNER_MATRIX_MODE: str = os.getenv("PLANNER_MATRIX_MODE", "DRIVE")
PLANNER_LEG_MODE: str = os.getenv("PLANNER_LEG_MODE", "TRANSIT")

# Search results shown to the communicator/search agents
CONTEXT_MAX_SEARCH_RESULTS: int = int(os.getenv("CONTEXT_MAX_SEARCH_RESULTS", "10"))


# ============================================================================
# HTTP Configuration
# ============================================================================

HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
HTTP_MAX_RETRIES: int = int(os.getenv("HTTP_MAX_RETRIES", "3"))

# Region bias for autocomplete suggestions
AUTOCOMPLETE_REGION_CODES: List[str] = os.getenv("AUTOCOMPLETE_REGION_CODES", "KR").split(",")


# ============================================================================
# Application Configuration
# ============================================================================

# FastAPI/Backend
API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS Configuration
CORS_ORIGINS: List[str] = os.getenv("CORS_ORIGINS", "*").split(",") if os.getenv("CORS_ORIGINS") else ["*"]


# ============================================================================
# Local Storage Configuration
# ============================================================================

# Sliding window for the persisted conversation log
MAX_MESSAGES: int = int(os.getenv("MAX_MESSAGES", "20"))

CONVERSATION_STORAGE_KEY: str = os.getenv("CONVERSATION_STORAGE_KEY", "travel_map_conversation")
SAVED_PLACES_STORAGE_KEY: str = os.getenv("SAVED_PLACES_STORAGE_KEY", "travel_map_saved_places")

# file | memory | redis
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "file")
STORAGE_DIR: Path = Path(os.getenv("STORAGE_DIR", str(Path.home() / ".travel_map")))

# Per-key size limit, mirrors the browser localStorage quota (0 disables)
STORAGE_QUOTA_BYTES: int = int(os.getenv("STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))

# Redis connection URL (e.g., redis://localhost:6379/0)
REDIS_URL: Optional[str] = os.getenv("REDIS_URL")


# ============================================================================
# API Keys
# ============================================================================

def get_google_api_key() -> Optional[str]:
    """Get Google API key (Gemini) from environment variables."""
    return os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")


def get_google_maps_api_key() -> Optional[str]:
    """Get Google Maps API key from environment variables."""
    return os.getenv("GOOGLE_MAPS_API_KEY")


# ============================================================================
# Validation
# ============================================================================

def validate_api_keys() -> List[str]:
    """Validate that required API keys are present. Returns list of missing keys."""
    missing = []

    if not get_google_maps_api_key():
        missing.append("GOOGLE_MAPS_API_KEY")

    if not get_google_api_key():
        missing.append("GOOGLE_API_KEY or GEMINI_API_KEY")

    return missing
