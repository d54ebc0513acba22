"""Role prompts for the travel map agents.

Each agent reads its system prompt from a markdown file in this directory.
Placeholders use ``str.format`` fields, so literal braces in a prompt are
doubled. Setting ``TRAVEL_MAP_PROMPT_<NAME>`` swaps a prompt at runtime,
either with a path to a file or with the prompt text itself.
"""
from __future__ import annotations

import os
import string
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, FrozenSet, Optional

__all__ = ["LANGUAGE_NAMES", "PromptTemplate", "language_name", "load_prompt_template"]

PROMPT_DIR = Path(__file__).resolve().parent
OVERRIDE_PREFIX = "TRAVEL_MAP_PROMPT_"

LANGUAGE_NAMES = {
    "ko": "한국어",
    "en": "English",
    "ja": "日本語",
    "zh": "中文",
}


def language_name(code: Optional[str]) -> str:
    """Map a UI language code (``ko``, ``en-US`` ...) to the name given to the model.

    A missing code means Korean; any code outside the four supported
    languages is answered in Chinese.
    """
    if not code:
        return LANGUAGE_NAMES["ko"]
    return LANGUAGE_NAMES.get(code.split("-")[0].lower(), LANGUAGE_NAMES["zh"])


@dataclass(frozen=True)
class PromptTemplate:
    text: str

    @property
    def fields(self) -> FrozenSet[str]:
        """Names of the placeholders the prompt expects."""
        return frozenset(
            field for _, field, _, _ in string.Formatter().parse(self.text) if field
        )

    def format(self, **values: Any) -> str:
        # Overrides may drop placeholders, so only pass what the text uses.
        return self.text.format(**{k: v for k, v in values.items() if k in self.fields})


def _override_text(name: str) -> Optional[str]:
    value = os.getenv(OVERRIDE_PREFIX + name.upper())
    if not value:
        return None
    candidate = Path(value)
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8")
    return value


@lru_cache(maxsize=None)
def load_prompt_template(name: str, filename: Optional[str] = None) -> PromptTemplate:
    """Return the prompt called ``name``, honouring any environment override.

    Without an override the text comes from ``<filename>`` (``<name>.md`` by
    default) in the prompt directory.
    """
    override = _override_text(name)
    if override is not None:
        return PromptTemplate(override)

    path = PROMPT_DIR / (filename or f"{name}.md")
    try:
        return PromptTemplate(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise FileNotFoundError(f"No prompt named {name!r} at {path}") from None
