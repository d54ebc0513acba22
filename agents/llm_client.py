# agents/llm_client.py
"""Stateless Gemini completion client shared by every agent."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

import config
from errors import LLMServiceError
from workflows.schemas import Message

logger = logging.getLogger(__name__)

NO_API_KEY_MESSAGE = "죄송합니다. AI 채팅 기능을 사용할 수 없습니다. API 키를 설정해주세요."
EMPTY_RESPONSE_MESSAGE = "죄송합니다. 응답을 생성할 수 없습니다."


def content_to_text(content: Any) -> str:
    """Flatten a LangChain message content (string or list of parts) to text."""
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, dict):
                text = part.get("text") or part.get("content") or ""
                if text:
                    parts.append(str(text))
            elif isinstance(part, str):
                parts.append(part)
        return "".join(parts).strip()
    return str(content or "").strip()


class GeminiChatClient:
    """Send ``system prompt + history + message`` to Gemini and return raw text.

    The client holds no conversation state. A missing credential is not an
    error: ``complete_chat`` answers with :data:`NO_API_KEY_MESSAGE` and makes
    no network call. Any failure of the service call itself raises
    :class:`LLMServiceError`.
    """

    def __init__(
        self,
        model_name: str = config.GEMINI_MODEL_NAME,
        temperature: float = config.GEMINI_TEMPERATURE,
        max_output_tokens: int = config.GEMINI_MAX_OUTPUT_TOKENS,
        model=None,
        api_key: Optional[str] = None,
    ) -> None:
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._api_key = api_key if api_key is not None else config.get_google_api_key()
        self._model = model

    @property
    def configured(self) -> bool:
        return self._model is not None or bool(self._api_key)

    def _ensure_model(self) -> ChatGoogleGenerativeAI:
        if self._model is None:
            self._model = ChatGoogleGenerativeAI(
                model=self.model_name,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                google_api_key=self._api_key,
            )
        return self._model

    @staticmethod
    def build_messages(system_prompt: str, message: str, history: Sequence[Message] = ()) -> List[BaseMessage]:
        turns = list(history)
        # Callers often pass the history with the new user turn already appended.
        if turns and turns[-1].sender == "user" and turns[-1].text == message:
            turns = turns[:-1]

        messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
        for turn in turns:
            if turn.sender == "user":
                messages.append(HumanMessage(content=turn.text))
            else:
                messages.append(AIMessage(content=turn.text))
        messages.append(HumanMessage(content=message))
        return messages

    async def complete_chat(self, system_prompt: str, message: str, history: Sequence[Message] = ()) -> str:
        if not self.configured:
            logger.error("Gemini API key is not configured")
            return NO_API_KEY_MESSAGE

        messages = self.build_messages(system_prompt, message, history)
        try:
            response = await self._ensure_model().ainvoke(messages)
        except Exception as e:
            # The Google SDK raises a variety of unrelated exception types.
            logger.error(f"Gemini API call failed: {e}")
            raise LLMServiceError(f"Gemini completion failed: {e}") from e

        text = content_to_text(getattr(response, "content", ""))
        return text or EMPTY_RESPONSE_MESSAGE


def format_history(history: Sequence[Message], limit: int) -> str:
    """Render the last ``limit`` turns as ``User:``/``Assistant:`` lines for a prompt."""
    turns = list(history)[-limit:] if limit > 0 else []
    if not turns:
        return "(none)"
    lines = []
    for turn in turns:
        speaker = "User" if turn.sender == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.text}")
    return "\n".join(lines)
