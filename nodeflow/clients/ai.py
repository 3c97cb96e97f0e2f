"""
AI backend clients used by the AI node.

Only a mocked backend ships with NodeFlow. Any object with the same
``generate`` coroutine can be passed to the AI executor instead.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from dataclasses import dataclass
import asyncio
import logging

from nodeflow.config import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AiCompletion:
    """Result of an AI call: exactly one of ``response`` or ``error`` is set."""
    response: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"response": self.response, "error": self.error}


class AiClient(ABC):
    """Interface of an AI backend."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> AiCompletion:
        """Send a prompt and return the completion."""


class MockAiClient(AiClient):
    """
    Deterministic stand-in for an AI backend.

    Any prompt containing "error" (case-insensitive) produces an error
    completion; every other prompt is echoed back in a canned response.
    """

    def __init__(self, latency_ms: Optional[int] = None):
        self.latency_ms = settings.AI_MOCK_LATENCY_MS if latency_ms is None else latency_ms

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> AiCompletion:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        logger.debug(f"Mock AI call: prompt={prompt!r} system={system_prompt!r} model={model_id!r}")

        if "error" in prompt.lower():
            return AiCompletion(error="This is a mock error from AI.")

        return AiCompletion(
            response=(
                f'Mock AI Response for prompt: "{prompt}" '
                f"(System: {system_prompt or 'default'}, Model: {model_id or 'default'})"
            )
        )
