"""Base class for Claude-backed generators.

Subclasses define the prompt and how to parse the reply; the base handles
the Anthropic call and turns provider failures into GenerationError codes
that are safe to store on a job or surface to a caller.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import anthropic

from app.config import settings
from app.core.exceptions import GenerationError, GenerationTimeoutError

logger = logging.getLogger(__name__)

TInput = TypeVar("TInput")
TOutput = TypeVar("TOutput")

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class BaseGenerator(ABC, Generic[TInput, TOutput]):
    """Abstract base for all generators.

    The pipeline treats a generator as a pure, possibly slow, possibly
    failing function of its input.
    """

    # Override in subclasses
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1000

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or settings.anthropic_api_key
        if model:
            self.model = model
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    @abstractmethod
    def get_system_prompt(self) -> str:
        """Return the system prompt for this generator."""
        ...

    @abstractmethod
    def format_input(self, input_data: TInput) -> str:
        """Convert typed input to prompt string."""
        ...

    @abstractmethod
    def parse_output(self, response_text: str) -> TOutput:
        """Parse LLM response into typed output."""
        ...

    async def generate(self, input_data: TInput) -> TOutput:
        """Main entry point: generate output for one input."""
        user_message = self.format_input(input_data)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.get_system_prompt(),
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.RateLimitError as e:
            raise GenerationError("Rate limit reached", code="rate_limited") from e
        except anthropic.APITimeoutError as e:
            raise GenerationTimeoutError("Provider request timed out") from e
        except anthropic.APIError as e:
            logger.warning(f"{type(self).__name__}: provider error: {e}")
            raise GenerationError("Provider error", code="provider_error") from e

        if not response.content:
            raise GenerationError("Empty response from model", code="invalid_output")

        first_block = response.content[0]
        response_text = first_block.text if hasattr(first_block, "text") else str(first_block)
        return self.parse_output(response_text)


def parse_json_object(response_text: str) -> dict[str, Any]:
    """
    Extract a JSON object from a model reply.

    Accepts bare JSON or JSON inside a ``` fence.

    Raises:
        GenerationError: If no JSON object can be decoded
    """
    text = response_text.strip()
    fenced = _JSON_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError("Model reply was not valid JSON", code="invalid_output") from e

    if not isinstance(data, dict):
        raise GenerationError("Model reply was not a JSON object", code="invalid_output")
    return data
