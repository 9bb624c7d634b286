"""
Provider backends for the model client.

Each backend turns one request (model id, system prompt, messages,
temperature, max tokens) into the response text, and wraps any SDK failure
in a ModelError carrying the HTTP status code when one exists.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from clauseguard.utils.errors import MissingConfigurationError, ModelError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

Message = Dict[str, str]


class ModelBackend(ABC):
    """Strategy interface for a language-model provider."""

    name: str = "backend"

    @abstractmethod
    async def create_message(
        self,
        model: str,
        system: str,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Send one request and return the text of the reply.

        Raises:
            ModelError: For any transport or API failure
        """
        pass

    async def close(self) -> None:
        """Release HTTP resources held by the SDK client."""
        pass


def _status_of(error: Exception) -> Optional[int]:
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


class AnthropicBackend(ModelBackend):
    """Anthropic messages API; replies arrive as a list of content blocks."""

    name = "anthropic"

    def __init__(self, api_key: Optional[str], client=None) -> None:
        if client is None:
            if not api_key:
                raise MissingConfigurationError("ANTHROPIC_API_KEY")
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=api_key)
        self._client = client

    async def create_message(
        self,
        model: str,
        system: str,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=model,
                system=system,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise ModelError(str(e), status_code=_status_of(e), model=model) from e

        texts = [block.text for block in response.content or [] if getattr(block, "type", None) == "text"]
        return "".join(texts)

    async def close(self) -> None:
        await self._client.close()


class OpenAIBackend(ModelBackend):
    """OpenAI chat completions API; the system prompt travels as the first message."""

    name = "openai"

    def __init__(self, api_key: Optional[str], client=None) -> None:
        if client is None:
            if not api_key:
                raise MissingConfigurationError("OPENAI_API_KEY")
            import openai

            client = openai.AsyncOpenAI(api_key=api_key)
        self._client = client

    async def create_message(
        self,
        model: str,
        system: str,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system}, *messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise ModelError(str(e), status_code=_status_of(e), model=model) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


BACKENDS = {
    "anthropic": AnthropicBackend,
    "openai": OpenAIBackend,
}


def create_backend(provider: str, api_key: Optional[str]) -> ModelBackend:
    """Instantiate the backend registered for a provider name."""
    try:
        backend_class = BACKENDS[provider]
    except KeyError:
        raise ValueError(f"Unknown LLM provider '{provider}'. Available: {sorted(BACKENDS)}")
    return backend_class(api_key=api_key)
