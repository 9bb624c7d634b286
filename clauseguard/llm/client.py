"""
Model client with ordered multi-model fallback.

Candidates are tried one after another; the first non-empty reply wins.
Failures are classified by HTTP status so callers can tell an auth problem
from a provider outage.
"""

from typing import Any, Dict, List, Optional, Sequence

from clauseguard.config import Settings, get_settings
from clauseguard.llm.backends import Message, ModelBackend, create_backend
from clauseguard.llm.prompts import JSON_ONLY_INSTRUCTION, SYSTEM_PROMPT
from clauseguard.utils.errors import (
    AllModelsFailedError,
    AuthenticationError,
    ModelError,
    ModelNotFoundError,
    RateLimitedError,
    ServiceUnavailableError,
)
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

# Categories that are re-raised as-is when every candidate hit the same one
UNIFORM_FAILURES = (AuthenticationError, RateLimitedError, ServiceUnavailableError)


def classify_model_error(error: ModelError) -> ModelError:
    """Map a transport failure onto the model error taxonomy by status code."""
    status = error.status_code
    if status == 401:
        cls = AuthenticationError
    elif status == 404 and "model" in error.message.lower():
        cls = ModelNotFoundError
    elif status == 429:
        cls = RateLimitedError
    elif status is not None and status >= 500:
        cls = ServiceUnavailableError
    else:
        return error
    return cls(error.message, status_code=status, model=error.model)


class ModelClient:
    """Send prompts to the configured provider, falling back across models."""

    def __init__(
        self,
        backend: ModelBackend,
        models: Sequence[str],
        temperature: float = 0.2,
        max_tokens: int = 4000,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        """
        Initialize the model client.

        Args:
            backend: Provider strategy performing the actual call
            models: Candidate model ids in priority order
            temperature: Sampling temperature
            max_tokens: Reply token limit
            system_prompt: Base system prompt
        """
        if not models:
            raise ValueError("At least one candidate model is required")
        self.backend = backend
        self.models = list(models)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    async def complete(
        self,
        messages: List[Message],
        force_json: bool = False,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Get a reply from the first candidate model that produces one.

        Args:
            messages: Conversation turns ({"role", "content"})
            force_json: Demand a bare JSON object in the reply
            system_prompt: Override for the base system prompt

        Returns:
            Reply text

        Raises:
            AuthenticationError, RateLimitedError, ServiceUnavailableError:
                when every candidate failed the same way
            AllModelsFailedError: otherwise
        """
        system = system_prompt or self.system_prompt
        if force_json:
            system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}"

        failures: List[ModelError] = []
        for model in self.models:
            try:
                text = await self.backend.create_message(
                    model=model,
                    system=system,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
            except ModelError as e:
                error = classify_model_error(e)
                logger.warning(
                    f"Model {model} failed: {type(error).__name__}",
                    extra={"model": model, "status_code": error.status_code},
                )
                failures.append(error)
                continue

            if text and text.strip():
                if failures:
                    logger.info(f"Model {model} succeeded after {len(failures)} fallback(s)")
                return text

            logger.warning(f"Model {model} returned an empty reply", extra={"model": model})
            failures.append(ModelError("Empty response", model=model))

        raise self._final_error(failures)

    @staticmethod
    def _final_error(failures: List[ModelError]) -> ModelError:
        for category in UNIFORM_FAILURES:
            if failures and all(type(f) is category for f in failures):
                last = failures[-1]
                return category(
                    last.message,
                    status_code=last.status_code,
                    model=last.model,
                    details={"attempts": len(failures)},
                )

        attempts: List[Dict[str, Any]] = [
            {"model": f.model, "error": type(f).__name__, "status_code": f.status_code}
            for f in failures
        ]
        return AllModelsFailedError(attempts)

    async def close(self) -> None:
        await self.backend.close()


def create_model_client(settings: Optional[Settings] = None) -> ModelClient:
    """Create a model client for the configured provider and candidates."""
    settings = settings or get_settings()
    backend = create_backend(settings.llm_provider, settings.llm_api_key)
    return ModelClient(
        backend=backend,
        models=settings.model_candidates,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
