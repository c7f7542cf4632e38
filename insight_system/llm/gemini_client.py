"""Gemini chat client behind the LLMClient protocol.

Calls are admitted by a shared RateLimiter and retried on transient
failures. Prompts rejected by the safety filter fail immediately.
"""

from typing import Any, Optional, Protocol

import google.generativeai as genai
from google.generativeai.types.generation_types import BlockedPromptException
from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from insight_system.config.settings import settings
from insight_system.llm.payloads import ChatMessage
from insight_system.llm.rate_limiter import RateLimiter

MAX_ATTEMPTS = 5


class LLMClient(Protocol):
    """Generative-model capability consumed by extraction, oracle and pipeline."""

    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = False,
        temperature: float = 0.2,
    ) -> str:
        ...


def _log_retry(state: RetryCallState) -> None:
    logger.bind(component="GeminiClient").warning(
        f"Model call attempt {state.attempt_number}/{MAX_ATTEMPTS} failed, "
        f"retrying in {state.next_action.sleep:.2f}s: {state.outcome.exception()}"
    )


_model_retry = retry(
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=1),
    retry=retry_if_not_exception_type(BlockedPromptException),
    before_sleep=_log_retry,
    reraise=True,
)


class GeminiClient:
    """
    Google Gemini client implementing LLMClient.

    System messages become the model's system instruction; user and
    assistant messages become the conversation contents. json_mode sets the
    response MIME type so the model is constrained to JSON output.

    Attributes:
        model_name: Gemini model identifier
        rate_limiter: Shared RPM/TPM limiter
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Raises:
            ValueError: No key given and GEMINI_API_KEY is unset
        """
        api_key = api_key or settings.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY is not set; model-backed extraction is unavailable")

        genai.configure(api_key=api_key)
        self.model_name = model_name or settings.gemini_model
        self.rate_limiter = rate_limiter or RateLimiter()

        self.logger = logger.bind(component="GeminiClient", model=self.model_name)
        self.logger.info(f"Using Gemini model {self.model_name}")

    @staticmethod
    def _split_messages(messages: list[ChatMessage]) -> tuple[Optional[str], list[dict]]:
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages
            if m.role != "system"
        ]
        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    @staticmethod
    def estimate_tokens(messages: list[ChatMessage]) -> int:
        """Rough token estimate (4 characters per token) for rate limiting."""
        return max(1, sum(len(m.content) for m in messages) // 4)

    @_model_retry
    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = False,
        temperature: float = 0.2,
    ) -> str:
        """
        Generate a completion for role-tagged messages.

        Args:
            messages: Conversation; system messages are folded into the
                system instruction
            json_mode: Constrain the response to JSON
            temperature: Sampling temperature (0.0-1.0)

        Raises:
            BlockedPromptException: The safety filter rejected the prompt
            Exception: The last API error once every attempt has failed
        """
        system_instruction, contents = self._split_messages(messages)
        await self.rate_limiter.wait_for_capacity(self.estimate_tokens(messages))

        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
        )
        config_kwargs: dict[str, Any] = {"temperature": temperature}
        if json_mode:
            config_kwargs["response_mime_type"] = "application/json"

        try:
            response = await model.generate_content_async(
                contents,
                generation_config=genai.types.GenerationConfig(**config_kwargs),
            )
        except BlockedPromptException as e:
            self.logger.error(f"Safety filter rejected a {len(messages)}-message prompt: {e}")
            raise
        return response.text


_client: Optional[GeminiClient] = None


def get_llm_client() -> GeminiClient:
    """Return the process-wide Gemini client, creating it on first use."""
    global _client
    if _client is None:
        _client = GeminiClient()
    return _client
