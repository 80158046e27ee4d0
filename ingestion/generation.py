"""
LLM generation providers — OpenAI and Anthropic implementations.

Implements the async ``GenerationProvider`` protocol from core using the
OpenAI and Anthropic SDKs. Lives in ingestion/ because it performs network
I/O (core/ must remain pure). Used by the log server to post-process
inserted entries.

Transient API failures (connection drops, timeouts, rate limits) are retried
by the provider itself; the dispatcher never retries.

Usage::

    provider = create_generation_provider("openai", api_key=key, base_url=url)
    response = await provider.generate(request)
"""

import logging
import os

import anthropic
import openai
from dotenv import load_dotenv

from core.generation.base import GenerationRequest, GenerationResponse, Message
from infrastructure.retry import with_async_retry

logger = logging.getLogger(__name__)

_OPENAI_TRANSIENT: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
)

_ANTHROPIC_TRANSIENT: tuple[type[Exception], ...] = (
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.RateLimitError,
)


class OpenAIGenerationProvider:
    """
    Generation provider backed by OpenAI's chat completion API.

    Reads ``OPENAI_API_KEY`` (and ``OPENAI_BASE_URL`` for OpenAI-compatible
    gateways) from the environment unless passed explicitly. Model name is
    configurable (default: ``gpt-4o-mini``).

    Satisfies the ``GenerationProvider`` protocol.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        *,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        load_dotenv()
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not resolved_key:
            raise ValueError("OPENAI_API_KEY must be set in the environment or passed explicitly")
        resolved_base = base_url or os.environ.get("OPENAI_BASE_URL") or None
        self._client = openai.AsyncOpenAI(api_key=resolved_key, base_url=resolved_base)
        self._model = model

    @with_async_retry(max_attempts=3, base_seconds=0.5, exceptions=_OPENAI_TRANSIENT)
    async def _complete(self, messages: list[dict[str, str]], request: GenerationRequest):
        return await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Generate a completion via OpenAI chat API.

        Args:
            request: Generation request with messages, temperature, max_tokens.

        Returns:
            GenerationResponse with content and usage metadata.

        Raises:
            RuntimeError: If the API call fails.
        """
        messages = [{"role": m.role, "content": m.content} for m in request.messages]
        try:
            response = await self._complete(messages, request)
        except Exception as exc:
            raise RuntimeError(f"OpenAI generation failed: {exc}") from exc

        choice = response.choices[0]
        usage = response.usage

        return GenerationResponse(
            content=choice.message.content or "",
            model=response.model,
            usage_input_tokens=usage.prompt_tokens if usage else 0,
            usage_output_tokens=usage.completion_tokens if usage else 0,
        )


class AnthropicGenerationProvider:
    """
    Generation provider backed by Anthropic's Messages API.

    Reads ``ANTHROPIC_API_KEY`` from the environment. Model name is
    configurable (default: ``claude-3-5-haiku-latest``).

    Satisfies the ``GenerationProvider`` protocol.

    Note: Anthropic's API separates system prompt from messages.
    System messages are extracted and passed as the ``system`` parameter.
    """

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        *,
        api_key: str | None = None,
    ) -> None:
        load_dotenv()
        resolved_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        if not resolved_key:
            raise ValueError(
                "ANTHROPIC_API_KEY must be set in the environment or passed explicitly"
            )
        self._client = anthropic.AsyncAnthropic(api_key=resolved_key)
        self._model = model

    @with_async_retry(max_attempts=3, base_seconds=0.5, exceptions=_ANTHROPIC_TRANSIENT)
    async def _complete(self, kwargs: dict):
        return await self._client.messages.create(**kwargs)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Generate a completion via Anthropic Messages API.

        Args:
            request: Generation request with messages, temperature, max_tokens.

        Returns:
            GenerationResponse with content and usage metadata.

        Raises:
            RuntimeError: If the API call fails.
        """
        system_text, conversation = _split_system_messages(request.messages)

        kwargs: dict = {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in conversation],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if system_text:
            kwargs["system"] = system_text

        try:
            response = await self._complete(kwargs)
        except Exception as exc:
            raise RuntimeError(f"Anthropic generation failed: {exc}") from exc

        # Anthropic returns content as a list of blocks
        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        return GenerationResponse(
            content=content,
            model=response.model,
            usage_input_tokens=response.usage.input_tokens,
            usage_output_tokens=response.usage.output_tokens,
        )


def _split_system_messages(
    messages: tuple[Message, ...],
) -> tuple[str, tuple[Message, ...]]:
    """Separate system messages from conversation messages.

    Args:
        messages: Full message tuple including system messages.

    Returns:
        Tuple of (system_text, remaining_messages).
    """
    system_parts: list[str] = []
    conversation: list[Message] = []

    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
        else:
            conversation.append(msg)

    return "\n\n".join(system_parts), tuple(conversation)


def create_generation_provider(
    provider: str | None = None,
    *,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> OpenAIGenerationProvider | AnthropicGenerationProvider:
    """Factory: create a generation provider based on configuration.

    Reads ``LLM_PROVIDER`` from the environment if *provider* is not
    specified. Defaults to ``"openai"`` if the env var is unset.

    Args:
        provider: Provider name — ``"openai"`` or ``"anthropic"``.
        model: Optional model override. Uses provider defaults if omitted.
        api_key: Optional API key override. Reads from env if omitted.
        base_url: Optional OpenAI-compatible base URL (ignored for Anthropic).

    Returns:
        A concrete generation provider satisfying ``GenerationProvider``.

    Raises:
        ValueError: If provider name is not recognized.
    """
    load_dotenv()
    resolved_provider = (provider or os.environ.get("LLM_PROVIDER", "openai")).lower().strip()

    kwargs: dict = {}
    if model:
        kwargs["model"] = model
    if api_key:
        kwargs["api_key"] = api_key

    if resolved_provider == "openai":
        if base_url:
            kwargs["base_url"] = base_url
        return OpenAIGenerationProvider(**kwargs)

    if resolved_provider == "anthropic":
        if base_url:
            logger.warning("base_url is ignored for the anthropic provider")
        return AnthropicGenerationProvider(**kwargs)

    raise ValueError(
        f"Unknown LLM_PROVIDER: {resolved_provider!r}. Supported values: 'openai', 'anthropic'."
    )
