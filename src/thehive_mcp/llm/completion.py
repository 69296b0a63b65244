"""
Completion back-ends and the structured-output retry loop.

Both back-ends return raw reply text (or ``None`` for a failed attempt);
``complete_structured`` owns schema prompting, parsing and the correction
protocol so they behave identically.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, List, Optional, Protocol, Sequence, Type, TypeVar

import anyio
import openai
from mcp import types
from mcp.shared.exceptions import McpError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.credentials import OpenAICredentials
from ..core.errors import TranslationError
from ..core.logging import get_logger
from .extraction import parse_reply
from .messages import assistant_message, message_text, user_message


logger = get_logger("thehive_mcp.llm")

MAX_COMPLETION_RETRIES = 3
SAMPLING_TIMEOUT_SECONDS = 60.0
SAMPLING_MAX_TOKENS = 4096
LOGGED_MESSAGE_CHARS = 2000

NOT_CONFIGURED = "OpenAI not configured - consider implementing sampling alternative"

ModelT = TypeVar("ModelT", bound=BaseModel)


class CompletionProvider(Protocol):
    name: str
    exhausted_message: str

    async def complete(self, messages: Sequence[types.PromptMessage]) -> Optional[str]:
        ...


def schema_instruction(target: Type[BaseModel]) -> str:
    schema = json.dumps(target.model_json_schema(), indent=2)
    return (
        "Respond with a JSON object that matches the following schema, "
        f"without any additional text: {schema}"
    )


def _log_request(provider: CompletionProvider, messages: Sequence[types.PromptMessage]) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for index, message in enumerate(messages):
        text = message_text(message)
        if len(text) > LOGGED_MESSAGE_CHARS:
            text = text[:LOGGED_MESSAGE_CHARS] + "... (truncated)"
        logger.debug("%s request message %d [%s]: %s", provider.name, index, message.role, text)


async def complete_structured(
    provider: CompletionProvider,
    messages: Sequence[types.PromptMessage],
    target: Type[ModelT],
    max_retries: int = MAX_COMPLETION_RETRIES,
) -> ModelT:
    """
    Ask ``provider`` for a reply matching ``target`` and parse it.

    A reply that does not parse is sent back with a correction request,
    unless it mentions an error, in which case the model's answer is final.
    Failed calls and empty replies are retried as they are.
    """

    conversation: List[types.PromptMessage] = list(messages)
    conversation.append(user_message(schema_instruction(target)))

    for attempt in range(1, max_retries + 1):
        _log_request(provider, conversation)
        started = time.monotonic()
        content = await provider.complete(conversation)
        duration_ms = (time.monotonic() - started) * 1000

        if not content:
            logger.warning("%s returned no content (attempt %d)", provider.name, attempt)
            continue

        logger.debug("%s response after %.0f ms: %s", provider.name, duration_ms, content)

        try:
            return parse_reply(content, target)
        except PydanticValidationError as exc:
            logger.warning(
                "Failed to parse %s response (attempt %d): %s",
                provider.name,
                attempt,
                exc,
            )
            if "error" in content.lower():
                raise TranslationError(f"model returned error response: {content}") from exc
            conversation = conversation + [
                assistant_message(content),
                user_message(
                    f"The previous response was invalid. Got error: {exc}. Please try again."
                ),
            ]

    raise TranslationError(provider.exhausted_message)


class OpenAIProvider:
    """
    Completion through an OpenAI-compatible chat API.

    The first message is sent as the system prompt.
    """

    name = "openai"
    exhausted_message = "failed to get model completion after max retries"

    def __init__(self, credentials: OpenAICredentials, client: Optional[Any] = None) -> None:
        self.model = credentials.model
        self.max_tokens = credentials.max_tokens
        self._client = client or openai.AsyncOpenAI(
            base_url=credentials.base_url,
            api_key=credentials.api_key,
        )

    @staticmethod
    def to_chat_messages(messages: Sequence[types.PromptMessage]) -> List[dict]:
        chat = []
        for index, message in enumerate(messages):
            role = "system" if index == 0 else message.role
            chat.append({"role": role, "content": message_text(message)})
        return chat

    async def complete(self, messages: Sequence[types.PromptMessage]) -> Optional[str]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=self.to_chat_messages(messages),
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as exc:
            logger.warning("Failed to get model completion: %s", exc)
            return None

        if not response.choices:
            logger.warning("No choices in model response")
            return None
        return response.choices[0].message.content


class SamplingProvider:
    """
    Completion delegated to the MCP client's own model via sampling.
    """

    name = "sampling"
    exhausted_message = "failed to get sampling model completion after max retries"

    def __init__(
        self,
        session: Any,
        related_request_id: Optional[types.RequestId] = None,
        timeout_seconds: float = SAMPLING_TIMEOUT_SECONDS,
        max_tokens: int = SAMPLING_MAX_TOKENS,
    ) -> None:
        self._session = session
        self._related_request_id = related_request_id
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens

    async def complete(self, messages: Sequence[types.PromptMessage]) -> Optional[str]:
        system_prompt = message_text(messages[0]) if messages else None
        sampling_messages = [
            types.SamplingMessage(role=message.role, content=message.content)
            for message in messages[1:]
        ]

        try:
            with anyio.fail_after(self.timeout_seconds):
                result = await self._session.create_message(
                    messages=sampling_messages,
                    max_tokens=self.max_tokens,
                    system_prompt=system_prompt,
                    related_request_id=self._related_request_id,
                )
        except (McpError, TimeoutError) as exc:
            logger.warning("Failed to get sampling model completion: %s", exc)
            return None

        if not isinstance(result.content, types.TextContent):
            logger.warning("Sampling model did not return text content: %r", result.content)
            return None
        return result.content.text


# Set once at startup from OPENAI_* settings; read-only afterwards.
_default_provider: Optional[CompletionProvider] = None


def set_default_provider(provider: Optional[CompletionProvider]) -> None:
    global _default_provider
    _default_provider = provider


def client_supports_sampling(session: Any) -> bool:
    if session is None:
        return False
    return session.check_client_capability(
        types.ClientCapabilities(sampling=types.SamplingCapability())
    )


def select_provider(ctx: Any) -> CompletionProvider:
    """
    Pick a back-end for ``ctx``: client sampling first, then the request's
    OpenAI settings, then the process-wide client.
    """

    session = getattr(ctx, "session", None)
    if client_supports_sampling(session):
        logger.info("Using MCP sampling for completion")
        return SamplingProvider(session, related_request_id=getattr(ctx, "request_id", None))

    completion = getattr(ctx, "completion", None)
    if completion is not None:
        return completion
    if _default_provider is not None:
        return _default_provider
    raise TranslationError(NOT_CONFIGURED)
