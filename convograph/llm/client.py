"""Chat clients for the model-execution collaborator.

The graph core only hands over a ``{role, content}`` message list and reads
back text; every provider detail stays behind ``ChatClient``.
Supports OpenAI and Anthropic through their async SDKs, and any LangChain
chat model. Each concrete client can also ``stream`` a reply as text chunks.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel

from convograph.config import Settings
from convograph.llm.errors import LLMError, LLMErrorCode, to_llm_error

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """A single chat completion request."""

    model: str
    messages: list[dict[str, str]]
    temperature: float = 0.7
    max_tokens: int | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Standardized model response."""

    content: str
    model: str | None = None
    usage: TokenUsage = TokenUsage()


class ChatClient(Protocol):
    """Anything that can turn a message list into a reply."""

    provider: str

    async def generate(self, request: ChatRequest) -> ChatResponse:
        ...


class StreamingChatClient(ChatClient, Protocol):
    """A client that can also yield the reply as it is produced."""

    def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        ...


class OpenAIChatClient:
    """Chat completions through the OpenAI async SDK."""

    provider = "openai"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai

            if not self._api_key:
                raise LLMError(
                    LLMErrorCode.api_key_missing,
                    "OPENAI_API_KEY environment variable not set",
                    provider=self.provider,
                )
            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client

    @staticmethod
    def _params(request: ChatRequest) -> dict[str, Any]:
        params = {
            "model": request.model,
            "messages": request.messages,
            "temperature": request.temperature,
        }
        if request.max_tokens:
            params["max_tokens"] = request.max_tokens
        return params

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(**self._params(request), stream=True)
            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

    async def generate(self, request: ChatRequest) -> ChatResponse:
        client = self._get_client()

        try:
            response = await client.chat.completions.create(**self._params(request))
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

        usage = response.usage
        return ChatResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
        )


class AnthropicChatClient:
    """Messages API through the Anthropic async SDK."""

    provider = "anthropic"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic

            if not self._api_key:
                raise LLMError(
                    LLMErrorCode.api_key_missing,
                    "ANTHROPIC_API_KEY environment variable not set",
                    provider=self.provider,
                )
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    @staticmethod
    def _params(request: ChatRequest) -> dict[str, Any]:
        # anthropic takes system text separately from the turn list
        system = "\n\n".join(m["content"] for m in request.messages if m["role"] == "system")
        turns = [m for m in request.messages if m["role"] != "system"]

        params = {
            "model": request.model,
            # anthropic requires max_tokens
            "max_tokens": request.max_tokens or 4096,
            "temperature": request.temperature,
            "messages": turns,
        }
        if system:
            params["system"] = system
        return params

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        client = self._get_client()
        try:
            async with client.messages.stream(**self._params(request)) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

    async def generate(self, request: ChatRequest) -> ChatResponse:
        client = self._get_client()

        try:
            response = await client.messages.create(**self._params(request))
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

        content = ""
        if response.content:
            content = "".join(
                block.text for block in response.content
                if hasattr(block, "text")
            )

        usage = response.usage
        return ChatResponse(
            content=content,
            model=response.model,
            usage=TokenUsage(
                prompt_tokens=usage.input_tokens if usage else 0,
                completion_tokens=usage.output_tokens if usage else 0,
                total_tokens=(usage.input_tokens + usage.output_tokens) if usage else 0,
            ),
        )


class LangChainChatClient:
    """Adapter for any LangChain chat model (ChatOpenAI, fakes in tests, ...)."""

    def __init__(self, chat_model: BaseChatModel, provider: str = "langchain") -> None:
        self.chat_model = chat_model
        self.provider = provider

    @staticmethod
    def to_langchain_messages(messages: list[dict[str, str]]) -> list:
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

        converted = []
        for message in messages:
            role = message["role"]
            if role == "system":
                converted.append(SystemMessage(content=message["content"]))
            elif role == "assistant":
                converted.append(AIMessage(content=message["content"]))
            else:
                converted.append(HumanMessage(content=message["content"]))
        return converted

    @staticmethod
    def _kwargs(request: ChatRequest) -> dict[str, Any]:
        kwargs = {"temperature": request.temperature}
        if request.max_tokens:
            kwargs["max_tokens"] = request.max_tokens
        return kwargs

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        messages = self.to_langchain_messages(request.messages)
        try:
            async for chunk in self.chat_model.astream(messages, **self._kwargs(request)):
                text = chunk.content if isinstance(chunk.content, str) else str(chunk.content)
                if text:
                    yield text
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

    async def generate(self, request: ChatRequest) -> ChatResponse:
        messages = self.to_langchain_messages(request.messages)

        try:
            result = await self.chat_model.ainvoke(messages, **self._kwargs(request))
        except Exception as e:
            raise to_llm_error(e, self.provider) from e

        content = result.content if isinstance(result.content, str) else str(result.content)
        usage = getattr(result, "usage_metadata", None) or {}
        return ChatResponse(
            content=content,
            model=request.model,
            usage=TokenUsage(
                prompt_tokens=usage.get("input_tokens", 0),
                completion_tokens=usage.get("output_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
        )


def create_client(provider: str, settings: Settings) -> ChatClient:
    """Build the client for a provider name.

    Supports:
    - openai: gpt-4o, gpt-4o-mini, gpt-4-turbo, ...
    - anthropic: claude-3-5-sonnet, claude-3-haiku, ...
    """
    provider_lower = provider.lower()

    if provider_lower == "openai":
        return OpenAIChatClient(api_key=settings.openai_api_key)
    elif provider_lower == "anthropic":
        return AnthropicChatClient(api_key=settings.anthropic_api_key)
    else:
        raise LLMError(
            LLMErrorCode.invalid_request,
            f"Unsupported provider: {provider}. Supported: openai, anthropic",
            provider=provider,
        )
