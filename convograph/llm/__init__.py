"""Model-call collaborators."""

from convograph.llm.client import (
    AnthropicChatClient,
    ChatClient,
    ChatRequest,
    ChatResponse,
    LangChainChatClient,
    OpenAIChatClient,
    TokenUsage,
    create_client,
)
from convograph.llm.errors import LLMError, LLMErrorCode, code_for_status, to_llm_error

__all__ = [
    "AnthropicChatClient",
    "ChatClient",
    "ChatRequest",
    "ChatResponse",
    "LangChainChatClient",
    "OpenAIChatClient",
    "TokenUsage",
    "create_client",
    "LLMError",
    "LLMErrorCode",
    "code_for_status",
    "to_llm_error",
]
