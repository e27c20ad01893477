"""
LangChain model provider for SourceFS.

Creates chat models with ``langchain.chat_models.init_chat_model`` so any
provider with an installed LangChain integration (langchain-openai,
langchain-anthropic, ...) can drive the agent.
"""

from __future__ import annotations

from typing import Any

from sourcefs.errors import InvalidProviderError
from sourcefs.llms.base import BaseModelProvider, ToolCallingChatModel

SUPPORTED_PROVIDERS = [
    "openai",
    "anthropic",
    "google_genai",
    "google_vertexai",
    "azure_openai",
    "bedrock_converse",
    "groq",
    "mistralai",
    "ollama",
    "xai",
    "deepseek",
]


class LangChainModelProvider(BaseModelProvider):
    """Model provider backed by LangChain chat model integrations."""

    def get_model(
        self,
        provider_id: str,
        model_id: str,
        temperature: float | None = None,
        **options: Any,
    ) -> ToolCallingChatModel:
        from langchain.chat_models import init_chat_model

        kwargs = dict(options)
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            return init_chat_model(
                model_id,
                model_provider=provider_id,
                streaming=True,
                **kwargs,
            )
        except (ValueError, ImportError) as e:
            raise InvalidProviderError(provider_id, self.available_providers(), cause=e) from e

    def available_providers(self) -> list[str]:
        return list(SUPPORTED_PROVIDERS)
