"""
Abstract base class for SourceFS model providers.

A model provider hands the agent loop a ready-to-use chat model that can
stream responses and call tools. Authentication and request translation
are the provider's business; the agent loop only binds tools and streams.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Protocol, Sequence, runtime_checkable


@runtime_checkable
class ToolCallingChatModel(Protocol):
    """The subset of a LangChain chat model the agent loop relies on."""

    def bind_tools(self, tools: Sequence[Any], **kwargs: Any) -> Any: ...

    def astream(self, input: Any, config: Any = None, **kwargs: Any) -> AsyncIterator[Any]: ...


class BaseModelProvider(ABC):
    """Abstract base class for model providers."""

    @abstractmethod
    def get_model(
        self,
        provider_id: str,
        model_id: str,
        temperature: float | None = None,
        **options: Any,
    ) -> ToolCallingChatModel:
        """
        Create a chat model handle.

        Args:
            provider_id: Provider identifier (e.g., "openai", "anthropic").
            model_id: Model identifier within the provider.
            temperature: Optional sampling temperature.
            **options: Provider-specific options.

        Returns:
            A chat model supporting ``bind_tools`` and ``astream``.

        Raises:
            InvalidProviderError: If the provider is unknown or unavailable.
        """
        pass

    def available_providers(self) -> list[str]:
        """Provider ids this provider can serve, when known."""
        return []
