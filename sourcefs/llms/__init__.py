"""Chat model providers for the SourceFS agent."""

from sourcefs.llms.base import BaseModelProvider, ToolCallingChatModel
from sourcefs.llms.langchain_provider import LangChainModelProvider

__all__ = ["BaseModelProvider", "ToolCallingChatModel", "LangChainModelProvider"]
