"""
SourceFS - answers questions about source code and documentation.

The ``SourceFS`` class wires the resource loader, collection assembler,
agent loop and stream encoder together. Each question gets its own virtual
collection, which is torn down once the answer is complete.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from sourcefs.agent.events import AgentEvent, Finish, Usage
from sourcefs.agent.loop import AgentLoop, AgentLoopOptions
from sourcefs.collections.metadata import CollectionMetadataStore
from sourcefs.collections.service import CollectionsService, ResourceLoader
from sourcefs.config import SourceFSConfig
from sourcefs.llms.base import BaseModelProvider
from sourcefs.llms.langchain_provider import LangChainModelProvider
from sourcefs.metrics import Metrics
from sourcefs.pricing.base import BasePricingLookup, NoPricing
from sourcefs.pricing.models_dev import ModelsDevPricing
from sourcefs.resources.service import ResourcesService
from sourcefs.stream.events import MetaEvent
from sourcefs.stream.service import SseStream
from sourcefs.types import CollectionResult
from sourcefs.virtual_fs import VfsRegistry


@dataclass
class AskResult:
    """A finished answer."""

    answer: str
    model: dict[str, str]
    resources: list[str]
    collection_key: str
    events: list[AgentEvent] = field(default_factory=list)

    @property
    def usage(self) -> Usage | None:
        for event in reversed(self.events):
            if isinstance(event, Finish):
                return event.usage
        return None


class SourceFS:
    """
    SourceFS - question answering over virtualized source collections.

    Usage:
        async with SourceFS(SourceFSConfig.from_env()) as sourcefs:
            result = await sourcefs.ask("How do I define a route?", ["svelte"])
            print(result.answer)
    """

    def __init__(
        self,
        config: SourceFSConfig | None = None,
        resources: ResourceLoader | None = None,
        model_provider: BaseModelProvider | None = None,
        pricing: BasePricingLookup | None = None,
        registry: VfsRegistry | None = None,
        metadata_store: CollectionMetadataStore | None = None,
    ):
        """
        Initialize SourceFS.

        Args:
            config: SourceFS configuration. Read from the environment if not provided.
            resources: Custom resource loader.
            model_provider: Custom chat model provider.
            pricing: Custom pricing lookup.
            registry: VFS registry to share with other components.
            metadata_store: Collection metadata store to share with other components.
        """
        self.config = config or SourceFSConfig.from_env()
        Metrics.set_quiet(self.config.quiet)

        self.registry = registry or VfsRegistry()
        self.metadata_store = metadata_store or CollectionMetadataStore()
        self.resources = resources or ResourcesService(self.config)
        self.model_provider = model_provider or LangChainModelProvider()
        self.pricing = pricing or self._create_pricing()

        self.collections = CollectionsService(
            self.config, self.resources, self.registry, self.metadata_store
        )
        self.agent = AgentLoop(
            self.model_provider,
            self.registry,
            tools_config=self.config.tools,
            debug=self.config.debug,
        )

    def _debug_log(self, message: str) -> None:
        """Log a debug message if debug mode is enabled."""
        if self.config.debug:
            print(f"[SourceFS DEBUG] {message}")

    def _create_pricing(self) -> BasePricingLookup:
        """Create the pricing lookup based on config."""
        if not self.config.pricing.enabled:
            return NoPricing()
        return ModelsDevPricing(
            url=self.config.pricing.url,
            ttl_seconds=self.config.pricing.ttl_seconds,
        )

    def _agent_options(self, collection: CollectionResult, question: str) -> AgentLoopOptions:
        return AgentLoopOptions(
            provider_id=self.config.agent.provider,
            model_id=self.config.agent.model,
            collection_path=collection.root_path,
            vfs_instance_id=collection.vfs_instance_id,
            agent_instructions=collection.agent_instructions,
            question=question,
            max_steps=self.config.agent.max_steps,
            temperature=self.config.agent.temperature,
        )

    def _model_info(self) -> dict[str, str]:
        return {"provider": self.config.agent.provider, "model": self.config.agent.model}

    async def _cleanup(self, collection: CollectionResult) -> None:
        try:
            await collection.cleanup()
        except Exception as e:
            Metrics.error(
                "collections.cleanup_failed",
                collectionKey=collection.collection_key,
                error=Metrics.error_info(e),
            )

    # =========================================================================
    # Public API
    # =========================================================================

    async def ask(self, question: str, resource_names: list[str]) -> AskResult:
        """
        Answer a question using the named resources.

        Args:
            question: The question to answer.
            resource_names: Configured resource names or ad-hoc references
                (https git URLs, ``npm:`` package references).

        Returns:
            The answer together with every agent event.

        Raises:
            CollectionError: If the collection cannot be loaded.
            AgentError: If the model fails to answer.
        """
        collection = await self.collections.load(resource_names, quiet=self.config.quiet)
        self._debug_log(f"ask() collection {collection.collection_key} loaded")

        try:
            result = await self.agent.run(self._agent_options(collection, question))
            if result.error is not None:
                raise result.error
            return AskResult(
                answer=result.answer,
                model=result.model,
                resources=collection.resource_names,
                collection_key=collection.collection_key,
                events=result.events,
            )
        finally:
            await asyncio.shield(self._cleanup(collection))

    async def ask_stream(self, question: str, resource_names: list[str]) -> SseStream:
        """
        Answer a question as a stream of SSE frames.

        The collection is loaded before this returns, so load failures raise
        here; anything later is reported as an ``error`` frame. The collection
        is torn down when the stream ends or is closed.

        Raises:
            CollectionError: If the collection cannot be loaded.
        """
        request_start = time.perf_counter()
        self.pricing.prefetch()

        collection = await self.collections.load(resource_names, quiet=self.config.quiet)
        meta = MetaEvent(
            model=self._model_info(),
            resources=collection.resource_names,
            collection={"key": collection.collection_key, "path": collection.root_path},
        )

        async def on_close() -> None:
            await self._cleanup(collection)

        return SseStream(
            meta=meta,
            events=self.agent.stream(self._agent_options(collection, question)),
            question=question,
            request_start=request_start,
            pricing=self.pricing,
            pricing_timeout_ms=self.config.pricing.timeout_ms,
            on_close=on_close,
        )

    def close(self) -> None:
        """Dispose every virtual filesystem and forget all collection metadata."""
        self.registry.dispose_all()
        self.metadata_store.clear_all()

    async def __aenter__(self) -> "SourceFS":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_sourcefs(config: SourceFSConfig | None = None) -> SourceFS:
    """
    Create a SourceFS instance.

    Args:
        config: Configuration. Read from the environment if not provided.
    """
    return SourceFS(config=config)
