"""
Encoding of agent events into a Server-Sent Events byte stream.

``SseStream`` is a single-producer, single-consumer stream. The producer
task starts on first iteration: it emits ``meta``, then translates each
agent event into wire events, and ends with exactly one ``done`` or
``error``. Consumers may stop early with ``aclose()``/``cancel()`` or by
closing their iterator; the producer is cancelled and emitting after that is
a silent no-op. A stream closed before its first read never starts the
producer. An optional ``on_close`` callback runs once
the producer ends, however it ends.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable

from sourcefs.agent.events import (
    AgentEvent,
    Error,
    Finish,
    ReasoningDelta,
    TextDelta,
    ToolCall,
    ToolResult,
    Usage,
)
from sourcefs.errors import get_error_hint, get_error_message, get_error_tag
from sourcefs.metrics import Metrics
from sourcefs.pricing.base import BasePricingLookup, Pricing
from sourcefs.stream.events import (
    DoneEvent,
    ErrorEvent,
    MetaEvent,
    ReasoningDeltaEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolState,
    ToolUpdatedEvent,
    encode_sse,
)
from sourcefs.stream.question_filter import extract_core_question, strip_question_from_start

DEFAULT_PRICING_TIMEOUT_MS = 250

_EOF = object()


def _cost_for(tokens: int | None, usd_per_m_tokens: float | None) -> float | None:
    if tokens is None or usd_per_m_tokens is None:
        return None
    return tokens / 1_000_000 * usd_per_m_tokens


def build_pricing_metrics(pricing: Pricing, usage: Usage | None) -> dict[str, Any]:
    """Pricing section of ``done.metrics``, with a cost breakdown when computable."""
    result = pricing.to_dict()
    if usage is None:
        return result

    rates = pricing.rates
    parts = {
        "input": _cost_for(usage.input_tokens, rates.input),
        "output": _cost_for(usage.output_tokens, rates.output),
        "reasoning": _cost_for(usage.reasoning_tokens, rates.reasoning),
    }
    known = {key: value for key, value in parts.items() if value is not None}
    if known:
        result["costUsd"] = {**known, "total": sum(known.values())}
    return result


def build_throughput(usage: Usage | None, gen_ms: float) -> dict[str, float] | None:
    if usage is None or gen_ms <= 0:
        return None

    seconds = gen_ms / 1000
    throughput = {}
    if usage.output_tokens is not None:
        throughput["outputTokensPerSecond"] = usage.output_tokens / seconds
    if usage.total_tokens is not None:
        throughput["totalTokensPerSecond"] = usage.total_tokens / seconds
    return throughput or None


class SseStream:
    """Async iterator of SSE-encoded bytes for one answer."""

    def __init__(
        self,
        meta: MetaEvent,
        events: AsyncIterable[AgentEvent],
        question: str | None = None,
        request_start: float | None = None,
        pricing: BasePricingLookup | None = None,
        pricing_timeout_ms: int = DEFAULT_PRICING_TIMEOUT_MS,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        """
        Initialize the stream.

        Args:
            meta: The stream's first event.
            events: Agent events to encode, ending in ``Finish`` or ``Error``.
            question: The original question, for echo stripping.
            request_start: ``time.perf_counter()`` value when the request arrived.
            pricing: Pricing lookup for the cost breakdown. Optional.
            pricing_timeout_ms: Upper bound on the pricing lookup.
            on_close: Awaited once when the producer stops.
        """
        self.meta = meta
        self.events = events
        self.question = question
        self.request_start = request_start if request_start is not None else time.perf_counter()
        self.pricing = pricing
        self.pricing_timeout_ms = pricing_timeout_ms
        self.on_close = on_close

        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._producer: asyncio.Task | None = None
        self._cleanup: asyncio.Future | None = None

        self._core_question = extract_core_question(question)
        self._accumulated_text = ""
        self._emitted_text = ""
        self._accumulated_reasoning = ""
        self._tools: list[ToolUpdatedEvent] = []
        self._text_events = 0
        self._tool_events = 0
        self._reasoning_events = 0
        self._generation_start: float | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def collection_key(self) -> str:
        return self.meta.collection.get("key", "")

    def _emit(self, event: StreamEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(encode_sse(event))

    # =========================================================================
    # Event translation
    # =========================================================================

    def _on_text_delta(self, event: TextDelta) -> None:
        self._text_events += 1
        self._accumulated_text += event.text

        next_text = strip_question_from_start(self._accumulated_text, self._core_question)
        delta = next_text[len(self._emitted_text):]
        if delta:
            self._emitted_text = next_text
            self._emit(TextDeltaEvent(delta=delta))

    def _on_reasoning_delta(self, event: ReasoningDelta) -> None:
        self._reasoning_events += 1
        self._accumulated_reasoning += event.text
        self._emit(ReasoningDeltaEvent(delta=event.text))

    def _on_tool_call(self, event: ToolCall) -> None:
        self._tool_events += 1
        update = ToolUpdatedEvent(
            call_id=f"tool-{self._tool_events}",
            tool=event.tool_name,
            state=ToolState(status="running", input=dict(event.input)),
        )
        self._tools.append(update)
        self._emit(update)

    def _on_tool_result(self, event: ToolResult) -> None:
        for tool in self._tools:
            if tool.tool == event.tool_name and tool.state.status == "running":
                tool.state = ToolState(status="completed", input=tool.state.input, output=event.output)
                self._emit(ToolUpdatedEvent(call_id=tool.call_id, tool=tool.tool, state=tool.state))
                break

    async def _lookup_pricing(self) -> Pricing | None:
        if self.pricing is None:
            return None
        try:
            return await asyncio.wait_for(
                self.pricing.lookup(
                    self.meta.model.get("provider", ""),
                    self.meta.model.get("model", ""),
                    timeout_ms=self.pricing_timeout_ms,
                ),
                self.pricing_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            return None
        except Exception as e:
            Metrics.error("pricing.lookup.failed", error=Metrics.error_info(e))
            return None

    async def _on_finish(self, event: Finish) -> None:
        finished_at = time.perf_counter()
        final_text = strip_question_from_start(
            self._accumulated_text, self._core_question, final=True
        )
        self._emitted_text = final_text

        usage = event.usage if event.usage is not None and event.usage.has_values() else None
        total_ms = max(0.0, (finished_at - self.request_start) * 1000)
        generation_start = self._generation_start or self.request_start
        gen_ms = max(0.0, (finished_at - generation_start) * 1000)

        metrics: dict[str, Any] = {"timing": {"totalMs": total_ms, "genMs": gen_ms}}
        throughput = build_throughput(usage, gen_ms)
        if throughput:
            metrics["throughput"] = throughput

        pricing = await self._lookup_pricing()
        if pricing is not None:
            metrics["pricing"] = build_pricing_metrics(pricing, usage)

        Metrics.info(
            "stream.done",
            collectionKey=self.collection_key,
            textLength=len(final_text),
            reasoningLength=len(self._accumulated_reasoning),
            toolCount=len(self._tools),
            textEvents=self._text_events,
            toolEvents=self._tool_events,
            reasoningEvents=self._reasoning_events,
            finishReason=event.finish_reason,
            totalMs=total_ms,
            genMs=gen_ms,
            usage=usage.to_dict() if usage else None,
            pricingModelKey=pricing.model_key if pricing else None,
        )

        self._emit(
            DoneEvent(
                text=final_text,
                reasoning=self._accumulated_reasoning,
                tools=list(self._tools),
                metrics=metrics,
                usage=usage.to_dict() if usage else None,
            )
        )

    def _on_error(self, error: BaseException) -> None:
        Metrics.error(
            "stream.error",
            collectionKey=self.collection_key,
            error=Metrics.error_info(error),
        )
        self._emit(
            ErrorEvent(
                tag=get_error_tag(error),
                message=get_error_message(error),
                hint=get_error_hint(error),
            )
        )

    async def _dispatch(self, event: AgentEvent) -> None:
        if isinstance(event, TextDelta):
            self._on_text_delta(event)
        elif isinstance(event, ReasoningDelta):
            self._on_reasoning_delta(event)
        elif isinstance(event, ToolCall):
            self._on_tool_call(event)
        elif isinstance(event, ToolResult):
            self._on_tool_result(event)
        elif isinstance(event, Finish):
            await self._on_finish(event)
        elif isinstance(event, Error):
            self._on_error(event.error)
        else:
            raise TypeError(f"Unhandled agent event: {type(event).__name__}")

    # =========================================================================
    # Producer / consumer
    # =========================================================================

    async def _produce(self) -> None:
        Metrics.info(
            "stream.start",
            collectionKey=self.collection_key,
            resources=self.meta.resources,
            model=self.meta.model,
        )
        self._emit(self.meta)

        try:
            async for event in self.events:
                if self._generation_start is None:
                    self._generation_start = time.perf_counter()
                await self._dispatch(event)
                if isinstance(event, (Finish, Error)):
                    break
        except asyncio.CancelledError:
            Metrics.info("stream.cancelled", collectionKey=self.collection_key)
            raise
        except Exception as e:
            self._on_error(e)
        finally:
            await self._finalize()

    async def _finalize(self) -> None:
        Metrics.info("stream.closed", collectionKey=self.collection_key)
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_EOF)

        aclose = getattr(self.events, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:
                Metrics.error("stream.events.close_failed", error=Metrics.error_info(e))

        cleanup = self._start_cleanup()
        if cleanup is not None:
            # Cleanup must run to completion even when the producer is cancelled
            await asyncio.shield(cleanup)

    def _start_cleanup(self) -> asyncio.Future | None:
        if self.on_close is None:
            return None
        if self._cleanup is None:
            self._cleanup = asyncio.ensure_future(self._run_on_close(self.on_close))
        return self._cleanup

    async def _run_on_close(self, on_close: Callable[[], Awaitable[None]]) -> None:
        try:
            await on_close()
        except Exception as e:
            Metrics.error(
                "stream.cleanup_failed",
                collectionKey=self.collection_key,
                error=Metrics.error_info(e),
            )

    def _ensure_started(self) -> None:
        if self._producer is not None:
            return
        if self._closed:
            # Closed before the first read: release the event source, skip producing
            self._producer = asyncio.ensure_future(self._finalize())
        else:
            self._producer = asyncio.ensure_future(self._produce())

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        self._ensure_started()
        finished = False
        try:
            while True:
                item = await self._queue.get()
                if item is _EOF:
                    finished = True
                    return
                yield item
        finally:
            if not finished:
                # Consumer went away mid-stream
                self.cancel()

    async def read_all(self) -> bytes:
        """Drain the stream into a single byte string."""
        chunks = [chunk async for chunk in self]
        return b"".join(chunks)

    def cancel(self) -> None:
        """Stop the stream. Further emits are dropped; cleanup still runs."""
        if self._closed:
            # Already cancelled, or the producer is finishing on its own
            return
        self._closed = True
        self._queue.put_nowait(_EOF)
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()

    async def aclose(self) -> None:
        """Cancel the stream and wait for its cleanup to finish."""
        self.cancel()
        self._ensure_started()
        try:
            await self._producer
        except asyncio.CancelledError:
            pass
        cleanup = self._start_cleanup()
        if cleanup is not None:
            await cleanup
