"""
Error types and classification helpers for SourceFS.

Every error raised by the core carries a stable ``tag``, a human-readable
``message`` and an optional ``hint`` with an actionable suggestion. The
helpers at the bottom of this module walk an exception's cause chain so that
the most specific tagged error wins when an error is reported to a client.
"""

from __future__ import annotations

from typing import Any

MAX_CAUSE_DEPTH = 12

# Tags of errors that only wrap another error and carry no information of their own
WRAPPER_TAGS = {"Panic", "UnhandledException"}


class CommonHints:
    """Hints reused across error types."""

    CLEAR_CACHE = "Try clearing the cached resources and run the question again."
    CHECK_NETWORK = "Check your internet connection and try again."
    CHECK_URL = "Verify the URL is correct and the repository exists."
    CHECK_BRANCH = (
        'Verify the branch name exists in the repository. Common branches are "main", '
        '"master", "trunk", or "dev".'
    )
    CHECK_CONFIG = "Check your SourceFS configuration for errors."
    LIST_RESOURCES = "List the configured resources to see what is available."
    ADD_RESOURCE = "Add the resource to your configuration or pass a git URL / npm reference."
    CHECK_PROVIDER = "Check that the model provider is installed and its credentials are set."


class SourceFSError(Exception):
    """Base class for all tagged SourceFS errors."""

    tag = "SourceFSError"

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        result = {"tag": self.tag, "message": self.message}
        if self.hint:
            result["hint"] = self.hint
        return result


class PathEscapeError(SourceFSError):
    """A requested path resolves outside of the sandbox root."""

    tag = "PathEscapeError"

    def __init__(self, requested_path: str, base_path: str):
        super().__init__(
            f'Path "{requested_path}" is outside the allowed directory "{base_path}". Access denied.'
        )
        self.requested_path = requested_path
        self.base_path = base_path


class PathNotFoundError(SourceFSError):
    """A requested path does not exist inside the sandbox."""

    tag = "PathNotFoundError"

    def __init__(self, requested_path: str):
        super().__init__(f'Path "{requested_path}" does not exist.')
        self.requested_path = requested_path


class ResourceError(SourceFSError):
    """A resource could not be resolved or loaded."""

    tag = "ResourceError"


class CollectionError(SourceFSError):
    """A collection of resources could not be assembled."""

    tag = "CollectionError"


class AgentError(SourceFSError):
    """The agent loop failed."""

    tag = "AgentError"


class InvalidProviderError(SourceFSError):
    """The requested model provider is unknown or unavailable."""

    tag = "InvalidProviderError"

    def __init__(
        self,
        provider_id: str,
        available_providers: list[str] | None = None,
        cause: BaseException | None = None,
    ):
        available = available_providers or []
        hint = CommonHints.CHECK_PROVIDER
        if available:
            hint = f"Available providers: {', '.join(available)}. {hint}"
        super().__init__(f'Invalid provider: "{provider_id}"', hint=hint, cause=cause)
        self.provider_id = provider_id
        self.available_providers = available


class PricingError(SourceFSError):
    """The pricing catalog could not be fetched."""

    tag = "PricingError"


# =============================================================================
# Classification helpers
# =============================================================================


def _read_field(value: Any, field: str) -> str | None:
    candidate = getattr(value, field, None)
    if isinstance(candidate, str) and candidate:
        return candidate
    return None


def _read_tag(value: Any) -> str | None:
    if isinstance(value, SourceFSError):
        return value.tag
    return _read_field(value, "tag")


def _read_message(value: Any) -> str | None:
    message = _read_field(value, "message")
    if message:
        return message
    if isinstance(value, BaseException) and value.args:
        first = value.args[0]
        if isinstance(first, str) and first:
            return first
    return None


def _read_cause(value: Any) -> Any:
    cause = getattr(value, "cause", None)
    if cause is not None:
        return cause
    if isinstance(value, BaseException):
        return value.__cause__
    return None


def _is_wrapper_message(message: str | None) -> bool:
    return bool(
        message
        and (
            message.startswith("Unhandled exception:")
            or message.endswith("handler threw")
            or message.endswith("callback threw")
        )
    )


def _is_wrapper_entry(entry: Any) -> bool:
    tag = _read_tag(entry)
    message = _read_message(entry)
    has_cause = _read_cause(entry) is not None
    is_agent_wrapper = (
        tag == "AgentError" and message == "Failed to get response from AI" and has_cause
    )
    return is_agent_wrapper or (tag is not None and tag in WRAPPER_TAGS) or _is_wrapper_message(message)


def _normalize_message(message: str) -> str:
    if not message.startswith("Unhandled exception:"):
        return message
    stripped = message[len("Unhandled exception:") :].strip()
    return stripped or message


def get_error_chain(error: Any) -> list[Any]:
    """Return ``error`` followed by its causes, outermost first."""
    chain: list[Any] = []
    seen: set[int] = set()
    current = error
    while current is not None and len(chain) < MAX_CAUSE_DEPTH and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        current = _read_cause(current)
    return chain


def get_error_tag(error: Any) -> str:
    """Classify an error by the most specific tag in its cause chain."""
    chain = get_error_chain(error)

    for entry in chain:
        tag = _read_tag(entry)
        if tag and not _is_wrapper_entry(entry):
            return tag

    for entry in chain:
        tag = _read_tag(entry)
        if tag:
            return tag

    if isinstance(error, BaseException):
        return type(error).__name__
    return "UnknownError"


def get_error_message(error: Any) -> str:
    """Return the most specific human-readable message in the cause chain."""
    chain = get_error_chain(error)

    for entry in chain:
        message = _read_message(entry)
        if message and not _is_wrapper_entry(entry):
            return message

    for entry in chain:
        message = _read_message(entry)
        if message and not _is_wrapper_message(message):
            return message

    for entry in chain:
        message = _read_message(entry)
        if message:
            return _normalize_message(message)

    return str(error)


def get_error_hint(error: Any) -> str | None:
    """Return the most specific hint in the cause chain, if any."""
    chain = get_error_chain(error)

    for entry in chain:
        hint = _read_field(entry, "hint")
        if hint and not _is_wrapper_entry(entry):
            return hint

    for entry in chain:
        hint = _read_field(entry, "hint")
        if hint:
            return hint

    return None


def format_error_for_display(error: Any) -> str:
    """Format an error for display, including its hint if available."""
    message = get_error_message(error)
    hint = get_error_hint(error)
    if hint:
        return f"{message}\n\nHint: {hint}"
    return message
