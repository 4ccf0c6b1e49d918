"""错误基类：提供分层错误体系和结构化错误上下文。

Base error classes for recordpipe.

Provides a layered error hierarchy:
- RecordPipeError: Base class for all library errors
- UnsupportedFormatError: Conversion requested for an unregistered format
- CodecError: Serialized input could not be decoded (or records encoded)
- StageError: A user-supplied map/filter/projection function failed
- StreamStateError: Stage used outside its lifecycle (write after end, etc.)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'Account.Name')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'codec', 'stage', 'registry')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class RecordPipeError(Exception):
    """Base class for all recordpipe errors.

    All errors from this library inherit from this class, making it easy
    to catch all library errors with a single except clause.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> RecordPipeError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class UnsupportedFormatError(RecordPipeError):
    """Conversion requested for a format with no registered codec.

    Raised synchronously by ``Serializable.stream()`` / ``Parsable.stream()``
    before any stage is constructed.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        format_id: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="registry")
        if format_id:
            ctx.details["format"] = format_id
        if available is not None:
            ctx.details["available"] = available
        super().__init__(message, ctx)
        self.format_id = format_id
        self.available = available or []


class CodecError(RecordPipeError):
    """Error while encoding records or decoding a serialized payload.

    Raised when:
    - Payload bytes are not valid in the configured encoding
    - CSV rows have a different width than the header line
    - CSV quoting is malformed
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        codec: str | None = None,
        line: int | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="codec")
        if codec:
            ctx.details["codec"] = codec
        if line is not None:
            ctx.details["line"] = line
        super().__init__(message, ctx)
        self.codec = codec
        self.line = line


class StageError(RecordPipeError):
    """A user function raised while a stage was transforming an item.

    The original exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        stage: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="stage")
        if stage:
            ctx.details["stage"] = stage
        super().__init__(message, ctx)
        self.stage = stage
        self.__cause__ = cause


class StreamStateError(RecordPipeError):
    """Stage used outside of its lifecycle.

    Raised when:
    - Writing after end() or after the stage failed
    - Iterating a stage whose output is already piped elsewhere
    - Writing a chunk of the wrong kind to a byte-mode stage
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        stage: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="stream")
        if stage:
            ctx.details["stage"] = stage
        super().__init__(message, ctx)
        self.stage = stage
