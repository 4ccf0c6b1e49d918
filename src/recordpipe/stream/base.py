"""
Base abstractions for the stream layer.

A Stage is a single-producer, single-consumer transform unit running on the
asyncio event loop:

- The writable side accepts items through ``write()`` / ``end()`` and runs
  them through ``transform()`` / ``flush()`` one at a time.
- The readable side is a bounded buffer filled by ``push()``. When it is full,
  ``push()`` suspends, which suspends the writer, which suspends the pipe
  feeding the writer. That chain is the backpressure path.
- ``pipe()`` starts a pump task that reads items one by one and awaits each
  destination's ``write()``, so ordering is FIFO end to end.

Failures are delivered through the readable side: a failed stage emits
``error``, discards what it buffered and raises the error to whoever reads
it. Pipes forward both end and failure downstream. When every destination
of a pipe has failed, the source stage fails as well, so a producer suspended
in ``write()`` is released and its next write raises.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

from recordpipe.config import get_config
from recordpipe.errors import RecordPipeError, StageError, StreamStateError
from recordpipe.telemetry import get_log_context, get_logger, set_log_context
from recordpipe.types import StreamMode

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

logger = get_logger("recordpipe.stream")

StageT = TypeVar("StageT", bound="Stage")

_END = object()


class _Failure:
    """Buffer marker carrying the error a stage failed with."""

    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Stage:
    """Transform unit with a writable side, a readable side and events.

    Events:
        data: an item left the readable side (argument: the item)
        readable: an item was pushed into an empty buffer
        finish: the writable side ended and flush() completed
        end: the readable side was fully consumed
        error: the stage failed (argument: the error)

    Subclasses override ``transform()`` and optionally ``flush()``; the
    default transform forwards every item unchanged.

    Example:
        >>> upper = UpperCaseStage()
        >>> source.pipe(upper).pipe(sink)
        >>> async for item in sink:
        ...     print(item)
    """

    def __init__(
        self,
        *,
        mode: StreamMode | str = StreamMode.OBJECT,
        writable_mode: StreamMode | str | None = None,
        high_water_mark: int | None = None,
        name: str | None = None,
    ) -> None:
        """Initialize the stage.

        Args:
            mode: Kind of item produced on the readable side
            writable_mode: Kind of item accepted on the writable side
                (defaults to ``mode``)
            high_water_mark: Buffered items before producers are suspended
            name: Stage name used in logs and errors
        """
        self.mode = StreamMode(mode)
        self.writable_mode = (
            StreamMode(writable_mode) if writable_mode is not None else self.mode
        )
        self.name = name or type(self).__name__
        self._high_water_mark = high_water_mark or get_config().high_water_mark
        self._buffer: asyncio.Queue[Any] = asyncio.Queue()
        self._drained = asyncio.Event()
        self._listeners: dict[str, list[Callable[..., Any]]] = {}
        self._write_lock = asyncio.Lock()
        self._destinations: list[Stage] = []
        self._pump_task: asyncio.Task[None] | None = None
        self._started = False
        self._finished = False
        self._ended = False
        self._error: BaseException | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} mode={self.mode.value}>"

    # ---- state ---------------------------------------------------------

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    @property
    def finished(self) -> bool:
        """True once the writable side has ended (or the stage failed)."""
        return self._finished

    @property
    def ended(self) -> bool:
        """True once the readable side has been fully consumed."""
        return self._ended

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def destinations(self) -> list[Stage]:
        return list(self._destinations)

    @property
    def buffered(self) -> int:
        """Number of items waiting on the readable side."""
        return self._buffer.qsize()

    def set_mode(self, mode: StreamMode | str) -> None:
        """Switch both sides to ``mode`` before any item has been written."""
        if self._started:
            raise StreamStateError(
                f"Cannot change mode of stage '{self.name}' after data has flowed",
                stage=self.name,
            )
        self.mode = StreamMode(mode)
        self.writable_mode = self.mode

    # ---- events --------------------------------------------------------

    def on(self: StageT, event: str, listener: Callable[..., Any]) -> StageT:
        """Register a listener for ``event``."""
        self._listeners.setdefault(event, []).append(listener)
        return self

    def off(self: StageT, event: str, listener: Callable[..., Any]) -> StageT:
        """Remove a previously registered listener."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
        return self

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of ``event``. Returns True if there were any."""
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    # ---- subclass hooks ------------------------------------------------

    async def transform(self, chunk: Any) -> None:
        """Process one written item. The default forwards it unchanged."""
        await self.push(chunk)

    async def flush(self) -> None:
        """Called once after the writable side ends, before end-of-output."""
        return None

    async def push(self, item: Any) -> None:
        """Append an item to the readable side, waiting while it is full."""
        while self._error is None and self._buffer.qsize() >= self._high_water_mark:
            self._drained.clear()
            await self._drained.wait()
        if self._error is not None:
            return
        if self._buffer.empty():
            self.emit("readable")
        self._buffer.put_nowait(item)

    # ---- writable side -------------------------------------------------

    def _coerce(self, chunk: Any) -> Any:
        if self.writable_mode is StreamMode.BYTES:
            if isinstance(chunk, bytes):
                return chunk
            if isinstance(chunk, (bytearray, memoryview)):
                return bytes(chunk)
            if isinstance(chunk, str):
                return chunk.encode(get_config().encoding)
            raise StreamStateError(
                f"Byte-mode stage '{self.name}' cannot accept {type(chunk).__name__}",
                stage=self.name,
            )
        if chunk is None:
            raise StreamStateError(
                f"Stage '{self.name}' cannot accept None; use end() to finish",
                stage=self.name,
            )
        return chunk

    async def write(self, chunk: Any) -> None:
        """Run one item through the stage.

        Errors raised by ``transform()`` fail the stage instead of
        propagating to the caller.

        Raises:
            StreamStateError: If the stage has ended or failed, or the chunk
                does not fit the writable mode
        """
        if self._error is not None:
            raise StreamStateError(
                f"Write to failed stage '{self.name}'", stage=self.name
            ) from self._error
        if self._finished:
            raise StreamStateError(
                f"Write after end on stage '{self.name}'", stage=self.name
            )
        chunk = self._coerce(chunk)
        self._started = True
        async with self._write_lock:
            if self._error is not None:
                return
            try:
                await self.transform(chunk)
            except RecordPipeError as exc:
                self.fail(exc)
            except Exception as exc:
                self.fail(
                    StageError(
                        f"Stage '{self.name}' failed: {exc}",
                        stage=self.name,
                        cause=exc,
                    )
                )

    async def write_all(self, items: Iterable[Any]) -> None:
        """Write every item in order, then end the stage."""
        for item in items:
            await self.write(item)
        await self.end()

    async def end(self) -> None:
        """End the writable side: flush, then signal end-of-output."""
        if self._finished:
            return
        self._finished = True
        self._started = True
        async with self._write_lock:
            if self._error is not None:
                return
            try:
                await self.flush()
            except RecordPipeError as exc:
                self.fail(exc)
                return
            except Exception as exc:
                self.fail(
                    StageError(
                        f"Stage '{self.name}' failed during flush: {exc}",
                        stage=self.name,
                        cause=exc,
                    )
                )
                return
        # flush() may have been cut short by a failure from downstream
        if self._error is not None:
            return
        self.emit("finish")
        self._buffer.put_nowait(_END)

    def fail(self, error: BaseException, *, propagated: bool = False) -> None:
        """Fail the stage: discard buffered output and deliver ``error``.

        Args:
            error: The error readers of this stage will receive
            propagated: True when the failure came from another stage
        """
        if self._error is not None or self._ended:
            return
        self._error = error
        self._finished = True
        while not self._buffer.empty():
            self._buffer.get_nowait()
        self._buffer.put_nowait(_Failure(error))
        # releases a writer suspended in push()
        self._drained.set()
        if propagated:
            logger.debug("Failure reached stage", stage=self.name)
        else:
            logger.warning("Stage failed", stage=self.name, error=str(error))
        self.emit("error", error)

    # ---- readable side -------------------------------------------------

    async def _read(self) -> Any:
        if self._ended:
            return None
        if self._error is not None:
            raise self._error
        item = await self._buffer.get()
        self._drained.set()
        if item is _END:
            self._ended = True
            self.emit("end")
            return None
        if isinstance(item, _Failure):
            raise item.error
        self.emit("data", item)
        return item

    def _check_unpiped(self) -> None:
        if self._destinations:
            raise StreamStateError(
                f"Stage '{self.name}' is piped; read from its destination instead",
                stage=self.name,
            )

    async def read(self) -> Any:
        """Read the next item, or None once the stage has ended.

        Raises:
            RecordPipeError: The error this stage (or an upstream stage) failed with
        """
        self._check_unpiped()
        return await self._read()

    async def _iterate(self) -> AsyncIterator[Any]:
        while True:
            item = await self._read()
            if item is None:
                return
            yield item

    def __aiter__(self) -> AsyncIterator[Any]:
        self._check_unpiped()
        return self._iterate()

    async def collect(self) -> list[Any]:
        """Read every remaining item into a list."""
        return [item async for item in self]

    # ---- composition ---------------------------------------------------

    def pipe(self, destination: StageT) -> StageT:
        """Forward this stage's output into ``destination`` and return it.

        A stage may be piped into several destinations; each item is written
        to all of them, in the order they were attached.

        Raises:
            StreamStateError: If called outside a running event loop
        """
        if destination is self:
            raise StreamStateError(
                f"Stage '{self.name}' cannot be piped into itself", stage=self.name
            )
        self._destinations.append(destination)
        if self._pump_task is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                self._destinations.remove(destination)
                raise StreamStateError(
                    "pipe() requires a running event loop", stage=self.name
                ) from exc
            self._pump_task = loop.create_task(self._pump(), name=f"pipe:{self.name}")
        return destination

    def unpipe(self, destination: Stage | None = None) -> None:
        """Detach one destination, or all of them."""
        if destination is None:
            self._destinations.clear()
        elif destination in self._destinations:
            self._destinations.remove(destination)

    async def _pump(self) -> None:
        # runs in its own task, so the context change stays local to it
        context = get_log_context()
        context.stage = self.name
        set_log_context(context)
        try:
            while True:
                if not self._destinations:
                    return
                item = await self._read()
                if item is None:
                    break
                dropped: BaseException | None = None
                for destination in list(self._destinations):
                    try:
                        await destination.write(item)
                    except StreamStateError as exc:
                        if not destination.failed:
                            destination.fail(exc)
                        self.unpipe(destination)
                        dropped = destination.error
                if dropped is not None and not self._destinations:
                    logger.debug("Every destination failed", stage=self.name)
                    self.fail(dropped, propagated=True)
                    return
        except Exception as exc:
            for destination in list(self._destinations):
                destination.fail(exc, propagated=True)
            return
        finally:
            self._pump_task = None
        for destination in list(self._destinations):
            await destination.end()


class PassThrough(Stage):
    """Stage that forwards items unchanged."""


class DuplexStream:
    """Pair of stages exposed as one stream.

    Writes go to ``writable``; reads, iteration and listeners go to
    ``readable``. The two sides are independent, so data written here is
    never read back from here unless something upstream routes it.

    ``on_read`` is called before the readable side is first consumed
    (read, iterated, piped, or subscribed to with ``data``/``readable``).
    It lets the owner start work that only runs once output is wanted.
    """

    def __init__(
        self,
        writable: Stage,
        readable: Stage | None = None,
        *,
        on_read: Callable[[], None] | None = None,
    ) -> None:
        self.writable = writable
        self.readable = readable
        self._on_read = on_read

    def __repr__(self) -> str:
        return f"<DuplexStream writable={self.writable!r} readable={self.readable!r}>"

    def _consume(self) -> None:
        if self.readable is not None and self._on_read is not None:
            self._on_read()

    async def write(self, chunk: Any) -> None:
        await self.writable.write(chunk)

    async def write_all(self, items: Iterable[Any]) -> None:
        await self.writable.write_all(items)

    async def end(self) -> None:
        await self.writable.end()

    def on(self, event: str, listener: Callable[..., Any]) -> DuplexStream:
        """Register a listener; ``finish`` goes to the writable side."""
        if event == "finish" or self.readable is None:
            self.writable.on(event, listener)
        else:
            self.readable.on(event, listener)
            if event in ("data", "readable"):
                self._consume()
        return self

    async def read(self) -> Any:
        if self.readable is None:
            return None
        self._consume()
        return await self.readable.read()

    async def _empty(self) -> AsyncIterator[Any]:
        return
        yield

    def __aiter__(self) -> AsyncIterator[Any]:
        if self.readable is None:
            return self._empty()
        self._consume()
        return self.readable.__aiter__()

    async def collect(self) -> list[Any]:
        return [item async for item in self]

    def pipe(self, destination: StageT) -> StageT:
        if self.readable is None:
            raise StreamStateError("Duplex stream has no readable side")
        self._consume()
        return self.readable.pipe(destination)
