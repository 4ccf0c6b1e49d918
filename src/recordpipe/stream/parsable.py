"""
Byte-consuming view that materializes into a record stream.

Wiring built by ``Parsable.stream()``:

    OBJECT codec:  input -> parser -> records -> output (object, buffered)
    BYTES codec:   input -> parser -> records -> output (bytes, buffered)
                                              \\-> raw side of the returned stream

The input is not connected to the parser until ``activate()`` runs, so bytes
written early wait in the input buffer until somebody consumes the output.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from recordpipe.codecs.base import get_default_registry
from recordpipe.config import get_config
from recordpipe.stream.base import DuplexStream, PassThrough
from recordpipe.stream.record import RecordStream, filter_stream, map_stream
from recordpipe.stream.serializable import Serializable
from recordpipe.errors import StreamStateError
from recordpipe.telemetry import get_logger, log_context_scope
from recordpipe.types import CodecMode, StreamMode

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from recordpipe.codecs.base import CodecRegistry
    from recordpipe.stream.base import Stage, StageT
    from recordpipe.types import RecordFilterFunction, RecordMapFunction

logger = get_logger("recordpipe.stream.parsable")

ACTIVATING_EVENTS = frozenset({"record", "data", "readable"})


class Parsable:
    """Accepts serialized bytes and exposes the parsed records.

    Example:
        >>> parsable = Parsable()
        >>> data = parsable.stream("csv")
        >>> await data.write_all([b"Id,Name\\n", b"1,A\\n"])
        >>> parsable.on("record", print)   # activates parsing
        >>> records = await parsable.collect()
    """

    def __init__(self, *, registry: CodecRegistry | None = None) -> None:
        """Initialize the view.

        Args:
            registry: Codec registry (the default registry if omitted)
        """
        config = get_config()
        self.stream_id = uuid.uuid4().hex[:8]
        self.records = RecordStream(high_water_mark=config.parse_buffer_size)
        self.output = PassThrough(
            high_water_mark=config.parse_buffer_size, name="parsable:output"
        )
        self._registry = registry
        self._data_stream: DuplexStream | None = None
        self._parser: Stage | None = None
        self._format_id: str | None = None
        self._activated = False
        self._activation_requested = False

    @property
    def activated(self) -> bool:
        return self._activated

    def stream(self, format_id: str | None = None, options: Any = None) -> DuplexStream:
        """Get the stream callers write serialized input to.

        The first call builds the wiring; later calls return the same stream
        whatever arguments they pass. For BYTES codecs the returned stream is
        also readable and yields the raw chunks; reading it activates parsing
        like any other consumer.

        Args:
            format_id: Registered format (default from config, normally "csv")
            options: Options passed to the codec's parser

        Raises:
            UnsupportedFormatError: If the format has no registered codec
        """
        if self._data_stream is not None:
            return self._data_stream

        config = get_config()
        format_id = format_id or config.default_format
        registry = self._registry or get_default_registry()
        codec = registry.resolve(format_id)

        parser = codec.parse(options)
        input_stream = PassThrough(
            mode=StreamMode.BYTES,
            high_water_mark=config.parse_buffer_size,
            name=f"{format_id}:input",
        )
        item_mode = codec.mode.stream_mode
        self.records.set_mode(item_mode)
        self.output.set_mode(item_mode)

        with log_context_scope(stream_id=self.stream_id, format_id=format_id):
            parser.pipe(self.records).pipe(self.output)

            raw_stream = None
            if codec.mode is CodecMode.BYTES:
                raw_stream = PassThrough(
                    mode=StreamMode.BYTES,
                    high_water_mark=config.parse_buffer_size,
                    name=f"{format_id}:raw",
                )
                self.records.pipe(raw_stream)

            self._parser = parser
            self._format_id = format_id
            self._data_stream = DuplexStream(
                input_stream, raw_stream, on_read=self.activate
            )
            logger.debug("Parsable stream built", codec_mode=codec.mode.value)
        if self._activation_requested:
            self.activate()
        return self._data_stream

    def activate(self) -> None:
        """Connect the input stream to the parser. Safe to call repeatedly.

        Called before ``stream()``, activation happens as soon as the
        stream is built.
        """
        if self._activated:
            return
        if self._data_stream is None or self._parser is None:
            self._activation_requested = True
            return
        self._activated = True
        with log_context_scope(stream_id=self.stream_id, format_id=self._format_id):
            self._data_stream.writable.pipe(self._parser)
            logger.debug("Parsable activated")

    # ---- consumer side -------------------------------------------------

    def on(self, event: str, listener: Callable[..., Any]) -> Parsable:
        """Register a listener.

        ``record`` listeners attach to the record stage; every other event
        attaches to the buffered output. Subscribing to ``record``, ``data``
        or ``readable`` activates parsing.
        """
        if event == "record":
            self.records.on(event, listener)
        else:
            self.output.on(event, listener)
        if event in ACTIVATING_EVENTS:
            self.activate()
        return self

    def __aiter__(self) -> AsyncIterator[Any]:
        if self._data_stream is None:
            raise StreamStateError(
                "Parsable has no input yet; call stream() before reading",
                stage=self.output.name,
            )
        self.activate()
        return self.output.__aiter__()

    async def collect(self) -> list[Any]:
        """Activate and read every parsed item."""
        return [item async for item in self]

    def pipe(self, destination: StageT) -> StageT:
        self.activate()
        return self.output.pipe(destination)

    def map(self, fn: RecordMapFunction) -> Serializable:
        """Map parsed records; the result can be serialized again."""
        return Serializable(self.pipe(map_stream(fn)), registry=self._registry)

    def filter(self, fn: RecordFilterFunction) -> Serializable:
        """Filter parsed records; the result can be serialized again."""
        return Serializable(self.pipe(filter_stream(fn)), registry=self._registry)

