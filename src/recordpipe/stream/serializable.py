"""
Byte-producing view of a record stream.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from recordpipe.codecs.base import get_default_registry
from recordpipe.config import get_config
from recordpipe.stream.base import PassThrough
from recordpipe.stream.record import RecordStream
from recordpipe.telemetry import get_logger, log_context_scope
from recordpipe.types import StreamMode

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from recordpipe.codecs.base import CodecRegistry
    from recordpipe.stream.base import Stage, StageT
    from recordpipe.types import Record, RecordFilterFunction, RecordMapFunction

logger = get_logger("recordpipe.stream.serializable")


class Serializable:
    """Wraps a record stream and exposes it as serialized bytes.

    Example:
        >>> records = Serializable()
        >>> data = records.stream("csv", {"null_value": "#N/A"})
        >>> await records.write_all(rows)
        >>> payload = b"".join(await data.collect())
    """

    def __init__(
        self,
        records: RecordStream | None = None,
        *,
        registry: CodecRegistry | None = None,
    ) -> None:
        """Initialize the view.

        Args:
            records: Record stream to serialize (a new one if omitted)
            registry: Codec registry (the default registry if omitted)
        """
        self.records = records if records is not None else RecordStream()
        self.stream_id = uuid.uuid4().hex[:8]
        self._registry = registry
        self._data_stream: Stage | None = None

    def stream(self, format_id: str | None = None, options: Any = None) -> Stage:
        """Get the readable byte stream of serialized records.

        The first call builds ``records -> serializer -> data stream``. Later
        calls return that same stream whatever arguments they pass.

        Args:
            format_id: Registered format (default from config, normally "csv")
            options: Options passed to the codec's serializer

        Raises:
            UnsupportedFormatError: If the format has no registered codec
        """
        if self._data_stream is not None:
            return self._data_stream

        format_id = format_id or get_config().default_format
        registry = self._registry or get_default_registry()
        codec = registry.resolve(format_id)

        serializer = codec.serialize(options)
        data_stream = PassThrough(mode=StreamMode.BYTES, name=f"{format_id}:data")
        with log_context_scope(stream_id=self.stream_id, format_id=format_id):
            self.records.pipe(serializer).pipe(data_stream)
            logger.debug("Serializable stream built")
        self._data_stream = data_stream
        return data_stream

    # ---- record side delegation ----------------------------------------

    async def write(self, record: Record) -> None:
        await self.records.write(record)

    async def write_all(self, records: Iterable[Record]) -> None:
        await self.records.write_all(records)

    async def end(self) -> None:
        await self.records.end()

    def on(self, event: str, listener: Callable[..., Any]) -> Serializable:
        self.records.on(event, listener)
        return self

    def map(self, fn: RecordMapFunction) -> Serializable:
        """Map records downstream; the result can be serialized in turn."""
        return Serializable(self.records.map(fn), registry=self._registry)

    def filter(self, fn: RecordFilterFunction) -> Serializable:
        """Filter records downstream; the result can be serialized in turn."""
        return Serializable(self.records.filter(fn), registry=self._registry)

    def pipe(self, destination: StageT) -> StageT:
        return self.records.pipe(destination)
