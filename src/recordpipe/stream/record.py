"""
Record streams: object-mode stages that broadcast each record.

Example:
    >>> source = RecordStream()
    >>> adults = source.filter(lambda r: r["Age"] >= 18).map(
    ...     lambda r: {**r, "Name": r["Name"].upper()}
    ... )
    >>> await source.write_all(rows)
    >>> records = await adults.collect()
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from recordpipe.stream.base import Stage
from recordpipe.types import StreamMode

if TYPE_CHECKING:
    from recordpipe.stream.serializable import Serializable
    from recordpipe.types import Record, RecordFilterFunction, RecordMapFunction


def _function_name(fn: Any) -> str:
    return getattr(fn, "__name__", type(fn).__name__)


async def _call(fn: Any, record: Record) -> Any:
    result = fn(record)
    if inspect.isawaitable(result):
        result = await result
    return result


class RecordStream(Stage):
    """Sequence-preserving stage that emits ``record`` for every item.

    The ``record`` event fires on the stage instance the item passes
    through, so progress can be observed at any point of a chain without
    consuming it.
    """

    def __init__(
        self,
        *,
        mode: StreamMode | str = StreamMode.OBJECT,
        high_water_mark: int | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(mode=mode, high_water_mark=high_water_mark, name=name)
        self._serializable: Serializable | None = None

    async def transform(self, record: Record) -> None:
        self.emit("record", record)
        await self.push(record)

    def map(self, fn: RecordMapFunction) -> RecordStream:
        """Splice a mapping stage downstream and return it.

        ``fn`` may be sync or async. A falsy result forwards the original
        record, so a mapper cannot drop records.
        """
        return self.pipe(map_stream(fn))

    def filter(self, fn: RecordFilterFunction) -> RecordStream:
        """Splice a filtering stage downstream and return it."""
        return self.pipe(filter_stream(fn))

    def stream(self, format_id: str | None = None, options: Any = None) -> Stage:
        """Serialize this stream's output, as ``Serializable(self).stream()``.

        The serializable view is created once, so repeated calls return the
        same byte stream.

        Example:
            >>> data = source.map(normalize).stream("csv")
        """
        if self._serializable is None:
            from recordpipe.stream.serializable import Serializable

            self._serializable = Serializable(self)
        return self._serializable.stream(format_id, options)


class MapStage(RecordStream):
    """Record stream forwarding ``fn(record) or record``."""

    def __init__(self, fn: RecordMapFunction, *, name: str | None = None) -> None:
        super().__init__(name=name or f"map:{_function_name(fn)}")
        self._fn = fn

    async def transform(self, record: Record) -> None:
        mapped = await _call(self._fn, record) or record
        self.emit("record", mapped)
        await self.push(mapped)


class FilterStage(RecordStream):
    """Record stream forwarding only records for which ``fn`` is truthy."""

    def __init__(self, fn: RecordFilterFunction, *, name: str | None = None) -> None:
        super().__init__(name=name or f"filter:{_function_name(fn)}")
        self._fn = fn

    async def transform(self, record: Record) -> None:
        if await _call(self._fn, record):
            self.emit("record", record)
            await self.push(record)


def map_stream(fn: RecordMapFunction) -> MapStage:
    """Create a record stream which maps records with ``fn``."""
    return MapStage(fn)


def filter_stream(fn: RecordFilterFunction) -> FilterStage:
    """Create a record stream which keeps records matching ``fn``."""
    return FilterStage(fn)
