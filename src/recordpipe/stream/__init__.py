"""
Stream layer - record stages and the object/bytes boundary.

- Stage / PassThrough: Backpressured transform unit with events
- RecordStream: Object-mode stage broadcasting ``record`` events
- MapStage / FilterStage: map() and filter() combinators
- Serializable: Record stream -> serialized byte stream
- Parsable: Serialized bytes -> record stream, with deferred activation
- record_map_stream: Template-based record projection
"""

from recordpipe.stream.base import DuplexStream, PassThrough, Stage
from recordpipe.stream.record import (
    FilterStage,
    MapStage,
    RecordStream,
    filter_stream,
    map_stream,
)
from recordpipe.stream.serializable import Serializable
from recordpipe.stream.parsable import Parsable
from recordpipe.stream.template import (
    Literal,
    Reference,
    compile_template,
    record_map_stream,
    tokenize,
)

__all__ = [
    "DuplexStream",
    "FilterStage",
    "Literal",
    "MapStage",
    "Parsable",
    "PassThrough",
    "RecordStream",
    "Reference",
    "Serializable",
    "Stage",
    "compile_template",
    "filter_stream",
    "map_stream",
    "record_map_stream",
    "tokenize",
]
