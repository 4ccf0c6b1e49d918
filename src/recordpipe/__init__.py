"""记录流管道：在记录对象与序列化字节之间转换的可组合流阶段。

recordpipe: composable record streams with CSV and raw codecs.

Records flow through map/filter stages with backpressure; Serializable and
Parsable cross the boundary between records and serialized bytes.
"""
from __future__ import annotations

from recordpipe.config import StreamConfig, get_config, set_config
from recordpipe.errors import (
    CodecError,
    ErrorContext,
    RecordPipeError,
    StageError,
    StreamStateError,
    UnsupportedFormatError,
)
from recordpipe.stream import (
    DuplexStream,
    FilterStage,
    MapStage,
    Parsable,
    PassThrough,
    RecordStream,
    Serializable,
    Stage,
    compile_template,
    filter_stream,
    map_stream,
    record_map_stream,
)
from recordpipe.codecs import (
    Codec,
    CodecRegistry,
    CsvCodec,
    CsvOptions,
    RawCodec,
    get_codec,
    get_default_registry,
    register_codec,
)
from recordpipe.types import CodecMode, Record, StreamMode

__version__ = "0.1.0"

__all__ = [
    # Codecs
    "Codec",
    "CodecError",
    "CodecMode",
    "CodecRegistry",
    "CsvCodec",
    "CsvOptions",
    "DuplexStream",
    # Errors
    "ErrorContext",
    "FilterStage",
    "MapStage",
    "Parsable",
    "PassThrough",
    "RawCodec",
    # Types
    "Record",
    "RecordPipeError",
    # Streams
    "RecordStream",
    "Serializable",
    "Stage",
    "StageError",
    # Config
    "StreamConfig",
    "StreamMode",
    "StreamStateError",
    "UnsupportedFormatError",
    "compile_template",
    "filter_stream",
    "get_codec",
    "get_config",
    "get_default_registry",
    "map_stream",
    "record_map_stream",
    "register_codec",
    "set_config",
    # Version
    "__version__",
]
