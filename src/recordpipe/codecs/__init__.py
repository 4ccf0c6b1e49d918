"""
Codec layer - conversion between records and serialized payloads.

- CsvCodec: Header + delimited lines (object mode)
- RawCodec: Opaque byte passthrough (bytes mode), also registered as "zip"
"""

from recordpipe.codecs.base import (
    Codec,
    CodecRegistry,
    get_codec,
    get_default_registry,
    register_codec,
)
from recordpipe.codecs.csv_codec import (
    CsvCodec,
    CsvOptions,
    CsvParser,
    CsvSerializer,
    CsvWriteState,
    parse_csv,
    render_record,
)
from recordpipe.codecs.raw import RawCodec

__all__ = [
    "Codec",
    "CodecRegistry",
    "CsvCodec",
    "CsvOptions",
    "CsvParser",
    "CsvSerializer",
    "CsvWriteState",
    "RawCodec",
    "get_codec",
    "get_default_registry",
    "parse_csv",
    "register_codec",
    "render_record",
]
