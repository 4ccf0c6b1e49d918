"""
Type definitions for recordpipe.
"""

from recordpipe.types.record import (
    CodecMode,
    Record,
    RecordFilterFunction,
    RecordMapFunction,
    StreamMode,
)

__all__ = [
    "CodecMode",
    "Record",
    "RecordFilterFunction",
    "RecordMapFunction",
    "StreamMode",
]
