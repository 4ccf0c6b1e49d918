"""
Core value types shared by stages and codecs.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

Record = dict[str, Any]
"""A flat mapping from field name to a scalar (str, int, float, bool) or None."""

RecordMapFunction = Callable[[Record], "Record | None"]
RecordFilterFunction = Callable[[Record], Any]


class StreamMode(str, Enum):
    """Kind of item a stage side carries."""

    OBJECT = "object"
    BYTES = "bytes"


class CodecMode(str, Enum):
    """What a codec's parse stage emits.

    OBJECT codecs decode payloads into records; BYTES codecs forward the
    payload untouched.
    """

    OBJECT = "object"
    BYTES = "bytes"

    @property
    def stream_mode(self) -> StreamMode:
        return StreamMode(self.value)
