"""
Raw passthrough codec for payloads that must not be decoded into records.
"""

from __future__ import annotations

from typing import Any

from recordpipe.codecs.base import Codec
from recordpipe.stream.base import PassThrough
from recordpipe.types import CodecMode, StreamMode


class RawCodec(Codec):
    """Forwards byte chunks unchanged in both directions. Options are ignored."""

    name = "raw"
    mode = CodecMode.BYTES

    def serialize(self, options: Any = None) -> PassThrough:
        return PassThrough(mode=StreamMode.BYTES, name="raw:serialize")

    def parse(self, options: Any = None) -> PassThrough:
        return PassThrough(mode=StreamMode.BYTES, name="raw:parse")
