"""错误体系：提供记录流管道的结构化错误类型。

Error hierarchy for recordpipe.
"""

from recordpipe.errors.base import (
    CodecError,
    ErrorContext,
    RecordPipeError,
    StageError,
    StreamStateError,
    UnsupportedFormatError,
)

__all__ = [
    "CodecError",
    "ErrorContext",
    "RecordPipeError",
    "StageError",
    "StreamStateError",
    "UnsupportedFormatError",
]
