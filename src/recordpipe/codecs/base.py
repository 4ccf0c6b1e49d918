"""编解码器注册表：按格式标识符查找序列化/解析阶段工厂。

Codec abstraction and registry.

A codec converts between records and a serialized payload in both
directions. Each codec declares its mode: OBJECT codecs parse payloads into
records, BYTES codecs forward the payload untouched. New formats are added by
registering a codec; nothing else needs to change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from recordpipe.errors import UnsupportedFormatError
from recordpipe.telemetry import get_logger
from recordpipe.types import CodecMode

if TYPE_CHECKING:
    from recordpipe.stream.base import Stage

logger = get_logger("recordpipe.codecs")


class Codec(ABC):
    """Pair of stage factories for one format.

    ``serialize()`` returns a stage accepting records (or raw chunks for
    BYTES codecs) and producing bytes. ``parse()`` returns a stage accepting
    bytes and producing items of the codec's mode.
    """

    name: ClassVar[str]
    mode: ClassVar[CodecMode] = CodecMode.OBJECT

    @abstractmethod
    def serialize(self, options: Any = None) -> Stage:
        """Create a stage that serializes items to bytes.

        Args:
            options: Codec-specific options (model instance or dict)
        """
        ...

    @abstractmethod
    def parse(self, options: Any = None) -> Stage:
        """Create a stage that parses bytes into items.

        Args:
            options: Codec-specific options (model instance or dict)
        """
        ...


class CodecRegistry:
    """Registry mapping format identifiers to codecs.

    Example:
        >>> registry = CodecRegistry()
        >>> registry.register(CsvCodec())
        >>> registry.register(RawCodec(), "zip")
        >>> registry.resolve("csv")
    """

    def __init__(self) -> None:
        self._codecs: dict[str, Codec] = {}

    def register(self, codec: Codec, *aliases: str) -> CodecRegistry:
        """Register a codec under its name and any aliases.

        Returns:
            Self for chaining

        Raises:
            ValueError: If a name is already taken
        """
        names = (codec.name, *aliases)
        for format_id in names:
            if format_id in self._codecs:
                raise ValueError(f"Codec already registered: {format_id}")
        for format_id in names:
            self._codecs[format_id] = codec
        logger.debug("Codec registered", codec=codec.name, formats=list(names))
        return self

    def unregister(self, format_id: str) -> bool:
        """Remove a format identifier. Returns False if it was not registered."""
        if format_id in self._codecs:
            del self._codecs[format_id]
            return True
        return False

    def get(self, format_id: str) -> Codec | None:
        return self._codecs.get(format_id)

    def has(self, format_id: str) -> bool:
        return format_id in self._codecs

    def formats(self) -> list[str]:
        return sorted(self._codecs)

    def resolve(self, format_id: str) -> Codec:
        """Look up a codec, failing if the format is unknown.

        Raises:
            UnsupportedFormatError: If no codec is registered for the format
        """
        codec = self._codecs.get(format_id)
        if codec is None:
            raise UnsupportedFormatError(
                f"Converting [{format_id}] data stream is not supported.",
                format_id=format_id,
                available=self.formats(),
            )
        return codec


_default_registry: CodecRegistry | None = None


def get_default_registry() -> CodecRegistry:
    """Get the process-wide registry, populated with the built-in codecs."""
    global _default_registry
    if _default_registry is None:
        from recordpipe.codecs.csv_codec import CsvCodec
        from recordpipe.codecs.raw import RawCodec

        registry = CodecRegistry()
        registry.register(CsvCodec())
        registry.register(RawCodec(), "zip")
        _default_registry = registry
    return _default_registry


def register_codec(codec: Codec, *aliases: str) -> None:
    """Register a codec with the default registry."""
    get_default_registry().register(codec, *aliases)


def get_codec(format_id: str) -> Codec:
    """Resolve a codec from the default registry."""
    return get_default_registry().resolve(format_id)
