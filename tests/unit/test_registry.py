"""Tests for the codec registry and the raw codec."""

import json

import pytest

from recordpipe.codecs import (
    Codec,
    CodecRegistry,
    CsvCodec,
    RawCodec,
    get_codec,
    get_default_registry,
)
from recordpipe.errors import UnsupportedFormatError
from recordpipe.stream import Stage
from recordpipe.types import CodecMode, StreamMode


class JsonLinesSerializer(Stage):
    """Record-to-bytes stage writing one JSON document per line."""

    def __init__(self) -> None:
        super().__init__(mode=StreamMode.BYTES, writable_mode=StreamMode.OBJECT)

    async def transform(self, record: dict) -> None:
        await self.push((json.dumps(record) + "\n").encode())


class JsonLinesParser(Stage):
    """Bytes-to-record stage decoding JSON lines at end of input."""

    def __init__(self) -> None:
        super().__init__(mode=StreamMode.OBJECT, writable_mode=StreamMode.BYTES)
        self._chunks: list[bytes] = []

    async def transform(self, chunk: bytes) -> None:
        self._chunks.append(chunk)

    async def flush(self) -> None:
        for line in b"".join(self._chunks).decode().splitlines():
            if line.strip():
                await self.push(json.loads(line))


class JsonLinesCodec(Codec):
    """Codec registered by tests to check the extension point."""

    name = "jsonl"

    def serialize(self, options: object = None) -> Stage:
        return JsonLinesSerializer()

    def parse(self, options: object = None) -> Stage:
        return JsonLinesParser()


class TestCodecRegistry:
    """Tests for CodecRegistry."""

    def test_register_and_resolve(self) -> None:
        """Test registering a codec by name."""
        codec = JsonLinesCodec()
        registry = CodecRegistry().register(codec)

        assert registry.has("jsonl")
        assert registry.get("jsonl") is codec
        assert registry.resolve("jsonl") is codec
        assert registry.formats() == ["jsonl"]

    def test_aliases(self) -> None:
        """Test aliases resolve to the same codec."""
        codec = RawCodec()
        registry = CodecRegistry().register(codec, "zip", "blob")

        assert registry.resolve("zip") is codec
        assert registry.resolve("blob") is codec

    def test_duplicate_rejected(self) -> None:
        """Test a taken name cannot be registered again."""
        registry = CodecRegistry().register(CsvCodec())

        with pytest.raises(ValueError):
            registry.register(CsvCodec())

    def test_duplicate_alias_registers_nothing(self) -> None:
        """Test a clashing alias leaves the registry unchanged."""
        registry = CodecRegistry().register(CsvCodec())

        with pytest.raises(ValueError):
            registry.register(RawCodec(), "csv")
        assert not registry.has("raw")

    def test_unregister(self) -> None:
        """Test removing a format."""
        registry = CodecRegistry().register(CsvCodec())

        assert registry.unregister("csv")
        assert not registry.unregister("csv")
        assert registry.get("csv") is None

    def test_resolve_unknown_format(self) -> None:
        """Test unknown formats raise UnsupportedFormatError."""
        registry = CodecRegistry().register(CsvCodec())

        with pytest.raises(UnsupportedFormatError) as exc_info:
            registry.resolve("xml")

        assert exc_info.value.format_id == "xml"
        assert exc_info.value.available == ["csv"]
        assert "xml" in str(exc_info.value)

    def test_default_registry(self) -> None:
        """Test built-in codecs in the default registry."""
        registry = get_default_registry()

        assert isinstance(registry.resolve("csv"), CsvCodec)
        assert isinstance(registry.resolve("raw"), RawCodec)
        assert registry.resolve("zip") is registry.resolve("raw")
        assert get_default_registry() is registry
        assert isinstance(get_codec("csv"), CsvCodec)

    def test_declared_modes(self) -> None:
        """Test codecs declare their parse mode."""
        assert CsvCodec.mode is CodecMode.OBJECT
        assert RawCodec.mode is CodecMode.BYTES
        assert JsonLinesCodec.mode is CodecMode.OBJECT


class TestRawCodec:
    """Tests for the raw passthrough codec."""

    @pytest.mark.asyncio
    async def test_serialize_is_identity(self) -> None:
        """Test chunks pass through unchanged."""
        stage = RawCodec().serialize()
        await stage.write_all([b"PK\x03\x04", b"\x00\xff"])

        assert await stage.collect() == [b"PK\x03\x04", b"\x00\xff"]

    @pytest.mark.asyncio
    async def test_parse_is_identity(self) -> None:
        """Test parse forwards chunks as they arrive."""
        stage = RawCodec().parse({"ignored": True})
        await stage.write(b"abc")

        assert await stage.read() == b"abc"

        await stage.end()
        assert await stage.read() is None
