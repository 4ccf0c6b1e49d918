"""
CSV codec.

Serialization writes a header line followed by one line per record. The
header set is fixed by the first record of a run (or by ``headers``).

Parsing is whole-document: every chunk is buffered and the complete text is
decoded once, at end of input.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from recordpipe.codecs.base import Codec
from recordpipe.config import get_config
from recordpipe.errors import CodecError
from recordpipe.stream.base import Stage
from recordpipe.types import CodecMode, StreamMode

if TYPE_CHECKING:
    from collections.abc import Iterable

    from recordpipe.types import Record


class CsvOptions(BaseModel):
    """Options accepted by the CSV codec."""

    model_config = ConfigDict(extra="forbid")

    headers: list[str] | None = Field(
        default=None, description="Column order; inferred from the first record if unset"
    )
    null_value: str | None = Field(
        default=None,
        description="Text written for missing or None fields; parsed back to None",
    )
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str | None = Field(
        default=None, description="Payload encoding (defaults to the configured one)"
    )

    @classmethod
    def from_options(cls, options: Any) -> CsvOptions:
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(options)

    @property
    def resolved_encoding(self) -> str:
        return self.encoding or get_config().encoding


@dataclass
class CsvWriteState:
    """Header state of one serialization run."""

    headers: list[str] | None = None
    headers_written: bool = False


def extract_headers(record: Record) -> list[str]:
    """Field names of a record, in their natural order."""
    return list(record)


def format_value(value: Any, null_value: str | None = None) -> str:
    if value is None:
        return "" if null_value is None else null_value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def escape_value(text: str, delimiter: str = ",") -> str:
    """Quote a cell that contains the delimiter, a quote or a line break."""
    if '"' in text or delimiter in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def render_line(values: Iterable[str], delimiter: str = ",") -> str:
    return delimiter.join(escape_value(v, delimiter) for v in values) + "\n"


def render_record(
    record: Record,
    headers: list[str],
    null_value: str | None = None,
    delimiter: str = ",",
) -> str:
    return render_line(
        (format_value(record.get(header), null_value) for header in headers),
        delimiter,
    )


def parse_csv(
    text: str,
    delimiter: str = ",",
    null_value: str | None = None,
) -> list[Record]:
    """Decode a complete CSV document into records.

    The first non-blank line is the header. Blank lines are skipped, except
    under a single-column header, where an empty line is a record with an
    empty cell.

    Raises:
        CodecError: On malformed quoting or a row whose width differs from
            the header
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    records: list[Record] = []
    headers: list[str] | None = None
    try:
        for row in reader:
            if not row:
                # a single-column record with an empty cell serializes as an empty line
                if headers is None or len(headers) > 1:
                    continue
                row = [""]
            if headers is None:
                headers = row
                continue
            if len(row) != len(headers):
                raise CodecError(
                    f"Row has {len(row)} fields but the header has {len(headers)}",
                    codec="csv",
                    line=reader.line_num,
                )
            records.append(
                {
                    header: None if null_value is not None and cell == null_value else cell
                    for header, cell in zip(headers, row)
                }
            )
    except csv.Error as exc:
        raise CodecError(
            f"Malformed CSV: {exc}", codec="csv", line=reader.line_num
        ) from exc
    return records


class CsvSerializer(Stage):
    """Object-to-bytes stage writing a header line then one line per record."""

    def __init__(self, options: CsvOptions) -> None:
        super().__init__(
            mode=StreamMode.BYTES, writable_mode=StreamMode.OBJECT, name="csv:serialize"
        )
        self._options = options
        self._encoding = options.resolved_encoding
        self._state = CsvWriteState(
            headers=list(options.headers) if options.headers else None
        )

    async def transform(self, record: Record) -> None:
        state = self._state
        delimiter = self._options.delimiter
        if not state.headers_written:
            if state.headers is None:
                state.headers = extract_headers(record)
            await self.push(render_line(state.headers, delimiter).encode(self._encoding))
            state.headers_written = True
        line = render_record(record, state.headers, self._options.null_value, delimiter)
        await self.push(line.encode(self._encoding))


class CsvParser(Stage):
    """Bytes-to-object stage decoding the whole buffered document at end."""

    def __init__(self, options: CsvOptions) -> None:
        super().__init__(
            mode=StreamMode.OBJECT, writable_mode=StreamMode.BYTES, name="csv:parse"
        )
        self._options = options
        self._chunks: list[bytes] = []

    async def transform(self, chunk: bytes) -> None:
        self._chunks.append(chunk)

    async def flush(self) -> None:
        data = b"".join(self._chunks)
        self._chunks.clear()
        encoding = self._options.resolved_encoding
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError as exc:
            raise CodecError(
                f"CSV payload is not valid {encoding}", codec="csv"
            ) from exc
        for record in parse_csv(text, self._options.delimiter, self._options.null_value):
            await self.push(record)


class CsvCodec(Codec):
    """Codec for delimiter-separated record text."""

    name = "csv"
    mode = CodecMode.OBJECT

    def serialize(self, options: Any = None) -> CsvSerializer:
        return CsvSerializer(CsvOptions.from_options(options))

    def parse(self, options: Any = None) -> CsvParser:
        return CsvParser(CsvOptions.from_options(options))
