"""
Template-based record projection.

A mapping template is a record whose string values may reference fields of
the source record:

- ``"${Score}"`` alone substitutes the source value as-is (type preserved)
- ``"Hello ${Name}!"`` substitutes ``str(value)`` into the surrounding text,
  rendering None or a missing field as ``""``
- any other value is a constant

Example:
    >>> project = compile_template({"Name": "Hello ${Name}", "Score": "${Score}"})
    >>> project({"Id": "7", "Name": "Bob", "Score": 42})
    {'Id': '7', 'Name': 'Hello Bob', 'Score': 42}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from recordpipe.stream.record import MapStage

if TYPE_CHECKING:
    from collections.abc import Callable

    from recordpipe.types import Record

DEFAULT_ID_FIELD = "Id"


@dataclass(frozen=True)
class Literal:
    """Text copied to the output unchanged."""

    text: str


@dataclass(frozen=True)
class Reference:
    """``${name}`` reference to a source field."""

    name: str


Token = Union[Literal, Reference]


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def tokenize(template: str) -> list[Token]:
    """Split a template string into literal and reference tokens.

    A ``${`` that is not followed by a non-empty name and ``}`` is kept as
    literal text. Adjacent literal text is merged into one token.
    """
    tokens: list[Token] = []
    literal: list[str] = []
    i = 0
    length = len(template)
    while i < length:
        if template.startswith("${", i):
            end = i + 2
            while end < length and _is_name_char(template[end]):
                end += 1
            if end > i + 2 and end < length and template[end] == "}":
                if literal:
                    tokens.append(Literal("".join(literal)))
                    literal = []
                tokens.append(Reference(template[i + 2 : end]))
                i = end + 1
                continue
        literal.append(template[i])
        i += 1
    if literal:
        tokens.append(Literal("".join(literal)))
    return tokens


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _compile_value(value: Any, raw: bool) -> Callable[[Record], Any]:
    if raw or not isinstance(value, str):
        return lambda _record: value

    tokens = tokenize(value)
    if len(tokens) == 1 and isinstance(tokens[0], Reference):
        name = tokens[0].name
        return lambda record: record.get(name)
    if not any(isinstance(token, Reference) for token in tokens):
        return lambda _record: value

    def render(record: Record) -> str:
        return "".join(
            token.text if isinstance(token, Literal) else _stringify(record.get(token.name))
            for token in tokens
        )

    return render


def compile_template(
    template: Record,
    raw: bool = False,
    *,
    id_field: str = DEFAULT_ID_FIELD,
) -> Callable[[Record], Record]:
    """Build a projection function from a mapping template.

    Args:
        template: Mapping record of constants and placeholder strings
        raw: Copy string values verbatim instead of evaluating placeholders
        id_field: Identifier field always carried over from the source record

    Returns:
        Function mapping a source record to the projected record
    """
    fields = [
        (prop, _compile_value(value, raw))
        for prop, value in template.items()
        if prop != id_field
    ]

    def project(record: Record) -> Record:
        mapped: Record = {id_field: record.get(id_field)}
        for prop, evaluate in fields:
            mapped[prop] = evaluate(record)
        return mapped

    return project


def record_map_stream(
    template: Record,
    raw: bool = False,
    *,
    id_field: str = DEFAULT_ID_FIELD,
) -> MapStage:
    """Create a mapping stage that projects records through ``template``."""
    return MapStage(
        compile_template(template, raw, id_field=id_field), name="map:template"
    )
