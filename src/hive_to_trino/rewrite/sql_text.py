"""Trino SQL text primitives: identifiers, literals, types and precedence."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, NamedTuple, Sequence

from ..domain.models import Interval, Literal
from ..domain.types import Field, SqlType, SqlTypeName
from ..errors import UnsupportedConstructError

# Binding strength of emitted expressions, loosest first.
OR_PRECEDENCE = 1
AND_PRECEDENCE = 2
NOT_PRECEDENCE = 3
COMPARISON_PRECEDENCE = 4
CONCAT_PRECEDENCE = 5
ADDITIVE_PRECEDENCE = 6
MULTIPLICATIVE_PRECEDENCE = 7
UNARY_PRECEDENCE = 8
ATOM = 10

_GENERATED_NAME = re.compile(r"EXPR\$\d+")


class Emitted(NamedTuple):
    """Rendered expression text and how tightly it binds."""

    text: str
    precedence: int = ATOM

    def wrapped(self, minimum: int) -> str:
        """Text usable where at least ``minimum`` binding strength is required."""

        if self.precedence < minimum:
            return f"({self.text})"
        return self.text


def quote_identifier(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def qualified_name(parts: Sequence[str]) -> str:
    return ".".join(quote_identifier(part) for part in parts)


def column(alias: str, name: str) -> Emitted:
    return Emitted(f"{quote_identifier(alias)}.{quote_identifier(name)}")


def is_generated_name(name: str) -> bool:
    return bool(_GENERATED_NAME.fullmatch(name))


def output_name(item: Field, upper_case: bool = True) -> str:
    """Name a select item is printed (and later referenced) under.

    Quoted identifiers and system names such as ``$f0`` keep their casing;
    other names are upper-cased like unquoted identifiers.
    """

    if item.quoted or item.name.startswith("$") or is_generated_name(item.name) or not upper_case:
        return item.name
    return item.name.upper()


def unique_names(names: Sequence[str]) -> List[str]:
    """Suffix repeated names with 0, 1, ... so no two match ignoring case."""

    seen = set()
    result = []
    for name in names:
        candidate, counter = name, 0
        while candidate.lower() in seen:
            candidate = f"{name}{counter}"
            counter += 1
        seen.add(candidate.lower())
        result.append(candidate)
    return result


def _quote_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _render_time(value: time) -> str:
    if value.microsecond:
        return value.isoformat(timespec="milliseconds")
    return value.isoformat(timespec="seconds")


def _render_timestamp(value: datetime) -> str:
    if value.microsecond:
        return value.isoformat(sep=" ", timespec="milliseconds")
    return value.isoformat(sep=" ", timespec="seconds")


def render_literal(literal: Literal) -> Emitted:
    """Render a literal in Trino syntax."""

    value = literal.value
    sql_type = literal.type

    if value is None:
        return Emitted("NULL")
    if isinstance(value, bool):
        return Emitted("TRUE" if value else "FALSE")
    if isinstance(value, Interval):
        return Emitted(f"INTERVAL {_quote_string(value.value)} {value.unit.upper()}")
    if isinstance(value, datetime):
        return Emitted(f"TIMESTAMP '{_render_timestamp(value)}'")
    if isinstance(value, date):
        return Emitted(f"DATE '{value.isoformat()}'")
    if isinstance(value, time):
        return Emitted(f"TIME '{_render_time(value)}'")
    if isinstance(value, bytes):
        return Emitted(f"X'{value.hex().upper()}'")
    if isinstance(value, (int, Decimal, float)):
        return _render_number(value)

    text = str(value)
    if sql_type.name == SqlTypeName.DATE:
        return Emitted(f"DATE {_quote_string(text)}")
    if sql_type.name == SqlTypeName.TIME:
        return Emitted(f"TIME {_quote_string(text)}")
    if sql_type.name == SqlTypeName.TIMESTAMP:
        return Emitted(f"TIMESTAMP {_quote_string(text)}")
    if sql_type.is_numeric:
        return _render_number(Decimal(text))
    return Emitted(_quote_string(text))


def _render_number(value) -> Emitted:
    if isinstance(value, float):
        if math.isnan(value):
            return Emitted("nan()")
        if math.isinf(value):
            return Emitted("infinity()" if value > 0 else "-infinity()", UNARY_PRECEDENCE if value < 0 else ATOM)
        text = repr(value)
    elif isinstance(value, Decimal):
        text = format(value, "f")
    else:
        text = str(value)
    return Emitted(text, UNARY_PRECEDENCE if text.startswith("-") else ATOM)


def render_type(sql_type: SqlType) -> str:
    """Trino spelling of ``sql_type``.

    FLOAT becomes REAL and bounded binary types become unbounded VARBINARY;
    Trino has neither.
    """

    name = sql_type.name
    if name == SqlTypeName.FLOAT:
        return "REAL"
    if name in (SqlTypeName.BINARY, SqlTypeName.VARBINARY):
        return "VARBINARY"
    if name in (SqlTypeName.CHAR, SqlTypeName.VARCHAR, SqlTypeName.TIME, SqlTypeName.TIMESTAMP):
        if sql_type.precision is not None:
            return f"{name.value}({sql_type.precision})"
        return name.value
    if name == SqlTypeName.DECIMAL:
        if sql_type.precision is None:
            return "DECIMAL"
        return f"DECIMAL({sql_type.precision}, {sql_type.scale or 0})"
    if name == SqlTypeName.INTERVAL_DAY_TIME:
        return "INTERVAL DAY TO SECOND"
    if name == SqlTypeName.INTERVAL_YEAR_MONTH:
        return "INTERVAL YEAR TO MONTH"
    if name == SqlTypeName.ARRAY and sql_type.element is not None:
        return f"ARRAY({render_type(sql_type.element)})"
    if name == SqlTypeName.MAP and sql_type.key is not None and sql_type.value is not None:
        return f"MAP({render_type(sql_type.key)}, {render_type(sql_type.value)})"
    if name == SqlTypeName.ROW:
        fields = ", ".join(f"{quote_identifier(f.name)} {render_type(f.type)}" for f in sql_type.fields)
        return f"ROW({fields})"
    if name in (SqlTypeName.NULL, SqlTypeName.ANY, SqlTypeName.ARRAY, SqlTypeName.MAP):
        raise UnsupportedConstructError(f"type {sql_type}", "has no Trino spelling")
    return name.value


__all__ = [
    "ADDITIVE_PRECEDENCE",
    "AND_PRECEDENCE",
    "ATOM",
    "COMPARISON_PRECEDENCE",
    "CONCAT_PRECEDENCE",
    "Emitted",
    "MULTIPLICATIVE_PRECEDENCE",
    "NOT_PRECEDENCE",
    "OR_PRECEDENCE",
    "UNARY_PRECEDENCE",
    "column",
    "is_generated_name",
    "output_name",
    "qualified_name",
    "quote_identifier",
    "render_literal",
    "render_type",
    "unique_names",
]
