"""Operator references and the standard operator table.

An operator reference is one of three closed variants:

* ``BuiltinOperator`` - a standard or dialect operator with a fixed syntax class
* ``UserDefinedOperator`` - a UDF backed by an implementation class
* ``UnresolvedOperator`` - a placeholder left for type-aware overload resolution
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union


class OperatorSyntax(str, Enum):
    """How an operator is written."""

    PREFIX = "PREFIX"
    POSTFIX = "POSTFIX"
    BINARY = "BINARY"
    SPECIAL = "SPECIAL"
    FUNCTION = "FUNCTION"
    FUNCTION_ID = "FUNCTION_ID"  # niladic, no parentheses (CURRENT_DATE)


@dataclass(frozen=True, slots=True)
class BuiltinOperator:
    """A built-in operator. ``kind`` distinguishes operators sharing a name."""

    name: str
    kind: str
    syntax: OperatorSyntax

    @property
    def is_aggregate(self) -> bool:
        return self.kind in AGGREGATE_KINDS

    def __str__(self) -> str:
        return f"{self.name} [{self.kind}]"


@dataclass(frozen=True, slots=True)
class UserDefinedOperator:
    """A user-defined function.

    ``dependencies`` lists the resources (jars, ivy coordinates) a generated
    call needs at runtime. ``dynamic_origin`` records the catalog-driven
    function name that produced this operator, if any.
    """

    name: str
    implementation_class: str
    dependencies: Tuple[str, ...] = ()
    dynamic_origin: Optional[str] = None

    def with_catalog_context(self, dependencies: Iterable[str], origin: str) -> "UserDefinedOperator":
        """Return a copy annotated with table-scoped dependencies and provenance."""

        return replace(self, dependencies=tuple(dependencies), dynamic_origin=origin)

    def same_implementation(self, other: object) -> bool:
        return (
            isinstance(other, UserDefinedOperator)
            and other.name == self.name
            and other.implementation_class == self.implementation_class
        )

    def __str__(self) -> str:
        return f"{self.name} [{self.implementation_class}]"


@dataclass(frozen=True, slots=True)
class UnresolvedOperator:
    """Placeholder for an overloaded function name.

    ``qualifier`` is ``(database, table)`` when the name was resolved under a
    table context, empty otherwise.
    """

    name: str
    qualifier: Tuple[str, ...] = ()

    @property
    def identifier(self) -> Tuple[str, ...]:
        return (*self.qualifier, self.name)

    def __str__(self) -> str:
        return ".".join(self.identifier)


OperatorRef = Union[BuiltinOperator, UserDefinedOperator, UnresolvedOperator]


def _op(name: str, kind: str, syntax: OperatorSyntax) -> BuiltinOperator:
    return BuiltinOperator(name, kind, syntax)


_P, _S, _B = OperatorSyntax.POSTFIX, OperatorSyntax.SPECIAL, OperatorSyntax.BINARY
_F, _ID = OperatorSyntax.FUNCTION, OperatorSyntax.FUNCTION_ID

# Logical
AND = _op("AND", "AND", _B)
OR = _op("OR", "OR", _B)
NOT = _op("NOT", "NOT", OperatorSyntax.PREFIX)

# Comparison
EQUALS = _op("=", "EQUALS", _B)
NOT_EQUALS = _op("<>", "NOT_EQUALS", _B)
LESS_THAN = _op("<", "LESS_THAN", _B)
LESS_THAN_OR_EQUAL = _op("<=", "LESS_THAN_OR_EQUAL", _B)
GREATER_THAN = _op(">", "GREATER_THAN", _B)
GREATER_THAN_OR_EQUAL = _op(">=", "GREATER_THAN_OR_EQUAL", _B)
IS_DISTINCT_FROM = _op("IS DISTINCT FROM", "IS_DISTINCT_FROM", _B)
IS_NOT_DISTINCT_FROM = _op("IS NOT DISTINCT FROM", "IS_NOT_DISTINCT_FROM", _B)
IN = _op("IN", "IN", _B)
NOT_IN = _op("NOT IN", "NOT_IN", _B)
LIKE = _op("LIKE", "LIKE", _S)
NOT_LIKE = _op("NOT LIKE", "NOT_LIKE", _S)
BETWEEN = _op("BETWEEN", "BETWEEN", _S)
NOT_BETWEEN = _op("NOT BETWEEN", "NOT_BETWEEN", _S)

IS_NULL = _op("IS NULL", "IS_NULL", _P)
IS_NOT_NULL = _op("IS NOT NULL", "IS_NOT_NULL", _P)
IS_TRUE = _op("IS TRUE", "IS_TRUE", _P)
IS_NOT_TRUE = _op("IS NOT TRUE", "IS_NOT_TRUE", _P)
IS_FALSE = _op("IS FALSE", "IS_FALSE", _P)
IS_NOT_FALSE = _op("IS NOT FALSE", "IS_NOT_FALSE", _P)

# Arithmetic. "+" and "-" each exist twice: numeric and datetime.
PLUS = _op("+", "PLUS", _B)
MINUS = _op("-", "MINUS", _B)
DATETIME_PLUS = _op("+", "DATETIME_PLUS", _S)
DATETIME_MINUS = _op("-", "DATETIME_MINUS", _S)
TIMES = _op("*", "TIMES", _B)
DIVIDE = _op("/", "DIVIDE", _B)
MOD_OPERATOR = _op("%", "MOD", _B)
CONCAT = _op("||", "CONCAT", _B)
UNARY_MINUS = _op("-", "UNARY_MINUS", OperatorSyntax.PREFIX)
UNARY_PLUS = _op("+", "UNARY_PLUS", OperatorSyntax.PREFIX)
EXISTS = _op("EXISTS", "EXISTS", OperatorSyntax.PREFIX)

# Special forms
CASE = _op("CASE", "CASE", _S)
CAST = _op("CAST", "CAST", _S)
ITEM = _op("ITEM", "ITEM", _S)
ARRAY_VALUE_CONSTRUCTOR = _op("ARRAY", "ARRAY_VALUE_CONSTRUCTOR", _S)
MAP_VALUE_CONSTRUCTOR = _op("MAP", "MAP_VALUE_CONSTRUCTOR", _S)
ROW = _op("ROW", "ROW", _S)

# Functions
SUBSTRING = _op("SUBSTRING", "SUBSTRING", _F)
TRUNCATE = _op("TRUNCATE", "TRUNCATE", _F)
POWER = _op("POWER", "POWER", _F)
ABS = _op("ABS", "ABS", _F)
FLOOR = _op("FLOOR", "FLOOR", _F)
CEIL = _op("CEIL", "CEIL", _F)
ROUND = _op("ROUND", "ROUND", _F)
MOD = _op("MOD", "MOD_FUNCTION", _F)
UPPER = _op("UPPER", "UPPER", _F)
LOWER = _op("LOWER", "LOWER", _F)
TRIM = _op("TRIM", "TRIM", _F)
CHAR_LENGTH = _op("CHAR_LENGTH", "CHAR_LENGTH", _F)
COALESCE = _op("COALESCE", "COALESCE", _F)
RAND = _op("RAND", "RAND", _F)
RAND_INTEGER = _op("RAND_INTEGER", "RAND_INTEGER", _F)

# Aggregates
COUNT = _op("COUNT", "COUNT", _F)
SUM = _op("SUM", "SUM", _F)
MIN = _op("MIN", "MIN", _F)
MAX = _op("MAX", "MAX", _F)
AVG = _op("AVG", "AVG", _F)

# Context pseudo-columns
CURRENT_DATE = _op("CURRENT_DATE", "CURRENT_DATE", _ID)
CURRENT_TIMESTAMP = _op("CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP", _ID)
CURRENT_USER = _op("CURRENT_USER", "CURRENT_USER", _ID)

AGGREGATE_KINDS = frozenset({"COUNT", "SUM", "MIN", "MAX", "AVG"})

STANDARD_OPERATORS: Tuple[BuiltinOperator, ...] = tuple(
    value for value in list(globals().values()) if isinstance(value, BuiltinOperator)
)


class OperatorCatalog:
    """Static, immutable set of built-in operators."""

    def __init__(self, operators: Iterable[BuiltinOperator]):
        self._operators: Tuple[BuiltinOperator, ...] = tuple(operators)

    def __iter__(self) -> Iterator[BuiltinOperator]:
        return iter(self._operators)

    def __len__(self) -> int:
        return len(self._operators)

    def __contains__(self, item: object) -> bool:
        return item in self._operators

    def find(self, name: str, syntaxes: Sequence[OperatorSyntax]) -> List[BuiltinOperator]:
        """Operators called ``name`` (case-insensitive) with one of ``syntaxes``."""

        lowered = name.lower()
        return [op for op in self._operators if op.name.lower() == lowered and op.syntax in syntaxes]

    def by_kind(self, kind: str) -> BuiltinOperator:
        for op in self._operators:
            if op.kind == kind:
                return op
        raise KeyError(kind)

    def extend(self, operators: Iterable[BuiltinOperator]) -> "OperatorCatalog":
        return OperatorCatalog((*self._operators, *operators))


__all__ = [
    "AGGREGATE_KINDS",
    "BuiltinOperator",
    "OperatorCatalog",
    "OperatorRef",
    "OperatorSyntax",
    "STANDARD_OPERATORS",
    "UnresolvedOperator",
    "UserDefinedOperator",
]
