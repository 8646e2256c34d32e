"""Type system definitions for the relational algebra IR."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple


class SourceDialect(str, Enum):
    """Dialect the algebra tree was built from."""

    HIVE = "hive"


class TargetDialect(str, Enum):
    """Dialect the rewrite engine emits."""

    TRINO = "trino"
    # Future: SPARK = "spark"


class SqlTypeName(str, Enum):
    """Type names understood by the algebra IR (source dialect spelling)."""

    BOOLEAN = "BOOLEAN"
    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    REAL = "REAL"
    DOUBLE = "DOUBLE"
    CHAR = "CHAR"
    VARCHAR = "VARCHAR"
    BINARY = "BINARY"
    VARBINARY = "VARBINARY"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    INTERVAL_YEAR_MONTH = "INTERVAL_YEAR_MONTH"
    INTERVAL_DAY_TIME = "INTERVAL_DAY_TIME"
    ARRAY = "ARRAY"
    MAP = "MAP"
    ROW = "ROW"
    NULL = "NULL"
    ANY = "ANY"


_EXACT_NUMERIC = frozenset(
    {SqlTypeName.TINYINT, SqlTypeName.SMALLINT, SqlTypeName.INTEGER, SqlTypeName.BIGINT, SqlTypeName.DECIMAL}
)
_INTEGRAL = frozenset({SqlTypeName.TINYINT, SqlTypeName.SMALLINT, SqlTypeName.INTEGER, SqlTypeName.BIGINT})
_APPROX_NUMERIC = frozenset({SqlTypeName.FLOAT, SqlTypeName.REAL, SqlTypeName.DOUBLE})
_CHARACTER = frozenset({SqlTypeName.CHAR, SqlTypeName.VARCHAR})
_BINARY = frozenset({SqlTypeName.BINARY, SqlTypeName.VARBINARY})
_DATETIME = frozenset({SqlTypeName.DATE, SqlTypeName.TIME, SqlTypeName.TIMESTAMP})
_INTERVAL = frozenset({SqlTypeName.INTERVAL_YEAR_MONTH, SqlTypeName.INTERVAL_DAY_TIME})


@dataclass(frozen=True, slots=True)
class Field:
    """A named, typed column of a row type.

    ``quoted`` marks names that were written as quoted identifiers in the
    source query; their casing is preserved when printed as an alias.
    """

    name: str
    type: "SqlType"
    quoted: bool = False


@dataclass(frozen=True, slots=True)
class SqlType:
    """A (possibly parameterised) SQL type."""

    name: SqlTypeName
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    element: Optional["SqlType"] = None
    key: Optional["SqlType"] = None
    value: Optional["SqlType"] = None
    fields: Tuple[Field, ...] = ()

    # Constructors -----------------------------------------------------------------

    @classmethod
    def of(cls, name: SqlTypeName | str, precision: Optional[int] = None, scale: Optional[int] = None) -> "SqlType":
        if not isinstance(name, SqlTypeName):
            name = SqlTypeName(name.upper())
        return cls(name, precision, scale)

    @classmethod
    def varchar(cls, length: Optional[int] = None) -> "SqlType":
        return cls(SqlTypeName.VARCHAR, length)

    @classmethod
    def decimal(cls, precision: int, scale: int = 0) -> "SqlType":
        return cls(SqlTypeName.DECIMAL, precision, scale)

    @classmethod
    def array(cls, element: "SqlType") -> "SqlType":
        return cls(SqlTypeName.ARRAY, element=element)

    @classmethod
    def map(cls, key: "SqlType", value: "SqlType") -> "SqlType":
        return cls(SqlTypeName.MAP, key=key, value=value)

    @classmethod
    def row(cls, fields: Iterable[Field]) -> "SqlType":
        return cls(SqlTypeName.ROW, fields=tuple(fields))

    # Families ---------------------------------------------------------------------

    @property
    def is_character(self) -> bool:
        return self.name in _CHARACTER

    @property
    def is_exact_numeric(self) -> bool:
        return self.name in _EXACT_NUMERIC

    @property
    def is_integral(self) -> bool:
        return self.name in _INTEGRAL

    @property
    def is_approximate_numeric(self) -> bool:
        return self.name in _APPROX_NUMERIC

    @property
    def is_numeric(self) -> bool:
        return self.is_exact_numeric or self.is_approximate_numeric

    @property
    def is_boolean(self) -> bool:
        return self.name == SqlTypeName.BOOLEAN

    @property
    def is_binary(self) -> bool:
        return self.name in _BINARY

    @property
    def is_datetime(self) -> bool:
        return self.name in _DATETIME

    @property
    def is_interval(self) -> bool:
        return self.name in _INTERVAL

    @property
    def is_struct(self) -> bool:
        return self.name == SqlTypeName.ROW

    def field(self, name: str) -> Optional[Field]:
        """Return the struct field called ``name`` (case-insensitive)."""

        lowered = name.lower()
        for item in self.fields:
            if item.name.lower() == lowered:
                return item
        return None

    def same_family(self, other: "SqlType") -> bool:
        if self.name == other.name:
            return True
        families = (_CHARACTER, _BINARY, _DATETIME, _INTERVAL, _INTEGRAL, _APPROX_NUMERIC)
        return any(self.name in family and other.name in family for family in families)

    def __str__(self) -> str:
        if self.name == SqlTypeName.ARRAY and self.element is not None:
            return f"ARRAY<{self.element}>"
        if self.name == SqlTypeName.MAP and self.key is not None and self.value is not None:
            return f"MAP<{self.key}, {self.value}>"
        if self.name == SqlTypeName.ROW:
            return "ROW<" + ", ".join(f"{f.name} {f.type}" for f in self.fields) + ">"
        if self.precision is not None and self.scale is not None:
            return f"{self.name.value}({self.precision}, {self.scale})"
        if self.precision is not None:
            return f"{self.name.value}({self.precision})"
        return self.name.value


@dataclass(frozen=True, slots=True)
class RowType:
    """Ordered list of fields produced by a relational node."""

    fields: Tuple[Field, ...] = ()

    @classmethod
    def of(cls, *columns: Tuple[str, SqlType]) -> "RowType":
        return cls(tuple(Field(name, type_) for name, type_ in columns))

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def index_of(self, name: str) -> int:
        lowered = name.lower()
        for index, item in enumerate(self.fields):
            if item.name.lower() == lowered:
                return index
        raise KeyError(name)

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, index: int) -> Field:
        return self.fields[index]

    def __iter__(self):
        return iter(self.fields)


class JoinType(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


class SetOpKind(str, Enum):
    UNION = "UNION"
    INTERSECT = "INTERSECT"
    EXCEPT = "EXCEPT"


class SubQueryKind(str, Enum):
    EXISTS = "EXISTS"
    IN = "IN"
    SCALAR = "SCALAR"


class Direction(str, Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


class NullDirection(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    FIRST = "FIRST"
    LAST = "LAST"


BOOLEAN = SqlType(SqlTypeName.BOOLEAN)
INTEGER = SqlType(SqlTypeName.INTEGER)
BIGINT = SqlType(SqlTypeName.BIGINT)
DOUBLE = SqlType(SqlTypeName.DOUBLE)
VARCHAR = SqlType(SqlTypeName.VARCHAR)
DATE = SqlType(SqlTypeName.DATE)
TIMESTAMP = SqlType(SqlTypeName.TIMESTAMP)
NULL = SqlType(SqlTypeName.NULL)
ANY = SqlType(SqlTypeName.ANY)


__all__ = [
    "ANY",
    "BIGINT",
    "BOOLEAN",
    "DATE",
    "DOUBLE",
    "Direction",
    "Field",
    "INTEGER",
    "JoinType",
    "NULL",
    "NullDirection",
    "RowType",
    "SetOpKind",
    "SourceDialect",
    "SqlType",
    "SqlTypeName",
    "SubQueryKind",
    "TIMESTAMP",
    "TargetDialect",
    "VARCHAR",
]
