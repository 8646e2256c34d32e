"""Small constructors for algebra trees used across the test modules."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from hive_to_trino.domain.models import (
    Aggregate,
    AggregateCall,
    Call,
    Filter,
    InputRef,
    Literal,
    Project,
    RelNode,
    RexNode,
    TableScan,
)
from hive_to_trino.domain.types import (
    BOOLEAN,
    DOUBLE,
    INTEGER,
    TIMESTAMP,
    VARCHAR,
    Field,
    RowType,
    SqlType,
    SqlTypeName,
)
from hive_to_trino.functions import operators as ops

TABLE_ONE = TableScan(
    ("tableOne",),
    RowType.of(
        ("icol", INTEGER),
        ("dcol", DOUBLE),
        ("scol", VARCHAR),
        ("tcol", TIMESTAMP),
        ("acol", SqlType.array(VARCHAR)),
    ),
)
TABLE_TWO = TableScan(("tableTwo",), RowType.of(("ifield", INTEGER), ("dfield", DOUBLE), ("sfield", VARCHAR)))
TABLE_THREE = TableScan(
    ("tableThree",),
    RowType.of(("binaryfield", SqlType(SqlTypeName.BINARY)), ("varbinaryfield", SqlType(SqlTypeName.VARBINARY))),
)
STRUCT = SqlType.row((Field("IFIELD", INTEGER), Field("SFIELD", VARCHAR)))
TABLE_FOUR = TableScan(
    ("tableFour",),
    RowType.of(("icol", INTEGER), ("scol", VARCHAR), ("mcol", SqlType.map(VARCHAR, STRUCT))),
)


def ref(rel: RelNode, index: int) -> InputRef:
    """Reference to field ``index`` of ``rel``."""
    return InputRef(index, rel.row_type[index].type)


def lit(value, sql_type: Optional[SqlType] = None) -> Literal:
    if sql_type is not None:
        return Literal(value, sql_type)
    if isinstance(value, bool):
        return Literal(value, BOOLEAN)
    if isinstance(value, int):
        return Literal(value, INTEGER)
    if isinstance(value, Decimal):
        exponent = -value.as_tuple().exponent
        return Literal(value, SqlType.decimal(len(value.as_tuple().digits), exponent))
    if isinstance(value, str):
        return Literal(value, SqlType(SqlTypeName.CHAR, len(value)))
    return Literal(value, DOUBLE)


def call(operator, *operands: RexNode, type: SqlType = BOOLEAN) -> Call:
    return Call(operator, operands, type)


def eq(left: RexNode, right: RexNode) -> Call:
    return call(ops.EQUALS, left, right)


def project(rel: RelNode, exprs: Sequence[RexNode], names: Sequence[str], distinct: bool = False) -> Project:
    fields = tuple(Field(name, expr.type) for name, expr in zip(names, exprs))
    return Project(rel, tuple(exprs), RowType(fields), distinct)


def select(rel: RelNode, *names: str) -> Project:
    """Project the named columns of ``rel`` under their own names."""
    indexes = [rel.row_type.index_of(name) for name in names]
    return project(rel, [ref(rel, index) for index in indexes], [rel.row_type[index].name for index in indexes])


def where(rel: RelNode, condition: RexNode) -> Filter:
    return Filter(rel, condition)


def aggregate(rel: RelNode, group: Sequence[int], *calls: AggregateCall) -> Aggregate:
    fields = [rel.row_type[index] for index in group]
    fields.extend(Field(agg.name, agg.type) for agg in calls)
    return Aggregate(rel, tuple(group), tuple(calls), RowType(tuple(fields)))
