"""Domain models describing the validated relational algebra tree.

The tree is produced by an external parser/validator and is treated as
read-only input by the rewrite engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterator, Optional, Sequence, Tuple, Union

from ..functions.operators import AGGREGATE_KINDS, BuiltinOperator, OperatorRef
from .types import (
    BOOLEAN,
    Direction,
    Field,
    JoinType,
    NullDirection,
    RowType,
    SetOpKind,
    SqlType,
    SqlTypeName,
    SubQueryKind,
)


# ---------------------------------------------------------------------------
# Row expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Interval:
    """Value of an interval literal, e.g. ``Interval("3", "DAY")``."""

    value: str
    unit: str


LiteralValue = Union[None, bool, int, float, Decimal, str, bytes, date, time, datetime, Interval]


@dataclass(frozen=True, slots=True)
class InputRef:
    """Reference to the ``index``-th field of the input row."""

    index: int
    type: SqlType


@dataclass(frozen=True, slots=True)
class Literal:
    value: LiteralValue
    type: SqlType

    @property
    def is_null(self) -> bool:
        return self.value is None


@dataclass(frozen=True, slots=True)
class Call:
    operator: OperatorRef
    operands: Tuple["RexNode", ...]
    type: SqlType

    def __init__(self, operator: OperatorRef, operands: Sequence["RexNode"], type: SqlType):
        object.__setattr__(self, "operator", operator)
        object.__setattr__(self, "operands", tuple(operands))
        object.__setattr__(self, "type", type)

    @property
    def kind(self) -> Optional[str]:
        if isinstance(self.operator, BuiltinOperator):
            return self.operator.kind
        return None


@dataclass(frozen=True, slots=True)
class CorrelVariable:
    """The current row of an enclosing relation, named e.g. ``$cor0``."""

    name: str
    row_type: RowType

    @property
    def type(self) -> SqlType:
        return SqlType.row(self.row_type.fields)


@dataclass(frozen=True, slots=True)
class FieldAccess:
    """``expr.field`` on a struct-typed expression or a correlation variable."""

    expr: "RexNode"
    field_name: str
    type: SqlType


@dataclass(frozen=True, slots=True)
class SubQuery:
    """An EXISTS / IN / scalar subquery embedded in an expression.

    ``operands`` are the left-hand expressions of an IN subquery.
    ``correlation`` names the correlation variable the subquery uses to
    reference the enclosing row, if any.
    """

    kind: SubQueryKind
    rel: "RelNode"
    operands: Tuple["RexNode", ...] = ()
    correlation: Optional[str] = None
    type: SqlType = BOOLEAN


RexNode = Union[InputRef, Literal, Call, CorrelVariable, FieldAccess, SubQuery]


# ---------------------------------------------------------------------------
# Relational nodes
# ---------------------------------------------------------------------------


class RelNode:
    """Base class for relational nodes."""

    __slots__ = ()

    row_type: RowType

    @property
    def inputs(self) -> Tuple["RelNode", ...]:
        return ()

    @property
    def expressions(self) -> Tuple[RexNode, ...]:
        return ()

    def describe(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, slots=True)
class TableScan(RelNode):
    qualified_name: Tuple[str, ...]
    row_type: RowType

    @property
    def table_name(self) -> str:
        return self.qualified_name[-1]

    def describe(self) -> str:
        return f"TableScan({'.'.join(self.qualified_name)})"


@dataclass(frozen=True, slots=True)
class OneRow(RelNode):
    """Source of a query with no FROM clause: one row, one ``ZERO`` column."""

    row_type: RowType = field(default_factory=lambda: RowType((Field("ZERO", SqlType(SqlTypeName.INTEGER)),)))


@dataclass(frozen=True, slots=True)
class Values(RelNode):
    tuples: Tuple[Tuple[Literal, ...], ...]
    row_type: RowType


@dataclass(frozen=True, slots=True)
class Project(RelNode):
    input: RelNode
    exprs: Tuple[RexNode, ...]
    row_type: RowType
    distinct: bool = False

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.input,)

    @property
    def expressions(self) -> Tuple[RexNode, ...]:
        return self.exprs


@dataclass(frozen=True, slots=True)
class Filter(RelNode):
    input: RelNode
    condition: RexNode

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        return self.input.row_type

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.input,)

    @property
    def expressions(self) -> Tuple[RexNode, ...]:
        return (self.condition,)


@dataclass(frozen=True, slots=True)
class AggregateCall:
    operator: OperatorRef
    args: Tuple[int, ...]
    type: SqlType
    name: Optional[str] = None
    distinct: bool = False

    @property
    def is_count_star(self) -> bool:
        return not self.args and isinstance(self.operator, BuiltinOperator) and self.operator.kind == "COUNT"


@dataclass(frozen=True, slots=True)
class Aggregate(RelNode):
    input: RelNode
    group_keys: Tuple[int, ...]
    agg_calls: Tuple[AggregateCall, ...]
    row_type: RowType

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.input,)


@dataclass(frozen=True, slots=True)
class Join(RelNode):
    left: RelNode
    right: RelNode
    condition: RexNode
    join_type: JoinType = JoinType.INNER

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        return RowType(self.left.row_type.fields + self.right.row_type.fields)

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.left, self.right)

    @property
    def expressions(self) -> Tuple[RexNode, ...]:
        return (self.condition,)


@dataclass(frozen=True, slots=True)
class Correlate(RelNode):
    """Lateral join: ``right`` may reference ``left`` through ``correlation``."""

    left: RelNode
    right: RelNode
    correlation: str
    join_type: JoinType = JoinType.INNER

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        return RowType(self.left.row_type.fields + self.right.row_type.fields)

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.left, self.right)


@dataclass(frozen=True, slots=True)
class SetOp(RelNode):
    kind: SetOpKind
    branches: Tuple[RelNode, ...]
    all: bool = False

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        return self.branches[0].row_type

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return self.branches


@dataclass(frozen=True, slots=True)
class FieldCollation:
    index: int
    direction: Direction = Direction.ASCENDING
    nulls: NullDirection = NullDirection.UNSPECIFIED


@dataclass(frozen=True, slots=True)
class Sort(RelNode):
    input: RelNode
    collation: Tuple[FieldCollation, ...] = ()
    offset: Optional[int] = None
    fetch: Optional[int] = None

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        return self.input.row_type

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.input,)


@dataclass(frozen=True, slots=True)
class Uncollect(RelNode):
    """Expands the array (or map) columns of its input into rows."""

    input: RelNode
    with_ordinality: bool = False

    @property
    def row_type(self) -> RowType:  # type: ignore[override]
        fields = []
        for item in self.input.row_type:
            element = item.type.element
            if element is not None and element.is_struct:
                fields.extend(element.fields)
            elif element is not None:
                fields.append(Field(item.name, element))
            elif item.type.key is not None and item.type.value is not None:
                fields.append(Field("key", item.type.key))
                fields.append(Field("value", item.type.value))
        if self.with_ordinality:
            fields.append(Field("ORDINALITY", SqlType(SqlTypeName.INTEGER)))
        return RowType(tuple(fields))

    @property
    def inputs(self) -> Tuple[RelNode, ...]:
        return (self.input,)


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def is_aggregate_operator(operator: OperatorRef) -> bool:
    return isinstance(operator, BuiltinOperator) and operator.kind in AGGREGATE_KINDS


def walk_rex(node: RexNode) -> Iterator[RexNode]:
    """Depth-first iteration over ``node`` and its sub-expressions.

    Subquery relations are not entered; use :func:`correlation_names` for that.
    """

    yield node
    if isinstance(node, Call):
        for operand in node.operands:
            yield from walk_rex(operand)
    elif isinstance(node, FieldAccess):
        yield from walk_rex(node.expr)
    elif isinstance(node, SubQuery):
        for operand in node.operands:
            yield from walk_rex(operand)


def walk_rel(node: RelNode) -> Iterator[RelNode]:
    yield node
    for child in node.inputs:
        yield from walk_rel(child)


def correlation_names(node: Union[RelNode, RexNode]) -> set:
    """Names of every correlation variable referenced within ``node``."""

    names = set()
    rels = list(walk_rel(node)) if isinstance(node, RelNode) else []
    rexes = [node] if not isinstance(node, RelNode) else [e for rel in rels for e in rel.expressions]
    while rexes:
        expr = rexes.pop()
        for sub in walk_rex(expr):
            if isinstance(sub, CorrelVariable):
                names.add(sub.name)
            elif isinstance(sub, SubQuery):
                names |= correlation_names(sub.rel)
    return names


def contains_subquery(node: RexNode) -> bool:
    return any(isinstance(sub, SubQuery) for sub in walk_rex(node))


__all__ = [
    "Aggregate",
    "AggregateCall",
    "Call",
    "CorrelVariable",
    "Correlate",
    "FieldAccess",
    "FieldCollation",
    "Filter",
    "InputRef",
    "Interval",
    "Join",
    "Literal",
    "LiteralValue",
    "OneRow",
    "Project",
    "RelNode",
    "RexNode",
    "SetOp",
    "Sort",
    "SubQuery",
    "TableScan",
    "Uncollect",
    "Values",
    "contains_subquery",
    "correlation_names",
    "is_aggregate_operator",
    "walk_rel",
    "walk_rex",
]
