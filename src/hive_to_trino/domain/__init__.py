"""Relational algebra tree and type model."""

from .models import (
    Aggregate,
    AggregateCall,
    Call,
    Correlate,
    CorrelVariable,
    FieldAccess,
    FieldCollation,
    Filter,
    InputRef,
    Interval,
    Join,
    Literal,
    OneRow,
    Project,
    RelNode,
    RexNode,
    SetOp,
    Sort,
    SubQuery,
    TableScan,
    Uncollect,
    Values,
)
from .types import (
    Direction,
    Field,
    JoinType,
    NullDirection,
    RowType,
    SetOpKind,
    SourceDialect,
    SqlType,
    SqlTypeName,
    SubQueryKind,
    TargetDialect,
)

__all__ = [
    # Rel nodes
    "Aggregate",
    "AggregateCall",
    "Correlate",
    "FieldCollation",
    "Filter",
    "Join",
    "OneRow",
    "Project",
    "RelNode",
    "SetOp",
    "Sort",
    "TableScan",
    "Uncollect",
    "Values",
    # Row expressions
    "Call",
    "CorrelVariable",
    "FieldAccess",
    "InputRef",
    "Interval",
    "Literal",
    "RexNode",
    "SubQuery",
    # Types
    "Direction",
    "Field",
    "JoinType",
    "NullDirection",
    "RowType",
    "SetOpKind",
    "SourceDialect",
    "SqlType",
    "SqlTypeName",
    "SubQueryKind",
    "TargetDialect",
]
