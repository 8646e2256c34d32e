"""Relational lowering applied before SQL generation.

Trino has no semi/anti-join syntax and Hive's ``SELECT DISTINCT`` arrives as a
flag on the projection, so these shapes are rewritten into joins and
aggregates first:

* ``EXISTS (q)`` becomes a LEFT JOIN against ``SELECT MIN(TRUE) FROM q``
  (grouped by the correlation keys) and an ``IS NOT NULL`` test
* ``x IN (q)`` in a filter conjunct becomes an INNER JOIN against ``q``
  grouped by all of its columns
* ``Project(distinct=True)`` becomes an Aggregate over the projection

The input tree is never modified; new nodes are built where needed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from ..domain.models import (
    Aggregate,
    AggregateCall,
    Call,
    Correlate,
    CorrelVariable,
    FieldAccess,
    Filter,
    InputRef,
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
    contains_subquery,
    correlation_names,
)
from ..domain.types import BOOLEAN, Field, JoinType, RowType, SubQueryKind
from ..errors import UnsupportedConstructError
from ..functions import operators as ops

logger = logging.getLogger(__name__)

TRUE = Literal(True, BOOLEAN)


def lower(node: RelNode) -> RelNode:
    """Return ``node`` with subqueries and DISTINCT projections lowered."""

    if isinstance(node, (TableScan, OneRow, Values)):
        return node
    if isinstance(node, Filter):
        child = lower(node.input)
        if contains_subquery(node.condition):
            return _lower_filter(child, node.condition)
        return node if child is node.input else replace(node, input=child)
    if isinstance(node, Project):
        _reject_subqueries(node.exprs, "projection")
        child = lower(node.input)
        if node.distinct:
            project = Project(child, node.exprs, node.row_type)
            return Aggregate(project, tuple(range(len(node.row_type))), (), node.row_type)
        return node if child is node.input else replace(node, input=child)
    if isinstance(node, (Aggregate, Sort, Uncollect)):
        child = lower(node.input)
        return node if child is node.input else replace(node, input=child)
    if isinstance(node, Join):
        _reject_subqueries((node.condition,), "join condition")
        left, right = lower(node.left), lower(node.right)
        return node if (left is node.left and right is node.right) else replace(node, left=left, right=right)
    if isinstance(node, Correlate):
        left, right = lower(node.left), lower(node.right)
        return node if (left is node.left and right is node.right) else replace(node, left=left, right=right)
    if isinstance(node, SetOp):
        branches = tuple(lower(branch) for branch in node.branches)
        return replace(node, branches=branches)
    raise UnsupportedConstructError(node.describe())


def _reject_subqueries(exprs, location: str) -> None:
    for expr in exprs:
        if contains_subquery(expr):
            raise UnsupportedConstructError(f"subquery in {location}")


def _conjuncts(condition: RexNode) -> List[RexNode]:
    if isinstance(condition, Call) and condition.kind == "AND":
        result: List[RexNode] = []
        for operand in condition.operands:
            result.extend(_conjuncts(operand))
        return result
    return [condition]


def _and(conditions: List[RexNode]) -> RexNode:
    if not conditions:
        return TRUE
    if len(conditions) == 1:
        return conditions[0]
    return Call(ops.AND, conditions, BOOLEAN)


def _lower_filter(child: RelNode, condition: RexNode) -> RelNode:
    width = len(child.row_type)
    current = child
    remaining: List[RexNode] = []

    for conjunct in _conjuncts(condition):
        if isinstance(conjunct, SubQuery) and conjunct.kind == SubQueryKind.IN:
            current = _join_in(current, conjunct)
        elif contains_subquery(conjunct):
            current, rewritten = _replace_exists(current, conjunct)
            remaining.append(rewritten)
        else:
            remaining.append(conjunct)

    if remaining:
        current = Filter(current, _and(remaining))
    if len(current.row_type) != width:
        fields = child.row_type.fields
        current = Project(current, tuple(InputRef(i, f.type) for i, f in enumerate(fields)), child.row_type)
    return current


def _join_in(current: RelNode, subquery: SubQuery) -> RelNode:
    if subquery.correlation is not None or correlation_names(subquery.rel):
        raise UnsupportedConstructError("correlated IN subquery")
    rel = lower(subquery.rel)
    distinct = Aggregate(rel, tuple(range(len(rel.row_type))), (), rel.row_type)
    offset = len(current.row_type)
    if len(subquery.operands) != len(rel.row_type):
        raise UnsupportedConstructError(
            "IN subquery", f"{len(subquery.operands)} operands against {len(rel.row_type)} columns"
        )
    conditions: List[RexNode] = [
        Call(ops.EQUALS, [operand, InputRef(offset + i, item.type)], BOOLEAN)
        for i, (operand, item) in enumerate(zip(subquery.operands, rel.row_type))
    ]
    logger.debug(f"Lowered IN subquery into an inner join at offset {offset}")
    return Join(current, distinct, _and(conditions), JoinType.INNER)


def _replace_exists(current: RelNode, node: RexNode) -> Tuple[RelNode, RexNode]:
    """Replace every EXISTS under ``node``, joining one aggregate per occurrence."""

    if isinstance(node, SubQuery):
        if node.kind != SubQueryKind.EXISTS:
            raise UnsupportedConstructError(f"{node.kind.value} subquery", "only EXISTS may be nested in a condition")
        return _join_exists(current, node)
    if isinstance(node, Call) and contains_subquery(node):
        operands = []
        for operand in node.operands:
            current, rewritten = _replace_exists(current, operand)
            operands.append(rewritten)
        return current, Call(node.operator, operands, node.type)
    return current, node


def _split_correlation(body: RelNode, correlation: str) -> Tuple[RelNode, List[Tuple[int, int]]]:
    """Pull ``$cor.field = $i`` predicates out of the filter on top of ``body``.

    Returns the remaining body and ``(outer index, inner index)`` key pairs.
    """

    if not isinstance(body, Filter) or correlation in correlation_names(body.input):
        raise UnsupportedConstructError("correlated EXISTS subquery", "correlation must be in its top filter")

    keys: List[Tuple[int, int]] = []
    rest: List[RexNode] = []
    for conjunct in _conjuncts(body.condition):
        pair = _correlated_equality(conjunct, correlation)
        if pair is not None:
            keys.append(pair)
        elif correlation in correlation_names(conjunct):
            raise UnsupportedConstructError(
                "correlated EXISTS subquery", "only equality with the outer row can be decorrelated"
            )
        else:
            rest.append(conjunct)
    remaining = Filter(body.input, _and(rest)) if rest else body.input
    return remaining, keys


def _correlated_equality(conjunct: RexNode, correlation: str) -> Optional[Tuple[int, int]]:
    if not (isinstance(conjunct, Call) and conjunct.kind == "EQUALS" and len(conjunct.operands) == 2):
        return None
    for outer, inner in (conjunct.operands, tuple(reversed(conjunct.operands))):
        if (
            isinstance(outer, FieldAccess)
            and isinstance(outer.expr, CorrelVariable)
            and outer.expr.name == correlation
            and isinstance(inner, InputRef)
        ):
            return outer.expr.row_type.index_of(outer.field_name), inner.index
    return None


def _join_exists(current: RelNode, subquery: SubQuery) -> Tuple[RelNode, RexNode]:
    rel = lower(subquery.rel)
    body = rel.input if isinstance(rel, Project) else rel

    correlation = subquery.correlation
    if correlation is None:
        names = correlation_names(body)
        correlation = next(iter(names)) if names else None
    keys: List[Tuple[int, int]] = []
    if correlation is not None:
        body, keys = _split_correlation(body, correlation)

    inner_fields = body.row_type.fields
    key_fields = [Field(inner_fields[inner].name, inner_fields[inner].type) for _, inner in keys]
    indicator = f"$f{len(keys)}"
    row_type = RowType(tuple(key_fields) + (Field(indicator, BOOLEAN),))
    exprs = tuple(InputRef(inner, inner_fields[inner].type) for _, inner in keys) + (TRUE,)
    project = Project(body, exprs, row_type)
    aggregate = Aggregate(
        project,
        tuple(range(len(keys))),
        (AggregateCall(ops.MIN, (len(keys),), BOOLEAN, name=indicator),),
        row_type,
    )

    offset = len(current.row_type)
    outer_fields = current.row_type.fields
    conditions: List[RexNode] = [
        Call(
            ops.EQUALS,
            [InputRef(outer, outer_fields[outer].type), InputRef(offset + position, key_fields[position].type)],
            BOOLEAN,
        )
        for position, (outer, _) in enumerate(keys)
    ]
    joined = Join(current, aggregate, _and(conditions), JoinType.LEFT)
    logger.debug(f"Lowered EXISTS subquery into a left join with {len(keys)} correlation keys")
    return joined, Call(ops.IS_NOT_NULL, [InputRef(offset + len(keys), BOOLEAN)], BOOLEAN)


__all__ = ["lower"]
