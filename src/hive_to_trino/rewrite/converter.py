"""Relational algebra to Trino SQL conversion.

Each relational node is visited bottom-up into a :class:`Result`: the clauses
of a SELECT statement under construction plus the expressions the node's
output fields are reachable by. A parent extends its input's result in place
when the clause it adds can still follow the clauses already present, and
otherwise wraps the input as a derived table ``(...) AS "alias"``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..catalog import FunctionRule, get_trino_function_catalog
from ..config.schema import RenderOptions
from ..domain.models import (
    Aggregate,
    Correlate,
    Filter,
    InputRef,
    Join,
    OneRow,
    Project,
    RelNode,
    SetOp,
    Sort,
    TableScan,
    Uncollect,
    Values,
)
from ..domain.types import Direction, JoinType, NullDirection, SetOpKind
from ..errors import UnsupportedConstructError
from .expressions import ConversionContext, CorrelationScope, ExpressionRenderer
from .lowering import lower
from .rules import CALL_RULES
from .sql_text import (
    COMPARISON_PRECEDENCE,
    Emitted,
    column,
    is_generated_name,
    output_name,
    qualified_name,
    quote_identifier,
    render_literal,
    unique_names,
)

logger = logging.getLogger(__name__)

VALUES_ALIAS = "t"
DERIVED_ALIAS = "t"


class Clause(IntEnum):
    """SELECT statement clauses in the order they are written."""

    FROM = 0
    WHERE = 1
    GROUP_BY = 2
    HAVING = 3
    SELECT = 4
    SET_OP = 5
    ORDER_BY = 6
    OFFSET = 7
    FETCH = 8


# A GROUP BY cannot be added below these clauses.
_AGGREGATE_BLOCKERS = frozenset(
    {Clause.GROUP_BY, Clause.HAVING, Clause.SET_OP, Clause.ORDER_BY, Clause.OFFSET, Clause.FETCH}
)

_JOIN_KEYWORDS = {
    JoinType.INNER: "INNER JOIN",
    JoinType.LEFT: "LEFT JOIN",
    JoinType.RIGHT: "RIGHT JOIN",
    JoinType.FULL: "FULL JOIN",
}


@dataclass(slots=True)
class Result:
    """A statement under construction and the scope its output exposes."""

    alias: str
    from_: str
    fields: List[Emitted]
    names: List[str]
    clauses: Set[Clause] = field(default_factory=lambda: {Clause.FROM})
    select: Optional[List[Tuple[Emitted, str]]] = None
    where: Optional[Emitted] = None
    group_by: List[Emitted] = field(default_factory=list)
    having: Optional[Emitted] = None
    order_by: List[str] = field(default_factory=list)
    offset: Optional[int] = None
    fetch: Optional[int] = None
    set_op: Optional[str] = None
    set_kind: Optional[Tuple[SetOpKind, bool]] = None
    relation: Optional[str] = None
    is_aggregate: bool = False
    is_join: bool = False
    # Some names differ from the columns the fields point at, so SELECT * would not expose them.
    renamed: bool = False

    @property
    def is_bare(self) -> bool:
        """True when the FROM item can be used as is, without a subquery."""

        return self.clauses == {Clause.FROM} and self.select is None

    def needs_wrap(self, *added: Clause) -> bool:
        if Clause.SET_OP in self.clauses:
            return True
        lowest = min(added)
        return any(existing >= lowest for existing in self.clauses)

    def derive(self, alias: str) -> "Result":
        return replace(
            self,
            alias=alias,
            fields=list(self.fields),
            names=list(self.names),
            clauses=set(self.clauses),
            select=list(self.select) if self.select is not None else None,
            group_by=list(self.group_by),
            order_by=list(self.order_by),
        )

    def statement(self, options: RenderOptions, expand: bool = False) -> str:
        """SQL text of the statement.

        ``expand`` is set when an enclosing query references the output
        columns by name: every select item is then aliased, and a renamed
        scope gets an explicit select list instead of ``SELECT *``.
        """

        if self.set_op is not None:
            return self.set_op
        select = self.select
        if select is None and expand and self.renamed:
            select = list(zip(self.fields, self.names))
        lines = []
        if select is None:
            lines.append("SELECT *")
        else:
            items = [
                expr.text if not expand and is_generated_name(alias) else f"{expr.text} AS {quote_identifier(alias)}"
                for expr, alias in select
            ]
            lines.append(f"SELECT {', '.join(items)}")
        lines.append(f"FROM {self.from_}")
        if self.where is not None:
            lines.append(f"WHERE {self.where.text}")
        if self.group_by:
            lines.append(f"GROUP BY {', '.join(expr.text for expr in self.group_by)}")
        if self.having is not None:
            lines.append(f"HAVING {self.having.text}")
        if self.order_by:
            lines.append(f"ORDER BY {', '.join(self.order_by)}")
        if self.offset is not None:
            lines.append(f"OFFSET {self.offset}")
        if self.fetch is not None:
            lines.append(f"LIMIT {self.fetch}")
        return options.clause_separator.join(lines)


@dataclass(frozen=True)
class RelRule:
    name: str
    matches: Callable[[RelNode], bool]
    visit: Callable[["RelToTrinoConverter", RelNode], Result]


class RelToTrinoConverter:
    """Converts a validated relational algebra tree into Trino SQL text.

    A converter may be reused; every :meth:`convert` call gets fresh alias and
    correlation state.
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        function_rules: Optional[Dict[str, List[FunctionRule]]] = None,
    ):
        self.options = options or RenderOptions()
        self.function_rules = function_rules if function_rules is not None else get_trino_function_catalog()
        self._context: Optional[ConversionContext] = None

    def convert(self, rel: RelNode) -> str:
        self._context = ConversionContext(self.options, CALL_RULES, self.function_rules)
        try:
            result = self.visit(lower(rel))
            sql = result.statement(self.options)
        finally:
            self._context = None
        logger.debug(f"Converted {rel.describe()} into {len(sql)} characters of Trino SQL")
        return sql

    @property
    def context(self) -> ConversionContext:
        if self._context is None:
            raise RuntimeError("No conversion in progress")
        return self._context

    def visit(self, node: RelNode) -> Result:
        for rule in REL_RULES:
            if rule.matches(node):
                return rule.visit(self, node)
        raise UnsupportedConstructError(node.describe())

    def renderer(self, fields: List[Emitted]) -> ExpressionRenderer:
        return ExpressionRenderer(self.context, fields)

    # Helpers ----------------------------------------------------------------------

    def wrap(self, result: Result, alias: str) -> Result:
        """Start a new statement selecting from ``result`` as a derived table."""

        from_ = f"({result.statement(self.options, expand=True)}) AS {quote_identifier(result.alias)}"
        return Result(
            alias=alias,
            from_=from_,
            fields=[column(result.alias, name) for name in result.names],
            names=list(result.names),
        )

    def from_item(self, result: Result, nested: bool = False) -> Tuple[str, List[Emitted]]:
        """FROM-clause text for ``result`` and the fields it exposes there."""

        if result.is_bare:
            text = f"({result.from_})" if nested and result.is_join else result.from_
            return text, list(result.fields)
        text = f"({result.statement(self.options, expand=True)}) AS {quote_identifier(result.alias)}"
        return text, [column(result.alias, name) for name in result.names]


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------


def _visit_scan(converter: RelToTrinoConverter, node: TableScan) -> Result:
    alias = converter.context.unique_alias(node.table_name)
    relation = qualified_name(node.qualified_name)
    return Result(
        alias=alias,
        from_=f"{relation} AS {quote_identifier(alias)}",
        fields=[column(alias, item.name) for item in node.row_type],
        names=list(node.row_type.field_names),
        relation=relation,
    )


def _visit_values(converter: RelToTrinoConverter, node: RelNode) -> Result:
    alias = converter.context.reserve_alias(VALUES_ALIAS)
    names = list(node.row_type.field_names)
    if isinstance(node, OneRow):
        rows = ["(0)"]
        empty = False
    else:
        empty = not node.tuples
        tuples = node.tuples or (tuple(None for _ in names),)
        rows = [
            "(" + ", ".join("NULL" if value is None else render_literal(value).text for value in row) + ")"
            for row in tuples
        ]
    columns = ", ".join(quote_identifier(name) for name in names)
    result = Result(
        alias=alias,
        from_=f"(VALUES  {', '.join(rows)}) AS {quote_identifier(alias)} ({columns})",
        fields=[column(alias, name) for name in names],
        names=names,
    )
    if empty:
        result.where = Emitted("1 = 0", COMPARISON_PRECEDENCE)
        result.clauses.add(Clause.WHERE)
    return result


# ---------------------------------------------------------------------------
# Single-input nodes
# ---------------------------------------------------------------------------


def _visit_filter(converter: RelToTrinoConverter, node: Filter) -> Result:
    source = converter.visit(node.input)
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    if source.is_aggregate and max(source.clauses) < Clause.HAVING:
        result = source.derive(alias)
        result.having = converter.renderer(result.fields).render(node.condition)
        result.clauses.add(Clause.HAVING)
        return result
    result = converter.wrap(source, alias) if source.needs_wrap(Clause.WHERE) else source.derive(alias)
    result.where = converter.renderer(result.fields).render(node.condition)
    result.clauses.add(Clause.WHERE)
    return result


def _is_identity(node: Project, width: int) -> bool:
    return len(node.exprs) == width and all(
        isinstance(expr, InputRef) and expr.index == index for index, expr in enumerate(node.exprs)
    ) and all(item.name == name for item, name in zip(node.row_type, node.input.row_type.field_names))


def _output_names(converter: RelToTrinoConverter, node: RelNode) -> List[str]:
    upper = converter.options.upper_case_aliases
    return unique_names([output_name(item, upper) for item in node.row_type])


def _visit_project(converter: RelToTrinoConverter, node: Project) -> Result:
    source = converter.visit(node.input)
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    if _is_identity(node, len(source.fields)):
        return source.derive(alias)
    result = converter.wrap(source, alias) if source.needs_wrap(Clause.SET_OP) else source.derive(alias)
    exprs = converter.renderer(result.fields).render_all(node.exprs)
    names = _output_names(converter, node)
    result.select = list(zip(exprs, names))
    result.fields = exprs
    result.names = names
    result.clauses.add(Clause.SELECT)
    return result


def _visit_aggregate(converter: RelToTrinoConverter, node: Aggregate) -> Result:
    source = converter.visit(node.input)
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    wrap = source.is_aggregate or bool(source.clauses & _AGGREGATE_BLOCKERS)
    result = converter.wrap(source, alias) if wrap else source.derive(alias)
    renderer = converter.renderer(result.fields)
    group = [result.fields[key] for key in node.group_keys]
    aggregates = [renderer.render_aggregate(call) for call in node.agg_calls]
    exprs = group + aggregates
    names = _output_names(converter, node)
    result.select = list(zip(exprs, names))
    result.group_by = group
    result.fields = exprs
    result.names = names
    result.clauses.discard(Clause.SELECT)
    result.clauses.add(Clause.GROUP_BY)
    result.is_aggregate = True
    return result


def _visit_sort(converter: RelToTrinoConverter, node: Sort) -> Result:
    source = converter.visit(node.input)
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    added = []
    if node.collation:
        added.append(Clause.ORDER_BY)
    if node.offset is not None:
        added.append(Clause.OFFSET)
    if node.fetch is not None:
        added.append(Clause.FETCH)
    if not added:
        return source.derive(alias)

    result = converter.wrap(source, alias) if source.needs_wrap(*added) else source.derive(alias)
    for collation in node.collation:
        if not 0 <= collation.index < len(result.fields):
            raise UnsupportedConstructError(f"sort key ${collation.index}", f"scope has {len(result.fields)} fields")
        text = result.fields[collation.index].text
        if collation.direction == Direction.DESCENDING:
            text += " DESC"
        if collation.nulls != NullDirection.UNSPECIFIED:
            text += f" NULLS {collation.nulls.value}"
        result.order_by.append(text)
    result.offset = node.offset
    result.fetch = node.fetch
    result.clauses.update(added)
    return result


def _unnest_names(node: Uncollect) -> List[str]:
    names = list(node.row_type.field_names)
    position = 0
    for item in node.input.row_type:
        element = item.type.element
        if element is not None and element.is_struct:
            for _ in element.fields:
                names[position] = f"col_{position}"
                position += 1
        elif element is not None:
            position += 1
        elif item.type.key is not None:
            position += 2
    return names


def _visit_uncollect(converter: RelToTrinoConverter, node: Uncollect) -> Result:
    if not (isinstance(node.input, Project) and isinstance(node.input.input, (OneRow, Values))):
        raise UnsupportedConstructError("UNNEST", "input must project collections from a constant row")
    source = converter.visit(node.input)
    if source.select is None:
        raise UnsupportedConstructError("UNNEST", "input projects no collections")
    # UNNEST takes over the alias of the projection it expands.
    alias = source.alias
    names = _unnest_names(node)
    exprs = ", ".join(expr.text for expr, _ in source.select)
    ordinality = " WITH ORDINALITY" if node.with_ordinality else ""
    columns = ", ".join(quote_identifier(name) for name in names)
    return Result(
        alias=alias,
        from_=f"UNNEST({exprs}){ordinality} AS {quote_identifier(alias)} ({columns})",
        fields=[column(alias, name) for name in names],
        names=names,
    )


# ---------------------------------------------------------------------------
# Multi-input nodes
# ---------------------------------------------------------------------------


def _combined_names(left: Result, right: Result) -> Tuple[List[str], bool]:
    """Output names of two inputs side by side, repeats suffixed like ``ifield0``."""

    combined = left.names + right.names
    names = unique_names(combined)
    renamed = names != combined or any(side.is_bare and side.renamed for side in (left, right))
    return names, renamed


def _visit_join(converter: RelToTrinoConverter, node: Join) -> Result:
    left = converter.visit(node.left)
    right = converter.visit(node.right)
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    left_text, left_fields = converter.from_item(left)
    right_text, right_fields = converter.from_item(right, nested=True)
    fields = left_fields + right_fields
    condition = converter.renderer(fields).render(node.condition)
    separator = converter.options.clause_separator
    names, renamed = _combined_names(left, right)
    return Result(
        alias=alias,
        from_=f"{left_text}{separator}{_JOIN_KEYWORDS[node.join_type]} {right_text} ON {condition.text}",
        fields=fields,
        names=names,
        is_join=True,
        renamed=renamed,
    )


def _correlated_left(converter: RelToTrinoConverter, left: Result, name: str) -> str:
    quoted = quote_identifier(name)
    if left.relation is not None and left.is_bare:
        return f"{left.relation} AS {quoted}"
    if left.is_bare and not left.renamed:
        return f"({left.from_}) AS {quoted}"
    return f"({left.statement(converter.options, expand=True)}) AS {quoted}"


def _visit_correlate(converter: RelToTrinoConverter, node: Correlate) -> Result:
    if node.join_type not in (JoinType.INNER, JoinType.LEFT):
        raise UnsupportedConstructError(f"{node.join_type.value} lateral join")
    context = converter.context
    left = converter.visit(node.left)
    name = context.reserve_alias(node.correlation)
    left_text = _correlated_left(converter, left, name)
    left_fields = [column(name, item) for item in left.names]

    context.correlations[name] = CorrelationScope(list(left.names), left_fields)
    try:
        right = converter.visit(node.right)
    finally:
        context.correlations.pop(name, None)
    alias = context.unique_alias(DERIVED_ALIAS)

    separator = converter.options.clause_separator
    if right.is_bare:
        right_text, right_fields = converter.from_item(right, nested=True)
        joined = f"CROSS JOIN {right_text}" if node.join_type == JoinType.INNER else f"LEFT JOIN {right_text} ON TRUE"
    else:
        right_fields = [column(right.alias, item) for item in right.names]
        lateral = f"LATERAL ({right.statement(converter.options, expand=True)}) AS {quote_identifier(right.alias)}"
        joined = f"CROSS JOIN {lateral}" if node.join_type == JoinType.INNER else f"LEFT JOIN {lateral} ON TRUE"
    names, renamed = _combined_names(left, right)
    return Result(
        alias=alias,
        from_=f"{left_text}{separator}{joined}",
        fields=left_fields + right_fields,
        names=names,
        is_join=True,
        renamed=renamed,
    )


def _visit_set_op(converter: RelToTrinoConverter, node: SetOp) -> Result:
    branches = [converter.visit(branch) for branch in node.branches]
    alias = converter.context.unique_alias(DERIVED_ALIAS)
    kind = (node.kind, node.all)
    parts = []
    for branch in branches:
        text = branch.statement(converter.options, expand=True)
        mixed = branch.set_kind is not None and branch.set_kind != kind
        if mixed or branch.clauses & {Clause.ORDER_BY, Clause.OFFSET, Clause.FETCH}:
            text = f"({text})"
        parts.append(text)
    separator = converter.options.clause_separator
    keyword = node.kind.value + (" ALL" if node.all else "")
    names = branches[0].names
    return Result(
        alias=alias,
        from_="",
        fields=[column(alias, name) for name in names],
        names=list(names),
        clauses={Clause.SET_OP},
        set_op=f"{separator}{keyword}{separator}".join(parts),
        set_kind=kind,
    )


REL_RULES: Tuple[RelRule, ...] = (
    RelRule("table_scan", lambda node: isinstance(node, TableScan), _visit_scan),
    RelRule("values", lambda node: isinstance(node, (OneRow, Values)), _visit_values),
    RelRule("filter", lambda node: isinstance(node, Filter), _visit_filter),
    RelRule("project", lambda node: isinstance(node, Project), _visit_project),
    RelRule("aggregate", lambda node: isinstance(node, Aggregate), _visit_aggregate),
    RelRule("sort", lambda node: isinstance(node, Sort), _visit_sort),
    RelRule("uncollect", lambda node: isinstance(node, Uncollect), _visit_uncollect),
    RelRule("join", lambda node: isinstance(node, Join), _visit_join),
    RelRule("correlate", lambda node: isinstance(node, Correlate), _visit_correlate),
    RelRule("set_op", lambda node: isinstance(node, SetOp), _visit_set_op),
)


__all__ = ["Clause", "REL_RULES", "RelRule", "RelToTrinoConverter", "Result"]
