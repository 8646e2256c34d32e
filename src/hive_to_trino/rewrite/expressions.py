"""Rendering of row expressions within one relational scope."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Sequence, Set, Tuple

from ..catalog import FunctionRule
from ..config.schema import RenderOptions
from ..domain.models import (
    AggregateCall,
    Call,
    CorrelVariable,
    FieldAccess,
    InputRef,
    Literal,
    RexNode,
    SubQuery,
)
from ..errors import UnsupportedConstructError
from ..functions.operators import BuiltinOperator
from .sql_text import ATOM, Emitted, quote_identifier, render_literal

if TYPE_CHECKING:
    from .rules import CallRule

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CorrelationScope:
    """Fields of the row a correlation variable stands for."""

    names: List[str]
    fields: List[Emitted]

    def lookup(self, name: str) -> Emitted:
        for candidate, emitted in zip(self.names, self.fields):
            if candidate == name:
                return emitted
        lowered = name.lower()
        for candidate, emitted in zip(self.names, self.fields):
            if candidate.lower() == lowered:
                return emitted
        raise KeyError(name)


@dataclass(slots=True)
class ConversionContext:
    """State of a single conversion. Never shared between conversions."""

    options: RenderOptions
    rules: Tuple["CallRule", ...]
    function_rules: Dict[str, List[FunctionRule]]
    aliases: Set[str] = field(default_factory=set)
    correlations: Dict[str, CorrelationScope] = field(default_factory=dict)

    def unique_alias(self, base: str) -> str:
        """Return ``base`` or the first of ``base0``, ``base1``, ... not yet used."""

        candidate = base
        index = 0
        while candidate in self.aliases:
            candidate = f"{base}{index}"
            index += 1
        self.aliases.add(candidate)
        return candidate

    def reserve_alias(self, alias: str) -> str:
        self.aliases.add(alias)
        return alias


class ExpressionRenderer:
    """Renders row expressions against the fields of one input scope."""

    def __init__(self, context: ConversionContext, fields: Sequence[Emitted]):
        self.context = context
        self.fields = list(fields)

    @property
    def options(self) -> RenderOptions:
        return self.context.options

    def render(self, node: RexNode) -> Emitted:
        if isinstance(node, InputRef):
            if not 0 <= node.index < len(self.fields):
                raise UnsupportedConstructError(
                    f"input reference ${node.index}", f"scope has {len(self.fields)} fields"
                )
            return self.fields[node.index]
        if isinstance(node, Literal):
            return render_literal(node)
        if isinstance(node, Call):
            return self._render_call(node)
        if isinstance(node, FieldAccess):
            return self._render_field_access(node)
        if isinstance(node, SubQuery):
            raise UnsupportedConstructError(
                f"{node.kind.value} subquery", "only EXISTS and IN subqueries in a filter can be converted"
            )
        if isinstance(node, CorrelVariable):
            raise UnsupportedConstructError(f"correlation variable {node.name}", "must be accessed by field")
        raise UnsupportedConstructError(type(node).__name__)

    def render_all(self, nodes: Sequence[RexNode]) -> List[Emitted]:
        return [self.render(node) for node in nodes]

    def render_aggregate(self, call: AggregateCall) -> Emitted:
        if call.is_count_star:
            return Emitted("COUNT(*)")
        operator = call.operator
        name = operator.name if isinstance(operator, BuiltinOperator) else quote_identifier(operator.name)
        args = ", ".join(self.fields[index].text for index in call.args)
        distinct = "DISTINCT " if call.distinct else ""
        return Emitted(f"{name}({distinct}{args})")

    def _render_call(self, call: Call) -> Emitted:
        for rule in self.context.rules:
            if rule.matches(call, self.context):
                logger.debug(f"Rule {rule.name} renders {call.operator}")
                return rule.emit(call, self)
        raise UnsupportedConstructError(f"operator {call.operator}", "no rewrite rule matches")

    def _render_field_access(self, node: FieldAccess) -> Emitted:
        if isinstance(node.expr, CorrelVariable):
            scope = self.context.correlations.get(node.expr.name)
            if scope is None:
                raise UnsupportedConstructError(f"correlation variable {node.expr.name}", "is not in scope")
            try:
                return scope.lookup(node.field_name)
            except KeyError as exc:
                raise UnsupportedConstructError(
                    f"field {node.field_name} of {node.expr.name}", "is not in scope"
                ) from exc
        base = self.render(node.expr)
        return Emitted(f"{base.wrapped(ATOM)}.{quote_identifier(node.field_name)}")


__all__ = ["ConversionContext", "CorrelationScope", "ExpressionRenderer"]
