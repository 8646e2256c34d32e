"""Priority-ordered rewrite rules for function and operator calls.

Each rule pairs a predicate with an emitter. :class:`ExpressionRenderer`
applies the first rule whose predicate matches; a call no rule matches is an
error. Specific shapes (element access, CAST, CASE) come before the generic
operator and function renderings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from ..domain.models import Call, FieldAccess, InputRef, Literal, RexNode
from ..domain.types import SqlType, SqlTypeName
from ..functions.operators import BuiltinOperator, OperatorSyntax, UnresolvedOperator, UserDefinedOperator
from .function_translator import find_function_rule, translate_hive_function
from .sql_text import (
    ADDITIVE_PRECEDENCE,
    AND_PRECEDENCE,
    ATOM,
    COMPARISON_PRECEDENCE,
    CONCAT_PRECEDENCE,
    MULTIPLICATIVE_PRECEDENCE,
    NOT_PRECEDENCE,
    OR_PRECEDENCE,
    UNARY_PRECEDENCE,
    Emitted,
    quote_identifier,
    render_type,
)

if TYPE_CHECKING:
    from .expressions import ConversionContext, ExpressionRenderer


@dataclass(frozen=True)
class CallRule:
    name: str
    matches: Callable[[Call, "ConversionContext"], bool]
    emit: Callable[[Call, "ExpressionRenderer"], Emitted]


def _kind_is(*kinds: str) -> Callable[[Call, "ConversionContext"], bool]:
    wanted = frozenset(kinds)

    def predicate(call: Call, context: "ConversionContext") -> bool:
        return isinstance(call.operator, BuiltinOperator) and call.operator.kind in wanted

    return predicate


def _function_call(name: str, args: List[Emitted]) -> Emitted:
    return Emitted(f"{name}({', '.join(arg.text for arg in args)})")


# ---------------------------------------------------------------------------
# Pseudo-columns and constructors
# ---------------------------------------------------------------------------


def _is_pseudo_column(call: Call, context: "ConversionContext") -> bool:
    return isinstance(call.operator, BuiltinOperator) and call.operator.syntax == OperatorSyntax.FUNCTION_ID


def _emit_pseudo_column(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    if call.operator.kind == "CURRENT_TIMESTAMP":
        precision = renderer.options.current_timestamp_precision
        return Emitted(f"CAST(CURRENT_TIMESTAMP AS TIMESTAMP({precision}))")
    return Emitted(call.operator.name)


def _emit_element_access(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _function_call("element_at", renderer.render_all(call.operands))


def _emit_array(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    items = renderer.render_all(call.operands)
    return Emitted(f"ARRAY[{', '.join(item.text for item in items)}]")


def _emit_map(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    items = renderer.render_all(call.operands)
    keys = ", ".join(item.text for item in items[0::2])
    values = ", ".join(item.text for item in items[1::2])
    return Emitted(f"MAP(ARRAY[{keys}], ARRAY[{values}])")


def _emit_row(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _function_call("ROW", renderer.render_all(call.operands))


# ---------------------------------------------------------------------------
# Type coercion
# ---------------------------------------------------------------------------


def _cast(expr: Emitted, target: SqlType) -> Emitted:
    return Emitted(f"CAST({expr.text} AS {render_type(target)})")


def _emit_cast(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _cast(renderer.render(call.operands[0]), call.type)


def _is_column(node: RexNode) -> bool:
    return isinstance(node, (InputRef, FieldAccess))


def _coercion_target(column: RexNode, literal: RexNode) -> Optional[SqlType]:
    """Type a column compared with ``literal`` must be cast to, if any."""

    if not (_is_column(column) and isinstance(literal, Literal)) or literal.is_null:
        return None
    column_type = column.type
    if literal.type.is_integral and column_type.is_character:
        return SqlType(SqlTypeName.INTEGER)
    if literal.type.is_boolean and not column_type.is_boolean:
        return SqlType(SqlTypeName.BOOLEAN)
    return None


def _needs_equality_coercion(call: Call, context: "ConversionContext") -> bool:
    if not _kind_is("EQUALS", "NOT_EQUALS")(call, context) or len(call.operands) != 2:
        return False
    left, right = call.operands
    return _coercion_target(left, right) is not None or _coercion_target(right, left) is not None


def _emit_equality_coercion(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    left, right = call.operands
    rendered = renderer.render_all(call.operands)
    left_target = _coercion_target(left, right)
    right_target = _coercion_target(right, left)
    if left_target is not None:
        rendered[0] = _cast(rendered[0], left_target)
    if right_target is not None:
        rendered[1] = _cast(rendered[1], right_target)
    return _infix(call.operator.name, COMPARISON_PRECEDENCE, rendered)


def _is_null_literal(node: RexNode) -> bool:
    return isinstance(node, Literal) and node.is_null


def _emit_case(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    operands = list(call.operands)
    has_else = len(operands) % 2 == 1
    conditions = operands[0 : len(operands) - 1 if has_else else len(operands) : 2]
    branches = operands[1::2] + ([operands[-1]] if has_else else [])

    homogenise = (not has_else or any(_is_null_literal(b) for b in branches)) and any(
        not _is_null_literal(b) and b.type.is_character for b in branches
    )

    def branch_text(node: RexNode) -> str:
        rendered = renderer.render(node)
        if homogenise and not _is_null_literal(node) and node.type.is_character:
            return _cast(rendered, SqlType(SqlTypeName.VARCHAR)).text
        return rendered.text

    parts = ["CASE"]
    for condition, branch in zip(conditions, branches):
        parts.append(f"WHEN {renderer.render(condition).text} THEN {branch_text(branch)}")
    parts.append(f"ELSE {branch_text(operands[-1]) if has_else else 'NULL'}")
    parts.append("END")
    return Emitted(" ".join(parts))


# ---------------------------------------------------------------------------
# Function shape changes
# ---------------------------------------------------------------------------


def _emit_substring(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _function_call(quote_identifier("SUBSTR"), renderer.render_all(call.operands))


def _emit_truncate(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    args = renderer.render_all(call.operands)
    if len(args) == 1:
        return _function_call("TRUNCATE", args)
    value, places = args[0], args[1].text
    scaled = f"{value.wrapped(MULTIPLICATIVE_PRECEDENCE)} * POWER(10, {places})"
    return Emitted(f"TRUNCATE({scaled}) / POWER(10, {places})", MULTIPLICATIVE_PRECEDENCE)


def _emit_random(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    # Trino's random() takes no seed: RAND(seed) drops it, RAND_INTEGER keeps the bound.
    args = renderer.render_all(call.operands)
    if call.operator.kind == "RAND_INTEGER" and args:
        return _function_call(quote_identifier("RANDOM"), [args[-1]])
    return _function_call(quote_identifier("RANDOM"), [])


def _has_catalog_rule(call: Call, context: "ConversionContext") -> bool:
    return find_function_rule(context.function_rules, call.operator.name, len(call.operands)) is not None


def _emit_catalog_rule(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    rule = find_function_rule(renderer.context.function_rules, call.operator.name, len(call.operands))
    return translate_hive_function(rule, renderer.render_all(call.operands))


# ---------------------------------------------------------------------------
# Generic operators and calls
# ---------------------------------------------------------------------------

# kind -> (precedence, associative); operands of n-ary AND/OR are flattened.
_INFIX_KINDS: Dict[str, Tuple[int, bool]] = {
    "OR": (OR_PRECEDENCE, True),
    "AND": (AND_PRECEDENCE, True),
    "EQUALS": (COMPARISON_PRECEDENCE, False),
    "NOT_EQUALS": (COMPARISON_PRECEDENCE, False),
    "LESS_THAN": (COMPARISON_PRECEDENCE, False),
    "LESS_THAN_OR_EQUAL": (COMPARISON_PRECEDENCE, False),
    "GREATER_THAN": (COMPARISON_PRECEDENCE, False),
    "GREATER_THAN_OR_EQUAL": (COMPARISON_PRECEDENCE, False),
    "IS_DISTINCT_FROM": (COMPARISON_PRECEDENCE, False),
    "IS_NOT_DISTINCT_FROM": (COMPARISON_PRECEDENCE, False),
    "LIKE": (COMPARISON_PRECEDENCE, False),
    "NOT_LIKE": (COMPARISON_PRECEDENCE, False),
    "CONCAT": (CONCAT_PRECEDENCE, False),
    "PLUS": (ADDITIVE_PRECEDENCE, False),
    "MINUS": (ADDITIVE_PRECEDENCE, False),
    "DATETIME_PLUS": (ADDITIVE_PRECEDENCE, False),
    "DATETIME_MINUS": (ADDITIVE_PRECEDENCE, False),
    "TIMES": (MULTIPLICATIVE_PRECEDENCE, False),
    "DIVIDE": (MULTIPLICATIVE_PRECEDENCE, False),
    "MOD": (MULTIPLICATIVE_PRECEDENCE, False),
}

_PREFIX_KINDS: Dict[str, Tuple[str, int]] = {
    "NOT": ("NOT ", NOT_PRECEDENCE),
    "UNARY_MINUS": ("-", UNARY_PRECEDENCE),
    "UNARY_PLUS": ("+", UNARY_PRECEDENCE),
}


def _infix(symbol: str, precedence: int, operands: List[Emitted], associative: bool = False) -> Emitted:
    if associative:
        text = f" {symbol} ".join(operand.wrapped(precedence) for operand in operands)
        return Emitted(text, precedence)
    # Left-associative: a right operand of equal precedence keeps its parentheses.
    left = operands[0].wrapped(precedence)
    right = operands[1].wrapped(precedence + 1)
    if precedence == COMPARISON_PRECEDENCE:
        left = operands[0].wrapped(precedence + 1)
    return Emitted(f"{left} {symbol} {right}", precedence)


def _emit_infix(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    precedence, associative = _INFIX_KINDS[call.operator.kind]
    operands = renderer.render_all(call.operands)
    if len(operands) == 1 and associative:
        return operands[0]
    if len(operands) != 2 and not associative:
        raise ValueError(f"{call.operator} expects two operands, got {len(operands)}")
    return _infix(call.operator.name, precedence, operands, associative)


def _emit_prefix(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    symbol, precedence = _PREFIX_KINDS[call.operator.kind]
    operand = renderer.render(call.operands[0])
    text = operand.wrapped(precedence)
    if symbol in ("-", "+") and text.startswith(("-", "+")):
        text = f"({text})"
    return Emitted(f"{symbol}{text}", precedence)


def _emit_postfix(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    operand = renderer.render(call.operands[0])
    return Emitted(f"{operand.wrapped(CONCAT_PRECEDENCE)} {call.operator.name}", COMPARISON_PRECEDENCE)


def _emit_in_list(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    operands = renderer.render_all(call.operands)
    value = operands[0]
    # Same coercion as equality, applied only when every literal agrees on the target.
    targets = {_coercion_target(call.operands[0], item) for item in call.operands[1:]}
    if len(targets) == 1 and None not in targets:
        value = _cast(value, targets.pop())
    values = ", ".join(operand.text for operand in operands[1:])
    return Emitted(f"{value.wrapped(CONCAT_PRECEDENCE)} {call.operator.name} ({values})", COMPARISON_PRECEDENCE)


def _emit_between(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    value, low, high = (operand.wrapped(CONCAT_PRECEDENCE) for operand in renderer.render_all(call.operands))
    return Emitted(f"{value} {call.operator.name} {low} AND {high}", COMPARISON_PRECEDENCE)


def _is_postfix(call: Call, context: "ConversionContext") -> bool:
    return isinstance(call.operator, BuiltinOperator) and call.operator.syntax == OperatorSyntax.POSTFIX


def _is_builtin_function(call: Call, context: "ConversionContext") -> bool:
    return isinstance(call.operator, BuiltinOperator) and call.operator.syntax == OperatorSyntax.FUNCTION


def _emit_builtin_function(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _function_call(call.operator.name, renderer.render_all(call.operands))


def _is_user_defined(call: Call, context: "ConversionContext") -> bool:
    return isinstance(call.operator, UserDefinedOperator)


def _is_unresolved(call: Call, context: "ConversionContext") -> bool:
    return isinstance(call.operator, UnresolvedOperator)


def _emit_quoted_call(call: Call, renderer: "ExpressionRenderer") -> Emitted:
    return _function_call(quote_identifier(call.operator.name), renderer.render_all(call.operands))


CALL_RULES: Tuple[CallRule, ...] = (
    CallRule("pseudo_column", _is_pseudo_column, _emit_pseudo_column),
    CallRule("element_access", _kind_is("ITEM"), _emit_element_access),
    CallRule("array_constructor", _kind_is("ARRAY_VALUE_CONSTRUCTOR"), _emit_array),
    CallRule("map_constructor", _kind_is("MAP_VALUE_CONSTRUCTOR"), _emit_map),
    CallRule("row_constructor", _kind_is("ROW"), _emit_row),
    CallRule("cast", _kind_is("CAST"), _emit_cast),
    CallRule("equality_coercion", _needs_equality_coercion, _emit_equality_coercion),
    CallRule("case", _kind_is("CASE"), _emit_case),
    CallRule("substring", _kind_is("SUBSTRING"), _emit_substring),
    CallRule("truncate", _kind_is("TRUNCATE"), _emit_truncate),
    CallRule("random", _kind_is("RAND", "RAND_INTEGER"), _emit_random),
    CallRule("function_catalog", _has_catalog_rule, _emit_catalog_rule),
    CallRule("in_list", _kind_is("IN", "NOT_IN"), _emit_in_list),
    CallRule("between", _kind_is("BETWEEN", "NOT_BETWEEN"), _emit_between),
    CallRule("infix", _kind_is(*_INFIX_KINDS), _emit_infix),
    CallRule("prefix", _kind_is(*_PREFIX_KINDS), _emit_prefix),
    CallRule("postfix", _is_postfix, _emit_postfix),
    CallRule("builtin_function", _is_builtin_function, _emit_builtin_function),
    CallRule("user_defined_function", _is_user_defined, _emit_quoted_call),
    CallRule("unresolved_function", _is_unresolved, _emit_quoted_call),
)


__all__ = ["CALL_RULES", "CallRule"]
