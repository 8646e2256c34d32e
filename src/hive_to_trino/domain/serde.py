"""YAML serialisation of algebra trees.

Plans are normally produced in-process by the parser/validator. The YAML form
lets the command line (and fixtures) feed the rewrite engine directly:

```yaml
tables:
  tableOne:
    name: [hive, db, tableOne]
    columns: {icol: INTEGER, scol: VARCHAR, acol: ARRAY<VARCHAR>}
plan:
  project:
    input: {scan: tableOne}
    exprs: [{ref: 0}, {call: nvl, operands: [{ref: 1}, "n/a"], type: VARCHAR}]
    names: [icol, s]
```

Every relational node and every non-scalar expression is a single-key
mapping whose key names the node. Function names are bound through a
:class:`~hive_to_trino.functions.FunctionResolver`.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from ..functions import FunctionResolver, TableFunctionMetadata
from ..functions.operators import BuiltinOperator, OperatorRef
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
    ANY,
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

_TYPE_ALIASES = {
    "INT": "INTEGER",
    "LONG": "BIGINT",
    "STRING": "VARCHAR",
    "BOOL": "BOOLEAN",
    "STRUCT": "ROW",
}
_TYPE_TOKEN = re.compile(r'\s*(?:([A-Za-z_][A-Za-z0-9_$]*)|(\d+)|("(?:[^"]|"")*")|([<>(),:]))')

_AGGREGATE_TYPES = {"COUNT": SqlType(SqlTypeName.BIGINT)}


class PlanFormatError(ValueError):
    """The YAML document does not describe a valid algebra tree."""


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


def parse_type(text: str) -> SqlType:
    """Parse a type string such as ``DECIMAL(10, 2)`` or ``MAP<VARCHAR, ROW<a INT>>``."""

    tokens = _tokenize_type(text)
    sql_type, position = _parse_type_at(tokens, 0, text)
    if position != len(tokens):
        raise PlanFormatError(f"Unexpected '{tokens[position]}' in type '{text}'")
    return sql_type


def _tokenize_type(text: str) -> List[str]:
    tokens: List[str] = []
    position = 0
    stripped = text.rstrip()
    while position < len(stripped):
        match = _TYPE_TOKEN.match(stripped, position)
        if match is None:
            raise PlanFormatError(f"Cannot parse type '{text}'")
        tokens.append(match.group(match.lastindex))
        position = match.end()
    return tokens


def _expect(tokens: List[str], position: int, token: str, text: str) -> int:
    if position >= len(tokens) or tokens[position] != token:
        raise PlanFormatError(f"Expected '{token}' in type '{text}'")
    return position + 1


def _parse_type_at(tokens: List[str], position: int, text: str) -> Tuple[SqlType, int]:
    if position >= len(tokens):
        raise PlanFormatError(f"Truncated type '{text}'")
    raw = tokens[position].upper()
    name = _TYPE_ALIASES.get(raw, raw)
    position += 1
    try:
        type_name = SqlTypeName(name)
    except ValueError as exc:
        raise PlanFormatError(f"Unknown type '{tokens[position - 1]}' in '{text}'") from exc

    if type_name == SqlTypeName.ARRAY:
        position = _expect(tokens, position, "<", text)
        element, position = _parse_type_at(tokens, position, text)
        return SqlType.array(element), _expect(tokens, position, ">", text)
    if type_name == SqlTypeName.MAP:
        position = _expect(tokens, position, "<", text)
        key, position = _parse_type_at(tokens, position, text)
        position = _expect(tokens, position, ",", text)
        value, position = _parse_type_at(tokens, position, text)
        return SqlType.map(key, value), _expect(tokens, position, ">", text)
    if type_name == SqlTypeName.ROW:
        position = _expect(tokens, position, "<", text)
        fields: List[Field] = []
        while True:
            field_name = tokens[position] if position < len(tokens) else ""
            quoted = field_name.startswith('"')
            if quoted:
                field_name = field_name[1:-1].replace('""', '"')
            position += 1
            if position < len(tokens) and tokens[position] == ":":
                position += 1
            field_type, position = _parse_type_at(tokens, position, text)
            fields.append(Field(field_name, field_type, quoted))
            if position < len(tokens) and tokens[position] == ",":
                position += 1
                continue
            return SqlType.row(fields), _expect(tokens, position, ">", text)

    precision = scale = None
    if position < len(tokens) and tokens[position] == "(":
        precision = int(tokens[position + 1])
        position += 2
        if tokens[position] == ",":
            scale = int(tokens[position + 1])
            position += 2
        position = _expect(tokens, position, ")", text)
    return SqlType(type_name, precision, scale), position


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


# Checked in order: a correlation access also carries a "field" key.
_NODE_KEYS = (
    "scan",
    "one_row",
    "values",
    "project",
    "filter",
    "aggregate",
    "join",
    "correlate",
    "set_op",
    "sort",
    "unnest",
    "ref",
    "literal",
    "correl",
    "call",
    "op",
    "kind",
    "field",
    "exists",
    "in",
)


def _single_key(node: Any, what: str) -> Tuple[str, Any]:
    if not isinstance(node, Mapping) or not node:
        raise PlanFormatError(f"{what} must be a mapping, got {node!r}")
    for key in _NODE_KEYS:
        if key in node:
            return key, node[key]
    raise PlanFormatError(f"{what} has no recognised node key: {sorted(node)}")


class PlanLoader:
    """Builds domain models from the YAML plan format."""

    def __init__(self, resolver: FunctionResolver, tables: Optional[Mapping[str, Any]] = None):
        self.resolver = resolver
        self.tables: Dict[str, Tuple[Tuple[str, ...], RowType, Optional[TableFunctionMetadata]]] = {}
        self._correlations: Dict[str, RowType] = {}
        for table_name, definition in (tables or {}).items():
            self.tables[table_name] = self._parse_table(table_name, definition)

    # Tables ------------------------------------------------------------------------

    @staticmethod
    def _parse_table(table_name: str, definition: Any):
        if not isinstance(definition, Mapping):
            raise PlanFormatError(f"Table '{table_name}' must be a mapping")
        name = definition.get("name", [table_name])
        qualified = tuple(str(part) for part in ([name] if isinstance(name, str) else name))
        columns = definition.get("columns") or {}
        if not isinstance(columns, Mapping):
            raise PlanFormatError(f"Table '{table_name}' columns must be a mapping of name to type")
        row_type = RowType(tuple(Field(str(col), parse_type(str(typ))) for col, typ in columns.items()))

        metadata = None
        properties = definition.get("properties")
        if properties:
            database = qualified[-2] if len(qualified) > 1 else "default"
            metadata = TableFunctionMetadata.from_table_properties(database, qualified[-1], properties)
        return qualified, row_type, metadata

    def _table(self, name: str):
        try:
            return self.tables[name]
        except KeyError as exc:
            raise PlanFormatError(f"Unknown table '{name}'") from exc

    # Relational nodes ----------------------------------------------------------------

    def rel(self, node: Any) -> RelNode:
        key, body = _single_key(node, "Plan node")
        handler = getattr(self, f"_rel_{key}", None)
        if handler is None:
            raise PlanFormatError(f"'{key}' is not a relational node")
        return handler(body if body is not None else {})

    def _rel_scan(self, body: Any) -> RelNode:
        name = body if isinstance(body, str) else body.get("table")
        qualified, row_type, _ = self._table(name)
        return TableScan(qualified, row_type)

    def _rel_one_row(self, body: Any) -> RelNode:
        return OneRow()

    def _rel_values(self, body: Mapping[str, Any]) -> RelNode:
        columns = body.get("columns") or {}
        row_type = RowType(tuple(Field(str(name), parse_type(str(typ))) for name, typ in columns.items()))
        rows = []
        for row in body.get("rows") or []:
            if len(row) != len(row_type):
                raise PlanFormatError(f"VALUES row {row!r} does not match columns {list(columns)}")
            rows.append(tuple(self._literal(value, item.type) for value, item in zip(row, row_type)))
        return Values(tuple(rows), row_type)

    def _rel_project(self, body: Mapping[str, Any]) -> RelNode:
        child = self.rel(body["input"])
        exprs = tuple(self.rex(expr, child.row_type) for expr in body.get("exprs") or [])
        names = body.get("names") or []
        fields = []
        for index, expr in enumerate(exprs):
            fields.append(Field(str(names[index]) if index < len(names) else f"EXPR${index}", expr.type))
        return Project(child, exprs, RowType(tuple(fields)), bool(body.get("distinct", False)))

    def _rel_filter(self, body: Mapping[str, Any]) -> RelNode:
        child = self.rel(body["input"])
        return Filter(child, self.rex(body["condition"], child.row_type))

    def _rel_aggregate(self, body: Mapping[str, Any]) -> RelNode:
        child = self.rel(body["input"])
        group = tuple(int(index) for index in body.get("group") or [])
        fields = [child.row_type[index] for index in group]
        calls = []
        for position, item in enumerate(body.get("calls") or [], start=len(group)):
            operator = self.resolver.try_resolve(str(item["function"])).operator
            args = tuple(int(index) for index in item.get("args") or [])
            if "type" in item:
                call_type = parse_type(str(item["type"]))
            else:
                call_type = _AGGREGATE_TYPES.get(operator.name.upper(), child.row_type[args[0]].type if args else ANY)
            name = str(item.get("name") or f"EXPR${position}")
            calls.append(AggregateCall(operator, args, call_type, name, bool(item.get("distinct", False))))
            fields.append(Field(name, call_type))
        return Aggregate(child, group, tuple(calls), RowType(tuple(fields)))

    def _rel_join(self, body: Mapping[str, Any]) -> RelNode:
        left, right = self.rel(body["left"]), self.rel(body["right"])
        join_type = JoinType(str(body.get("type", "inner")).upper())
        scope = RowType(left.row_type.fields + right.row_type.fields)
        condition = self.rex(body.get("condition", True), scope)
        return Join(left, right, condition, join_type)

    def _rel_correlate(self, body: Mapping[str, Any]) -> RelNode:
        left = self.rel(body["left"])
        correlation = str(body.get("correlation", f"$cor{len(self._correlations)}"))
        self._correlations[correlation] = left.row_type
        right = self.rel(body["right"])
        join_type = JoinType(str(body.get("type", "inner")).upper())
        return Correlate(left, right, correlation, join_type)

    def _rel_set_op(self, body: Mapping[str, Any]) -> RelNode:
        branches = tuple(self.rel(branch) for branch in body.get("branches") or [])
        if len(branches) < 2:
            raise PlanFormatError("set_op needs at least two branches")
        return SetOp(SetOpKind(str(body.get("kind", "union")).upper()), branches, bool(body.get("all", False)))

    def _rel_sort(self, body: Mapping[str, Any]) -> RelNode:
        child = self.rel(body["input"])
        collation = []
        for key in body.get("keys") or []:
            if isinstance(key, int):
                collation.append(FieldCollation(key))
                continue
            descending = str(key.get("direction", "asc")).lower() == "desc"
            direction = Direction.DESCENDING if descending else Direction.ASCENDING
            nulls = NullDirection(str(key.get("nulls", "unspecified")).upper())
            collation.append(FieldCollation(int(key["ref"]), direction, nulls))
        offset, fetch = body.get("offset"), body.get("fetch")
        return Sort(
            child,
            tuple(collation),
            int(offset) if offset is not None else None,
            int(fetch) if fetch is not None else None,
        )

    def _rel_unnest(self, body: Mapping[str, Any]) -> RelNode:
        return Uncollect(self.rel(body["input"]), bool(body.get("ordinality", False)))

    # Row expressions -------------------------------------------------------------------

    def rex(self, node: Any, scope: RowType) -> RexNode:
        if not isinstance(node, Mapping):
            return self._literal(node, None)
        key, body = _single_key(node, "Expression")

        if key == "ref":
            index = int(body)
            if not 0 <= index < len(scope):
                raise PlanFormatError(f"Reference ${index} is outside a scope of {len(scope)} fields")
            return InputRef(index, scope[index].type)
        if key == "literal":
            declared = parse_type(str(node["type"])) if "type" in node else None
            return self._literal(body, declared)
        if key in ("call", "op", "kind"):
            return self._call(key, node, scope)
        if key == "correl":
            row_type = self._correlations.get(str(body))
            if row_type is None:
                raise PlanFormatError(f"Correlation '{body}' is not bound by an enclosing correlate")
            field_name = str(node["field"])
            try:
                field_type = row_type[row_type.index_of(field_name)].type
            except KeyError as exc:
                raise PlanFormatError(f"Correlation '{body}' has no field '{field_name}'") from exc
            return FieldAccess(CorrelVariable(str(body), row_type), field_name, field_type)
        if key == "field":
            base = self.rex(node["of"], scope)
            struct = base.type.value if base.type.name == SqlTypeName.MAP else base.type
            found = struct.field(str(body)) if struct is not None else None
            return FieldAccess(base, str(body), found.type if found is not None else ANY)
        if key == "exists":
            return SubQuery(SubQueryKind.EXISTS, self.rel(body), (), node.get("correlation"))
        if key == "in":
            operands = tuple(self.rex(operand, scope) for operand in node.get("operands") or [])
            return SubQuery(SubQueryKind.IN, self.rel(body), operands, node.get("correlation"))
        raise PlanFormatError(f"'{key}' is not an expression")

    def _call(self, key: str, node: Mapping[str, Any], scope: RowType) -> Call:
        operands = [self.rex(operand, scope) for operand in node.get("operands") or []]
        name = str(node[key])
        operator: OperatorRef
        if key == "op":
            if len(operands) == 1:
                operator = self.resolver.resolve_unary_operator(name)
            else:
                operator = self.resolver.resolve_binary_operator(name)
        elif key == "kind":
            try:
                operator = self.resolver.operators.by_kind(name.upper())
            except KeyError as exc:
                raise PlanFormatError(f"Unknown operator kind '{name}'") from exc
        else:
            table = self._table(str(node["table"]))[2] if "table" in node else None
            operator = self.resolver.try_resolve(name, bool(node.get("case_sensitive", False)), table).operator

        if "type" in node:
            call_type = parse_type(str(node["type"]))
        elif isinstance(operator, BuiltinOperator) and operator.kind in _BOOLEAN_KINDS:
            call_type = BOOLEAN
        elif operands:
            call_type = operands[0].type
        else:
            call_type = ANY
        return Call(operator, operands, call_type)

    @staticmethod
    def _literal(value: Any, declared: Optional[SqlType]) -> Literal:
        if isinstance(value, Mapping) and "interval" in value:
            unit = str(value.get("unit", "DAY")).upper()
            year_month = unit in ("YEAR", "MONTH")
            interval_type = SqlTypeName.INTERVAL_YEAR_MONTH if year_month else SqlTypeName.INTERVAL_DAY_TIME
            return Literal(Interval(str(value["interval"]), unit), SqlType(interval_type))
        if declared is not None:
            if value is not None and declared.name == SqlTypeName.DECIMAL:
                try:
                    value = Decimal(str(value))
                except InvalidOperation as exc:
                    raise PlanFormatError(f"'{value}' is not a decimal literal") from exc
            return Literal(value, declared)
        if value is None:
            return Literal(None, SqlType(SqlTypeName.NULL))
        if isinstance(value, bool):
            return Literal(value, BOOLEAN)
        if isinstance(value, int):
            return Literal(value, SqlType(SqlTypeName.INTEGER))
        if isinstance(value, float):
            return Literal(value, SqlType(SqlTypeName.DOUBLE))
        if isinstance(value, datetime):
            return Literal(value, SqlType(SqlTypeName.TIMESTAMP))
        if isinstance(value, date):
            return Literal(value, SqlType(SqlTypeName.DATE))
        if isinstance(value, str):
            return Literal(value, SqlType(SqlTypeName.CHAR, len(value)))
        raise PlanFormatError(f"Unsupported literal {value!r}")


_BOOLEAN_KINDS = frozenset(
    {
        "AND",
        "OR",
        "NOT",
        "EQUALS",
        "NOT_EQUALS",
        "LESS_THAN",
        "LESS_THAN_OR_EQUAL",
        "GREATER_THAN",
        "GREATER_THAN_OR_EQUAL",
        "IS_DISTINCT_FROM",
        "IS_NOT_DISTINCT_FROM",
        "NULL_SAFE_EQUALS",
        "IS_NULL",
        "IS_NOT_NULL",
        "IS_TRUE",
        "IS_NOT_TRUE",
        "IS_FALSE",
        "IS_NOT_FALSE",
        "LIKE",
        "NOT_LIKE",
    }
)


def load_plan_document(document: Mapping[str, Any], resolver: FunctionResolver) -> RelNode:
    if not isinstance(document, Mapping) or "plan" not in document:
        raise PlanFormatError("Plan document must be a mapping with a 'plan' key")
    tables = document.get("tables") or {}
    if not isinstance(tables, Mapping):
        raise PlanFormatError("'tables' must be a mapping")
    return PlanLoader(resolver, tables).rel(document["plan"])


def load_plan(path: str | Path, resolver: FunctionResolver) -> RelNode:
    """Read a YAML plan file into an algebra tree."""

    plan_path = Path(path)
    if not plan_path.exists():
        raise FileNotFoundError(f"Plan file not found: {plan_path}")
    with plan_path.open("r", encoding="utf-8") as handle:
        document = yaml.safe_load(handle) or {}
    return load_plan_document(document, resolver)


__all__ = ["PlanFormatError", "PlanLoader", "load_plan", "load_plan_document", "parse_type"]
