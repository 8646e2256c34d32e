"""Hive to Trino function rewrite catalog loader."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Dict, List, Optional

import yaml

from ..errors import CatalogLoadError


@dataclass(frozen=True)
class FunctionRule:
    """Represents a Hive function rewrite for Trino.

    ``handler`` is ``rename`` (call ``target`` with the same arguments) or
    ``template`` (format ``template`` with the rendered arguments, ``{0}``
    being the first). ``arity`` restricts the rule to calls with exactly that
    many arguments.

    Example:
        datediff(a, b)  ->  date_diff('day', CAST(b AS DATE), CAST(a AS DATE))
    """

    name: str
    handler: str
    template: Optional[str] = None
    target: Optional[str] = None
    arity: Optional[int] = None
    quote: bool = False  # print the renamed target as a quoted identifier
    precedence: Optional[int] = None  # of the produced text; None means atomic
    operand_precedence: int = 0  # operands binding looser than this are parenthesised
    description: Optional[str] = None

    def applies_to(self, argument_count: int) -> bool:
        return self.arity is None or self.arity == argument_count


@lru_cache(maxsize=1)
def get_trino_function_catalog() -> Dict[str, List[FunctionRule]]:
    """Load the Hive to Trino function rewrite catalog keyed by upper-cased name.

    Raises:
        CatalogLoadError: If trino_functions.yaml is missing.
    """

    try:
        data_path = resources.files("hive_to_trino.catalog.data").joinpath("trino_functions.yaml")
    except (AttributeError, ModuleNotFoundError) as exc:  # pragma: no cover
        raise CatalogLoadError("Trino function catalog resources are missing") from exc

    try:
        raw_text = data_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CatalogLoadError("trino_functions.yaml catalog is missing") from exc

    payload = yaml.safe_load(raw_text) or {}
    rules: Dict[str, List[FunctionRule]] = {}
    for item in payload.get("functions", []):
        name = (item or {}).get("name")
        handler = (item or {}).get("handler")
        if not name or not handler:
            continue
        rule = FunctionRule(
            name=str(name).upper(),
            handler=handler,
            template=item.get("template"),
            target=item.get("target"),
            arity=item.get("arity"),
            quote=bool(item.get("quote", False)),
            precedence=item.get("precedence"),
            operand_precedence=int(item.get("operand_precedence", 0)),
            description=item.get("description"),
        )
        rules.setdefault(rule.name, []).append(rule)

    return rules


__all__ = ["FunctionRule", "get_trino_function_catalog"]
