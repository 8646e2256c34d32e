"""Translates Hive function calls to Trino through the rewrite catalog."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..catalog import FunctionRule
from .sql_text import ATOM, Emitted, quote_identifier


def find_function_rule(
    catalog: Dict[str, List[FunctionRule]], func_name: str, argument_count: int
) -> Optional[FunctionRule]:
    """Return the first catalog rule for ``func_name`` accepting ``argument_count`` arguments."""

    for rule in catalog.get(func_name.upper(), ()):
        if rule.applies_to(argument_count):
            return rule
    return None


def translate_hive_function(rule: FunctionRule, args: Sequence[Emitted]) -> Emitted:
    """Build the Trino expression for a call matched by ``rule``."""

    handler = rule.handler.lower()

    if handler == "template" and rule.template is not None:
        rendered = [arg.wrapped(rule.operand_precedence) for arg in args]
        try:
            text = rule.template.format(*rendered)
        except IndexError as exc:
            raise ValueError(
                f"Template for {rule.name} expects more than {len(args)} arguments"
            ) from exc
        return Emitted(text, rule.precedence if rule.precedence is not None else ATOM)

    if handler == "rename" and rule.target:
        target = quote_identifier(rule.target) if rule.quote else rule.target
        return Emitted(f"{target}({', '.join(arg.text for arg in args)})")

    raise ValueError(f"Function rule {rule.name} has unsupported handler '{rule.handler}'")


__all__ = ["find_function_rule", "translate_hive_function"]
