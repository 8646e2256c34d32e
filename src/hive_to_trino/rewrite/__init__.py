"""Dialect rewrite engine: relational algebra to Trino SQL text."""

from .converter import RelToTrinoConverter
from .expressions import ConversionContext, ExpressionRenderer
from .lowering import lower
from .rules import CALL_RULES, CallRule

__all__ = ["CALL_RULES", "CallRule", "ConversionContext", "ExpressionRenderer", "RelToTrinoConverter", "lower"]
