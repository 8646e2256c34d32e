"""Utilities for loading the packaged function and operator catalogs."""

from .loader import (
    FunctionDefinition,
    get_function_definitions,
    get_operator_catalog,
    load_function_definitions,
)
from .trino_loader import FunctionRule, get_trino_function_catalog

__all__ = [
    "FunctionDefinition",
    "FunctionRule",
    "get_function_definitions",
    "get_operator_catalog",
    "get_trino_function_catalog",
    "load_function_definitions",
]
