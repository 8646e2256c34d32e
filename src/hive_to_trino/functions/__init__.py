"""Function registry, operator catalog and name resolution."""

from .metadata import TableFunctionMetadata
from .operators import (
    BuiltinOperator,
    OperatorCatalog,
    OperatorRef,
    OperatorSyntax,
    UnresolvedOperator,
    UserDefinedOperator,
)
from .registry import FunctionDescriptor, FunctionRegistry, StaticFunctionRegistry
from .resolver import FunctionResolver

__all__ = [
    "BuiltinOperator",
    "FunctionDescriptor",
    "FunctionRegistry",
    "FunctionResolver",
    "OperatorCatalog",
    "OperatorRef",
    "OperatorSyntax",
    "StaticFunctionRegistry",
    "TableFunctionMetadata",
    "UnresolvedOperator",
    "UserDefinedOperator",
]
