"""Resolves Hive function and operator names to operator references."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..errors import AmbiguousOperatorError, BrokenCatalogMappingError, UnknownFunctionError
from . import operators as ops
from .metadata import TableFunctionMetadata
from .operators import (
    BuiltinOperator,
    OperatorCatalog,
    OperatorRef,
    OperatorSyntax,
    UnresolvedOperator,
    UserDefinedOperator,
)
from .registry import FunctionDescriptor, FunctionRegistry

logger = logging.getLogger(__name__)

_UNARY_SYNTAXES = (OperatorSyntax.PREFIX,)
_BINARY_SYNTAXES = (OperatorSyntax.BINARY, OperatorSyntax.SPECIAL)

# Hive has no datetime "+"/"-"; both names bind to numeric arithmetic.
_ARITHMETIC_OVERRIDES = {"+": ops.PLUS, "-": ops.MINUS}


class FunctionResolver:
    """Binds function and operator names found in Hive SQL.

    ``datetime_arithmetic`` disables the numeric override for ``+``/``-`` so
    those names go through the regular ambiguity check.
    """

    def __init__(
        self,
        registry: FunctionRegistry,
        operators: OperatorCatalog,
        datetime_arithmetic: bool = False,
    ):
        self.registry = registry
        self.operators = operators
        self.datetime_arithmetic = datetime_arithmetic

    # Operators -------------------------------------------------------------------

    def resolve_unary_operator(self, name: str) -> BuiltinOperator:
        matches = self.operators.find(name.lower(), _UNARY_SYNTAXES)
        return _single_match(name, matches)

    def resolve_binary_operator(self, name: str) -> OperatorRef:
        lowered = name.lower()
        if not self.datetime_arithmetic and lowered in _ARITHMETIC_OVERRIDES:
            return _ARITHMETIC_OVERRIDES[lowered]

        matches: List[OperatorRef] = list(self.operators.find(lowered, _BINARY_SYNTAXES))
        if not matches:
            matches.append(self.try_resolve(lowered, False, None).operator)
        return _single_match(name, matches)

    # Functions -------------------------------------------------------------------

    def resolve(self, function_name: str, case_sensitive: bool = False) -> Tuple[FunctionDescriptor, ...]:
        """Raw registry lookup; empty when nothing matches."""

        return self.registry.lookup(function_name, case_sensitive)

    def try_resolve(
        self,
        function_name: str,
        case_sensitive: bool = False,
        table: Optional[TableFunctionMetadata] = None,
    ) -> FunctionDescriptor:
        """Resolve ``function_name`` to one descriptor.

        Overloaded names are not an error: they yield a placeholder bound to
        an :class:`UnresolvedOperator` named after the first candidate, to be
        disambiguated once argument types are known.

        Raises:
            UnknownFunctionError: If neither the registry nor the table's
                function mapping knows the name.
            BrokenCatalogMappingError: If the table maps the name to a class
                the registry does not know.
        """

        if not function_name:
            raise ValueError("function_name must not be empty")

        functions = self.registry.lookup(function_name, case_sensitive)
        if not functions and table is not None:
            functions = self.try_resolve_as_catalog_function(function_name, table)
        if not functions:
            raise UnknownFunctionError(function_name)
        if len(functions) == 1:
            return functions[0]
        return self._placeholder(functions[0].operator.name, table)

    def try_resolve_as_catalog_function(
        self, function_name: str, table: TableFunctionMetadata
    ) -> Tuple[FunctionDescriptor, ...]:
        """Resolve a ``<db>_<table>_<base name>`` function through table metadata.

        Returns an empty tuple when the name does not follow the convention or
        the table does not map the base name. Each registry entry found under
        the mapped implementation class is replaced by a copy annotated with
        the table's dependencies; the replacement is visible to later lookups.
        """

        prefix = table.function_prefix
        if not function_name.lower().startswith(prefix.lower()):
            return ()

        base_name = function_name[len(prefix) :]
        class_name = table.implementation_class(base_name)
        if class_name is None:
            return ()

        candidates = self.registry.lookup(class_name, case_sensitive=True)
        if not candidates:
            raise BrokenCatalogMappingError(function_name, class_name)

        resolved: List[FunctionDescriptor] = []
        for descriptor in candidates:
            operator = descriptor.operator
            if not isinstance(operator, UserDefinedOperator):
                raise BrokenCatalogMappingError(
                    function_name, class_name, f"is registered as {operator} rather than a user defined function"
                )
            enriched = FunctionDescriptor(
                descriptor.name,
                operator.with_catalog_context(table.dependencies, function_name),
                descriptor.dependencies,
            )
            self.registry.replace(class_name, descriptor, enriched, case_sensitive=True)
            resolved.append(enriched)
            logger.debug(
                f"Resolved {function_name} to {class_name} with dependencies {list(table.dependencies)}"
            )
        return tuple(resolved)

    @staticmethod
    def _placeholder(name: str, table: Optional[TableFunctionMetadata]) -> FunctionDescriptor:
        qualifier = (table.database_name, table.table_name) if table is not None else ()
        return FunctionDescriptor(name, UnresolvedOperator(name, qualifier))


def _single_match(name: str, matches: List[OperatorRef]) -> OperatorRef:
    if not matches:
        raise UnknownFunctionError(name, f"Unknown operator {name}")
    if len(matches) > 1:
        raise AmbiguousOperatorError(name, matches)
    return matches[0]


__all__ = ["FunctionResolver"]
