"""Exceptions raised while resolving functions and generating target SQL."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class TranspilerError(Exception):
    """Base class for every failure of a single conversion request."""


class ResolutionError(TranspilerError):
    """A function or operator name could not be bound to exactly one operator."""


class UnknownFunctionError(ResolutionError):
    """Raised when a name matches nothing in the registry or the catalog."""

    def __init__(self, function_name: str, message: Optional[str] = None):
        self.function_name = function_name
        super().__init__(message or f"Unknown function name: {function_name}")


class AmbiguousOperatorError(ResolutionError):
    """Raised when an operator name matches more than one candidate."""

    def __init__(self, operator_name: str, candidates: Iterable[object] = ()):
        self.operator_name = operator_name
        self.candidates: Tuple[object, ...] = tuple(candidates)
        described = ", ".join(str(c) for c in self.candidates)
        super().__init__(f"Ambiguous operator {operator_name}: {described}")


class BrokenCatalogMappingError(UnknownFunctionError):
    """A catalog-driven function maps to an implementation class the registry lacks."""

    def __init__(self, function_name: str, implementation_class: str, reason: Optional[str] = None):
        self.implementation_class = implementation_class
        detail = reason or "is not registered"
        super().__init__(
            implementation_class,
            f"Unknown function name: {implementation_class} "
            f"(catalog function {function_name} maps to a class that {detail})",
        )
        self.requested_name = function_name


class UnsupportedConstructError(TranspilerError):
    """The rewrite engine has no rule for an algebra node or operator."""

    def __init__(self, construct: str, detail: Optional[str] = None):
        self.construct = construct
        message = f"Unsupported construct: {construct}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class CatalogLoadError(TranspilerError):
    """Raised when a packaged or user supplied catalog cannot be loaded."""


__all__ = [
    "AmbiguousOperatorError",
    "BrokenCatalogMappingError",
    "CatalogLoadError",
    "ResolutionError",
    "TranspilerError",
    "UnknownFunctionError",
    "UnsupportedConstructError",
]
