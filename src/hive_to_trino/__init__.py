"""
Hive to Trino SQL translation.

Binds Hive function names to operator references and renders validated
relational algebra trees as Trino SQL text.

Architecture:
    algebra tree -> lowering (subqueries, DISTINCT) -> clause builder -> Trino SQL
"""

__version__ = "0.1.0"

from .errors import (
    AmbiguousOperatorError,
    BrokenCatalogMappingError,
    CatalogLoadError,
    ResolutionError,
    TranspilerError,
    UnknownFunctionError,
    UnsupportedConstructError,
)
from .functions import FunctionRegistry, FunctionResolver, StaticFunctionRegistry, TableFunctionMetadata
from .rewrite import RelToTrinoConverter

__all__ = [
    # Version
    "__version__",
    # Resolution
    "FunctionRegistry",
    "FunctionResolver",
    "StaticFunctionRegistry",
    "TableFunctionMetadata",
    # Rewrite
    "RelToTrinoConverter",
    "to_trino_sql",
    # Errors
    "AmbiguousOperatorError",
    "BrokenCatalogMappingError",
    "CatalogLoadError",
    "ResolutionError",
    "TranspilerError",
    "UnknownFunctionError",
    "UnsupportedConstructError",
]


def to_trino_sql(rel, options=None) -> str:
    """Convert a relational algebra tree to Trino SQL.

    Args:
        rel: Root :class:`~hive_to_trino.domain.RelNode` of a validated query.
        options: Optional :class:`~hive_to_trino.config.RenderOptions`.

    Returns:
        Trino SQL text.

    Raises:
        UnsupportedConstructError: If the tree contains a shape with no
            Trino rendering.
    """
    return RelToTrinoConverter(options).convert(rel)
