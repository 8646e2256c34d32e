"""Table-scoped function metadata supplied by the metastore client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

FUNCTIONS_PROPERTY = "functions"
DEPENDENCIES_PROPERTY = "dependencies"


@dataclass(frozen=True, slots=True)
class TableFunctionMetadata:
    """Functions a view or table exposes under ``<db>_<table>_<base name>``."""

    database_name: str
    table_name: str
    function_classes: Mapping[str, str] = field(default_factory=dict)
    dependencies: Tuple[str, ...] = ()

    @property
    def function_prefix(self) -> str:
        return f"{self.database_name}_{self.table_name}_"

    def implementation_class(self, base_name: str) -> Optional[str]:
        return self.function_classes.get(base_name)

    @classmethod
    def from_table_properties(
        cls, database_name: str, table_name: str, properties: Mapping[str, str]
    ) -> "TableFunctionMetadata":
        """Parse metastore table parameters.

        ``functions`` holds whitespace separated ``baseName:implementation.Class``
        pairs and ``dependencies`` whitespace separated resource coordinates,
        e.g. ``ivy://com.linkedin:udfs:1.0``.
        """

        classes: Dict[str, str] = {}
        for entry in (properties.get(FUNCTIONS_PROPERTY) or "").split():
            base_name, sep, class_name = entry.partition(":")
            if not sep or not base_name or not class_name:
                logger.warning(f"Ignoring malformed function entry '{entry}' on {database_name}.{table_name}")
                continue
            classes[base_name] = class_name

        dependencies = tuple((properties.get(DEPENDENCIES_PROPERTY) or "").split())
        return cls(database_name, table_name, classes, dependencies)


__all__ = ["TableFunctionMetadata"]
