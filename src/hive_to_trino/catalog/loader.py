"""Hive function and operator catalog loader."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import CatalogLoadError
from ..functions.operators import STANDARD_OPERATORS, BuiltinOperator, OperatorCatalog, OperatorSyntax

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionDefinition:
    """One static registry entry.

    Exactly one of ``operator_kind`` (a builtin operator) or
    ``implementation_class`` (a user-defined function) is set.
    """

    name: str
    operator_kind: Optional[str] = None
    implementation_class: Optional[str] = None
    operator_name: Optional[str] = None
    dependencies: Tuple[str, ...] = field(default_factory=tuple)
    case_sensitive: bool = False
    description: Optional[str] = None


def _read_packaged(filename: str) -> Dict[str, Any]:
    try:
        data_path = resources.files("hive_to_trino.catalog.data").joinpath(filename)
    except (AttributeError, ModuleNotFoundError) as exc:  # pragma: no cover
        raise CatalogLoadError("Function catalog resources are missing") from exc

    try:
        raw_text = data_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CatalogLoadError(f"{filename} catalog is missing") from exc

    return _parse_yaml(raw_text, filename)


def _parse_yaml(raw_text: str, source: str) -> Dict[str, Any]:
    try:
        payload = yaml.safe_load(raw_text) or {}
    except yaml.YAMLError as exc:
        raise CatalogLoadError(f"{source} is not valid YAML: {exc}") from exc
    if not isinstance(payload, dict):
        raise CatalogLoadError(f"{source} must contain a mapping at the top level")
    return payload


@lru_cache(maxsize=1)
def get_operator_catalog() -> OperatorCatalog:
    """Standard operators plus the Hive extensions from ``operators.yaml``.

    Raises:
        CatalogLoadError: If operators.yaml is missing or malformed.
    """

    payload = _read_packaged("operators.yaml")
    extensions: List[BuiltinOperator] = []
    for item in payload.get("operators", []):
        name = (item or {}).get("name")
        kind = (item or {}).get("kind")
        if not name or not kind:
            continue
        syntax = str(item.get("syntax", OperatorSyntax.SPECIAL.value)).upper()
        try:
            extensions.append(BuiltinOperator(name, kind, OperatorSyntax(syntax)))
        except ValueError as exc:
            raise CatalogLoadError(f"Operator {name} has unknown syntax {syntax}") from exc

    catalog = OperatorCatalog(STANDARD_OPERATORS).extend(extensions)
    logger.info(f"Loaded operator catalog: {len(catalog)} operators ({len(extensions)} dialect extensions)")
    return catalog


def _definitions_from_payload(payload: Dict[str, Any], source: str) -> List[FunctionDefinition]:
    definitions: List[FunctionDefinition] = []

    for item in payload.get("functions", []):
        name = (item or {}).get("name")
        if not name:
            continue
        operator_kind = item.get("operator")
        udf = item.get("udf")
        if bool(operator_kind) == bool(udf):
            raise CatalogLoadError(f"{source}: function {name} needs exactly one of 'operator' or 'udf'")
        definitions.append(
            FunctionDefinition(
                name=name,
                operator_kind=operator_kind,
                implementation_class=udf,
                operator_name=name if udf else None,
                dependencies=tuple(item.get("dependencies", ())),
                description=item.get("description"),
            )
        )

    # Catalog-driven UDFs are addressed by implementation class, case-sensitively.
    for item in payload.get("udfs", []):
        class_name = (item or {}).get("class")
        if not class_name:
            continue
        definitions.append(
            FunctionDefinition(
                name=class_name,
                implementation_class=class_name,
                operator_name=item.get("name") or class_name.rsplit(".", 1)[-1],
                dependencies=tuple(item.get("dependencies", ())),
                case_sensitive=True,
                description=item.get("description"),
            )
        )

    return definitions


@lru_cache(maxsize=1)
def get_function_definitions() -> Tuple[FunctionDefinition, ...]:
    """Static Hive function definitions from the packaged ``functions.yaml``."""

    definitions = _definitions_from_payload(_read_packaged("functions.yaml"), "functions.yaml")
    logger.info(f"Loaded {len(definitions)} Hive function definitions")
    return tuple(definitions)


def load_function_definitions(path: str | Path) -> List[FunctionDefinition]:
    """Load an additional function catalog in the ``functions.yaml`` format."""

    catalog_file = Path(path)
    if not catalog_file.exists():
        raise CatalogLoadError(f"Function catalog not found: {catalog_file}")
    definitions = _definitions_from_payload(
        _parse_yaml(catalog_file.read_text(encoding="utf-8"), str(catalog_file)), str(catalog_file)
    )
    logger.info(f"Loaded {len(definitions)} function definitions from {catalog_file}")
    return definitions


__all__ = [
    "FunctionDefinition",
    "get_function_definitions",
    "get_operator_catalog",
    "load_function_definitions",
]
