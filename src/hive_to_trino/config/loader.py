"""Utilities for loading hive_to_trino configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List

import yaml

from ..domain.types import SourceDialect, TargetDialect
from .schema import Config, RenderOptions, ResolverOptions


def load_config(path: str | Path) -> Config:
    """Load configuration from a YAML file."""

    config_path = Path(path).expanduser().resolve()
    with config_path.open("r", encoding="utf-8") as handle:
        raw_data = yaml.safe_load(handle) or {}

    if not isinstance(raw_data, dict):
        raise ValueError("Configuration root must be a mapping.")

    base_dir = config_path.parent
    dialects = raw_data.get("dialects", {}) or {}
    if not isinstance(dialects, dict):
        raise ValueError("Expected a mapping for dialects.")

    return Config(
        source_dialect=_parse_source_dialect(dialects.get("source")),
        target_dialect=_parse_target_dialect(dialects.get("target")),
        render=_parse_render(raw_data.get("render")),
        resolver=_parse_resolver(raw_data.get("resolver")),
        function_catalogs=_parse_catalogs(raw_data.get("function_catalogs"), base_dir),
    )


def _parse_render(data: Any) -> RenderOptions:
    if not data:
        return RenderOptions()
    if not isinstance(data, dict):
        raise ValueError("Expected a mapping for render.")
    defaults = RenderOptions()
    separator = data.get("clause_separator", defaults.clause_separator)
    if not isinstance(separator, str) or not separator:
        raise ValueError("render.clause_separator must be a non-empty string.")
    precision = data.get("current_timestamp_precision", defaults.current_timestamp_precision)
    if not isinstance(precision, int) or precision < 0:
        raise ValueError("render.current_timestamp_precision must be a non-negative integer.")
    return RenderOptions(
        clause_separator=separator,
        upper_case_aliases=bool(data.get("upper_case_aliases", defaults.upper_case_aliases)),
        current_timestamp_precision=precision,
    )


def _parse_resolver(data: Any) -> ResolverOptions:
    if not data:
        return ResolverOptions()
    if not isinstance(data, dict):
        raise ValueError("Expected a mapping for resolver.")
    return ResolverOptions(datetime_arithmetic=bool(data.get("datetime_arithmetic", False)))


def _parse_catalogs(data: Any, base_dir: Path) -> List[Path]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("Expected a list for function_catalogs.")
    catalogs: List[Path] = []
    for entry in data:
        candidate = Path(str(entry))
        if not candidate.is_absolute():
            candidate = base_dir / candidate
        catalogs.append(candidate.resolve())
    return catalogs


def _parse_source_dialect(value: Any, default: SourceDialect = SourceDialect.HIVE) -> SourceDialect:
    """Parse source dialect from config value."""
    if not value:
        return default

    try:
        return SourceDialect(str(value).lower())
    except ValueError:
        raise ValueError(_unsupported_dialect("source", value, SourceDialect)) from None


def _parse_target_dialect(value: Any, default: TargetDialect = TargetDialect.TRINO) -> TargetDialect:
    """Parse target dialect from config value."""
    if not value:
        return default

    try:
        return TargetDialect(str(value).lower())
    except ValueError:
        raise ValueError(_unsupported_dialect("target", value, TargetDialect)) from None


def _unsupported_dialect(section: str, value: Any, dialects) -> str:
    expected = ", ".join(dialect.value for dialect in dialects)
    return f"Unsupported {section} dialect '{value}'; expected one of: {expected}"


__all__ = ["load_config"]
