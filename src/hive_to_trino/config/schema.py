"""Configuration models for hive_to_trino."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..domain.types import SourceDialect, TargetDialect


@dataclass(slots=True)
class RenderOptions:
    """How generated Trino SQL is laid out."""

    clause_separator: str = "\n"
    upper_case_aliases: bool = True
    current_timestamp_precision: int = 3


@dataclass(slots=True)
class ResolverOptions:
    """Function resolution policy."""

    # When false, "+" and "-" always bind to numeric arithmetic.
    datetime_arithmetic: bool = False


@dataclass(slots=True)
class Config:
    """Top-level configuration for a conversion session."""

    source_dialect: SourceDialect = SourceDialect.HIVE
    target_dialect: TargetDialect = TargetDialect.TRINO
    render: RenderOptions = field(default_factory=RenderOptions)
    resolver: ResolverOptions = field(default_factory=ResolverOptions)
    function_catalogs: List[Path] = field(default_factory=list)


__all__ = ["Config", "RenderOptions", "ResolverOptions"]
