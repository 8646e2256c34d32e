"""Configuration management helpers."""

from .loader import load_config
from .schema import Config, RenderOptions, ResolverOptions

__all__ = ["Config", "RenderOptions", "ResolverOptions", "load_config"]
