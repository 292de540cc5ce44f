"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import DEFAULT_ITEM_IDS, CatalogConfig, GlobalConfig, ProbeConfig

__all__ = [
    "CatalogConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_ITEM_IDS",
    "GlobalConfig",
    "ProbeConfig",
]
