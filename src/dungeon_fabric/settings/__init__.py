"""
Settings package for dungeon_fabric.

This package provides a modular, type-safe configuration management system
using Qt's QSettings for cross-platform storage.

Usage:
    from dungeon_fabric.settings import AppSettings, ValidationResult

    settings = AppSettings()
    result = settings.validate()
"""

from .core import AppSettings
from ..errors import ConfigError
from .migration import ConfigVersion
from .validation import ValidationResult
from .layers import LayerSettings
from .compiler import CompilerSettings

__all__ = [
    "AppSettings",
    "ConfigVersion",
    "ConfigError",
    "ValidationResult",
    "LayerSettings",
    "CompilerSettings",
]
