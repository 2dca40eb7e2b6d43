"""
Permissioned, cross-module prompt context.

The PermissionRegistry records which modules the user agreed to share; the
ContextAggregator reads only those modules through their accessors and
renders a bounded text block for generation prompts.
"""

from .accessors import default_accessors
from .aggregator import ContextAggregator
from .models import (
    SHARABLE_MODULES,
    ContextItem,
    ContextResult,
    ContextStatus,
    ModuleEntry,
    ModuleId,
)
from .permissions import PermissionRegistry

__all__ = [
    "ContextAggregator",
    "PermissionRegistry",
    "default_accessors",
    "ContextItem",
    "ContextResult",
    "ContextStatus",
    "ModuleEntry",
    "ModuleId",
    "SHARABLE_MODULES",
]
