"""
Plugin Conflict Mapper - conflict, overlap and ranking analysis for host plugins

Reads the installed plugins of a host platform (WordPress-style plugin
directories or any registry), reports hook collisions, shared global
symbols and known-incompatible pairs, clusters functionally redundant
plugins, and ranks every plugin as keep / review / replace.
"""

__version__ = "0.1.0"

from .config import MapperConfig, ScoringConfig, load_config
from .context import AppContext, Mode, create_context
from .models import (
    ConflictRecord,
    ConflictType,
    HookRegistration,
    OverlapCluster,
    Plugin,
    RankedPlugin,
    Recommendation,
    ScanSnapshot,
    Severity,
)

__all__ = [
    "create_context",  # Main entry point
    "AppContext",
    "Mode",
    "MapperConfig",
    "ScoringConfig",
    "load_config",
    "Plugin",
    "HookRegistration",
    "ConflictRecord",
    "ConflictType",
    "Severity",
    "OverlapCluster",
    "RankedPlugin",
    "Recommendation",
    "ScanSnapshot",
]
