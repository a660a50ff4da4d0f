"""Host extension registries."""

from .base import ExtensionRegistry
from .directory import DirectoryRegistry
from .static import StaticRegistry

__all__ = ["ExtensionRegistry", "DirectoryRegistry", "StaticRegistry"]
