"""Host extension registry contract."""

from typing import Protocol

from ..models import RawExtensionMetadata


class ExtensionRegistry(Protocol):
    """Source of installed-extension metadata.

    ``list_installed`` raises ``ScanError`` when the underlying store (plugin
    directory, host API) cannot be read at all. Per-entry problems are
    reported through ``RawExtensionMetadata.read_errors`` instead.
    """

    def list_installed(self) -> list[RawExtensionMetadata]: ...

    def is_active(self, plugin_id: str) -> bool: ...
