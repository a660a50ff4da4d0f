"""In-memory registry for embedding callers and tests."""

from __future__ import annotations

from typing import Iterable, Optional

from ..models import RawExtensionMetadata


class StaticRegistry:
    """Serve a fixed list of extension metadata.

    Activation comes from ``RawExtensionMetadata.is_active`` when set, else
    from the ``active`` collection; with neither, every entry is active.
    """

    def __init__(
        self,
        entries: Iterable[RawExtensionMetadata],
        active: Optional[Iterable[str]] = None,
    ):
        self._entries = list(entries)
        self._active = set(active) if active is not None else None

    def list_installed(self) -> list[RawExtensionMetadata]:
        return list(self._entries)

    def is_active(self, plugin_id: str) -> bool:
        for entry in self._entries:
            if entry.slug == plugin_id and entry.is_active is not None:
                return entry.is_active
        if self._active is None:
            return True
        return plugin_id in self._active
