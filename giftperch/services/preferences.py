"""Persisted boolean preferences (onboarding banners, dismissed tips)."""
from __future__ import annotations

from collections.abc import MutableMapping
from typing import Optional


class PreferenceFlags:
    """Boolean flags stored as ``"true"``/``"false"`` in a key-value store.

    Without a store the flags live in memory for the lifetime of the object.
    """

    def __init__(self, store: Optional[MutableMapping[str, str]] = None):
        self._store = store if store is not None else {}

    def get(self, key: str, default: bool = False) -> bool:
        stored = self._store.get(key)
        if stored == "true":
            return True
        if stored == "false":
            return False
        return default

    def set(self, key: str, value: bool) -> None:
        self._store[key] = "true" if value else "false"
