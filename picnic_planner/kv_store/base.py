"""Shared protocol for key-value storage backends."""

from typing import List, Optional, Protocol


class KeyValueStore(Protocol):
    """String-to-string storage with prefix enumeration. No native expiry."""
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is missing."""

    def set(self, key: str, value: str) -> None:
        """Store a value, overwriting any existing one."""

    def delete(self, key: str) -> None:
        """Delete a key without raising if it is absent."""

    def keys(self, prefix: str = "") -> List[str]:
        """Return every key starting with ``prefix``."""

    def clear(self) -> None:
        """Remove every key this store can see."""
