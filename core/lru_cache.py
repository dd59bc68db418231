"""Fixed-capacity key/value store with least-recently-used eviction."""

from collections import OrderedDict
from typing import Callable, Dict, Generic, Iterator, Optional, TypeVar

T = TypeVar('T')

DEFAULT_CAPACITY = 1000


class LRUCache(Generic[T]):
    """
    Bounded cache keyed by string identifiers.

    Both ``get`` hits and ``set`` calls mark an entry as most recently used.
    Inserting a new key into a full cache evicts the least recently used
    entry first. Every operation completes without suspending, so callers on
    the event loop never observe a partial update.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 on_evict: Optional[Callable[[str, T], None]] = None):
        """
        Initialize an empty cache.

        Args:
            capacity: Maximum number of entries, fixed for the cache lifetime
            on_evict: Called with the key and value of every evicted entry
        """
        if capacity < 0:
            raise ValueError(f"Capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self.on_evict = on_evict
        self._entries: "OrderedDict[str, T]" = OrderedDict()

    def set(self, key: str, value: T) -> None:
        """Insert or update an entry and mark it most recently used."""
        if key in self._entries:
            self._entries[key] = value
            self._entries.move_to_end(key)
            return

        if self.capacity == 0:
            return

        while len(self._entries) >= self.capacity:
            evicted_key, evicted_value = self._entries.popitem(last=False)
            if self.on_evict is not None:
                self.on_evict(evicted_key, evicted_value)

        self._entries[key] = value

    def get(self, key: str) -> Optional[T]:
        """Return the value for ``key`` or None, marking a hit as most recently used."""
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def delete(self, key: str) -> None:
        """Remove an entry if present."""
        self._entries.pop(key, None)

    def get_all(self) -> Dict[str, T]:
        """Get a snapshot of every live entry."""
        return dict(self._entries)

    def keys(self):
        return list(self._entries.keys())

    def values(self):
        return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        # Iterate over a snapshot so callers may delete while looping
        return iter(list(self._entries.values()))

    def __repr__(self) -> str:
        return f"LRUCache(capacity={self.capacity!r}, size={len(self._entries)!r})"
