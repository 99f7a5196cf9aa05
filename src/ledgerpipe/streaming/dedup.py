# SPDX-License-Identifier: Apache-2.0
"""Bounded recency set of delivered event ids."""

from __future__ import annotations

from collections import OrderedDict

DEFAULT_DEDUP_CAPACITY = 25


class RecentEventIds:
    """Remembers the last ``capacity`` delivered event ids.

    Re-paging the same ledger or overlapping polls can return an event twice;
    duplicates cluster around page boundaries, so a small window suffices.
    Membership is O(1) and recording into a full window evicts the id that
    was inserted first.
    """

    def __init__(self, capacity: int = DEFAULT_DEDUP_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("Capacity must be positive")
        self._capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def seen(self, event_id: str) -> bool:
        return event_id in self._ids

    def record(self, event_id: str) -> None:
        if event_id in self._ids:
            return
        self._ids[event_id] = None
        if len(self._ids) > self._capacity:
            self._ids.popitem(last=False)

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"RecentEventIds(capacity={self._capacity}, size={len(self._ids)})"


__all__ = ["DEFAULT_DEDUP_CAPACITY", "RecentEventIds"]
