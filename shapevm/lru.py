"""A small least-recently-used list over register indices."""

from __future__ import annotations

_U8_MAX = 0xFF


class Lru:
    """Least-recently-used ordering of ``size`` slots.

    Stored as a circular doubly-linked list; ``head`` is the newest slot and
    the node before it is the oldest.
    """

    def __init__(self, size: int) -> None:
        if isinstance(size, bool) or not isinstance(size, int):
            raise TypeError("size must be an int")
        if not 0 <= size <= _U8_MAX:
            raise ValueError(f"size must be in 0..={_U8_MAX}, got {size}")
        self._size = size
        if size:
            self._next = [(i + 1) % size for i in range(size)]
            self._prev = [(i - 1) % size for i in range(size)]
        else:
            self._next = [0]
            self._prev = [0]
        self._head = 0

    def __len__(self) -> int:
        return self._size

    def _remove(self, i: int) -> None:
        prev, nxt = self._prev[i], self._next[i]
        self._next[prev] = nxt
        self._prev[nxt] = prev

    def _insert_before(self, i: int, nxt: int) -> None:
        prev = self._prev[nxt]
        self._next[prev] = i
        self._prev[nxt] = i
        self._next[i] = nxt
        self._prev[i] = prev

    def poke(self, i: int) -> None:
        """Mark slot ``i`` as the newest."""
        if not 0 <= i < self._size:
            raise ValueError(f"slot {i} is outside 0..{self._size}")
        if self._head == i:
            return
        if self._prev[self._head] != i:
            # Not the oldest node: unlink it and relink it just before head.
            self._remove(i)
            self._insert_before(i, self._head)
        self._head = i

    def pop(self) -> int:
        """Return the oldest slot, marking it as the newest."""
        out = self._prev[self._head]
        self._head = out
        return out