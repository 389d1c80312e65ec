"""Instruction tape for the register-based virtual machine."""

from __future__ import annotations

from collections.abc import Iterator

from shapevm.op import Op

_U8_MAX = 0xFF


def _check_reg_limit(reg_limit: object) -> int:
    if isinstance(reg_limit, bool) or not isinstance(reg_limit, int):
        raise TypeError("reg_limit must be an int")
    if not 0 <= reg_limit <= _U8_MAX:
        raise ValueError(f"reg_limit must be in 0..={_U8_MAX}, got {reg_limit}")
    return reg_limit


class Tape:
    """A sequence of operations planned for a given register limit.

    ``slot_count`` is the number of distinct register and memory slots the
    tape uses; the register allocator grows it as it assigns slots.
    """

    def __init__(self, reg_limit: int = 0) -> None:
        self._ops: list[Op] = []
        self.slot_count = 1
        self._reg_limit = _check_reg_limit(reg_limit)

    @property
    def reg_limit(self) -> int:
        """The register limit with which this tape was planned."""
        return self._reg_limit

    def reset(self, reg_limit: int) -> None:
        """Clear the tape and plan it afresh for ``reg_limit`` registers."""
        self._reg_limit = _check_reg_limit(reg_limit)
        self._ops.clear()
        self.slot_count = 1

    def push(self, op: Op) -> None:
        """Append an operation."""
        if not isinstance(op, Op):
            raise TypeError(f"expected an Op, not {type(op).__name__}")
        self._ops.append(op)

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[Op]:
        return iter(self._ops)

    def __repr__(self) -> str:
        return (
            f"Tape(len={len(self._ops)}, slot_count={self.slot_count}, "
            f"reg_limit={self._reg_limit})"
        )