"""Operations for the register-based virtual machine.

These operations are not in SSA form: they work on a limited set of
registers, reusing them as needed, and spill to memory slots with
``LOAD`` and ``STORE``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF


class OpKind(enum.Enum):
    """The kind of a virtual machine operation."""

    INPUT = "input"
    VAR = "var"
    NEG_REG = "neg"
    ABS_REG = "abs"
    RECIP_REG = "recip"
    SQRT_REG = "sqrt"
    SQUARE_REG = "square"
    COPY_REG = "copy"
    ADD_REG_IMM = "add_imm"
    MUL_REG_IMM = "mul_imm"
    DIV_REG_IMM = "div_reg_imm"
    DIV_IMM_REG = "div_imm_reg"
    SUB_IMM_REG = "sub_imm_reg"
    SUB_REG_IMM = "sub_reg_imm"
    MIN_REG_IMM = "min_imm"
    MAX_REG_IMM = "max_imm"
    ADD_REG_REG = "add"
    MUL_REG_REG = "mul"
    DIV_REG_REG = "div"
    SUB_REG_REG = "sub"
    MIN_REG_REG = "min"
    MAX_REG_REG = "max"
    COPY_IMM = "copy_imm"
    LOAD = "load"
    STORE = "store"


_REG_REG = frozenset(
    {
        OpKind.ADD_REG_REG,
        OpKind.MUL_REG_REG,
        OpKind.DIV_REG_REG,
        OpKind.SUB_REG_REG,
        OpKind.MIN_REG_REG,
        OpKind.MAX_REG_REG,
    }
)
_WITH_IMM = frozenset(
    {
        OpKind.ADD_REG_IMM,
        OpKind.MUL_REG_IMM,
        OpKind.DIV_REG_IMM,
        OpKind.DIV_IMM_REG,
        OpKind.SUB_IMM_REG,
        OpKind.SUB_REG_IMM,
        OpKind.MIN_REG_IMM,
        OpKind.MAX_REG_IMM,
        OpKind.COPY_IMM,
    }
)
_WIDE_LHS = frozenset({OpKind.VAR, OpKind.LOAD, OpKind.STORE})


def _check_index(value: object, limit: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, not {type(value).__name__}")
    if not 0 <= value <= limit:
        raise ValueError(f"{name} must be in 0..={limit}, got {value}")


@dataclass(frozen=True)
class Op:
    """A single virtual machine operation.

    ``out`` is the output register (the source register for ``STORE``).
    ``lhs`` is the first argument register, the input slot for ``INPUT``,
    the variable index for ``VAR`` or the memory slot for ``LOAD`` and
    ``STORE``.  ``rhs`` is the second register of register-register
    operations and ``imm`` the immediate of operations that take one.
    """

    kind: OpKind
    out: int
    lhs: int = 0
    rhs: int = 0
    imm: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, OpKind):
            raise TypeError(f"kind must be an OpKind, not {self.kind!r}")
        _check_index(self.out, _U8_MAX, "out")
        lhs_limit = _U32_MAX if self.kind in _WIDE_LHS else _U8_MAX
        _check_index(self.lhs, lhs_limit, "lhs")
        if self.kind in _REG_REG:
            _check_index(self.rhs, _U8_MAX, "rhs")
        elif self.rhs != 0:
            raise ValueError(f"{self.kind.name} takes no rhs register")
        if self.kind in _WITH_IMM:
            object.__setattr__(self, "imm", float(self.imm))
        elif self.imm != 0:
            raise ValueError(f"{self.kind.name} takes no immediate")