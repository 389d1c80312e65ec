"""Operations in single-static-assignment form.

Each operation writes a fresh, globally numbered slot; these are the input
to register allocation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

_U32_MAX = 0xFFFF_FFFF


class SsaKind(enum.Enum):
    """The kind of an SSA operation."""

    INPUT = "input"
    VAR = "var"
    COPY_IMM = "copy_imm"
    NEG_REG = "neg"
    ABS_REG = "abs"
    RECIP_REG = "recip"
    SQRT_REG = "sqrt"
    SQUARE_REG = "square"
    COPY_REG = "copy"
    ADD_REG_IMM = "add_imm"
    SUB_REG_IMM = "sub_reg_imm"
    SUB_IMM_REG = "sub_imm_reg"
    MUL_REG_IMM = "mul_imm"
    DIV_REG_IMM = "div_reg_imm"
    DIV_IMM_REG = "div_imm_reg"
    MIN_REG_IMM = "min_imm"
    MAX_REG_IMM = "max_imm"
    ADD_REG_REG = "add"
    SUB_REG_REG = "sub"
    MUL_REG_REG = "mul"
    DIV_REG_REG = "div"
    MIN_REG_REG = "min"
    MAX_REG_REG = "max"


_REG_REG = frozenset(
    {
        SsaKind.ADD_REG_REG,
        SsaKind.SUB_REG_REG,
        SsaKind.MUL_REG_REG,
        SsaKind.DIV_REG_REG,
        SsaKind.MIN_REG_REG,
        SsaKind.MAX_REG_REG,
    }
)
_WITH_IMM = frozenset(
    {
        SsaKind.COPY_IMM,
        SsaKind.ADD_REG_IMM,
        SsaKind.SUB_REG_IMM,
        SsaKind.SUB_IMM_REG,
        SsaKind.MUL_REG_IMM,
        SsaKind.DIV_REG_IMM,
        SsaKind.DIV_IMM_REG,
        SsaKind.MIN_REG_IMM,
        SsaKind.MAX_REG_IMM,
    }
)


def _check_index(value: object, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, not {type(value).__name__}")
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"{name} must be in 0..={_U32_MAX}, got {value}")


@dataclass(frozen=True)
class SsaOp:
    """A single SSA operation.

    ``out`` is the slot written.  ``lhs`` is the first argument slot, the
    input axis for ``INPUT`` or the variable index for ``VAR``.  ``rhs`` is
    the second slot of two-slot operations and ``imm`` the immediate of
    operations that take one.
    """

    kind: SsaKind
    out: int
    lhs: int = 0
    rhs: int = 0
    imm: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, SsaKind):
            raise TypeError(f"kind must be an SsaKind, not {self.kind!r}")
        _check_index(self.out, "out")
        _check_index(self.lhs, "lhs")
        if self.kind in _REG_REG:
            _check_index(self.rhs, "rhs")
        elif self.rhs != 0:
            raise ValueError(f"{self.kind.name} takes no rhs slot")
        if self.kind in _WITH_IMM:
            object.__setattr__(self, "imm", float(self.imm))
        elif self.imm != 0:
            raise ValueError(f"{self.kind.name} takes no immediate")