"""Single-point evaluation of virtual machine tapes, tracing min/max choices."""

from __future__ import annotations

import enum
import math
import struct
from collections.abc import Sequence
from typing import NamedTuple

from shapevm.errors import BadChoiceSlice, BadVarSlice
from shapevm.op import Op, OpKind
from shapevm.tape import Tape

_CHOICE_KINDS = frozenset(
    {
        OpKind.MIN_REG_IMM,
        OpKind.MAX_REG_IMM,
        OpKind.MIN_REG_REG,
        OpKind.MAX_REG_REG,
    }
)


class Choice(enum.IntFlag):
    """Which branch of a min or max clause was taken during evaluation."""

    UNKNOWN = 0
    LEFT = 1
    RIGHT = 2
    BOTH = 3


class PointResult(NamedTuple):
    """Result of evaluating a tape at one point."""

    value: float
    simplify: bool
    choices: tuple[Choice, ...]


def _f32(value: float) -> float:
    """Round a float to single precision."""
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _div(lhs: float, rhs: float) -> float:
    if rhs == 0.0:
        if lhs == 0.0 or math.isnan(lhs):
            return math.nan
        return math.copysign(math.inf, lhs) * math.copysign(1.0, rhs)
    return _f32(lhs / rhs)


def _sqrt(value: float) -> float:
    if math.isnan(value) or value < 0.0:
        return math.nan
    return _f32(math.sqrt(value))


def _min_choice(a: float, b: float) -> tuple[float, Choice]:
    if a < b:
        return a, Choice.LEFT
    if b < a:
        return b, Choice.RIGHT
    return (math.nan if math.isnan(a) or math.isnan(b) else b), Choice.BOTH


def _max_choice(a: float, b: float) -> tuple[float, Choice]:
    if a > b:
        return a, Choice.LEFT
    if b > a:
        return b, Choice.RIGHT
    return (math.nan if math.isnan(a) or math.isnan(b) else b), Choice.BOTH


class PointEvaluator:
    """Interpreter that evaluates a tape at a single point in 32-bit floats.

    The tape is stored in reverse evaluation order, as produced by the
    register allocator.  Every min or max clause records which of its
    arguments was chosen.
    """

    def __init__(self, tape: Tape, var_count: int) -> None:
        if not isinstance(tape, Tape):
            raise TypeError(f"expected a Tape, not {type(tape).__name__}")
        if isinstance(var_count, bool) or not isinstance(var_count, int):
            raise TypeError("var_count must be an int")
        if var_count < 0:
            raise ValueError(f"var_count must not be negative, got {var_count}")
        self._ops: tuple[Op, ...] = tuple(reversed(list(tape)))
        self._slot_count = max(tape.slot_count, 1)
        self.var_count = var_count
        self.choice_count = sum(op.kind in _CHOICE_KINDS for op in self._ops)

    def eval(
        self,
        x: float,
        y: float,
        z: float,
        vars: Sequence[float] = (),
        choices: Sequence[Choice] | None = None,
    ) -> PointResult:
        """Evaluate at ``(x, y, z)``.

        ``choices`` holds choices from earlier evaluations, one per min/max
        clause; new choices are merged into them.  The returned ``simplify``
        flag is true when some clause took only one branch.
        """
        if len(vars) != self.var_count:
            raise BadVarSlice(len(vars), self.var_count)
        if choices is None:
            merged = [Choice.UNKNOWN] * self.choice_count
        else:
            if len(choices) != self.choice_count:
                raise BadChoiceSlice(len(choices), self.choice_count)
            merged = [Choice(c) for c in choices]

        inputs = (_f32(float(x)), _f32(float(y)), _f32(float(z)))
        v = [math.nan] * self._slot_count
        choice_index = 0
        simplify = False

        for op in self._ops:
            kind = op.kind
            if kind in _CHOICE_KINDS:
                a = v[op.lhs]
                if kind is OpKind.MIN_REG_REG or kind is OpKind.MAX_REG_REG:
                    b = v[op.rhs]
                else:
                    b = _f32(op.imm)
                pick = (
                    _min_choice
                    if kind in (OpKind.MIN_REG_REG, OpKind.MIN_REG_IMM)
                    else _max_choice
                )
                value, choice = pick(a, b)
                v[op.out] = value
                merged[choice_index] |= choice
                simplify |= merged[choice_index] != Choice.BOTH
                choice_index += 1
            elif kind is OpKind.INPUT:
                if op.lhs > 2:
                    raise ValueError(f"invalid input: {op.lhs}")
                v[op.out] = inputs[op.lhs]
            elif kind is OpKind.VAR:
                v[op.out] = _f32(float(vars[op.lhs]))
            elif kind is OpKind.LOAD:
                v[op.out] = v[op.lhs]
            elif kind is OpKind.STORE:
                v[op.lhs] = v[op.out]
            elif kind is OpKind.COPY_IMM:
                v[op.out] = _f32(op.imm)
            else:
                v[op.out] = self._arith(op, v)

        return PointResult(v[0], simplify, tuple(merged))

    @staticmethod
    def _arith(op: Op, v: list[float]) -> float:
        kind = op.kind
        a = v[op.lhs]
        if kind is OpKind.NEG_REG:
            return -a
        if kind is OpKind.ABS_REG:
            return abs(a)
        if kind is OpKind.RECIP_REG:
            return _div(1.0, a)
        if kind is OpKind.SQRT_REG:
            return _sqrt(a)
        if kind is OpKind.SQUARE_REG:
            return _f32(a * a)
        if kind is OpKind.COPY_REG:
            return a
        imm = _f32(op.imm)
        if kind is OpKind.ADD_REG_IMM:
            return _f32(a + imm)
        if kind is OpKind.MUL_REG_IMM:
            return _f32(a * imm)
        if kind is OpKind.DIV_REG_IMM:
            return _div(a, imm)
        if kind is OpKind.DIV_IMM_REG:
            return _div(imm, a)
        if kind is OpKind.SUB_IMM_REG:
            return _f32(imm - a)
        if kind is OpKind.SUB_REG_IMM:
            return _f32(a - imm)
        b = v[op.rhs]
        if kind is OpKind.ADD_REG_REG:
            return _f32(a + b)
        if kind is OpKind.MUL_REG_REG:
            return _f32(a * b)
        if kind is OpKind.DIV_REG_REG:
            return _div(a, b)
        if kind is OpKind.SUB_REG_REG:
            return _f32(a - b)
        raise ValueError(f"unexpected operation {kind.name}")