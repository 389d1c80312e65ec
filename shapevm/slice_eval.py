"""Bulk evaluation of virtual machine tapes over sequences of points."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from shapevm.errors import BadVarSlice, MismatchedSlices
from shapevm.op import OpKind
from shapevm.point_eval import _div, _f32, _sqrt
from shapevm.tape import Tape

_TILE_SIZES_3D = (256, 128, 64, 32, 16, 8)
_TILE_SIZES_2D = (256, 128, 64, 32, 16, 8)


def tile_sizes_3d() -> tuple[int, ...]:
    """Tile sizes, largest first, used when rendering in 3D."""
    return _TILE_SIZES_3D


def tile_sizes_2d() -> tuple[int, ...]:
    """Tile sizes, largest first, used when rendering in 2D."""
    return _TILE_SIZES_2D


def _fmin(a: float, b: float) -> float:
    """Minimum that ignores a NaN argument, as IEEE ``minNum`` does."""
    if math.isnan(a):
        return b
    if math.isnan(b):
        return a
    return a if a < b else b


def _fmax(a: float, b: float) -> float:
    """Maximum that ignores a NaN argument, as IEEE ``maxNum`` does."""
    if math.isnan(a):
        return b
    if math.isnan(b):
        return a
    return a if a > b else b


_UNARY: dict[OpKind, Callable[[float], float]] = {
    OpKind.NEG_REG: lambda a: -a,
    OpKind.ABS_REG: abs,
    OpKind.RECIP_REG: lambda a: _div(1.0, a),
    OpKind.SQRT_REG: _sqrt,
    OpKind.SQUARE_REG: lambda a: _f32(a * a),
    OpKind.COPY_REG: lambda a: a,
}

_WITH_IMM: dict[OpKind, Callable[[float, float], float]] = {
    OpKind.ADD_REG_IMM: lambda a, i: _f32(a + i),
    OpKind.MUL_REG_IMM: lambda a, i: _f32(a * i),
    OpKind.DIV_REG_IMM: _div,
    OpKind.DIV_IMM_REG: lambda a, i: _div(i, a),
    OpKind.SUB_IMM_REG: lambda a, i: _f32(i - a),
    OpKind.SUB_REG_IMM: lambda a, i: _f32(a - i),
    OpKind.MIN_REG_IMM: _fmin,
    OpKind.MAX_REG_IMM: _fmax,
}

_BINARY: dict[OpKind, Callable[[float, float], float]] = {
    OpKind.ADD_REG_REG: lambda a, b: _f32(a + b),
    OpKind.MUL_REG_REG: lambda a, b: _f32(a * b),
    OpKind.DIV_REG_REG: _div,
    OpKind.SUB_REG_REG: lambda a, b: _f32(a - b),
    OpKind.MIN_REG_REG: _fmin,
    OpKind.MAX_REG_REG: _fmax,
}


class FloatSliceEvaluator:
    """Interpreter that evaluates a tape over many points in 32-bit floats.

    The tape is stored in reverse evaluation order, as produced by the
    register allocator.  Min and max clauses are not traced; a NaN argument
    to either is ignored in favour of the other argument.
    """

    def __init__(self, tape: Tape, var_count: int) -> None:
        if not isinstance(tape, Tape):
            raise TypeError(f"expected a Tape, not {type(tape).__name__}")
        if isinstance(var_count, bool) or not isinstance(var_count, int):
            raise TypeError("var_count must be an int")
        if var_count < 0:
            raise ValueError(f"var_count must not be negative, got {var_count}")
        self._ops = tuple(reversed(list(tape)))
        self._slot_count = max(tape.slot_count, 1)
        self.var_count = var_count

    def eval(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        zs: Sequence[float],
        vars: Sequence[float] = (),
    ) -> list[float]:
        """Evaluate at every point ``(xs[i], ys[i], zs[i])``."""
        if not len(xs) == len(ys) == len(zs):
            raise MismatchedSlices()
        if len(vars) != self.var_count:
            raise BadVarSlice(len(vars), self.var_count)

        size = len(xs)
        inputs = tuple(
            [_f32(float(value)) for value in axis] for axis in (xs, ys, zs)
        )
        nan_row = [math.nan] * size
        v: list[list[float]] = [nan_row] * self._slot_count

        for op in self._ops:
            kind = op.kind
            if kind in _BINARY:
                fn = _BINARY[kind]
                v[op.out] = [fn(a, b) for a, b in zip(v[op.lhs], v[op.rhs])]
            elif kind in _WITH_IMM:
                fn = _WITH_IMM[kind]
                imm = _f32(op.imm)
                v[op.out] = [fn(a, imm) for a in v[op.lhs]]
            elif kind in _UNARY:
                unary = _UNARY[kind]
                v[op.out] = [unary(a) for a in v[op.lhs]]
            elif kind is OpKind.INPUT:
                if op.lhs > 2:
                    raise ValueError(f"invalid input: {op.lhs}")
                v[op.out] = list(inputs[op.lhs])
            elif kind is OpKind.VAR:
                v[op.out] = [_f32(float(vars[op.lhs]))] * size
            elif kind is OpKind.COPY_IMM:
                v[op.out] = [_f32(op.imm)] * size
            elif kind is OpKind.LOAD:
                v[op.out] = list(v[op.lhs])
            elif kind is OpKind.STORE:
                v[op.lhs] = list(v[op.out])
            else:
                raise ValueError(f"unexpected operation {kind.name}")

        return list(v[0])