# shapevm

`shapevm` evaluates closed-form implicit surface expressions on a small
register-based virtual machine. An implicit surface is a function
`f(x, y, z)`. By convention a point is inside the shape where the value is
below zero and outside where it is above zero.

The package works in three stages:

1. **SSA operations** (`shapevm.ssa`): `SsaOp` values of kind `SsaKind`.
   Each operation writes one globally numbered slot.
2. **Register allocation** (`shapevm.alloc`): `RegisterAllocator` lowers SSA
   operations into a `Tape` (`shapevm.tape`) of VM operations (`Op` with
   kinds in `OpKind`, from `shapevm.op`). It works with a fixed number of
   registers. When they run out, it evicts the least recently used one
   (chosen with `shapevm.lru.Lru`) and spills its value to a memory slot with
   `LOAD` and `STORE` operations.
3. **Evaluation**: `PointEvaluator` (`shapevm.point_eval`) evaluates a tape
   at one point and records which branch every `min` and `max` took.
   `FloatSliceEvaluator` (`shapevm.slice_eval`) evaluates a tape over many
   points at once.

All arithmetic in the evaluators is rounded to 32-bit floating point.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Example

This builds and evaluates `x + y`. SSA slot 0 is the output, and slots 1
and 2 hold the `x` and `y` inputs (input axes 0, 1 and 2 are `x`, `y`
and `z`):

```python
from shapevm.alloc import RegisterAllocator
from shapevm.point_eval import PointEvaluator
from shapevm.slice_eval import FloatSliceEvaluator
from shapevm.ssa import SsaKind, SsaOp

alloc = RegisterAllocator(reg_limit=255, size=3)
# Operations are fed in reverse evaluation order, output first.
alloc.op(SsaOp(SsaKind.ADD_REG_REG, out=0, lhs=1, rhs=2))
alloc.op(SsaOp(SsaKind.INPUT, out=1, lhs=0))
alloc.op(SsaOp(SsaKind.INPUT, out=2, lhs=1))
tape = alloc.finalize()

result = PointEvaluator(tape, var_count=0).eval(1.0, 2.0, 0.0)
assert result.value == 3.0

values = FloatSliceEvaluator(tape, var_count=0).eval([1, 2], [3, 4], [0, 0])
assert values == [4.0, 6.0]
```

## Tapes and evaluation order

`RegisterAllocator` takes SSA operations in **reverse** evaluation order,
starting with the operation that writes slot 0, and appends VM operations in
that same reverse order. Slot 0 is bound to register 0 at construction and
always holds the result. Both evaluators reverse the tape themselves, so a
tape from `RegisterAllocator.finalize()` can be passed to them unchanged.

`finalize()` hands over the tape and leaves an empty one in its place.
`reset(reg_limit, size)` and `reset_with_storage(reg_limit, size, tape)`
prepare the allocator for another expression, and
`RegisterAllocator.empty()` builds an allocator that must be reset before
use. If an SSA operation writes a slot that no earlier-fed operation reads,
the allocator raises `ValueError`.

`Op` and `SsaOp` check their fields when they are built. Register indices
must fit in a byte. A field that the operation kind does not use must be
left at zero, or a `ValueError` is raised.

## Choices and simplification

`PointEvaluator.eval(x, y, z, vars=(), choices=None)` returns a
`PointResult` with `value`, `simplify` and `choices`. There is one `Choice`
per `min` or `max` clause, in evaluation order:

- `Choice.LEFT`: the left-hand argument was strictly chosen.
- `Choice.RIGHT`: the right-hand argument was strictly chosen.
- `Choice.BOTH`: the arguments were equal, or one was NaN (the result is
  then NaN).

Choices passed in from an earlier evaluation are merged with the new ones
by bitwise OR. `simplify` is true when at least one merged choice is not
`Choice.BOTH`, which means that clause took only one branch.

`FloatSliceEvaluator` does not trace choices. In it, `min` and `max` ignore
a NaN argument in favour of the other one.

## Errors

Errors raised by the package derive from `shapevm.errors.ShapeError`. The
evaluators raise `BadVarSlice` when the number of variables does not match
`var_count`, and `BadChoiceSlice` when the choices passed in do not match the
tape's `choice_count`. `FloatSliceEvaluator` raises `MismatchedSlices` when
`xs`, `ys` and `zs` differ in length. `shapevm.errors` also defines
`BadNode`, `BadVar`, `EmptyContext`, `EmptyMap`, `UnknownOpcode`,
`UnknownVariable`, `EmptyFile`, `ReservedName` and `DuplicateName`. Nothing in
this package raises them.

## Tile sizes

`shapevm.slice_eval.tile_sizes_3d()` and `tile_sizes_2d()` both return
`(256, 128, 64, 32, 16, 8)`. These are the tile sizes, largest first, that
suit this interpreter when space is subdivided for rendering.

## What this package does not do

The package starts from SSA operations that you write yourself. It does not
parse expressions, build or deduplicate expression graphs, or turn such
graphs into SSA operations. It evaluates single points and batches of
points only. It has no interval or gradient evaluation, no tape
simplification from recorded choices, no rendering, and no command-line
tool.