import random

import pytest

from shapevm.alloc import RegisterAllocator
from shapevm.op import Op, OpKind
from shapevm.ssa import SsaKind, SsaOp
from shapevm.tape import Tape

_UNARY = {
    "NEG_REG": lambda a: -a,
    "ABS_REG": abs,
    "SQUARE_REG": lambda a: a * a,
    "COPY_REG": lambda a: a,
}
_WITH_IMM = {
    "ADD_REG_IMM": lambda a, i: a + i,
    "SUB_REG_IMM": lambda a, i: a - i,
    "SUB_IMM_REG": lambda a, i: i - a,
    "MUL_REG_IMM": lambda a, i: a * i,
    "MIN_REG_IMM": min,
    "MAX_REG_IMM": max,
}
_BINARY = {
    "ADD_REG_REG": lambda a, b: a + b,
    "SUB_REG_REG": lambda a, b: a - b,
    "MUL_REG_REG": lambda a, b: a * b,
    "MIN_REG_REG": min,
    "MAX_REG_REG": max,
}


def _run_tape(tape, inputs):
    slots = {}
    for op in reversed(list(tape)):
        name = op.kind.name
        if op.kind is OpKind.INPUT:
            slots[op.out] = inputs[op.lhs]
        elif op.kind is OpKind.LOAD:
            slots[op.out] = slots[op.lhs]
        elif op.kind is OpKind.STORE:
            slots[op.lhs] = slots[op.out]
        elif op.kind is OpKind.COPY_IMM:
            slots[op.out] = op.imm
        elif name in _UNARY:
            slots[op.out] = _UNARY[name](slots[op.lhs])
        elif name in _WITH_IMM:
            slots[op.out] = _WITH_IMM[name](slots[op.lhs], op.imm)
        else:
            slots[op.out] = _BINARY[name](slots[op.lhs], slots[op.rhs])
    return slots[0]


def _run_ssa(ops, inputs):
    slots = {}
    for op in reversed(ops):
        name = op.kind.name
        if op.kind is SsaKind.INPUT:
            slots[op.out] = inputs[op.lhs]
        elif op.kind is SsaKind.COPY_IMM:
            slots[op.out] = op.imm
        elif name in _UNARY:
            slots[op.out] = _UNARY[name](slots[op.lhs])
        elif name in _WITH_IMM:
            slots[op.out] = _WITH_IMM[name](slots[op.lhs], op.imm)
        else:
            slots[op.out] = _BINARY[name](slots[op.lhs], slots[op.rhs])
    return slots[0]


def _allocate(ops, reg_limit, size=None):
    alloc = RegisterAllocator(reg_limit, size if size is not None else len(ops))
    for op in ops:
        alloc.op(op)
    return alloc.finalize()


def _check_tape_slots(tape):
    limit = tape.reg_limit
    for op in tape:
        assert op.out < limit
        if op.kind in (OpKind.LOAD, OpKind.STORE):
            assert limit <= op.lhs < tape.slot_count
        elif op.kind not in (OpKind.INPUT, OpKind.VAR):
            assert op.lhs < limit
        if op.kind.name.endswith("REG_REG"):
            assert op.rhs < limit


def _sum_ops():
    # slot 0 = x + y
    return [
        SsaOp(SsaKind.ADD_REG_REG, 0, 1, 2),
        SsaOp(SsaKind.INPUT, 1, 0),
        SsaOp(SsaKind.INPUT, 2, 1),
    ]


def _spill_ops():
    # slot 0 = x * y + (x - y)
    return [
        SsaOp(SsaKind.ADD_REG_REG, 0, 1, 2),
        SsaOp(SsaKind.MUL_REG_REG, 1, 3, 4),
        SsaOp(SsaKind.SUB_REG_REG, 2, 3, 4),
        SsaOp(SsaKind.INPUT, 3, 0),
        SsaOp(SsaKind.INPUT, 4, 1),
    ]


def _random_ops(seed, count):
    rng = random.Random(seed)
    nodes = [(SsaKind.INPUT, (), a, 0.0) for a in range(3)]
    unary = [SsaKind.NEG_REG, SsaKind.ABS_REG, SsaKind.COPY_REG]
    with_imm = [
        SsaKind.ADD_REG_IMM,
        SsaKind.SUB_REG_IMM,
        SsaKind.SUB_IMM_REG,
        SsaKind.MUL_REG_IMM,
        SsaKind.MIN_REG_IMM,
        SsaKind.MAX_REG_IMM,
    ]
    binary = [
        SsaKind.ADD_REG_REG,
        SsaKind.SUB_REG_REG,
        SsaKind.MIN_REG_REG,
        SsaKind.MAX_REG_REG,
    ]
    for _ in range(count):
        roll = rng.random()
        n = len(nodes)
        if roll < 0.05:
            nodes.append((SsaKind.COPY_IMM, (), 0, rng.choice([0.5, -2.0])))
        elif roll < 0.2:
            nodes.append((rng.choice(unary), (rng.randrange(n),), 0, 0.0))
        elif roll < 0.4:
            nodes.append(
                (rng.choice(with_imm), (rng.randrange(n),), 0, rng.choice([0.5, -1.5]))
            )
        else:
            nodes.append(
                (rng.choice(binary), (rng.randrange(n), rng.randrange(n)), 0, 0.0)
            )
    nodes.append((SsaKind.ADD_REG_REG, (len(nodes) - 1, len(nodes) - 2), 0, 0.0))

    reachable = {len(nodes) - 1}
    for index in range(len(nodes) - 1, -1, -1):
        if index in reachable:
            reachable.update(nodes[index][1])
    kept = [i for i in range(len(nodes)) if i in reachable]
    slot_of = {forward: len(kept) - 1 - pos for pos, forward in enumerate(kept)}

    ops = []
    for forward in reversed(kept):
        kind, args, axis, imm = nodes[forward]
        slot = slot_of[forward]
        if kind is SsaKind.INPUT:
            ops.append(SsaOp(kind, slot, axis))
        elif kind is SsaKind.COPY_IMM:
            ops.append(SsaOp(kind, slot, imm=imm))
        elif len(args) == 1 and kind in with_imm:
            ops.append(SsaOp(kind, slot, slot_of[args[0]], imm=imm))
        elif len(args) == 1:
            ops.append(SsaOp(kind, slot, slot_of[args[0]]))
        else:
            ops.append(SsaOp(kind, slot, slot_of[args[0]], slot_of[args[1]]))
    return ops


def test_sum_tape_has_three_ops():
    tape = _allocate(_sum_ops(), 255)
    assert len(tape) == 3
    assert list(tape) == [
        Op(OpKind.ADD_REG_REG, 0, 0, 1),
        Op(OpKind.INPUT, 0, 0),
        Op(OpKind.INPUT, 1, 1),
    ]
    assert tape.slot_count == 2


def test_sum_tape_evaluates():
    tape = _allocate(_sum_ops(), 255)
    assert _run_tape(tape, (0.25, 1.5, 0.0)) == 0.25 + 1.5


def test_tight_limit_spills_to_memory():
    tape = _allocate(_spill_ops(), 2)
    kinds = {op.kind for op in tape}
    assert OpKind.LOAD in kinds
    assert OpKind.STORE in kinds
    assert tape.slot_count > tape.reg_limit
    _check_tape_slots(tape)


def test_roomy_limit_does_not_spill():
    tape = _allocate(_spill_ops(), 255)
    kinds = {op.kind for op in tape}
    assert OpKind.LOAD not in kinds
    assert OpKind.STORE not in kinds
    assert tape.slot_count <= tape.reg_limit


@pytest.mark.parametrize("reg_limit", [2, 3, 24, 255])
def test_spilled_tape_matches_expression(reg_limit):
    x, y = 3.0, 2.0
    tape = _allocate(_spill_ops(), reg_limit)
    assert _run_tape(tape, (x, y, 0.0)) == x * y + (x - y)


@pytest.mark.parametrize("seed", range(12))
@pytest.mark.parametrize("reg_limit", [2, 3, 5, 255])
def test_random_programs_agree_with_ssa(seed, reg_limit):
    ops = _random_ops(seed, 60)
    inputs = (0.3, -1.25, 2.0)
    tape = _allocate(ops, reg_limit)
    _check_tape_slots(tape)
    assert tape.reg_limit == reg_limit
    assert _run_tape(tape, inputs) == _run_ssa(ops, inputs)


def test_same_argument_twice():
    ops = [
        SsaOp(SsaKind.MUL_REG_REG, 0, 1, 1),
        SsaOp(SsaKind.INPUT, 1, 2),
    ]
    tape = _allocate(ops, 4)
    assert _run_tape(tape, (0.0, 0.0, -3.0)) == (-3.0) * (-3.0)


def test_immediate_ops_keep_their_immediate():
    ops = [
        SsaOp(SsaKind.SUB_IMM_REG, 0, 1, imm=10.0),
        SsaOp(SsaKind.INPUT, 1, 0),
    ]
    tape = _allocate(ops, 8)
    first = list(tape)[0]
    assert first.kind is OpKind.SUB_IMM_REG
    assert first.imm == 10.0
    assert _run_tape(tape, (4.0, 0.0, 0.0)) == 10.0 - 4.0


def test_var_and_copy_imm_are_lowered():
    ops = [
        SsaOp(SsaKind.ADD_REG_REG, 0, 1, 2),
        SsaOp(SsaKind.VAR, 1, 7),
        SsaOp(SsaKind.COPY_IMM, 2, imm=1.5),
    ]
    tape = _allocate(ops, 8)
    by_kind = {op.kind: op for op in tape}
    assert by_kind[OpKind.VAR].lhs == 7
    assert by_kind[OpKind.COPY_IMM].imm == 1.5


def test_reset_reproduces_fresh_allocation():
    ops = _random_ops(99, 40)
    alloc = RegisterAllocator(3, len(ops))
    for op in ops:
        alloc.op(op)
    first = list(alloc.finalize())
    alloc.reset(3, len(ops))
    for op in ops:
        alloc.op(op)
    second = list(alloc.finalize())
    assert first == second


def test_reset_with_storage_reuses_tape():
    storage = Tape(9)
    storage.push(Op(OpKind.INPUT, 0, 0))
    alloc = RegisterAllocator.empty()
    alloc.reset_with_storage(4, 3, storage)
    for op in _sum_ops():
        alloc.op(op)
    tape = alloc.finalize()
    assert tape is storage
    assert tape.reg_limit == 4
    assert len(tape) == 3


def test_finalize_leaves_empty_tape():
    alloc = RegisterAllocator(8, 3)
    for op in _sum_ops():
        alloc.op(op)
    assert len(alloc.finalize()) == 3
    assert len(alloc.finalize()) == 0


def test_reset_without_finalize_is_rejected():
    alloc = RegisterAllocator(8, 3)
    alloc.op(_sum_ops()[0])
    with pytest.raises(RuntimeError):
        alloc.reset(8, 3)


def test_unassigned_output_is_rejected():
    alloc = RegisterAllocator(8, 3)
    with pytest.raises(ValueError):
        alloc.op(SsaOp(SsaKind.INPUT, 1, 0))


def test_input_index_must_fit_in_a_byte():
    alloc = RegisterAllocator(8, 1)
    with pytest.raises(ValueError):
        alloc.op(SsaOp(SsaKind.INPUT, 0, 300))


def test_non_ssa_op_is_rejected():
    alloc = RegisterAllocator(8, 1)
    with pytest.raises(TypeError):
        alloc.op(Op(OpKind.INPUT, 0, 0))


@pytest.mark.parametrize("reg_limit, size", [(0, 3), (256, 3), (8, 0)])
def test_bad_limits_are_rejected(reg_limit, size):
    with pytest.raises(ValueError):
        RegisterAllocator(reg_limit, size)