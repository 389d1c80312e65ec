"""Single-pass register allocation from SSA operations to VM operations."""

from __future__ import annotations

import enum

from shapevm.lru import Lru
from shapevm.op import Op, OpKind
from shapevm.ssa import SsaKind, SsaOp
from shapevm.tape import Tape

_U8_MAX = 0xFF
_UNASSIGNED = 0xFFFF_FFFF

_UNARY = {
    SsaKind.NEG_REG: OpKind.NEG_REG,
    SsaKind.ABS_REG: OpKind.ABS_REG,
    SsaKind.RECIP_REG: OpKind.RECIP_REG,
    SsaKind.SQRT_REG: OpKind.SQRT_REG,
    SsaKind.SQUARE_REG: OpKind.SQUARE_REG,
    SsaKind.COPY_REG: OpKind.COPY_REG,
}
_REG_IMM = {
    SsaKind.ADD_REG_IMM: OpKind.ADD_REG_IMM,
    SsaKind.SUB_REG_IMM: OpKind.SUB_REG_IMM,
    SsaKind.SUB_IMM_REG: OpKind.SUB_IMM_REG,
    SsaKind.MUL_REG_IMM: OpKind.MUL_REG_IMM,
    SsaKind.DIV_REG_IMM: OpKind.DIV_REG_IMM,
    SsaKind.DIV_IMM_REG: OpKind.DIV_IMM_REG,
    SsaKind.MIN_REG_IMM: OpKind.MIN_REG_IMM,
    SsaKind.MAX_REG_IMM: OpKind.MAX_REG_IMM,
}
_REG_REG = {
    SsaKind.ADD_REG_REG: OpKind.ADD_REG_REG,
    SsaKind.SUB_REG_REG: OpKind.SUB_REG_REG,
    SsaKind.MUL_REG_REG: OpKind.MUL_REG_REG,
    SsaKind.DIV_REG_REG: OpKind.DIV_REG_REG,
    SsaKind.MIN_REG_REG: OpKind.MIN_REG_REG,
    SsaKind.MAX_REG_REG: OpKind.MAX_REG_REG,
}


class _Where(enum.Enum):
    REGISTER = enum.auto()
    MEMORY = enum.auto()
    UNASSIGNED = enum.auto()


def _check(condition: bool, message: str) -> None:
    if not condition:
        raise RuntimeError(f"register allocator invariant broken: {message}")


def _check_limits(reg_limit: object, size: object) -> None:
    for name, value in (("reg_limit", reg_limit), ("size", size)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{name} must be an int")
    if not 1 <= reg_limit <= _U8_MAX:  # type: ignore[operator]
        raise ValueError(f"reg_limit must be in 1..={_U8_MAX}, got {reg_limit}")
    if size < 1:  # type: ignore[operator]
        raise ValueError(f"size must be at least 1, got {size}")


class RegisterAllocator:
    """Cheap single-pass register allocator.

    SSA operations are fed in reverse evaluation order (output first).  SSA
    slot 0 is bound to register 0 at construction and should be the output
    of the function.  When registers run out, values are spilled to memory
    slots with ``LOAD`` and ``STORE`` operations.  The resulting tape is
    likewise in reverse evaluation order.
    """

    def __init__(self, reg_limit: int, size: int) -> None:
        _check_limits(reg_limit, size)
        self._allocations = [_UNASSIGNED] * size
        self._registers = [_UNASSIGNED] * _U8_MAX
        self._lru = Lru(reg_limit)
        self._reg_limit = reg_limit
        self._spare_registers: list[int] = []
        self._spare_memory: list[int] = []
        self._out = Tape(reg_limit)
        self._bind_register(0, 0)

    @classmethod
    def empty(cls) -> RegisterAllocator:
        """Build an allocator with no capacity, to be reset before use."""
        self = cls.__new__(cls)
        self._allocations = []
        self._registers = [_UNASSIGNED] * _U8_MAX
        self._lru = Lru(0)
        self._reg_limit = 0
        self._spare_registers = []
        self._spare_memory = []
        self._out = Tape(0)
        return self

    def reset(self, reg_limit: int, size: int) -> None:
        """Reset internal state for a new tape."""
        self.reset_with_storage(reg_limit, size, Tape())

    def reset_with_storage(self, reg_limit: int, size: int, tape: Tape) -> None:
        """Reset internal state, writing future operations into ``tape``."""
        _check_limits(reg_limit, size)
        if not isinstance(tape, Tape):
            raise TypeError(f"expected a Tape, not {type(tape).__name__}")
        if len(self._out):
            raise RuntimeError("the previous tape was not finalized")
        self._allocations = [_UNASSIGNED] * size
        self._registers = [_UNASSIGNED] * _U8_MAX
        self._lru = Lru(reg_limit)
        self._reg_limit = reg_limit
        self._spare_registers.clear()
        self._spare_memory.clear()
        self._out = tape
        self._out.reset(reg_limit)
        self._bind_register(0, 0)

    def finalize(self) -> Tape:
        """Take the tape built so far, leaving an empty one in its place."""
        out, self._out = self._out, Tape()
        return out

    def op(self, op: SsaOp) -> None:
        """Lower one SSA operation, pushing it (and any spills) to the tape."""
        if not isinstance(op, SsaOp):
            raise TypeError(f"expected an SsaOp, not {type(op).__name__}")
        kind = op.kind
        if kind is SsaKind.VAR:
            self._op_out_only(op.out, lambda r: Op(OpKind.VAR, r, op.lhs))
        elif kind is SsaKind.INPUT:
            if op.lhs > _U8_MAX:
                raise ValueError(f"input index {op.lhs} does not fit in a byte")
            self._op_out_only(op.out, lambda r: Op(OpKind.INPUT, r, op.lhs))
        elif kind is SsaKind.COPY_IMM:
            self._op_out_only(
                op.out, lambda r: Op(OpKind.COPY_IMM, r, imm=op.imm)
            )
        elif kind in _UNARY:
            vm_kind = _UNARY[kind]
            self._op_reg_fn(op.out, op.lhs, lambda o, a: Op(vm_kind, o, a))
        elif kind in _REG_IMM:
            vm_kind = _REG_IMM[kind]
            self._op_reg_fn(
                op.out, op.lhs, lambda o, a: Op(vm_kind, o, a, imm=op.imm)
            )
        else:
            self._op_reg_reg(op)

    # Slot bookkeeping

    def _get_memory(self) -> int:
        if self._spare_memory:
            return self._spare_memory.pop()
        out = self._out.slot_count
        self._out.slot_count += 1
        _check(out >= self._out.reg_limit, "memory slot below register limit")
        return out

    def _get_allocation(self, n: int) -> tuple[_Where, int]:
        slot = self._allocations[n]
        if slot < self._reg_limit:
            self._lru.poke(slot)
            return _Where.REGISTER, slot
        if slot == _UNASSIGNED:
            return _Where.UNASSIGNED, slot
        return _Where.MEMORY, slot

    def _get_spare_register(self) -> int | None:
        if self._spare_registers:
            return self._spare_registers.pop()
        if self._out.slot_count < self._reg_limit:
            reg = self._out.slot_count
            _check(self._registers[reg] == _UNASSIGNED, "fresh register in use")
            self._out.slot_count += 1
            return reg
        return None

    def _get_register(self) -> int:
        reg = self._get_spare_register()
        if reg is not None:
            _check(self._registers[reg] == _UNASSIGNED, "spare register in use")
            self._lru.poke(reg)
            return reg
        # No spare register: evict the oldest one to memory.
        reg = self._lru.pop()
        mem = self._get_memory()
        prev_node = self._registers[reg]
        self._allocations[prev_node] = mem
        self._registers[reg] = _UNASSIGNED
        self._out.push(Op(OpKind.LOAD, reg, mem))
        return reg

    def _rebind_register(self, n: int, reg: int) -> None:
        _check(self._allocations[n] >= self._reg_limit, "node already in a register")
        _check(self._registers[reg] != _UNASSIGNED, "rebinding a free register")
        prev_node = self._registers[reg]
        self._allocations[prev_node] = _UNASSIGNED
        self._registers[reg] = n
        self._allocations[n] = reg
        self._lru.poke(reg)

    def _bind_register(self, n: int, reg: int) -> None:
        _check(self._allocations[n] >= self._reg_limit, "node already in a register")
        _check(self._registers[reg] == _UNASSIGNED, "binding a used register")
        self._registers[reg] = n
        self._allocations[n] = reg
        self._lru.poke(reg)

    def _release_reg(self, reg: int) -> None:
        _check(reg < self._reg_limit, "releasing a memory slot as a register")
        node = self._registers[reg]
        _check(node != _UNASSIGNED, "releasing a free register")
        self._registers[reg] = _UNASSIGNED
        self._spare_registers.append(reg)
        self._allocations[node] = _UNASSIGNED

    def _release_mem(self, mem: int) -> None:
        _check(mem >= self._reg_limit, "releasing a register as memory")
        self._spare_memory.append(mem)

    def _push_store(self, reg: int, mem: int) -> None:
        self._out.push(Op(OpKind.STORE, reg, mem))
        self._release_mem(mem)

    def _get_out_reg(self, out: int) -> int:
        where, slot = self._get_allocation(out)
        if where is _Where.REGISTER:
            return slot
        if where is _Where.MEMORY:
            r_a = self._get_register()
            self._push_store(r_a, slot)
            self._bind_register(out, r_a)
            return r_a
        raise ValueError(f"output slot {out} is never used by a later operation")

    # Lowering

    def _op_out_only(self, out: int, make) -> None:
        r_x = self._get_out_reg(out)
        self._out.push(make(r_x))
        self._release_reg(r_x)

    def _op_reg_fn(self, out: int, arg: int, make) -> None:
        r_x = self._get_out_reg(out)
        where, slot = self._get_allocation(arg)
        if where is _Where.REGISTER:
            _check(r_x != slot, "output and argument share a register")
            self._out.push(make(r_x, slot))
            self._release_reg(r_x)
        elif where is _Where.MEMORY:
            self._out.push(make(r_x, r_x))
            self._rebind_register(arg, r_x)
            self._push_store(r_x, slot)
        else:
            self._out.push(make(r_x, r_x))
            self._rebind_register(arg, r_x)

    def _op_reg_reg(self, op: SsaOp) -> None:
        vm_kind = _REG_REG[op.kind]
        out, lhs, rhs = op.out, op.lhs, op.rhs

        def make(o: int, a: int, b: int) -> Op:
            return Op(vm_kind, o, a, b)

        r_x = self._get_out_reg(out)
        lhs_where, lhs_slot = self._get_allocation(lhs)
        rhs_where, rhs_slot = self._get_allocation(rhs)
        reg, mem, free = _Where.REGISTER, _Where.MEMORY, _Where.UNASSIGNED

        if lhs_where is reg and rhs_where is reg:
            self._out.push(make(r_x, lhs_slot, rhs_slot))
            self._release_reg(r_x)
        elif lhs_where is mem and rhs_where is reg:
            self._out.push(make(r_x, r_x, rhs_slot))
            self._rebind_register(lhs, r_x)
            self._push_store(r_x, lhs_slot)
        elif lhs_where is reg and rhs_where is mem:
            self._out.push(make(r_x, lhs_slot, r_x))
            self._rebind_register(rhs, r_x)
            self._push_store(r_x, rhs_slot)
        elif lhs_where is mem and rhs_where is mem:
            r_a = r_x if lhs == rhs else self._get_register()
            self._out.push(make(r_x, r_x, r_a))
            self._rebind_register(lhs, r_x)
            if lhs != rhs:
                self._bind_register(rhs, r_a)
            self._push_store(r_x, lhs_slot)
            if lhs != rhs:
                self._push_store(r_a, rhs_slot)
        elif lhs_where is free and rhs_where is reg:
            self._out.push(make(r_x, r_x, rhs_slot))
            self._rebind_register(lhs, r_x)
        elif lhs_where is reg and rhs_where is free:
            self._out.push(make(r_x, lhs_slot, r_x))
            self._rebind_register(rhs, r_x)
        elif lhs_where is free and rhs_where is free:
            r_a = r_x if lhs == rhs else self._get_register()
            self._out.push(make(r_x, r_x, r_a))
            self._rebind_register(lhs, r_x)
            if lhs != rhs:
                self._bind_register(rhs, r_a)
        elif lhs_where is free and rhs_where is mem:
            r_a = self._get_register()
            _check(r_a != r_x, "scratch register equals output register")
            self._out.push(make(r_x, r_x, r_a))
            self._rebind_register(lhs, r_x)
            if lhs != rhs:
                self._bind_register(rhs, r_a)
            self._push_store(r_a, rhs_slot)
        else:  # lhs in memory, rhs unassigned
            r_a = self._get_register()
            _check(r_a != r_x, "scratch register equals output register")
            self._out.push(make(r_x, r_a, r_x))
            self._bind_register(lhs, r_a)
            if lhs != rhs:
                self._rebind_register(rhs, r_x)
            self._push_store(r_a, lhs_slot)