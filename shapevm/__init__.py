"""Register-based virtual machine for implicit surface expressions: SSA operations, register allocation and point and batch evaluation."""

__version__ = "0.1.0"
__all__ = ["alloc", "errors", "lru", "op", "point_eval", "slice_eval", "ssa", "tape"]