"""Exceptions raised while building and evaluating shapes."""

from __future__ import annotations


class ShapeError(Exception):
    """Base class for every error raised by this package."""


class _FixedMessageError(ShapeError):
    """A shape error whose message never changes."""

    message = ""

    def __init__(self) -> None:
        super().__init__(self.message)


class BadNode(_FixedMessageError):
    """A node handle does not belong to the context it was used with."""

    message = "node is not present in this `Context`"


class BadVar(_FixedMessageError):
    """A variable handle does not belong to the context it was used with."""

    message = "variable is not present in this `Context`"


class EmptyContext(_FixedMessageError):
    """The context holds no nodes."""

    message = "`Context` is empty"


class EmptyMap(_FixedMessageError):
    """An index map holds no entries."""

    message = "`IndexMap` is empty"


class UnknownOpcode(ShapeError):
    """An opcode name could not be recognised."""

    def __init__(self, opcode: str) -> None:
        self.opcode = opcode
        super().__init__(f"unknown opcode {opcode}")


class UnknownVariable(ShapeError):
    """A variable name could not be recognised."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown variable {name}")


class EmptyFile(_FixedMessageError):
    """An input file had no content."""

    message = "empty file"


class BadChoiceSlice(ShapeError):
    """The choice buffer length does not match the tape's choice count."""

    def __init__(self, got: int, expected: int) -> None:
        self.got = got
        self.expected = expected
        super().__init__(
            f"choice slice length ({got}) does not match choice count ({expected})"
        )


class MismatchedSlices(_FixedMessageError):
    """Input sequences passed together have different lengths."""

    message = "slice lengths are mismatched"


class BadVarSlice(ShapeError):
    """The variable buffer length does not match the tape's variable count."""

    def __init__(self, got: int, expected: int) -> None:
        self.got = got
        self.expected = expected
        super().__init__(
            f"var slice length ({got}) does not match var count ({expected})"
        )


class ReservedName(_FixedMessageError):
    """A name reserved for the 3D coordinates was used."""

    message = "this name is reserved for 3D coordinates"


class DuplicateName(_FixedMessageError):
    """A name was used more than once."""

    message = "this name has already been used"