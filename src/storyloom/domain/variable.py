"""Tagged variable values shared by scripts and the runtime."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from storyloom.core.types import VariableKind

PyValue = Union[bool, int, float, str]

NUMERIC_KINDS: tuple[VariableKind, ...] = ("int", "float")


@dataclass(frozen=True, slots=True)
class Variable:
    """A value whose variant is fixed once declared.

    Divert targets keep their address as a dotted ``knot.stitch`` string.
    """

    kind: VariableKind
    value: PyValue

    @classmethod
    def from_value(cls, value: "PyValue | Variable") -> "Variable":
        """Wrap a plain Python value; bool is checked before int."""
        if isinstance(value, Variable):
            return value
        if isinstance(value, bool):
            return cls("bool", value)
        if isinstance(value, int):
            return cls("int", value)
        if isinstance(value, float):
            return cls("float", value)
        if isinstance(value, str):
            return cls("string", value)
        raise TypeError(f"unsupported variable value: {value!r}")

    @classmethod
    def divert(cls, target: str) -> "Variable":
        return cls("divert", target)

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    def is_truthy(self) -> bool:
        if self.kind == "bool":
            return bool(self.value)
        if self.kind in NUMERIC_KINDS:
            return self.value != 0
        return bool(self.value)

    def to_text(self) -> str:
        """Render the value the way it appears in story text."""
        if self.kind == "bool":
            return "true" if self.value else "false"
        if self.kind == "float":
            return format_float(float(self.value))
        return str(self.value)

    def to_python(self) -> PyValue:
        return self.value


def format_float(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)

