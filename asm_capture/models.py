"""
Core data models for the capture IR.

An :class:`InstructionStream` is an append-only list of :class:`Instruction`
records.  Each instruction carries the labels that preceded it in the source,
its decoded operands and the decoder-reported source location.

Operands form a closed union of three frozen dataclasses:

==============  ===========  =============================================
Variant         ``type``     ``value``
==============  ===========  =============================================
``Register``    register     display name of the register (``"x0"``)
``Integer``     integer      signed immediate constant
``Label``       label        symbolic reference (branch target, data symbol)
==============  ===========  =============================================
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Tuple, Union

# The decoder's line counter runs one ahead of the logical source line by the
# time an instruction event fires.
LINE_OFFSET = 1


# ---------------------------------------------------------------------------
# Operand variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Register:
    """A physical or virtual register, by display name."""

    name: str


@dataclass(frozen=True)
class Integer:
    """A decoded immediate constant."""

    value: int


@dataclass(frozen=True)
class Label:
    """A symbolic reference, or a label attached to an instruction."""

    name: str


Operand = Union[Register, Integer, Label]

# Immediates are signed 64-bit.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def operand_to_dict(operand: Operand) -> Dict[str, Any]:
    """Serialise *operand* to its tagged ``{"type", "value"}`` form."""
    if isinstance(operand, Register):
        return {"type": "register", "value": operand.name}
    if isinstance(operand, Integer):
        return {"type": "integer", "value": operand.value}
    if isinstance(operand, Label):
        return {"type": "label", "value": operand.name}
    raise TypeError(f"not an operand: {operand!r}")


def operand_from_dict(data: Dict[str, Any]) -> Operand:
    """Inverse of :func:`operand_to_dict`."""
    kind = data.get("type")
    value = data.get("value")
    if kind == "register":
        return Register(str(value))
    if kind == "integer":
        return Integer(int(value))
    if kind == "label":
        return Label(str(value))
    raise ValueError(f"unknown operand type {kind!r}")


def format_operand(operand: Operand) -> str:
    """Assembly-ish text for one operand, as printed in dumps."""
    if isinstance(operand, Integer):
        return str(operand.value)
    if isinstance(operand, (Register, Label)):
        return operand.name
    raise TypeError(f"not an operand: {operand!r}")


# ---------------------------------------------------------------------------
# Instruction
# ---------------------------------------------------------------------------


@dataclass
class Instruction:
    """
    One captured instruction.

    ``labels`` and ``operands`` are copied into tuples on construction, so the
    caller may keep reusing its own buffers.  The location is not part of the
    constructor: call :meth:`set_location` before handing the record on.
    """

    opcode: str
    labels: Tuple[Label, ...] = ()
    operands: Tuple[Operand, ...] = ()
    line: int = 0
    column: int = 0

    def __post_init__(self) -> None:
        self.labels = tuple(self.labels)
        self.operands = tuple(self.operands)

    def set_location(self, line: int, column: int) -> None:
        self.line = line
        self.column = column

    @property
    def label_names(self) -> List[str]:
        return [label.name for label in self.labels]

    def __repr__(self) -> str:
        return (
            f"Instruction(opcode={self.opcode!r}, labels={self.label_names}, "
            f"operands={len(self.operands)}, line={self.line}, column={self.column})"
        )

    def to_dict(self, line_offset: int = LINE_OFFSET) -> Dict[str, Any]:
        return {
            "opcode": self.opcode,
            "labels": self.label_names,
            "operands": [operand_to_dict(op) for op in self.operands],
            "line": max(self.line - line_offset, 0),
            "column": self.column,
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], line_offset: int = LINE_OFFSET
    ) -> "Instruction":
        instr = cls(
            opcode=data["opcode"],
            labels=[Label(name) for name in data.get("labels", [])],
            operands=[operand_from_dict(op) for op in data.get("operands", [])],
        )
        instr.set_location(
            int(data.get("line", 0)) + line_offset, int(data.get("column", 0))
        )
        return instr

    def to_text(self) -> str:
        """``OPCODE op1 op2 ...`` – the one-line dump form."""
        return " ".join([self.opcode] + [format_operand(op) for op in self.operands])


# ---------------------------------------------------------------------------
# Instruction stream
# ---------------------------------------------------------------------------


class InstructionStream:
    """
    Append-only, source-ordered sequence of instructions.

    Records are only ever added through :meth:`push`; :attr:`instructions`
    is a read-only tuple view.
    """

    def __init__(self) -> None:
        self._instructions: List[Instruction] = []

    @property
    def instructions(self) -> Tuple[Instruction, ...]:
        return tuple(self._instructions)

    def push(self, instruction: Instruction) -> None:
        self._instructions.append(instruction)

    def __len__(self) -> int:
        return len(self._instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self._instructions[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InstructionStream):
            return NotImplemented
        return self._instructions == other._instructions

    def __repr__(self) -> str:
        return f"InstructionStream(instructions={len(self._instructions)})"

    def to_dict(self, line_offset: int = LINE_OFFSET) -> Dict[str, Any]:
        return {
            "instructions": [i.to_dict(line_offset) for i in self._instructions]
        }

    def to_json_str(self, indent: int = 2, line_offset: int = LINE_OFFSET) -> str:
        return json.dumps(self.to_dict(line_offset), indent=indent)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], line_offset: int = LINE_OFFSET
    ) -> "InstructionStream":
        stream = cls()
        for item in data.get("instructions", []):
            stream.push(Instruction.from_dict(item, line_offset))
        return stream

    @classmethod
    def from_instructions(cls, instructions: Iterable[Instruction]) -> "InstructionStream":
        stream = cls()
        for instr in instructions:
            stream.push(instr)
        return stream

    def opcodes(self) -> List[str]:
        return [i.opcode for i in self._instructions]
