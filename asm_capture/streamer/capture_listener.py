"""
CaptureListener
===============

Consumes the event stream of an external assembly parser and accumulates an
:class:`~asm_capture.models.InstructionStream`.

Event handling:

+-----------------------+--------------------------------------------------+
| Event                 | Effect                                           |
+=======================+==================================================+
| ``emit_label``        | Append the label to the pending-labels buffer.   |
+-----------------------+--------------------------------------------------+
| ``emit_instruction``  | Classify operands, build an ``Instruction`` that |
|                       | takes every pending label, stamp its location,   |
|                       | push it, clear the buffer.                       |
+-----------------------+--------------------------------------------------+
| ``emit_symbol_        | Acknowledged, no effect on the IR.               |
| attribute`` /         |                                                  |
| ``emit_common_        |                                                  |
| symbol`` /            |                                                  |
| ``emit_zerofill``     |                                                  |
+-----------------------+--------------------------------------------------+

Operand classification:

* ``imm``                    → :class:`~asm_capture.models.Integer`
  (signed 64-bit ``int`` only)
* ``reg``                  → :class:`~asm_capture.models.Register`
  (named by the target)
* ``expr`` / ``symbol_ref``  → :class:`~asm_capture.models.Label`
  (printed by the target)
* anything else              → dropped and counted in ``dropped_operands``

The listener is single-threaded: events must be delivered in source order
from one thread, and :meth:`render` must not run concurrently with delivery.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..events import RawOperand, SourceLocation
from ..models import (
    INT64_MAX,
    INT64_MIN,
    LINE_OFFSET,
    Instruction,
    InstructionStream,
    Integer,
    Label,
    Operand,
    Register,
)
from .target import TargetInfo

logger = logging.getLogger(__name__)

Location = Union[SourceLocation, Tuple[int, int], None]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce_location(location: Location) -> SourceLocation:
    if location is None:
        return SourceLocation()
    if isinstance(location, SourceLocation):
        return location
    line, column = location
    return SourceLocation(line, column)


class CaptureListener:
    """
    Event sink that captures decoded instructions into an IR stream.

    Parameters
    ----------
    target:
        Register / symbol naming service.  Defaults to a generic target that
        passes named registers through and names numeric ids ``r<id>``.
    trace:
        Optional callable receiving one text line per event, in the
        ``;; label: NAME`` / ``OPCODE op op`` dump format.
    line_offset:
        Subtracted from each reported line when rendering.
    print_labels:
        Print attached label names through :meth:`TargetInfo.symbol_name`
        (quoting names that are not bare identifiers).  Off by default, so
        attached labels keep the name the decoder reported.
    """

    def __init__(
        self,
        target: Optional[TargetInfo] = None,
        trace: Optional[Callable[[str], None]] = None,
        line_offset: int = LINE_OFFSET,
        print_labels: bool = False,
    ) -> None:
        self.target = target or TargetInfo()
        self.trace = trace
        self.line_offset = line_offset
        self.print_labels = print_labels
        self.instructions = InstructionStream()
        self._pending_labels: List[Label] = []
        #: Operands the decoder reported but this IR does not track.
        self.dropped_operands = 0

    def __repr__(self) -> str:
        return (
            f"CaptureListener(target={self.target.name!r}, "
            f"instructions={len(self.instructions)}, "
            f"pending_labels={len(self._pending_labels)})"
        )

    @property
    def pending_labels(self) -> Tuple[Label, ...]:
        """Labels seen since the last instruction, oldest first."""
        return tuple(self._pending_labels)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def emit_label(self, name: str, location: Location = None) -> bool:
        label = Label(self.target.symbol_name(name) if self.print_labels else name)
        self._pending_labels.append(label)
        self._emit_trace(f";; label: {label.name}")
        return True

    def emit_instruction(
        self,
        opcode: str,
        operands: Iterable[RawOperand] = (),
        location: Location = None,
    ) -> bool:
        captured: List[Operand] = []
        for raw in operands:
            operand = self._classify(raw)
            if operand is None:
                self.dropped_operands += 1
                logger.debug("Dropping %s operand of %s: %r", raw.kind, opcode, raw.value)
                continue
            captured.append(operand)

        instr = Instruction(opcode, self._pending_labels, captured)
        loc = _coerce_location(location)
        instr.set_location(loc.line, loc.column)
        self.instructions.push(instr)
        self._pending_labels = []

        self._emit_trace(instr.to_text())
        return True

    def emit_symbol_attribute(self, symbol: str, attribute: Any = None) -> bool:
        return True

    def emit_common_symbol(self, symbol: str, size: int = 0, byte_alignment: int = 1) -> None:
        return None

    def emit_zerofill(
        self,
        section: str,
        symbol: Optional[str] = None,
        size: int = 0,
        byte_alignment: int = 1,
        location: Location = None,
    ) -> None:
        return None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> Dict[str, Any]:
        """Serialised tree of everything captured so far."""
        return self.instructions.to_dict(self.line_offset)

    def render_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.render(), indent=indent)

    def dump_instructions(self) -> str:
        """The captured stream in the one-line-per-construct dump format."""
        lines: List[str] = []
        for instr in self.instructions:
            lines.extend(f";; label: {label.name}" for label in instr.labels)
            lines.append(instr.to_text())
        lines.extend(f";; label: {label.name}" for label in self._pending_labels)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _classify(self, raw: RawOperand) -> Optional[Operand]:
        value = raw.value
        if raw.is_imm:
            if not _is_int(value) or not INT64_MIN <= value <= INT64_MAX:
                return None
            return Integer(value)
        if raw.is_reg:
            if not (_is_int(value) or isinstance(value, str)):
                return None
            return Register(self.target.register_name(value))
        if raw.is_symbol_ref:
            if not isinstance(value, str):
                return None
            return Label(self.target.symbol_name(value))
        return None

    def _emit_trace(self, line: str) -> None:
        if self.trace is not None:
            self.trace(line)
