"""
Decoder events
==============

Records for the callbacks an external assembly parser delivers to the
capture listener, plus a JSON Lines *event log* format so that a decoder
session can be recorded once and replayed later.

Event log format – one JSON object per line, keyed by ``"event"``::

    {"event": "label", "name": "loop", "line": 10, "column": 1}
    {"event": "instruction", "opcode": "ADD", "line": 10, "column": 1,
     "operands": [{"kind": "reg", "value": "x0"},
                  {"kind": "imm", "value": 4},
                  {"kind": "expr", "expr_kind": "symbol_ref", "value": "loop"}]}
    {"event": "symbol_attribute", "symbol": "main", "attribute": "global"}
    {"event": "common_symbol", "symbol": "buf", "size": 64, "alignment": 8}
    {"event": "zerofill", "section": "__bss", "symbol": "z", "size": 16}

Blank lines and lines starting with ``#`` are ignored.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Raw operand kinds reported by the decoder
# ---------------------------------------------------------------------------

OPERAND_KINDS = {
    "imm",     # integer immediate
    "reg",     # register id or name
    "expr",    # expression; see EXPR_KINDS
    "sfpimm",  # single-precision FP immediate
    "dfpimm",  # double-precision FP immediate
    "inst",    # nested instruction (bundles)
}

EXPR_KINDS = {
    "symbol_ref",
    "binary",
    "constant",
    "unary",
    "target",
}


class EventLogError(ValueError):
    """Raised when an event log line cannot be decoded."""

    def __init__(self, message: str, line_number: int = 0) -> None:
        self.line_number = line_number
        prefix = f"line {line_number}: " if line_number else ""
        super().__init__(prefix + message)


@dataclass(frozen=True)
class SourceLocation:
    """1-based decoder position; ``0, 0`` means the decoder never set one."""

    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class RawOperand:
    """One operand exactly as the decoder reports it, before classification."""

    kind: str
    value: Union[int, str, float, None] = None
    expr_kind: Optional[str] = None

    @property
    def is_imm(self) -> bool:
        return self.kind == "imm"

    @property
    def is_reg(self) -> bool:
        return self.kind == "reg"

    @property
    def is_symbol_ref(self) -> bool:
        return self.kind == "expr" and self.expr_kind == "symbol_ref"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "value": self.value}
        if self.expr_kind is not None:
            data["expr_kind"] = self.expr_kind
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawOperand":
        """
        Decode one operand of a logged instruction event.

        Raises :class:`ValueError` for an unknown ``kind`` / ``expr_kind`` or
        an ``imm`` whose value is not an integer.
        """
        kind = data["kind"]
        value = data.get("value")
        expr_kind = data.get("expr_kind")
        if kind not in OPERAND_KINDS:
            raise ValueError(f"unknown operand kind {kind!r}")
        if expr_kind is not None and expr_kind not in EXPR_KINDS:
            raise ValueError(f"unknown expression kind {expr_kind!r}")
        if kind == "imm" and (not isinstance(value, int) or isinstance(value, bool)):
            raise ValueError(f"imm operand value must be an integer, got {value!r}")
        return cls(kind=kind, value=value, expr_kind=expr_kind)


# ---------------------------------------------------------------------------
# Event records
# ---------------------------------------------------------------------------


def _location_dict(loc: SourceLocation) -> Dict[str, int]:
    return {"line": loc.line, "column": loc.column}


def _location_from(data: Dict[str, Any]) -> SourceLocation:
    return SourceLocation(int(data.get("line", 0)), int(data.get("column", 0)))


@dataclass(frozen=True)
class LabelEvent:
    name: str
    location: SourceLocation = SourceLocation()

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "label", "name": self.name, **_location_dict(self.location)}


@dataclass(frozen=True)
class InstructionEvent:
    opcode: str
    operands: List[RawOperand] = field(default_factory=list)
    location: SourceLocation = SourceLocation()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "instruction",
            "opcode": self.opcode,
            "operands": [op.to_dict() for op in self.operands],
            **_location_dict(self.location),
        }


@dataclass(frozen=True)
class SymbolAttributeEvent:
    symbol: str
    attribute: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "symbol_attribute",
            "symbol": self.symbol,
            "attribute": self.attribute,
        }


@dataclass(frozen=True)
class CommonSymbolEvent:
    symbol: str
    size: int = 0
    alignment: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "common_symbol",
            "symbol": self.symbol,
            "size": self.size,
            "alignment": self.alignment,
        }


@dataclass(frozen=True)
class ZeroFillEvent:
    section: str
    symbol: Optional[str] = None
    size: int = 0
    alignment: int = 1
    location: SourceLocation = SourceLocation()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "zerofill",
            "section": self.section,
            "symbol": self.symbol,
            "size": self.size,
            "alignment": self.alignment,
            **_location_dict(self.location),
        }


Event = Union[
    LabelEvent, InstructionEvent, SymbolAttributeEvent, CommonSymbolEvent, ZeroFillEvent
]


def event_from_dict(data: Dict[str, Any]) -> Optional[Event]:
    """
    Build an event record from its dictionary form.

    Returns ``None`` for an unknown ``"event"`` type.  Raises :class:`KeyError`
    when a required field is missing.
    """
    kind = data.get("event")
    if kind == "label":
        return LabelEvent(data["name"], _location_from(data))
    if kind == "instruction":
        return InstructionEvent(
            opcode=data["opcode"],
            operands=[RawOperand.from_dict(op) for op in data.get("operands", [])],
            location=_location_from(data),
        )
    if kind == "symbol_attribute":
        return SymbolAttributeEvent(data["symbol"], data.get("attribute", ""))
    if kind == "common_symbol":
        return CommonSymbolEvent(
            data["symbol"], int(data.get("size", 0)), int(data.get("alignment", 1))
        )
    if kind == "zerofill":
        return ZeroFillEvent(
            section=data["section"],
            symbol=data.get("symbol"),
            size=int(data.get("size", 0)),
            alignment=int(data.get("alignment", 1)),
            location=_location_from(data),
        )
    return None


# ---------------------------------------------------------------------------
# Event log I/O
# ---------------------------------------------------------------------------


def parse_event_log(text: str) -> Iterator[Event]:
    """Yield the events in *text* (JSON Lines) in order."""
    for number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise EventLogError(f"invalid JSON: {exc.msg}", number) from exc
        if not isinstance(data, dict):
            raise EventLogError("expected a JSON object", number)

        try:
            event = event_from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise EventLogError(
                f"malformed {data.get('event', '?')!r} event: {exc}", number
            ) from exc

        if event is None:
            logger.warning("Skipping unknown event type %r on line %d", data.get("event"), number)
            continue
        yield event


def read_event_log(path: Union[str, Path]) -> List[Event]:
    """Read and decode the event log at *path*."""
    logger.info("Reading event log: %s", path)
    text = Path(path).read_text(encoding="utf-8")
    return list(parse_event_log(text))


def write_event_log(events: Iterable[Event], path: Union[str, Path]) -> None:
    """Write *events* to *path* in the JSON Lines event log format."""
    lines = [json.dumps(event.to_dict()) for event in events]
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
