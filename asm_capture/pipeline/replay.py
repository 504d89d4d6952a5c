"""
Event replay
============

Drives a :class:`~asm_capture.streamer.capture_listener.CaptureListener`
from recorded :mod:`~asm_capture.events` records, in order, exactly as the
live parser would have.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from ..events import (
    CommonSymbolEvent,
    Event,
    InstructionEvent,
    LabelEvent,
    SymbolAttributeEvent,
    ZeroFillEvent,
    read_event_log,
)
from ..models import LINE_OFFSET
from ..streamer.capture_listener import CaptureListener
from ..streamer.target import TargetInfo

logger = logging.getLogger(__name__)


def replay(events: Iterable[Event], listener: CaptureListener) -> CaptureListener:
    """Deliver every event in *events* to *listener*; return the listener."""
    count = 0
    for event in events:
        if isinstance(event, LabelEvent):
            listener.emit_label(event.name, event.location)
        elif isinstance(event, InstructionEvent):
            listener.emit_instruction(event.opcode, event.operands, event.location)
        elif isinstance(event, SymbolAttributeEvent):
            listener.emit_symbol_attribute(event.symbol, event.attribute)
        elif isinstance(event, CommonSymbolEvent):
            listener.emit_common_symbol(event.symbol, event.size, event.alignment)
        elif isinstance(event, ZeroFillEvent):
            listener.emit_zerofill(
                event.section, event.symbol, event.size, event.alignment, event.location
            )
        else:
            raise TypeError(f"not an event: {event!r}")
        count += 1

    logger.debug(
        "Replayed %d events: %d instructions, %d dropped operands",
        count,
        len(listener.instructions),
        listener.dropped_operands,
    )
    return listener


def capture_events(
    events: Iterable[Event],
    target: Optional[TargetInfo] = None,
    line_offset: int = LINE_OFFSET,
) -> CaptureListener:
    """Replay *events* into a fresh listener."""
    return replay(events, CaptureListener(target=target, line_offset=line_offset))


def capture_file(
    path: Union[str, Path],
    target: Optional[TargetInfo] = None,
    line_offset: int = LINE_OFFSET,
) -> CaptureListener:
    """Replay the event log at *path* into a fresh listener."""
    listener = capture_events(read_event_log(path), target, line_offset)
    logger.info("Captured %d instructions from %s", len(listener.instructions), path)
    return listener
