"""
asm_capture
===========

Capture the instruction/label event stream of an external assembly parser
into a structured, serialisable instruction IR.

Quick start
-----------
>>> from asm_capture import CaptureListener, RawOperand
>>> listener = CaptureListener()
>>> listener.emit_label("loop", (10, 1))
True
>>> listener.emit_instruction(
...     "ADD",
...     [RawOperand("reg", "x0"), RawOperand("reg", "x1"), RawOperand("imm", 4)],
...     (10, 1),
... )
True
>>> listener.render()["instructions"][0]["labels"]
['loop']
"""

from .events import EventLogError, RawOperand, SourceLocation, read_event_log
from .models import Instruction, InstructionStream, Integer, Label, Register
from .output.label_graph import LabelGraph, build_label_graph
from .pipeline.replay import capture_events, capture_file, replay
from .pipeline.runner import ParserRunError, ParserRunner
from .streamer.capture_listener import CaptureListener
from .streamer.target import TargetInfo, get_target

__version__ = "0.1.0"
__all__ = [
    "CaptureListener",
    "EventLogError",
    "Instruction",
    "InstructionStream",
    "Integer",
    "Label",
    "LabelGraph",
    "ParserRunError",
    "ParserRunner",
    "RawOperand",
    "Register",
    "SourceLocation",
    "TargetInfo",
    "build_label_graph",
    "capture_events",
    "capture_file",
    "get_target",
    "read_event_log",
    "replay",
]
