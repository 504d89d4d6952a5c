"""
asm_capture – command-line interface
====================================

Usage
-----
::

    python -m asm_capture.cli SOURCE [OPTIONS]

``SOURCE`` is a JSON Lines event log (see :mod:`asm_capture.events`), or an
assembly file when ``--parser`` is given.

Options
-------
--output, -o          Output file path (default: stdout).
--format, -f          Output format: ``json`` (default) or ``text``.
--graph               Emit the label reference graph instead: dot, json or mermaid.
--parser [EXE]        Run an external parser on SOURCE (EXE defaults to
                      ``$ASM_CAPTURE_PARSER``).
--target NAME         Built-in register table: aarch64, riscv or generic.
--registers FILE      JSON register table (list or id → name object).
--line-offset N       Subtracted from reported lines (default 1).
--indent N            JSON indentation (default 2).
--print-labels        Print attached labels in assembler syntax (quoted when needed).
--trace               Echo every captured event to stderr.
--verbose, -v         Enable DEBUG logging.

Examples
--------
::

    python -m asm_capture.cli session.jsonl
    python -m asm_capture.cli session.jsonl --target aarch64 -f text
    python -m asm_capture.cli session.jsonl --graph dot -o labels.dot
    python -m asm_capture.cli prog.s --parser ./build/aarch64-parser
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .events import EventLogError, read_event_log
from .models import LINE_OFFSET, InstructionStream, format_operand
from .output.label_graph import build_label_graph
from .pipeline.replay import replay
from .pipeline.runner import ParserRunError, ParserRunner
from .streamer.capture_listener import CaptureListener
from .streamer.target import TargetInfo, get_target, load_target

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="asm_capture",
        description="asm_capture – capture assembler events into an instruction IR",
    )
    p.add_argument("source", help="Event log (JSON Lines), or assembly file with --parser")
    p.add_argument(
        "--output", "-o",
        default="-",
        metavar="FILE",
        help="Output file (default: stdout)",
    )
    p.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    p.add_argument(
        "--graph",
        choices=["dot", "json", "mermaid"],
        default="",
        metavar="FMT",
        help="Emit the label reference graph instead of the stream: dot, json, or mermaid",
    )
    p.add_argument(
        "--parser",
        nargs="?",
        const="",
        default=None,
        metavar="EXE",
        help=(
            "Treat SOURCE as assembly and run it through an external parser. "
            "Without EXE the ASM_CAPTURE_PARSER environment variable is used."
        ),
    )
    p.add_argument(
        "--target",
        default="generic",
        metavar="NAME",
        help="Built-in register table: aarch64, riscv, or generic (default)",
    )
    p.add_argument(
        "--registers",
        default="",
        metavar="FILE",
        help="JSON register table overriding --target",
    )
    p.add_argument(
        "--line-offset",
        type=int,
        default=LINE_OFFSET,
        metavar="N",
        help=f"Subtracted from decoder-reported lines (default: {LINE_OFFSET})",
    )
    p.add_argument(
        "--indent",
        type=int,
        default=2,
        metavar="N",
        help="JSON indentation (default: 2)",
    )
    p.add_argument(
        "--print-labels",
        action="store_true",
        help="Quote attached label names that are not bare identifiers",
    )
    p.add_argument(
        "--trace",
        action="store_true",
        help="Echo each captured label / instruction to stderr",
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return p


def _format_text(stream: InstructionStream, line_offset: int) -> str:
    lines: List[str] = []
    for instr in stream:
        line = max(instr.line - line_offset, 0)
        for label in instr.labels:
            lines.append(f"{line:>5}  {label.name}:")
        operands = ", ".join(format_operand(op) for op in instr.operands)
        lines.append(f"{line:>5}      {instr.opcode:<10} {operands}".rstrip())
    return "\n".join(lines)


def _stderr_trace(line: str) -> None:
    print(line, file=sys.stderr)


def _load_target(args: argparse.Namespace) -> TargetInfo:
    if args.registers:
        return load_target(args.registers)
    return get_target(args.target)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    errors: List[str] = []
    if args.parser is not None and args.trace:
        errors.append("--trace cannot be combined with --parser")
    if args.parser is not None and args.print_labels:
        errors.append("--print-labels cannot be combined with --parser")
    if args.indent < 0:
        errors.append("--indent must not be negative")
    # The external parser names its own registers.
    target: Optional[TargetInfo] = None
    if args.parser is None:
        try:
            target = _load_target(args)
        except (OSError, ValueError) as exc:
            errors.append(str(exc))
    if errors:
        for e in errors:
            print(f"error: {e}", file=sys.stderr)
        return 2

    # ------------------------------------------------------------------
    # Build the stream
    # ------------------------------------------------------------------
    if args.parser is not None:
        runner = ParserRunner(args.parser or None)
        try:
            stream = runner.parse_file(args.source, args.line_offset)
        except (ParserRunError, OSError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
    else:
        listener = CaptureListener(
            target=target,
            trace=_stderr_trace if args.trace else None,
            line_offset=args.line_offset,
            print_labels=args.print_labels,
        )
        try:
            replay(read_event_log(args.source), listener)
        except (EventLogError, OSError) as exc:
            print(f"error: {args.source}: {exc}", file=sys.stderr)
            return 1
        if listener.dropped_operands:
            logger.info("%d untracked operand(s) dropped", listener.dropped_operands)
        if listener.pending_labels:
            logger.warning(
                "%d label(s) after the last instruction were not attached: %s",
                len(listener.pending_labels),
                ", ".join(label.name for label in listener.pending_labels),
            )
        stream = listener.instructions

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------
    if args.graph:
        graph = build_label_graph(stream)
        if args.graph == "dot":
            output_text = graph.to_dot()
        elif args.graph == "mermaid":
            output_text = graph.to_mermaid()
        else:
            output_text = graph.to_json_str(args.indent)
        for name in graph.undefined_labels():
            logger.warning("Label referenced but never defined: %s", name)
    elif args.format == "json":
        output_text = stream.to_json_str(args.indent, args.line_offset)
    else:
        output_text = _format_text(stream, args.line_offset)

    if args.output == "-":
        print(output_text)
    else:
        Path(args.output).write_text(output_text, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
