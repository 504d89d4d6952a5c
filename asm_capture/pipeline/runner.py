"""
ParserRunner
============

Runs an external assembly parser executable – one that hosts a capture
listener and prints the rendered tree to stdout – and loads its output back
into an :class:`~asm_capture.models.InstructionStream`.

The executable is taken from the constructor argument or, failing that, the
``ASM_CAPTURE_PARSER`` environment variable.  The assembly source is written
to the child's stdin.
"""
from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..models import LINE_OFFSET, InstructionStream

logger = logging.getLogger(__name__)

PARSER_ENV_VAR = "ASM_CAPTURE_PARSER"


class ParserRunError(RuntimeError):
    """The external parser could not be run or produced unusable output."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        detail = f"\n{stderr.strip()}" if stderr.strip() else ""
        super().__init__(message + detail)


class ParserRunner:
    """
    Parameters
    ----------
    executable:
        Path of the parser binary.  Defaults to ``$ASM_CAPTURE_PARSER``.
    args:
        Extra command-line arguments passed before any per-call arguments.
    timeout:
        Seconds to wait for the parser before giving up (``None`` = forever).
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        args: Sequence[str] = (),
        timeout: Optional[float] = None,
    ) -> None:
        self.executable = executable or os.environ.get(PARSER_ENV_VAR, "")
        self.args: List[str] = list(args)
        self.timeout = timeout

    def run(self, source: Union[str, bytes]) -> str:
        """Feed *source* to the parser and return its stdout."""
        if not self.executable:
            raise ParserRunError(
                f"no parser executable configured (set {PARSER_ENV_VAR} or pass one)"
            )

        data = source.encode("utf-8") if isinstance(source, str) else source
        cmd = [self.executable, *self.args]
        logger.debug("Running parser: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                input=data,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ParserRunError(f"parser executable not found: {self.executable}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ParserRunError(f"parser timed out after {self.timeout}s") from exc

        stderr = proc.stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise ParserRunError(
                f"parser exited with status {proc.returncode}", stderr
            )
        try:
            return proc.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParserRunError("parser output is not valid UTF-8", stderr) from exc

    def parse(
        self, source: Union[str, bytes], line_offset: int = LINE_OFFSET
    ) -> InstructionStream:
        """Run the parser on *source* and load the rendered stream."""
        out = self.run(source)
        try:
            data = json.loads(out)
        except json.JSONDecodeError as exc:
            raise ParserRunError(f"parser output is not valid JSON: {exc.msg}") from exc
        if not isinstance(data, dict) or "instructions" not in data:
            raise ParserRunError("parser output has no 'instructions' list")

        try:
            return InstructionStream.from_dict(data, line_offset)
        except (KeyError, TypeError, ValueError) as exc:
            raise ParserRunError(f"malformed instruction in parser output: {exc}") from exc

    def parse_file(
        self, path: Union[str, Path], line_offset: int = LINE_OFFSET
    ) -> InstructionStream:
        logger.info("Parsing file: %s", path)
        return self.parse(Path(path).read_bytes(), line_offset)
