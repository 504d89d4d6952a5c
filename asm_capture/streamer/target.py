"""
Target naming services.

The capture listener does not know how a particular target names its
registers or prints its symbols; it asks a :class:`TargetInfo`.  Register ids
are looked up in a table, register names already spelled out by the decoder
pass through unchanged.

Symbols are printed the way an assembler prints them: bare when the name is a
valid unquoted identifier, otherwise in double quotes with ``\\`` and ``"``
escaped (``"my label"``).
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

_UNQUOTED_SYMBOL_RE = re.compile(r"^[A-Za-z_.$][A-Za-z0-9_.$@]*$")


def print_symbol(name: str) -> str:
    """Return *name* as an assembler would print it."""
    if _UNQUOTED_SYMBOL_RE.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def unquote_symbol(text: str) -> str:
    """Inverse of :func:`print_symbol`; bare names are returned unchanged."""
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return text
    return re.sub(r'\\(.)', r"\1", text[1:-1])


class TargetInfo:
    """
    Register table plus symbol printer for one target.

    Parameters
    ----------
    name:
        Target name, informational only.
    registers:
        Mapping from numeric register id to display name.
    """

    def __init__(self, name: str = "generic", registers: Optional[Mapping[int, str]] = None) -> None:
        self.name = name
        self._registers: Dict[int, str] = dict(registers or {})

    @classmethod
    def from_names(cls, names: Iterable[str], name: str = "generic") -> "TargetInfo":
        """Build a target whose register ids are the positions in *names*."""
        return cls(name, {idx: reg for idx, reg in enumerate(names)})

    @classmethod
    def from_mapping(cls, mapping: Mapping[Union[int, str], str], name: str = "generic") -> "TargetInfo":
        """Build a target from an id → name mapping (JSON keys may be strings)."""
        return cls(name, {int(k): v for k, v in mapping.items()})

    def __len__(self) -> int:
        return len(self._registers)

    def __repr__(self) -> str:
        return f"TargetInfo(name={self.name!r}, registers={len(self._registers)})"

    def register_name(self, reg: Union[int, str]) -> str:
        """Display name for register *reg* (an id, or an already-named register)."""
        if isinstance(reg, str):
            return reg
        if not isinstance(reg, int) or isinstance(reg, bool):
            raise TypeError(f"register must be an id or a name, got {reg!r}")
        name = self._registers.get(reg)
        if name is None:
            logger.debug("No name for register id %r on target %s", reg, self.name)
            return f"r{reg}"
        return name

    def symbol_name(self, symbol: str) -> str:
        return print_symbol(symbol)


# ---------------------------------------------------------------------------
# Built-in register tables
# ---------------------------------------------------------------------------

AARCH64 = TargetInfo.from_names(
    [f"x{i}" for i in range(31)]
    + ["sp", "xzr"]
    + [f"w{i}" for i in range(31)]
    + ["wsp", "wzr"],
    name="aarch64",
)

RISCV = TargetInfo.from_names(
    [
        "zero", "ra", "sp", "gp", "tp",
        "t0", "t1", "t2",
        "s0", "s1",
        "a0", "a1", "a2", "a3", "a4", "a5", "a6", "a7",
        "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11",
        "t3", "t4", "t5", "t6",
    ],
    name="riscv",
)

TARGETS: Dict[str, TargetInfo] = {
    "aarch64": AARCH64,
    "riscv": RISCV,
    "generic": TargetInfo(),
}


def get_target(name: str) -> TargetInfo:
    """Look up a built-in target by name (case-insensitive)."""
    try:
        return TARGETS[name.lower()]
    except KeyError:
        raise ValueError(
            f"unknown target {name!r} (choose from {', '.join(sorted(TARGETS))})"
        ) from None


def load_target(path: Union[str, Path], name: str = "") -> TargetInfo:
    """
    Load a register table from a JSON file.

    The file holds either a list of names (index = register id) or an object
    mapping ids to names.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    target_name = name or Path(path).stem
    if isinstance(data, list):
        return TargetInfo.from_names(data, name=target_name)
    if isinstance(data, dict):
        return TargetInfo.from_mapping(data, name=target_name)
    raise ValueError(f"{path}: expected a JSON list or object of register names")
