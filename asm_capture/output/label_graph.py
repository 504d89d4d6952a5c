"""
label_graph.py
==============

Build and render a **label reference graph** from a captured
:class:`~asm_capture.models.InstructionStream`.

Graph semantics
---------------
* **Nodes** – one per label *block*.  A label attached to an instruction
  starts a new block; instructions before the first label belong to the
  synthetic ``<entry>`` block.  Labels that are referenced as operands but
  never attached to an instruction become *missing* nodes.
* **Edges** – ``reference`` edges from the block holding an instruction to
  every label that instruction names as an operand (annotated with the
  opcodes), and ``next`` edges between textually consecutive blocks.
  No branch semantics are inferred: a ``next`` edge only records adjacency.
* **Color coding**

  ===========  =======  ==============================================
  Status       Color    Meaning
  ===========  =======  ==============================================
  ``entry``    Blue     Instructions before the first label.
  ``defined``  Green    Label attached to a captured instruction.
  ``missing``  Red      Label referenced but never attached.
  ===========  =======  ==============================================

Outputs
-------
* **DOT** (Graphviz) – renderable with ``dot -Tsvg -o out.svg graph.dot``.
* **JSON** – machine-readable graph.
* **Mermaid** – embeddable in GitHub Markdown.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Set, Tuple

import networkx as nx

from ..models import InstructionStream, Label
from ..streamer.target import unquote_symbol

ENTRY = "<entry>"

# ---------------------------------------------------------------------------
# Colour + shape constants
# ---------------------------------------------------------------------------

_FILL = {
    "entry":   "#2E86AB",   # steel blue
    "defined": "#27AE60",   # emerald green
    "missing": "#E74C3C",   # alizarin red
}
_DOT_STYLE = {
    "entry":   "filled",
    "defined": "filled",
    "missing": "filled,dashed",
}
_DOT_SHAPE = {
    "entry":   "doubleoctagon",
    "defined": "box",
    "missing": "box",
}
_EDGE_COLOR = {
    "defined": "#444444",
    "missing": "#E74C3C",
}


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _mermaid_escape(text: str) -> str:
    return text.replace('"', "#quot;")


class LabelGraph:
    """Wrapper around a :class:`networkx.DiGraph` of label blocks."""

    def __init__(self, graph: nx.DiGraph) -> None:
        self.graph = graph

    def __repr__(self) -> str:
        return (
            f"LabelGraph(nodes={self.graph.number_of_nodes()}, "
            f"edges={self.graph.number_of_edges()})"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def nodes(self, status: str = "") -> List[str]:
        """Node ids in insertion order, optionally filtered by *status*."""
        return [
            n for n, attrs in self.graph.nodes(data=True)
            if not status or attrs["status"] == status
        ]

    def undefined_labels(self) -> List[str]:
        """Labels referenced as operands but never attached, sorted."""
        return sorted(self.nodes("missing"))

    def reachable_from(self, label: str) -> Set[str]:
        """Every block reachable from *label* via reference or next edges."""
        if label not in self.graph:
            return set()
        return set(nx.descendants(self.graph, label))

    def references_to(self, label: str) -> List[str]:
        """Blocks that name *label* as an operand."""
        if label not in self.graph:
            return []
        return sorted(
            src for src, _, attrs in self.graph.in_edges(label, data=True)
            if "reference" in attrs["kinds"]
        )

    # ------------------------------------------------------------------
    # JSON renderer
    # ------------------------------------------------------------------

    def to_json(self) -> Dict[str, Any]:
        """Render the graph as a JSON-serialisable dictionary."""
        return {
            "nodes": [
                {
                    "id": n,
                    "status": attrs["status"],
                    "color": _FILL[attrs["status"]],
                    "instructions": attrs["instructions"],
                }
                for n, attrs in self.graph.nodes(data=True)
            ],
            "edges": [
                {
                    "from": src,
                    "to": dst,
                    "kinds": sorted(attrs["kinds"]),
                    "opcodes": sorted(attrs["opcodes"]),
                    "color": _EDGE_COLOR[self._target_status(dst)],
                }
                for src, dst, attrs in self.graph.edges(data=True)
            ],
        }

    def to_json_str(self, indent: int = 2) -> str:
        return json.dumps(self.to_json(), indent=indent)

    # ------------------------------------------------------------------
    # DOT (Graphviz) renderer
    # ------------------------------------------------------------------

    def to_dot(self, title: str = "Label reference graph") -> str:
        """Render the graph as a Graphviz DOT string."""
        lines: List[str] = [
            'digraph "labels" {',
            f'    label="{title}";',
            '    labelloc=t;',
            '    rankdir=TB;',
            '    node [fontname="Courier New", fontsize=11, margin="0.2,0.1"];',
            '    edge [fontname="Courier New", fontsize=9];',
            '',
        ]

        for n, attrs in self.graph.nodes(data=True):
            status = attrs["status"]
            if status == "missing":
                node_label = f"{_dot_escape(n)}\\n[UNDEFINED]"
            else:
                node_label = f"{_dot_escape(n)}\\n({attrs['instructions']} instr)"
            node_attrs = (
                f'label="{node_label}", '
                f'shape={_DOT_SHAPE[status]}, '
                f'style="{_DOT_STYLE[status]}", '
                f'fillcolor="{_FILL[status]}", '
                f'fontcolor="white"'
            )
            lines.append(f'    "{_dot_escape(n)}" [{node_attrs}];')

        lines.append('')

        for src, dst, attrs in self.graph.edges(data=True):
            color = _EDGE_COLOR[self._target_status(dst)]
            head = f'    "{_dot_escape(src)}" -> "{_dot_escape(dst)}"'
            if "reference" in attrs["kinds"]:
                edge_label = " | ".join(sorted(attrs["opcodes"]))
                lines.append(f'{head} [label="{edge_label}", color="{color}"];')
            else:
                lines.append(f'{head} [color="{color}", style=dotted];')

        lines.append('}')
        return '\n'.join(lines) + '\n'

    # ------------------------------------------------------------------
    # Mermaid renderer
    # ------------------------------------------------------------------

    def to_mermaid(self, title: str = "Label reference graph") -> str:
        """Render the graph as a Mermaid flowchart."""
        lines: List[str] = [
            "---",
            f'title: "{title}"',
            "---",
            "flowchart TD",
        ]

        # Node ids are positional; labels only appear as display text.
        ids = {n: f"n{i}" for i, n in enumerate(self.graph.nodes)}

        for n, attrs in self.graph.nodes(data=True):
            lbl = _mermaid_escape(n)
            if attrs["status"] == "missing":
                lbl += "\\nUNDEFINED"
            lines.append(f'    {ids[n]}["{lbl}"]:::{attrs["status"]}')

        lines.append('')

        for src, dst, attrs in self.graph.edges(data=True):
            if "reference" in attrs["kinds"]:
                opcodes = " | ".join(sorted(attrs["opcodes"]))
                lines.append(f'    {ids[src]} -->|"{opcodes}"| {ids[dst]}')
            else:
                lines.append(f'    {ids[src]} -.-> {ids[dst]}')

        lines.append('')
        lines.append('    classDef entry   fill:#2E86AB,color:#fff,stroke:#1a5276')
        lines.append('    classDef defined fill:#27AE60,color:#fff,stroke:#1e8449')
        lines.append('    classDef missing fill:#E74C3C,color:#fff,stroke:#922b21,stroke-dasharray:5 5')

        return '\n'.join(lines) + '\n'

    # ------------------------------------------------------------------

    def _target_status(self, node: str) -> str:
        return "missing" if self.graph.nodes[node]["status"] == "missing" else "defined"


def _add_edge(g: nx.DiGraph, src: str, dst: str, kind: str, opcode: str = "") -> None:
    if not g.has_edge(src, dst):
        g.add_edge(src, dst, kinds=set(), opcodes=set())
    g.edges[src, dst]["kinds"].add(kind)
    if opcode:
        g.edges[src, dst]["opcodes"].add(opcode)


def build_label_graph(stream: InstructionStream) -> LabelGraph:
    """Build the :class:`LabelGraph` of *stream*."""
    g = nx.DiGraph()
    current = ENTRY
    references: List[Tuple[str, str, str]] = []   # (block, label name, opcode)

    # Operands carry printed symbols ("inner loop" in quotes); nodes are keyed
    # by the raw name so both spellings meet.
    for instr in stream:
        for label in instr.labels:
            name = unquote_symbol(label.name)
            if name not in g:
                g.add_node(name, status="defined", instructions=0)
            if current in g:
                _add_edge(g, current, name, "next")
            current = name

        if current not in g:
            g.add_node(current, status="entry", instructions=0)
        g.nodes[current]["instructions"] += 1

        for op in instr.operands:
            if isinstance(op, Label):
                references.append((current, unquote_symbol(op.name), instr.opcode))

    for block, name, opcode in references:
        if name not in g:
            g.add_node(name, status="missing", instructions=0)
        _add_edge(g, block, name, "reference", opcode)

    return LabelGraph(g)
