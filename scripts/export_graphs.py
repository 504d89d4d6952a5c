"""
export_graphs.py
================

Capture one or more recorded event logs and write, for each, under
``outputs/graphs/<log-stem>/``:

* ``stream.json`` – the rendered instruction stream
* ``labels.dot``  – Graphviz DOT source (render with ``dot -Tsvg -o labels.svg labels.dot``)
* ``labels.json`` – machine-readable label graph
* ``labels.mmd``  – Mermaid flowchart

Usage
-----
    python scripts/export_graphs.py \\
        --sources tests/fixtures/loop.jsonl tests/fixtures/program.jsonl \\
        --target aarch64 \\
        --output-dir outputs/graphs
"""
from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from asm_capture.output.label_graph import build_label_graph
from asm_capture.pipeline.replay import capture_file
from asm_capture.streamer.target import get_target


def _try_render_svg(dot_path: Path) -> None:
    """Try to render the DOT file to SVG via Graphviz if available."""
    try:
        svg_path = dot_path.with_suffix(".svg")
        subprocess.run(
            ["dot", "-Tsvg", str(dot_path), "-o", str(svg_path)],
            check=True,
            capture_output=True,
        )
        print(f"    rendered {svg_path}")
    except (FileNotFoundError, subprocess.CalledProcessError):
        pass  # Graphviz not installed


def export_one(source: str, target_name: str, output_dir: Path, render_svg: bool) -> None:
    stem = Path(source).stem
    dest = output_dir / stem
    dest.mkdir(parents=True, exist_ok=True)

    listener = capture_file(source, target=get_target(target_name))
    graph = build_label_graph(listener.instructions)

    print(f"  instrs  : {len(listener.instructions)}  dropped operands: {listener.dropped_operands}")
    print(f"  blocks  : {len(graph.nodes()) - len(graph.undefined_labels())}"
          f"  undefined: {len(graph.undefined_labels())}")

    stream_path = dest / "stream.json"
    stream_path.write_text(listener.render_json(), encoding="utf-8")
    print(f"  wrote   : {stream_path}")

    dot_path = dest / "labels.dot"
    dot_path.write_text(graph.to_dot(title=f"{stem} – Label references"), encoding="utf-8")
    print(f"  wrote   : {dot_path}")
    if render_svg:
        _try_render_svg(dot_path)

    json_path = dest / "labels.json"
    json_path.write_text(graph.to_json_str(), encoding="utf-8")
    print(f"  wrote   : {json_path}")

    mmd_path = dest / "labels.mmd"
    mmd_path.write_text(graph.to_mermaid(title=f"{stem} label references"), encoding="utf-8")
    print(f"  wrote   : {mmd_path}")


def main() -> None:
    p = argparse.ArgumentParser(
        description="Export captured instruction streams and label graphs"
    )
    p.add_argument("--sources", "-s", nargs="+", required=True, metavar="FILE",
                   help="Event log file(s) (JSON Lines)")
    p.add_argument("--target", "-t", default="generic", metavar="NAME")
    p.add_argument("--output-dir", "-o", default="outputs/graphs", metavar="DIR")
    p.add_argument("--render-svg", action="store_true",
                   help="Attempt to auto-render DOT → SVG via Graphviz")
    args = p.parse_args()

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for src in args.sources:
        print(f"\n=== {src} ===")
        export_one(src, args.target, out, args.render_svg)


if __name__ == "__main__":
    main()
