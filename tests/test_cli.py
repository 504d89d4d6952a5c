"""
Tests for the command-line interface.
"""
from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path

import pytest

from asm_capture.cli import main

FIXTURES = Path(__file__).parent / "fixtures"
LOOP = str(FIXTURES / "loop.jsonl")
PROGRAM = str(FIXTURES / "program.jsonl")


class TestStreamOutput:
    def test_json_to_stdout(self, capsys):
        assert main([LOOP]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [i["opcode"] for i in data["instructions"]] == ["ADD", "B"]
        assert data["instructions"][0]["line"] == 9

    def test_output_is_deterministic(self, capsys):
        main([LOOP])
        first = capsys.readouterr().out
        main([LOOP])
        assert capsys.readouterr().out == first

    def test_output_file(self, tmp_path, capsys):
        out = tmp_path / "stream.json"
        assert main([LOOP, "-o", str(out)]) == 0
        assert "Output written" in capsys.readouterr().err
        assert json.loads(out.read_text())["instructions"][1]["labels"] == []

    def test_line_offset_flag(self, capsys):
        main([LOOP, "--line-offset", "0"])
        data = json.loads(capsys.readouterr().out)
        assert data["instructions"][0]["line"] == 10

    def test_target_names_registers(self, capsys):
        main([PROGRAM, "--target", "aarch64"])
        data = json.loads(capsys.readouterr().out)
        assert data["instructions"][0]["operands"][0] == {"type": "register", "value": "sp"}

    def test_registers_file(self, tmp_path, capsys):
        regs = tmp_path / "regs.json"
        regs.write_text(json.dumps({"31": "stack"}))
        main([PROGRAM, "--registers", str(regs)])
        data = json.loads(capsys.readouterr().out)
        assert data["instructions"][0]["operands"][0]["value"] == "stack"
        assert data["instructions"][1]["operands"][0]["value"] == "r0"

    def test_text_format(self, capsys):
        assert main([LOOP, "-f", "text"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "    9  loop:"
        assert out[1].split() == ["9", "ADD", "x0,", "x1,", "4"]
        assert out[2].split() == ["10", "B", "loop"]

    def test_trace_goes_to_stderr(self, capsys):
        main([LOOP, "--trace"])
        err = capsys.readouterr().err
        assert ";; label: loop" in err
        assert "ADD x0 x1 4" in err

    def test_print_labels_flag(self, capsys):
        main([PROGRAM, "--target", "aarch64"])
        plain = json.loads(capsys.readouterr().out)
        assert plain["instructions"][2]["labels"] == ["body", "inner loop"]
        main([PROGRAM, "--target", "aarch64", "--print-labels"])
        printed = json.loads(capsys.readouterr().out)
        assert printed["instructions"][2]["labels"] == ["body", '"inner loop"']


class TestGraphOutput:
    def test_dot(self, capsys):
        assert main([PROGRAM, "--graph", "dot"]) == 0
        assert capsys.readouterr().out.startswith('digraph "labels"')

    def test_json(self, capsys):
        main([PROGRAM, "--graph", "json"])
        data = json.loads(capsys.readouterr().out)
        assert {n["id"] for n in data["nodes"]} >= {"main", "printf"}

    def test_mermaid(self, capsys):
        main([LOOP, "--graph", "mermaid"])
        assert "flowchart TD" in capsys.readouterr().out


class TestErrors:
    def test_broken_event_log(self, capsys):
        assert main([str(FIXTURES / "broken.jsonl")]) == 1
        assert "line 2" in capsys.readouterr().err

    def test_non_integer_immediate(self, tmp_path, capsys):
        log = tmp_path / "bad.jsonl"
        log.write_text(
            '{"event": "instruction", "opcode": "MOV", '
            '"operands": [{"kind": "imm", "value": "four"}]}\n'
        )
        assert main([str(log)]) == 1
        assert "line 1" in capsys.readouterr().err

    def test_missing_source(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.jsonl")]) == 1
        assert "error:" in capsys.readouterr().err

    def test_unknown_target(self, capsys):
        assert main([LOOP, "--target", "z80"]) == 2
        assert "unknown target" in capsys.readouterr().err

    def test_trace_with_parser(self, capsys):
        assert main([LOOP, "--parser", "x", "--trace"]) == 2

    def test_print_labels_with_parser(self, capsys):
        assert main([LOOP, "--parser", "x", "--print-labels"]) == 2
        assert "--print-labels" in capsys.readouterr().err

    def test_bad_format_choice(self):
        with pytest.raises(SystemExit):
            main([LOOP, "-f", "yaml"])


class TestParserMode:
    def test_runs_external_parser(self, tmp_path, capsys):
        script = tmp_path / "parser.py"
        script.write_text(textwrap.dedent("""\
            import json, sys
            sys.stdin.read()
            print(json.dumps({"instructions": [
                {"opcode": "NOP", "labels": ["start"], "operands": [], "line": 0, "column": 1}
            ]}))
        """))
        wrapper = tmp_path / "parser.sh"
        wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}"\n')
        wrapper.chmod(0o755)
        source = tmp_path / "prog.s"
        source.write_text("start: nop\n")

        assert main([str(source), "--parser", str(wrapper)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["instructions"][0]["labels"] == ["start"]
        assert data["instructions"][0]["line"] == 0

    def test_parser_failure(self, tmp_path, capsys):
        source = tmp_path / "prog.s"
        source.write_text("nop\n")
        assert main([str(source), "--parser", str(tmp_path / "nope")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_target_options_ignored(self, tmp_path, capsys):
        source = tmp_path / "prog.s"
        source.write_text("nop\n")
        argv = [
            str(source), "--parser", str(tmp_path / "nope"),
            "--target", "z80", "--registers", str(tmp_path / "missing.json"),
        ]
        assert main(argv) == 1
        err = capsys.readouterr().err
        assert "not found" in err
        assert "unknown target" not in err
