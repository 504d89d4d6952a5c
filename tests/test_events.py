"""
Tests for the event records and the JSON Lines event log.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from asm_capture.events import (
    CommonSymbolEvent,
    EventLogError,
    InstructionEvent,
    LabelEvent,
    RawOperand,
    SourceLocation,
    SymbolAttributeEvent,
    ZeroFillEvent,
    event_from_dict,
    parse_event_log,
    read_event_log,
    write_event_log,
)

FIXTURES = Path(__file__).parent / "fixtures"


class TestRawOperand:
    def test_kind_predicates(self):
        assert RawOperand("imm", 1).is_imm
        assert RawOperand("reg", "x0").is_reg
        assert RawOperand("expr", "loop", "symbol_ref").is_symbol_ref

    def test_non_symbol_expression(self):
        assert not RawOperand("expr", "a+4", "binary").is_symbol_ref

    def test_dict_omits_missing_expr_kind(self):
        assert RawOperand("imm", 7).to_dict() == {"kind": "imm", "value": 7}

    def test_from_dict(self):
        raw = RawOperand.from_dict({"kind": "expr", "expr_kind": "symbol_ref", "value": "l"})
        assert raw == RawOperand("expr", "l", "symbol_ref")

    @pytest.mark.parametrize("data", [
        {"kind": "vreg", "value": 1},
        {"kind": "expr", "expr_kind": "lambda", "value": "x"},
        {"kind": "imm", "value": 1.5},
        {"kind": "imm", "value": "4"},
        {"kind": "imm", "value": True},
        {"kind": "imm"},
    ])
    def test_from_dict_rejects_malformed(self, data):
        with pytest.raises(ValueError):
            RawOperand.from_dict(data)

    def test_malformed_operand_reports_line(self):
        text = (
            '{"event": "label", "name": "a"}\n'
            '{"event": "instruction", "opcode": "MOV", '
            '"operands": [{"kind": "imm", "value": 2.5}]}'
        )
        with pytest.raises(EventLogError) as info:
            list(parse_event_log(text))
        assert info.value.line_number == 2


class TestEventFromDict:
    def test_label(self):
        event = event_from_dict({"event": "label", "name": "loop", "line": 3, "column": 2})
        assert event == LabelEvent("loop", SourceLocation(3, 2))

    def test_label_without_location(self):
        event = event_from_dict({"event": "label", "name": "loop"})
        assert event.location == SourceLocation(0, 0)

    def test_instruction(self):
        event = event_from_dict({
            "event": "instruction",
            "opcode": "ADD",
            "operands": [{"kind": "reg", "value": "x0"}, {"kind": "imm", "value": 4}],
            "line": 10,
            "column": 1,
        })
        assert isinstance(event, InstructionEvent)
        assert event.operands == [RawOperand("reg", "x0"), RawOperand("imm", 4)]
        assert event.location == SourceLocation(10, 1)

    def test_pass_through_events(self):
        assert event_from_dict(
            {"event": "symbol_attribute", "symbol": "main", "attribute": "global"}
        ) == SymbolAttributeEvent("main", "global")
        assert event_from_dict(
            {"event": "common_symbol", "symbol": "buf", "size": 64, "alignment": 8}
        ) == CommonSymbolEvent("buf", 64, 8)
        assert event_from_dict(
            {"event": "zerofill", "section": "__bss"}
        ) == ZeroFillEvent("__bss")

    def test_unknown_event(self):
        assert event_from_dict({"event": "section_switch"}) is None

    def test_missing_required_field(self):
        with pytest.raises(KeyError):
            event_from_dict({"event": "instruction"})

    @pytest.mark.parametrize("event", [
        LabelEvent("loop", SourceLocation(1, 1)),
        InstructionEvent("B", [RawOperand("expr", "loop", "symbol_ref")], SourceLocation(2, 5)),
        SymbolAttributeEvent("main", "global"),
        CommonSymbolEvent("buf", 64, 8),
        ZeroFillEvent("__bss", "z", 16, 4, SourceLocation(9, 1)),
    ])
    def test_to_dict_inverts_from_dict(self, event):
        assert event_from_dict(event.to_dict()) == event


class TestEventLog:
    def test_skips_blank_and_comment_lines(self):
        text = '\n# comment\n{"event": "label", "name": "a"}\n\n'
        assert list(parse_event_log(text)) == [LabelEvent("a")]

    def test_preserves_order(self):
        events = read_event_log(FIXTURES / "loop.jsonl")
        assert [type(e).__name__ for e in events] == [
            "LabelEvent", "InstructionEvent", "InstructionEvent",
        ]

    def test_invalid_json_reports_line(self):
        with pytest.raises(EventLogError) as info:
            read_event_log(FIXTURES / "broken.jsonl")
        assert info.value.line_number == 2
        assert "line 2" in str(info.value)

    def test_non_object_line(self):
        with pytest.raises(EventLogError):
            list(parse_event_log("[1, 2]"))

    def test_malformed_event(self):
        with pytest.raises(EventLogError) as info:
            list(parse_event_log('{"event": "label"}'))
        assert "label" in str(info.value)

    def test_unknown_event_skipped_with_warning(self, caplog):
        text = '{"event": "cfi_startproc"}\n{"event": "label", "name": "a"}'
        with caplog.at_level(logging.WARNING, logger="asm_capture.events"):
            events = list(parse_event_log(text))
        assert events == [LabelEvent("a")]
        assert "cfi_startproc" in caplog.text

    def test_write_then_read(self, tmp_path):
        events = read_event_log(FIXTURES / "program.jsonl")
        out = tmp_path / "copy.jsonl"
        write_event_log(events, out)
        assert read_event_log(out) == events
