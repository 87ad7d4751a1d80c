"""Tests for CLI formatting utilities."""

from arbor.cli._format import SCHEMA_VERSION, json_envelope, print_table, truncate_value


class TestJsonEnvelope:
    def test_fields(self):
        envelope = json_envelope("stats", {"total_nodes": 3})
        assert envelope["schema_version"] == SCHEMA_VERSION
        assert envelope["command"] == "stats"
        assert envelope["data"] == {"total_nodes": 3}
        assert "generated_at" in envelope


class TestTruncateValue:
    def test_short_string(self):
        assert truncate_value("abc") == "abc"

    def test_long_string(self):
        assert truncate_value("x" * 100, max_chars=10) == "x" * 9 + "…"

    def test_non_string_is_json(self):
        assert truncate_value({"a": 1}) == '{"a": 1}'


class TestPrintTable:
    def test_empty_rows(self):
        assert print_table(["A"], []) == []

    def test_alignment(self):
        lines = print_table(["Name", "Level"], [["apple", "1"], ["kiwi", "10"]])
        assert lines[0] == "  Name   Level"
        assert lines[2] == "  apple      1"
        assert lines[3] == "  kiwi      10"
