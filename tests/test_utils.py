"""Tests for small utility helpers."""

from arbor._utils import alnum_prefix, canonical_json, ensure_tuple


class TestEnsureTuple:
    def test_string_becomes_one_tuple(self):
        assert ensure_tuple("a") == ("a",)

    def test_list_becomes_tuple(self):
        assert ensure_tuple(["a", "b"]) == ("a", "b")

    def test_tuple_passes_through(self):
        assert ensure_tuple(("a",)) == ("a",)


class TestCanonicalJson:
    def test_keys_are_sorted(self):
        assert canonical_json({"z": 1, "a": 2}) == '{"a":2,"z":1}'

    def test_nested_keys_are_sorted(self):
        assert canonical_json({"b": {"y": 1, "x": 2}}) == '{"b":{"x":2,"y":1}}'

    def test_unrepresentable_values_use_str(self):
        class Thing:
            def __str__(self):
                return "thing"

        assert canonical_json({"v": Thing()}) == '{"v":"thing"}'


class TestAlnumPrefix:
    def test_strips_punctuation(self):
        assert alnum_prefix('{"a": "b-c"}', 10) == "abc"

    def test_truncates(self):
        assert alnum_prefix("abcdefghijklmnop", 4) == "abcd"

    def test_empty(self):
        assert alnum_prefix("{}", 10) == ""
