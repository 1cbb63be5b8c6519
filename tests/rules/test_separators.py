from __future__ import annotations

import re

from shble.errors import ErrorKind
from shble.rules.models import NO_SEPARATION, SeparatorSpec
from shble.rules.separators import (
    decode_escapes,
    parse_regex_separator,
    parse_separators,
    split,
)


class TestDecodeEscapes:
    def test_plain_characters(self):
        assert decode_escapes(",;") == [",", ";"]

    def test_known_escapes(self):
        assert decode_escapes("\\n\\t\\r\\s") == ["\n", "\t", "\r", " "]

    def test_unknown_escape_kept_literal(self):
        assert decode_escapes("\\x") == ["\\", "x"]

    def test_trailing_backslash(self):
        assert decode_escapes("a\\") == ["a", "\\"]

    def test_empty(self):
        assert decode_escapes("") == []


class TestParseSeparators:
    def test_empty_means_no_separation(self):
        assert parse_separators("") is NO_SEPARATION

    def test_chars_collected_into_set(self):
        spec = parse_separators(",,;")
        assert spec.chars == frozenset({",", ";"})
        assert spec.pattern is None

    def test_newline_escape(self):
        assert parse_separators("\\n").chars == frozenset({"\n"})


class TestParseRegexSeparator:
    def test_valid_pattern(self):
        spec = parse_regex_separator(r"\s+")
        assert spec.pattern.pattern == r"\s+"
        assert not spec.chars

    def test_empty_pattern(self):
        assert parse_regex_separator("") is NO_SEPARATION

    def test_invalid_pattern_degrades(self):
        issues = []
        spec = parse_regex_separator("[unclosed", issues)
        assert spec is NO_SEPARATION
        assert len(issues) == 1
        assert issues[0].kind is ErrorKind.USER_RULE
        assert issues[0].rule == "[unclosed"

    def test_invalid_pattern_without_issue_list(self):
        assert parse_regex_separator("(") is NO_SEPARATION


class TestSplit:
    def test_no_separation_returns_whole_input(self):
        assert split(NO_SEPARATION, "a,b") == ["a,b"]

    def test_no_separation_keeps_empty_input(self):
        assert split(NO_SEPARATION, "") == [""]

    def test_single_char(self):
        assert split(parse_separators(","), "a,b,c") == ["a", "b", "c"]

    def test_runs_collapse(self):
        assert split(parse_separators(","), "a,,b") == ["a", "b"]

    def test_leading_and_trailing_separators_dropped(self):
        assert split(parse_separators(","), ",a,b,") == ["a", "b"]

    def test_multiple_separator_chars(self):
        assert split(parse_separators(",;"), "a,b;c") == ["a", "b", "c"]

    def test_aligned_columns(self):
        line = "drwxr-xr-x   2 root  root   4096 docs"
        assert split(parse_separators("\\s"), line) == [
            "drwxr-xr-x", "2", "root", "root", "4096", "docs",
        ]

    def test_lines(self):
        assert split(parse_separators("\\n"), "one\ntwo\n\nthree\n") == [
            "one", "two", "three",
        ]

    def test_only_separators(self):
        assert split(parse_separators(","), ",,,") == []

    def test_empty_input_with_separator(self):
        assert split(parse_separators(","), "") == []

    def test_regex_split(self):
        spec = SeparatorSpec(pattern=re.compile(r"\s*\|\s*"))
        assert split(spec, "a | b|c") == ["a", "b", "c"]

    def test_regex_split_drops_empty_pieces(self):
        spec = SeparatorSpec(pattern=re.compile(","))
        assert split(spec, ",a,,b,") == ["a", "b"]
