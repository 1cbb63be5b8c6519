from __future__ import annotations

from shble.errors import ErrorKind
from shble.rules.models import Combination
from shble.rules.regex import DEFAULT_COMBINATION, parse_combination, parse_regex_rule


class TestParseRegexRule:
    def test_valid(self):
        rule = parse_regex_rule("^total")
        assert rule.matches("total 12")
        assert not rule.matches("subtotal")

    def test_matches_anywhere(self):
        assert parse_regex_rule("err").matches("an error occurred")

    def test_empty_is_no_rule(self):
        assert parse_regex_rule("") is None

    def test_invalid_is_no_rule(self):
        issues = []
        assert parse_regex_rule("[invalid(", issues) is None
        assert len(issues) == 1
        assert issues[0].kind is ErrorKind.USER_RULE
        assert "invalid regex filter" in issues[0].detail


class TestParseCombination:
    def test_default_is_and(self):
        assert DEFAULT_COMBINATION is Combination.AND
        assert parse_combination("") is Combination.AND

    def test_words(self):
        assert parse_combination("or") is Combination.OR
        assert parse_combination(" AND ") is Combination.AND

    def test_operators(self):
        assert parse_combination("||") is Combination.OR
        assert parse_combination("&&") is Combination.AND

    def test_unknown_falls_back(self):
        issues = []
        assert parse_combination("xor", issues) is Combination.AND
        assert issues[0].rule == "xor"
