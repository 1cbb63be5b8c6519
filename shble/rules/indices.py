"""Index rules: keep fields by their position.

Four clause shapes, comma separated (whitespace around commas is fine):

1. Exact: ``4`` keeps the field at index 4.
2. Bounded: ``6..10`` keeps indices >= 6 and < 10.
3. Lower bounded: ``5..`` keeps indices >= 5.
4. Upper bounded: ``..96`` keeps indices < 96.

Parsing is deliberately relaxed because the input is typed by a user:
a clause that does not fit the grammar is dropped and reported, and the
remaining clauses still apply.
"""

from __future__ import annotations

import logging
import re

from shble.errors import ShbleError, user_rule_error
from shble.rules.models import IndexRule, IndexShape

logger = logging.getLogger(__name__)

_CLAUSE_SEPARATOR_RE = re.compile(r"\s*,\s*")
_CLAUSE_RE = re.compile(r"^(?P<lower>\d+)?(?P<range>\.\.)?(?P<upper>\d+)?$")


def parse_index_clause(clause: str) -> IndexRule | None:
    """Parse one clause, or return None if it does not fit the grammar."""
    match = _CLAUSE_RE.match(clause)
    if match is None:
        return None
    lower, is_range, upper = match.group("lower", "range", "upper")
    if not is_range:
        if lower is None:
            return None
        return IndexRule(IndexShape.EXACT, lower=int(lower))
    if lower is not None and upper is not None:
        return IndexRule(IndexShape.BOUNDED, lower=int(lower), upper=int(upper))
    if lower is not None:
        return IndexRule(IndexShape.LOWER_BOUNDED, lower=int(lower))
    if upper is not None:
        return IndexRule(IndexShape.UPPER_BOUNDED, upper=int(upper))
    return None


def parse_index_rules(
    text: str, issues: list[ShbleError] | None = None
) -> tuple[IndexRule, ...]:
    """Parse a comma-separated list of index clauses.

    Args:
        text: Raw rule string, e.g. ``"1, 3..5, 9.."``.
        issues: Optional list collecting one USER_RULE error per dropped
            clause.

    Returns:
        The distinct rules in first-seen order. Empty for empty input or
        when no clause parses.
    """
    text = text.strip()
    if not text:
        return ()

    rules: list[IndexRule] = []
    for clause in _CLAUSE_SEPARATOR_RE.split(text):
        rule = parse_index_clause(clause.strip())
        if rule is None:
            logger.warning("Ignoring malformed index rule %r", clause)
            if issues is not None:
                issues.append(user_rule_error(clause, "malformed index rule"))
            continue
        if rule not in rules:
            rules.append(rule)
    return tuple(rules)
