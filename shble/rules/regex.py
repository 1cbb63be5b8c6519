"""Regex filter rules and the AND/OR combination setting."""

from __future__ import annotations

import logging
import re

from shble.errors import ShbleError, user_rule_error
from shble.rules.models import Combination, RegexRule

logger = logging.getLogger(__name__)

DEFAULT_COMBINATION = Combination.AND

_COMBINATION_ALIASES = {
    "and": Combination.AND,
    "&&": Combination.AND,
    "&": Combination.AND,
    "or": Combination.OR,
    "||": Combination.OR,
    "|": Combination.OR,
}


def parse_regex_rule(
    text: str, issues: list[ShbleError] | None = None
) -> RegexRule | None:
    """Compile an optional content filter.

    An empty string means no rule. A pattern that fails to compile also
    yields no rule, so a typo never hides the whole output.
    """
    if not text:
        return None
    try:
        return RegexRule(re.compile(text))
    except re.error as exc:
        logger.warning("Ignoring invalid regex filter %r: %s", text, exc)
        if issues is not None:
            issues.append(user_rule_error(text, f"invalid regex filter: {exc}"))
        return None


def parse_combination(
    text: str, issues: list[ShbleError] | None = None
) -> Combination:
    """Parse ``and``/``or`` (or their operator spellings)."""
    key = text.strip().lower()
    if not key:
        return DEFAULT_COMBINATION
    combination = _COMBINATION_ALIASES.get(key)
    if combination is None:
        logger.warning("Ignoring unknown filter combination %r", text)
        if issues is not None:
            issues.append(user_rule_error(text, "combination must be 'and' or 'or'"))
        return DEFAULT_COMBINATION
    return combination
