"""Shared data types for the row/column rule pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Combination(Enum):
    """How index rules and the regex rule of one axis are combined."""

    AND = "and"
    OR = "or"


class IndexShape(Enum):
    EXACT = "exact"
    LOWER_BOUNDED = "lower_bounded"
    UPPER_BOUNDED = "upper_bounded"
    BOUNDED = "bounded"


@dataclass(frozen=True)
class IndexRule:
    """Predicate over a zero-based field position.

    ``lower`` is inclusive and ``upper`` exclusive. EXACT rules store the
    index in ``lower``.
    """

    shape: IndexShape
    lower: int | None = None
    upper: int | None = None

    def matches(self, index: int) -> bool:
        if self.shape is IndexShape.EXACT:
            return index == self.lower
        if self.shape is IndexShape.LOWER_BOUNDED:
            return index >= self.lower
        if self.shape is IndexShape.UPPER_BOUNDED:
            return index < self.upper
        return self.lower <= index < self.upper

    def __str__(self) -> str:
        if self.shape is IndexShape.EXACT:
            return str(self.lower)
        if self.shape is IndexShape.LOWER_BOUNDED:
            return f"{self.lower}.."
        if self.shape is IndexShape.UPPER_BOUNDED:
            return f"..{self.upper}"
        return f"{self.lower}..{self.upper}"


@dataclass(frozen=True)
class RegexRule:
    """Content predicate: the pattern must be found somewhere in the field."""

    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class SeparatorSpec:
    """How to divide text into fields.

    Holds either a set of single-character separators or a compiled
    pattern, never both. With neither, the input is a single field.
    """

    chars: frozenset[str] = frozenset()
    pattern: re.Pattern | None = None

    def __post_init__(self) -> None:
        if self.chars and self.pattern is not None:
            raise ValueError("a separator spec is either literal or regex, not both")

    @property
    def is_active(self) -> bool:
        return bool(self.chars) or self.pattern is not None


NO_SEPARATION = SeparatorSpec()


@dataclass(frozen=True)
class FilterSpec:
    """Which fields of one axis survive a transform pass."""

    index_rules: tuple[IndexRule, ...] = ()
    regex_rule: RegexRule | None = None
    combination: Combination = Combination.AND

    @property
    def is_empty(self) -> bool:
        return not self.index_rules and self.regex_rule is None

    def keeps(self, index: int, text: str) -> bool:
        """Decide whether the field at pre-filter position ``index`` is kept."""
        if self.is_empty:
            return True
        index_hit = any(rule.matches(index) for rule in self.index_rules)
        if self.combination is Combination.OR:
            regex_hit = self.regex_rule is not None and self.regex_rule.matches(text)
            return index_hit or regex_hit
        index_ok = not self.index_rules or index_hit
        regex_ok = self.regex_rule is None or self.regex_rule.matches(text)
        return index_ok and regex_ok


@dataclass(frozen=True)
class AxisOptions:
    """Separator plus filters for one axis (rows or columns)."""

    separator: SeparatorSpec = NO_SEPARATION
    filters: FilterSpec = field(default_factory=FilterSpec)

    @property
    def has_rules(self) -> bool:
        return self.separator.is_active or not self.filters.is_empty


@dataclass
class AxisRuleText:
    """Raw, user-typed rule strings for one axis, kept for display and reset."""

    separators: str = ""
    regex_separator: str = ""
    index_filters: str = ""
    regex_filter: str = ""
    combination: str = ""

    def describe(self) -> list[tuple[str, str]]:
        return [
            ("separators", self.separators),
            ("regex separator", self.regex_separator),
            ("index filters", self.index_filters),
            ("regex filter", self.regex_filter),
            ("combination", self.combination or "and"),
        ]
