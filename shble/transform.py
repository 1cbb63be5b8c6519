"""Row/column transformation of captured command output.

Output is transformed twice: first into rows with the row options, then
each surviving row into columns with the column options. Each pass splits
with a :class:`SeparatorSpec` and filters with a :class:`FilterSpec`; index
rules see a field's position before filtering.

User rules degrade gracefully. Clauses that fail to parse are skipped
(see :func:`compile_axis`), and when no usable rule is left on either axis
the table is the raw output as a single cell.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from shble.errors import ShbleError
from shble.log_setup import TRACE
from shble.rules.indices import parse_index_rules
from shble.rules.models import AxisOptions, AxisRuleText, FilterSpec, SeparatorSpec
from shble.rules.regex import parse_combination, parse_regex_rule
from shble.rules.separators import parse_regex_separator, parse_separators, split

logger = logging.getLogger(__name__)

Table = list[list[str]]


class Field(NamedTuple):
    """A field that survived filtering, with its pre-filter position."""

    index: int
    text: str


def compile_axis(
    rules: AxisRuleText, issues: list[ShbleError] | None = None
) -> AxisOptions:
    """Build executable options for one axis from raw rule strings.

    A valid regex separator takes precedence over literal separators.
    Every clause that cannot be parsed is appended to ``issues``.
    """
    separator = parse_regex_separator(rules.regex_separator, issues)
    if not separator.is_active:
        separator = parse_separators(rules.separators)
    elif rules.separators:
        logger.debug(
            "Regex separator %r overrides literal separators %r",
            rules.regex_separator, rules.separators,
        )

    filters = FilterSpec(
        index_rules=parse_index_rules(rules.index_filters, issues),
        regex_rule=parse_regex_rule(rules.regex_filter, issues),
        combination=parse_combination(rules.combination, issues),
    )
    return AxisOptions(separator=separator, filters=filters)


def transform(
    separator: SeparatorSpec, filters: FilterSpec, data: str
) -> list[Field]:
    """Split ``data`` and keep the fields ``filters`` accepts."""
    return [
        Field(index, text)
        for index, text in enumerate(split(separator, data))
        if filters.keeps(index, text)
    ]


def pad_table(table: Table) -> Table:
    """Pad every row with empty cells up to the widest row."""
    width = max((len(row) for row in table), default=0)
    return [row + [""] * (width - len(row)) for row in table]


def transform_table(rows: AxisOptions, columns: AxisOptions, data: str) -> Table:
    """Turn raw output into a rectangular table of cells.

    Args:
        rows: Options splitting and filtering the output into rows.
        columns: Options splitting and filtering each row into cells.
        data: Raw command output.

    Returns:
        Rows of cells, padded to equal width. ``[[data]]`` when neither
        axis carries a usable rule.
    """
    if not rows.has_rules and not columns.has_rules:
        logger.debug("No usable rules; returning output as a single cell")
        return [[data]]

    table = [
        [cell.text for cell in transform(columns.separator, columns.filters, row.text)]
        for row in transform(rows.separator, rows.filters, data)
    ]
    logger.log(TRACE, "Transformed %d chars into %d rows", len(data), len(table))
    return pad_table(table)
