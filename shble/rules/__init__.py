"""User rule parsing: separators → index rules → regex rules → combination."""

from shble.rules.models import (  # noqa: F401
    AxisOptions,
    AxisRuleText,
    Combination,
    FilterSpec,
    IndexRule,
    RegexRule,
    SeparatorSpec,
)

__all__ = [
    "AxisOptions",
    "AxisRuleText",
    "Combination",
    "FilterSpec",
    "IndexRule",
    "RegexRule",
    "SeparatorSpec",
]
