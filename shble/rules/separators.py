"""Separator rules: how output is divided into rows or columns.

The syntax is patterned after the shell's IFS: every character of the rule
string is its own separator, so ``",;"`` splits on commas and semicolons.
Whitespace that is awkward to type in a chat is spelled with an escape:
``\\n`` (newline), ``\\t`` (tab), ``\\r`` (carriage return) and ``\\s``
(space). An empty rule means "don't split".

Runs of separators count as one boundary, so ``ls -l`` style output with
aligned columns splits cleanly on ``\\s``.
"""

from __future__ import annotations

import logging
import re

from shble.errors import ShbleError, user_rule_error
from shble.rules.models import NO_SEPARATION, SeparatorSpec

logger = logging.getLogger(__name__)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "s": " ",
}


def decode_escapes(spec: str) -> list[str]:
    """Return the separator characters named by ``spec``, escapes decoded.

    A backslash that does not start a known escape is kept as a literal
    separator, as is the character after it.
    """
    chars: list[str] = []
    i = 0
    while i < len(spec):
        ch = spec[i]
        if ch == "\\" and i + 1 < len(spec) and spec[i + 1] in _ESCAPES:
            chars.append(_ESCAPES[spec[i + 1]])
            i += 2
            continue
        chars.append(ch)
        i += 1
    return chars


def parse_separators(spec: str) -> SeparatorSpec:
    """Parse a literal separator rule. Accepts any string."""
    if not spec:
        return NO_SEPARATION
    return SeparatorSpec(chars=frozenset(decode_escapes(spec)))


def parse_regex_separator(
    pattern: str, issues: list[ShbleError] | None = None
) -> SeparatorSpec:
    """Parse a regex separator rule.

    An invalid pattern is reported through ``issues`` and degrades to no
    separation.
    """
    if not pattern:
        return NO_SEPARATION
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        logger.warning("Ignoring invalid regex separator %r: %s", pattern, exc)
        if issues is not None:
            issues.append(user_rule_error(pattern, f"invalid regex separator: {exc}"))
        return NO_SEPARATION
    return SeparatorSpec(pattern=compiled)


def split(spec: SeparatorSpec, data: str) -> list[str]:
    """Split ``data`` into non-empty fields according to ``spec``.

    Without an active separator the whole input is one field, even when
    it is empty.
    """
    if spec.pattern is not None:
        return [piece for piece in spec.pattern.split(data) if piece]
    if not spec.chars:
        return [data]

    fields: list[str] = []
    current: list[str] = []
    for ch in data:
        if ch in spec.chars:
            # Separator runs collapse: only a non-empty buffer is emitted
            if current:
                fields.append("".join(current))
                current = []
        else:
            current.append(ch)
    if current:
        fields.append("".join(current))
    return fields
