"""Error kinds shared by the rule parsers, the transformer and the wire layer.

Every failure is a :class:`ShbleError` tagged with an :class:`ErrorKind`.
Callers branch on ``error.kind`` instead of on exception subclasses:

- ``USER_RULE``: a rule string typed by the user could not be parsed.
  Never raised out of the transformer; collected and reported instead.
- ``PROTOCOL``: a chunk or frame violated the wire contract. The pending
  message it belonged to is discarded; the connection stays usable.
- ``DECODE``: a completed message could not be decoded. Always surfaced.
- ``ENCODING``: the producing side refused to encode the output.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Closed set of failure categories."""

    USER_RULE = "user_rule"
    PROTOCOL = "protocol"
    DECODE = "decode"
    ENCODING = "encoding"


class ShbleError(Exception):
    """A tagged failure carrying structured detail fields."""

    def __init__(
        self,
        kind: ErrorKind,
        detail: str,
        *,
        rule: str | None = None,
        message_id: int | None = None,
        channel: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.rule = rule
        self.message_id = message_id
        self.channel = channel

    def __repr__(self) -> str:
        return (
            f"ShbleError(kind={self.kind.value}, detail={self.detail!r}, "
            f"rule={self.rule!r}, message_id={self.message_id!r}, "
            f"channel={self.channel!r})"
        )


def user_rule_error(rule: str, detail: str) -> ShbleError:
    return ShbleError(ErrorKind.USER_RULE, detail, rule=rule)


def protocol_error(
    detail: str, *, message_id: int | None = None, channel: str | None = None
) -> ShbleError:
    return ShbleError(
        ErrorKind.PROTOCOL, detail, message_id=message_id, channel=channel
    )


def decode_error(
    detail: str, *, message_id: int | None = None, channel: str | None = None
) -> ShbleError:
    return ShbleError(
        ErrorKind.DECODE, detail, message_id=message_id, channel=channel
    )


def encoding_error(detail: str, *, channel: str | None = None) -> ShbleError:
    return ShbleError(ErrorKind.ENCODING, detail, channel=channel)
