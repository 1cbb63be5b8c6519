"""Decoding of completed wire messages.

Payloads are produced by our own encoder, so anything unexpected here is
a bug on the producing side: every failure is raised as a DECODE error
and nothing is silently repaired.
"""

from __future__ import annotations

import base64
import binascii
import json

from shble.errors import decode_error
from shble.wire.models import Channel, CompletedMessage


def _b64_text(value: object, message: CompletedMessage) -> str:
    if not isinstance(value, str):
        raise decode_error(
            f"expected a base64 string, got {type(value).__name__}",
            message_id=message.message_id,
            channel=message.channel.value,
        )
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise decode_error(
            f"invalid cell encoding: {exc}",
            message_id=message.message_id,
            channel=message.channel.value,
        ) from exc


def decode_stdout(message: CompletedMessage) -> list[list[str]]:
    """Decode a nested array of base64 cells into a table of text."""
    try:
        rows = json.loads(message.payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise decode_error(
            f"payload is not JSON: {exc}",
            message_id=message.message_id,
            channel=message.channel.value,
        ) from exc
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        raise decode_error(
            "payload is not an array of rows",
            message_id=message.message_id,
            channel=message.channel.value,
        )
    return [[_b64_text(cell, message) for cell in row] for row in rows]


def decode_stderr(message: CompletedMessage) -> str:
    """Decode a single base64 blob.

    Accepts the bare base64 text as well as a JSON string literal
    wrapping it.
    """
    raw = message.payload.strip()
    if raw.startswith(b'"'):
        try:
            value = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise decode_error(
                f"payload is not a JSON string: {exc}",
                message_id=message.message_id,
                channel=message.channel.value,
            ) from exc
    else:
        try:
            value = raw.decode("ascii")
        except UnicodeDecodeError as exc:
            raise decode_error(
                "payload is not base64 text",
                message_id=message.message_id,
                channel=message.channel.value,
            ) from exc
    return _b64_text(value, message)


def decode(message: CompletedMessage) -> list[list[str]] | str:
    """Decode a completed message according to its channel."""
    if message.channel is Channel.STDOUT:
        return decode_stdout(message)
    return decode_stderr(message)
