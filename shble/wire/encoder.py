"""Producing side of the wire format.

Stdout tables become a JSON array of rows of base64 cells; stderr text
becomes one base64 string. The encoded text is then cut into chunks of
at most ``max_chunk_size`` bytes. Base64 and compact JSON are pure ASCII,
so chunk boundaries never split a character.
"""

from __future__ import annotations

import base64
import json
import logging
import math

from shble.errors import encoding_error
from shble.wire.models import Channel, Chunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 64 * 1024
DEFAULT_MAX_OUTPUT_SIZE = 256 * 1_048_576


def _b64(text: str) -> tuple[str, int]:
    raw = text.encode("utf-8")
    return base64.b64encode(raw).decode("ascii"), len(raw)


def encode_stdout(
    table: list[list[str]], max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE
) -> bytes:
    """Encode a table of cells.

    Raises:
        ShbleError: ENCODING kind when the raw cell bytes exceed
            ``max_output_size``.
    """
    output_size = 0
    encoded_rows = []
    for row in table:
        encoded_row = []
        for cell in row:
            encoded, size = _b64(cell)
            output_size += size
            if output_size > max_output_size:
                raise encoding_error(
                    f"output exceeds {max_output_size} bytes",
                    channel=Channel.STDOUT.value,
                )
            encoded_row.append(encoded)
        encoded_rows.append(encoded_row)
    return json.dumps(encoded_rows, separators=(",", ":")).encode("ascii")


def encode_stderr(text: str, max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE) -> bytes:
    encoded, size = _b64(text)
    if size > max_output_size:
        raise encoding_error(
            f"error output exceeds {max_output_size} bytes",
            channel=Channel.STDERR.value,
        )
    return encoded.encode("ascii")


def chunk_payload(
    payload: bytes,
    message_id: int,
    channel: Channel,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> list[Chunk]:
    """Cut a payload into chunks.

    An empty payload is announced by a single chunk with ``total_chunks``
    of zero, which the receiver completes without waiting for data.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    total = math.ceil(len(payload) / max_chunk_size)
    if total == 0:
        return [Chunk(0, 0, message_id, channel, b"")]
    chunks = [
        Chunk(
            sequence_index=index,
            total_chunks=total,
            message_id=message_id,
            channel=channel,
            payload=payload[index * max_chunk_size:(index + 1) * max_chunk_size],
        )
        for index in range(total)
    ]
    logger.debug(
        "Message id=%d channel=%s: %d bytes in %d chunks",
        message_id, channel.value, len(payload), total,
    )
    return chunks
