"""Frame layout for chunks on a byte transport.

A frame is one line of compact JSON metadata, a newline, then exactly
``length`` payload bytes::

    {"index": 0, "total": 2, "id": 7, "channel": "stdout", "length": 5}\\n
    [["aG

The metadata never contains a raw newline and the payload length is
explicit, so payload bytes are never scanned for a delimiter.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator

from shble.errors import ShbleError, protocol_error
from shble.log_setup import TRACE
from shble.wire.models import Channel, Chunk

logger = logging.getLogger(__name__)

FRAME_DELIMITER = b"\n"
# Metadata lines are tiny; anything longer is garbage, not a slow sender
MAX_HEADER_SIZE = 1024


def encode_frame(chunk: Chunk) -> bytes:
    header = json.dumps(
        {
            "index": chunk.sequence_index,
            "total": chunk.total_chunks,
            "id": chunk.message_id,
            "channel": chunk.channel.value,
            "length": len(chunk.payload),
        },
        separators=(",", ":"),
    )
    return header.encode("ascii") + FRAME_DELIMITER + chunk.payload


def _parse_header(raw: bytes) -> dict:
    try:
        header = json.loads(raw.decode("ascii"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise protocol_error(f"unreadable frame metadata: {exc}") from exc
    if not isinstance(header, dict):
        raise protocol_error("frame metadata is not an object")

    message_id = None
    for key in ("id", "index", "total", "length"):
        value = header.get(key)
        # bool is an int subclass; true/false are not valid counts
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise protocol_error(
                f"frame metadata field {key!r} must be a non-negative integer",
                message_id=message_id,
            )
        if key == "id":
            message_id = value
    try:
        header["channel"] = Channel(header.get("channel"))
    except ValueError:
        raise protocol_error(
            f"unknown channel {header.get('channel')!r}", message_id=header["id"]
        ) from None
    return header


def decode_frame(frame: bytes) -> Chunk:
    """Decode one complete frame."""
    raw_header, delimiter, payload = frame.partition(FRAME_DELIMITER)
    if not delimiter:
        raise protocol_error("frame has no metadata delimiter")
    header = _parse_header(raw_header)
    if len(payload) != header["length"]:
        raise protocol_error(
            f"frame declares {header['length']} payload bytes, got {len(payload)}",
            message_id=header["id"],
            channel=header["channel"].value,
        )
    return _to_chunk(header, payload)


def _to_chunk(header: dict, payload: bytes) -> Chunk:
    return Chunk(
        sequence_index=header["index"],
        total_chunks=header["total"],
        message_id=header["id"],
        channel=header["channel"],
        payload=payload,
    )


class FrameDecoder:
    """Incremental frame decoder for a byte stream.

    Bytes may arrive split at arbitrary points, and one read may carry
    several frames. :meth:`feed` buffers the bytes and returns an iterator
    over the frames they complete. Frames are yielded one by one, so the
    ones before a malformed header reach the caller before the error is
    raised.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._header: dict | None = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> Iterator[Chunk]:
        """Buffer ``data`` and iterate over the frames completed so far.

        Raises:
            ShbleError: PROTOCOL kind, during iteration, on malformed or
                oversized metadata. The stream position is lost at that
                point, so the buffer is dropped before raising and decoding
                resumes with the next bytes fed.
        """
        self._buffer.extend(data)
        return self._frames()

    def _frames(self) -> Iterator[Chunk]:
        while True:
            if self._header is None:
                end = self._buffer.find(FRAME_DELIMITER)
                if end == -1:
                    if len(self._buffer) > MAX_HEADER_SIZE:
                        self.reset()
                        raise protocol_error("frame metadata exceeds size limit")
                    return
                raw_header = bytes(self._buffer[:end])
                del self._buffer[: end + 1]
                try:
                    self._header = _parse_header(raw_header)
                except ShbleError:
                    self.reset()
                    raise

            length = self._header["length"]
            if len(self._buffer) < length:
                return
            payload = bytes(self._buffer[:length])
            del self._buffer[:length]
            chunk = _to_chunk(self._header, payload)
            self._header = None
            logger.log(
                TRACE, "Frame decoded id=%d index=%d/%d len=%d",
                chunk.message_id, chunk.sequence_index, chunk.total_chunks, length,
            )
            yield chunk

    def reset(self) -> None:
        self._buffer.clear()
        self._header = None
