"""Shared data types for the chunked wire format."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Channel(Enum):
    """Logical stream a message belongs to."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class Chunk:
    """One fragment of a logical message, tagged with its position."""

    sequence_index: int
    total_chunks: int
    message_id: int
    channel: Channel
    payload: bytes = b""


@dataclass(frozen=True)
class CompletedMessage:
    """All chunks of a message, concatenated in sequence order."""

    message_id: int
    channel: Channel
    payload: bytes
