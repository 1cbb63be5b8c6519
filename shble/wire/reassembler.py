"""Reassembly of chunked wire messages.

Chunks of one message may arrive in any order. Each (channel, message id)
gets a fixed-size slot array on its first chunk; the message completes
when every slot is filled and is then handed out exactly once.

State machine per (channel, message id)::

    absent --first chunk--> pending --last slot filled--> complete (freed)
       |                       |
       +--total == 0-----------+--> complete with empty payload
                               |
                               +--bad metadata or resync--> dead

Dead ids are ignored until the connection closes. Only the most recent
``max_dead_ids`` are remembered.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from shble.errors import protocol_error
from shble.log_setup import TRACE
from shble.wire.models import Channel, Chunk, CompletedMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOTAL_CHUNKS = 4096
DEFAULT_MAX_DEAD_IDS = 1024

MessageKey = tuple[Channel, int]


@dataclass
class PendingMessage:
    """Slot array for a message that is still missing chunks."""

    total: int
    slots: list[bytes | None] = field(default_factory=list)
    filled: int = 0

    def __post_init__(self) -> None:
        if not self.slots:
            self.slots = [None] * self.total

    @property
    def is_complete(self) -> bool:
        return self.filled == self.total

    def join(self) -> bytes:
        return b"".join(self.slots)


class ChunkReassembler:
    """Buffers chunks per (channel, message id) until messages complete.

    One instance belongs to one connection. Chunk handling is synchronous;
    a lock guards the slot arrays in case two readers share the instance.
    """

    def __init__(
        self,
        max_total_chunks: int = DEFAULT_MAX_TOTAL_CHUNKS,
        max_dead_ids: int = DEFAULT_MAX_DEAD_IDS,
    ) -> None:
        self._max_total_chunks = max_total_chunks
        self._max_dead_ids = max_dead_ids
        self._pending: dict[MessageKey, PendingMessage] = {}
        # Insertion-ordered so the oldest dead id is evicted first
        self._dead: dict[MessageKey, None] = {}
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_dead(self, channel: Channel, message_id: int) -> bool:
        return (channel, message_id) in self._dead

    def add(self, chunk: Chunk) -> CompletedMessage | None:
        """Insert a chunk and return the message if it is now complete.

        Raises:
            ShbleError: PROTOCOL kind if the chunk contradicts the
                message's recorded metadata, its index is out of range,
                its slot is already filled, or it declares more chunks
                than allowed. The pending message is discarded and
                later chunks for its id are ignored.
        """
        key = (chunk.channel, chunk.message_id)
        with self._lock:
            if key in self._dead:
                logger.debug(
                    "Ignoring chunk for discarded message id=%d channel=%s",
                    chunk.message_id, chunk.channel.value,
                )
                return None

            message = self._pending.get(key)
            if message is None:
                if chunk.total_chunks == 0:
                    logger.log(TRACE, "Empty message id=%d complete", chunk.message_id)
                    return CompletedMessage(chunk.message_id, chunk.channel, b"")
                if chunk.total_chunks > self._max_total_chunks:
                    self._reject(key, chunk, f"total of {chunk.total_chunks} chunks "
                                 f"exceeds limit of {self._max_total_chunks}")
                message = PendingMessage(total=chunk.total_chunks)
                self._pending[key] = message

            if chunk.total_chunks != message.total:
                self._reject(key, chunk, f"total changed from {message.total} "
                             f"to {chunk.total_chunks}")
            if not 0 <= chunk.sequence_index < message.total:
                self._reject(key, chunk, f"index {chunk.sequence_index} outside "
                             f"[0, {message.total})")
            if message.slots[chunk.sequence_index] is not None:
                self._reject(key, chunk, f"duplicate chunk {chunk.sequence_index}")

            message.slots[chunk.sequence_index] = chunk.payload
            message.filled += 1
            logger.log(
                TRACE, "Chunk id=%d %d/%d stored (%d filled)",
                chunk.message_id, chunk.sequence_index, message.total, message.filled,
            )

            if not message.is_complete:
                return None
            del self._pending[key]
            return CompletedMessage(chunk.message_id, chunk.channel, message.join())

    def _reject(self, key: MessageKey, chunk: Chunk, reason: str) -> None:
        self._pending.pop(key, None)
        self._mark_dead(key)
        logger.warning(
            "Malformed chunk for message id=%d channel=%s: %s",
            chunk.message_id, chunk.channel.value, reason,
        )
        raise protocol_error(
            reason, message_id=chunk.message_id, channel=chunk.channel.value
        )

    def _mark_dead(self, key: MessageKey) -> None:
        self._dead[key] = None
        while len(self._dead) > self._max_dead_ids:
            del self._dead[next(iter(self._dead))]

    def drop_pending(self) -> int:
        """Discard every incomplete message after the stream lost its place.

        Dropped ids are marked dead, so their remaining chunks are ignored
        instead of opening messages that can never complete.

        Returns:
            How many messages were dropped.
        """
        with self._lock:
            keys = list(self._pending)
            self._pending.clear()
            for key in keys:
                self._mark_dead(key)
        if keys:
            logger.warning("Discarded %d incomplete messages after resync", len(keys))
        return len(keys)

    def close(self) -> int:
        """Discard all pending state. Returns how many messages were dropped."""
        with self._lock:
            dropped = len(self._pending)
            self._pending.clear()
            self._dead.clear()
        if dropped:
            logger.debug("Discarded %d incomplete messages on close", dropped)
        return dropped
