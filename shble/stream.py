"""ViewerConnection: streams transformed output to one viewer.

The producing half encodes, chunks and frames output and writes the
frames to the connection's byte transport. The consuming half is a
reader task draining that transport: frames are decoded, chunks
reassembled, completed messages decoded and handed to the viewer.

Closing the connection stops the reader and discards every partially
received message; nothing survives a reconnect.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Protocol

from shble.config import WireConfig
from shble.errors import ErrorKind, ShbleError
from shble.log_setup import TRACE
from shble.wire.decoder import decode
from shble.wire.encoder import chunk_payload, encode_stderr, encode_stdout
from shble.wire.framing import FrameDecoder, encode_frame
from shble.wire.models import Channel, Chunk, CompletedMessage
from shble.wire.reassembler import ChunkReassembler

logger = logging.getLogger(__name__)


class Viewer(Protocol):
    """Rendering side of a connection."""

    async def show_table(self, message_id: int, table: list[list[str]]) -> None: ...

    async def show_text(self, message_id: int, text: str) -> None: ...

    async def show_error(self, error: ShbleError) -> None: ...


class ViewerConnection:
    """One open connection between the producing side and a viewer."""

    def __init__(self, connection_id: int, viewer: Viewer, wire: WireConfig | None = None) -> None:
        self.connection_id = connection_id
        self._viewer = viewer
        self._wire = wire or WireConfig()
        self._transport: asyncio.Queue[bytes] = asyncio.Queue()
        self._frames = FrameDecoder()
        self._reassembler = ChunkReassembler(self._wire.max_total_chunks)
        self._message_ids = itertools.count(1)
        self._reader: asyncio.Task | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def pending_messages(self) -> int:
        return self._reassembler.pending_count

    def start(self) -> None:
        if self._reader is None and not self._closed:
            self._reader = asyncio.create_task(self._read_loop())
            logger.debug("Connection %d reader started", self.connection_id)

    # --- producing side ---

    async def publish_table(self, table: list[list[str]]) -> int:
        """Encode and send a table on the stdout channel.

        Output that is too large to encode is reported on the stderr
        channel instead.

        Returns:
            The message id used.
        """
        try:
            payload = encode_stdout(table, self._wire.max_output_size)
        except ShbleError as exc:
            logger.warning("Connection %d: %s", self.connection_id, exc.detail)
            return await self.publish_text(f"Output not sent: {exc.detail}")
        return await self._publish(payload, Channel.STDOUT)

    async def publish_text(self, text: str) -> int:
        """Encode and send a text blob on the stderr channel."""
        try:
            payload = encode_stderr(text, self._wire.max_output_size)
        except ShbleError as exc:
            logger.warning("Connection %d: %s", self.connection_id, exc.detail)
            payload = encode_stderr(f"Error output not sent: {exc.detail}")
        return await self._publish(payload, Channel.STDERR)

    async def _publish(self, payload: bytes, channel: Channel) -> int:
        message_id = next(self._message_ids)
        for chunk in chunk_payload(payload, message_id, channel, self._wire.max_chunk_size):
            await self.send_bytes(encode_frame(chunk))
        return message_id

    async def send_bytes(self, data: bytes) -> None:
        """Write raw bytes to the transport."""
        if self._closed:
            raise ConnectionError(f"connection {self.connection_id} is closed")
        await self._transport.put(data)

    # --- consuming side ---

    async def _read_loop(self) -> None:
        while True:
            data = await self._transport.get()
            try:
                await self.receive(data)
            except Exception:
                logger.exception("Connection %d: viewer failed", self.connection_id)
            finally:
                self._transport.task_done()

    async def receive(self, data: bytes) -> None:
        """Handle bytes delivered by the transport.

        Frames decoded before a malformed one are still reassembled. After
        a framing error the decoder has dropped its buffer, and every
        incomplete message is discarded with it.
        """
        try:
            for chunk in self._frames.feed(data):
                await self._accept(chunk)
        except ShbleError as exc:
            self._reassembler.drop_pending()
            await self._report(exc)

    async def _accept(self, chunk: Chunk) -> None:
        try:
            completed = self._reassembler.add(chunk)
        except ShbleError as exc:
            await self._report(exc)
            return
        if completed is not None:
            await self._deliver(completed)

    async def _deliver(self, message: CompletedMessage) -> None:
        logger.log(
            TRACE, "Connection %d: message id=%d complete (%d bytes)",
            self.connection_id, message.message_id, len(message.payload),
        )
        try:
            decoded = decode(message)
        except ShbleError as exc:
            await self._report(exc)
            return
        if message.channel is Channel.STDOUT:
            await self._viewer.show_table(message.message_id, decoded)
        else:
            await self._viewer.show_text(message.message_id, decoded)

    async def _report(self, error: ShbleError) -> None:
        if error.kind is ErrorKind.DECODE:
            logger.error("Connection %d: %s", self.connection_id, error.detail)
        else:
            logger.warning("Connection %d: %s", self.connection_id, error.detail)
        await self._viewer.show_error(error)

    async def drain(self) -> None:
        """Wait until every byte written so far has been handled."""
        if self._reader is not None:
            await self._transport.join()

    async def close(self) -> int:
        """Stop the reader and discard partial messages.

        Bytes still queued on the transport are dropped with them.

        Returns:
            How many incomplete messages were dropped.
        """
        if self._closed:
            return 0
        self._closed = True
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        self._frames.reset()
        dropped = self._reassembler.close()
        logger.debug("Connection %d closed, dropped=%d", self.connection_id, dropped)
        return dropped
