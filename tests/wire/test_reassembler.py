from __future__ import annotations

import pytest

from shble.errors import ErrorKind, ShbleError
from shble.wire.models import Channel, Chunk, CompletedMessage
from shble.wire.reassembler import ChunkReassembler


def _chunk(index, total, message_id=1, payload=None, channel=Channel.STDOUT):
    if payload is None:
        payload = f"<{index}>".encode()
    return Chunk(index, total, message_id, channel, payload)


class TestReassembly:
    def test_single_chunk_message(self):
        r = ChunkReassembler()
        done = r.add(_chunk(0, 1, payload=b"all"))
        assert done == CompletedMessage(1, Channel.STDOUT, b"all")
        assert r.pending_count == 0

    def test_out_of_order_arrival(self):
        r = ChunkReassembler()
        assert r.add(_chunk(2, 3)) is None
        assert r.add(_chunk(0, 3)) is None
        done = r.add(_chunk(1, 3))
        assert done.payload == b"<0><1><2>"

    def test_completed_message_is_emitted_once(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 1))
        assert r.pending_count == 0
        # A later chunk with the same id starts a fresh message
        assert r.add(_chunk(0, 2)) is None
        assert r.pending_count == 1

    def test_interleaved_messages(self):
        r = ChunkReassembler()
        assert r.add(_chunk(1, 2, message_id=1)) is None
        assert r.add(_chunk(0, 2, message_id=2)) is None
        assert r.add(_chunk(0, 2, message_id=1)).payload == b"<0><1>"
        assert r.add(_chunk(1, 2, message_id=2)).message_id == 2

    def test_channels_are_separate_namespaces(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2, channel=Channel.STDOUT))
        done = r.add(_chunk(0, 1, channel=Channel.STDERR, payload=b"err"))
        assert done.channel is Channel.STDERR
        assert r.pending_count == 1

    def test_zero_total_completes_empty(self):
        r = ChunkReassembler()
        done = r.add(Chunk(0, 0, 9, Channel.STDERR))
        assert done == CompletedMessage(9, Channel.STDERR, b"")
        assert r.pending_count == 0

    def test_empty_payload_chunks(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2, payload=b""))
        assert r.add(_chunk(1, 2, payload=b"")).payload == b""


class TestProtocolErrors:
    def test_total_mismatch_discards_message(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 3))
        with pytest.raises(ShbleError) as exc_info:
            r.add(_chunk(1, 4))
        assert exc_info.value.kind is ErrorKind.PROTOCOL
        assert exc_info.value.message_id == 1
        assert r.pending_count == 0
        assert r.is_dead(Channel.STDOUT, 1)

    def test_dead_message_ignores_later_chunks(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2))
        with pytest.raises(ShbleError):
            r.add(_chunk(1, 3))
        assert r.add(_chunk(1, 2)) is None
        assert r.pending_count == 0

    def test_index_out_of_range(self):
        r = ChunkReassembler()
        with pytest.raises(ShbleError, match="outside"):
            r.add(_chunk(3, 3))
        assert r.pending_count == 0

    def test_duplicate_index(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2))
        with pytest.raises(ShbleError, match="duplicate"):
            r.add(_chunk(0, 2))

    def test_total_above_limit(self):
        r = ChunkReassembler(max_total_chunks=4)
        with pytest.raises(ShbleError, match="exceeds limit"):
            r.add(_chunk(0, 5))
        assert r.pending_count == 0

    def test_other_messages_unaffected(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2, message_id=1))
        r.add(_chunk(0, 2, message_id=2))
        with pytest.raises(ShbleError):
            r.add(_chunk(5, 2, message_id=1))
        assert r.add(_chunk(1, 2, message_id=2)).payload == b"<0><1>"

    def test_error_logged(self, caplog):
        r = ChunkReassembler()
        r.add(_chunk(0, 2))
        with caplog.at_level("WARNING", logger="shble.wire.reassembler"):
            with pytest.raises(ShbleError):
                r.add(_chunk(0, 3))
        assert "Malformed chunk" in caplog.text


class TestDeadIds:
    def test_drop_pending_marks_ids_dead(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2, message_id=1))
        r.add(_chunk(0, 3, message_id=2, channel=Channel.STDERR))
        assert r.drop_pending() == 2
        assert r.pending_count == 0
        assert r.is_dead(Channel.STDOUT, 1)
        assert r.is_dead(Channel.STDERR, 2)
        assert r.add(_chunk(1, 2, message_id=1)) is None
        assert r.pending_count == 0

    def test_drop_pending_empty(self):
        assert ChunkReassembler().drop_pending() == 0

    def test_dead_ids_are_capped(self):
        r = ChunkReassembler(max_dead_ids=2)
        for message_id in (1, 2, 3):
            with pytest.raises(ShbleError):
                r.add(_chunk(5, 1, message_id=message_id))
        assert not r.is_dead(Channel.STDOUT, 1)
        assert r.is_dead(Channel.STDOUT, 2)
        assert r.is_dead(Channel.STDOUT, 3)


class TestClose:
    def test_close_drops_pending(self):
        r = ChunkReassembler()
        r.add(_chunk(0, 2, message_id=1))
        r.add(_chunk(0, 3, message_id=2))
        assert r.close() == 2
        assert r.pending_count == 0

    def test_close_forgets_dead_ids(self):
        r = ChunkReassembler()
        with pytest.raises(ShbleError):
            r.add(_chunk(4, 2))
        r.close()
        assert not r.is_dead(Channel.STDOUT, 1)
        assert r.add(_chunk(0, 1)) is not None

    def test_close_empty(self):
        assert ChunkReassembler().close() == 0
