"""Chunked wire format: encoder → framing → reassembler → decoder."""

from shble.wire.models import Channel, Chunk, CompletedMessage  # noqa: F401

__all__ = ["Channel", "Chunk", "CompletedMessage"]
