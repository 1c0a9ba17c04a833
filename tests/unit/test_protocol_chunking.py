"""Test outbound payload chunking."""

from __future__ import annotations

import pytest

from puckjs.protocol import CHUNK_SIZE, split_into_chunks


@pytest.mark.parametrize("length", [1, 15, 16, 17, 32, 100])
def test_chunks_reassemble_to_payload(length: int) -> None:
    """Joining chunks in order gives back the payload."""
    payload = bytes(i % 256 for i in range(length))

    chunks = split_into_chunks(payload)

    assert b"".join(chunks) == payload
    assert all(len(chunk) == CHUNK_SIZE for chunk in chunks[:-1])
    assert 0 < len(chunks[-1]) <= CHUNK_SIZE


def test_default_chunk_size_is_16() -> None:
    chunks = split_into_chunks(b"x" * 40)

    assert [len(chunk) for chunk in chunks] == [16, 16, 8]


def test_custom_chunk_size() -> None:
    assert split_into_chunks(b"abcdefg", 3) == [b"abc", b"def", b"g"]


def test_empty_payload_has_no_chunks() -> None:
    assert split_into_chunks(b"") == []


@pytest.mark.parametrize("size", [0, -1])
def test_rejects_non_positive_size(size: int) -> None:
    with pytest.raises(ValueError, match="must be positive"):
        split_into_chunks(b"abc", size)
