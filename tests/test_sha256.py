import hashlib
import struct

import pytest

from melab.sha256 import sha256_init_state, sha256_transform


def _pad(message: bytes) -> bytes:
    padded = message + b"\x80"
    padded += b"\x00" * ((56 - len(padded)) % 64)
    return padded + struct.pack(">Q", len(message) * 8)


def _digest(message: bytes) -> bytes:
    state = sha256_init_state()
    padded = _pad(message)
    for start in range(0, len(padded), 64):
        state = sha256_transform(state, padded[start:start + 64])
    return state


def test_initial_state_matches_standard_constants():
    assert sha256_init_state().hex() == (
        "6a09e667bb67ae853c6ef372a54ff53a510e527f9b05688c1f83d9ab5be0cd19"
    )


@pytest.mark.parametrize(
    "message",
    [b"", b"abc", b"x" * 55, b"y" * 56, b"z" * 64, bytes(range(200))],
)
def test_compression_matches_hashlib(message):
    assert _digest(message) == hashlib.sha256(message).digest()


def test_transform_does_not_modify_input():
    state = bytearray(sha256_init_state())
    before = bytes(state)
    sha256_transform(state, bytes(64))
    assert bytes(state) == before


def test_bad_state_length():
    with pytest.raises(ValueError):
        sha256_transform(bytes(31), bytes(64))


def test_bad_block_length():
    with pytest.raises(ValueError):
        sha256_transform(sha256_init_state(), bytes(63))