"""Deterministic pseudo-random generator built on AES in counter mode."""

from __future__ import annotations

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16

Seed = "bytes | int"


def _seed_bytes(seed: bytes | int) -> bytes:
    """Normalise a seed to a 16-byte AES key (ints are little-endian)."""
    if isinstance(seed, int):
        if seed < 0 or seed >= 1 << 128:
            raise ValueError("integer seed must fit in 128 bits")
        return seed.to_bytes(BLOCK_SIZE, "little")
    seed = bytes(seed)
    if len(seed) != BLOCK_SIZE:
        raise ValueError(f"seed must be {BLOCK_SIZE} bytes, got {len(seed)}")
    return seed


def aes_counter_blocks(key: bytes, start: int, count: int) -> bytes:
    """Encrypt the counters ``start .. start + count - 1`` under ``key``."""
    counters = b"".join(
        (i % (1 << 128)).to_bytes(BLOCK_SIZE, "little") for i in range(start, start + count)
    )
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(counters) + encryptor.finalize()


class PRNG:
    """AES counter-mode generator with an internal buffer of blocks."""

    def __init__(self, seed: bytes | int, buffer_size: int = 256) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least one block")
        self._buffer_blocks = buffer_size
        self.set_seed(seed)

    def set_seed(self, seed: bytes | int) -> None:
        """Re-key the generator and restart its counter."""
        self._key = _seed_bytes(seed)
        self._block_idx = 0
        self._refill()

    def _refill(self) -> None:
        self._buffer = aes_counter_blocks(self._key, self._block_idx, self._buffer_blocks)
        self._block_idx += self._buffer_blocks
        self._byte_idx = 0

    def random_bytes(self, count: int) -> bytes:
        """Return the next ``count`` bytes of the stream."""
        if count < 0:
            raise ValueError("count must be non-negative")
        parts = []
        remaining = count
        while remaining:
            if self._byte_idx == len(self._buffer):
                self._refill()
            take = min(remaining, len(self._buffer) - self._byte_idx)
            parts.append(self._buffer[self._byte_idx:self._byte_idx + take])
            self._byte_idx += take
            remaining -= take
        return b"".join(parts)

    def random_u32(self) -> int:
        return int.from_bytes(self.random_bytes(4), "little")

    def random_u64(self) -> int:
        return int.from_bytes(self.random_bytes(8), "little")

    def random_bool(self) -> bool:
        return bool(self.random_bytes(1)[0] & 1)

    def random_block(self) -> bytes:
        return self.random_bytes(BLOCK_SIZE)