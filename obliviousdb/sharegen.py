"""Correlated randomness for three-party replicated secret sharing."""

from __future__ import annotations

from obliviousdb.prng import BLOCK_SIZE, PRNG, aes_counter_blocks

_U64 = 1 << 64
_WORD = 8

COMMON_SEED = (3488535245 << 64) | 2454523


def _signed64(value: int) -> int:
    value %= _U64
    return value - _U64 if value >= 1 << 63 else value


class ShareGen:
    """Generates zero shares and replicated random shares from two pairwise seeds."""

    def __init__(self) -> None:
        self.share_idx = 0
        self.share_gen_idx = 0
        self.common: PRNG | None = None
        self.next_common: PRNG | None = None
        self.prev_common: PRNG | None = None
        self._keys: tuple[bytes, bytes] | None = None
        self._buff_blocks = 0
        self._buffers: tuple[bytes, bytes] = (b"", b"")

    def init(self, prev_seed: bytes | int, next_seed: bytes | int, buff_size: int = 256) -> None:
        """Seed from the seed shared with the previous and the next party."""
        if buff_size < 1:
            raise ValueError("buff_size must be at least one block")
        self.common = PRNG(COMMON_SEED)
        self.next_common = PRNG(next_seed)
        self.prev_common = PRNG(prev_seed)
        self.share_gen_idx = 0
        self._buff_blocks = buff_size
        self._keys = (self.prev_common.random_block(), self.next_common.random_block())
        self.refill_buffer()

    def refill_buffer(self) -> None:
        if self._keys is None:
            raise RuntimeError("ShareGen.init must be called first")
        self._buffers = tuple(
            aes_counter_blocks(key, self.share_gen_idx, self._buff_blocks) for key in self._keys
        )
        self.share_gen_idx += self._buff_blocks
        self.share_idx = 0

    def _next_words(self) -> tuple[int, int]:
        if self._keys is None:
            raise RuntimeError("ShareGen.init must be called first")
        if self.share_idx + _WORD > self._buff_blocks * BLOCK_SIZE:
            self.refill_buffer()
        start, end = self.share_idx, self.share_idx + _WORD
        prev_word, next_word = (int.from_bytes(b[start:end], "little") for b in self._buffers)
        self.share_idx = end
        return prev_word, next_word

    def get_share(self) -> int:
        """An additive share of zero (the three parties' shares sum to 0 mod 2**64)."""
        prev_word, next_word = self._next_words()
        return _signed64(prev_word - next_word)

    def get_binary_share(self) -> int:
        """A XOR share of zero."""
        prev_word, next_word = self._next_words()
        return _signed64(prev_word ^ next_word)

    def get_rand_int_share(self) -> tuple[int, int]:
        """A replicated share pair: (word shared with next, word shared with previous)."""
        prev_word, next_word = self._next_words()
        return _signed64(next_word), _signed64(prev_word)

    def get_rand_binary_share(self) -> tuple[int, int]:
        return self.get_rand_int_share()