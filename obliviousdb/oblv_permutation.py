"""Three-party oblivious permutation of the rows of a byte matrix.

The sender holds the rows, the programmer holds the permutation and the
receiver learns a masked, permuted copy. Afterwards the XOR of the
receiver's and the programmer's output matrices holds ``src[k]`` at row
``permutation[k]`` (rows whose target is ``None`` are dropped).
"""

from __future__ import annotations

import enum
from typing import Any, Sequence

import numpy as np

from obliviousdb.channel import Channel
from obliviousdb.prng import PRNG

STEP = 1 << 14
_EMPTY_U32 = 0xFFFFFFFF
_PERM_SEED = 0
_MASK_SEED = 1


class OutputType(enum.Enum):
    """Whether a party overwrites its output rows or XORs into them."""

    OVERWRITE = "overwrite"
    ADDITIVE = "additive"


def _normalise_target(target: Any) -> int | None:
    if target is None:
        return None
    target = int(target)
    if target in (-1, _EMPTY_U32):
        return None
    if target < 0:
        raise ValueError(f"invalid permutation target {target}")
    return target


def _check_dest(dest: np.ndarray) -> None:
    if not isinstance(dest, np.ndarray) or dest.ndim != 2 or dest.dtype != np.uint8:
        raise TypeError("dest must be a two-dimensional uint8 numpy array")


def _chunks(rows: int):
    """Yield ``(start, stop)`` row ranges of at most ``STEP`` rows."""
    for start in range(0, rows, STEP):
        yield start, min(rows, start + STEP)


def _shuffle_indices(prng: PRNG, start: int, stop: int, rows: int):
    """Yield ``(i, idx)`` swap pairs of a Fisher-Yates shuffle for rows ``start..stop``."""
    for i in range(start, stop):
        yield i, prng.random_u32() % (rows - i) + i


class OblvPermutation:
    """The three roles of the oblivious permutation protocol."""

    def send(
        self,
        program_chl: Channel,
        recvr_chl: Channel,
        src: Any,
        tag: str = "",
    ) -> None:
        """Shuffle and mask the rows of ``src`` and stream them to the receiver."""
        data = np.array(src, dtype=np.uint8, copy=True)
        if data.ndim != 2:
            raise ValueError("src must be a two-dimensional matrix")
        rows = data.shape[0]
        prng = PRNG(_PERM_SEED, 256)
        mask_prng = PRNG(_MASK_SEED, 256)

        for start, stop in _chunks(rows):
            for i, idx in _shuffle_indices(prng, start, stop, rows):
                if idx != i:
                    data[[i, idx]] = data[[idx, i]]
            chunk = data[start:stop]
            mask = np.frombuffer(mask_prng.random_bytes(chunk.size), dtype=np.uint8)
            recvr_chl.send((chunk ^ mask.reshape(chunk.shape)).tobytes())

    def recv(
        self,
        program_chl: Channel,
        sendr_chl: Channel,
        dest: np.ndarray,
        src_rows: int,
        tag: str = "",
        output_type: OutputType = OutputType.OVERWRITE,
    ) -> None:
        """Place the masked rows from the sender where the programmer's targets say."""
        _check_dest(dest)
        stride = dest.shape[1]
        for _ in _chunks(src_rows):
            data = sendr_chl.recv()
            perm = program_chl.recv()
            if len(perm) * stride != len(data):
                raise RuntimeError(
                    f"chunk of {len(data)} bytes does not match {len(perm)} rows of {stride} bytes"
                )
            if stride == 0:
                continue
            chunk = np.frombuffer(data, dtype=np.uint8).reshape(len(perm), stride)
            for target, row in zip(perm, chunk):
                if target is None:
                    continue
                if output_type is OutputType.OVERWRITE:
                    dest[target] = row
                else:
                    dest[target] ^= row

    def program(
        self,
        recvr_chl: Channel,
        sendr_chl: Channel,
        permutation: Sequence[Any],
        prng: PRNG | None,
        dest: np.ndarray,
        tag: str = "",
        output_type: OutputType = OutputType.OVERWRITE,
    ) -> None:
        """Send the shuffled permutation to the receiver and write the mask share to ``dest``.

        ``permutation[k]`` is the output row for source row ``k``; ``None`` or
        ``-1`` drops that row.
        """
        _check_dest(dest)
        perm = [_normalise_target(p) for p in permutation]
        rows = len(perm)
        stride = dest.shape[1]
        perm_prng = PRNG(_PERM_SEED, 256)
        mask_prng = PRNG(_MASK_SEED, 256)

        for start, stop in _chunks(rows):
            for i, idx in _shuffle_indices(perm_prng, start, stop, rows):
                perm[i], perm[idx] = perm[idx], perm[i]
            recvr_chl.send(tuple(perm[start:stop]))

        for target in perm:
            mask = np.frombuffer(mask_prng.random_bytes(stride), dtype=np.uint8)
            if target is None:
                continue
            if output_type is OutputType.OVERWRITE:
                dest[target] = mask
            else:
                dest[target] ^= mask