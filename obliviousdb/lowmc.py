"""The LowMC block cipher over GF(2), with blocks held as Python integers.

Bit ``i`` of a block is bit ``i`` of the integer. A matrix is a list of
row integers; row ``i`` of a linear layer yields output bit ``i`` as the
parity of ``row & message``.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, Sequence

from obliviousdb.prng import PRNG

SBOX = (0x00, 0x01, 0x03, 0x06, 0x07, 0x04, 0x05, 0x02)
INV_SBOX = (0x00, 0x01, 0x07, 0x02, 0x05, 0x06, 0x03, 0x04)


def _bit(value: int, idx: int) -> int:
    return (value >> idx) & 1


def rank_of_matrix(matrix: Sequence[int], size: int) -> int:
    """Rank over GF(2) of ``matrix``, whose rows are ``size`` bits wide."""
    mat = list(matrix)
    row = 0
    for col in range(1, size + 1):
        if row >= len(mat):
            break
        bit_idx = size - col
        if not _bit(mat[row], bit_idx):
            pivot = next(
                (r for r in range(row, len(mat)) if _bit(mat[r], bit_idx)), None
            )
            if pivot is None:
                continue
            mat[row], mat[pivot] = mat[pivot], mat[row]
        for i in range(row + 1, len(mat)):
            if _bit(mat[i], bit_idx):
                mat[i] ^= mat[row]
        row += 1
        if row == size:
            break
    return row


def invert_matrix(matrix: Sequence[int], size: int) -> list[int]:
    """Inverse over GF(2) of the square ``size`` x ``size`` matrix."""
    mat = list(matrix)
    inv = [1 << i for i in range(size)]

    row = 0
    for col in range(size):
        if row >= len(mat):
            break
        if not _bit(mat[row], col):
            pivot = next(
                (r for r in range(row + 1, len(mat)) if _bit(mat[r], col)), None
            )
            if pivot is None:
                continue
            mat[row], mat[pivot] = mat[pivot], mat[row]
            inv[row], inv[pivot] = inv[pivot], inv[row]
        for i in range(row + 1, len(mat)):
            if _bit(mat[i], col):
                mat[i] ^= mat[row]
                inv[i] ^= inv[row]
        row += 1

    for col in range(size, 0, -1):
        for r in range(col - 1):
            if _bit(mat[r], col - 1):
                mat[r] ^= mat[col - 1]
                inv[r] ^= inv[col - 1]
    return inv


def load_matrix(stream: IO[str], rows: int, cols: int) -> list[int]:
    """Read ``rows`` lines of ``cols`` '0'/'1' characters, each ended by a newline."""
    matrix = []
    for _ in range(rows):
        value = 0
        for j in range(cols):
            c = stream.read(1)
            if c == "1":
                value |= 1 << j
            elif c != "0":
                raise ValueError(f"unexpected character {c!r} in matrix")
        if stream.read(1) != "\n":
            raise ValueError("matrix row is not terminated by a newline")
        matrix.append(value)
    return matrix


def write_matrix(stream: IO[str], matrix: Sequence[int], cols: int) -> None:
    """Write ``matrix`` in the format read by :func:`load_matrix`."""
    for row in matrix:
        stream.write("".join("1" if _bit(row, j) else "0" for j in range(cols)))
        stream.write("\n")


def _random_bits(prng: PRNG, count: int) -> int:
    value = 0
    for j, byte in enumerate(prng.random_bytes(count)):
        value |= (byte & 1) << j
    return value


def _parity(value: int) -> int:
    return bin(value).count("1") & 1


class LowMC:
    """LowMC with a fixed, deterministically generated instance."""

    _matrix_dir = Path(".")

    def __init__(
        self,
        invertible: bool,
        key: int = 0,
        num_boxes: int = 49,
        block_size: int = 256,
        key_size: int = 80,
        rounds: int = 12,
    ) -> None:
        if num_boxes < 0 or block_size < 3 * num_boxes:
            raise ValueError("block_size must hold at least 3 * num_boxes bits")
        if block_size < 1 or key_size < 1 or rounds < 0:
            raise ValueError("block_size, key_size must be positive and rounds non-negative")
        self.num_boxes = num_boxes
        self.block_size = block_size
        self.key_size = key_size
        self.rounds = rounds
        self.identity_size = block_size - 3 * num_boxes
        self.invertible = invertible
        self._block_mask = (1 << block_size) - 1
        self._key_mask = (1 << key_size) - 1

        self.lin_matrices: list[list[int]] = []
        self.inv_lin_matrices: list[list[int]] = []
        self.round_constants: list[int] = []
        self.key_matrices: list[list[int]] = []
        self.round_keys: list[int] = []
        self.key = key & self._key_mask

        self._instantiate(invertible)
        self._key_schedule()

    def encrypt(self, message: int) -> int:
        c = (message & self._block_mask) ^ self.round_keys[0]
        for r in range(1, self.rounds + 1):
            c = self.substitution(c)
            c = self._multiply(self.lin_matrices[r - 1], c)
            c ^= self.round_constants[r - 1]
            c ^= self.round_keys[r]
        return c

    def decrypt(self, message: int) -> int:
        if not self.invertible:
            raise RuntimeError("this LowMC instance was built without inverse matrices")
        c = message & self._block_mask
        for r in range(self.rounds, 0, -1):
            c ^= self.round_keys[r]
            c ^= self.round_constants[r - 1]
            c = self._multiply(self.inv_lin_matrices[r - 1], c)
            c = self.inv_substitution(c)
        return c ^ self.round_keys[0]

    def set_key(self, key: int) -> None:
        self.key = key & self._key_mask
        self._key_schedule()

    def substitution(self, message: int) -> int:
        return self._apply_sbox(message, SBOX)

    def inv_substitution(self, message: int) -> int:
        return self._apply_sbox(message, INV_SBOX)

    def _apply_sbox(self, message: int, table: Sequence[int]) -> int:
        message &= self._block_mask
        n = self.num_boxes
        temp = message >> (3 * n)
        for i in range(1, n + 1):
            temp = (temp << 3) & self._block_mask
            temp ^= table[(message >> (3 * (n - i))) & 0x7]
        return temp

    def _multiply(self, matrix: Sequence[int], message: int) -> int:
        result = 0
        for i, row in enumerate(matrix[: self.block_size]):
            result |= _parity(message & row) << i
        return result

    def _key_schedule(self) -> None:
        self.round_keys = [self._multiply(m, self.key) for m in self.key_matrices]

    def _instantiate(self, invertible: bool) -> None:
        prng = PRNG(0)
        size = self.block_size

        self.lin_matrices = []
        self.inv_lin_matrices = []
        for r in range(self.rounds):
            if not invertible:
                mat = [_random_bits(prng, size) for _ in range(size)]
            else:
                path = self._matrix_dir / f"linMtx_{r}.txt"
                if path.is_file():
                    with path.open("r", newline="") as stream:
                        mat = load_matrix(stream, size, size)
                    if rank_of_matrix(mat, size) != size:
                        raise ValueError(f"{path} does not hold an invertible matrix")
                else:
                    while True:
                        mat = [_random_bits(prng, size) for _ in range(size)]
                        if rank_of_matrix(mat, size) == size:
                            break
                self.inv_lin_matrices.append(invert_matrix(mat, size))
            self.lin_matrices.append(mat)

        self.round_constants = [_random_bits(prng, size) for _ in range(self.rounds)]

        full_rank = min(size, self.key_size)
        self.key_matrices = []
        for r in range(self.rounds + 1):
            if not invertible:
                mat = [_random_bits(prng, self.key_size) for _ in range(size)]
            else:
                path = self._matrix_dir / f"keyMtx_{r}.txt"
                if path.is_file():
                    with path.open("r", newline="") as stream:
                        mat = load_matrix(stream, size, self.key_size)
                    if rank_of_matrix(mat, self.key_size) < full_rank:
                        raise ValueError(f"{path} does not hold a matrix of maximal rank")
                else:
                    while True:
                        mat = [_random_bits(prng, self.key_size) for _ in range(size)]
                        if rank_of_matrix(mat, self.key_size) >= full_rank:
                            break
            self.key_matrices.append(mat)

    @staticmethod
    def _format_row(row: int, width: int) -> str:
        return "[" + ", ".join(str(_bit(row, i)) for i in range(width)) + "]"

    def format_matrices(self) -> str:
        """Human-readable dump of the instance's matrices and constants."""
        lines = [
            "LowMC matrices and constants",
            "============================",
            f"Block size: {self.block_size}",
            f"Key size: {self.key_size}",
            f"Rounds: {self.rounds}",
            "",
            "Linear layer matrices",
            "---------------------",
        ]
        for r, mat in enumerate(self.lin_matrices, start=1):
            lines.append(f"Linear layer {r}:")
            lines.extend(self._format_row(row, self.block_size) for row in mat)
            lines.append("")

        lines += ["Round constants", "---------------------"]
        for r, const in enumerate(self.round_constants, start=1):
            lines.append(f"Round constant {r}:")
            lines.append(self._format_row(const, self.block_size))
            lines.append("")

        lines += ["Round key matrices", "---------------------"]
        for r, mat in enumerate(self.key_matrices):
            lines.append(f"Round key matrix {r}:")
            lines.extend(self._format_row(row, self.key_size) for row in mat)
            if r != self.rounds:
                lines.append("")
        return "\n".join(lines) + "\n"