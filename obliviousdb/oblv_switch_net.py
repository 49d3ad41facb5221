"""Three-party oblivious switching network.

A *sender* holds a table of rows, a *programmer* holds a switching program
(a list of ``(src, dest)`` pairs, one for each destination row) and a
*helper* assists. Afterwards the XOR of the sender's and the programmer's
destination matrices holds ``src_table[src]`` at row ``dest`` for every
switch. A source row may feed any number of destination rows.
"""

from __future__ import annotations

from typing import Any, NamedTuple

import numpy as np

from obliviousdb.channel import Channel
from obliviousdb.oblv_permutation import OblvPermutation, OutputType
from obliviousdb.prng import PRNG

_OT_BITS_SEED = 345345
_OT_MSG_SEED = 645687456


class Switch(NamedTuple):
    """One route of the program: source row ``src`` goes to destination row ``dest``."""

    src: int
    dest: int


def _check_matrix(dest: Any) -> None:
    if not isinstance(dest, np.ndarray) or dest.ndim != 2 or dest.dtype != np.uint8:
        raise TypeError("expected a two-dimensional uint8 numpy array")


def _bit(bits: bytes | bytearray, n: int) -> int:
    return (bits[n // 8] >> (n % 8)) & 1


def _handshake(chl: Channel, expected: str) -> None:
    chl.send(expected)
    got = chl.recv()
    if got != expected:
        raise RuntimeError(f"parameter mismatch: expected {expected!r}, peer sent {got!r}")


class SwitchProgram:
    """The programmer's routing table, sorted by source before use."""

    def __init__(self, src_size: int = 0, dest_size: int = 0) -> None:
        self.init(src_size, dest_size)

    def init(self, src_size: int, dest_size: int) -> None:
        """Start an empty program over ``src_size`` source rows."""
        if src_size < 0 or dest_size < 0:
            raise ValueError("sizes must be non-negative")
        self.src_size = src_size
        self.switches: list[Switch] = []
        self.counts: list[int] = [0] * src_size
        self.next_free_idx = 0
        self.next_free_node_idx = 0

    def add_switch(self, src_idx: int, dest_idx: int) -> None:
        """Route source row ``src_idx`` to destination row ``dest_idx``."""
        if len(self.counts) != self.src_size:
            raise RuntimeError("switches cannot be added to a finalized program")
        if not 0 <= src_idx < self.src_size:
            raise ValueError(f"source index {src_idx} out of range 0..{self.src_size - 1}")
        if dest_idx < 0:
            raise ValueError(f"invalid destination index {dest_idx}")
        self.switches.append(Switch(src_idx, dest_idx))
        self.counts[src_idx] += 1

    def finalize(self) -> None:
        """Sort the switches by source in place (counting sort)."""
        counts, self.counts = self.counts, []
        total = 0
        for i, count in enumerate(counts):
            counts[i] = total
            total += count

        a = self.switches
        for i in range(len(a) - 1, -1, -1):
            j = counts[a[i].src]
            while j < i:
                counts[a[i].src] += 1
                a[i], a[j] = a[j], a[i]
                j = counts[a[i].src]

    def next_free(self) -> int:
        """Return the next source row that no switch reads from."""
        switches = self.switches
        while (
            self.next_free_node_idx < len(switches)
            and self.next_free_idx == switches[self.next_free_node_idx].src
        ):
            while (
                self.next_free_node_idx < len(switches)
                and self.next_free_idx == switches[self.next_free_node_idx].src
            ):
                self.next_free_node_idx += 1
            self.next_free_idx += 1
        idx = self.next_free_idx
        self.next_free_idx += 1
        return idx

    def validate(self) -> None:
        """Raise ``ValueError`` unless the switches are sorted by source."""
        for prev, cur in zip(self.switches, self.switches[1:]):
            if cur.src < prev.src:
                raise ValueError("switches are not sorted by source")

    def reset(self) -> None:
        self.next_free_idx = 0
        self.next_free_node_idx = 0


class OblvSwitchNet:
    """The three roles of the oblivious switching network."""

    def __init__(self, tag: str = "") -> None:
        self.tag = tag

    # -- sender -----------------------------------------------------------

    def send_recv(self, program_chl: Channel, help_chl: Channel, src: Any, dest: np.ndarray) -> None:
        """Sender role: feed ``src`` in and receive a share of the result into ``dest``."""
        _check_matrix(dest)
        data = np.array(src, dtype=np.uint8, copy=True)
        if data.ndim != 2:
            raise ValueError("src must be a two-dimensional matrix")
        dest_rows, dest_cols = dest.shape
        _handshake(program_chl, f"send_{data.shape[0]}_{dest_rows}_{data.shape[1]}")

        if data.shape[0] < dest_rows:
            padded = np.zeros((dest_rows, data.shape[1]), dtype=np.uint8)
            padded[: data.shape[0]] = data
            data = padded

        self.send_select(program_chl, help_chl, data)
        self.help_duplicate(program_chl, dest_rows, dest_cols)
        OblvPermutation().recv(program_chl, help_chl, dest, dest_rows, self.tag + "_sendRecv_final")

    def send_select(self, program_chl: Channel, help_chl: Channel, src: Any) -> None:
        OblvPermutation().send(program_chl, help_chl, src, self.tag + "_send_select")

    def help_duplicate(self, program_chl: Channel, rows: int, num_bytes: int) -> None:
        """Sender's part of duplication: send one of two OT messages per row."""
        bits_prng = PRNG(_OT_BITS_SEED)
        msg_prng = PRNG(_OT_MSG_SEED)
        bits = bits_prng.random_bytes((rows + 6) // 8)
        chosen = []
        for i in range(1, rows):
            w0 = msg_prng.random_bytes(num_bytes)
            w1 = msg_prng.random_bytes(num_bytes)
            chosen.append(w1 if _bit(bits, i - 1) else w0)
        program_chl.send(b"".join(chosen))

    # -- helper -----------------------------------------------------------

    def help(
        self,
        program_chl: Channel,
        sendr_chl: Channel,
        prng: PRNG,
        dest_rows: int,
        src_rows: int,
        num_bytes: int,
    ) -> None:
        """Helper role."""
        _handshake(program_chl, f"help_{dest_rows}_{num_bytes}")
        temp = np.zeros((dest_rows, num_bytes), dtype=np.uint8)
        self.recv_select(program_chl, sendr_chl, temp, src_rows)
        self.send_duplicate(program_chl, prng, temp)
        OblvPermutation().send(program_chl, sendr_chl, temp, self.tag + "_help_final")

    def recv_select(self, program_chl: Channel, sendr_chl: Channel, dest: np.ndarray, src_rows: int) -> None:
        OblvPermutation().recv(program_chl, sendr_chl, dest, src_rows, self.tag + "_recv_select")

    def send_duplicate(self, program_chl: Channel, prng: PRNG, src: np.ndarray) -> None:
        """Helper's part of duplication: re-randomise ``src`` in place and send both OT options."""
        _check_matrix(src)
        rows, stride = src.shape
        pairs = max(rows - 1, 0)
        msg_prng = PRNG(_OT_MSG_SEED)
        send_data = np.frombuffer(
            msg_prng.random_bytes(pairs * 2 * stride), dtype=np.uint8
        ).reshape(pairs, 2, stride).copy()

        bits = program_chl.recv()
        if len(bits) != (rows + 6) // 8:
            raise RuntimeError("choice bits have the wrong length")

        for i in range(1, rows):
            p = _bit(bits, i - 1)
            send_data[i - 1, 0] ^= src[i - p]
            send_data[i - 1, 1] ^= src[i - (1 - p)]
            src[i] = np.frombuffer(prng.random_bytes(stride), dtype=np.uint8)
            send_data[i - 1] ^= src[i]

        program_chl.send(send_data.tobytes())

    # -- programmer -------------------------------------------------------

    def program(
        self,
        help_chl: Channel,
        sendr_chl: Channel,
        prog: SwitchProgram,
        prng: PRNG,
        dest: np.ndarray,
        output_type: OutputType = OutputType.OVERWRITE,
    ) -> None:
        """Programmer role: route according to ``prog`` and write a share into ``dest``."""
        _check_matrix(dest)
        rows, cols = dest.shape
        if len(prog.switches) != rows:
            raise ValueError(
                f"program has {len(prog.switches)} switches but dest has {rows} rows"
            )
        _handshake(sendr_chl, f"send_{prog.src_size}_{rows}_{cols}")
        _handshake(help_chl, f"help_{rows}_{cols}")

        temp = np.zeros((rows, cols), dtype=np.uint8)
        self.program_select(help_chl, sendr_chl, prog, prng, temp)
        self.program_duplicate(sendr_chl, help_chl, prog, prng, temp)

        perm = [switch.dest for switch in prog.switches]
        for row, target in zip(temp, perm):
            if output_type is OutputType.OVERWRITE:
                dest[target] = row
            else:
                dest[target] ^= row

        OblvPermutation().program(
            sendr_chl, help_chl, perm, prng, dest, self.tag + "_prog_final", OutputType.ADDITIVE
        )

    def program_select(
        self,
        recvr_chl: Channel,
        sendr_chl: Channel,
        prog: SwitchProgram,
        prng: PRNG,
        dest: np.ndarray,
    ) -> None:
        """Move one copy of each used source row into place; fill duplicates with unused rows."""
        if prog.counts:
            prog.finalize()
        prog.validate()
        prog.reset()

        switches = prog.switches
        perm: list[int | None] = [None] * max(len(switches), prog.src_size)
        switch_idx = 0
        while switch_idx < len(switches):
            perm[switches[switch_idx].src] = switch_idx
            switch_idx += 1
            while (
                switch_idx < len(switches)
                and switches[switch_idx - 1].src == switches[switch_idx].src
            ):
                perm[prog.next_free()] = switch_idx
                switch_idx += 1

        OblvPermutation().program(recvr_chl, sendr_chl, perm, prng, dest, self.tag + "_prog_select")

    def program_duplicate(
        self,
        sendr_chl: Channel,
        helper_chl: Channel,
        prog: SwitchProgram,
        prng: PRNG,
        dest: np.ndarray,
    ) -> None:
        """Copy each row onto the next wherever consecutive switches share a source."""
        _check_matrix(dest)
        rows, stride = dest.shape
        if len(prog.switches) < rows:
            raise ValueError("program has fewer switches than rows")
        dups = [prog.switches[i - 1].src == prog.switches[i].src for i in range(1, rows)]

        bits = bytearray(PRNG(_OT_BITS_SEED).random_bytes((rows + 6) // 8))
        for n, dup in enumerate(dups):
            if dup:
                bits[n // 8] ^= 1 << (n % 8)
        helper_chl.send(bytes(bits))

        share0 = sendr_chl.recv()
        share1 = helper_chl.recv()
        pairs = max(rows - 1, 0)
        if len(share0) != pairs * stride:
            raise RuntimeError("sender's duplication share has the wrong size")
        if len(share1) != 2 * pairs * stride:
            raise RuntimeError("helper's duplication share has the wrong size")

        s0 = np.frombuffer(share0, dtype=np.uint8).reshape(pairs, stride)
        s1 = np.frombuffer(share1, dtype=np.uint8).reshape(pairs, 2, stride)
        for i in range(1, rows):
            dup = dups[i - 1]
            p = _bit(bits, i - 1) ^ int(dup)
            if dup:
                dest[i] = dest[i - 1]
            dest[i] ^= s0[i - 1] ^ s1[i - 1, p]