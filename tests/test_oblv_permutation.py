import threading

import numpy as np
import pytest

from obliviousdb.channel import channel_pair
from obliviousdb.oblv_permutation import STEP, OblvPermutation, OutputType
from obliviousdb.prng import PRNG


def _run(src, perm, dest_rows, output_type=OutputType.OVERWRITE, recv_init=None, prog_init=None):
    src = np.asarray(src, dtype=np.uint8)
    cols = src.shape[1]
    send_to_recv, recv_from_send = channel_pair()
    prog_to_recv, recv_from_prog = channel_pair()
    prog_to_send, send_from_prog = channel_pair()

    recv_dest = np.zeros((dest_rows, cols), dtype=np.uint8) if recv_init is None else recv_init.copy()
    prog_dest = np.zeros((dest_rows, cols), dtype=np.uint8) if prog_init is None else prog_init.copy()

    op = OblvPermutation()
    op.send(send_from_prog, send_to_recv, src, "send")
    op.program(prog_to_recv, prog_to_send, list(perm), PRNG(7), prog_dest, "prog", output_type)
    op.recv(recv_from_prog, recv_from_send, recv_dest, src.shape[0], "recv", output_type)
    return recv_dest, prog_dest


def _random_matrix(rows, cols, seed=3):
    return np.random.default_rng(seed).integers(0, 256, size=(rows, cols), dtype=np.uint8)


def test_overwrite_round_trip():
    src = _random_matrix(20, 5)
    perm = list(np.random.default_rng(11).permutation(20))
    recv_dest, prog_dest = _run(src, perm, 20)
    combined = recv_dest ^ prog_dest
    for k, target in enumerate(perm):
        assert np.array_equal(combined[target], src[k])


def test_receiver_share_is_masked():
    src = _random_matrix(16, 8)
    perm = list(range(16))
    recv_dest, prog_dest = _run(src, perm, 16)
    assert np.array_equal(recv_dest ^ prog_dest, src)
    assert not np.array_equal(recv_dest, src)


def test_dropped_rows_leave_destination_untouched():
    src = np.array([[1, 2], [3, 4], [5, 6]], dtype=np.uint8)
    recv_dest, prog_dest = _run(src, [2, None, 0], 3)
    combined = recv_dest ^ prog_dest
    assert combined.tolist() == [[5, 6], [0, 0], [1, 2]]
    assert recv_dest[1].tolist() == [0, 0]
    assert prog_dest[1].tolist() == [0, 0]


def test_minus_one_means_dropped():
    src = np.array([[9], [8]], dtype=np.uint8)
    recv_dest, prog_dest = _run(src, [-1, 0], 1)
    assert (recv_dest ^ prog_dest).tolist() == [[8]]


def test_additive_keeps_existing_shares():
    src = _random_matrix(10, 4, seed=5)
    perm = list(np.random.default_rng(2).permutation(10))
    recv_init = _random_matrix(10, 4, seed=6)
    prog_init = _random_matrix(10, 4, seed=7)
    recv_dest, prog_dest = _run(
        src, perm, 10, OutputType.ADDITIVE, recv_init=recv_init, prog_init=prog_init
    )
    combined = recv_dest ^ prog_dest ^ recv_init ^ prog_init
    for k, target in enumerate(perm):
        assert np.array_equal(combined[target], src[k])


def test_more_rows_than_one_chunk():
    rows = STEP + 3
    src = (np.arange(rows, dtype=np.uint32) % 251).astype(np.uint8).reshape(rows, 1)
    perm = list(range(rows - 1, -1, -1))
    recv_dest, prog_dest = _run(src, perm, rows)
    combined = recv_dest ^ prog_dest
    assert np.array_equal(combined[::-1], src)


def test_sender_input_is_not_modified():
    src = _random_matrix(6, 3)
    original = src.copy()
    _run(src, [5, 4, 3, 2, 1, 0], 6)
    assert np.array_equal(src, original)


def test_concurrent_parties():
    src = _random_matrix(12, 2, seed=9)
    perm = list(np.random.default_rng(4).permutation(12))
    send_to_recv, recv_from_send = channel_pair()
    prog_to_recv, recv_from_prog = channel_pair()
    prog_to_send, send_from_prog = channel_pair()
    recv_dest = np.zeros((12, 2), dtype=np.uint8)
    prog_dest = np.zeros((12, 2), dtype=np.uint8)
    op = OblvPermutation()

    receiver = threading.Thread(
        target=op.recv, args=(recv_from_prog, recv_from_send, recv_dest, 12, "recv")
    )
    receiver.start()
    op.program(prog_to_recv, prog_to_send, perm, None, prog_dest, "prog")
    op.send(send_from_prog, send_to_recv, src, "send")
    receiver.join(timeout=10)
    combined = recv_dest ^ prog_dest
    for k, target in enumerate(perm):
        assert np.array_equal(combined[target], src[k])


def test_recv_rejects_mismatched_width():
    src = _random_matrix(3, 4)
    send_to_recv, recv_from_send = channel_pair()
    prog_to_recv, recv_from_prog = channel_pair()
    prog_to_send, send_from_prog = channel_pair()
    op = OblvPermutation()
    op.send(send_from_prog, send_to_recv, src, "send")
    op.program(prog_to_recv, prog_to_send, [0, 1, 2], None, np.zeros((3, 2), dtype=np.uint8))
    with pytest.raises(RuntimeError):
        op.recv(recv_from_prog, recv_from_send, np.zeros((3, 2), dtype=np.uint8), 3)


def test_send_rejects_one_dimensional_source():
    a, b = channel_pair()
    with pytest.raises(ValueError):
        OblvPermutation().send(a, b, [1, 2, 3], "send")


def test_program_rejects_non_array_destination():
    a, b = channel_pair()
    with pytest.raises(TypeError):
        OblvPermutation().program(a, b, [0], None, [[0]], "prog")