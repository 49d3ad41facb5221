import io

import pytest

from obliviousdb.lowmc import (
    INV_SBOX,
    SBOX,
    LowMC,
    invert_matrix,
    load_matrix,
    rank_of_matrix,
    write_matrix,
)

SMALL = dict(num_boxes=3, block_size=16, key_size=16, rounds=4)


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cipher(in_tmp):
    return LowMC(True, key=0x1234, **SMALL)


def identity(size):
    return [1 << i for i in range(size)]


def test_sbox_tables_are_inverse(cipher):
    assert [cipher.substitution(x) for x in range(8)] == list(SBOX)
    assert [cipher.inv_substitution(x) for x in range(8)] == list(INV_SBOX)
    assert [cipher.inv_substitution(cipher.substitution(x)) for x in range(8)] == list(
        range(8)
    )


def test_substitution_uses_sbox_on_low_bits(cipher):
    assert cipher.substitution(2) == SBOX[2]
    assert cipher.substitution(0) == 0


def test_substitution_leaves_identity_part(cipher):
    assert cipher.substitution(1 << 15) == 1 << 15


def test_substitution_round_trip(cipher):
    for m in range(0, 1 << 16, 97):
        assert cipher.inv_substitution(cipher.substitution(m)) == m


def test_encrypt_decrypt_round_trip(cipher):
    for m in (0, 1, 0xBEEF, 0xFFFF, 0x8001):
        assert cipher.decrypt(cipher.encrypt(m)) == m


def test_encrypt_is_injective_on_sample(cipher):
    outputs = {cipher.encrypt(m) for m in range(300)}
    assert len(outputs) == 300
    assert all(0 <= c < 1 << 16 for c in outputs)


def test_decrypt_requires_invertible(in_tmp):
    c = LowMC(False, key=5, **SMALL)
    with pytest.raises(RuntimeError):
        c.decrypt(0)


def test_deterministic_instances(in_tmp):
    a = LowMC(False, key=7, **SMALL)
    b = LowMC(False, key=7, **SMALL)
    assert a.encrypt(0xABCD) == b.encrypt(0xABCD)
    assert a.lin_matrices == b.lin_matrices


def test_set_key_matches_constructor(in_tmp):
    a = LowMC(True, key=1, **SMALL)
    b = LowMC(True, key=99, **SMALL)
    a.set_key(99)
    assert a.round_keys == b.round_keys
    assert a.encrypt(42) == b.encrypt(42)


def test_zero_key_gives_zero_round_keys(cipher):
    cipher.set_key(0)
    assert cipher.round_keys == [0] * (SMALL["rounds"] + 1)


def test_generated_matrices_have_full_rank(cipher):
    assert all(rank_of_matrix(m, 16) == 16 for m in cipher.lin_matrices)
    assert all(rank_of_matrix(m, 16) >= 16 for m in cipher.key_matrices)
    assert len(cipher.key_matrices) == SMALL["rounds"] + 1


def test_inverse_matrices_invert_back(cipher):
    for mat, inv in zip(cipher.lin_matrices, cipher.inv_lin_matrices):
        assert invert_matrix(inv, 16) == mat


def test_invalid_box_count():
    with pytest.raises(ValueError):
        LowMC(False, num_boxes=10, block_size=16, key_size=16, rounds=1)


def test_rank_examples():
    assert rank_of_matrix(identity(8), 8) == 8
    assert rank_of_matrix([0, 0, 0], 3) == 0
    assert rank_of_matrix([3, 3], 2) == 1
    assert rank_of_matrix([1, 1, 2], 2) == 2


def test_invert_identity():
    assert invert_matrix(identity(5), 5) == identity(5)


def test_write_matrix_format():
    out = io.StringIO()
    write_matrix(out, [1, 2], 2)
    assert out.getvalue() == "10\n01\n"


def test_load_write_round_trip():
    mat = [0b1011, 0b0110, 0b1111, 0]
    out = io.StringIO()
    write_matrix(out, mat, 4)
    assert load_matrix(io.StringIO(out.getvalue()), 4, 4) == mat


def test_load_matrix_rejects_bad_character():
    with pytest.raises(ValueError):
        load_matrix(io.StringIO("1x\n00\n"), 2, 2)


def test_load_matrix_requires_newline():
    with pytest.raises(ValueError):
        load_matrix(io.StringIO("1001"), 2, 2)


def test_linear_matrix_loaded_from_file(in_tmp):
    with (in_tmp / "linMtx_0.txt").open("w", newline="") as f:
        write_matrix(f, identity(16), 16)
    c = LowMC(True, key=3, **SMALL)
    assert c.lin_matrices[0] == identity(16)
    assert c.decrypt(c.encrypt(777)) == 777


def test_singular_matrix_file_rejected(in_tmp):
    with (in_tmp / "linMtx_0.txt").open("w", newline="") as f:
        write_matrix(f, [0] * 16, 16)
    with pytest.raises(ValueError):
        LowMC(True, **SMALL)


def test_format_matrices(in_tmp):
    c = LowMC(False, num_boxes=1, block_size=4, key_size=4, rounds=1)
    text = c.format_matrices()
    assert text.startswith("LowMC matrices and constants\n")
    assert "Block size: 4\n" in text
    assert "Round key matrix 1:" in text
    assert text.count("Linear layer 1:") == 1