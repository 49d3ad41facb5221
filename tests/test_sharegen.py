import pytest

from obliviousdb.sharegen import ShareGen

SEEDS = [bytes([i]) * 16 for i in (1, 2, 3)]


def _parties(buff_size=256):
    gens = []
    for i in range(3):
        g = ShareGen()
        g.init(SEEDS[(i - 1) % 3], SEEDS[i], buff_size)
        gens.append(g)
    return gens


def test_additive_shares_sum_to_zero():
    gens = _parties()
    for _ in range(10):
        shares = [g.get_share() for g in gens]
        assert sum(shares) % (1 << 64) == 0


def test_binary_shares_xor_to_zero():
    gens = _parties()
    for _ in range(10):
        a, b, c = (g.get_binary_share() for g in gens)
        assert a ^ b ^ c == 0


def test_zero_shares_survive_buffer_refill():
    gens = _parties(buff_size=1)
    for _ in range(7):
        assert sum(g.get_share() for g in gens) % (1 << 64) == 0
    assert all(g.share_gen_idx > 1 for g in gens)


def test_rand_int_share_is_replicated():
    gens = _parties()
    for _ in range(5):
        shares = [g.get_rand_int_share() for g in gens]
        for i in range(3):
            assert shares[i][0] == shares[(i + 1) % 3][1]


def test_rand_binary_share_is_replicated():
    gens = _parties()
    shares = [g.get_rand_binary_share() for g in gens]
    for i in range(3):
        assert shares[i][0] == shares[(i + 1) % 3][1]


def test_shares_are_signed_64_bit():
    gens = _parties()
    for _ in range(20):
        value = gens[0].get_share()
        assert -(1 << 63) <= value < (1 << 63)


def test_use_before_init_raises():
    with pytest.raises(RuntimeError):
        ShareGen().get_share()
    with pytest.raises(RuntimeError):
        ShareGen().refill_buffer()


def test_reinit_repeats_sequence():
    g = ShareGen()
    g.init(SEEDS[0], SEEDS[1])
    first = [g.get_share() for _ in range(3)]
    g.init(SEEDS[0], SEEDS[1])
    assert [g.get_share() for _ in range(3)] == first