import pytest

from fair_launch.lottery import LotteryOutOfRange, is_winner, winner_bit

from conftest import make_blob


def test_first_bit_is_most_significant():
    blob = bytes(49) + bytes([0b10000000]) + bytes(7)
    assert is_winner(blob, 0) is True
    assert is_winner(blob, 1) is False


def test_bit_positions_within_byte():
    blob = bytes(49) + bytes([0b00000001, 0b01000000])
    assert is_winner(blob, 7)
    assert is_winner(blob, 9)
    assert not any(is_winner(blob, seq) for seq in range(16) if seq not in (7, 9))


def test_only_the_addressed_bit_matters():
    # Every other bit set; seq 5 cleared.
    bits = bytearray(b"\xff" * 4)
    bits[0] &= ~(1 << 2)
    blob = bytes(49) + bytes(bits)
    assert not is_winner(blob, 5)
    assert all(is_winner(blob, seq) for seq in range(32) if seq != 5)


def test_header_is_skipped():
    blob = b"\xff" * 49 + bytes(2)
    assert not any(is_winner(blob, seq) for seq in range(16))


def test_past_end_is_not_a_winner():
    blob = make_blob([0], size=1)
    assert not is_winner(blob, 8)
    with pytest.raises(LotteryOutOfRange):
        winner_bit(blob, 8)


@pytest.mark.parametrize("seq", [None, -1])
def test_invalid_sequence(seq):
    blob = make_blob([0])
    assert is_winner(blob, seq) is False
    with pytest.raises(LotteryOutOfRange):
        winner_bit(blob, seq)


def test_missing_blob():
    assert is_winner(None, 0) is False
    assert is_winner(b"", 0) is False


def test_custom_header_size():
    assert is_winner(bytes([0b10000000]), 0, header_size=0)
