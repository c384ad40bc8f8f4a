import pytest

from fair_launch.errors import (
    InsufficientOnChainFunds,
    MintNotLive,
    NotAWinner,
    SoldOut,
    TimedOut,
    UnknownLedgerError,
    classify_ledger_code,
    needs_refresh,
)


@pytest.mark.parametrize(
    "code, cls",
    [
        (0x137, SoldOut),
        (0x138, MintNotLive),
        (0x135, InsufficientOnChainFunds),
        (1, InsufficientOnChainFunds),
    ],
)
def test_known_codes(code, cls):
    error = classify_ledger_code(code)
    assert type(error) is cls
    assert error.code == code


def test_sold_out_and_not_live_are_distinct():
    assert classify_ledger_code(311).message == "SOLD OUT!"
    assert classify_ledger_code(312).message == "Minting period hasn't started yet."


@pytest.mark.parametrize("code", [0x1770, 42, None])
def test_unknown_codes_keep_the_raw_code(code):
    error = classify_ledger_code(code)
    assert isinstance(error, UnknownLedgerError)
    assert error.code == code
    assert str(code) in error.message


def test_needs_refresh():
    assert needs_refresh(SoldOut(311))
    assert needs_refresh(TimedOut())
    assert not needs_refresh(MintNotLive(312))
    assert not needs_refresh(NotAWinner())


def test_custom_message_overrides_default():
    assert NotAWinner("nope").message == "nope"
    assert str(NotAWinner()) == NotAWinner.message
