import pytest

from kabtrace.conviction import Conviction, Delegations

U64_MAX = 2**64 - 1


@pytest.mark.parametrize("value", range(7))
def test_from_int_round_trip(value):
    assert int(Conviction.from_int(value)) == value


@pytest.mark.parametrize("value", [7, 8, 255, -1])
def test_from_int_rejects_unknown(value):
    with pytest.raises(ValueError):
        Conviction.from_int(value)


@pytest.mark.parametrize(
    "value, expected", [(0, 0), (1, 1), (2, 2), (3, 4), (4, 8), (5, 16), (6, 32)]
)
def test_lock_periods(value, expected):
    assert Conviction.from_int(value).lock_periods() == expected


@pytest.mark.parametrize("value", range(1, 6))
def test_lock_periods_double_after_first(value):
    lower = Conviction.from_int(value).lock_periods()
    higher = Conviction.from_int(value + 1).lock_periods()
    assert higher == 2 * lower


def test_none_conviction_gives_a_tenth():
    # 10 capital with no conviction counts as 1 vote.
    assert Conviction.NONE.votes(10, U64_MAX) == Delegations(votes=1, capital=10)


def test_locked_6x_multiplies():
    # 20 capital at Locked6x counts as 120 votes.
    assert Conviction.LOCKED_6X.votes(20, U64_MAX) == Delegations(votes=120, capital=20)


@pytest.mark.parametrize(
    "value, expected", [(1, 50), (2, 100), (3, 150), (4, 200), (5, 250), (6, 300)]
)
def test_locked_votes_are_capital_times_code(value, expected):
    result = Conviction.from_int(value).votes(50, U64_MAX)
    assert result.votes == expected
    assert result.capital == 50


def test_votes_saturate_at_max():
    result = Conviction.LOCKED_6X.votes(100, 255)
    assert result.votes == 255
    assert result.capital == 100


def test_ordering_bounds():
    assert Conviction.from_int(0) is min(Conviction)
    assert Conviction.from_int(6) is max(Conviction)
    assert Conviction.from_int(1) < Conviction.from_int(2)