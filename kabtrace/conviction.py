"""Vote conviction: the multiplier and lock duration attached to a vote."""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True)
class Delegations:
    """Voting power together with the capital backing it."""

    votes: int
    capital: int


class Conviction(enum.IntEnum):
    """Strength of conviction of a vote; ordered from weakest to strongest."""

    NONE = 0
    LOCKED_1X = 1
    LOCKED_2X = 2
    LOCKED_3X = 3
    LOCKED_4X = 4
    LOCKED_5X = 5
    LOCKED_6X = 6

    @classmethod
    def from_int(cls, value: int) -> Conviction:
        """Return the conviction with this code; raise ValueError if there is none."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid conviction: {value}") from None

    def lock_periods(self) -> int:
        """Number of enactment periods a successful voter's balance stays locked."""
        if self is Conviction.NONE:
            return 0
        return 1 << (self.value - 1)

    def votes(self, capital: int, max_value: int) -> Delegations:
        """Votes granted for ``capital``; multiplication saturates at ``max_value``."""
        if self is Conviction.NONE:
            votes = capital // 10
        else:
            votes = min(capital * self.value, max_value)
        return Delegations(votes=votes, capital=capital)