"""
Match/race lifecycle and bet enums.
"""

from enum import Enum


class MatchStatus(Enum):
    """Lifecycle of a sabong match or karera race."""

    OPEN = "open"
    LAST_CALL = "last_call"  # Grace window, still accepting bets
    CLOSED = "closed"  # No more bets, pool frozen
    ONGOING = "ongoing"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (MatchStatus.FINISHED, MatchStatus.CANCELLED)

    @property
    def accepts_bets(self) -> bool:
        return self in (MatchStatus.OPEN, MatchStatus.LAST_CALL)

    @property
    def can_settle(self) -> bool:
        return self in (MatchStatus.CLOSED, MatchStatus.ONGOING)


# Allowed forward moves. CANCELLED is reachable from every non-terminal status.
MATCH_TRANSITIONS: dict[MatchStatus, set[MatchStatus]] = {
    MatchStatus.OPEN: {MatchStatus.LAST_CALL, MatchStatus.CLOSED, MatchStatus.CANCELLED},
    MatchStatus.LAST_CALL: {MatchStatus.CLOSED, MatchStatus.CANCELLED},
    MatchStatus.CLOSED: {MatchStatus.ONGOING, MatchStatus.FINISHED, MatchStatus.CANCELLED},
    MatchStatus.ONGOING: {MatchStatus.FINISHED, MatchStatus.CANCELLED},
    MatchStatus.FINISHED: set(),
    MatchStatus.CANCELLED: set(),
}


def can_transition(current: MatchStatus, target: MatchStatus) -> bool:
    return target in MATCH_TRANSITIONS[current]


class BetSource(Enum):
    """Who put the money in the pool."""

    USER = "user"
    BOT = "bot"
    INJECTION = "injection"  # House-seeded liquidity

    @property
    def is_house(self) -> bool:
        return self is not BetSource.USER


class BetStatus(Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"


class TransactionType(Enum):
    LOAD = "load"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    BET = "bet"
    PAYOUT = "payout"
    REFUND = "refund"
    COMMISSION = "commission"


# Types where the sender's wallet is actually debited. Loads are minted by an
# admin and never leave the admin's own balance. Commissions name the bettor
# as sender but are paid out of the plasada.
SENDER_DEBIT_TYPES = (
    TransactionType.WITHDRAW,
    TransactionType.TRANSFER,
    TransactionType.BET,
)
