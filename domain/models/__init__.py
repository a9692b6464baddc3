"""
Domain models - pure data structures representing business entities.
"""

from domain.models.karera import KareraBetType
from domain.models.match import BetSource, BetStatus, MatchStatus, TransactionType
from domain.models.pool import PoolSnapshot, SelectionTotals

__all__ = [
    "BetSource",
    "BetStatus",
    "KareraBetType",
    "MatchStatus",
    "PoolSnapshot",
    "SelectionTotals",
    "TransactionType",
]
