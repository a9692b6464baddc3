"""
Domain services containing pure business logic.
"""

from domain.services import commission_split, karera_combinations, odds_calculator

__all__ = ["commission_split", "karera_combinations", "odds_calculator"]
