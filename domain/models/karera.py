"""
Karera (horse racing) bet types.
"""

from enum import Enum


class KareraBetType(Enum):
    # Single race
    WIN = "win"
    PLACE = "place"
    FORECAST = "forecast"
    TRIFECTA = "trifecta"
    QUARTET = "quartet"
    # Multi-leg (parley)
    DAILY_DOUBLE = "daily_double"
    DAILY_DOUBLE_PLUS_ONE = "daily_double_plus_one"
    PICK_4 = "pick_4"
    PICK_5 = "pick_5"
    PICK_6 = "pick_6"
    WTA = "wta"  # Winner Take All

    @property
    def is_multi_leg(self) -> bool:
        return self in MULTI_LEG_TYPES

    @property
    def uses_standard_unit(self) -> bool:
        return self in STANDARD_UNIT_TYPES

    @property
    def positions(self) -> int:
        """Finish positions an ordered bet covers (0 for win/place/multi-leg)."""
        return ORDERED_POSITIONS.get(self, 0)

    @property
    def leg_count(self) -> int | None:
        """Fixed number of legs, None when the program decides (WTA)."""
        return LEG_COUNTS.get(self)


MULTI_LEG_TYPES = frozenset(
    {
        KareraBetType.DAILY_DOUBLE,
        KareraBetType.DAILY_DOUBLE_PLUS_ONE,
        KareraBetType.PICK_4,
        KareraBetType.PICK_5,
        KareraBetType.PICK_6,
        KareraBetType.WTA,
    }
)

STANDARD_UNIT_TYPES = frozenset(
    {
        KareraBetType.WIN,
        KareraBetType.PLACE,
        KareraBetType.FORECAST,
        KareraBetType.DAILY_DOUBLE,
        KareraBetType.DAILY_DOUBLE_PLUS_ONE,
    }
)

ORDERED_POSITIONS = {
    KareraBetType.FORECAST: 2,
    KareraBetType.TRIFECTA: 3,
    KareraBetType.QUARTET: 4,
}

LEG_COUNTS = {
    KareraBetType.DAILY_DOUBLE: 2,
    KareraBetType.DAILY_DOUBLE_PLUS_ONE: 3,
    KareraBetType.PICK_4: 4,
    KareraBetType.PICK_5: 5,
    KareraBetType.PICK_6: 6,
}

PROGRAM_LABELS = {
    KareraBetType.PICK_4: "Pick 4",
    KareraBetType.PICK_5: "Pick 5",
    KareraBetType.PICK_6: "Pick 6",
    KareraBetType.WTA: "Winner Take All",
}


def required_places(bet_types: list[KareraBetType]) -> int:
    """How many finishers must be declared for a race offering these bet types."""
    places = 1
    for bt in bet_types:
        if bt is KareraBetType.PLACE:
            places = max(places, 2)
        places = max(places, bt.positions)
    return places
