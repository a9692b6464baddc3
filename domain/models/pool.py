"""
Pool ledger snapshot model.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SelectionTotals:
    """Stake totals for one selection, partitioned by source."""

    user: float = 0.0
    bot: float = 0.0
    injection: float = 0.0
    grand: float = 0.0

    @property
    def bucket_sum(self) -> float:
        return self.user + self.bot + self.injection

    @property
    def house(self) -> float:
        return self.bot + self.injection


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Point-in-time view of a match pool.

    Payout policy: bot and injected stakes count toward the pool and the
    winning side exactly like user stakes. human_only() gives the user-only
    view used by the payout audit.
    """

    match_id: int
    commission_rate: float
    selections: dict[str, SelectionTotals] = field(default_factory=dict)

    def side_total(self, selection: str) -> float:
        totals = self.selections.get(selection)
        return totals.grand if totals else 0.0

    @property
    def total_pool(self) -> float:
        return sum(t.grand for t in self.selections.values())

    @property
    def injected_total(self) -> float:
        return sum(t.injection for t in self.selections.values())

    def human_only(self) -> PoolSnapshot:
        return PoolSnapshot(
            match_id=self.match_id,
            commission_rate=self.commission_rate,
            selections={
                sel: SelectionTotals(user=t.user, grand=t.user)
                for sel, t in self.selections.items()
            },
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "match_id": self.match_id,
                "commission_rate": self.commission_rate,
                "selections": {
                    sel: {
                        "user": t.user,
                        "bot": t.bot,
                        "injection": t.injection,
                        "grand": t.grand,
                    }
                    for sel, t in self.selections.items()
                },
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, raw: str) -> PoolSnapshot:
        data = json.loads(raw)
        return cls(
            match_id=int(data["match_id"]),
            commission_rate=float(data["commission_rate"]),
            selections={
                sel: SelectionTotals(**totals) for sel, totals in data["selections"].items()
            },
        )
