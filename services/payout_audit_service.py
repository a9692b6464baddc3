"""
Payout audit for finished matches.

Rebuilds each pool from the bet rows, computes the odds settlement should
have paid, and compares them with the payout/stake ratio of a sample winning
bet. A human-only hypothesis (house stakes ignored) is reported alongside so
a discrepancy can be traced to how bot/injected money was treated.
"""

import logging

import config
from domain.models.match import BetSource, BetStatus
from domain.models.pool import PoolSnapshot, SelectionTotals
from domain.services.odds_calculator import calculate_odds
from repositories.interfaces import IMatchRepository

logger = logging.getLogger("sabong.payout_audit")

STATUS_OK = "ok"
STATUS_DISCREPANCY = "discrepancy"
STATUS_NO_WINNERS = "no_winning_bets"
STATUS_NO_BETS = "no_bets"


def pool_from_bets(match_id: int, commission_rate: float, bets: list[dict]) -> PoolSnapshot:
    """Pool totals by selection and source, summed from non-cancelled bets."""
    sums: dict[str, dict[str, float]] = {}
    for bet in bets:
        if bet["status"] == BetStatus.CANCELLED.value:
            continue
        bucket = sums.setdefault(bet["selection"], {s.value: 0.0 for s in BetSource})
        bucket[bet["source"]] += float(bet["amount"])
    return PoolSnapshot(
        match_id=match_id,
        commission_rate=commission_rate,
        selections={
            selection: SelectionTotals(
                user=b[BetSource.USER.value],
                bot=b[BetSource.BOT.value],
                injection=b[BetSource.INJECTION.value],
                grand=sum(b.values()),
            )
            for selection, b in sums.items()
        },
    )


def _odds_for(snapshot: PoolSnapshot, winner: str) -> float | None:
    side = snapshot.side_total(winner)
    if side <= 0:
        return None
    return calculate_odds(side, snapshot.total_pool, snapshot.commission_rate)


class PayoutAuditService:
    """Checks realised payouts of recent matches against the pari-mutuel formula."""

    def __init__(
        self,
        match_repo: IMatchRepository,
        tolerance: float | None = None,
        default_limit: int | None = None,
    ):
        self.match_repo = match_repo
        self.tolerance = tolerance if tolerance is not None else config.PAYOUT_AUDIT_TOLERANCE
        self.default_limit = (
            default_limit if default_limit is not None else config.PAYOUT_AUDIT_MATCH_LIMIT
        )

    def audit_recent(self, limit: int | None = None) -> list[dict]:
        matches = self.match_repo.get_recent_finished(limit or self.default_limit)
        return [self.audit_match(match) for match in matches]

    def audit_match(self, match: dict) -> dict:
        rate = float(match["commission_rate"] or 0.0)
        winner = match["winner"]
        bets = self.match_repo.get_bets(match["match_id"])
        snapshot = pool_from_bets(match["match_id"], rate, bets)

        report = {
            "match_id": match["match_id"],
            "title": f"{match['meron_name']} vs {match['wala_name']}",
            "winner": winner,
            "commission_rate": rate,
            "total_pool": snapshot.total_pool,
            "house_total": sum(t.house for t in snapshot.selections.values()),
            "winning_side_total": snapshot.side_total(winner),
            "side_totals": {
                selection: {"total": totals.grand, "house": totals.house}
                for selection, totals in snapshot.selections.items()
            },
            "theoretical_odds": _odds_for(snapshot, winner),
            "human_only_odds": _odds_for(snapshot.human_only(), winner),
            "sample_stake": None,
            "sample_payout": None,
            "actual_odds": None,
            "difference": None,
            "matches_human_only": False,
        }
        if not snapshot.selections:
            report["status"] = STATUS_NO_BETS
            return report

        winners = [
            bet
            for bet in bets
            if bet["selection"] == winner
            and bet["status"] == BetStatus.WON.value
            and bet["amount"] > 0
        ]
        if not winners:
            report["status"] = STATUS_NO_WINNERS
            return report

        sample = winners[0]
        actual = float(sample["payout"]) / float(sample["amount"])
        theoretical = report["theoretical_odds"] or 0.0
        difference = abs(theoretical - actual)
        report.update(
            sample_stake=float(sample["amount"]),
            sample_payout=float(sample["payout"]),
            actual_odds=actual,
            difference=difference,
        )
        if difference > self.tolerance:
            human = report["human_only_odds"]
            report["matches_human_only"] = human is not None and abs(human - actual) < self.tolerance
            report["status"] = STATUS_DISCREPANCY
            logger.warning(
                f"Payout discrepancy on match {match['match_id']}: "
                f"theoretical {theoretical:.4f}x, actual {actual:.4f}x"
            )
        else:
            report["status"] = STATUS_OK
        return report


def format_report(report: dict) -> list[str]:
    """Plain-text lines for one audited match."""
    lines = [
        f"MATCH: {report['title']} (ID: {report['match_id']})",
        f"WINNER: {report['winner']}",
    ]
    if report["status"] == STATUS_NO_BETS:
        return lines + ["  No bets found for this match."]

    rate_pct = report["commission_rate"] * 100
    lines.append("  POOL ANALYSIS:")
    lines.append(f"    Total Pool:     {report['total_pool']:,.2f}")
    for selection, totals in report["side_totals"].items():
        lines.append(
            f"    {selection.title():<15} {totals['total']:,.2f} (House: {totals['house']:,.2f})"
        )
    lines.append(f"    Winning Side:   {report['winning_side_total']:,.2f}")
    lines.append(f"    Commission:     {rate_pct:.2f}%")
    if report["theoretical_odds"] is not None:
        lines.append(f"    Calc. Odds:     {report['theoretical_odds']:.4f}x")

    if report["status"] == STATUS_NO_WINNERS:
        return lines + ["  No winning bets found to verify."]

    lines.append("  ACTUAL DATA (Sample Bet):")
    lines.append(f"    Stake:          {report['sample_stake']:,.2f}")
    lines.append(f"    Payout:         {report['sample_payout']:,.2f}")
    lines.append(f"    Actual Odds:    {report['actual_odds']:.4f}x")
    if report["status"] == STATUS_DISCREPANCY:
        lines.append("  DISCREPANCY DETECTED")
        human = report["human_only_odds"]
        if human is not None:
            lines.append(f"    Hypothesis (human only): {human:.4f}x")
        if report["matches_human_only"]:
            lines.append("    -> Payouts match a pool with house stakes excluded.")
    else:
        lines.append("  Odds match theoretical calculation.")
    return lines
