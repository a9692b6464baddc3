"""
Tests for SettlementService: match lifecycle, payouts, idempotency and refunds.
"""

import sqlite3

import pytest

from domain.models.match import BetStatus, MatchStatus, TransactionType
from services.exceptions import (
    InvalidStateTransition,
    LedgerInconsistency,
    NotFoundError,
    ValidationError,
)


def _tx_count(db_path: str) -> int:
    with sqlite3.connect(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]


@pytest.fixture
def standard_pool(settlement_service, betting_service, pool_service, make_user):
    """
    Pool of {meron: 600, wala: 400} at 4%.

    juan has 100 on meron, maria has 100 on wala, the house holds the rest.
    """
    match_id = settlement_service.create_match("Red", "White")
    juan = make_user("juan", balance=1000)
    maria = make_user("maria", balance=1000)
    juan_bet = betting_service.place_bet(juan, match_id, "meron", 100)
    maria_bet = betting_service.place_bet(maria, match_id, "wala", 100)
    pool_service.inject(match_id, "meron", 500)
    pool_service.place_bot_bet(match_id, "wala", 300)
    return {
        "match_id": match_id,
        "juan": juan,
        "maria": maria,
        "juan_bet": juan_bet,
        "maria_bet": maria_bet,
    }


def _bet(match_repository, match_id, bet_id):
    return next(b for b in match_repository.get_bets(match_id) if b["bet_id"] == bet_id)


class TestMatchLifecycle:
    """Tests for status transitions."""

    def test_create_match_opens(self, settlement_service):
        match_id = settlement_service.create_match("Red", "White")
        match = settlement_service.get_match(match_id)
        assert match["status"] == MatchStatus.OPEN.value
        assert match["commission_rate"] is None

    def test_create_match_requires_names(self, settlement_service):
        with pytest.raises(ValidationError):
            settlement_service.create_match("Red", "  ")

    @pytest.mark.parametrize("selections", [["meron", "  "], ["meron", None], ["Meron", "meron "]])
    def test_create_match_rejects_bad_selections(self, settlement_service, repo_db_path, selections):
        with pytest.raises(ValidationError):
            settlement_service.create_match("Red", "White", selections=selections)
        with sqlite3.connect(repo_db_path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM matches").fetchone()[0] == 0

    def test_create_match_custom_selections(self, settlement_service, pool_service):
        match_id = settlement_service.create_match("Red", "White", selections=[" Meron", "WALA"])
        assert set(pool_service.live_odds(match_id)) == {"meron", "wala"}

    def test_full_lifecycle(self, settlement_service, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.set_last_call(match_id)
        settlement_service.close_betting(match_id)
        settlement_service.start_fight(match_id)
        settlement_service.announce_winner(match_id, "meron")
        assert settlement_service.get_match(match_id)["status"] == MatchStatus.FINISHED.value

    def test_cannot_start_open_match(self, settlement_service):
        match_id = settlement_service.create_match("Red", "White")
        with pytest.raises(InvalidStateTransition):
            settlement_service.start_fight(match_id)

    def test_cannot_announce_open_match(self, settlement_service, standard_pool):
        with pytest.raises(InvalidStateTransition):
            settlement_service.announce_winner(standard_pool["match_id"], "meron")

    def test_close_freezes_snapshot_and_rate(self, settlement_service, standard_pool):
        snapshot = settlement_service.close_betting(standard_pool["match_id"])
        assert snapshot.side_total("meron") == pytest.approx(600)
        assert snapshot.side_total("wala") == pytest.approx(400)
        assert snapshot.injected_total == pytest.approx(500)
        match = settlement_service.get_match(standard_pool["match_id"])
        assert match["status"] == MatchStatus.CLOSED.value
        assert match["commission_rate"] == pytest.approx(0.04)
        assert match["snapshot_json"]

    def test_close_twice_rejected(self, settlement_service, standard_pool):
        settlement_service.close_betting(standard_pool["match_id"])
        with pytest.raises(InvalidStateTransition):
            settlement_service.close_betting(standard_pool["match_id"])

    def test_unknown_match(self, settlement_service):
        with pytest.raises(NotFoundError):
            settlement_service.get_match(404)


class TestAnnounceWinner:
    """Tests for payout correctness."""

    def test_winning_and_losing_bets(
        self, settlement_service, match_repository, profile_repository, standard_pool
    ):
        """100 on meron of a 600/400 pool at 4% pays 160; 100 on wala loses."""
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        summary = settlement_service.announce_winner(match_id, "meron")

        juan_bet = _bet(match_repository, match_id, standard_pool["juan_bet"])
        maria_bet = _bet(match_repository, match_id, standard_pool["maria_bet"])
        assert juan_bet["status"] == BetStatus.WON.value
        assert juan_bet["payout"] == pytest.approx(160)
        assert maria_bet["status"] == BetStatus.LOST.value
        assert maria_bet["payout"] == 0

        assert profile_repository.get_balance(standard_pool["juan"]) == pytest.approx(1060)
        assert profile_repository.get_balance(standard_pool["maria"]) == pytest.approx(900)

        assert summary["settled"] == 4
        assert summary["won"] == 2
        assert summary["lost"] == 2
        assert summary["payout_total"] == pytest.approx(960)
        assert summary["credited_total"] == pytest.approx(160)

    def test_house_winners_marked_won_without_credit(
        self, settlement_service, match_repository, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        injected = [b for b in match_repository.get_bets(match_id) if b["source"] == "injection"]
        assert injected[0]["status"] == BetStatus.WON.value
        assert injected[0]["payout"] == pytest.approx(800)

    def test_payout_ledger_row(self, settlement_service, profile_repository, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "MERON")
        payouts = [
            r for r in profile_repository.get_transactions(standard_pool["juan"])
            if r["type"] == TransactionType.PAYOUT.value
        ]
        assert len(payouts) == 1
        assert payouts[0]["receiver_id"] == standard_pool["juan"]
        assert payouts[0]["amount"] == pytest.approx(160)
        assert payouts[0]["reference"] == f"bet:{standard_pool['juan_bet']}"

    def test_uses_rate_frozen_at_close(
        self, settlement_service, settings_repository, match_repository, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settings_repository.set_many({"plasada_rate": "0.2"})
        settlement_service.announce_winner(match_id, "meron")
        assert _bet(match_repository, match_id, standard_pool["juan_bet"])["payout"] == pytest.approx(160)

    def test_winning_side_with_no_stakes(self, settlement_service, match_repository, standard_pool):
        """Draw wins with nobody on it: every bet loses and nothing is paid."""
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        summary = settlement_service.announce_winner(match_id, "draw")
        assert summary["won"] == 0
        assert summary["payout_total"] == 0
        assert all(b["status"] == BetStatus.LOST.value for b in match_repository.get_bets(match_id))

    def test_invalid_winner(self, settlement_service, match_repository, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        with pytest.raises(ValidationError):
            settlement_service.announce_winner(match_id, "tie")
        assert all(b["status"] == BetStatus.PENDING.value for b in match_repository.get_bets(match_id))


class TestIdempotentSettlement:
    """Re-running settlement credits nothing new."""

    def test_second_announce_is_a_no_op(
        self, settlement_service, profile_repository, repo_db_path, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        balance = profile_repository.get_balance(standard_pool["juan"])
        tx_count = _tx_count(repo_db_path)

        summary = settlement_service.announce_winner(match_id, "meron")

        assert summary["settled"] == 0
        assert summary["credited_total"] == 0
        assert profile_repository.get_balance(standard_pool["juan"]) == balance
        assert _tx_count(repo_db_path) == tx_count

    def test_different_winner_after_finish_rejected(
        self, settlement_service, profile_repository, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        with pytest.raises(InvalidStateTransition):
            settlement_service.announce_winner(match_id, "wala")
        assert profile_repository.get_balance(standard_pool["maria"]) == pytest.approx(900)


class TestLedgerInconsistency:
    """A corrupted pool aborts settlement with nothing written."""

    def test_bucket_drift_aborts_settlement(
        self, settlement_service, match_repository, profile_repository, repo_db_path, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        with sqlite3.connect(repo_db_path) as conn:
            conn.execute(
                "UPDATE match_pools SET user_total = user_total + 10 WHERE match_id = ? AND selection = 'meron'",
                (match_id,),
            )

        with pytest.raises(LedgerInconsistency):
            settlement_service.announce_winner(match_id, "meron")

        assert settlement_service.get_match(match_id)["status"] == MatchStatus.CLOSED.value
        assert all(b["status"] == BetStatus.PENDING.value for b in match_repository.get_bets(match_id))
        assert profile_repository.get_balance(standard_pool["juan"]) == pytest.approx(900)

    def test_pool_moved_after_close_aborts_settlement(
        self, settlement_service, repo_db_path, standard_pool
    ):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        with sqlite3.connect(repo_db_path) as conn:
            conn.execute(
                "INSERT INTO bets (match_id, user_id, selection, amount, source, status) "
                "VALUES (?, NULL, 'wala', 50, 'bot', 'pending')",
                (match_id,),
            )
            conn.execute(
                "UPDATE match_pools SET bot_total = bot_total + 50, grand_total = grand_total + 50 "
                "WHERE match_id = ? AND selection = 'wala'",
                (match_id,),
            )
        with pytest.raises(LedgerInconsistency):
            settlement_service.announce_winner(match_id, "meron")

    def test_verification_can_be_disabled(
        self, match_repository, settings_service, repo_db_path, standard_pool
    ):
        from services.settlement_service import SettlementService

        service = SettlementService(match_repository, settings_service, verify_ledger=False)
        match_id = standard_pool["match_id"]
        service.close_betting(match_id)
        with sqlite3.connect(repo_db_path) as conn:
            conn.execute(
                "UPDATE match_pools SET user_total = user_total + 10 WHERE match_id = ?",
                (match_id,),
            )
        assert service.announce_winner(match_id, "meron")["won"] == 2


class TestCancelMatch:
    """Cancellation refunds exactly the stake."""

    def test_cancel_refunds_stake(self, settlement_service, betting_service, match_repository, profile_repository, make_user):
        match_id = settlement_service.create_match("Red", "White")
        bettor = make_user("juan", balance=1000)
        bet_id = betting_service.place_bet(bettor, match_id, "meron", 100)

        assert settlement_service.cancel_match(match_id) == 1

        assert profile_repository.get_balance(bettor) == pytest.approx(1000)
        assert _bet(match_repository, match_id, bet_id)["status"] == BetStatus.CANCELLED.value
        refunds = [
            r for r in profile_repository.get_transactions(bettor)
            if r["type"] == TransactionType.REFUND.value
        ]
        assert len(refunds) == 1
        assert refunds[0]["amount"] == pytest.approx(100)

    def test_cancel_empties_pool(self, settlement_service, pool_service, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.cancel_match(match_id)
        assert pool_service.snapshot(match_id).total_pool == pytest.approx(0)
        pool_service.verify(match_id)

    def test_cancel_after_close(self, settlement_service, profile_repository, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.start_fight(match_id)
        assert settlement_service.cancel_match(match_id) == 4
        assert profile_repository.get_balance(standard_pool["maria"]) == pytest.approx(1000)

    def test_cancel_twice_refunds_once(self, settlement_service, profile_repository, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.cancel_match(match_id)
        assert settlement_service.cancel_match(match_id) == 0
        assert profile_repository.get_balance(standard_pool["juan"]) == pytest.approx(1000)

    def test_cannot_cancel_finished_match(self, settlement_service, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        with pytest.raises(InvalidStateTransition):
            settlement_service.cancel_match(match_id)

    def test_cannot_announce_cancelled_match(self, settlement_service, standard_pool):
        match_id = standard_pool["match_id"]
        settlement_service.cancel_match(match_id)
        with pytest.raises(InvalidStateTransition):
            settlement_service.announce_winner(match_id, "meron")


class TestResultsTrend:
    """Results board tally and bead road over finished and cancelled matches."""

    def _finish(self, settlement_service, winner):
        match_id = settlement_service.create_match("Red", "White")
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, winner)
        return match_id

    def test_tally_and_sequence(self, settlement_service):
        first = self._finish(settlement_service, "meron")
        cancelled = settlement_service.create_match("Blue", "Gold")
        settlement_service.cancel_match(cancelled)
        third = self._finish(settlement_service, "wala")
        fourth = self._finish(settlement_service, "meron")
        settlement_service.create_match("Still", "Open")

        trend = settlement_service.results_trend()

        assert trend["counts"] == {"meron": 2, "wala": 1, "draw": 0, "cancelled": 1}
        assert trend["sequence"] == [
            {"match_id": first, "result": "meron"},
            {"match_id": cancelled, "result": "cancelled"},
            {"match_id": third, "result": "wala"},
            {"match_id": fourth, "result": "meron"},
        ]

    def test_limit_keeps_latest_results_in_order(self, settlement_service):
        self._finish(settlement_service, "meron")
        second = self._finish(settlement_service, "draw")
        third = self._finish(settlement_service, "wala")

        trend = settlement_service.results_trend(limit=2)

        assert [row["match_id"] for row in trend["sequence"]] == [second, third]
        assert trend["counts"] == {"meron": 0, "wala": 1, "draw": 1, "cancelled": 0}

    def test_empty_board(self, settlement_service):
        settlement_service.create_match("Red", "White")
        trend = settlement_service.results_trend()
        assert trend["sequence"] == []
        assert set(trend["counts"].values()) == {0}
