"""
Tests for the plasada commission split paid up the agent downline at settlement.
"""

import pytest

from domain.models.match import TransactionType
from domain.services.commission_split import (
    ADMIN_SHARE,
    AGENT_DIRECT,
    MASTER_OVERRIDE,
    commission_recipients,
    split_commission,
)

SHARES = {AGENT_DIRECT: 0.01, MASTER_OVERRIDE: 0.005, ADMIN_SHARE: 0.025}


def _profile(user_id, role):
    return {"user_id": user_id, "role": role}


def _commissions(profile_repository, user_id):
    return [
        r for r in profile_repository.get_transactions(user_id)
        if r["type"] == TransactionType.COMMISSION.value and r["receiver_id"] == user_id
    ]


class TestCommissionRecipients:
    def test_full_downline(self):
        chain = [_profile(3, "agent"), _profile(2, "master_agent"), _profile(1, "admin")]
        assert commission_recipients(chain) == {
            AGENT_DIRECT: 3,
            MASTER_OVERRIDE: 2,
            ADMIN_SHARE: 1,
        }

    def test_loader_is_skipped_for_the_direct_share(self):
        chain = [_profile(4, "loader"), _profile(3, "agent"), _profile(1, "admin")]
        assert commission_recipients(chain) == {AGENT_DIRECT: 3, ADMIN_SHARE: 1}

    def test_master_agent_as_direct_upline_takes_no_override(self):
        chain = [_profile(2, "master_agent"), _profile(1, "admin")]
        assert commission_recipients(chain) == {AGENT_DIRECT: 2, ADMIN_SHARE: 1}

    def test_override_goes_to_master_above_the_direct_agent(self):
        chain = [
            _profile(5, "agent"),
            _profile(4, "agent"),
            _profile(2, "master_agent"),
        ]
        assert commission_recipients(chain) == {AGENT_DIRECT: 5, MASTER_OVERRIDE: 2}

    def test_no_upline(self):
        assert commission_recipients([]) == {}

    def test_split_floors_to_centavos(self):
        chain = [_profile(3, "agent"), _profile(2, "master_agent"), _profile(1, "admin")]
        assert split_commission(33.0, SHARES, chain) == [
            (3, AGENT_DIRECT, 0.33),
            (2, MASTER_OVERRIDE, 0.16),
            (1, ADMIN_SHARE, 0.82),
        ]

    def test_zero_shares_are_skipped(self):
        chain = [_profile(3, "agent"), _profile(1, "admin")]
        shares = {AGENT_DIRECT: 0.0, ADMIN_SHARE: 0.025}
        assert split_commission(100.0, shares, chain) == [(1, ADMIN_SHARE, 2.5)]


@pytest.fixture
def downline(profile_repository, admin_id, make_user):
    """admin -> master1 -> agent1 -> {juan, maria}, plus walkin with no upline."""
    master = make_user("master1", balance=0, role="master_agent", upline_id=admin_id)
    agent = make_user("agent1", balance=0, role="agent", upline_id=master)
    return {
        "admin": admin_id,
        "master": master,
        "agent": agent,
        "juan": make_user("juan", balance=1000, upline_id=agent),
        "maria": make_user("maria", balance=1000, upline_id=agent),
        "walkin": make_user("walkin", balance=1000),
    }


@pytest.fixture
def downline_match(settlement_service, betting_service, pool_service, downline):
    """juan 100 on meron and maria 100 on wala, with house stakes making 600/400."""
    match_id = settlement_service.create_match("Red", "White")
    bets = {
        "juan": betting_service.place_bet(downline["juan"], match_id, "meron", 100),
        "maria": betting_service.place_bet(downline["maria"], match_id, "wala", 100),
    }
    pool_service.inject(match_id, "meron", 500)
    pool_service.place_bot_bet(match_id, "wala", 300)
    return {"match_id": match_id, "bets": bets, **downline}


class TestSettlementCommission:
    def test_commission_paid_on_winning_and_losing_bets(
        self, settlement_service, profile_repository, downline_match
    ):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        summary = settlement_service.announce_winner(match_id, "meron")

        assert summary["commission_total"] == pytest.approx(8.0)
        assert profile_repository.get_balance(downline_match["agent"]) == pytest.approx(2.0)
        assert profile_repository.get_balance(downline_match["master"]) == pytest.approx(1.0)
        assert profile_repository.get_balance(downline_match["admin"]) == pytest.approx(10005.0)

        # Commission comes out of the plasada, never out of the bettors
        assert profile_repository.get_balance(downline_match["juan"]) == pytest.approx(1060)
        assert profile_repository.get_balance(downline_match["maria"]) == pytest.approx(900)

    def test_commission_ledger_rows(self, settlement_service, profile_repository, downline_match):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "wala")

        rows = _commissions(profile_repository, downline_match["agent"])
        assert len(rows) == 2
        assert {r["sender_id"] for r in rows} == {downline_match["juan"], downline_match["maria"]}
        assert {r["reference"] for r in rows} == {
            f"bet:{bet_id}" for bet_id in downline_match["bets"].values()
        }
        assert all(r["amount"] == pytest.approx(1.0) for r in rows)

    def test_wallets_reconcile_after_commission(
        self, settlement_service, wallet_service, downline_match
    ):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        for role in ("admin", "master", "agent", "juan", "maria"):
            assert wallet_service.reconcile(downline_match[role])["consistent"], role

    def test_repeat_announce_pays_no_new_commission(
        self, settlement_service, profile_repository, downline_match
    ):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")
        summary = settlement_service.announce_winner(match_id, "meron")

        assert summary["commission_total"] == 0
        assert len(_commissions(profile_repository, downline_match["agent"])) == 2
        assert profile_repository.get_balance(downline_match["agent"]) == pytest.approx(2.0)

    def test_shares_frozen_at_close(
        self, settlement_service, settings_repository, profile_repository, downline_match
    ):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settings_repository.set_many({AGENT_DIRECT: "0.02"})
        settlement_service.announce_winner(match_id, "meron")
        assert profile_repository.get_balance(downline_match["agent"]) == pytest.approx(2.0)

    def test_no_commission_on_cancel(self, settlement_service, profile_repository, downline_match):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.cancel_match(match_id)
        assert _commissions(profile_repository, downline_match["agent"]) == []
        assert profile_repository.get_balance(downline_match["admin"]) == pytest.approx(10000)

    def test_bettor_without_upline_pays_nobody(
        self, settlement_service, betting_service, profile_repository, downline
    ):
        match_id = settlement_service.create_match("Red", "White")
        betting_service.place_bet(downline["walkin"], match_id, "meron", 100)
        settlement_service.close_betting(match_id)
        summary = settlement_service.announce_winner(match_id, "meron")
        assert summary["commission_total"] == 0
        assert profile_repository.get_balance(downline["admin"]) == pytest.approx(10000)

    def test_unclaimed_override_stays_with_house(
        self, settlement_service, betting_service, profile_repository, admin_id, make_user
    ):
        """A loader between bettor and agent is skipped, and no master means no override."""
        agent = make_user("agent2", balance=0, role="agent", upline_id=admin_id)
        loader = make_user("loader2", balance=0, role="loader", upline_id=agent)
        bettor = make_user("pedro", balance=1000, upline_id=loader)
        match_id = settlement_service.create_match("Red", "White")
        betting_service.place_bet(bettor, match_id, "wala", 100)
        settlement_service.close_betting(match_id)
        summary = settlement_service.announce_winner(match_id, "meron")

        assert summary["commission_total"] == pytest.approx(3.5)
        assert profile_repository.get_balance(agent) == pytest.approx(1.0)
        assert profile_repository.get_balance(loader) == 0
        assert profile_repository.get_balance(admin_id) == pytest.approx(10002.5)


class TestCommissionSummary:
    def test_grouped_by_bettor(self, settlement_service, wallet_service, downline_match):
        match_id = downline_match["match_id"]
        settlement_service.close_betting(match_id)
        settlement_service.announce_winner(match_id, "meron")

        summary = wallet_service.commission_summary(downline_match["agent"])
        assert summary["total"] == pytest.approx(2.0)
        assert {row["username"] for row in summary["by_source"]} == {"juan", "maria"}
        assert all(row["bets"] == 1 for row in summary["by_source"])

    def test_no_earnings(self, wallet_service, downline):
        assert wallet_service.commission_summary(downline["juan"]) == {
            "user_id": downline["juan"],
            "total": 0,
            "by_source": [],
        }
