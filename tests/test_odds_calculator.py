"""
Tests for the pari-mutuel odds calculator and odds format conversions.
"""

import math

import pytest

from domain.services.odds_calculator import (
    calculate_odds,
    fallback_odds,
    floor_centavo,
    hong_kong_to_decimal,
    malay_to_decimal,
    net_pool,
    odds_board,
    payout_for_stake,
    to_hong_kong,
    to_malay,
)
from services.exceptions import ValidationError


class TestCalculateOdds:
    """Tests for calculate_odds()."""

    @pytest.mark.parametrize("rate", [0.0, 0.04, 0.1, 0.5, 0.999])
    @pytest.mark.parametrize("total_pool", [0.0, 1.0, 1000.0, 123456.78])
    def test_empty_side_returns_fallback(self, rate, total_pool):
        """A side with no stakes shows even money net of commission, whatever the pool."""
        assert calculate_odds(0, total_pool, rate) == pytest.approx(2 * (1 - rate))

    def test_empty_pool_returns_fallback(self):
        assert calculate_odds(100, 0, 0.04) == pytest.approx(1.92)

    def test_standard_pool(self):
        """1000 pool, 4% plasada, 600 on the side -> 960 / 600 = 1.6."""
        assert calculate_odds(600, 1000, 0.04) == pytest.approx(1.6)
        assert calculate_odds(400, 1000, 0.04) == pytest.approx(2.4)

    def test_zero_commission_single_side_pays_even(self):
        assert calculate_odds(500, 500, 0.0) == pytest.approx(1.0)

    @pytest.mark.parametrize("rate", [-0.01, 1.0, 1.5, float("nan")])
    def test_invalid_rate_rejected(self, rate):
        with pytest.raises(ValidationError):
            calculate_odds(100, 200, rate)

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValidationError):
            calculate_odds(-1, 200, 0.04)
        with pytest.raises(ValidationError):
            calculate_odds(100, float("inf"), 0.04)

    def test_fallback_matches_calculate_odds(self):
        assert fallback_odds(0.04) == calculate_odds(0, 0, 0.04)

    def test_net_pool(self):
        assert net_pool(1000, 0.04) == pytest.approx(960)


class TestPayoutForStake:
    """Tests for settlement payouts."""

    def test_winning_bet_payout(self):
        """100 on a 600 side of a 1000 pool at 4% pays 160."""
        assert payout_for_stake(100, 600, 1000, 0.04) == 160.0

    def test_payout_is_floored_to_centavo(self):
        """300 pool at 4% nets 288; 33.33 of a 100 side is 95.9904."""
        assert payout_for_stake(33.33, 100, 300, 0.04) == 95.99

    def test_empty_side_pays_nothing(self):
        assert payout_for_stake(100, 0, 1000, 0.04) == 0.0

    def test_payouts_never_exceed_net_pool(self):
        stakes = [33.33, 33.33, 33.34]
        paid = sum(payout_for_stake(s, 100, 700, 0.04) for s in stakes)
        assert paid <= net_pool(700, 0.04) + 1e-9

    def test_floor_centavo_absorbs_float_noise(self):
        assert floor_centavo(159.99999999999997) == 160.0
        assert floor_centavo(1.239) == 1.23


class TestOddsBoard:
    """Tests for odds_board()."""

    def test_board_uses_same_formula_as_calculate_odds(self):
        board = odds_board({"meron": 600, "wala": 400, "draw": 0}, 0.04)
        assert board["meron"] == calculate_odds(600, 1000, 0.04)
        assert board["wala"] == calculate_odds(400, 1000, 0.04)
        assert board["draw"] == pytest.approx(1.92)


class TestOddsFormats:
    """Tests for Hong Kong / Malay conversions."""

    @pytest.mark.parametrize("decimal_odds", [1.01, 1.25, 1.5, 1.92, 2.0, 2.4, 3.75, 10.0, 101.5])
    def test_hong_kong_round_trip(self, decimal_odds):
        assert math.isclose(hong_kong_to_decimal(to_hong_kong(decimal_odds)), decimal_odds, abs_tol=1e-9)

    @pytest.mark.parametrize("decimal_odds", [1.01, 1.25, 1.5, 1.92, 2.0, 2.4, 3.75, 10.0, 101.5])
    def test_malay_round_trip(self, decimal_odds):
        assert math.isclose(malay_to_decimal(to_malay(decimal_odds)), decimal_odds, abs_tol=1e-9)

    def test_short_price_is_negative_malay(self):
        """HK 0.5 -> Malay -2.0."""
        assert to_malay(1.5) == pytest.approx(-2.0)

    def test_long_price_malay_equals_hong_kong(self):
        assert to_malay(3.75) == pytest.approx(to_hong_kong(3.75))

    def test_malay_singularity_is_special_cased(self):
        """Even money has HK 0; no division by zero either way."""
        assert to_hong_kong(1.0) == 0.0
        assert to_malay(1.0) == 0.0
        assert malay_to_decimal(0.0) == 1.0

    def test_malay_gap_rejected(self):
        with pytest.raises(ValidationError):
            malay_to_decimal(0.5)
