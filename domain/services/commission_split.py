"""
Plasada commission split up the agent downline.

Every settled user bet releases three shares of its stake out of the
plasada: the direct share to the nearest agent (or master agent) above the
bettor, the override to the nearest master agent above that one, and the
admin share to the nearest admin. A share nobody can receive stays with
the house.
"""

from domain.services.odds_calculator import floor_centavo

AGENT_DIRECT = "commission_agent_direct"
MASTER_OVERRIDE = "commission_master_override"
ADMIN_SHARE = "commission_admin_share"

SHARE_KEYS = (AGENT_DIRECT, MASTER_OVERRIDE, ADMIN_SHARE)

_AGENT_ROLES = ("agent", "master_agent")


def commission_recipients(upline_chain: list[dict]) -> dict[str, int]:
    """
    Who receives each share for one bettor.

    Args:
        upline_chain: Profiles above the bettor (user_id, role), nearest first

    Returns:
        share key -> recipient user_id, only for shares someone can receive
    """
    recipients = {}
    direct_index = next(
        (i for i, profile in enumerate(upline_chain) if profile["role"] in _AGENT_ROLES), None
    )
    if direct_index is not None:
        recipients[AGENT_DIRECT] = upline_chain[direct_index]["user_id"]
        for profile in upline_chain[direct_index + 1:]:
            if profile["role"] == "master_agent":
                recipients[MASTER_OVERRIDE] = profile["user_id"]
                break
    for profile in upline_chain:
        if profile["role"] == "admin":
            recipients[ADMIN_SHARE] = profile["user_id"]
            break
    return recipients


def split_commission(
    stake: float, shares: dict[str, float], upline_chain: list[dict]
) -> list[tuple[int, str, float]]:
    """(recipient_id, share key, amount) for each non-zero share of a stake, floored to centavos."""
    payouts = []
    for key, recipient_id in commission_recipients(upline_chain).items():
        amount = floor_centavo(stake * shares.get(key, 0.0))
        if amount > 0:
            payouts.append((recipient_id, key, amount))
    return payouts
