# Overview: Loyalty ledger; points accrual, reward redemption and the point history audit trail.

"""
Loyalty Ledger Invariants (authoritative)

- compute_earned_points is pure: the checkout preview and the committed
  sale call the same function with the same rounding.
- points_balance never goes negative.
- Every earn and every redeem appends exactly one PointHistory entry, so for
  any customer:
      points_balance == opening_points + sum(earn) - sum(redeem)
- Earn entries are keyed by the sale id (EARN-<tx id>) and redeem entries by
  the redemption id; appending them is idempotent.

Redemption ordering (no multi-record transactions in the store):
1. validate against freshly read customer and reward (no side effects on failure)
2. save customer with points deducted (compare-and-swap)
3. save reward with stock decremented (compare-and-swap)
4. append the redeem history entry
If (3) finds the reward sold out after (2) succeeded, the customer's points
are given back before OutOfStock is raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..errors import InsufficientPoints, OutOfStock
from ..models import AppSettings, Customer, PointHistory, PointReward, POINTS_EARN, POINTS_REDEEM
from ..storage import Store, append_fact, fetch_required, persist
from ..time_utils import utcnow
from .concurrency import read_modify_write, run_with_retry
from .identifier_service import PREFIX_REDEEM, earn_entry_id, new_id

logger = logging.getLogger(__name__)


def compute_earned_points(total: Decimal, customer: Customer | None, settings: AppSettings) -> int:
    """
    Points a sale of `total` earns for `customer`.

    0 for walk-in customers, non-members, or when points are disabled.
    Otherwise floor(floor(total / point_value) * tier multiplier); tiers
    missing from the multiplier table count as 1.
    """
    if customer is None or not customer.is_member or not settings.enable_points:
        return 0
    if settings.point_value <= 0 or total <= 0:
        return 0

    base_points = math.floor(total / settings.point_value)
    multiplier = settings.multiplier_for(customer.tier_key)
    return math.floor(base_points * multiplier)


def earn_entry(customer: Customer, points: int, reference_id: str, timestamp: datetime) -> PointHistory:
    """History entry for an earn; the id derives from reference_id."""
    return PointHistory(
        id=earn_entry_id(reference_id),
        customer_id=customer.id,
        customer_name=customer.name,
        type=POINTS_EARN,
        points=points,
        timestamp=timestamp,
        reference_id=reference_id,
    )


def apply_earn(customer: Customer, points: int, reference_id: str, now: datetime | None = None) -> PointHistory | None:
    """
    Credit points to an in-memory customer and return the history entry to
    append. No-op (returns None) when points <= 0.
    """
    if points <= 0:
        return None
    customer.points_balance += points
    return earn_entry(customer, points, reference_id, now or utcnow())


@dataclass(frozen=True)
class RedemptionResult:
    customer: Customer
    reward: PointReward
    entry: PointHistory

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict(),
            "reward": self.reward.to_dict(),
            "history": self.entry.to_dict(),
        }


def _check_redeemable(customer: Customer, reward: PointReward) -> None:
    if customer.points_balance < reward.points_needed:
        raise InsufficientPoints(
            "Insufficient points for this reward",
            details={
                "customer_id": customer.id,
                "points_balance": customer.points_balance,
                "points_needed": reward.points_needed,
            },
        )
    if reward.stock <= 0:
        raise OutOfStock(
            "Reward is out of stock",
            details={"reward_id": reward.id, "stock": reward.stock},
        )


def _refund_points(store: Store, customer_id: str, points: int, redemption_id: str) -> None:
    def _mutate(customer: Customer) -> bool:
        if redemption_id not in customer.applied_facts:
            return False
        customer.points_balance += points
        customer.applied_facts.remove(redemption_id)
        return True

    read_modify_write(store, Customer, customer_id, _mutate)


def redeem(
    store: Store,
    customer_id: str,
    reward_id: str,
    *,
    redemption_id: str | None = None,
    now: datetime | None = None,
) -> RedemptionResult:
    """
    Exchange points for one unit of a reward.

    Raises NotFoundError for unknown ids, InsufficientPoints / OutOfStock
    before any write. Passing the same redemption_id again (a retried
    request) does not redeem twice, and completes a redemption that stopped
    after the points were debited.
    """
    redemption_id = redemption_id or new_id(PREFIX_REDEEM)

    def _debit_customer():
        customer = fetch_required(store, Customer, customer_id)
        reward = fetch_required(store, PointReward, reward_id)
        if redemption_id in customer.applied_facts:
            return customer, reward
        _check_redeemable(customer, reward)
        customer.points_balance -= reward.points_needed
        customer.applied_facts.append(redemption_id)
        persist(store, customer)
        return customer, reward

    customer, reward = run_with_retry(_debit_customer)
    points_needed = reward.points_needed

    def _take_reward():
        current = fetch_required(store, PointReward, reward_id)
        if redemption_id in current.applied_facts:
            return current
        if current.stock <= 0:
            return None
        current.stock -= 1
        current.applied_facts.append(redemption_id)
        persist(store, current)
        return current

    taken = run_with_retry(_take_reward)
    if taken is None:
        logger.info("Reward %s sold out during redemption %s; refunding %s points",
                    reward_id, redemption_id, points_needed)
        _refund_points(store, customer_id, points_needed, redemption_id)
        raise OutOfStock("Reward is out of stock", details={"reward_id": reward_id, "stock": 0})

    entry = PointHistory(
        id=redemption_id,
        customer_id=customer.id,
        customer_name=customer.name,
        type=POINTS_REDEEM,
        points=points_needed,
        timestamp=now or utcnow(),
        reference_id=reward_id,
    )
    append_fact(store, entry)
    return RedemptionResult(customer=customer, reward=taken, entry=entry)
