"""
services/credits/ledger.py
Two-bucket credit ledger.

Balances live on the Credits row: ``teaching_balance`` (earned by teaching)
and ``topped_up_balance`` (purchased). Debits consume teaching credits first.
Every balance change is paired with one CreditTransaction row, added to the
same session so both land in the same commit.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.models.models import CreditTransaction, Credits, TransactionType, utcnow

logger = logging.getLogger(__name__)


class CreditBucket(str, Enum):
    TOPPED_UP = "topped_up"
    TEACHING = "teaching"


class InsufficientCredits(Exception):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Need {required} credits, have {available}")


@dataclass(frozen=True)
class DebitPlan:
    """How a debit of ``amount`` is split across the two buckets."""
    amount: int
    from_teaching: int
    from_topped_up: int


def total_balance(credits: Optional[Credits]) -> int:
    if credits is None:
        return 0
    return (credits.topped_up_balance or 0) + (credits.teaching_balance or 0)


def plan_debit(credits: Credits, amount: int) -> DebitPlan:
    """Teaching credits are spent first; the remainder comes from topped-up credits."""
    if amount < 0:
        raise ValueError("Debit amount must be non-negative")
    available = total_balance(credits)
    if amount > available:
        raise InsufficientCredits(amount, available)
    from_teaching = min(credits.teaching_balance or 0, amount)
    return DebitPlan(
        amount=amount,
        from_teaching=from_teaching,
        from_topped_up=amount - from_teaching,
    )


def debit(credits: Credits, amount: int) -> DebitPlan:
    """Rewrite both buckets in one update. Raises InsufficientCredits, leaving balances untouched."""
    plan = plan_debit(credits, amount)
    credits.teaching_balance = (credits.teaching_balance or 0) - plan.from_teaching
    credits.topped_up_balance = (credits.topped_up_balance or 0) - plan.from_topped_up
    credits.updated_at = utcnow()
    return plan


def credit(credits: Credits, amount: int, bucket: CreditBucket = CreditBucket.TOPPED_UP) -> None:
    if amount <= 0:
        raise ValueError("Credit amount must be positive")
    if bucket == CreditBucket.TEACHING:
        credits.teaching_balance = (credits.teaching_balance or 0) + amount
    else:
        credits.topped_up_balance = (credits.topped_up_balance or 0) + amount
    credits.updated_at = utcnow()


def credits_for_pounds(pounds: float) -> int:
    """Simulated purchase rate: £2 buys one credit, rounded down. Minimum top-up is £2."""
    if pounds < settings.MIN_TOP_UP_POUNDS:
        raise ValueError(f"Minimum top-up is £{settings.MIN_TOP_UP_POUNDS:g}")
    return math.floor(pounds / settings.POUNDS_PER_CREDIT)


def record_transaction(
    db: AsyncSession,
    user_id: uuid.UUID,
    type_: TransactionType,
    amount: int,
    class_id: Optional[uuid.UUID] = None,
) -> CreditTransaction:
    """Append a ledger row to the session; the caller commits."""
    tx = CreditTransaction(user_id=user_id, type=type_, amount=amount, class_id=class_id)
    db.add(tx)
    logger.info(f"Credit transaction {type_.value} {amount:+d} for user {user_id}")
    return tx
