"""
services/booking/flow.py
Booking flow: Validating → Confirming → Processing → Succeeded | Failed.

Validation is a pure predicate over (user, class, credits, seats taken).
Processing runs inside a single database transaction: the class and credits
rows are locked, the booking is inserted, credits are debited and the ledger
row is appended; the caller commits once. A failure at any step leaves no
partial writes behind.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.classes.queries import count_bookings, get_class_or_404
from services.credits import ledger
from shared.models.models import (
    Booking,
    BookingStatus,
    Class,
    Credits,
    Profile,
    TransactionType,
)

logger = logging.getLogger(__name__)


class BookingRejection(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    OWN_CLASS = "own_class"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    CLASS_FULL = "class_full"
    ALREADY_BOOKED = "already_booked"
    IN_PROGRESS = "in_progress"


# reason → (HTTP status, message shown to the user)
REJECTION_RESPONSES = {
    BookingRejection.NOT_AUTHENTICATED: (401, "Please log in or sign up to book this class"),
    BookingRejection.OWN_CLASS: (403, "Cannot book your own class"),
    BookingRejection.INSUFFICIENT_CREDITS: (402, "Insufficient credits"),
    BookingRejection.CLASS_FULL: (409, "Class Full"),
    BookingRejection.ALREADY_BOOKED: (409, "You have already booked this class"),
    BookingRejection.IN_PROGRESS: (409, "Booking already in progress"),
}


class BookingRejected(Exception):
    def __init__(self, reason: BookingRejection):
        self.reason = reason
        self.status_code, self.detail = REJECTION_RESPONSES[reason]
        super().__init__(self.detail)


def check_booking(
    user: Optional[Profile],
    klass: Class,
    credits: Optional[Credits],
    seats_taken: int,
) -> Optional[BookingRejection]:
    """Return the first rule the attempt breaks, or None if it may proceed."""
    if user is None:
        return BookingRejection.NOT_AUTHENTICATED
    if user.id == klass.host_id:
        return BookingRejection.OWN_CLASS
    if ledger.total_balance(credits) < klass.cost_credits:
        return BookingRejection.INSUFFICIENT_CREDITS
    if seats_taken >= klass.max_participants:
        return BookingRejection.CLASS_FULL
    return None


def can_book(
    user: Optional[Profile],
    klass: Class,
    credits: Optional[Credits],
    seats_taken: int,
) -> bool:
    return check_booking(user, klass, credits, seats_taken) is None


async def get_credits(db: AsyncSession, user_id, for_update: bool = False) -> Optional[Credits]:
    query = select(Credits).where(Credits.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def has_booked(db: AsyncSession, user_id, class_id) -> bool:
    found = await db.scalar(
        select(Booking.id).where(Booking.class_id == class_id, Booking.user_id == user_id)
    )
    return found is not None


async def validate(
    db: AsyncSession,
    user: Optional[Profile],
    class_id,
    for_update: bool = False,
) -> Tuple[Class, Optional[Credits], int]:
    """
    Load everything the predicate needs and raise BookingRejected on failure.
    With for_update the class and credits rows stay locked until commit.
    """
    if user is None:
        raise BookingRejected(BookingRejection.NOT_AUTHENTICATED)

    klass = await get_class_or_404(class_id, db, for_update=for_update)
    if user.id != klass.host_id and await has_booked(db, user.id, klass.id):
        raise BookingRejected(BookingRejection.ALREADY_BOOKED)

    seats_taken = await count_bookings(db, klass.id)
    credits = await get_credits(db, user.id, for_update=for_update)

    reason = check_booking(user, klass, credits, seats_taken)
    if reason is not None:
        logger.info(f"Booking rejected for user {user.id} on class {klass.id}: {reason.value}")
        raise BookingRejected(reason)
    return klass, credits, seats_taken


async def process_booking(
    db: AsyncSession,
    user: Profile,
    class_id,
) -> Tuple[Booking, ledger.DebitPlan, Credits, int]:
    """
    Re-validate against locked rows, then insert booking, debit and log.
    Returns (booking, debit plan, credits, seats taken including this one).
    The caller owns the commit.
    """
    klass, credits, seats_taken = await validate(db, user, class_id, for_update=True)

    booking = Booking(class_id=klass.id, user_id=user.id, status=BookingStatus.CONFIRMED)
    db.add(booking)
    plan = ledger.debit(credits, klass.cost_credits)
    ledger.record_transaction(
        db, user.id, TransactionType.BOOKING, -klass.cost_credits, class_id=klass.id
    )

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise BookingRejected(BookingRejection.ALREADY_BOOKED)

    logger.info(
        f"Booked class {klass.id} for user {user.id}: "
        f"{plan.from_teaching} teaching + {plan.from_topped_up} topped-up credits"
    )
    return booking, plan, credits, seats_taken + 1
