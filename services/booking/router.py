"""
services/booking/router.py
Booking endpoints. The quote endpoint covers Validating → Confirming; the
create endpoint covers Processing and returns refreshed balances so the
client never has to reconcile on its own.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from services.booking import flow
from services.classes.queries import hosts_by_id, summarize
from services.credits import ledger
from services.credits.router import credits_response
from shared.middleware.auth import AUTH_REQUIRED_HEADERS, get_current_user
from shared.models.models import Booking, Class, Profile
from shared.schemas.schemas import (
    BookingConfirmationResponse,
    BookingCreateRequest,
    BookingQuoteResponse,
    BookingResponse,
    MyBookingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bookings"])


def _http_error(exc: flow.BookingRejected) -> HTTPException:
    headers = AUTH_REQUIRED_HEADERS if exc.status_code == 401 else None
    return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)


# ── Validating → Confirming ───────────────────────────────────

@router.get("/classes/{class_id}/booking-quote", response_model=BookingQuoteResponse)
async def get_booking_quote(
    class_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Run every booking check and return the confirmation summary:
    class facts, the credit split and the balance left afterwards.
    Nothing is written.
    """
    try:
        klass, credits, seats_taken = await flow.validate(db, current_user, class_id)
    except flow.BookingRejected as exc:
        raise _http_error(exc)

    plan = ledger.plan_debit(credits, klass.cost_credits)
    hosts = await hosts_by_id(db, [klass.host_id])
    host = hosts.get(klass.host_id)
    total = ledger.total_balance(credits)

    return BookingQuoteResponse(
        class_id=klass.id,
        title=klass.title,
        date=klass.date,
        time=klass.time,
        duration=klass.duration,
        city=klass.city,
        country=klass.country,
        host_name=host.full_name if host else "",
        cost_credits=klass.cost_credits,
        seats_taken=seats_taken,
        spots_left=klass.max_participants - seats_taken,
        teaching_balance=credits.teaching_balance,
        topped_up_balance=credits.topped_up_balance,
        total_balance=total,
        from_teaching=plan.from_teaching,
        from_topped_up=plan.from_topped_up,
        remaining_balance=total - plan.amount,
    )


# ── Processing ────────────────────────────────────────────────

@router.post(
    "/bookings",
    response_model=BookingConfirmationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    data: BookingCreateRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Book a seat. Steps, all in one transaction:
    1. Lock the (class, user) attempt in Redis so a double submit is refused
    2. Lock the class + credits rows and re-run every check
    3. Insert the booking, debit credits (teaching first), append the ledger row
    4. Commit and return the refreshed balances
    """
    cache = RedisCache(redis)
    class_key, user_key = str(data.class_id), str(current_user.id)

    if not await cache.lock_booking(class_key, user_key):
        raise _http_error(flow.BookingRejected(flow.BookingRejection.IN_PROGRESS))

    try:
        try:
            booking, plan, credits, seats_taken = await flow.process_booking(
                db, current_user, data.class_id
            )
        except flow.BookingRejected as exc:
            raise _http_error(exc)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Booking of class {class_key} by user {user_key} failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Booking failed")
    finally:
        await cache.release_booking(class_key, user_key)

    klass = await db.get(Class, booking.class_id)
    return BookingConfirmationResponse(
        booking=BookingResponse.model_validate(booking),
        credits=credits_response(credits),
        from_teaching=plan.from_teaching,
        from_topped_up=plan.from_topped_up,
        seats_taken=seats_taken,
        spots_left=max(0, klass.max_participants - seats_taken),
    )


# ── Read Endpoints ────────────────────────────────────────────

@router.get("/bookings", response_model=list[MyBookingResponse])
async def list_my_bookings(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Classes the current user has joined, soonest first."""
    result = await db.execute(
        select(Booking, Class)
        .join(Class, Class.id == Booking.class_id)
        .where(Booking.user_id == current_user.id)
        .order_by(Class.date.asc(), Class.time.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = result.all()
    summaries = await summarize(db, [row[1] for row in rows])

    return [
        MyBookingResponse(
            **BookingResponse.model_validate(row[0]).model_dump(),
            klass=summary,
        )
        for row, summary in zip(rows, summaries)
    ]
