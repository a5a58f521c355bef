"""
services/credits/router.py
Credit balances, simulated top-ups and transaction history.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.credits import ledger
from shared.middleware.auth import get_current_user
from shared.models.models import CreditTransaction, Credits, Profile, TransactionType
from shared.schemas.schemas import (
    CreditTransactionResponse,
    CreditsResponse,
    TopUpRequest,
    TopUpResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["Credits"])


def credits_response(credits: Optional[Credits]) -> CreditsResponse:
    if credits is None:
        return CreditsResponse(topped_up_balance=0, teaching_balance=0, total_balance=0)
    return CreditsResponse(
        topped_up_balance=credits.topped_up_balance,
        teaching_balance=credits.teaching_balance,
        total_balance=ledger.total_balance(credits),
        updated_at=credits.updated_at,
    )


async def get_or_create_credits(db: AsyncSession, user_id) -> Credits:
    """Credits rows are created alongside profiles; backfill any that are missing."""
    result = await db.execute(
        select(Credits).where(Credits.user_id == user_id).with_for_update()
    )
    credits = result.scalar_one_or_none()
    if credits is None:
        credits = Credits(user_id=user_id, topped_up_balance=0, teaching_balance=0)
        db.add(credits)
        await db.flush()
    return credits


@router.get("/me", response_model=CreditsResponse)
async def get_my_credits(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Both balance buckets plus the spendable total."""
    credits = await db.scalar(select(Credits).where(Credits.user_id == current_user.id))
    return credits_response(credits)


@router.post("/top-up", response_model=TopUpResponse, status_code=status.HTTP_201_CREATED)
async def top_up(
    data: TopUpRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Simulated purchase: £2 buys one credit (rounded down), minimum £2.
    The balance change and its ledger row are committed together.
    """
    try:
        amount = ledger.credits_for_pounds(data.amount_pounds)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    credits = await get_or_create_credits(db, current_user.id)
    ledger.credit(credits, amount, ledger.CreditBucket.TOPPED_UP)
    ledger.record_transaction(db, current_user.id, TransactionType.TOP_UP, amount)
    await db.commit()

    logger.info(f"User {current_user.id} topped up {amount} credits")
    return TopUpResponse(credits_added=amount, credits=credits_response(credits))


@router.get("/transactions", response_model=list[CreditTransactionResponse])
async def list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ledger history for display, newest first."""
    result = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == current_user.id)
        .order_by(CreditTransaction.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return [CreditTransactionResponse.model_validate(t) for t in result.scalars()]
