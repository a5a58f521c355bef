"""
services/host/router.py
Applying to become a host and checking on the application.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.host import workflow
from shared.middleware.auth import get_current_user
from shared.models.models import Profile
from shared.schemas.schemas import HostApplicationCreate, HostApplicationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/host-applications", tags=["Host Applications"])


@router.post("", response_model=HostApplicationResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(
    data: HostApplicationCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a host application. Rejected applicants may apply again;
    a second application while one is still pending is refused.
    """
    experiences = [e.model_dump(mode="json", exclude_none=True) for e in data.experiences or []]
    proof_links = [p.model_dump(mode="json") for p in data.proof_links or []]

    try:
        application = await workflow.submit(
            db,
            current_user.id,
            bio=data.bio,
            teach_ideas=data.teach_ideas,
            experiences=experiences,
            proof_links=proof_links,
        )
    except workflow.PendingApplicationExists as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await db.commit()
    logger.info(f"User {current_user.id} submitted host application {application.id}")
    return HostApplicationResponse.model_validate(application)


@router.get("/me", response_model=HostApplicationResponse)
async def get_my_application(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's most recent application."""
    application = await workflow.latest_application(db, current_user.id)
    if not application:
        raise HTTPException(status_code=404, detail="No host application found")
    return HostApplicationResponse.model_validate(application)
