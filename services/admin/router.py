"""
services/admin/router.py
Admin-only endpoints: the host application review queue.

Every request re-checks the admin role against user_roles; nothing is cached.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.host import workflow
from shared.middleware.auth import get_current_user, has_role, require_admin
from shared.models.models import AppRole, ApplicationStatus, HostApplication, Profile
from shared.schemas.schemas import (
    AdminAccessResponse,
    AdminApplicationQueue,
    AdminApplicationResponse,
    ApplicantSummary,
    HostApplicationResponse,
    RejectApplicationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Helpers ────────────────────────────────────────────────────────────────────

def _with_applicant(application: HostApplication, applicant: Profile) -> AdminApplicationResponse:
    return AdminApplicationResponse(
        **HostApplicationResponse.model_validate(application).model_dump(),
        applicant=ApplicantSummary.model_validate(applicant),
    )


async def _load_for_review(db: AsyncSession, application_id: UUID):
    result = await db.execute(
        select(HostApplication, Profile)
        .join(Profile, Profile.id == HostApplication.user_id)
        .where(HostApplication.id == application_id)
        .with_for_update()
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=404, detail="Application not found")
    return row[0], row[1]


def _already_reviewed(e: workflow.ApplicationAlreadyReviewed) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# ── Access ─────────────────────────────────────────────────────────────────────

@router.get("/access", response_model=AdminAccessResponse)
async def check_admin_access(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Lets the client decide whether to show the admin area."""
    return AdminAccessResponse(is_admin=await has_role(db, current_user.id, AppRole.ADMIN))


# ── Host Application Queue ─────────────────────────────────────────────────────

@router.get("/host-applications", response_model=AdminApplicationQueue)
async def list_host_applications(
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All applications, newest first, split into pending and reviewed."""
    result = await db.execute(
        select(HostApplication, Profile)
        .join(Profile, Profile.id == HostApplication.user_id)
        .order_by(HostApplication.submitted_at.desc())
    )
    pending, reviewed = [], []
    for application, applicant in result.all():
        item = _with_applicant(application, applicant)
        if application.status == ApplicationStatus.PENDING:
            pending.append(item)
        else:
            reviewed.append(item)
    return AdminApplicationQueue(pending=pending, reviewed=reviewed)


@router.post("/host-applications/{application_id}/approve", response_model=AdminApplicationResponse)
async def approve_application(
    application_id: UUID,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve a pending application.
    - Status becomes APPROVED and reviewed_at is stamped
    - The applicant's profile is marked host_verified
    Both writes are committed together.
    """
    application, applicant = await _load_for_review(db, application_id)
    try:
        workflow.approve(application, applicant)
    except workflow.ApplicationAlreadyReviewed as e:
        raise _already_reviewed(e)

    await db.commit()
    logger.info(f"Admin {current_user.id} approved host application {application_id}")
    return _with_applicant(application, applicant)


@router.post("/host-applications/{application_id}/reject", response_model=AdminApplicationResponse)
async def reject_application(
    application_id: UUID,
    data: RejectApplicationRequest,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending application with feedback the applicant will see."""
    application, applicant = await _load_for_review(db, application_id)
    try:
        workflow.reject(application, data.feedback)
    except workflow.ApplicationAlreadyReviewed as e:
        raise _already_reviewed(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    await db.commit()
    logger.info(f"Admin {current_user.id} rejected host application {application_id}")
    return _with_applicant(application, applicant)
