"""
services/host/workflow.py
Host application lifecycle: pending → approved | rejected.

Only pending applications can move; both outcomes are terminal and
reviewed_at is stamped exactly once. Approval also flips the applicant's
host_verified flag so the two writes land in the same commit.
"""

import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.models.models import ApplicationStatus, HostApplication, Profile, utcnow


class ApplicationAlreadyReviewed(Exception):
    def __init__(self, application: HostApplication):
        self.application = application
        super().__init__("Application has already been reviewed")


class PendingApplicationExists(Exception):
    def __init__(self):
        super().__init__("You have a pending host application under review.")


def _ensure_pending(application: HostApplication) -> None:
    if application.status != ApplicationStatus.PENDING:
        raise ApplicationAlreadyReviewed(application)


def approve(
    application: HostApplication,
    applicant: Profile,
    now: Optional[dt.datetime] = None,
) -> HostApplication:
    _ensure_pending(application)
    application.status = ApplicationStatus.APPROVED
    application.reviewed_at = now or utcnow()
    applicant.host_verified = True
    return application


def reject(
    application: HostApplication,
    feedback: str,
    now: Optional[dt.datetime] = None,
) -> HostApplication:
    """Record the rejection reason; the applicant may submit a fresh application later."""
    _ensure_pending(application)
    feedback = feedback.strip()
    if len(feedback) < settings.REJECTION_FEEDBACK_MIN_LENGTH:
        raise ValueError(
            f"Please provide rejection feedback "
            f"(minimum {settings.REJECTION_FEEDBACK_MIN_LENGTH} characters)."
        )
    application.status = ApplicationStatus.REJECTED
    application.rejection_feedback = feedback
    application.reviewed_at = now or utcnow()
    return application


async def latest_application(db: AsyncSession, user_id: uuid.UUID) -> Optional[HostApplication]:
    result = await db.execute(
        select(HostApplication)
        .where(HostApplication.user_id == user_id)
        .order_by(HostApplication.submitted_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def has_pending_application(db: AsyncSession, user_id: uuid.UUID) -> bool:
    found = await db.scalar(
        select(HostApplication.id).where(
            HostApplication.user_id == user_id,
            HostApplication.status == ApplicationStatus.PENDING,
        )
    )
    return found is not None


async def submit(
    db: AsyncSession,
    user_id: uuid.UUID,
    bio: str,
    teach_ideas: str,
    experiences: Optional[list] = None,
    proof_links: Optional[list] = None,
) -> HostApplication:
    """Create a pending application. At most one may be pending per user."""
    if await has_pending_application(db, user_id):
        raise PendingApplicationExists()

    application = HostApplication(
        user_id=user_id,
        bio=bio,
        teach_ideas=teach_ideas,
        experiences=experiences or None,
        proof_links=proof_links or None,
        status=ApplicationStatus.PENDING,
    )
    db.add(application)
    await db.flush()
    return application
