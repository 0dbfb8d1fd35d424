"""Club registration submissions: the public form and the staff review queue."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import get_current_user, require_staff, require_verified_user
from app.models.member import User
from app.models.request import ClubSubmission, RequestStatus
from app.schemas import (
    ClubSubmissionCreate,
    ClubSubmissionOut,
    DeclineRequest,
    MessageOut,
    OrganizationOut,
)
from app.services.club_approval import (
    ApprovalConflict,
    SlugTaken,
    SubmissionNotFound,
    approve_submission,
    classify_integrity_error,
    decline_submission,
)
from app.services.club_search import SortOrder, filter_clubs, sort_requests
from app.services.email import send_club_approved_email, send_club_declined_email, send_quietly

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/club-submissions", tags=["club-submissions"])
admin_router = APIRouter(prefix="/admin/club-submissions", tags=["admin"])


# ---------------------------------------------------------------------------
# Submitter endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=ClubSubmissionOut, status_code=status.HTTP_201_CREATED)
async def submit_club(
    body: ClubSubmissionCreate,
    user: User = Depends(require_verified_user),
    db: AsyncSession = Depends(get_db),
):
    submission = ClubSubmission(
        **body.model_dump(),
        status=RequestStatus.PENDING,
        submitted_by=user.id,
        submitter_email=user.email,
        submitter_name=user.display_name,
    )
    db.add(submission)
    await db.flush()
    logger.info("Club submission %s (%s) created by user=%s", submission.id, submission.name, user.id)
    return submission


@router.get("/mine", response_model=list[ClubSubmissionOut])
async def list_my_submissions(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(ClubSubmission)
        .where(ClubSubmission.submitted_by == user.id)
        .order_by(ClubSubmission.created_at.desc())
    )
    return result.scalars().all()


# ---------------------------------------------------------------------------
# Staff review
# ---------------------------------------------------------------------------


@admin_router.get("", response_model=list[ClubSubmissionOut])
async def list_submissions(
    q: str | None = Query(None, description="Case-insensitive match on name, city or state"),
    order: SortOrder = Query("all"),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ClubSubmission)
        .where(ClubSubmission.status == RequestStatus.PENDING)
        .order_by(ClubSubmission.id)
    )
    return sort_requests(filter_clubs(result.scalars().all(), q), order)


@admin_router.get("/{submission_id}", response_model=ClubSubmissionOut)
async def get_submission(
    submission_id: int,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    submission = await db.get(ClubSubmission, submission_id)
    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club submission not found")
    return submission


@admin_router.post("/{submission_id}/approve", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
async def approve(
    submission_id: int,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Create the club from the submission and make the submitter its owner."""
    try:
        result = await approve_submission(db, submission_id, staff)
    except SubmissionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    except (ApprovalConflict, SlugTaken) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None

    try:
        await db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent approval
        detail = str(classify_integrity_error(exc, submission_id))
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from None

    org, submission = result.organization, result.submission
    await send_quietly(
        send_club_approved_email(submission.submitter_email, submission.submitter_name, org.name, org.slug),
        submission.submitter_email,
    )
    return org


@admin_router.post("/{submission_id}/decline", response_model=MessageOut)
async def decline(
    submission_id: int,
    body: DeclineRequest | None = None,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else None
    try:
        submission = await decline_submission(db, submission_id, staff, reason)
    except SubmissionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None

    await db.commit()

    await send_quietly(
        send_club_declined_email(submission.submitter_email, submission.submitter_name, submission.name, reason),
        submission.submitter_email,
    )
    return MessageOut(message="Club request has been declined and deleted.")

