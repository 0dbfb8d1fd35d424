"""Club approval transition.

Turns one pending ClubSubmission into one Organization and makes the
submitter its owner, or removes the submission on decline.

Everything happens in the caller's session and is committed once, by the
caller, after the transition returns. The request-scoped session rolls back
on any exception, so an approval either lands completely (organization,
courts, membership, role, submission removal, audit event) or not at all.

Double approval is prevented two ways: the submission row is locked and
deleted inside the transaction, and Organization.source_submission_id is
unique, so a second approver racing the first either finds no submission or
fails the insert.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction
from app.models.member import OrgRole, User
from app.models.organization import Organization
from app.models.request import ClubSubmission
from app.services.audit import record_event
from app.services.club_setup import initialize_organization
from app.services.memberships import grant_membership, promote_user_type

logger = logging.getLogger(__name__)


class ApprovalError(Exception):
    """Base class for approval transition failures."""


class SubmissionNotFound(ApprovalError):
    def __init__(self, submission_id: int):
        self.submission_id = submission_id
        super().__init__(f"Club submission {submission_id} not found")


class ApprovalConflict(ApprovalError):
    def __init__(self, submission_id: int):
        self.submission_id = submission_id
        super().__init__(f"Club submission {submission_id} has already been approved")


class SlugTaken(ApprovalError):
    """Another club claimed the slug between choosing it and inserting."""

    def __init__(self, submission_id: int):
        self.submission_id = submission_id
        super().__init__(
            f"Another club took the name of submission {submission_id} while it was being approved; try again"
        )


def classify_integrity_error(exc: IntegrityError, submission_id: int) -> ApprovalError:
    """Map a unique violation raised while approving to the matching approval error.

    Only a clash on source_submission_id means the submission was already approved.
    """
    message = str(exc.orig)
    if "source_submission_id" in message:
        return ApprovalConflict(submission_id)
    if "slug" in message:
        return SlugTaken(submission_id)
    raise exc


async def _load_submission(db: AsyncSession, submission_id: int) -> ClubSubmission:
    result = await db.execute(
        select(ClubSubmission).where(ClubSubmission.id == submission_id).with_for_update()
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise SubmissionNotFound(submission_id)
    return submission


@dataclass
class ApprovalResult:
    organization: Organization
    # Deleted by the approval; kept for the notification
    submission: ClubSubmission


async def approve_submission(db: AsyncSession, submission_id: int, actor: User) -> ApprovalResult:
    """Approve a submission. Returns the new organization and the removed submission.

    Raises SubmissionNotFound, ApprovalConflict or SlugTaken.
    """
    submission = await _load_submission(db, submission_id)

    existing = await db.execute(
        select(Organization.id).where(Organization.source_submission_id == submission_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise ApprovalConflict(submission_id)

    try:
        org = await initialize_organization(db, submission, created_by=submission.submitted_by)
    except IntegrityError as exc:
        raise classify_integrity_error(exc, submission_id) from exc

    submitter = await db.get(User, submission.submitted_by)
    if submitter is not None:
        await grant_membership(db, submitter.id, org.id, OrgRole.OWNER)
        promote_user_type(submitter)
    else:
        logger.warning("Submitter user=%s of submission %s no longer exists", submission.submitted_by, submission_id)

    await db.delete(submission)
    await record_event(
        db,
        actor.id,
        AuditAction.APPROVE,
        "club_submission",
        resource_id=submission_id,
        organization_id=org.id,
        details={"name": org.name, "slug": org.slug, "submitted_by": submission.submitted_by},
    )
    await db.flush()

    logger.info("Approved club submission %s as org %s (%s) by user=%s", submission_id, org.id, org.slug, actor.id)
    return ApprovalResult(org, submission)


async def decline_submission(
    db: AsyncSession,
    submission_id: int,
    actor: User,
    reason: str | None = None,
) -> ClubSubmission:
    """Decline a submission by deleting it. Returns the deleted row for notification.

    Raises SubmissionNotFound.
    """
    submission = await _load_submission(db, submission_id)

    await db.delete(submission)
    await record_event(
        db,
        actor.id,
        AuditAction.DECLINE,
        "club_submission",
        resource_id=submission_id,
        details={"name": submission.name, "submitted_by": submission.submitted_by, "reason": reason},
    )
    await db.flush()

    logger.info("Declined club submission %s by user=%s", submission_id, actor.id)
    return submission
