"""Join and lesson request workflows.

Only a pending request can be approved or declined. Finished requests keep
their final status rather than being deleted.
"""

import logging
from datetime import date, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction
from app.models.member import OrgMembership, OrgRole, User
from app.models.organization import Coach, Organization
from app.models.request import ClubJoinRequest, LessonRequest, RequestStatus
from app.services.audit import record_event
from app.services.memberships import get_membership, grant_membership

logger = logging.getLogger(__name__)


class RequestError(Exception):
    """Base class for request workflow failures."""


class RequestNotFound(RequestError):
    pass


class RequestNotPending(RequestError):
    def __init__(self, status: RequestStatus):
        self.status = status
        super().__init__(f"Request is already {status.value}")


class AlreadyMember(RequestError):
    pass


class DuplicateRequest(RequestError):
    pass


class CoachNotFound(RequestError):
    pass


def _ensure_pending(request: ClubJoinRequest | LessonRequest) -> None:
    if request.status != RequestStatus.PENDING:
        raise RequestNotPending(request.status)


# ---------------------------------------------------------------------------
# Join requests
# ---------------------------------------------------------------------------


async def create_join_request(
    db: AsyncSession, org: Organization, user: User, message: str | None = None
) -> ClubJoinRequest:
    membership = await get_membership(db, user.id, org.id)
    if membership is not None and membership.is_active:
        raise AlreadyMember(f"You are already a member of {org.name}")

    pending = await db.execute(
        select(ClubJoinRequest.id).where(
            ClubJoinRequest.organization_id == org.id,
            ClubJoinRequest.user_id == user.id,
            ClubJoinRequest.status == RequestStatus.PENDING,
        )
    )
    if pending.scalar_one_or_none() is not None:
        raise DuplicateRequest(f"You already have a pending request to join {org.name}")

    request = ClubJoinRequest(organization_id=org.id, user_id=user.id, message=message)
    db.add(request)
    await db.flush()
    logger.info("Join request %s: user=%s org=%s", request.id, user.id, org.id)
    return request


async def get_join_request(db: AsyncSession, org_id: int, request_id: int) -> ClubJoinRequest:
    result = await db.execute(
        select(ClubJoinRequest)
        .where(ClubJoinRequest.id == request_id, ClubJoinRequest.organization_id == org_id)
        .with_for_update()
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise RequestNotFound("Join request not found")
    return request


async def approve_join_request(
    db: AsyncSession, org_id: int, request_id: int, actor: User
) -> tuple[ClubJoinRequest, OrgMembership]:
    request = await get_join_request(db, org_id, request_id)
    _ensure_pending(request)

    membership = await grant_membership(db, request.user_id, org_id, OrgRole.MEMBER)
    request.status = RequestStatus.APPROVED
    await record_event(
        db, actor.id, AuditAction.APPROVE, "join_request", request.id, org_id, {"user_id": request.user_id}
    )
    await db.flush()
    return request, membership


async def decline_join_request(db: AsyncSession, org_id: int, request_id: int, actor: User) -> ClubJoinRequest:
    request = await get_join_request(db, org_id, request_id)
    _ensure_pending(request)

    request.status = RequestStatus.DECLINED
    await record_event(
        db, actor.id, AuditAction.DECLINE, "join_request", request.id, org_id, {"user_id": request.user_id}
    )
    await db.flush()
    return request


# ---------------------------------------------------------------------------
# Lesson requests
# ---------------------------------------------------------------------------


async def create_lesson_request(
    db: AsyncSession,
    org_id: int,
    user: User,
    preferred_date: date,
    preferred_time: time | None = None,
    duration_minutes: int = 60,
    coach_id: int | None = None,
    message: str | None = None,
) -> LessonRequest:
    if coach_id is not None:
        coach = await db.get(Coach, coach_id)
        if coach is None or coach.organization_id != org_id or not coach.is_active:
            raise CoachNotFound("Coach not found at this club")

    request = LessonRequest(
        organization_id=org_id,
        user_id=user.id,
        coach_id=coach_id,
        preferred_date=preferred_date,
        preferred_time=preferred_time,
        duration_minutes=duration_minutes,
        message=message,
    )
    db.add(request)
    await db.flush()
    logger.info("Lesson request %s: user=%s org=%s coach=%s", request.id, user.id, org_id, coach_id)
    return request


async def set_lesson_request_status(
    db: AsyncSession, org_id: int, request_id: int, status: RequestStatus, actor: User
) -> LessonRequest:
    result = await db.execute(
        select(LessonRequest)
        .where(LessonRequest.id == request_id, LessonRequest.organization_id == org_id)
        .with_for_update()
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise RequestNotFound("Lesson request not found")
    _ensure_pending(request)

    request.status = status
    action = AuditAction.APPROVE if status == RequestStatus.APPROVED else AuditAction.DECLINE
    await record_event(db, actor.id, action, "lesson_request", request.id, org_id, {"user_id": request.user_id})
    await db.flush()
    return request
