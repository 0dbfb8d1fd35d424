"""Join requests and lesson requests for a club."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import (
    get_current_user,
    get_org,
    require_org_admin,
    require_org_coach,
    require_org_member,
    require_verified_user,
)
from app.models.member import OrgMembership, User
from app.models.organization import Organization
from app.models.request import ClubJoinRequest, LessonRequest, RequestStatus
from app.schemas import (
    JoinRequestCreate,
    JoinRequestOut,
    LessonRequestCreate,
    LessonRequestOut,
)
from app.services.requests import (
    AlreadyMember,
    CoachNotFound,
    DuplicateRequest,
    RequestError,
    RequestNotFound,
    RequestNotPending,
    approve_join_request,
    create_join_request,
    create_lesson_request,
    decline_join_request,
    set_lesson_request_status,
)

router = APIRouter(prefix="/orgs/{slug}", tags=["requests"])


def _http_error(exc: RequestError) -> HTTPException:
    if isinstance(exc, (RequestNotFound, CoachNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (RequestNotPending, AlreadyMember, DuplicateRequest)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


# ---------------------------------------------------------------------------
# Join requests
# ---------------------------------------------------------------------------


@router.post("/join-requests", response_model=JoinRequestOut, status_code=status.HTTP_201_CREATED)
async def request_to_join(
    body: JoinRequestCreate,
    org: Organization = Depends(get_org),
    user: User = Depends(require_verified_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await create_join_request(db, org, user, body.message)
    except RequestError as exc:
        raise _http_error(exc) from None


@router.get("/join-requests", response_model=list[JoinRequestOut])
async def list_join_requests(
    request_status: RequestStatus = Query(RequestStatus.PENDING, alias="status"),
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ClubJoinRequest)
        .where(ClubJoinRequest.organization_id == org.id, ClubJoinRequest.status == request_status)
        .order_by(ClubJoinRequest.created_at)
    )
    return result.scalars().all()


@router.post("/join-requests/{request_id}/approve", response_model=JoinRequestOut)
async def approve_join(
    request_id: int,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        request, _ = await approve_join_request(db, org.id, request_id, user)
    except RequestError as exc:
        raise _http_error(exc) from None
    return request


@router.post("/join-requests/{request_id}/decline", response_model=JoinRequestOut)
async def decline_join(
    request_id: int,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await decline_join_request(db, org.id, request_id, user)
    except RequestError as exc:
        raise _http_error(exc) from None


# ---------------------------------------------------------------------------
# Lesson requests
# ---------------------------------------------------------------------------


@router.post("/lesson-requests", response_model=LessonRequestOut, status_code=status.HTTP_201_CREATED)
async def request_lesson(
    body: LessonRequestCreate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_member),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await create_lesson_request(db, org.id, user, **body.model_dump())
    except RequestError as exc:
        raise _http_error(exc) from None


@router.get("/lesson-requests", response_model=list[LessonRequestOut])
async def list_lesson_requests(
    request_status: RequestStatus | None = Query(None, alias="status"),
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_coach),
    db: AsyncSession = Depends(get_db),
):
    query = select(LessonRequest).where(LessonRequest.organization_id == org.id)
    if request_status is not None:
        query = query.where(LessonRequest.status == request_status)
    result = await db.execute(query.order_by(LessonRequest.preferred_date, LessonRequest.id))
    return result.scalars().all()


@router.post("/lesson-requests/{request_id}/{decision}", response_model=LessonRequestOut)
async def decide_lesson_request(
    request_id: int,
    decision: str,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_coach),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    new_status = {"approve": RequestStatus.APPROVED, "decline": RequestStatus.DECLINED}.get(decision)
    if new_status is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown action")
    try:
        return await set_lesson_request_status(db, org.id, request_id, new_status, user)
    except RequestError as exc:
        raise _http_error(exc) from None
