"""Courtly staff administration: every club and every user account."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import require_staff
from app.models.audit import AuditAction
from app.models.member import OrgMembership, OrgRole, User
from app.models.organization import Organization
from app.schemas import (
    AdminAssignment,
    AdminAssignmentOut,
    OrganizationOut,
    OrganizationSummaryOut,
    OrgMembershipOut,
    UserOrganizationAdd,
    UserOut,
    UserTypeUpdate,
    UserWithOrgsOut,
)
from app.services.audit import record_event
from app.services.club_search import filter_clubs
from app.services.memberships import (
    grant_membership,
    list_organization_ids,
    promote_user_type,
    revoke_membership,
)
from app.services.organizations import (
    OrganizationNotFound,
    UnknownUsers,
    assign_admins,
    delete_organization,
    get_organization,
    verify_organization,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def _any_org(db: AsyncSession, slug: str) -> Organization:
    try:
        return await get_organization(db, slug, active_only=False)
    except OrganizationNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found") from None


async def _user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


@router.get("/orgs", response_model=list[OrganizationSummaryOut])
async def list_all_orgs(
    q: str | None = Query(None),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Organization).order_by(Organization.name))
    return filter_clubs(result.scalars().all(), q)


@router.post("/orgs/{slug}/verify", response_model=OrganizationOut)
async def verify_org(slug: str, staff: User = Depends(require_staff), db: AsyncSession = Depends(get_db)):
    org = await _any_org(db, slug)
    return await verify_organization(db, org, staff)


@router.put("/orgs/{slug}/admins", response_model=AdminAssignmentOut)
async def set_org_admins(
    slug: str,
    body: AdminAssignment,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    org = await _any_org(db, slug)
    try:
        admin_ids = await assign_admins(db, org, body.user_ids, staff)
    except UnknownUsers as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None
    return AdminAssignmentOut(organization_id=org.id, admin_ids=admin_ids)


@router.delete("/orgs/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_org(slug: str, staff: User = Depends(require_staff), db: AsyncSession = Depends(get_db)):
    org = await _any_org(db, slug)
    await delete_organization(db, org, staff)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserOut])
async def list_users(
    q: str | None = Query(None, description="Case-insensitive match on email or name"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    query = select(User)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(or_(User.email.ilike(pattern), User.full_name.ilike(pattern)))
    result = await db.execute(query.order_by(User.email).limit(limit).offset(offset))
    return result.scalars().all()


@router.get("/users/{user_id}", response_model=UserWithOrgsOut)
async def get_user(user_id: int, staff: User = Depends(require_staff), db: AsyncSession = Depends(get_db)):
    user = await _user_or_404(db, user_id)
    return UserWithOrgsOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        user_type=user.user_type,
        email_verified=user.email_verified,
        organization_ids=await list_organization_ids(db, user.id),
    )


@router.patch("/users/{user_id}", response_model=UserOut)
async def change_user_type(
    user_id: int,
    body: UserTypeUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    user = await _user_or_404(db, user_id)
    previous = user.user_type
    user.user_type = body.user_type
    await record_event(
        db, staff.id, AuditAction.UPDATE, "user", user.id, details={"user_type": [previous.value, body.user_type.value]}
    )
    await db.flush()
    logger.info("User %s type changed %s -> %s by user=%s", user.id, previous.value, body.user_type.value, staff.id)
    return user


@router.get("/users/{user_id}/organizations", response_model=list[OrgMembershipOut])
async def list_user_organizations(
    user_id: int,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    await _user_or_404(db, user_id)
    result = await db.execute(
        select(OrgMembership)
        .where(OrgMembership.user_id == user_id, OrgMembership.is_active.is_(True))
        .order_by(OrgMembership.id)
    )
    return result.scalars().all()


@router.post(
    "/users/{user_id}/organizations",
    response_model=OrgMembershipOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_user_organization(
    user_id: int,
    body: UserOrganizationAdd,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    user = await _user_or_404(db, user_id)
    if await db.get(Organization, body.organization_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    membership = await grant_membership(db, user.id, body.organization_id, body.role)
    if membership.role.rank >= OrgRole.ADMIN.rank:
        promote_user_type(user)
    await record_event(
        db,
        staff.id,
        AuditAction.ASSIGN,
        "user",
        user.id,
        body.organization_id,
        {"role": membership.role.value},
    )
    await db.flush()
    return membership


@router.delete("/users/{user_id}/organizations/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user_organization(
    user_id: int,
    organization_id: int,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    await _user_or_404(db, user_id)
    if not await revoke_membership(db, user_id, organization_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not a member of this organization")
    await record_event(db, staff.id, AuditAction.REVOKE, "user", user_id, organization_id)
