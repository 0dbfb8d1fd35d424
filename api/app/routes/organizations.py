"""Organization routes: browsing, club profile, courts, coaches and members."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.dependencies import get_current_user, get_org, require_org_admin
from app.models.audit import AuditAction
from app.models.member import OrgMembership, User
from app.models.organization import Coach, Court, Organization
from app.schemas import (
    CoachCreate,
    CoachOut,
    CourtCreate,
    CourtOut,
    MemberOut,
    OrganizationOut,
    OrganizationSummaryOut,
    OrganizationUpdate,
)
from app.services.audit import record_event
from app.services.club_search import filter_clubs
from app.services.organizations import add_court

router = APIRouter(prefix="/orgs", tags=["organizations"])


# ---------------------------------------------------------------------------
# Public endpoints (no auth required)
# ---------------------------------------------------------------------------


@router.get("", response_model=list[OrganizationSummaryOut])
async def browse_clubs(
    q: str | None = Query(None, description="Case-insensitive match on name, city or state"),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Organization)
        .where(Organization.is_active.is_(True), Organization.is_verified.is_(True))
        .order_by(Organization.name)
    )
    return filter_clubs(result.scalars().all(), q)


@router.get("/{slug}", response_model=OrganizationOut)
async def get_organization(org: Organization = Depends(get_org)):
    return org


@router.get("/{slug}/courts", response_model=list[CourtOut])
async def list_courts(org: Organization = Depends(get_org), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Court)
        .where(Court.organization_id == org.id, Court.is_active.is_(True))
        .order_by(Court.number)
    )
    return result.scalars().all()


@router.get("/{slug}/coaches", response_model=list[CoachOut])
async def list_coaches(org: Organization = Depends(get_org), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Coach).where(Coach.organization_id == org.id, Coach.is_active.is_(True)).order_by(Coach.name)
    )
    return result.scalars().all()


# ---------------------------------------------------------------------------
# Club admin endpoints (owner/admin or staff)
# ---------------------------------------------------------------------------


@router.patch("/{slug}", response_model=OrganizationOut)
async def update_organization(
    body: OrganizationUpdate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(org, field, value)
    await record_event(db, user.id, AuditAction.UPDATE, "organization", org.id, org.id, {"fields": sorted(changes)})
    await db.flush()
    return org


@router.post("/{slug}/courts", response_model=CourtOut, status_code=status.HTTP_201_CREATED)
async def create_court(
    body: CourtCreate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db),
):
    return await add_court(db, org, body.name, body.surface, body.is_indoor, body.has_lights)


@router.post("/{slug}/coaches", response_model=CoachOut, status_code=status.HTTP_201_CREATED)
async def create_coach(
    body: CoachCreate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db),
):
    coach = Coach(organization_id=org.id, **body.model_dump())
    db.add(coach)
    await db.flush()
    return coach


@router.get("/{slug}/members", response_model=list[MemberOut])
async def list_members(
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db),
):
    """List all active members of the club. Requires club admin."""
    result = await db.execute(
        select(OrgMembership)
        .options(selectinload(OrgMembership.user))
        .where(OrgMembership.organization_id == org.id, OrgMembership.is_active.is_(True))
        .order_by(OrgMembership.id)
    )
    return result.scalars().all()
