"""Organization administration: lookup, verification, admin assignment, courts, deletion."""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction
from app.models.member import OrgMembership, OrgRole, User
from app.models.organization import Coach, Court, MembershipPlan, Organization
from app.models.request import ClubJoinRequest, LessonRequest
from app.services.audit import record_event
from app.services.memberships import grant_membership, promote_user_type

logger = logging.getLogger(__name__)

# Child tables removed together with their organization, children first
CHILD_MODELS = (LessonRequest, ClubJoinRequest, OrgMembership, Coach, MembershipPlan, Court)


class OrganizationNotFound(Exception):
    pass


class UnknownUsers(Exception):
    def __init__(self, user_ids: list[int]):
        self.user_ids = user_ids
        super().__init__(f"Unknown user ids: {', '.join(map(str, user_ids))}")


async def get_organization(db: AsyncSession, slug: str, active_only: bool = True) -> Organization:
    query = select(Organization).where(Organization.slug == slug)
    if active_only:
        query = query.where(Organization.is_active.is_(True))
    result = await db.execute(query)
    org = result.scalar_one_or_none()
    if org is None:
        raise OrganizationNotFound(slug)
    return org


async def verify_organization(db: AsyncSession, org: Organization, actor: User) -> Organization:
    org.is_verified = True
    org.is_active = True
    await record_event(db, actor.id, AuditAction.UPDATE, "organization", org.id, org.id, {"is_verified": True})
    await db.flush()
    logger.info("Verified org %s by user=%s", org.slug, actor.id)
    return org


async def list_admin_ids(db: AsyncSession, org_id: int) -> list[int]:
    result = await db.execute(
        select(OrgMembership.user_id)
        .where(
            OrgMembership.organization_id == org_id,
            OrgMembership.role == OrgRole.ADMIN,
            OrgMembership.is_active.is_(True),
        )
        .order_by(OrgMembership.user_id)
    )
    return list(result.scalars().all())


async def assign_admins(db: AsyncSession, org: Organization, user_ids: list[int], actor: User) -> list[int]:
    """Make exactly user_ids the club's admins.

    Newly assigned users get an admin membership (and the admin account type);
    admins left out drop back to plain members. Owners are never touched.
    Returns the resulting admin ids.
    """
    wanted = sorted(set(user_ids))
    if wanted:
        result = await db.execute(select(User).where(User.id.in_(wanted)))
        users = {u.id: u for u in result.scalars().all()}
        missing = [uid for uid in wanted if uid not in users]
        if missing:
            raise UnknownUsers(missing)
    else:
        users = {}

    current = set(await list_admin_ids(db, org.id))

    for uid in wanted:
        await grant_membership(db, uid, org.id, OrgRole.ADMIN)
        promote_user_type(users[uid])

    removed = sorted(current - set(wanted))
    if removed:
        result = await db.execute(
            select(OrgMembership).where(
                OrgMembership.organization_id == org.id,
                OrgMembership.user_id.in_(removed),
                OrgMembership.role == OrgRole.ADMIN,
            )
        )
        for membership in result.scalars().all():
            membership.role = OrgRole.MEMBER

    await record_event(
        db,
        actor.id,
        AuditAction.ASSIGN,
        "organization",
        org.id,
        org.id,
        {"admins": wanted, "removed": removed},
    )
    await db.flush()
    return await list_admin_ids(db, org.id)


async def add_court(
    db: AsyncSession,
    org: Organization,
    name: str | None = None,
    surface: str = "hard",
    is_indoor: bool = False,
    has_lights: bool = False,
) -> Court:
    result = await db.execute(select(func.coalesce(func.max(Court.number), 0)).where(Court.organization_id == org.id))
    number = result.scalar_one() + 1

    court = Court(
        organization_id=org.id,
        name=name or f"Court {number}",
        number=number,
        surface=surface,
        is_indoor=is_indoor,
        has_lights=has_lights,
    )
    db.add(court)
    org.court_count = (org.court_count or 0) + 1
    await db.flush()
    return court


async def delete_organization(db: AsyncSession, org: Organization, actor: User) -> None:
    """Delete the organization and every child row that references it."""
    org_id = org.id
    for model in CHILD_MODELS:
        await db.execute(delete(model).where(model.organization_id == org_id))
    await db.delete(org)
    await record_event(db, actor.id, AuditAction.DELETE, "organization", org_id, org_id, {"slug": org.slug})
    await db.flush()
    logger.info("Deleted org %s (%s) by user=%s", org_id, org.slug, actor.id)
