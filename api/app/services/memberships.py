"""Membership reconciliation between users and organizations.

Every code path that adds a user to a club (approval, staff assignment,
join-request approval, membership checkout) goes through grant_membership,
so membership is append-if-absent and roles only ever move up here.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.member import OrgMembership, OrgRole, SubscriptionStatus, User, UserType

logger = logging.getLogger(__name__)


def normalize_organization_ids(value: str | list | tuple | None) -> list[str]:
    """Coerce a legacy `organization` field to a list of ids.

    The field was written as a bare string by some code paths and as a list
    by others. A bare string and a singleton list normalize identically.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]

    seen: list[str] = []
    for item in value:
        if item is None:
            continue
        item = str(item).strip()
        if item and item not in seen:
            seen.append(item)
    return seen


def promote_user_type(user: User) -> bool:
    """Give a plain member the club-admin account type. Returns True if changed."""
    if user.user_type == UserType.MEMBER:
        user.user_type = UserType.ADMIN
        return True
    return False


async def get_membership(db: AsyncSession, user_id: int, org_id: int) -> OrgMembership | None:
    result = await db.execute(
        select(OrgMembership).where(OrgMembership.user_id == user_id, OrgMembership.organization_id == org_id)
    )
    return result.scalar_one_or_none()


async def grant_membership(
    db: AsyncSession,
    user_id: int,
    org_id: int,
    role: OrgRole = OrgRole.MEMBER,
) -> OrgMembership:
    """Add the user to the organization, or reactivate / upgrade an existing membership.

    Never lowers an existing role.
    """
    result = await db.execute(
        select(OrgMembership)
        .where(OrgMembership.user_id == user_id, OrgMembership.organization_id == org_id)
        .with_for_update()
    )
    membership = result.scalar_one_or_none()

    if membership is None:
        membership = OrgMembership(
            user_id=user_id,
            organization_id=org_id,
            role=role,
            is_active=True,
            joined_at=datetime.now(UTC),
        )
        db.add(membership)
        await db.flush()
        logger.info("Granted %s membership: user=%s org=%s", role.value, user_id, org_id)
        return membership

    if not membership.is_active:
        membership.is_active = True
        membership.joined_at = datetime.now(UTC)
    if role.rank > membership.role.rank:
        membership.role = role
    await db.flush()
    logger.info("Updated membership: user=%s org=%s role=%s", user_id, org_id, membership.role.value)
    return membership


async def set_membership_role(db: AsyncSession, user_id: int, org_id: int, role: OrgRole) -> OrgMembership | None:
    """Set the role of an existing membership, allowing demotion. Returns None if absent."""
    membership = await get_membership(db, user_id, org_id)
    if membership is None:
        return None
    membership.role = role
    await db.flush()
    return membership


async def revoke_membership(db: AsyncSession, user_id: int, org_id: int) -> bool:
    """Deactivate a membership. Returns False when there was nothing to revoke."""
    membership = await get_membership(db, user_id, org_id)
    if membership is None or not membership.is_active:
        return False
    membership.is_active = False
    await db.flush()
    logger.info("Revoked membership: user=%s org=%s", user_id, org_id)
    return True


async def list_organization_ids(db: AsyncSession, user_id: int) -> list[int]:
    """Active organization ids for a user, oldest membership first."""
    result = await db.execute(
        select(OrgMembership.organization_id)
        .where(OrgMembership.user_id == user_id, OrgMembership.is_active.is_(True))
        .order_by(OrgMembership.id)
    )
    return list(result.scalars().all())


def set_subscription_status(membership: OrgMembership, new_status: SubscriptionStatus) -> None:
    """Record a paid-plan outcome on a membership.

    A cancelled subscription ends a plain membership. Staff roles (coach,
    admin, owner) keep their access; only the plan lapses.
    """
    membership.subscription_status = new_status
    if new_status == SubscriptionStatus.CANCELED:
        membership.cancel_at_period_end = False
        if membership.role == OrgRole.MEMBER:
            membership.is_active = False
    logger.info(
        "Subscription %s for user=%s org=%s is now %s",
        membership.stripe_subscription_id,
        membership.user_id,
        membership.organization_id,
        new_status.value,
    )
