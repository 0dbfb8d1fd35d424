"""Membership plan management.

MembershipPlan rows are the source of truth. Organization.membership_tiers is
a denormalized map rebuilt from them after every change:

    {"Adult": {"stripe_product_id": "prod_..", "stripe_price_id": "price_..", "is_active": True}}
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction
from app.models.member import User
from app.models.organization import MembershipPlan, Organization, PlanInterval
from app.services.audit import record_event
from app.services.stripe_service import archive_price, create_plan_price, create_plan_product

logger = logging.getLogger(__name__)


class PlanNotFound(Exception):
    pass


class DuplicatePlanName(Exception):
    pass


def tier_entry(plan: MembershipPlan) -> dict:
    return {
        "stripe_product_id": plan.stripe_product_id,
        "stripe_price_id": plan.stripe_price_id,
        "is_active": plan.is_active,
    }


async def list_plans(db: AsyncSession, org_id: int, active_only: bool = False) -> list[MembershipPlan]:
    query = select(MembershipPlan).where(MembershipPlan.organization_id == org_id)
    if active_only:
        query = query.where(MembershipPlan.is_active.is_(True))
    result = await db.execute(query.order_by(MembershipPlan.price_cents, MembershipPlan.name))
    return list(result.scalars().all())


async def get_plan(db: AsyncSession, org_id: int, plan_id: int) -> MembershipPlan:
    plan = await db.get(MembershipPlan, plan_id)
    if plan is None or plan.organization_id != org_id:
        raise PlanNotFound("Membership plan not found")
    return plan


async def sync_membership_tiers(db: AsyncSession, org: Organization) -> dict:
    """Rebuild org.membership_tiers and membership_enabled from the plan rows."""
    plans = await list_plans(db, org.id)
    # Assign a fresh dict so the JSON column is marked dirty
    org.membership_tiers = {plan.name: tier_entry(plan) for plan in plans}
    org.membership_enabled = any(plan.is_active for plan in plans)
    await db.flush()
    return org.membership_tiers


async def _ensure_name_free(db: AsyncSession, org_id: int, name: str, exclude_id: int | None = None) -> None:
    query = select(MembershipPlan.id).where(MembershipPlan.organization_id == org_id, MembershipPlan.name == name)
    if exclude_id is not None:
        query = query.where(MembershipPlan.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none() is not None:
        raise DuplicatePlanName(f"A plan named '{name}' already exists")


async def create_plan(
    db: AsyncSession,
    org: Organization,
    name: str,
    price_cents: int,
    interval: PlanInterval,
    actor: User,
    description: str | None = None,
) -> MembershipPlan:
    """Create the Stripe product and price, store the plan and mirror it."""
    await _ensure_name_free(db, org.id, name)

    product = create_plan_product(org, name, description)
    price = create_plan_price(product.id, price_cents, interval)

    plan = MembershipPlan(
        organization_id=org.id,
        name=name,
        description=description,
        price_cents=price_cents,
        interval=interval,
        is_active=True,
        stripe_product_id=product.id,
        stripe_price_id=price.id,
    )
    db.add(plan)
    await db.flush()
    await sync_membership_tiers(db, org)
    await record_event(db, actor.id, AuditAction.CREATE, "membership_plan", plan.id, org.id, {"name": name})
    logger.info("Created membership plan %s (%s) for org %s", plan.id, name, org.slug)
    return plan


async def update_plan(
    db: AsyncSession,
    org: Organization,
    plan: MembershipPlan,
    actor: User,
    name: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
) -> MembershipPlan:
    changes = {}
    if name is not None and name != plan.name:
        await _ensure_name_free(db, org.id, name, exclude_id=plan.id)
        changes["name"] = [plan.name, name]
        plan.name = name
    if description is not None:
        plan.description = description
    if is_active is not None and is_active != plan.is_active:
        changes["is_active"] = is_active
        plan.is_active = is_active

    await db.flush()
    await sync_membership_tiers(db, org)
    await record_event(db, actor.id, AuditAction.UPDATE, "membership_plan", plan.id, org.id, changes)
    return plan


async def delete_plan(db: AsyncSession, org: Organization, plan: MembershipPlan, actor: User) -> None:
    if plan.stripe_price_id:
        archive_price(plan.stripe_price_id)
    plan_id, name = plan.id, plan.name
    await db.delete(plan)
    await db.flush()
    await sync_membership_tiers(db, org)
    await record_event(db, actor.id, AuditAction.DELETE, "membership_plan", plan_id, org.id, {"name": name})
    logger.info("Deleted membership plan %s (%s) for org %s", plan_id, name, org.slug)
