"""Membership plans, checkout, member subscriptions and Stripe Connect onboarding for a club."""

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import get_current_user, get_org, require_org_admin
from app.models.member import OrgMembership, SubscriptionStatus, User
from app.models.organization import Organization
from app.schemas import (
    CheckoutOut,
    MembershipCancel,
    MembershipPlanCreate,
    MembershipPlanOut,
    MembershipPlanUpdate,
    OrgMembershipOut,
    StripeLinkOut,
    StripeStatusOut,
)
from app.services.membership_plans import (
    DuplicatePlanName,
    PlanNotFound,
    create_plan,
    delete_plan,
    get_plan,
    list_plans,
    update_plan,
)
from app.services.memberships import get_membership, set_subscription_status
from app.services.stripe_service import (
    apply_account_state,
    apply_subscription_state,
    cancel_subscription,
    create_connect_account,
    create_dashboard_link,
    create_membership_checkout,
    create_onboarding_link,
    ensure_stripe_customer,
    resume_subscription,
    retrieve_account,
    retrieve_subscription,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orgs/{slug}", tags=["billing"])


def _stripe_failure(exc: stripe.StripeError) -> HTTPException:
    logger.error("Stripe request failed: %s", exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider error")


async def _plan_or_404(db: AsyncSession, org: Organization, plan_id: int):
    try:
        return await get_plan(db, org.id, plan_id)
    except PlanNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None


# ---------------------------------------------------------------------------
# Membership plans
# ---------------------------------------------------------------------------


@router.get("/membership-plans", response_model=list[MembershipPlanOut])
async def list_membership_plans(org: Organization = Depends(get_org), db: AsyncSession = Depends(get_db)):
    return await list_plans(db, org.id, active_only=True)


@router.post("/membership-plans", response_model=MembershipPlanOut, status_code=status.HTTP_201_CREATED)
async def create_membership_plan(
    body: MembershipPlanCreate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await create_plan(db, org, body.name, body.price_cents, body.interval, user, body.description)
    except DuplicatePlanName as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None


@router.patch("/membership-plans/{plan_id}", response_model=MembershipPlanOut)
async def update_membership_plan(
    plan_id: int,
    body: MembershipPlanUpdate,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    plan = await _plan_or_404(db, org, plan_id)
    try:
        return await update_plan(db, org, plan, user, **body.model_dump(exclude_unset=True))
    except DuplicatePlanName as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None


@router.delete("/membership-plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_membership_plan(
    plan_id: int,
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    plan = await _plan_or_404(db, org, plan_id)
    await delete_plan(db, org, plan, user)


@router.post("/membership-plans/{plan_id}/checkout", response_model=CheckoutOut)
async def checkout_membership_plan(
    plan_id: int,
    org: Organization = Depends(get_org),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Start a hosted Stripe Checkout for the plan. The webhook grants the membership."""
    plan = await _plan_or_404(db, org, plan_id)
    if not plan.is_active or not plan.stripe_price_id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Membership plan is not available")
    if not org.stripe_account_id or not org.charges_enabled:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This club cannot accept payments yet")

    try:
        customer_id = await ensure_stripe_customer(user, db)
        session = create_membership_checkout(org, plan, user, customer_id)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    logger.info("Checkout session %s for plan %s org %s user=%s", session.id, plan.id, org.slug, user.id)
    return CheckoutOut(session_id=session.id, url=session.url)


# ---------------------------------------------------------------------------
# The caller's membership subscription
# ---------------------------------------------------------------------------


async def _subscribed_membership(db: AsyncSession, org: Organization, user: User) -> OrgMembership:
    membership = await get_membership(db, user.id, org.id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not a member of this club")
    if not membership.stripe_subscription_id or membership.subscription_status == SubscriptionStatus.CANCELED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No active membership subscription")
    return membership


@router.post("/membership/cancel", response_model=OrgMembershipOut)
async def cancel_membership_subscription(
    body: MembershipCancel | None = None,
    org: Organization = Depends(get_org),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the caller's paid membership, at period end unless `immediately` is set."""
    immediately = body.immediately if body else False
    membership = await _subscribed_membership(db, org, user)
    try:
        cancel_subscription(membership.stripe_subscription_id, immediately=immediately)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    if immediately:
        set_subscription_status(membership, SubscriptionStatus.CANCELED)
    else:
        membership.cancel_at_period_end = True
        logger.info("Subscription %s will end at period end", membership.stripe_subscription_id)
    await db.flush()
    return membership


@router.post("/membership/reactivate", response_model=OrgMembershipOut)
async def reactivate_membership_subscription(
    org: Organization = Depends(get_org),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Keep a subscription that was set to end at period end."""
    membership = await _subscribed_membership(db, org, user)
    if not membership.cancel_at_period_end:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Subscription is not scheduled to end")
    try:
        resume_subscription(membership.stripe_subscription_id)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    membership.cancel_at_period_end = False
    await db.flush()
    logger.info("Subscription %s reactivated", membership.stripe_subscription_id)
    return membership


@router.post("/membership/sync", response_model=OrgMembershipOut)
async def sync_membership_subscription(
    org: Organization = Depends(get_org),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Refresh the caller's subscription state from Stripe, for when a webhook was missed."""
    membership = await get_membership(db, user.id, org.id)
    if membership is None or not membership.stripe_subscription_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No membership subscription")
    try:
        subscription = retrieve_subscription(membership.stripe_subscription_id)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    apply_subscription_state(membership, subscription)
    await db.flush()
    return membership


# ---------------------------------------------------------------------------
# Stripe Connect
# ---------------------------------------------------------------------------


@router.post("/stripe/connect", response_model=StripeLinkOut)
async def connect_stripe(
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create the club's Express account if needed and return an onboarding link."""
    try:
        if not org.stripe_account_id:
            account = create_connect_account(org, org.email or user.email, user.id)
            org.stripe_account_id = account.id
            org.stripe_status = "onboarding"
            await db.flush()
            logger.info("Created Stripe account %s for org %s", account.id, org.slug)
        url = create_onboarding_link(org)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    return StripeLinkOut(url=url, stripe_account_id=org.stripe_account_id)


@router.get("/stripe/status", response_model=StripeStatusOut)
async def stripe_status(
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db),
):
    if not org.stripe_account_id:
        return StripeStatusOut(status="not_connected")

    try:
        account = retrieve_account(org.stripe_account_id)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None

    apply_account_state(org, account)
    await db.flush()
    return StripeStatusOut(
        status=org.stripe_status,
        stripe_account_id=org.stripe_account_id,
        charges_enabled=org.charges_enabled,
        payouts_enabled=org.payouts_enabled,
        details_submitted=org.stripe_onboarding_complete,
    )


@router.post("/stripe/dashboard", response_model=StripeLinkOut)
async def stripe_dashboard(
    org: Organization = Depends(get_org),
    membership: OrgMembership | None = Depends(require_org_admin),
):
    if not org.stripe_account_id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Stripe is not connected")
    try:
        url = create_dashboard_link(org.stripe_account_id)
    except stripe.StripeError as exc:
        raise _stripe_failure(exc) from None
    return StripeLinkOut(url=url, stripe_account_id=org.stripe_account_id)
