"""Stripe webhook handler.

Processes Connect account updates, completed membership checkouts,
subscription invoice outcomes and subscription changes or cancellations.
"""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_factory
from app.models.member import OrgMembership, SubscriptionStatus
from app.models.organization import MembershipPlan, Organization
from app.services.memberships import grant_membership, set_subscription_status
from app.services.stripe_service import apply_account_state, apply_subscription_state, construct_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """Handle Stripe webhook events.

    Uses a dedicated DB session (not the request-scoped one) because webhook
    processing must commit independently of any ongoing request.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = construct_webhook_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from None

    event_type = event["type"]
    data = event["data"]["object"]

    if event_type == "account.updated":
        await _handle_account_updated(data)
    elif event_type == "checkout.session.completed":
        await _handle_checkout_completed(data)
    elif event_type == "invoice.paid":
        await _set_subscription_status(data, SubscriptionStatus.ACTIVE)
    elif event_type == "invoice.payment_failed":
        await _set_subscription_status(data, SubscriptionStatus.PAST_DUE)
    elif event_type == "customer.subscription.updated":
        await _handle_subscription_changed(data)
    elif event_type == "customer.subscription.deleted":
        await _handle_subscription_changed(data, ended=True)
    else:
        logger.info("Ignoring Stripe event %s", event_type)

    return {"status": "ok"}


def _invoice_subscription(invoice) -> str | None:
    # Newer API versions nest the subscription under parent.subscription_details
    subscription = invoice.get("subscription")
    if subscription:
        return subscription
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


async def _handle_account_updated(account) -> None:
    """Mirror the Connect account's charge and payout flags onto the club."""
    async with async_session_factory() as db:
        result = await db.execute(select(Organization).where(Organization.stripe_account_id == account["id"]))
        org = result.scalar_one_or_none()
        if org is None:
            logger.warning("account.updated for unknown Stripe account %s", account["id"])
            return

        apply_account_state(org, account)
        await db.commit()
        logger.info("Org %s Stripe status is now %s", org.slug, org.stripe_status)


async def _handle_checkout_completed(session) -> None:
    """Grant the membership that was paid for."""
    metadata = session.get("metadata") or {}
    try:
        org_id = int(metadata["organization_id"])
        plan_id = int(metadata["plan_id"])
        user_id = int(metadata["user_id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Checkout session %s has no membership metadata", session.get("id"))
        return

    async with async_session_factory() as db:
        plan = await db.get(MembershipPlan, plan_id)
        if plan is None or plan.organization_id != org_id:
            logger.warning("Checkout session %s names unknown plan %s for org %s", session.get("id"), plan_id, org_id)
            return

        membership = await grant_membership(db, user_id, org_id)
        membership.plan_id = plan.id
        membership.stripe_subscription_id = session.get("subscription")
        membership.subscription_status = SubscriptionStatus.ACTIVE
        membership.cancel_at_period_end = False
        await db.commit()
        logger.info("Membership plan %s activated for user=%s org=%s", plan.id, user_id, org_id)


async def _membership_for_subscription(db: AsyncSession, subscription_id: str) -> OrgMembership | None:
    result = await db.execute(select(OrgMembership).where(OrgMembership.stripe_subscription_id == subscription_id))
    return result.scalar_one_or_none()


async def _set_subscription_status(invoice, new_status: SubscriptionStatus) -> None:
    subscription_id = _invoice_subscription(invoice)
    if not subscription_id:
        return

    async with async_session_factory() as db:
        membership = await _membership_for_subscription(db, subscription_id)
        if membership is None:
            logger.warning("Invoice %s for unknown subscription %s", invoice.get("id"), subscription_id)
            return

        set_subscription_status(membership, new_status)
        await db.commit()


async def _handle_subscription_changed(subscription, ended: bool = False) -> None:
    """Follow status changes and cancellations made in Stripe or by the member."""
    async with async_session_factory() as db:
        membership = await _membership_for_subscription(db, subscription["id"])
        if membership is None:
            logger.warning("Change to unknown subscription %s", subscription["id"])
            return

        if ended:
            set_subscription_status(membership, SubscriptionStatus.CANCELED)
        else:
            apply_subscription_state(membership, subscription)
        await db.commit()
