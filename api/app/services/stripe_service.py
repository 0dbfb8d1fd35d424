"""Stripe integration service: Connect onboarding, membership products and checkout.

Wraps the Stripe Python SDK. Products and prices live on the platform account;
membership checkouts route funds to the club's Express account with
destination charges. All amounts are in cents.
"""

import contextlib

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.member import OrgMembership, SubscriptionStatus, User
from app.models.organization import MembershipPlan, Organization, PlanInterval
from app.services.memberships import set_subscription_status


def _configure() -> None:
    """Set the Stripe API key from settings."""
    stripe.api_key = settings.stripe_secret_key


def _club_url(org: Organization, path: str) -> str:
    return f"{settings.frontend_url}/club/{org.slug}/{path}"


async def ensure_stripe_customer(user: User, db: AsyncSession) -> str:
    """Get or create a Stripe customer for the user.

    Stores the customer ID on the User model for future use.
    """
    _configure()

    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer = stripe.Customer.create(
        email=user.email,
        name=user.display_name,
        metadata={"courtly_user_id": str(user.id)},
    )
    user.stripe_customer_id = customer.id
    await db.flush()
    return customer.id


# ---------------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------------


def create_connect_account(org: Organization, email: str, user_id: int) -> stripe.Account:
    """Create an Express account for the club."""
    _configure()

    return stripe.Account.create(
        type="express",
        country=settings.stripe_connect_country,
        email=email,
        metadata={"organization_id": str(org.id), "organization_slug": org.slug, "user_id": str(user_id)},
        capabilities={"card_payments": {"requested": True}, "transfers": {"requested": True}},
    )


def create_onboarding_link(org: Organization) -> str:
    _configure()

    link = stripe.AccountLink.create(
        account=org.stripe_account_id,
        refresh_url=_club_url(org, "stripe-setup?refresh=1"),
        return_url=_club_url(org, "stripe-setup?connected=1"),
        type="account_onboarding",
    )
    return link.url


def retrieve_account(account_id: str) -> stripe.Account:
    _configure()
    return stripe.Account.retrieve(account_id)


def create_dashboard_link(account_id: str) -> str:
    _configure()
    return stripe.Account.create_login_link(account_id).url


def apply_account_state(org: Organization, account) -> str:
    """Copy the Connect account flags onto the organization. Returns the new status."""
    org.charges_enabled = bool(account.get("charges_enabled"))
    org.payouts_enabled = bool(account.get("payouts_enabled"))
    org.stripe_onboarding_complete = bool(account.get("details_submitted"))
    org.stripe_status = "active" if org.charges_enabled else "onboarding"
    return org.stripe_status


# ---------------------------------------------------------------------------
# Membership products
# ---------------------------------------------------------------------------


def create_plan_product(org: Organization, name: str, description: str | None) -> stripe.Product:
    _configure()

    return stripe.Product.create(
        name=f"{org.name} - {name}",
        description=description or f"Membership plan: {name}",
        metadata={"organization_id": str(org.id), "plan_name": name},
    )


def create_plan_price(product_id: str, price_cents: int, interval: PlanInterval) -> stripe.Price:
    _configure()

    params = {
        "product": product_id,
        "unit_amount": price_cents,
        "currency": settings.stripe_currency,
    }
    if interval != PlanInterval.ONE_TIME:
        params["recurring"] = {"interval": interval.value}
    return stripe.Price.create(**params)


def archive_price(price_id: str) -> None:
    """Deactivate a price so no new checkouts can use it."""
    _configure()

    with contextlib.suppress(stripe.StripeError):
        stripe.Price.modify(price_id, active=False)


def create_membership_checkout(
    org: Organization,
    plan: MembershipPlan,
    user: User,
    customer_id: str,
) -> stripe.checkout.Session:
    """Create a hosted Checkout session for a membership plan.

    The session metadata carries the ids the webhook needs to grant membership.
    """
    _configure()

    metadata = {
        "organization_id": str(org.id),
        "plan_id": str(plan.id),
        "user_id": str(user.id),
    }
    transfer = {"destination": org.stripe_account_id}
    params = {
        "customer": customer_id,
        "line_items": [{"price": plan.stripe_price_id, "quantity": 1}],
        "success_url": _club_url(org, "membership?success=1"),
        "cancel_url": _club_url(org, "membership?canceled=1"),
        "metadata": metadata,
    }
    if plan.interval == PlanInterval.ONE_TIME:
        params["mode"] = "payment"
        params["payment_intent_data"] = {"transfer_data": transfer, "metadata": metadata}
    else:
        params["mode"] = "subscription"
        params["subscription_data"] = {"transfer_data": transfer, "metadata": metadata}
    return stripe.checkout.Session.create(**params)


# ---------------------------------------------------------------------------
# Membership subscriptions
# ---------------------------------------------------------------------------

# Stripe subscription status -> membership subscription status. Statuses not
# listed here (incomplete, paused) leave the membership as it is.
STRIPE_SUBSCRIPTION_STATUSES = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def cancel_subscription(subscription_id: str, immediately: bool = False) -> stripe.Subscription:
    """Cancel a membership subscription now, or when the paid period ends (the default)."""
    _configure()

    if immediately:
        return stripe.Subscription.cancel(subscription_id)
    return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)


def resume_subscription(subscription_id: str) -> stripe.Subscription:
    """Undo a pending end-of-period cancellation."""
    _configure()

    return stripe.Subscription.modify(subscription_id, cancel_at_period_end=False)


def retrieve_subscription(subscription_id: str) -> stripe.Subscription:
    _configure()

    return stripe.Subscription.retrieve(subscription_id)


def apply_subscription_state(membership: OrgMembership, subscription) -> SubscriptionStatus | None:
    """Mirror a Stripe subscription's status and pending cancellation onto the membership."""
    new_status = STRIPE_SUBSCRIPTION_STATUSES.get(subscription.get("status"))
    if new_status is not None:
        set_subscription_status(membership, new_status)
    if new_status != SubscriptionStatus.CANCELED:
        membership.cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
    return new_status


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event."""
    return stripe.Webhook.construct_event(
        payload,
        sig_header,
        settings.stripe_webhook_secret,
    )
