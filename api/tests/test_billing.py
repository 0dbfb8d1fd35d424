"""Membership plans, membership checkout and Stripe Connect onboarding."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import stripe
from sqlalchemy import select

from conftest import add_member, auth_headers, make_org, make_user
from app.core.database import async_session_factory
from app.models import MembershipPlan, Organization, OrgMembership, OrgRole, PlanInterval, SubscriptionStatus
from app.services.stripe_service import archive_price, cancel_subscription, create_membership_checkout

PLANS = "/api/v1/orgs/test-club/membership-plans"


@pytest.fixture
async def club_admin(org):
    user = await make_user("club-admin@example.com")
    await add_member(user, org, OrgRole.ADMIN)
    return user


@pytest.fixture
def stripe_products():
    """Patch product and price creation with sequential fake ids."""
    counter = {"n": 0}

    def _product(org, name, description):
        counter["n"] += 1
        return SimpleNamespace(id=f"prod_{counter['n']}")

    def _price(product_id, price_cents, interval):
        return SimpleNamespace(id=f"price_{product_id.removeprefix('prod_')}")

    with (
        patch("app.services.membership_plans.create_plan_product", side_effect=_product) as product,
        patch("app.services.membership_plans.create_plan_price", side_effect=_price) as price,
    ):
        yield SimpleNamespace(product=product, price=price)


async def _make_plan(org, name="Adult", price_cents=5000, **fields) -> MembershipPlan:
    async with async_session_factory() as db:
        plan = MembershipPlan(
            organization_id=org.id,
            name=name,
            price_cents=price_cents,
            interval=fields.pop("interval", PlanInterval.MONTH),
            stripe_product_id=fields.pop("stripe_product_id", "prod_x"),
            stripe_price_id=fields.pop("stripe_price_id", "price_x"),
            **fields,
        )
        db.add(plan)
        await db.commit()
        return plan


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_plan_mirrors_tiers(client, org, club_admin, stripe_products):
    resp = await client.post(
        PLANS,
        headers=auth_headers(club_admin),
        json={"name": "Adult", "price_cents": 5000, "interval": "month"},
    )
    assert resp.status_code == 201
    assert resp.json()["stripe_price_id"] == "price_1"
    assert stripe_products.price.call_args[0] == ("prod_1", 5000, PlanInterval.MONTH)

    async with async_session_factory() as db:
        saved = await db.get(Organization, org.id)
        assert saved.membership_enabled is True
        assert saved.membership_tiers == {
            "Adult": {"stripe_product_id": "prod_1", "stripe_price_id": "price_1", "is_active": True}
        }


@pytest.mark.asyncio
async def test_create_plan_validation(client, org, club_admin, stripe_products):
    resp = await client.post(PLANS, headers=auth_headers(club_admin), json={"name": "Free", "price_cents": 0})
    assert resp.status_code == 422
    stripe_products.product.assert_not_called()


@pytest.mark.asyncio
async def test_create_plan_duplicate_name(client, org, club_admin, stripe_products):
    await _make_plan(org, "Adult")
    resp = await client.post(PLANS, headers=auth_headers(club_admin), json={"name": "Adult", "price_cents": 100})
    assert resp.status_code == 409
    stripe_products.product.assert_not_called()


@pytest.mark.asyncio
async def test_create_plan_stripe_failure(client, org, club_admin):
    with patch("app.services.membership_plans.create_plan_product", side_effect=stripe.StripeError("down")):
        resp = await client.post(PLANS, headers=auth_headers(club_admin), json={"name": "Adult", "price_cents": 100})
    assert resp.status_code == 502

    async with async_session_factory() as db:
        assert (await db.get(Organization, org.id)).membership_tiers == {}


@pytest.mark.asyncio
async def test_create_plan_requires_admin(client, org, member, stripe_products):
    await add_member(member, org)
    resp = await client.post(PLANS, headers=auth_headers(member), json={"name": "Adult", "price_cents": 100})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_plans_public_active_only(client, org):
    await _make_plan(org, "Junior", 2000)
    await _make_plan(org, "Adult", 5000)
    await _make_plan(org, "Legacy", 1000, is_active=False)

    resp = await client.get(PLANS)
    assert resp.status_code == 200
    assert [p["name"] for p in resp.json()] == ["Junior", "Adult"]


@pytest.mark.asyncio
async def test_rename_and_deactivate_plan(client, org, club_admin, stripe_products):
    resp = await client.post(PLANS, headers=auth_headers(club_admin), json={"name": "Adult", "price_cents": 100})
    plan_id = resp.json()["id"]

    resp = await client.patch(
        f"{PLANS}/{plan_id}", headers=auth_headers(club_admin), json={"name": "Adult Plus", "is_active": False}
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    async with async_session_factory() as db:
        saved = await db.get(Organization, org.id)
        assert list(saved.membership_tiers) == ["Adult Plus"]
        assert saved.membership_tiers["Adult Plus"]["is_active"] is False
        assert saved.membership_enabled is False


@pytest.mark.asyncio
async def test_delete_plan_archives_price(client, org, club_admin, stripe_products):
    resp = await client.post(PLANS, headers=auth_headers(club_admin), json={"name": "Adult", "price_cents": 100})
    plan_id = resp.json()["id"]

    with patch("app.services.membership_plans.archive_price") as mock_archive:
        resp = await client.delete(f"{PLANS}/{plan_id}", headers=auth_headers(club_admin))
    assert resp.status_code == 204
    mock_archive.assert_called_once_with("price_1")

    async with async_session_factory() as db:
        assert await db.get(MembershipPlan, plan_id) is None
        saved = await db.get(Organization, org.id)
        assert saved.membership_tiers == {}
        assert saved.membership_enabled is False


@pytest.mark.asyncio
async def test_plan_of_other_club_not_found(client, org, club_admin):
    other = await make_org("other-club", "Other Club")
    plan = await _make_plan(other)
    resp = await client.delete(f"{PLANS}/{plan.id}", headers=auth_headers(club_admin))
    assert resp.status_code == 404


def test_archive_price_ignores_stripe_errors():
    with patch("app.services.stripe_service.stripe.Price.modify", side_effect=stripe.StripeError("gone")) as modify:
        archive_price("price_123")
    modify.assert_called_once_with("price_123", active=False)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_checkout_requires_connected_club(client, org, member):
    plan = await _make_plan(org)
    resp = await client.post(f"{PLANS}/{plan.id}/checkout", headers=auth_headers(member))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_checkout_rejects_inactive_plan(client, member):
    club = await make_org("paid-club", "Paid Club", stripe_account_id="acct_1", charges_enabled=True)
    plan = await _make_plan(club, is_active=False)
    resp = await client.post(f"/api/v1/orgs/paid-club/membership-plans/{plan.id}/checkout", headers=auth_headers(member))
    assert resp.status_code == 409


@pytest.mark.asyncio
@patch("app.routes.billing.ensure_stripe_customer", new_callable=AsyncMock, return_value="cus_test123")
@patch("app.routes.billing.create_membership_checkout")
async def test_checkout_session(mock_checkout, mock_customer, client, member):
    club = await make_org("paid-club", "Paid Club", stripe_account_id="acct_1", charges_enabled=True)
    plan = await _make_plan(club)
    session = MagicMock()
    session.id = "cs_test_1"
    session.url = "https://checkout.stripe.com/c/cs_test_1"
    mock_checkout.return_value = session

    resp = await client.post(
        f"/api/v1/orgs/paid-club/membership-plans/{plan.id}/checkout", headers=auth_headers(member)
    )
    assert resp.status_code == 200
    assert resp.json() == {"session_id": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}

    org_arg, plan_arg, user_arg, customer_arg = mock_checkout.call_args[0]
    assert (org_arg.id, plan_arg.id, user_arg.id, customer_arg) == (club.id, plan.id, member.id, "cus_test123")


def test_checkout_params_use_destination_charges():
    org = SimpleNamespace(id=7, slug="paid-club", stripe_account_id="acct_1")
    user = SimpleNamespace(id=3)
    monthly = SimpleNamespace(id=11, stripe_price_id="price_m", interval=PlanInterval.MONTH)
    once = SimpleNamespace(id=12, stripe_price_id="price_o", interval=PlanInterval.ONE_TIME)

    with patch("app.services.stripe_service.stripe.checkout.Session.create") as create:
        create_membership_checkout(org, monthly, user, "cus_1")
        params = create.call_args.kwargs
        assert params["mode"] == "subscription"
        assert params["metadata"] == {"organization_id": "7", "plan_id": "11", "user_id": "3"}
        assert params["subscription_data"]["transfer_data"] == {"destination": "acct_1"}

        create_membership_checkout(org, once, user, "cus_1")
        params = create.call_args.kwargs
        assert params["mode"] == "payment"
        assert params["payment_intent_data"]["transfer_data"] == {"destination": "acct_1"}


# ---------------------------------------------------------------------------
# Member subscriptions
# ---------------------------------------------------------------------------


async def _subscribe(user, org, role=OrgRole.MEMBER, subscription_id="sub_1") -> None:
    async with async_session_factory() as db:
        db.add(
            OrgMembership(
                user_id=user.id,
                organization_id=org.id,
                role=role,
                stripe_subscription_id=subscription_id,
                subscription_status=SubscriptionStatus.ACTIVE,
            )
        )
        await db.commit()


async def _own_membership(user, org) -> OrgMembership:
    async with async_session_factory() as db:
        result = await db.execute(
            select(OrgMembership).where(OrgMembership.user_id == user.id, OrgMembership.organization_id == org.id)
        )
        return result.scalar_one()


@pytest.mark.asyncio
@patch("app.routes.billing.resume_subscription")
@patch("app.routes.billing.cancel_subscription")
async def test_cancel_at_period_end_then_reactivate(mock_cancel, mock_resume, client, org, member):
    await _subscribe(member, org)
    base = f"/api/v1/orgs/{org.slug}/membership"

    resp = await client.post(f"{base}/cancel", headers=auth_headers(member))
    assert resp.status_code == 200
    assert resp.json()["cancel_at_period_end"] is True
    assert resp.json()["subscription_status"] == "active"
    mock_cancel.assert_called_once_with("sub_1", immediately=False)

    resp = await client.post(f"{base}/reactivate", headers=auth_headers(member))
    assert resp.status_code == 200
    assert resp.json()["cancel_at_period_end"] is False
    mock_resume.assert_called_once_with("sub_1")

    # Nothing left to undo
    resp = await client.post(f"{base}/reactivate", headers=auth_headers(member))
    assert resp.status_code == 409


@pytest.mark.asyncio
@patch("app.routes.billing.cancel_subscription")
async def test_cancel_immediately_ends_membership(mock_cancel, client, org, member):
    await _subscribe(member, org)

    resp = await client.post(
        f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member), json={"immediately": True}
    )
    assert resp.status_code == 200
    assert resp.json()["subscription_status"] == "canceled"
    assert resp.json()["is_active"] is False
    mock_cancel.assert_called_once_with("sub_1", immediately=True)

    # Already cancelled
    resp = await client.post(f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member))
    assert resp.status_code == 409


@pytest.mark.asyncio
@patch("app.routes.billing.cancel_subscription")
async def test_cancel_immediately_keeps_coach_access(mock_cancel, client, org, member):
    await _subscribe(member, org, OrgRole.COACH)

    resp = await client.post(
        f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member), json={"immediately": True}
    )
    assert resp.status_code == 200
    membership = await _own_membership(member, org)
    assert (membership.subscription_status, membership.is_active) == (SubscriptionStatus.CANCELED, True)


@pytest.mark.asyncio
async def test_cancel_without_subscription(client, org, member):
    resp = await client.post(f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member))
    assert resp.status_code == 404

    await add_member(member, org)
    resp = await client.post(f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member))
    assert resp.status_code == 409


@pytest.mark.asyncio
@patch("app.routes.billing.cancel_subscription", side_effect=stripe.StripeError("down"))
async def test_cancel_stripe_failure_leaves_membership(mock_cancel, client, org, member):
    await _subscribe(member, org)
    resp = await client.post(f"/api/v1/orgs/{org.slug}/membership/cancel", headers=auth_headers(member))
    assert resp.status_code == 502
    assert (await _own_membership(member, org)).cancel_at_period_end is False


@pytest.mark.asyncio
async def test_sync_subscription_from_stripe(client, org, member):
    await _subscribe(member, org)
    subscription = {"id": "sub_1", "status": "past_due", "cancel_at_period_end": True}

    with patch("app.routes.billing.retrieve_subscription", return_value=subscription):
        resp = await client.post(f"/api/v1/orgs/{org.slug}/membership/sync", headers=auth_headers(member))
    assert resp.status_code == 200
    assert resp.json()["subscription_status"] == "past_due"
    assert resp.json()["cancel_at_period_end"] is True


def test_cancel_subscription_uses_period_end_by_default():
    with (
        patch("app.services.stripe_service.stripe.Subscription.modify") as modify,
        patch("app.services.stripe_service.stripe.Subscription.cancel") as cancel,
    ):
        cancel_subscription("sub_1")
        modify.assert_called_once_with("sub_1", cancel_at_period_end=True)
        cancel.assert_not_called()

        cancel_subscription("sub_1", immediately=True)
        cancel.assert_called_once_with("sub_1")


# ---------------------------------------------------------------------------
# Stripe Connect
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stripe_status_not_connected(client, org, club_admin):
    resp = await client.get("/api/v1/orgs/test-club/stripe/status", headers=auth_headers(club_admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "not_connected"


@pytest.mark.asyncio
@patch("app.routes.billing.create_onboarding_link", return_value="https://connect.stripe.com/setup/x")
@patch("app.routes.billing.create_connect_account", return_value=SimpleNamespace(id="acct_new"))
async def test_connect_creates_account_once(mock_account, mock_link, client, org, club_admin):
    headers = auth_headers(club_admin)
    resp = await client.post("/api/v1/orgs/test-club/stripe/connect", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"url": "https://connect.stripe.com/setup/x", "stripe_account_id": "acct_new"}

    resp = await client.post("/api/v1/orgs/test-club/stripe/connect", headers=headers)
    assert resp.status_code == 200
    mock_account.assert_called_once()
    assert mock_link.call_count == 2

    async with async_session_factory() as db:
        saved = await db.get(Organization, org.id)
        assert (saved.stripe_account_id, saved.stripe_status) == ("acct_new", "onboarding")


@pytest.mark.asyncio
async def test_stripe_status_refreshes_flags(client, club_admin):
    club = await make_org("paid-club", "Paid Club", stripe_account_id="acct_1")
    await add_member(club_admin, club, OrgRole.OWNER)
    account = {"id": "acct_1", "charges_enabled": True, "payouts_enabled": False, "details_submitted": True}

    with patch("app.routes.billing.retrieve_account", return_value=account):
        resp = await client.get("/api/v1/orgs/paid-club/stripe/status", headers=auth_headers(club_admin))
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "active",
        "stripe_account_id": "acct_1",
        "charges_enabled": True,
        "payouts_enabled": False,
        "details_submitted": True,
    }


@pytest.mark.asyncio
async def test_stripe_dashboard_requires_account(client, org, club_admin):
    resp = await client.post("/api/v1/orgs/test-club/stripe/dashboard", headers=auth_headers(club_admin))
    assert resp.status_code == 409


@pytest.mark.asyncio
@patch("app.routes.billing.create_dashboard_link", side_effect=stripe.StripeError("nope"))
async def test_stripe_dashboard_stripe_failure(mock_link, client, club_admin):
    club = await make_org("paid-club", "Paid Club", stripe_account_id="acct_1")
    await add_member(club_admin, club, OrgRole.ADMIN)
    resp = await client.post("/api/v1/orgs/paid-club/stripe/dashboard", headers=auth_headers(club_admin))
    assert resp.status_code == 502
