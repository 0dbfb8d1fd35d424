"""Organization and its child records.

Organization = an approved tennis club.
Court = a bookable court at the club.
Coach = a coach teaching at the club (may or may not have a login).
MembershipPlan = a paid membership offering, mirrored into
Organization.membership_tiers for quick display.
"""

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType, TimestampMixin, enum_values


class PlanInterval(enum.StrEnum):
    MONTH = "month"
    YEAR = "year"
    ONE_TIME = "one_time"


class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Contact
    email: Mapped[str | None] = mapped_column(String(254))
    phone: Mapped[str | None] = mapped_column(String(50))
    website: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)

    # Location
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(20))
    country: Mapped[str] = mapped_column(String(50), default="USA", nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="America/Los_Angeles", nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Facilities
    court_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    court_type: Mapped[str | None] = mapped_column(String(50))

    # Booking defaults (policies, hours, booking settings) seeded on approval
    policies: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    operating_hours: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    booking_settings: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    # Membership billing. membership_tiers maps plan name ->
    # {"stripe_product_id", "stripe_price_id", "is_active"}
    membership_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    membership_tiers: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    # Stripe Connect
    stripe_account_id: Mapped[str | None] = mapped_column(String(100), index=True)
    stripe_status: Mapped[str | None] = mapped_column(String(20))  # onboarding, active
    stripe_onboarding_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    charges_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Provenance
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    # One organization per approved submission; the approval's idempotency key
    source_submission_id: Mapped[int | None] = mapped_column(Integer, unique=True)

    def __repr__(self) -> str:
        return f"<Organization {self.slug}>"


class Court(TimestampMixin, Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    surface: Mapped[str] = mapped_column(String(50), default="hard", nullable=False)
    is_indoor: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_lights: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_courts_org_number", "organization_id", "number", unique=True),)

    def __repr__(self) -> str:
        return f"<Court {self.name} @ org {self.organization_id}>"


class Coach(TimestampMixin, Base):
    __tablename__ = "coaches"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    bio: Mapped[str | None] = mapped_column(Text)
    hourly_rate_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Coach {self.name} @ org {self.organization_id}>"


class MembershipPlan(TimestampMixin, Base):
    __tablename__ = "membership_plans"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    interval: Mapped[PlanInterval] = mapped_column(
        Enum(PlanInterval, name="plan_interval", values_callable=enum_values),
        default=PlanInterval.MONTH,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stripe_product_id: Mapped[str | None] = mapped_column(String(100))
    stripe_price_id: Mapped[str | None] = mapped_column(String(100))

    __table_args__ = (Index("ix_plans_org_name", "organization_id", "name", unique=True),)

    def __repr__(self) -> str:
        return f"<MembershipPlan {self.name} @ org {self.organization_id}>"
