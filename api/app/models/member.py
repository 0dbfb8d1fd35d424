"""User and membership models.

User = a person with login credentials (global, can belong to many clubs).
OrgMembership = the link between a user and an organization, with the user's
role in that club. It replaces the legacy `organization: string | string[]`
field that used to live on the user document.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, enum_values


class UserType(enum.StrEnum):
    """Platform-wide account type."""

    MEMBER = "member"
    ADMIN = "admin"  # administers at least one club
    COURTLY = "courtly"  # platform staff


class OrgRole(enum.StrEnum):
    """Roles within an organization, lowest to highest."""

    MEMBER = "member"
    COACH = "coach"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return list(OrgRole).index(self)


class SubscriptionStatus(enum.StrEnum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class User(TimestampMixin, Base):
    """A person who can log in. Global identity, not tied to one club."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False, index=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    user_type: Mapped[UserType] = mapped_column(
        Enum(UserType, name="user_type", values_callable=enum_values),
        default=UserType.MEMBER,
        nullable=False,
    )
    full_name: Mapped[str | None] = mapped_column(String(200))

    # Legacy Firestore document id, set by the migration script
    legacy_id: Mapped[str | None] = mapped_column(String(128), unique=True)

    # Stripe customer (membership checkout)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(100))

    @property
    def display_name(self) -> str:
        return self.full_name or self.email.split("@")[0]

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class OrgMembership(TimestampMixin, Base):
    """Links a user to an organization with a role and, optionally, a paid plan."""

    __tablename__ = "org_memberships"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    role: Mapped[OrgRole] = mapped_column(
        Enum(OrgRole, name="org_role", values_callable=enum_values),
        default=OrgRole.MEMBER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Billing
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("membership_plans.id", ondelete="SET NULL"))
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(100), index=True)
    subscription_status: Mapped[SubscriptionStatus | None] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=enum_values)
    )
    # Set when the member cancelled and the subscription runs out at period end
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship(lazy="raise")

    __table_args__ = (Index("ix_orgmember_user_org", "user_id", "organization_id", unique=True),)

    def __repr__(self) -> str:
        return f"<OrgMembership user={self.user_id} org={self.organization_id} role={self.role.value}>"
