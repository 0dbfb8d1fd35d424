"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.member import OrgRole, UserType
from app.models.organization import PlanInterval
from app.models.request import RequestStatus

# --- Auth ---


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=8)


class VerifyEmailRequest(BaseModel):
    token: str


# --- User ---


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str | None
    user_type: UserType
    email_verified: bool


class UserWithOrgsOut(UserOut):
    organization_ids: list[int]


class UserTypeUpdate(BaseModel):
    user_type: UserType


class UserOrganizationAdd(BaseModel):
    organization_id: int
    role: OrgRole = OrgRole.MEMBER


# --- Club submissions ---


class ClubSubmissionCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    city: str
    state: str
    zip: str | None = None
    description: str | None = None
    courts: int = Field(default=1, ge=0, le=100)
    court_type: str = "hard"

    @field_validator("name", "city", "state")
    @classmethod
    def _required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please fill in all required fields")
        return value


class ClubSubmissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: str | None
    website: str | None
    address: str | None
    city: str
    state: str
    zip: str | None
    description: str | None
    courts: int
    court_type: str
    status: RequestStatus
    submitted_by: int
    submitter_email: str
    submitter_name: str
    created_at: datetime


class DeclineRequest(BaseModel):
    reason: str | None = None


class MessageOut(BaseModel):
    message: str


# --- Organization ---


class OrganizationSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    city: str
    state: str
    court_count: int
    is_verified: bool
    is_active: bool
    membership_enabled: bool


class OrganizationOut(OrganizationSummaryOut):
    email: str | None
    phone: str | None
    website: str | None
    description: str | None
    address: str | None
    postal_code: str | None
    country: str
    timezone: str
    currency: str
    court_type: str | None
    policies: dict | None
    operating_hours: dict | None
    booking_settings: dict | None
    membership_tiers: dict | None
    stripe_status: str | None
    charges_enabled: bool
    payouts_enabled: bool
    created_at: datetime


class OrganizationUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    website: str | None = None
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    timezone: str | None = None
    policies: dict | None = None
    operating_hours: dict | None = None
    booking_settings: dict | None = None

    # Omit these to leave them unchanged; they cannot be cleared
    @field_validator("name", "city", "state", "timezone")
    @classmethod
    def _not_blank(cls, value: str | None) -> str:
        if value is None or not value.strip():
            raise ValueError("This field cannot be empty")
        return value.strip()


class AdminAssignment(BaseModel):
    user_ids: list[int]


class AdminAssignmentOut(BaseModel):
    organization_id: int
    admin_ids: list[int]


class CourtCreate(BaseModel):
    name: str | None = None
    surface: str = "hard"
    is_indoor: bool = False
    has_lights: bool = False


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    number: int
    surface: str
    is_indoor: bool
    has_lights: bool
    is_active: bool


class CoachCreate(BaseModel):
    name: str
    user_id: int | None = None
    bio: str | None = None
    hourly_rate_cents: int = Field(default=0, ge=0)


class CoachOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    user_id: int | None
    bio: str | None
    hourly_rate_cents: int
    is_active: bool


class OrgMembershipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    organization_id: int
    role: OrgRole
    is_active: bool
    joined_at: datetime | None
    plan_id: int | None
    subscription_status: str | None
    cancel_at_period_end: bool


class MemberOut(OrgMembershipOut):
    user: UserOut


# --- Join & lesson requests ---


class JoinRequestCreate(BaseModel):
    message: str | None = None


class JoinRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    user_id: int
    message: str | None
    status: RequestStatus
    created_at: datetime


class LessonRequestCreate(BaseModel):
    preferred_date: date
    preferred_time: time | None = None
    duration_minutes: int = Field(default=60, ge=30, le=240)
    coach_id: int | None = None
    message: str | None = None


class LessonRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    user_id: int
    coach_id: int | None
    preferred_date: date
    preferred_time: time | None
    duration_minutes: int
    message: str | None
    status: RequestStatus
    created_at: datetime


# --- Membership plans & billing ---


class MembershipPlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    price_cents: int = Field(gt=0)
    interval: PlanInterval = PlanInterval.MONTH


class MembershipPlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None


class MembershipPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    price_cents: int
    interval: PlanInterval
    is_active: bool
    stripe_price_id: str | None


class MembershipCancel(BaseModel):
    immediately: bool = False


class CheckoutOut(BaseModel):
    session_id: str
    url: str


class StripeLinkOut(BaseModel):
    url: str
    stripe_account_id: str


class StripeStatusOut(BaseModel):
    status: str  # not_connected, onboarding, active
    stripe_account_id: str | None = None
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
