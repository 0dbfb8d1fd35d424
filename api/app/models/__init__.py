"""All models imported here so metadata sees every table."""

from app.models.audit import AuditAction, AuditEvent
from app.models.base import Base
from app.models.member import OrgMembership, OrgRole, SubscriptionStatus, User, UserType
from app.models.organization import Coach, Court, MembershipPlan, Organization, PlanInterval
from app.models.request import ClubJoinRequest, ClubSubmission, LessonRequest, RequestStatus

__all__ = [
    "Base",
    "User",
    "UserType",
    "OrgMembership",
    "OrgRole",
    "SubscriptionStatus",
    "Organization",
    "Court",
    "Coach",
    "MembershipPlan",
    "PlanInterval",
    "ClubSubmission",
    "ClubJoinRequest",
    "LessonRequest",
    "RequestStatus",
    "AuditEvent",
    "AuditAction",
]
