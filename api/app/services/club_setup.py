"""Building a new Organization and its default child records.

Pure helpers for slugs and default settings, plus the async initializer that
creates the organization row and its courts in the caller's session.
"""

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.organization import Court, Organization
from app.models.request import ClubSubmission

DEFAULT_POLICIES = {
    "booking_window_days": 7,
    "buffer_minutes": 10,
    "max_bookings_per_member_per_day": 3,
    "cancel_policy": "24 hours notice required for cancellation",
    "allow_guest_bookings": True,
}

_WEEKDAY = {"open": "08:00", "close": "20:00", "closed": False}
_WEEKEND = {"open": "09:00", "close": "18:00", "closed": False}

DEFAULT_OPERATING_HOURS = {
    "monday": _WEEKDAY,
    "tuesday": _WEEKDAY,
    "wednesday": _WEEKDAY,
    "thursday": _WEEKDAY,
    "friday": _WEEKDAY,
    "saturday": _WEEKEND,
    "sunday": _WEEKEND,
}

DEFAULT_BOOKING_SETTINGS = {
    "max_days_in_advance": 14,
    "min_booking_duration": 60,
    "max_booking_duration": 120,
    "slot_interval": 30,
    "allow_overlapping": False,
    "require_approval": False,
}

SURFACES = {"hard", "clay", "grass", "carpet"}


def slugify(name: str) -> str:
    """'Ace Tennis Club!' -> 'ace-tennis-club'."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:90] or "club"


async def unique_slug(db: AsyncSession, name: str) -> str:
    """Slug for name, suffixed -2, -3, ... until unused."""
    base = slugify(name)
    result = await db.execute(select(Organization.slug).where(Organization.slug.like(f"{base}%")))
    taken = set(result.scalars().all())
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def court_surface(court_type: str | None) -> str:
    surface = (court_type or "hard").strip().lower()
    return surface if surface in SURFACES else "other"


async def initialize_organization(
    db: AsyncSession,
    submission: ClubSubmission,
    created_by: int | None,
) -> Organization:
    """Create the organization for an approved submission, plus its default courts."""
    court_count = max(submission.courts or 0, 0)

    org = Organization(
        name=submission.name,
        slug=await unique_slug(db, submission.name),
        email=submission.email,
        phone=submission.phone,
        website=submission.website,
        description=submission.description,
        address=submission.address,
        city=submission.city,
        state=submission.state,
        postal_code=submission.zip,
        country=settings.default_country,
        timezone=settings.default_timezone,
        court_count=court_count,
        court_type=submission.court_type,
        policies=dict(DEFAULT_POLICIES),
        operating_hours={day: dict(hours) for day, hours in DEFAULT_OPERATING_HOURS.items()},
        booking_settings=dict(DEFAULT_BOOKING_SETTINGS),
        membership_tiers={},
        is_verified=True,
        is_active=True,
        created_by=created_by,
        source_submission_id=submission.id,
    )
    db.add(org)
    await db.flush()

    surface = court_surface(submission.court_type)
    db.add_all(
        Court(organization_id=org.id, name=f"Court {n}", number=n, surface=surface)
        for n in range(1, court_count + 1)
    )
    await db.flush()
    return org
