"""Import users and clubs from the legacy Firestore JSON export.

Usage:
    python -m scripts.migrate_legacy_users data/export.json [--dry-run]

The export is a single JSON object:

    {
      "orgs":  [{"id": "abc", "name": "...", "city": "...", "state": "...", ...}],
      "users": [{"uid": "u1", "email": "...", "fullName": "...", "userType": "admin",
                 "emailVerified": true,
                 "organization": "abc" | ["abc", "def"],
                 "organizations": [{"orgId": "abc", "role": "admin"}]}]
    }

Legacy users carried their clubs in an `organization` field that was
sometimes a string and sometimes a list; both normalize to the same
memberships here. Users are matched on legacy id, then email, so the import
can be re-run. Imported users have no password until they request a reset
link at /auth/forgot-password.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import async_session_factory
from app.models import OrgMembership, OrgRole, Organization, User, UserType
from app.services.club_setup import DEFAULT_BOOKING_SETTINGS, DEFAULT_POLICIES, slugify
from app.services.memberships import grant_membership, normalize_organization_ids

USER_TYPES = {t.value: t for t in UserType}
ORG_ROLES = {r.value: r for r in OrgRole}


def _read_export(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        print(f"ERROR: {path} is not valid JSON: {exc}")
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"ERROR: {path} must contain a JSON object with 'users' and 'orgs'")
        sys.exit(1)
    return data


def legacy_roles(record: dict) -> dict[str, OrgRole]:
    """Legacy org id -> role for one exported user.

    The `organization` field gives plain membership, or admin when the user's
    account type is admin. Explicit `organizations` entries can raise a role.
    """
    user_type = USER_TYPES.get(str(record.get("userType") or "").lower(), UserType.MEMBER)
    default_role = OrgRole.ADMIN if user_type == UserType.ADMIN else OrgRole.MEMBER

    roles = {org_id: default_role for org_id in normalize_organization_ids(record.get("organization"))}
    for entry in record.get("organizations") or []:
        org_id = str(entry.get("orgId") or "").strip()
        if not org_id:
            continue
        role = ORG_ROLES.get(str(entry.get("role") or "").lower(), OrgRole.MEMBER)
        if org_id not in roles or role.rank > roles[org_id].rank:
            roles[org_id] = role
    return roles


# ---------------------------------------------------------------------------
# Clubs
# ---------------------------------------------------------------------------


async def import_orgs(db: AsyncSession, records: list[dict], *, dry_run: bool) -> dict[str, int | None]:
    """Create missing clubs. Returns legacy org id -> organization id (None in a dry run)."""
    result = await db.execute(select(Organization))
    by_slug = {org.slug: org for org in result.scalars().all()}

    mapping: dict[str, int | None] = {}
    created = 0
    for record in records:
        legacy_id = str(record.get("id") or "").strip()
        name = (record.get("name") or "").strip()
        if not legacy_id or not name:
            print(f"  Skipping club without id or name: {record!r}")
            continue

        slug = slugify(name)
        org = by_slug.get(slug)
        if org is None:
            created += 1
            if dry_run:
                print(f"  [DRY RUN] Would create club: {name} ({slug})")
                mapping[legacy_id] = None
                continue
            org = Organization(
                name=name,
                slug=slug,
                email=record.get("email"),
                phone=record.get("phone"),
                website=record.get("website"),
                description=record.get("description"),
                address=record.get("address"),
                city=record.get("city") or "",
                state=record.get("state") or "",
                postal_code=record.get("zip") or record.get("postalCode"),
                country=settings.default_country,
                timezone=record.get("timezone") or settings.default_timezone,
                court_count=int(record.get("courts") or 0),
                court_type=record.get("courtType"),
                policies=dict(DEFAULT_POLICIES),
                booking_settings=dict(DEFAULT_BOOKING_SETTINGS),
                membership_tiers={},
                is_verified=True,
                is_active=True,
            )
            db.add(org)
            await db.flush()
            by_slug[slug] = org
        mapping[legacy_id] = org.id

    print(f"Clubs: {created} new, {len(mapping) - created} existing.")
    return mapping


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def import_users(
    db: AsyncSession,
    records: list[dict],
    org_ids: dict[str, int | None],
    *,
    dry_run: bool,
) -> None:
    result = await db.execute(select(User))
    existing = result.scalars().all()
    by_legacy = {u.legacy_id: u for u in existing if u.legacy_id}
    by_email = {u.email.lower(): u for u in existing}

    imported = 0
    matched = 0
    memberships = 0
    errors: list[str] = []

    for i, record in enumerate(records):
        legacy_id = str(record.get("uid") or record.get("id") or "").strip() or None
        email = (record.get("email") or "").strip().lower()
        if not email:
            errors.append(f"User {i + 1}: missing email")
            continue

        user = by_legacy.get(legacy_id) if legacy_id else None
        user = user or by_email.get(email)
        user_type = USER_TYPES.get(str(record.get("userType") or "").lower(), UserType.MEMBER)

        roles = legacy_roles(record)
        unknown = [org_id for org_id in roles if org_id not in org_ids]
        if unknown:
            errors.append(f"{email}: unknown organization ids {', '.join(unknown)}")
        roles = {org_id: role for org_id, role in roles.items() if org_id in org_ids}

        if dry_run:
            action = "update" if user else "import"
            summary = ", ".join(f"{org_id}:{role.value}" for org_id, role in roles.items()) or "no clubs"
            print(f"  [DRY RUN] Would {action}: {email} as {user_type.value} ({summary})")
            imported += user is None
            matched += user is not None
            memberships += len(roles)
            continue

        if user is None:
            user = User(
                email=email,
                # No password yet: the user sets one through forgot-password
                hashed_password=None,
                email_verified=record.get("emailVerified") is True,
                full_name=record.get("fullName") or None,
                user_type=user_type,
                legacy_id=legacy_id,
                stripe_customer_id=record.get("stripeCustomerId"),
                is_active=record.get("isActive", True) is not False,
            )
            db.add(user)
            await db.flush()
            by_email[email] = user
            imported += 1
        else:
            user.legacy_id = user.legacy_id or legacy_id
            matched += 1

        for org_id, role in roles.items():
            await grant_membership(db, user.id, org_ids[org_id], role)
            memberships += 1

        if (i + 1) % 100 == 0:
            print(f"  Processed {i + 1}/{len(records)} users...")

    print(f"\nUsers import {'(DRY RUN) ' if dry_run else ''}complete:")
    print(f"  Imported: {imported}")
    print(f"  Matched existing: {matched}")
    print(f"  Memberships: {memberships}")
    print(f"  Errors: {len(errors)}")
    for err in errors:
        print(f"    {err}")


async def count_memberships(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(OrgMembership.id)))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


async def main(args: argparse.Namespace) -> None:
    path = Path(args.export_file)
    if not path.exists():
        print(f"ERROR: File not found: {path}")
        sys.exit(1)

    print(f"Reading {path}...")
    data = _read_export(path)
    orgs = data.get("orgs") or []
    users = data.get("users") or []
    print(f"Found {len(orgs)} clubs and {len(users)} users.")

    async with async_session_factory() as db:
        org_ids = await import_orgs(db, orgs, dry_run=args.dry_run)
        await import_users(db, users, org_ids, dry_run=args.dry_run)

        if not args.dry_run:
            await db.commit()
            print(f"Committed to database ({await count_memberships(db)} memberships total).")
        else:
            await db.rollback()
            print("Dry run - no changes made.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import the legacy Firestore user export into Courtly")
    parser.add_argument("export_file", help="Path to the JSON export")
    parser.add_argument("--dry-run", action="store_true", help="Validate without writing to DB")

    parsed = parser.parse_args()
    asyncio.run(main(parsed))
