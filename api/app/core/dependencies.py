"""FastAPI dependencies for injection into route handlers.

All authorization is decided here, on the server, from the database: the
caller's account type for platform staff, and the caller's OrgMembership role
for club-level actions.
"""

from collections.abc import Callable

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ACCESS, token_user_id
from app.core.database import get_db
from app.models.member import OrgMembership, OrgRole, User, UserType
from app.models.organization import Organization
from app.services.organizations import OrganizationNotFound, get_organization

bearer_scheme = HTTPBearer(auto_error=False)


def is_staff(user: User) -> bool:
    """Platform staff (Courtly admins) can act on any club."""
    return user.user_type == UserType.COURTLY


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user from the JWT bearer token."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        user_id = token_user_id(credentials.credentials, ACCESS)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user


async def require_verified_user(user: User = Depends(get_current_user)) -> User:
    """Require a confirmed email address before club registration or joining."""
    if not user.email_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Please verify your email address first")
    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    """Require the current user to be Courtly platform staff."""
    if not is_staff(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Courtly staff access required")
    return user


# ---------------------------------------------------------------------------
# Org-level RBAC
# ---------------------------------------------------------------------------


async def get_org(slug: str = Path(...), db: AsyncSession = Depends(get_db)) -> Organization:
    """Resolve the active organization named by the URL slug."""
    try:
        return await get_organization(db, slug)
    except OrganizationNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found") from None


async def get_org_membership(
    org: Organization = Depends(get_org),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrgMembership | None:
    """Resolve the authenticated user's active membership within the org.

    Staff without a membership get None instead of a 403 so they can reach
    any club's endpoints.
    """
    result = await db.execute(
        select(OrgMembership).where(
            OrgMembership.user_id == user.id,
            OrgMembership.organization_id == org.id,
            OrgMembership.is_active.is_(True),
        )
    )
    membership = result.scalar_one_or_none()

    if membership is None:
        if is_staff(user):
            return None
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this club",
        )

    return membership


def require_org_role(*allowed_roles: OrgRole) -> Callable:
    """Factory: return a dependency that enforces the user has one of the allowed org roles.

    Staff always pass.

    Usage in a route:
        @router.get("/orgs/{slug}/admin-thing")
        async def admin_thing(membership=Depends(require_org_role(OrgRole.OWNER, OrgRole.ADMIN))):
            ...
    """

    async def _check(
        membership: OrgMembership | None = Depends(get_org_membership),
        user: User = Depends(get_current_user),
    ) -> OrgMembership | None:
        if is_staff(user):
            return membership

        if membership.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(r.value for r in allowed_roles)}",
            )
        return membership

    return _check


# Convenience shortcuts
require_org_admin = require_org_role(OrgRole.OWNER, OrgRole.ADMIN)
require_org_coach = require_org_role(OrgRole.OWNER, OrgRole.ADMIN, OrgRole.COACH)
require_org_member = get_org_membership  # any active membership suffices
