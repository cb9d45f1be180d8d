from __future__ import annotations

import logging
from datetime import timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import AuthenticationError, BusinessRuleError, NotFoundError
from src.core.security import create_access_token, create_refresh_token, get_password_hash, verify_password
from src.db.base import utcnow
from src.db.models.security import PERMISSION_CLAIM_TYPE, Role, User
from src.repositories.security import (
    ADMIN_ROLE_NAME,
    MANAGER_ROLE_NAME,
    USER_ROLE_NAME,
    SecurityRepository,
)
from src.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ClaimItem,
    ForceChangePasswordRequest,
    RoleCreate,
    RoleRead,
    RoleUpdate,
    UserCreate,
    UserInfo,
    UserRead,
    UserUpdate,
)
from src.services.base import BaseService

logger = logging.getLogger(__name__)

# Every permission the API checks; the Admin role always holds all of them.
ALL_PERMISSIONS: List[str] = [
    "CanCreateUser",
    "CanManageUsers",
    "CanViewRoles",
    "CanManageRoles",
    "CanViewCategories",
    "CanManageCategories",
    "CanViewProducts",
    "CanManageProducts",
    "CanViewProductAttributes",
    "CanManageProductAttributes",
    "CanViewStockMovements",
    "CanManageStockMovements",
    "CanViewTodos",
    "CanManageTodos",
    "CanViewLocations",
    "CanManageLocations",
    "CanViewDashboard",
    "CanViewReports",
    "CanUseChat",
]

ASSIGNABLE_ROLES = (ADMIN_ROLE_NAME, MANAGER_ROLE_NAME, USER_ROLE_NAME)
PROTECTED_ROLES = (ADMIN_ROLE_NAME, USER_ROLE_NAME)
MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Invalid email or password"


def _is_expired(user: User) -> bool:
    expires_at = user.refresh_token_expires_at
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= utcnow()


def _check_new_password(new_password: str, confirm_password: str) -> None:
    if new_password != confirm_password:
        raise BusinessRuleError("New password and confirmation do not match.")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise BusinessRuleError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")


class AuthService(BaseService):
    """Login, token refresh and password flows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SecurityRepository(session)

    # PUBLIC_INTERFACE
    async def login(self, email: str, password: str) -> AuthResponse:
        """Authenticate by email/password and issue an access + refresh token pair."""
        user = await self.repo.get_user_by_email(email)
        if not user or not user.is_active or not verify_password(password, user.hashed_password):
            logger.info("Login failed for email=%s", email)
            raise AuthenticationError(INVALID_CREDENTIALS)
        response = await self._issue_tokens(user)
        logger.info("User logged in: id=%s", user.id)
        return response

    # PUBLIC_INTERFACE
    async def refresh(self, refresh_token: str) -> AuthResponse:
        """Exchange a stored refresh token for a new token pair (the refresh token rotates)."""
        user = await self.repo.get_user_by_refresh_token(refresh_token)
        if not user or not user.is_active or _is_expired(user):
            raise AuthenticationError("Invalid or expired refresh token")
        return await self._issue_tokens(user)

    # PUBLIC_INTERFACE
    async def logout(self, user: User) -> None:
        user.refresh_token = None
        user.refresh_token_expires_at = None
        await self.commit()

    # PUBLIC_INTERFACE
    async def me(self, user: User) -> UserInfo:
        return await self._user_info(user)

    # PUBLIC_INTERFACE
    async def change_password(self, user: User, payload: ChangePasswordRequest) -> None:
        if not verify_password(payload.current_password, user.hashed_password):
            raise AuthenticationError("Current password is incorrect.")
        _check_new_password(payload.new_password, payload.confirm_password)
        user.hashed_password = get_password_hash(payload.new_password)
        user.must_change_password = False
        user.updated_at = utcnow()
        await self.commit()
        logger.info("Password changed: user=%s", user.id)

    # PUBLIC_INTERFACE
    async def force_change_password(self, user: User, payload: ForceChangePasswordRequest) -> None:
        """Set a new password without the current one (first-login flow)."""
        _check_new_password(payload.new_password, payload.confirm_password)
        user.hashed_password = get_password_hash(payload.new_password)
        user.must_change_password = False
        user.updated_at = utcnow()
        await self.commit()
        logger.info("Password force-changed: user=%s", user.id)

    async def _user_info(self, user: User) -> UserInfo:
        roles = [r.name for r in await self.repo.list_roles_for_user(user.id)]
        return UserInfo(
            id=user.id,
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=roles,
            must_change_password=user.must_change_password,
        )

    async def _issue_tokens(self, user: User) -> AuthResponse:
        info = await self._user_info(user)
        permissions = sorted(await self.repo.list_permission_codes_for_user(user.id))
        access_token, expires_at = create_access_token(
            subject=str(user.id), email=user.email, roles=info.roles, permissions=permissions
        )
        refresh_token, refresh_expires_at = create_refresh_token()
        user.refresh_token = refresh_token
        user.refresh_token_expires_at = refresh_expires_at
        await self.commit()
        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_at=expires_at,
            user=info,
        )


class UserAdminService(BaseService):
    """User administration: listing, create/update/delete and direct claims."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SecurityRepository(session)

    # PUBLIC_INTERFACE
    async def list_users(self, limit: int = 100, offset: int = 0) -> List[UserRead]:
        users = await self.repo.list_users(limit=limit, offset=offset)
        ids = [u.id for u in users]
        roles = await self.repo.role_names_by_user(ids)
        claims = await self.repo.user_claims_by_user(ids)
        return [
            self._to_read(u, roles.get(u.id, []), [f"{c.claim_type}:{c.claim_value}" for c in claims.get(u.id, [])])
            for u in users
        ]

    # PUBLIC_INTERFACE
    async def get_user(self, user_id: int) -> UserRead:
        user = await self._get_or_404(user_id)
        return await self._read(user)

    # PUBLIC_INTERFACE
    async def create_user(self, payload: UserCreate) -> UserRead:
        """
        Create a user with exactly one role (Admin, Manager or User; anything else becomes User).
        """
        email = str(payload.email).strip()
        if await self.repo.get_user_by_email(email):
            raise BusinessRuleError(f"A user with email '{email}' already exists.")

        role_name = payload.role if payload.role in ASSIGNABLE_ROLES else USER_ROLE_NAME
        role = await self._ensure_role(role_name)

        user = await self.repo.create_user(
            email=email,
            username=(payload.username or "").strip() or email,
            hashed_password=get_password_hash(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            must_change_password=payload.must_change_password,
        )
        await self.repo.set_user_role(user.id, role.id)
        await self.commit()
        logger.info("User created: id=%s role=%s", user.id, role.name)

        result = await self._read(user)
        await self._publish("user.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_user(self, user_id: int, payload: UserUpdate) -> UserRead:
        user = await self._get_or_404(user_id)

        if payload.first_name:
            user.first_name = payload.first_name
        if payload.last_name:
            user.last_name = payload.last_name
        if payload.email:
            email = str(payload.email).strip()
            if email.lower() != user.email.lower():
                existing = await self.repo.get_user_by_email(email)
                if existing and existing.id != user.id:
                    raise BusinessRuleError(f"A user with email '{email}' already exists.")
            user.email = email
            user.username = email
        if payload.is_active is not None:
            user.is_active = payload.is_active
        if payload.role and payload.role in ASSIGNABLE_ROLES:
            role = await self._ensure_role(payload.role)
            await self.repo.set_user_role(user.id, role.id)
        user.updated_at = utcnow()
        await self.commit()

        result = await self._read(user)
        await self._publish("user.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_user(self, user_id: int) -> None:
        user = await self._get_or_404(user_id)
        await self.repo.delete(user)
        await self.commit()
        logger.info("User deleted: id=%s", user_id)
        await self._publish("user.deleted", {"id": user_id})

    # PUBLIC_INTERFACE
    async def assign_claim(self, user_id: int, claim: ClaimItem) -> UserRead:
        user = await self._get_or_404(user_id)
        await self.repo.add_user_claim(user.id, claim.type, claim.value)
        await self.commit()
        result = await self._read(user)
        await self._publish("user.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def remove_claim(self, user_id: int, claim_type: str) -> UserRead:
        user = await self._get_or_404(user_id)
        removed = await self.repo.remove_user_claims(user.id, claim_type)
        if not removed:
            raise NotFoundError(f"Claim '{claim_type}' not found for user.")
        await self.commit()
        result = await self._read(user)
        await self._publish("user.updated", result.model_dump(mode="json"))
        return result

    async def _get_or_404(self, user_id: int) -> User:
        user = await self.repo.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _ensure_role(self, name: str) -> Role:
        role = await self.repo.get_role_by_name(name)
        if role is None:
            role = await self.repo.create_role(name)
        return role

    async def _read(self, user: User) -> UserRead:
        roles = [r.name for r in await self.repo.list_roles_for_user(user.id)]
        claims = [f"{c.claim_type}:{c.claim_value}" for c in await self.repo.list_user_claims(user.id)]
        return self._to_read(user, roles, claims)

    @staticmethod
    def _to_read(user: User, roles: List[str], claims: List[str]) -> UserRead:
        return UserRead(
            id=user.id,
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=user.is_active,
            must_change_password=user.must_change_password,
            created_at=user.created_at,
            roles=roles,
            claims=claims,
        )


class RoleService(BaseService):
    """
    Role administration.

    Admin always holds every permission and can be neither renamed nor edited.
    User cannot be renamed but its claims can be replaced. Admin and User cannot
    be deleted.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SecurityRepository(session)

    # PUBLIC_INTERFACE
    async def list_roles(self) -> List[RoleRead]:
        roles = await self.repo.list_roles(limit=1000)
        claims = await self.repo.role_claims_by_role([r.id for r in roles])
        return [
            RoleRead(
                id=r.id,
                name=r.name,
                claims=[ClaimItem(type=c.claim_type, value=c.claim_value) for c in claims.get(r.id, [])],
            )
            for r in roles
        ]

    # PUBLIC_INTERFACE
    async def get_role(self, role_id: int) -> RoleRead:
        return await self._read(await self._get_or_404(role_id))

    # PUBLIC_INTERFACE
    async def create_role(self, payload: RoleCreate) -> RoleRead:
        name = payload.name.strip()
        if await self.repo.get_role_by_name(name):
            raise BusinessRuleError(f"Role '{name}' already exists")
        role = await self.repo.create_role(name)
        await self._attach_claims(role, payload.claims)
        await self.commit()
        logger.info("Role created: id=%s name=%s", role.id, role.name)

        result = await self._read(role)
        await self._publish("role.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_role(self, role_id: int, payload: RoleUpdate) -> RoleRead:
        role = await self._get_or_404(role_id)
        new_name = (payload.name or "").strip()

        if role.name == ADMIN_ROLE_NAME:
            if new_name and new_name != role.name:
                raise BusinessRuleError("Admin role name cannot be changed")
            if payload.claims is not None:
                raise BusinessRuleError("Admin role permissions cannot be edited; Admin holds every permission.")
            await self.ensure_admin_has_all_permissions()
        elif role.name == USER_ROLE_NAME:
            if new_name and new_name != role.name:
                raise BusinessRuleError("User role name cannot be changed")
            if payload.claims is not None:
                await self.repo.clear_role_claims(role.id)
                await self._attach_claims(role, payload.claims)
        else:
            if new_name and new_name != role.name:
                existing = await self.repo.get_role_by_name(new_name)
                if existing and existing.id != role.id:
                    raise BusinessRuleError(f"Role '{new_name}' already exists")
                role.name = new_name
            if payload.claims is not None:
                await self.repo.clear_role_claims(role.id)
                await self._attach_claims(role, payload.claims)

        role.updated_at = utcnow()
        await self.commit()

        result = await self._read(role)
        await self._publish("role.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_role(self, role_id: int) -> None:
        """Delete a role; its members fall back to the User role."""
        role = await self._get_or_404(role_id)
        if role.name in PROTECTED_ROLES:
            raise BusinessRuleError(f"Role '{role.name}' cannot be deleted")
        default_role = await self.repo.get_role_by_name(USER_ROLE_NAME)
        if default_role is None:
            raise BusinessRuleError("Default 'User' role not found")

        for user_id in await self.repo.list_user_ids_in_role(role.id):
            await self.repo.set_user_role(user_id, default_role.id)
        await self.repo.clear_role_claims(role.id)
        await self.repo.delete(role)
        await self.commit()
        logger.info("Role deleted: id=%s name=%s", role_id, role.name)
        await self._publish("role.deleted", {"id": role_id})

    # PUBLIC_INTERFACE
    async def ensure_admin_has_all_permissions(self) -> None:
        """Grant every catalogued permission to Admin (no-op when Admin does not exist)."""
        admin = await self.repo.get_role_by_name(ADMIN_ROLE_NAME)
        if admin is None:
            return
        for code in ALL_PERMISSIONS:
            await self.repo.add_role_claim(admin.id, PERMISSION_CLAIM_TYPE, code)

    async def _attach_claims(self, role: Role, claims: List[ClaimItem]) -> None:
        admin = await self.repo.get_role_by_name(ADMIN_ROLE_NAME)
        for claim in claims:
            await self.repo.add_role_claim(role.id, claim.type, claim.value)
            if claim.type == PERMISSION_CLAIM_TYPE and admin is not None and admin.id != role.id:
                await self.repo.add_role_claim(admin.id, PERMISSION_CLAIM_TYPE, claim.value)

    async def _get_or_404(self, role_id: int) -> Role:
        role = await self.repo.get_role_by_id(role_id)
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def _read(self, role: Role) -> RoleRead:
        claims = await self.repo.list_role_claims(role.id)
        return RoleRead(
            id=role.id,
            name=role.name,
            claims=[ClaimItem(type=c.claim_type, value=c.claim_value) for c in claims],
        )


# PUBLIC_INTERFACE
def list_permissions() -> List[str]:
    """Return the permission catalogue."""
    return list(ALL_PERMISSIONS)
