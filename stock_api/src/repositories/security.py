from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, func, select

from src.db.models.security import PERMISSION_CLAIM_TYPE, Role, RoleClaim, User, UserClaim, UserRole
from .base import BaseRepository

ADMIN_ROLE_NAME = "Admin"
MANAGER_ROLE_NAME = "Manager"
USER_ROLE_NAME = "User"


class SecurityRepository(BaseRepository):
    """Repository for users, roles and claims."""

    # Users
    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_refresh_token(self, refresh_token: str) -> Optional[User]:
        stmt = select(User).where(User.refresh_token == refresh_token)
        return await self.scalar_one_or_none(stmt)

    async def count_users(self) -> int:
        return await self.scalar_int(select(func.count(User.id)))

    async def list_users(self, limit: int = 100, offset: int = 0) -> List[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit)
        result = await self.scalars(stmt)
        return list(result)

    async def create_user(
        self,
        *,
        email: str,
        username: str,
        hashed_password: str,
        first_name: str = "",
        last_name: str = "",
        is_active: bool = True,
        must_change_password: bool = False,
    ) -> User:
        user = User(
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            hashed_password=hashed_password,
            is_active=is_active,
            must_change_password=must_change_password,
        )
        await self.add(user)
        await self.flush()
        return user

    # Role membership
    async def list_roles_for_user(self, user_id: int) -> List[Role]:
        stmt = (
            select(Role)
            .join(UserRole, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id)
        )
        result = await self.scalars(stmt)
        return list(result)

    async def role_names_by_user(self, user_ids: Iterable[int]) -> Dict[int, List[str]]:
        ids = list(user_ids)
        out: Dict[int, List[str]] = {uid: [] for uid in ids}
        if not ids:
            return out
        stmt = (
            select(UserRole.user_id, Role.name)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id.in_(ids))
        )
        res = await self.execute(stmt)
        for user_id, name in res.all():
            out.setdefault(user_id, []).append(name)
        return out

    async def set_user_role(self, user_id: int, role_id: int) -> None:
        """Replace whatever role the user holds with the given one."""
        await self.execute(delete(UserRole).where(UserRole.user_id == user_id))
        await self.add(UserRole(user_id=user_id, role_id=role_id))
        await self.flush()

    async def list_user_ids_in_role(self, role_id: int) -> List[int]:
        res = await self.scalars(select(UserRole.user_id).where(UserRole.role_id == role_id))
        return list(res)

    # Roles
    async def list_roles(self, limit: int = 100, offset: int = 0) -> List[Role]:
        stmt = select(Role).order_by(Role.name).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def get_role_by_id(self, role_id: int) -> Optional[Role]:
        stmt = select(Role).where(Role.id == role_id)
        return await self.scalar_one_or_none(stmt)

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        stmt = select(Role).where(func.lower(Role.name) == name.strip().lower())
        return await self.scalar_one_or_none(stmt)

    async def create_role(self, name: str) -> Role:
        role = Role(name=name)
        await self.add(role)
        await self.flush()
        return role

    # Claims
    async def list_role_claims(self, role_id: int) -> List[RoleClaim]:
        stmt = select(RoleClaim).where(RoleClaim.role_id == role_id).order_by(RoleClaim.id)
        res = await self.scalars(stmt)
        return list(res)

    async def role_claims_by_role(self, role_ids: Iterable[int]) -> Dict[int, List[RoleClaim]]:
        ids = list(role_ids)
        out: Dict[int, List[RoleClaim]] = {rid: [] for rid in ids}
        if not ids:
            return out
        stmt = select(RoleClaim).where(RoleClaim.role_id.in_(ids)).order_by(RoleClaim.id)
        for claim in await self.scalars(stmt):
            out.setdefault(claim.role_id, []).append(claim)
        return out

    async def add_role_claim(self, role_id: int, claim_type: str, claim_value: str) -> bool:
        """Attach a claim to a role unless it already exists. Returns True when added."""
        stmt = select(RoleClaim.id).where(
            RoleClaim.role_id == role_id,
            RoleClaim.claim_type == claim_type,
            RoleClaim.claim_value == claim_value,
        )
        if await self.scalar_one_or_none(stmt) is not None:
            return False
        await self.add(RoleClaim(role_id=role_id, claim_type=claim_type, claim_value=claim_value))
        await self.flush()
        return True

    async def clear_role_claims(self, role_id: int) -> None:
        await self.execute(delete(RoleClaim).where(RoleClaim.role_id == role_id))

    async def list_user_claims(self, user_id: int) -> List[UserClaim]:
        stmt = select(UserClaim).where(UserClaim.user_id == user_id).order_by(UserClaim.id)
        res = await self.scalars(stmt)
        return list(res)

    async def user_claims_by_user(self, user_ids: Iterable[int]) -> Dict[int, List[UserClaim]]:
        ids = list(user_ids)
        out: Dict[int, List[UserClaim]] = {uid: [] for uid in ids}
        if not ids:
            return out
        stmt = select(UserClaim).where(UserClaim.user_id.in_(ids)).order_by(UserClaim.id)
        for claim in await self.scalars(stmt):
            out.setdefault(claim.user_id, []).append(claim)
        return out

    async def add_user_claim(self, user_id: int, claim_type: str, claim_value: str) -> UserClaim:
        claim = UserClaim(user_id=user_id, claim_type=claim_type, claim_value=claim_value)
        await self.add(claim)
        await self.flush()
        return claim

    async def remove_user_claims(self, user_id: int, claim_type: str) -> int:
        """Delete every claim of the given type held by the user. Returns the number removed."""
        claims = [c for c in await self.list_user_claims(user_id) if c.claim_type == claim_type]
        for claim in claims:
            await self.delete(claim)
        return len(claims)

    async def list_permission_codes_for_user(self, user_id: int) -> Set[str]:
        """Permission claim values granted via the user's role(s) and directly to the user."""
        role_stmt = (
            select(RoleClaim.claim_value)
            .join(UserRole, UserRole.role_id == RoleClaim.role_id)
            .where(UserRole.user_id == user_id, RoleClaim.claim_type == PERMISSION_CLAIM_TYPE)
        )
        user_stmt = select(UserClaim.claim_value).where(
            UserClaim.user_id == user_id, UserClaim.claim_type == PERMISSION_CLAIM_TYPE
        )
        codes = set(await self.scalars(role_stmt))
        codes.update(await self.scalars(user_stmt))
        return codes
