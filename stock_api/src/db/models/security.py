from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntPkMixin, TimestampMixin

# Claim type used for permission grants on roles and users.
PERMISSION_CLAIM_TYPE = "Permission"


class User(IntPkMixin, TimestampMixin, Base):
    """Application user; authenticates by email and holds exactly one role."""
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(256), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="", server_default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="", server_default="")
    hashed_password: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    must_change_password: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    refresh_token_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Role(IntPkMixin, TimestampMixin, Base):
    """Named role; groups permission claims."""
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class UserRole(IntPkMixin, TimestampMixin, Base):
    """Association of a user to their single role."""
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_roles_user"),
    )

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)


class RoleClaim(IntPkMixin, TimestampMixin, Base):
    """Claim (type/value pair) attached to a role, e.g. Permission=CanViewProducts."""
    __tablename__ = "role_claims"
    __table_args__ = (
        UniqueConstraint("role_id", "claim_type", "claim_value", name="uq_role_claims_role_type_value"),
    )

    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    claim_type: Mapped[str] = mapped_column(String(100), nullable=False)
    claim_value: Mapped[str] = mapped_column(String(200), nullable=False)


class UserClaim(IntPkMixin, TimestampMixin, Base):
    """Claim granted directly to a user."""
    __tablename__ = "user_claims"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    claim_type: Mapped[str] = mapped_column(String(100), nullable=False)
    claim_value: Mapped[str] = mapped_column(String(200), nullable=False)
