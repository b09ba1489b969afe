from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from aidfusion.core.db import MongoModel
from aidfusion.utils import now


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"


class User(MongoModel):
    """Registered identity with credentials.

    Indexed on email - unique.
    """

    email: str  # trimmed and lower-cased
    password_hash: str  # bcrypt hash
    role: Role = Role.USER
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="Normalized email address")
    role: Role = Field(..., description="User role")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, email=user.email, role=user.role)


class AdminUserView(UserView):
    """User account information as listed in the admin console."""

    created_at: datetime = Field(..., description="Registration time")
    updated_at: datetime = Field(..., description="Last role change or registration time")

    @classmethod
    def from_domain(cls, user: User) -> "AdminUserView":
        return cls(id=user.id, email=user.email, role=user.role, created_at=user.created_at, updated_at=user.updated_at)
