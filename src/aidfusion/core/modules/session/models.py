"""Session token models."""

from datetime import datetime
from typing import NewType
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from aidfusion.core.modules.user.models import Role

AuthToken = NewType("AuthToken", str)

SESSION_COOKIE_NAME = "aidfusion_token"


class SessionClaims(BaseModel):
    """Claims carried by a signed session token.

    The token is the only record of a session: nothing is stored server-side,
    so a token stays valid until ``exp`` even after logout.
    """

    sub: UUID
    email: str
    role: Role
    iat: datetime
    exp: datetime

    model_config = ConfigDict(frozen=True)
