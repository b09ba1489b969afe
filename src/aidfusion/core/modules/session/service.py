from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import jwt
import pydantic
import structlog

from aidfusion.core.core import Service
from aidfusion.core.modules.session.models import SESSION_COOKIE_NAME, AuthToken, SessionClaims
from aidfusion.core.modules.user.models import Role
from aidfusion.utils import now

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"


class SessionService(Service):
    """Mints and parses stateless signed session tokens."""

    def issue(self, subject: UUID, email: str, role: Role, issued_at: datetime | None = None) -> AuthToken:
        """Sign a token for the given identity, valid for ``session_max_age`` seconds."""
        issued_at = issued_at or now()
        payload = {
            "sub": str(subject),
            "email": email,
            "role": role.value,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.core.config.session_max_age),
        }
        return AuthToken(jwt.encode(payload, self.core.config.session_secret_key, algorithm=ALGORITHM))

    def parse(self, token: str | None) -> SessionClaims | None:
        """Return claims for a valid token, None for missing, tampered, or expired ones."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.core.config.session_secret_key,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.InvalidTokenError as e:
            logger.debug("session_token_rejected", reason=type(e).__name__)
            return None

        try:
            return SessionClaims.model_validate(payload)
        except pydantic.ValidationError:
            logger.warning("session_token_invalid_claims")
            return None

    def cookie(self, token: AuthToken) -> dict[str, Any]:
        """Keyword arguments for ``Response.set_cookie`` carrying a fresh token."""
        return {
            "key": SESSION_COOKIE_NAME,
            "value": token,
            "max_age": self.core.config.session_max_age,
            "path": "/",
            "httponly": True,
            "samesite": "lax",
            "secure": self.core.config.cookie_secure,
        }

    def invalidate(self) -> dict[str, Any]:
        """Cookie arguments telling the client to drop its token.

        Advisory only: a copy of the token kept elsewhere remains valid until it expires.
        """
        return {
            "key": SESSION_COOKIE_NAME,
            "value": "",
            "max_age": 0,
            "path": "/",
            "httponly": True,
            "samesite": "lax",
            "secure": self.core.config.cookie_secure,
        }
