from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import structlog

from aidfusion.config import Config
from aidfusion.core.core import Core
from aidfusion.core.db import MongoPool
from aidfusion.core.modules.session.models import AuthToken, SessionClaims
from aidfusion.core.modules.two_factor.models import TwoFactorSetupView, TwoFactorStatusView
from aidfusion.core.modules.user.models import AdminUserView, Role, User, UserView
from aidfusion.errors import InvalidCredentialsError, TwoFactorRequiredError, ValidationError

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations, validates permissions before delegating to Core."""

    def __init__(self, config: Config, pool: MongoPool) -> None:
        self._core = Core(config, pool)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Sessions ===
    def parse_session(self, token: str | None) -> SessionClaims | None:
        """Parse a session token; None means anonymous."""
        return self._core.services.session.parse(token)

    def session_cookie(self, token: AuthToken) -> dict[str, Any]:
        return self._core.services.session.cookie(token)

    def expired_session_cookie(self) -> dict[str, Any]:
        return self._core.services.session.invalidate()

    async def signup(self, email: str, password: str) -> tuple[UserView, AuthToken]:
        """Register a new user and open a session for them."""
        user = await self._core.services.user.register(email, password)
        return UserView.from_domain(user), self._issue_token(user)

    async def login(self, email: str, password: str, code: str | None = None) -> tuple[UserView, AuthToken]:
        """Authenticate with password, plus a second factor once 2FA is enabled."""
        user = await self._core.services.user.verify_credentials(email, password)

        enrollment = await self._core.services.two_factor.get_enrollment(user.id)
        if enrollment is not None and enrollment.verified:
            if not code:
                raise TwoFactorRequiredError
            if not await self._core.services.two_factor.verify_second_factor(enrollment, code):
                logger.info("login_failed", reason="second_factor", user_id=str(user.id))
                raise InvalidCredentialsError

        logger.info("login_succeeded", user_id=str(user.id))
        return UserView.from_domain(user), self._issue_token(user)

    async def get_current_user(self, claims: SessionClaims | None) -> UserView | None:
        """Current user as stored now (not as recorded in the token), None if anonymous."""
        if claims is None:
            return None
        user = await self._core.services.user.find_user(claims.sub)
        return UserView.from_domain(user) if user is not None else None

    # === Two-factor ===
    async def begin_two_factor_setup(self, claims: SessionClaims | None) -> TwoFactorSetupView:
        """Start TOTP enrollment for the current user (authenticated only)."""
        claims = self._core.services.access.ensure_authenticated(claims)
        user = await self._core.services.user.get_user(claims.sub)
        material = await self._core.services.two_factor.begin_setup(user)
        return TwoFactorSetupView(
            secret=material.secret,
            provisioning_uri=material.provisioning_uri,
            qr_code=material.qr_code,
            backup_codes=material.backup_codes,
        )

    async def confirm_two_factor_setup(self, claims: SessionClaims | None, code: str) -> None:
        """Enable 2FA by checking a code against the stored pending secret (authenticated only)."""
        claims = self._core.services.access.ensure_authenticated(claims)
        await self._core.services.two_factor.confirm_setup(claims.sub, code)

    async def get_two_factor_status(self, claims: SessionClaims | None) -> TwoFactorStatusView:
        claims = self._core.services.access.ensure_authenticated(claims)
        return await self._core.services.two_factor.get_status(claims.sub)

    # === Administration ===
    async def list_users(self, claims: SessionClaims | None) -> list[AdminUserView]:
        """Get all users, newest first (admin only)."""
        self._core.services.access.require_role(claims, Role.ADMIN)
        users = await self._core.services.user.list_users()
        return [AdminUserView.from_domain(user) for user in users]

    async def change_user_role(self, claims: SessionClaims | None, user_id: str, role: str) -> None:
        """Change a user's role (admin only, cannot demote self)."""
        acting = self._core.services.access.require_role(claims, Role.ADMIN)
        target_id = self._parse_user_id(user_id)
        new_role = self._core.services.access.guard_self_demotion(acting, target_id, role)
        await self._core.services.user.set_role(target_id, new_role)

    # === Private helpers ===
    def _issue_token(self, user: User) -> AuthToken:
        return self._core.services.session.issue(user.id, user.email, user.role)

    @staticmethod
    def _parse_user_id(user_id: str) -> UUID:
        """Parse a user id path parameter. Raises ValidationError if malformed."""
        try:
            return UUID(user_id)
        except ValueError as e:
            raise ValidationError("Invalid user id.") from e
