from uuid import UUID

import structlog

from aidfusion.core.core import Service
from aidfusion.core.modules.session.models import SessionClaims
from aidfusion.core.modules.user.models import Role
from aidfusion.core.modules.user.validators import validate_role
from aidfusion.errors import AccessDeniedError, AuthenticationError, SelfDemotionError

logger = structlog.get_logger(__name__)


class AccessService(Service):
    def ensure_authenticated(self, claims: SessionClaims | None) -> SessionClaims:
        """Ensure the request carries a valid session."""
        if claims is None:
            raise AuthenticationError
        return claims

    def require_role(self, claims: SessionClaims | None, role: Role) -> SessionClaims:
        """Ensure the session exists and holds exactly the required role."""
        claims = self.ensure_authenticated(claims)
        if claims.role != role:
            raise AccessDeniedError(f"{role.capitalize()} privileges required")
        return claims

    def guard_self_demotion(self, acting: SessionClaims, target_id: UUID, new_role: str) -> Role:
        """Validate the requested role and refuse to let an admin drop their own admin role."""
        role = validate_role(new_role)
        if acting.sub == target_id and role != Role.ADMIN:
            logger.warning("self_demotion_blocked", user_id=str(acting.sub))
            raise SelfDemotionError
        return role
