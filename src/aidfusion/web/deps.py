from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer

from aidfusion.app import App
from aidfusion.core.modules.session.models import SESSION_COOKIE_NAME, SessionClaims

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)
cookie_scheme = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_session_claims(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    token_cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> SessionClaims | None:
    """Parse the session from Authorization Bearer header or cookie. None means anonymous."""

    # Check Bearer token first (preferred)
    if credentials and credentials.scheme.lower() == "bearer":
        claims = app.parse_session(credentials.credentials)
        if claims is not None:
            return claims

    # Fallback to cookie
    return app.parse_session(token_cookie)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
SessionDep = Annotated[SessionClaims | None, Depends(get_session_claims)]
