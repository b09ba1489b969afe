from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from aidfusion.core.modules.user.models import UserView
from aidfusion.web.deps import AppDep, SessionDep
from aidfusion.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class SignupRequest(BaseModel):
    """Registration request."""

    email: str = Field(..., description="Email address, case-insensitive")
    password: str = Field(..., description="Password, at least 6 characters")


class LoginRequest(BaseModel):
    """Authentication request."""

    email: str = Field(..., description="Registered email address")
    password: str = Field(..., description="Password for authentication")
    code: str | None = Field(None, description="TOTP or backup code, required once 2FA is enabled")


class AuthResponse(BaseModel):
    """Authenticated user plus the session token (also set as a cookie)."""

    user: UserView = Field(..., description="Authenticated user")
    token: str = Field(..., description="Session token for the Authorization header")


class CurrentUserResponse(BaseModel):
    user: UserView | None = Field(..., description="Current user, null when anonymous")


@router.post(
    "/auth/signup",
    summary="Register",
    description="Create an account with role 'user' and start a session.",
    operation_id="signup",
    responses={
        200: {"description": "Account created and session started"},
        400: {"model": ErrorResponse, "description": "Invalid email or password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def signup(signup_data: SignupRequest, app: AppDep, response: Response) -> AuthResponse:
    user, token = await app.signup(signup_data.email, signup_data.password)
    response.set_cookie(**app.session_cookie(token))
    return AuthResponse(user=user, token=token)


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with email and password (and a second factor when enabled) to start a session.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials or second factor required"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, response: Response) -> AuthResponse:
    """Authenticate user and create session."""
    user, token = await app.login(login_data.email, login_data.password, login_data.code)
    response.set_cookie(**app.session_cookie(token))
    return AuthResponse(user=user, token=token)


@router.post(
    "/auth/logout",
    summary="End session",
    description=(
        "Tell the client to discard its session cookie. Sessions are stateless, "
        "so a copy of the token kept elsewhere stays valid until it expires."
    ),
    operation_id="logout",
    status_code=204,
    responses={204: {"description": "Cookie cleared"}},
)
async def logout(app: AppDep, response: Response) -> None:
    response.set_cookie(**app.expired_session_cookie())


@router.get(
    "/auth/me",
    summary="Get current user",
    description="Return the user behind the current session, or null for anonymous requests.",
    operation_id="getCurrentUser",
    responses={200: {"description": "Current user or null"}},
)
async def me(app: AppDep, claims: SessionDep) -> CurrentUserResponse:
    return CurrentUserResponse(user=await app.get_current_user(claims))
