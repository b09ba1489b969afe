from fastapi import APIRouter
from pydantic import BaseModel, Field

from aidfusion.core.modules.two_factor.models import TwoFactorSetupView, TwoFactorStatusView
from aidfusion.web.deps import AppDep, SessionDep
from aidfusion.web.openapi import ErrorResponse

router = APIRouter(tags=["two-factor"])


class VerifyTwoFactorRequest(BaseModel):
    """Confirmation code from the authenticator app."""

    code: str = Field(..., description="Current 6-digit TOTP code")


class VerifyTwoFactorResponse(BaseModel):
    enabled: bool = Field(..., description="Whether 2FA is now enabled")


@router.get(
    "/auth/2fa/setup",
    summary="Start two-factor setup",
    description=(
        "Generate a TOTP secret, QR code and backup codes for the current user. "
        "The secret is stored as pending until confirmed; backup codes are shown only in this response."
    ),
    operation_id="beginTwoFactorSetup",
    responses={
        200: {"description": "Setup material"},
        400: {"model": ErrorResponse, "description": "Two-factor authentication already enabled"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def begin_setup(app: AppDep, claims: SessionDep) -> TwoFactorSetupView:
    return await app.begin_two_factor_setup(claims)


@router.post(
    "/auth/2fa/verify",
    summary="Confirm two-factor setup",
    description="Enable two-factor authentication by submitting a code generated from the pending secret.",
    operation_id="verifyTwoFactorSetup",
    responses={
        200: {"description": "Two-factor authentication enabled"},
        400: {"model": ErrorResponse, "description": "Invalid code or already enabled"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Setup not started"},
    },
)
async def verify_setup(request: VerifyTwoFactorRequest, app: AppDep, claims: SessionDep) -> VerifyTwoFactorResponse:
    await app.confirm_two_factor_setup(claims, request.code)
    return VerifyTwoFactorResponse(enabled=True)


@router.get(
    "/auth/2fa/status",
    summary="Get two-factor status",
    description="Enrollment state of the current user and the number of unused backup codes.",
    operation_id="getTwoFactorStatus",
    responses={
        200: {"description": "Enrollment state"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_status(app: AppDep, claims: SessionDep) -> TwoFactorStatusView:
    return await app.get_two_factor_status(claims)
