from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from aidfusion.core.db import MongoModel
from aidfusion.utils import now


class TwoFactorMethod(StrEnum):
    TOTP = "totp"
    SMS = "sms"
    NONE = "none"


class TwoFactorStatus(StrEnum):
    UNSTARTED = "unstarted"
    AWAITING_VERIFICATION = "awaiting_verification"
    ENABLED = "enabled"


class TwoFactorEnrollment(MongoModel):
    """A user's 2FA material.

    Indexed on user_id - unique. Backup codes are stored as SHA-256 hashes
    and removed one at a time as they are redeemed.
    """

    user_id: UUID
    secret: str  # base32 TOTP secret
    backup_code_hashes: list[str] = []
    verified: bool = False
    method: TwoFactorMethod = TwoFactorMethod.NONE
    created_at: datetime = Field(default_factory=now)
    verified_at: datetime | None = None

    @property
    def status(self) -> TwoFactorStatus:
        return TwoFactorStatus.ENABLED if self.verified else TwoFactorStatus.AWAITING_VERIFICATION


class TwoFactorSetupView(BaseModel):
    """Material returned once when 2FA setup starts."""

    secret: str = Field(..., description="Base32 TOTP secret for manual entry")
    provisioning_uri: str = Field(..., description="otpauth:// URI encoded in the QR code")
    qr_code: str = Field(..., description="QR code as a PNG data URL")
    backup_codes: list[str] = Field(..., description="Single-use recovery codes, shown only once")


class TwoFactorStatusView(BaseModel):
    status: TwoFactorStatus = Field(..., description="Enrollment state")
    method: TwoFactorMethod = Field(..., description="Active second factor")
    backup_codes_remaining: int = Field(..., description="Unused backup codes", ge=0)
