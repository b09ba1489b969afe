from typing import Any
from uuid import UUID, uuid4

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from aidfusion.core.core import Service
from aidfusion.core.db import retry_read, storage_errors
from aidfusion.core.modules.two_factor.models import (
    TwoFactorEnrollment,
    TwoFactorMethod,
    TwoFactorStatus,
    TwoFactorStatusView,
)
from aidfusion.core.modules.two_factor.totp import (
    EnrollmentMaterial,
    begin_enrollment,
    consume_backup_code,
    hash_backup_code,
    is_totp_code,
    verify_backup_code,
    verify_code,
)
from aidfusion.core.modules.user.models import User
from aidfusion.errors import NotFoundError, ValidationError
from aidfusion.utils import now

logger = structlog.get_logger(__name__)


class TwoFactorService(Service):
    """TOTP enrollment, confirmation, and second-factor checks at login.

    State machine: UNSTARTED -> AWAITING_VERIFICATION -> ENABLED.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("two_factor")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        with storage_errors("two_factor.create_index"):
            # One enrollment per user
            await self._collection.create_index([("user_id", 1)], unique=True)

    async def get_enrollment(self, user_id: UUID) -> TwoFactorEnrollment | None:
        doc = await retry_read(
            "two_factor.find",
            lambda: self._collection.find_one({"user_id": user_id}),
            self.core.config.read_retry_attempts,
        )
        return TwoFactorEnrollment.model_validate(doc) if doc is not None else None

    async def get_status(self, user_id: UUID) -> TwoFactorStatusView:
        enrollment = await self.get_enrollment(user_id)
        if enrollment is None:
            return TwoFactorStatusView(status=TwoFactorStatus.UNSTARTED, method=TwoFactorMethod.NONE, backup_codes_remaining=0)
        return TwoFactorStatusView(
            status=enrollment.status,
            method=enrollment.method,
            backup_codes_remaining=len(enrollment.backup_code_hashes) if enrollment.verified else 0,
        )

    async def begin_setup(self, user: User) -> EnrollmentMaterial:
        """Mint a secret and backup codes and store them as a pending enrollment.

        A previous pending enrollment is overwritten. Fails once 2FA is enabled.
        """
        config = self.core.config
        material = begin_enrollment(user.email, config.totp_issuer, config.backup_code_count)

        # The filter only matches a pending enrollment; an enabled one makes the
        # upsert collide with the unique user_id index.
        try:
            await self._store_pending(user.id, material)
        except DuplicateKeyError as e:
            # A concurrent first-time setup may have inserted the pending document
            # between our filter miss and our insert; that one can be overwritten.
            enrollment = await self.get_enrollment(user.id)
            if enrollment is not None and enrollment.verified:
                raise ValidationError("Two-factor authentication is already enabled.") from e
            logger.info("two_factor_setup_raced", user_id=str(user.id))
            try:
                await self._store_pending(user.id, material)
            except DuplicateKeyError as retry_error:
                raise ValidationError("Two-factor authentication is already enabled.") from retry_error

        logger.info("two_factor_setup_started", user_id=str(user.id))
        return material

    async def _store_pending(self, user_id: UUID, material: EnrollmentMaterial) -> None:
        with storage_errors("two_factor.begin"):
            await self._collection.update_one(
                {"user_id": user_id, "verified": False},
                {
                    "$set": {
                        "secret": material.secret,
                        "backup_code_hashes": [hash_backup_code(code) for code in material.backup_codes],
                        "method": TwoFactorMethod.NONE,
                        "created_at": now(),
                        "verified_at": None,
                    },
                    "$setOnInsert": {"_id": uuid4()},
                },
                upsert=True,
            )

    async def confirm_setup(self, user_id: UUID, code: str) -> None:
        """Enable 2FA once a code from the stored pending secret checks out."""
        enrollment = await self.get_enrollment(user_id)
        if enrollment is None:
            raise NotFoundError("Two-factor setup has not been started.")
        if enrollment.verified:
            raise ValidationError("Two-factor authentication is already enabled.")
        if not verify_code(enrollment.secret, code, self.core.config.totp_window):
            logger.info("two_factor_confirm_failed", user_id=str(user_id))
            raise ValidationError("Invalid verification code.")

        # Conditioned on the secret so a concurrent restart of setup is not enabled by accident
        with storage_errors("two_factor.confirm"):
            result = await self._collection.update_one(
                {"_id": enrollment.id, "verified": False, "secret": enrollment.secret},
                {"$set": {"verified": True, "method": TwoFactorMethod.TOTP, "verified_at": now()}},
            )
        if result.matched_count == 0:
            raise ValidationError("Two-factor setup changed, please start again.")
        logger.info("two_factor_enabled", user_id=str(user_id))

    async def verify_second_factor(self, enrollment: TwoFactorEnrollment, code: str) -> bool:
        """Check a login-time code: 6 digits go to TOTP, anything else is tried as a backup code."""
        if is_totp_code(code):
            return verify_code(enrollment.secret, code, self.core.config.totp_window)
        if not verify_backup_code(code, enrollment.backup_code_hashes):
            return False
        return await self.redeem_backup_code(enrollment.user_id, code)

    async def redeem_backup_code(self, user_id: UUID, code: str) -> bool:
        """Atomically remove a backup code; False if it was not (or no longer) present.

        Two concurrent redemptions of the same code cannot both succeed: only
        one update matches the document while the hash is still in the array.
        """
        code_hash = hash_backup_code(code)
        with storage_errors("two_factor.redeem_backup_code"):
            before = await self._collection.find_one_and_update(
                {"user_id": user_id, "verified": True, "backup_code_hashes": code_hash},
                {"$pull": {"backup_code_hashes": code_hash}},
                return_document=ReturnDocument.BEFORE,
            )
        if before is None:
            logger.info("backup_code_rejected", user_id=str(user_id))
            return False

        remaining = consume_backup_code(code, before["backup_code_hashes"])
        logger.info("backup_code_redeemed", user_id=str(user_id), remaining=len(remaining))
        return True
