"""TOTP and backup-code primitives.

Pure functions, no storage: enrollment material generation, code
verification, and backup-code matching on hashed code sets.
"""

import base64
import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode
import structlog

logger = structlog.get_logger(__name__)

TOTP_CODE_RE = re.compile(r"^\d{6}$")
SECRET_LENGTH = 32  # base32 characters, 160 bits
DEFAULT_WINDOW = 2
DEFAULT_BACKUP_CODE_COUNT = 8


@dataclass(frozen=True)
class EnrollmentMaterial:
    """Freshly minted 2FA material, shown to the user exactly once."""

    secret: str
    provisioning_uri: str
    qr_code: str  # PNG data URL
    backup_codes: list[str]


def generate_secret() -> str:
    return pyotp.random_base32(length=SECRET_LENGTH)


def build_provisioning_uri(secret: str, label: str, issuer: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=label, issuer_name=issuer)


def render_qr_data_url(uri: str) -> str:
    """Render an otpauth URI as a base64 PNG data URL."""
    buffer = BytesIO()
    qrcode.make(uri).save(buffer)
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def generate_backup_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> list[str]:
    """Distinct codes like ``3F9A-0C7E`` (4 random bytes, upper-case hex)."""
    codes: list[str] = []
    while len(codes) < count:
        raw = secrets.token_hex(4).upper()
        code = f"{raw[:4]}-{raw[4:]}"
        if code not in codes:
            codes.append(code)
    return codes


def account_label(email: str, issuer: str) -> str:
    """Name shown in the authenticator app, e.g. ``AidFusion (a@b.com)``."""
    return f"{issuer} ({email})"


def begin_enrollment(email: str, issuer: str, backup_code_count: int = DEFAULT_BACKUP_CODE_COUNT) -> EnrollmentMaterial:
    secret = generate_secret()
    uri = build_provisioning_uri(secret, account_label(email, issuer), issuer)
    return EnrollmentMaterial(
        secret=secret,
        provisioning_uri=uri,
        qr_code=render_qr_data_url(uri),
        backup_codes=generate_backup_codes(backup_code_count),
    )


def is_totp_code(code: str) -> bool:
    return bool(TOTP_CODE_RE.fullmatch(code.strip()))


def verify_code(secret: str, code: str, window: int = DEFAULT_WINDOW, for_time: int | datetime | None = None) -> bool:
    """Check a 6-digit code against the current 30-second step and ``window`` steps either side."""
    code = code.strip()
    if not TOTP_CODE_RE.fullmatch(code):
        return False
    try:
        return pyotp.TOTP(secret).verify(code, for_time=for_time, valid_window=window)
    except ValueError:
        logger.warning("totp_secret_invalid")
        return False


def canonical_backup_code(code: str) -> str:
    return "".join(code.split()).upper()


def hash_backup_code(code: str) -> str:
    """SHA-256 of the canonical form; only hashes are ever stored."""
    return hashlib.sha256(canonical_backup_code(code).encode("utf-8")).hexdigest()


def verify_backup_code(submitted: str, code_hashes: list[str]) -> bool:
    candidate = hash_backup_code(submitted)
    matches = [hmac.compare_digest(candidate, code_hash) for code_hash in code_hashes]
    return any(matches)


def consume_backup_code(submitted: str, code_hashes: list[str]) -> list[str]:
    """Return the hashes without the submitted code. Unknown codes leave the list unchanged."""
    candidate = hash_backup_code(submitted)
    return [code_hash for code_hash in code_hashes if not hmac.compare_digest(candidate, code_hash)]
