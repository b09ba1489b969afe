import asyncio
from collections.abc import Callable
from typing import Any, TypeVar
from uuid import UUID

import bcrypt
import structlog
from pymongo import DESCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from aidfusion.core.core import Service
from aidfusion.core.db import retry_read, storage_errors
from aidfusion.core.modules.user.models import Role, User
from aidfusion.core.modules.user.validators import MAX_PASSWORD_BYTES, validate_email, validate_password
from aidfusion.errors import ConflictError, InvalidCredentialsError, NotFoundError, UnavailableError
from aidfusion.utils import normalize_email, now

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class UserService(Service):
    """Credential store: registration, password verification and role updates."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")
        self._dummy_hash: bytes | None = None

    async def register(self, email: str, password: str) -> User:
        """Create a user with role 'user'. Email uniqueness is enforced by the unique index."""
        email = normalize_email(email)
        validate_email(email)
        validate_password(password)
        user = await self._insert_user(email, password, Role.USER)
        logger.info("user_registered", user_id=str(user.id))
        return user

    async def verify_credentials(self, email: str, password: str) -> User:
        """Return the user for a matching email/password pair.

        Unknown email and wrong password raise the same InvalidCredentialsError.
        """
        email = normalize_email(email)
        with storage_errors("users.find_by_email"):
            doc = await self._collection.find_one({"email": email})

        if doc is None:
            # Burn the same bcrypt cost so response time does not reveal unknown emails
            await self._check_password(password, await self._get_dummy_hash())
            logger.info("login_failed", reason="unknown_email")
            raise InvalidCredentialsError

        user = User.model_validate(doc)
        if not await self._check_password(password, user.password_hash.encode("utf-8")):
            logger.info("login_failed", reason="wrong_password", user_id=str(user.id))
            raise InvalidCredentialsError
        return user

    async def find_user(self, user_id: UUID) -> User | None:
        doc = await retry_read(
            "users.find_by_id",
            lambda: self._collection.find_one({"_id": user_id}),
            self.core.config.read_retry_attempts,
        )
        return User.model_validate(doc) if doc is not None else None

    async def get_user(self, user_id: UUID) -> User:
        """Get user by ID, raise NotFoundError if absent."""
        user = await self.find_user(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    async def list_users(self) -> list[User]:
        """All users, newest first."""
        return await retry_read(
            "users.list",
            lambda: User.list_cursor(self._collection.find().sort("created_at", DESCENDING)),
            self.core.config.read_retry_attempts,
        )

    async def set_role(self, user_id: UUID, role: Role) -> None:
        """Atomically set role and updated_at. Never retried."""
        with storage_errors("users.set_role"):
            result = await self._collection.update_one({"_id": user_id}, {"$set": {"role": role, "updated_at": now()}})
        if result.matched_count == 0:
            raise NotFoundError("User not found.")
        logger.info("role_changed", user_id=str(user_id), role=role)

    async def ensure_admin_user_exists(self) -> None:
        """Create or promote the configured bootstrap admin."""
        config = self.core.config
        if not config.admin_email or not config.admin_password:
            return

        email = normalize_email(config.admin_email)
        with storage_errors("users.find_by_email"):
            doc = await self._collection.find_one({"email": email})

        if doc is None:
            validate_email(email)
            validate_password(config.admin_password)
            try:
                user = await self._insert_user(email, config.admin_password, Role.ADMIN)
            except ConflictError:
                # Another process created it concurrently
                return
            logger.info("admin_user_created", user_id=str(user.id))
        elif doc.get("role") != Role.ADMIN:
            await self.set_role(doc["_id"], Role.ADMIN)

    async def on_start(self) -> None:
        """Initialize indexes and the bootstrap admin."""
        with storage_errors("users.create_index"):
            await self._collection.create_index([("email", 1)], unique=True)
        await self.ensure_admin_user_exists()
        logger.debug("user_service_started")

    async def _insert_user(self, email: str, password: str, role: Role) -> User:
        password_hash = await self._hash_password(password)
        user = User(email=email, password_hash=password_hash, role=role)
        try:
            with storage_errors("users.insert"):
                await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise ConflictError("Email is already registered.") from e
        return user

    async def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.core.config.password_hash_rounds)
        hashed = await self._run_bounded(bcrypt.hashpw, password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    async def _check_password(self, password: str, password_hash: bytes) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        return await self._run_bounded(bcrypt.checkpw, encoded, password_hash)

    async def _get_dummy_hash(self) -> bytes:
        if self._dummy_hash is None:
            salt = bcrypt.gensalt(rounds=self.core.config.password_hash_rounds)
            self._dummy_hash = await self._run_bounded(bcrypt.hashpw, b"aidfusion-placeholder", salt)
        return self._dummy_hash

    async def _run_bounded(self, func: Callable[..., T], *args: Any) -> T:
        """Run a CPU-bound hashing call in a worker thread with a timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.core.config.password_hash_timeout)
        except TimeoutError as e:
            logger.error("password_hash_timeout", timeout=self.core.config.password_hash_timeout)
            raise UnavailableError("Password hashing timed out") from e
