"""Auth service — registration, login, token rotation, and profile changes.

Learn: This is the CORE of the platform. The SessionManager is the only
component with real state transitions, and all of them live in the store:

  anonymous ──register/login──▶ live refresh token
  live ──refresh──▶ (row deleted) ──▶ new live refresh token
  live ──logout / expiry──▶ gone

The single-use rule for refresh tokens is enforced by ordering:
the redeemed row is deleted BEFORE its successor is stored, and the
delete reports whether it actually removed anything. Two concurrent
redemptions of one token race on that delete; only one can win.

Access tokens are verified by signature and expiry only — they never
touch the store and cannot be revoked inside their 15-minute window.

Every operation maps store and hashing failures to InternalError at its
own boundary. No raw SQLAlchemy or bcrypt exception reaches the API layer.
"""

import asyncio
import re
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from pocketbook.auth.identity import AuthContext
from pocketbook.auth.jwt import (
    InvalidSignatureError,
    TokenCodec,
    TokenError,
    TokenExpiredError,
    TokenKind,
)
from pocketbook.auth.password import PasswordHasher
from pocketbook.errors import (
    DuplicateEmail,
    InternalError,
    InvalidCredentials,
    InvalidCurrentPassword,
    InvalidOrExpiredToken,
    InvalidToken,
    NotFound,
    PocketbookError,
    Unauthorized,
    ValidationError,
)
from pocketbook.store.base import ConstraintViolation, CredentialStore, UserRecord

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


# ═══════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class UserProfile:
    """The outward view of a user — never includes the password hash."""

    id: uuid.UUID
    email: str
    display_name: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    user: UserProfile
    tokens: TokenPair


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class SessionManager:
    """Orchestrates the user / refresh-token lifecycle."""

    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        password_min_length: int = 8,
    ):
        self.store = store
        self.codec = codec
        self.hasher = hasher
        self.password_min_length = password_min_length
        self._dummy_hash: Optional[str] = None

    # ─── Helpers ─────────────────────────────────────────

    @asynccontextmanager
    async def _boundary(self, operation: str):
        """Let expected errors through, turn everything else into InternalError."""
        try:
            yield
        except PocketbookError:
            raise
        except Exception as e:
            logger.exception("auth.internal_error", operation=operation)
            raise InternalError() from e

    async def _hash(self, password: str) -> str:
        # bcrypt is deliberately slow; keep it off the event loop
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, password_hash)

    async def _burn_verify(self, password: str) -> None:
        """Spend the same time as a real check when the email is unknown."""
        if self._dummy_hash is None:
            self._dummy_hash = await self._hash("pocketbook-timing-equalizer")
        await self._verify(password, self._dummy_hash)

    def _check_email(self, email: str, errors: dict[str, str]) -> None:
        if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
            errors["email"] = "must be a valid email address"

    def _check_password(
        self, password: str, errors: dict[str, str], field: str = "password"
    ) -> None:
        if not isinstance(password, str) or len(password) < self.password_min_length:
            errors[field] = (
                f"must be at least {self.password_min_length} characters"
            )

    def _check_display_name(self, display_name: str, errors: dict[str, str]) -> None:
        if not isinstance(display_name, str) or not display_name.strip():
            errors["display_name"] = "must not be empty"

    async def _issue_tokens(self, user: UserRecord) -> TokenPair:
        """Mint an access/refresh pair and persist the refresh half."""
        now = datetime.now(timezone.utc)
        subject = str(user.id)
        access_token = self.codec.sign(
            {"sub": subject, "email": user.email}, TokenKind.ACCESS, now=now
        )
        refresh_token = self.codec.sign({"sub": subject}, TokenKind.REFRESH, now=now)
        await self.store.create_refresh_token(
            token=refresh_token,
            user_id=user.id,
            expires_at=now + self.codec.ttl(TokenKind.REFRESH),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    # ─── Register / Login ────────────────────────────────

    async def register(
        self, email: str, password: str, display_name: str
    ) -> AuthResult:
        """Create a user and start their first session."""
        errors: dict[str, str] = {}
        self._check_email(email, errors)
        self._check_password(password, errors)
        self._check_display_name(display_name, errors)
        if errors:
            raise ValidationError.for_fields(errors)

        async with self._boundary("register"):
            if await self.store.get_user_by_email(email):
                raise DuplicateEmail()

            password_hash = await self._hash(password)
            try:
                user = await self.store.create_user(
                    email=email,
                    display_name=display_name.strip(),
                    password_hash=password_hash,
                )
            except ConstraintViolation as e:
                # Lost a race with a concurrent registration
                raise DuplicateEmail() from e

            tokens = await self._issue_tokens(user)

        logger.info("auth.registered", user_id=str(user.id))
        return AuthResult(user=UserProfile.from_record(user), tokens=tokens)

    async def login(self, email: str, password: str) -> AuthResult:
        """Exchange email + password for a fresh token pair.

        Learn: Unknown email and wrong password raise the exact same error,
        and both paths run one bcrypt verify, so neither the response nor
        its timing tells an attacker which emails are registered.
        """
        async with self._boundary("login"):
            user = await self.store.get_user_by_email(email)
            if user is None:
                await self._burn_verify(password)
                logger.info("auth.login_rejected")
                raise InvalidCredentials()

            if not await self._verify(password, user.password_hash):
                logger.info("auth.login_rejected")
                raise InvalidCredentials()

            tokens = await self._issue_tokens(user)

        logger.info("auth.login_succeeded", user_id=str(user.id))
        return AuthResult(user=UserProfile.from_record(user), tokens=tokens)

    # ─── Refresh / Logout ────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Redeem a refresh token for a new pair. Each token works once."""
        async with self._boundary("refresh"):
            stored = await self.store.get_refresh_token(refresh_token)
            if stored is None or stored.expires_at <= datetime.now(timezone.utc):
                raise InvalidOrExpiredToken()

            try:
                claims = self.codec.verify(refresh_token, TokenKind.REFRESH)
            except TokenExpiredError as e:
                raise InvalidOrExpiredToken() from e
            except TokenError as e:
                logger.info("auth.refresh_forged", reason=str(e))
                raise InvalidToken() from e

            if claims.get("sub") != str(stored.user_id):
                logger.info("auth.refresh_subject_mismatch")
                raise InvalidToken()

            # Consume first: whoever removes the row owns the redemption
            if not await self.store.delete_refresh_token(refresh_token):
                raise InvalidOrExpiredToken()

            user = await self.store.get_user(stored.user_id)
            if user is None:
                raise InvalidOrExpiredToken()

            tokens = await self._issue_tokens(user)

        logger.info("auth.refreshed", user_id=str(user.id))
        return tokens

    async def logout(self, refresh_token: str) -> None:
        """Forget a refresh token. Idempotent — unknown tokens are fine."""
        async with self._boundary("logout"):
            removed = await self.store.delete_refresh_token(refresh_token)
        logger.info("auth.logged_out", revoked=removed)

    # ─── Access tokens ───────────────────────────────────

    def authenticate(self, access_token: str) -> AuthContext:
        """Verify an access token and return who it belongs to.

        Pure computation: no store access. Both failure kinds surface as
        Unauthorized; `reason` and the chained cause tell them apart.
        """
        try:
            claims = self.codec.verify(access_token, TokenKind.ACCESS)
        except TokenExpiredError as e:
            logger.debug("auth.access_rejected", reason="expired")
            raise Unauthorized(reason="expired") from e
        except InvalidSignatureError as e:
            logger.debug("auth.access_rejected", reason="invalid_signature")
            raise Unauthorized(reason="invalid_signature") from e

        try:
            user_id = uuid.UUID(str(claims["sub"]))
        except (KeyError, ValueError) as e:
            raise Unauthorized(reason="invalid_signature") from e
        return AuthContext(user_id=user_id, email=str(claims.get("email", "")))

    # ─── Profile ─────────────────────────────────────────

    async def get_profile(self, user_id: uuid.UUID) -> UserProfile:
        async with self._boundary("get_profile"):
            user = await self.store.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return UserProfile.from_record(user)

    async def change_password(
        self, user_id: uuid.UUID, current_password: str, new_password: str
    ) -> None:
        """Replace the password after re-checking the current one.

        Outstanding refresh tokens stay valid.
        """
        errors: dict[str, str] = {}
        self._check_password(new_password, errors, field="new_password")
        if errors:
            raise ValidationError.for_fields(errors)

        async with self._boundary("change_password"):
            user = await self.store.get_user(user_id)
            if user is None:
                raise NotFound("User not found")
            if not await self._verify(current_password, user.password_hash):
                raise InvalidCurrentPassword()
            await self.store.update_user(
                user_id, password_hash=await self._hash(new_password)
            )

        logger.info("auth.password_changed", user_id=str(user_id))

    async def update_profile(
        self,
        user_id: uuid.UUID,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserProfile:
        """Partial update of display name and/or email."""
        errors: dict[str, str] = {}
        if email is not None:
            self._check_email(email, errors)
        if display_name is not None:
            self._check_display_name(display_name, errors)
        if errors:
            raise ValidationError.for_fields(errors)

        async with self._boundary("update_profile"):
            user = await self.store.get_user(user_id)
            if user is None:
                raise NotFound("User not found")

            fields: dict[str, str] = {}
            if display_name is not None:
                fields["display_name"] = display_name.strip()
            if email is not None and email != user.email:
                owner = await self.store.get_user_by_email(email)
                if owner is not None and owner.id != user_id:
                    raise DuplicateEmail()
                fields["email"] = email

            if not fields:
                return UserProfile.from_record(user)

            try:
                updated = await self.store.update_user(user_id, **fields)
            except ConstraintViolation as e:
                raise DuplicateEmail() from e
            if updated is None:
                raise NotFound("User not found")

        logger.info("auth.profile_updated", user_id=str(user_id), fields=sorted(fields))
        return UserProfile.from_record(updated)
