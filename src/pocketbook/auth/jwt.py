"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), claims {sub, email}, signed with secret A
- Refresh token: long-lived (7 days), claims {sub}, signed with secret B

The two kinds use separate secrets, so an access token can never pass
refresh verification (and vice versa). Every token also gets a random
`jti`: two tokens minted in the same second for the same user must still
be different strings, because refresh tokens are stored by value.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from pocketbook.config import Settings


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


class InvalidSignatureError(TokenError):
    """Malformed, tampered, wrong secret, or wrong token kind."""


class TokenExpiredError(TokenError):
    """Correctly signed, but past its `exp`."""


class TokenCodec:
    """Signs and verifies the two bearer token kinds."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self.algorithm = algorithm
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenKind.ACCESS: access_ttl,
            TokenKind.REFRESH: refresh_ttl,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            access_secret=settings.jwt_access_secret,
            refresh_secret=settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    def ttl(self, kind: TokenKind) -> timedelta:
        return self._ttls[kind]

    def sign(
        self,
        claims: dict[str, Any],
        kind: TokenKind,
        now: Optional[datetime] = None,
    ) -> str:
        """Create a signed token of the given kind carrying `claims`."""
        now = now or datetime.now(timezone.utc)
        payload = {
            **claims,
            "type": kind.value,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self._ttls[kind],
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def verify(self, token: str, kind: TokenKind) -> dict[str, Any]:
        """Verify signature and expiry, return the claims.

        Raises TokenExpiredError for a good signature past `exp`, and
        InvalidSignatureError for everything else.
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidSignatureError(f"Invalid token: {e}") from e

        if payload.get("type") != kind.value:
            raise InvalidSignatureError(f"Not an {kind.value} token")
        return payload
