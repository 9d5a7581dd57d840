"""
Signed, time-limited tokens (JWT, HS256).

Two kinds are minted: session tokens carrying `{personId, role}` and short-lived
restore tokens carrying `{personId, email}`. Both are stateless: nothing is stored
server-side, so a token stays valid until it expires.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import ExpiredSignatureError, JWTError, jwt

ALGORITHM = "HS256"

SESSION_TOKEN_TTL = timedelta(hours=24)
EXTENDED_SESSION_TOKEN_TTL = timedelta(days=30)  # "remember me"
RESTORE_TOKEN_TTL = timedelta(minutes=15)

KIND_SESSION = "session"
KIND_RESTORE = "restore"


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    def __init__(self, secret: str, *, clock: Callable[[], datetime] = _utc_now):
        if not secret:
            raise ValueError("Token signing secret is not configured")
        self._secret = secret
        self._clock = clock

    def _issue(self, claims: dict, ttl: timedelta) -> str:
        issued_at = self._clock()
        to_encode = dict(claims)
        to_encode.update({"iat": issued_at, "exp": issued_at + ttl})
        return jwt.encode(to_encode, self._secret, algorithm=ALGORITHM)

    def issue_session_token(self, person_id: int, role: int, extended: bool = False) -> str:
        ttl = EXTENDED_SESSION_TOKEN_TTL if extended else SESSION_TOKEN_TTL
        return self._issue(
            {"personId": int(person_id), "role": int(role), "kind": KIND_SESSION},
            ttl,
        )

    def issue_restore_token(self, person_id: int, email: str) -> str:
        return self._issue(
            {"personId": int(person_id), "email": email, "kind": KIND_RESTORE},
            RESTORE_TOKEN_TTL,
        )

    def verify(self, token: str) -> dict:
        """
        Check signature and expiry and return the payload.

        Raises TokenExpired for a well-signed token past its `exp`, TokenInvalid for
        everything else (malformed, unsigned, tampered, wrong algorithm).
        """
        if not isinstance(token, str) or not token:
            raise TokenInvalid("Token is missing")
        try:
            return jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError as e:
            raise TokenExpired("Token has expired") from e
        except JWTError as e:
            raise TokenInvalid("Token is invalid") from e
