"""Session tokens: HS256 JWT signing and verification."""

from __future__ import annotations

import logging
import time

import jwt

from cashbook.constants import DEFAULT_TOKEN_TTL_SECS, JWT_ALGORITHM
from cashbook.errors import Unauthorized
from cashbook.models import Identity

logger = logging.getLogger(__name__)


class TokenSigner:
    """Issue and verify session tokens carrying ``{userId, email, name}``.

    Tokens stay verifiable across restarts as long as the secret and
    algorithm are unchanged.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_secs: int = DEFAULT_TOKEN_TTL_SECS,
        algorithm: str = JWT_ALGORITHM,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty.")
        self._secret = secret
        self._ttl_secs = ttl_secs
        self._algorithm = algorithm

    def sign(self, identity: Identity) -> str:
        now = int(time.time())
        claims = {**identity.to_claims(), "iat": now, "exp": now + self._ttl_secs}
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Identity:
        """Decode a token. Raises Unauthorized when malformed, expired or forged."""
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise Unauthorized("Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected session token: %s", e)
            raise Unauthorized("Invalid token") from e

        user_id = claims.get("userId")
        if not user_id:
            raise Unauthorized("Invalid token")
        return Identity(
            user_id=str(user_id),
            email=str(claims.get("email", "")),
            name=str(claims.get("name", "")),
        )
