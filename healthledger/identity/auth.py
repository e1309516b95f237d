"""
Caller authentication for the ledger.

The ledger never trusts an identity passed as a plain argument for
authorization. Callers present a signed identity token; ``AuthManager``
verifies it and hands back a :class:`Caller`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import os
import logging

import jwt

from ..config import get_settings
from ..errors import InvalidToken
from .directory import Caller

logger = logging.getLogger(__name__)


class AuthManager:
    """JWT manager for ledger callers."""

    def __init__(self, jwt_secret: str, expires_minutes: int = 15):
        if not jwt_secret or jwt_secret == "change-this-secret":
            logger.warning(
                "Using default/weak JWT secret. Set JWT_SECRET in production."
            )
        self.jwt_secret = jwt_secret
        self.expires_minutes = expires_minutes

    def issue_token(self, identity: str, expires_minutes: Optional[int] = None) -> str:
        now = datetime.now(tz=timezone.utc)
        ttl = self.expires_minutes if expires_minutes is None else expires_minutes
        payload = {
            "sub": identity,
            "type": "caller",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=ttl)).timestamp()),
            "jti": os.urandom(8).hex(),
        }
        return jwt.encode(payload, self.jwt_secret, algorithm="HS256")

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            logger.info("JWT expired")
            return None
        except jwt.InvalidTokenError as e:  # noqa: PERF203
            logger.info("Invalid JWT: %s", e)
            return None

    def authenticate(self, token: str) -> Caller:
        claims = self.verify_token(token)
        if not claims or claims.get("type") != "caller" or not claims.get("sub"):
            raise InvalidToken()
        return Caller(identity=str(claims["sub"]))


_AUTH_MANAGER: Optional[AuthManager] = None


def get_auth_manager() -> AuthManager:
    global _AUTH_MANAGER
    if _AUTH_MANAGER is None:
        settings = get_settings()
        _AUTH_MANAGER = AuthManager(settings.jwt_secret, settings.token_expires_minutes)
    return _AUTH_MANAGER
