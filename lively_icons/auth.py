# lively_icons/auth.py
"""
Session authentication.

Clerk issues RS256 session tokens; they are verified against the instance
JWKS and the ``sub`` claim is the Clerk user id used throughout the API.
"""

from functools import lru_cache
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWKClient, PyJWKClientError

from .core.config import settings
from .core.exceptions import UnauthorizedException
from .integrations.clerk_client import ClerkApiError, ClerkClient, get_clerk_client

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class SessionTokenValidator:
    """Validates Clerk session tokens."""

    def __init__(self, jwks_url: str, issuer: Optional[str] = None) -> None:
        self.jwks_url = jwks_url
        self.issuer = issuer
        self._jwks_client: Optional[PyJWKClient] = None

    @property
    def jwks_client(self) -> PyJWKClient:
        """Lazy-load JWKS client."""
        if self._jwks_client is None:
            self._jwks_client = PyJWKClient(self.jwks_url, cache_keys=True, lifespan=3600)
        return self._jwks_client

    def validate(self, token: str) -> dict:
        """Validate a session token and return its claims."""
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_exp": True,
                    "verify_aud": False,
                    "verify_iss": self.issuer is not None,
                },
            )
        except PyJWKClientError as exc:
            logger.warning("JWKS client error: %s", exc)
            raise jwt.InvalidTokenError(f"Could not fetch signing key: {exc}") from exc
        except jwt.ExpiredSignatureError:
            logger.info("Session token expired")
            raise
        except jwt.InvalidTokenError as exc:
            logger.warning("Invalid session token: %s", exc)
            raise
        return claims


@lru_cache(maxsize=1)
def get_token_validator() -> Optional[SessionTokenValidator]:
    """Validator singleton, or None when no JWKS endpoint is configured."""
    if not settings.clerk_jwks_url:
        logger.warning("CLERK_JWKS_URL not configured; authenticated routes will reject requests")
        return None
    return SessionTokenValidator(settings.clerk_jwks_url, settings.clerk_issuer)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Clerk user id of the caller; 401 when the token is missing or invalid."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Unauthorized", code="unauthenticated")
    validator = get_token_validator()
    if validator is None:
        raise UnauthorizedException("Unauthorized", code="auth_not_configured")
    try:
        claims = validator.validate(credentials.credentials)
    except jwt.InvalidTokenError:
        raise UnauthorizedException("Unauthorized", code="invalid_token")
    return str(claims["sub"])


def get_current_user_email(
    clerk_user_id: str = Depends(get_current_user_id),
    clerk_client: ClerkClient = Depends(get_clerk_client),
) -> Optional[str]:
    """Primary email of the caller from the Clerk API, None when it cannot be loaded."""
    try:
        return clerk_client.get_user(clerk_user_id).email
    except ClerkApiError as exc:
        logger.warning("Could not load email for %s: %s", clerk_user_id, exc)
        return None
