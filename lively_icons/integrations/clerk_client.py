"""Clerk Backend API client: user profile lookups for emails and member lists."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import SecretStr

from ..core.config import settings

logger = logging.getLogger(__name__)


class ClerkApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ClerkUser:
    id: str
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    image_url: Optional[str]

    @property
    def full_name(self) -> Optional[str]:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or None


@dataclass(frozen=True)
class UserEmailInfo:
    email: str
    name: str


def primary_email(payload: Dict[str, Any]) -> Optional[str]:
    """Primary email from a Clerk user payload, falling back to the first address."""
    addresses: List[Dict[str, Any]] = payload.get("email_addresses") or []
    primary_id = payload.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


def user_from_payload(payload: Dict[str, Any]) -> ClerkUser:
    return ClerkUser(
        id=str(payload.get("id", "")),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        email=primary_email(payload),
        image_url=payload.get("image_url"),
    )


class ClerkClient:
    """Thin client for the Clerk Backend API."""

    def __init__(
        self,
        *,
        secret_key: str | SecretStr | None = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        key = secret_key if secret_key is not None else settings.clerk_secret_key
        self._secret_key = key.get_secret_value() if isinstance(key, SecretStr) else (key or "")
        self._base_url = (base_url or settings.clerk_api_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def get_user(self, clerk_user_id: str) -> ClerkUser:
        if not self._secret_key:
            raise ClerkApiError("Clerk secret key is not configured")
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.get(
                    f"{self._base_url}/users/{clerk_user_id}",
                    headers={"Authorization": f"Bearer {self._secret_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.warning("Clerk API error %s looking up user %s", status, clerk_user_id)
                raise ClerkApiError(f"Clerk API responded with status {status}", status) from exc
            except httpx.RequestError as exc:
                logger.error("Clerk request failure: %s", str(exc))
                raise ClerkApiError("Failed to reach Clerk API") from exc
        return user_from_payload(response.json())

    def get_user_email_info(self, clerk_user_id: str) -> Optional[UserEmailInfo]:
        """
        Email address and display name for transactional email.

        Returns None when the user cannot be loaded or has no email; callers
        skip the send in that case.
        """
        try:
            user = self.get_user(clerk_user_id)
        except ClerkApiError as exc:
            logger.error("Failed to look up Clerk user %s: %s", clerk_user_id, exc)
            return None
        if not user.email:
            return None
        return UserEmailInfo(email=user.email, name=user.full_name or "there")


_client: Optional[ClerkClient] = None


def get_clerk_client() -> ClerkClient:
    global _client
    if _client is None:
        _client = ClerkClient()
    return _client
