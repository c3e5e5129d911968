"""Minimal Recraft API client for SVG icon generation."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import SecretStr

from ..core.config import settings

logger = logging.getLogger(__name__)

STYLE_TO_SUBSTYLE: Dict[str, str] = {
    "line": "line_art",
    "solid": "glyph",
    "outline": "outline",
    "duotone": "colored_outline",
    "pixel": "pixel_art",
    "isometric": "isometric",
    "hand-drawn": "hand_drawn",
}


class RecraftApiError(RuntimeError):
    """Raised when the Recraft API fails or returns an unusable payload."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RecraftClient:
    """Thin client for the Recraft V3 image generation endpoint."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr | None = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        key = api_key if api_key is not None else settings.recraft_api_key
        self._api_key = key.get_secret_value() if isinstance(key, SecretStr) else (key or "")
        self._base_url = (base_url or settings.recraft_api_url).rstrip("/")
        self._timeout = timeout or settings.recraft_timeout_seconds
        self._transport = transport

    def generate_svg(
        self, prompt: str, style: str, reference_image_url: Optional[str] = None
    ) -> str:
        """Generate an icon and return the raw SVG markup."""
        if not self._api_key:
            raise RecraftApiError("Recraft API key is not configured", 500)

        body: Dict[str, Any] = {
            "prompt": prompt,
            "style": "icon",
            "model": "recraftv3",
            "response_format": "svg",
            "size": "1024x1024",
        }
        substyle = STYLE_TO_SUBSTYLE.get(style)
        if substyle:
            body["substyle"] = substyle
        if reference_image_url:
            body["image_url"] = reference_image_url

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.post(
                    f"{self._base_url}/images/generations",
                    json=body,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
            except httpx.RequestError as exc:
                logger.error("Recraft request failure: %s", str(exc))
                raise RecraftApiError("Failed to reach Recraft API", 502) from exc

            if response.status_code >= 400:
                logger.error(
                    "Recraft API error %s: %s", response.status_code, response.text[:500]
                )
                raise RecraftApiError(
                    f"Recraft API error ({response.status_code}): {response.text[:500]}",
                    response.status_code,
                )

            try:
                payload = response.json()
            except json.JSONDecodeError as exc:
                raise RecraftApiError("Received malformed JSON from Recraft API", 500) from exc

            results = payload.get("data") or []
            if not results:
                raise RecraftApiError("No result returned from Recraft API", 500)
            result = results[0]

            if result.get("svg"):
                return str(result["svg"])

            if result.get("url"):
                try:
                    svg_response = client.get(result["url"])
                except httpx.RequestError as exc:
                    raise RecraftApiError("Failed to fetch SVG from Recraft URL", 500) from exc
                if svg_response.status_code >= 400:
                    raise RecraftApiError("Failed to fetch SVG from Recraft URL", 500)
                return svg_response.text

            if result.get("b64_json"):
                try:
                    return base64.b64decode(result["b64_json"], validate=True).decode("utf-8")
                except (binascii.Error, UnicodeDecodeError) as exc:
                    raise RecraftApiError("Received undecodable SVG from Recraft API", 500) from exc

        raise RecraftApiError("Unexpected response format from Recraft API", 500)
