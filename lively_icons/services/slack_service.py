"""Outgoing Slack webhook notifications for team activity."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

SLACK_TIMEOUT_SECONDS = 10.0
PROMPT_PREVIEW_LENGTH = 100


class SlackWebhookError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def build_icon_generated_payload(
    *,
    team_name: str,
    icon_name: Optional[str],
    style: Optional[str],
    prompt: Optional[str],
    creator_name: Optional[str],
    channel: Optional[str] = None,
) -> Dict[str, Any]:
    fields: List[Dict[str, str]] = [
        {"type": "mrkdwn", "text": f"*Name:*\n{icon_name or 'Untitled'}"},
        {"type": "mrkdwn", "text": f"*Style:*\n{style or 'Default'}"},
        {"type": "mrkdwn", "text": f"*By:*\n{creator_name or 'Unknown'}"},
        {"type": "mrkdwn", "text": f"*Prompt:*\n{truncate(prompt or '', PROMPT_PREVIEW_LENGTH)}"},
    ]
    payload: Dict[str, Any] = {
        "text": f'New icon "{icon_name}" generated in {team_name} by {creator_name}',
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*New icon generated in {team_name}*"}},
            {"type": "section", "fields": fields},
        ],
    }
    if channel:
        payload["channel"] = channel
    return payload


class SlackService:
    """Posts JSON payloads to Slack incoming webhooks."""

    def __init__(
        self,
        *,
        timeout: float = SLACK_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def post(self, webhook_url: str, payload: Dict[str, Any]) -> None:
        """
        Send ``payload`` to ``webhook_url``.

        Raises:
            SlackWebhookError: on transport failure or a non-2xx reply
        """
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.post(webhook_url, json=payload)
            except httpx.RequestError as exc:
                logger.error("Slack webhook request failed: %s", str(exc))
                raise SlackWebhookError("Failed to reach Slack") from exc

        if response.status_code >= 400:
            logger.error("Slack webhook failed: %s %s", response.status_code, response.text[:200])
            raise SlackWebhookError(
                f"Slack webhook returned {response.status_code}", response.status_code
            )

    def notify_icon_generated(
        self,
        webhook_url: str,
        *,
        team_name: str,
        icon_name: Optional[str],
        style: Optional[str],
        prompt: Optional[str],
        creator_name: Optional[str],
        channel: Optional[str] = None,
    ) -> None:
        self.post(
            webhook_url,
            build_icon_generated_payload(
                team_name=team_name,
                icon_name=icon_name,
                style=style,
                prompt=prompt,
                creator_name=creator_name,
                channel=channel,
            ),
        )

    def send_test_message(self, webhook_url: str, team_name: str) -> None:
        self.post(
            webhook_url,
            {"text": f'Test message from LivelyIcons team "{team_name}": your Slack integration is working!'},
        )
