"""Rate limiting, the JSON error envelope and transactional email rendering."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis

from lively_icons.core.exceptions import (
    GoneException,
    NotFoundException,
    RateLimitException,
    UpstreamServiceException,
)
from lively_icons.errors import error_body
from lively_icons.services.email import EmailService, html_to_text
from lively_icons.services.email_subjects import EmailSubject
from lively_icons.services.rate_limit_service import (
    WINDOW_MS,
    check_rate_limit,
    decide,
    enforce_rate_limit,
    limit_for_plan,
    rate_limit_key,
)
from lively_icons.services.template_registry import TemplateRegistry
from lively_icons.services.template_service import TemplateService

NOW_MS = 1_790_000_000_000


class TestRateLimit:
    def test_limits_per_plan(self):
        assert limit_for_plan("free") == 3
        assert limit_for_plan("pro") == 50
        assert limit_for_plan("team") == 100
        assert limit_for_plan("enterprise") == 10000

    def test_key(self):
        assert rate_limit_key("pro", "user_1") == "ratelimit:pro:user_1"

    def test_decide_allowed(self):
        result = decide([1, 49, NOW_MS + WINDOW_MS], NOW_MS)
        assert result.allowed is True
        assert result.remaining == 49
        assert result.retry_after == 0
        assert result.reset_epoch == (NOW_MS + WINDOW_MS) // 1000

    def test_decide_blocked_rounds_retry_up(self):
        result = decide([0, 0, str(NOW_MS + 1500)], NOW_MS)
        assert result.allowed is False
        assert result.retry_after == 2

    def test_decide_blocked_waits_at_least_one_second(self):
        assert decide([0, 0, NOW_MS], NOW_MS).retry_after == 1

    def test_check_runs_script_with_plan_limit(self):
        client = MagicMock()
        client.eval.return_value = [1, 2, NOW_MS + WINDOW_MS]

        result = check_rate_limit("user_1", "free", client=client, now_ms=NOW_MS)

        assert result.allowed is True
        args = client.eval.call_args[0]
        assert args[1:6] == (1, "ratelimit:free:user_1", NOW_MS, WINDOW_MS, 3)
        assert args[6].startswith(f"{NOW_MS}:")

    def test_redis_outage_fails_open(self):
        client = MagicMock()
        client.eval.side_effect = redis.ConnectionError("connection refused")

        result = check_rate_limit("user_1", "pro", client=client, now_ms=NOW_MS)

        assert result.allowed is True
        assert result.remaining == 50
        assert result.retry_after == 0

    def test_enforce_raises_with_headers(self, monkeypatch):
        blocked = decide([0, 0, NOW_MS + 30_000], NOW_MS)
        monkeypatch.setattr(
            "lively_icons.services.rate_limit_service.check_rate_limit", lambda identifier, plan_type: blocked
        )

        with pytest.raises(RateLimitException) as exc:
            enforce_rate_limit("user_1", "pro")

        assert exc.value.status_code == 429
        assert exc.value.headers() == {
            "Retry-After": str(blocked.retry_after),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(blocked.reset_epoch),
        }


class TestErrorEnvelope:
    def test_minimal_body_uses_status_title(self):
        assert error_body(status=404) == {"error": "Not Found", "status": 404}

    def test_code_and_details(self):
        body = error_body(
            status=400,
            message="Invalid request",
            code="validation_error",
            details={"at": datetime(2026, 1, 1, tzinfo=timezone.utc)},
        )
        assert body == {
            "error": "Invalid request",
            "status": 400,
            "code": "validation_error",
            "details": {"at": "2026-01-01T00:00:00+00:00"},
        }

    def test_empty_details_are_omitted(self):
        assert "details" not in error_body(status=500, message="boom", details={})

    def test_fields_sit_at_top_level_without_overriding(self):
        body = error_body(
            status=400,
            message="Some icons not found",
            code="invalid_icons",
            fields={"invalidIds": ["a"], "status": 200},
        )
        assert body == {
            "invalidIds": ["a"],
            "error": "Some icons not found",
            "status": 400,
            "code": "invalid_icons",
        }

    def test_exception_status_codes(self):
        assert NotFoundException("Icon not found").status_code == 404
        assert GoneException("Invitation expired").status_code == 410
        assert UpstreamServiceException("Model failed").status_code == 502


class TestEmailRendering:
    @pytest.fixture
    def templates(self):
        return TemplateService()

    def test_every_registered_template_exists(self, templates):
        for template in TemplateRegistry:
            assert templates.template_exists(template.value), template

    def test_invitation_escapes_user_content(self, templates):
        html = templates.render_template(
            TemplateRegistry.TEAM_INVITATION,
            context={
                "subject": EmailSubject.team_invitation("<Crew>"),
                "inviter_name": "Ada",
                "team_name": "<Crew>",
                "role": "editor",
                "accept_url": "https://app.test/invite/tok",
                "expires_in": "7 days",
            },
        )
        assert "&lt;Crew&gt;" in html
        assert "<Crew>" not in html
        assert "https://app.test/invite/tok" in html
        assert "This invitation expires in 7 days." in html

    def test_monthly_summary_lists_team_stats(self, templates):
        html = templates.render_template(
            TemplateRegistry.MONTHLY_SUMMARY,
            context={
                "subject": EmailSubject.monthly_summary("September 2026"),
                "user_name": "Ada",
                "month": "September 2026",
                "total_generations": 12,
                "total_exports": 4,
                "most_used_style": "duotone",
                "tokens_used": 12,
                "tokens_remaining": 488,
                "plan_type": "team",
                "team_stats": [
                    {
                        "team_name": "Design Crew",
                        "team_generations": 30,
                        "team_tokens_used": 30,
                        "most_active_member": "Grace",
                    }
                ],
            },
        )
        assert "Your September 2026 Summary" in html
        assert "duotone" in html
        assert "Team: Design Crew" in html
        assert "Most active: Grace" in html

    def test_html_to_text(self):
        html = "<style>p { color: red; }</style><p>Hello&nbsp;<strong>Ada</strong></p>\n<p>Bye</p>"
        assert html_to_text(html) == "Hello Ada Bye"

    def test_console_provider_does_not_call_resend(self, monkeypatch):
        send = MagicMock()
        monkeypatch.setattr("lively_icons.services.email.resend.Emails.send", send)

        response = EmailService().send_welcome("ada@example.com", "Ada")

        assert response == {"id": "console"}
        send.assert_not_called()

    def test_subjects(self):
        assert EmailSubject.upgrade_confirmation("Pro") == "Welcome to Lively Icons Pro!"
        assert EmailSubject.team_invitation("") == "You're invited to join a team on Lively Icons"
