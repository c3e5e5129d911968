# lively_icons/services/email.py
"""
Email Service for Lively Icons

Sends transactional email through the Resend API. Every message is rendered
from a Jinja2 template (see ``TemplateRegistry``) and carries a plain text
part derived from the HTML when no explicit text is supplied.

When ``EMAIL_PROVIDER=console`` the service only logs what it would send,
which is the default for local development and tests.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import PLAN_CONFIG
from ..core.exceptions import ServiceException
from .base import BaseService
from .email_subjects import EmailSubject
from .template_registry import TemplateRegistry
from .template_service import TemplateService

logger = logging.getLogger(__name__)


def html_to_text(html_content: str) -> str:
    """Strip tags and collapse whitespace for the plain text part."""
    text = re.sub(r"<(style|script)[^>]*>.*?</\1>", "", html_content, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"&nbsp;", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class EmailService(BaseService):
    """
    Service for sending emails using Resend.

    Template helpers raise ``ServiceException`` when delivery fails; callers
    on best-effort paths (webhooks, tasks) decide whether that is fatal.
    """

    def __init__(self, db: Optional[Session] = None, template_service: Optional[TemplateService] = None):
        super().__init__(db)  # type: ignore[arg-type]
        self.provider = settings.email_provider
        if self.provider == "resend":
            resend.api_key = settings.resend_api_key
        self.from_email = settings.from_email
        self.template_service = template_service or TemplateService(db)

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a single email.

        Returns:
            The Resend API response (``{"id": ...}``)

        Raises:
            ServiceException: If email sending fails
        """
        if not text_content:
            text_content = html_to_text(html_content)

        if self.provider == "console":
            self.logger.info(f"[console email] to={to_email} subject={subject!r}")
            self.logger.debug(text_content)
            return {"id": "console"}

        email_data = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {str(e)}")
            self.log_operation("email_failed", to_email=to_email, subject=subject, error=str(e))
            raise ServiceException(f"Failed to send email: {str(e)}")

        self.logger.info(f"Email sent successfully to {to_email} - Subject: {subject}")
        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return response

    def _send_template(
        self,
        template: TemplateRegistry,
        to_email: str,
        subject: str,
        context: Dict[str, Any],
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        html = self.template_service.render_template(template, context={"subject": subject, **context})
        return self.send_email(to_email, subject, html, text_content=text_content)

    # Account

    def send_welcome(self, to_email: str, user_name: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.WELCOME,
            to_email,
            EmailSubject.welcome(),
            {"user_name": user_name, "free_tokens": int(PLAN_CONFIG["free"].monthly_tokens)},
        )

    # Billing

    def send_upgrade_confirmation(
        self, to_email: str, user_name: str, plan_name: str, tokens_balance: int
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.UPGRADE_CONFIRMATION,
            to_email,
            EmailSubject.upgrade_confirmation(plan_name),
            {"user_name": user_name, "plan_name": plan_name, "tokens_balance": tokens_balance},
        )

    def send_cancellation_confirmation(
        self, to_email: str, user_name: str, access_end_date: str
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.CANCELLATION_CONFIRMATION,
            to_email,
            EmailSubject.cancellation_confirmation(),
            {"user_name": user_name, "access_end_date": access_end_date},
        )

    def send_token_balance_low(
        self, to_email: str, user_name: str, tokens_remaining: int, refresh_date: str
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.TOKEN_BALANCE_LOW,
            to_email,
            EmailSubject.token_balance_low(),
            {
                "user_name": user_name,
                "tokens_remaining": tokens_remaining,
                "refresh_date": refresh_date,
            },
        )

    def send_monthly_summary(
        self,
        to_email: str,
        *,
        user_name: str,
        month: str,
        total_generations: int,
        total_exports: int,
        most_used_style: Optional[str],
        tokens_used: int,
        tokens_remaining: int,
        plan_type: str,
        team_stats: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.MONTHLY_SUMMARY,
            to_email,
            EmailSubject.monthly_summary(month),
            {
                "user_name": user_name,
                "month": month,
                "total_generations": total_generations,
                "total_exports": total_exports,
                "most_used_style": most_used_style,
                "tokens_used": tokens_used,
                "tokens_remaining": tokens_remaining,
                "plan_type": plan_type,
                "team_stats": team_stats or [],
            },
        )

    # Dunning

    def send_payment_failed(self, to_email: str, user_name: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.PAYMENT_FAILED, to_email, EmailSubject.payment_failed(), {"user_name": user_name}
        )

    def send_pro_access_warning(self, to_email: str, user_name: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.PRO_ACCESS_WARNING,
            to_email,
            EmailSubject.pro_access_warning(),
            {"user_name": user_name},
        )

    def send_account_paused(self, to_email: str, user_name: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.ACCOUNT_PAUSED, to_email, EmailSubject.account_paused(), {"user_name": user_name}
        )

    # Teams

    def send_team_invitation(
        self,
        to_email: str,
        *,
        inviter_name: str,
        team_name: str,
        role: str,
        accept_url: str,
        expires_in: str,
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.TEAM_INVITATION,
            to_email,
            EmailSubject.team_invitation(team_name),
            {
                "inviter_name": inviter_name,
                "team_name": team_name,
                "role": role,
                "accept_url": accept_url,
                "expires_in": expires_in,
            },
            text_content=f"{inviter_name} invited you to join {team_name} as a {role}. "
            f"Accept the invitation: {accept_url} (expires in {expires_in})",
        )

    def send_team_created(self, to_email: str, user_name: str, team_name: str, team_slug: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.TEAM_CREATED,
            to_email,
            EmailSubject.team_created(team_name),
            {"user_name": user_name, "team_name": team_name, "team_slug": team_slug},
        )

    def send_team_welcome(
        self, to_email: str, user_name: str, team_name: str, team_slug: str, role: str
    ) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.TEAM_WELCOME,
            to_email,
            EmailSubject.team_welcome(team_name),
            {"user_name": user_name, "team_name": team_name, "team_slug": team_slug, "role": role},
        )

    def send_member_removed(self, to_email: str, user_name: str, team_name: str, removed_by: str) -> Dict[str, Any]:
        return self._send_template(
            TemplateRegistry.MEMBER_REMOVED,
            to_email,
            EmailSubject.member_removed(team_name),
            {"user_name": user_name, "team_name": team_name, "removed_by": removed_by},
        )
