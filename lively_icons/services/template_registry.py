"""
Template registry for strongly-typed access to Jinja templates.

Use with TemplateService to avoid stringly-typed paths.
"""

from enum import Enum


class TemplateRegistry(str, Enum):
    # Account
    WELCOME = "email/welcome.html"

    # Billing
    UPGRADE_CONFIRMATION = "email/upgrade_confirmation.html"
    CANCELLATION_CONFIRMATION = "email/cancellation_confirmation.html"
    TOKEN_BALANCE_LOW = "email/token_balance_low.html"
    MONTHLY_SUMMARY = "email/monthly_summary.html"

    # Dunning
    PAYMENT_FAILED = "email/payment_failed.html"
    PRO_ACCESS_WARNING = "email/pro_access_warning.html"
    ACCOUNT_PAUSED = "email/account_paused.html"

    # Teams
    TEAM_INVITATION = "email/team_invitation.html"
    TEAM_CREATED = "email/team_created.html"
    TEAM_WELCOME = "email/team_welcome.html"
    MEMBER_REMOVED = "email/member_removed.html"
