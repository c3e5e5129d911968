"""
Centralized email subject builders.

Keep subjects in code (not templates) for versioning and logging.
Bodies remain in Jinja templates.
"""

from ..core.constants import BRAND_NAME


class EmailSubject:
    """Utility class with static builders for email subjects."""

    @staticmethod
    def welcome() -> str:
        return f"Welcome to {BRAND_NAME}!"

    @staticmethod
    def upgrade_confirmation(plan_name: str) -> str:
        return f"Welcome to {BRAND_NAME} {plan_name}!"

    @staticmethod
    def cancellation_confirmation() -> str:
        return "Your subscription has been canceled"

    @staticmethod
    def token_balance_low() -> str:
        return "Running low on tokens"

    @staticmethod
    def payment_failed() -> str:
        return "Action required: Payment failed"

    @staticmethod
    def pro_access_warning() -> str:
        return "Your Pro access will be paused soon"

    @staticmethod
    def account_paused() -> str:
        return f"Your {BRAND_NAME} Pro account has been paused"

    @staticmethod
    def monthly_summary(month: str) -> str:
        return f"Your {month} {BRAND_NAME} Summary"

    @staticmethod
    def team_invitation(team_name: str) -> str:
        return f"You're invited to join {team_name or 'a team'} on {BRAND_NAME}"

    @staticmethod
    def team_created(team_name: str) -> str:
        return f"Your team {team_name} is ready"

    @staticmethod
    def team_welcome(team_name: str) -> str:
        return f"Welcome to {team_name} on {BRAND_NAME}!"

    @staticmethod
    def member_removed(team_name: str) -> str:
        return f"You have been removed from {team_name}"
