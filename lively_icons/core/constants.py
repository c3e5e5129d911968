"""Application-wide constants for the Lively Icons platform."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Dict, Optional, Tuple

BRAND_NAME = "Lively Icons"
API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Generate, organize, share and export AI-generated animated icons."

# Email theme
EMAIL_ACCENT_COLOR = "#00ff88"

# Unlimited token balances are stored as a large finite integer
UNLIMITED_TOKEN_BALANCE = 999999

# Rate limit used for plans with no hourly cap
UNLIMITED_RATE_LIMIT_PER_HOUR = 10000

# Prompt limits
MAX_PROMPT_LENGTH = 500
MIN_PROMPT_LENGTH = 3

# Batch generation
MAX_BATCH_PROMPTS = 20

# Query limits
DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 100

# Invitations
INVITATION_EXPIRY_DAYS = 7
INVITATION_TOKEN_BYTES = 32

# Shared collections
SHARE_SLUG_BYTES = 8

# Low-balance email
LOW_BALANCE_THRESHOLD_RATIO = 0.10
LOW_BALANCE_EMAIL_COOLDOWN_SECONDS = 30 * 24 * 60 * 60

# Dunning schedule (days after the first failed payment)
DUNNING_PAYMENT_FAILED_DAY = 3
DUNNING_ACCESS_WARNING_DAY = 7
DUNNING_DOWNGRADE_DAY = 14

# Icon editing / exporting
MIN_SVG_EDIT_LENGTH = 10
MAX_SVG_LENGTH = 50000
MIN_ANIMATED_EXPORT_SIZE = 64
MAX_ANIMATED_EXPORT_SIZE = 512

TEAM_SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]{1,48}[a-z0-9]$"
CDN_SLUG_PATTERN = r"^[a-z0-9-]+$"
SLACK_WEBHOOK_PREFIX = "https://hooks.slack.com/"

FIGMA_EXPORT_VERSION = 1

ANALYTICS_PERIODS: Dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}


@dataclass(frozen=True)
class TokenRollover:
    months: int
    max_banked: int


@dataclass(frozen=True)
class PlanLimits:
    """Limits attached to a subscription plan. ``math.inf`` means unlimited."""

    name: str
    monthly_tokens: float
    is_lifetime_tokens: bool
    max_icons: float
    max_templates: float
    max_cdn_icons: float
    rate_limit_per_hour: float
    token_rollover: Optional[TokenRollover] = None
    seats: Optional[int] = None


PLAN_CONFIG: Dict[str, PlanLimits] = {
    "free": PlanLimits(
        name="Free",
        monthly_tokens=5,
        is_lifetime_tokens=True,
        max_icons=20,
        max_templates=0,
        max_cdn_icons=0,
        rate_limit_per_hour=3,
    ),
    "pro": PlanLimits(
        name="Pro",
        monthly_tokens=500,
        is_lifetime_tokens=False,
        max_icons=math.inf,
        max_templates=10,
        max_cdn_icons=50,
        rate_limit_per_hour=50,
        token_rollover=TokenRollover(months=1, max_banked=1000),
    ),
    "team": PlanLimits(
        name="Team",
        monthly_tokens=2000,
        is_lifetime_tokens=False,
        max_icons=math.inf,
        max_templates=50,
        max_cdn_icons=500,
        rate_limit_per_hour=100,
        token_rollover=TokenRollover(months=3, max_banked=5000),
        seats=5,
    ),
    "enterprise": PlanLimits(
        name="Enterprise",
        monthly_tokens=math.inf,
        is_lifetime_tokens=False,
        max_icons=math.inf,
        max_templates=math.inf,
        max_cdn_icons=math.inf,
        rate_limit_per_hour=math.inf,
    ),
}


@dataclass(frozen=True)
class TokenPack:
    name: str
    price_cents: int
    tokens: int


TOKEN_PACKS: Tuple[TokenPack, ...] = (
    TokenPack(name="Small", price_cents=500, tokens=50),
    TokenPack(name="Medium", price_cents=1500, tokens=200),
    TokenPack(name="Large", price_cents=3500, tokens=500),
)

TOKEN_COSTS: Dict[str, float] = {
    "generate": 1,
    "refine": 0.5,
    "batch_generate": 1,  # per icon
    "animated_export": 0,
    "svg_download": 0,
}


def get_plan_config(plan_type: str) -> PlanLimits:
    """Return limits for a plan, falling back to the free tier for unknown values."""
    return PLAN_CONFIG.get(plan_type, PLAN_CONFIG["free"])


def find_token_pack(name: str) -> Optional[TokenPack]:
    for pack in TOKEN_PACKS:
        if pack.name.lower() == name.lower():
            return pack
    return None


def token_cost(action: str, quantity: int = 1) -> int:
    """Whole tokens charged for an action; fractional costs round up."""
    return int(math.ceil(TOKEN_COSTS[action] * quantity))
