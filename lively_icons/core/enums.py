# lively_icons/core/enums.py
"""
Core enums for the Lively Icons platform.

String-valued enums shared by models, schemas and services. Values are the
exact strings persisted in the database and exposed over the API.
"""

from enum import Enum


class PlanType(str, Enum):
    """Subscription plan tiers."""

    FREE = "free"
    PRO = "pro"
    TEAM = "team"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class TeamRole(str, Enum):
    """
    Team roles, ordered by privilege.

    Use ``ROLE_HIERARCHY`` in the team auth service for comparisons rather
    than comparing the string values.
    """

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class IconStyle(str, Enum):
    LINE = "line"
    SOLID = "solid"
    OUTLINE = "outline"
    DUOTONE = "duotone"
    PIXEL = "pixel"
    ISOMETRIC = "isometric"
    HAND_DRAWN = "hand-drawn"


class AnimationTrigger(str, Enum):
    HOVER = "hover"
    LOOP = "loop"
    MOUNT = "mount"
    IN_VIEW = "inView"


class GenerationEventType(str, Enum):
    GENERATE = "generate"
    REFINE = "refine"
    EXPORT = "export"
    DELETE = "delete"


class BatchStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ExportFormat(str, Enum):
    """Component output formats for generated code and collection exports."""

    REACT = "react"
    VUE = "vue"
    SVG = "svg"
    HTML = "html"
