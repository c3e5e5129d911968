# lively_icons/models/__init__.py
"""
SQLAlchemy models for the Lively Icons platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .batch_job import BatchJob
from .collection import Collection, CollectionIcon, SharedCollection
from .icon import GeneratedIcon, GenerationEvent
from .style_template import StyleTemplate
from .subscription import Subscription
from .team import Team, TeamInvitation, TeamMember

__all__ = [
    "BatchJob",
    "Collection",
    "CollectionIcon",
    "GeneratedIcon",
    "GenerationEvent",
    "SharedCollection",
    "StyleTemplate",
    "Subscription",
    "Team",
    "TeamInvitation",
    "TeamMember",
]
