# lively_icons/repositories/factory.py
"""
Repository Factory for Lively Icons

Provides centralized creation of repository instances so services share a
single construction path (and tests have a single seam to patch).
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

if TYPE_CHECKING:
    from .batch_job_repository import BatchJobRepository
    from .collection_repository import CollectionRepository, SharedCollectionRepository
    from .generation_event_repository import GenerationEventRepository
    from .icon_repository import IconRepository
    from .subscription_repository import SubscriptionRepository
    from .team_repository import TeamInvitationRepository, TeamMemberRepository, TeamRepository
    from .template_repository import StyleTemplateRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_subscription_repository(db: Session) -> "SubscriptionRepository":
        from .subscription_repository import SubscriptionRepository

        return SubscriptionRepository(db)

    @staticmethod
    def create_team_repository(db: Session) -> "TeamRepository":
        from .team_repository import TeamRepository

        return TeamRepository(db)

    @staticmethod
    def create_team_member_repository(db: Session) -> "TeamMemberRepository":
        from .team_repository import TeamMemberRepository

        return TeamMemberRepository(db)

    @staticmethod
    def create_team_invitation_repository(db: Session) -> "TeamInvitationRepository":
        from .team_repository import TeamInvitationRepository

        return TeamInvitationRepository(db)

    @staticmethod
    def create_icon_repository(db: Session) -> "IconRepository":
        from .icon_repository import IconRepository

        return IconRepository(db)

    @staticmethod
    def create_collection_repository(db: Session) -> "CollectionRepository":
        from .collection_repository import CollectionRepository

        return CollectionRepository(db)

    @staticmethod
    def create_shared_collection_repository(db: Session) -> "SharedCollectionRepository":
        from .collection_repository import SharedCollectionRepository

        return SharedCollectionRepository(db)

    @staticmethod
    def create_style_template_repository(db: Session) -> "StyleTemplateRepository":
        from .template_repository import StyleTemplateRepository

        return StyleTemplateRepository(db)

    @staticmethod
    def create_batch_job_repository(db: Session) -> "BatchJobRepository":
        from .batch_job_repository import BatchJobRepository

        return BatchJobRepository(db)

    @staticmethod
    def create_generation_event_repository(db: Session) -> "GenerationEventRepository":
        from .generation_event_repository import GenerationEventRepository

        return GenerationEventRepository(db)
