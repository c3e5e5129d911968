"""
Icon Repository for Lively Icons

Data access for generated icons. Every read path excludes soft-deleted rows
(``deleted_at`` set) unless stated otherwise.
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.icon import GeneratedIcon
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _like(term: str) -> str:
    return f"%{term.lower()}%"


class IconRepository(BaseRepository[GeneratedIcon]):
    def __init__(self, db: Session):
        super().__init__(db, GeneratedIcon)

    def _live(self) -> Query:
        return self.db.query(GeneratedIcon).filter(GeneratedIcon.deleted_at.is_(None))

    def get_owned(self, icon_id: str, clerk_user_id: str) -> Optional[GeneratedIcon]:
        """Live icon by id, only if owned by the user."""
        try:
            return (
                self._live()
                .filter(GeneratedIcon.id == icon_id, GeneratedIcon.clerk_user_id == clerk_user_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading icon {icon_id}: {str(e)}")
            raise RepositoryException(f"Failed to load icon: {str(e)}")

    def get_live(self, icon_id: str) -> Optional[GeneratedIcon]:
        try:
            return self._live().filter(GeneratedIcon.id == icon_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading icon {icon_id}: {str(e)}")
            raise RepositoryException(f"Failed to load icon: {str(e)}")

    def list_for_user(
        self,
        clerk_user_id: str,
        *,
        search: Optional[str] = None,
        style: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GeneratedIcon]:
        try:
            query = self._live().filter(GeneratedIcon.clerk_user_id == clerk_user_id)
            if style:
                query = query.filter(GeneratedIcon.style == style)
            if search:
                query = query.filter(
                    or_(
                        func.lower(GeneratedIcon.name).like(_like(search)),
                        func.lower(GeneratedIcon.prompt).like(_like(search)),
                    )
                )
            return (
                query.order_by(GeneratedIcon.created_at.desc()).limit(limit).offset(offset).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing icons for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list icons: {str(e)}")

    def list_for_team(
        self,
        team_id: str,
        *,
        search: Optional[str] = None,
        style: Optional[str] = None,
        created_by: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[GeneratedIcon], int]:
        """Page of live team icons plus the total matching count."""
        try:
            query = self._live().filter(GeneratedIcon.team_id == team_id)
            if search:
                query = query.filter(func.lower(GeneratedIcon.name).like(_like(search)))
            if style:
                query = query.filter(GeneratedIcon.style == style)
            if created_by:
                query = query.filter(GeneratedIcon.clerk_user_id == created_by)
            total = query.count()
            icons = (
                query.order_by(GeneratedIcon.created_at.desc()).limit(limit).offset(offset).all()
            )
            return icons, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing icons for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list team icons: {str(e)}")

    def list_all_for_team(self, team_id: str) -> List[GeneratedIcon]:
        """Oldest-first listing used by the Figma export."""
        try:
            return (
                self._live()
                .filter(GeneratedIcon.team_id == team_id)
                .order_by(GeneratedIcon.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing icons for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list team icons: {str(e)}")

    def count_for_user(self, clerk_user_id: str) -> int:
        try:
            return self._live().filter(GeneratedIcon.clerk_user_id == clerk_user_id).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting icons for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to count icons: {str(e)}")

    def list_owned_ids(self, clerk_user_id: str, icon_ids: Sequence[str]) -> List[str]:
        """Subset of ``icon_ids`` that exist, are live and belong to the user."""
        if not icon_ids:
            return []
        try:
            rows = (
                self._live()
                .with_entities(GeneratedIcon.id)
                .filter(
                    GeneratedIcon.clerk_user_id == clerk_user_id,
                    GeneratedIcon.id.in_(list(icon_ids)),
                )
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error verifying icon ownership: {str(e)}")
            raise RepositoryException(f"Failed to verify icons: {str(e)}")

    # CDN publishing

    def list_cdn_icons(self, clerk_user_id: str) -> List[GeneratedIcon]:
        try:
            return (
                self._live()
                .filter(
                    GeneratedIcon.clerk_user_id == clerk_user_id,
                    GeneratedIcon.cdn_slug.isnot(None),
                )
                .order_by(GeneratedIcon.cdn_slug)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing CDN icons for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list CDN icons: {str(e)}")

    def get_by_cdn_slug(self, clerk_user_id: str, cdn_slug: str) -> Optional[GeneratedIcon]:
        try:
            return (
                self._live()
                .filter(
                    GeneratedIcon.clerk_user_id == clerk_user_id,
                    GeneratedIcon.cdn_slug == cdn_slug,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading CDN icon {cdn_slug}: {str(e)}")
            raise RepositoryException(f"Failed to load CDN icon: {str(e)}")

    # Analytics

    def count_by_member(self, team_id: str, since: datetime) -> List[Tuple[str, int]]:
        try:
            count = func.count(GeneratedIcon.id)
            rows = (
                self.db.query(GeneratedIcon.clerk_user_id, count)
                .filter(GeneratedIcon.team_id == team_id, GeneratedIcon.created_at >= since)
                .group_by(GeneratedIcon.clerk_user_id)
                .order_by(count.desc())
                .all()
            )
            return [(user_id, int(total)) for user_id, total in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating icons by member: {str(e)}")
            raise RepositoryException(f"Failed to aggregate icons: {str(e)}")

    def count_by_style(self, team_id: str, since: datetime) -> List[Tuple[str, int]]:
        try:
            count = func.count(GeneratedIcon.id)
            rows = (
                self.db.query(GeneratedIcon.style, count)
                .filter(GeneratedIcon.team_id == team_id, GeneratedIcon.created_at >= since)
                .group_by(GeneratedIcon.style)
                .order_by(count.desc())
                .all()
            )
            return [(style, int(total)) for style, total in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating icons by style: {str(e)}")
            raise RepositoryException(f"Failed to aggregate icons: {str(e)}")
