"""Style template repository: per-user presets and team-shared templates."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.style_template import StyleTemplate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StyleTemplateRepository(BaseRepository[StyleTemplate]):
    def __init__(self, db: Session):
        super().__init__(db, StyleTemplate)

    def get_owned(self, template_id: str, clerk_user_id: str) -> Optional[StyleTemplate]:
        return self.find_one_by(id=template_id, clerk_user_id=clerk_user_id)

    def list_for_user(self, clerk_user_id: str) -> List[StyleTemplate]:
        try:
            return (
                self.db.query(StyleTemplate)
                .filter(StyleTemplate.clerk_user_id == clerk_user_id)
                .order_by(StyleTemplate.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing templates for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list templates: {str(e)}")

    def list_shared_for_team(self, team_id: str) -> List[StyleTemplate]:
        try:
            return (
                self.db.query(StyleTemplate)
                .filter(StyleTemplate.team_id == team_id, StyleTemplate.is_shared.is_(True))
                .order_by(StyleTemplate.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing shared templates for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list templates: {str(e)}")
