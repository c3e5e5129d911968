"""
Collection Repositories for Lively Icons

Collections, their icon join rows, and public share links.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.collection import Collection, CollectionIcon, SharedCollection
from ..models.icon import GeneratedIcon
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CollectionRepository(BaseRepository[Collection]):
    def __init__(self, db: Session):
        super().__init__(db, Collection)

    def get_owned(self, collection_id: str, clerk_user_id: str) -> Optional[Collection]:
        return self.find_one_by(id=collection_id, clerk_user_id=clerk_user_id)

    def list_for_user(self, clerk_user_id: str) -> List[Tuple[Collection, int]]:
        """User's collections, newest first, each with its icon count."""
        try:
            icon_count = (
                self.db.query(func.count(CollectionIcon.icon_id))
                .filter(CollectionIcon.collection_id == Collection.id)
                .correlate(Collection)
                .scalar_subquery()
            )
            rows = (
                self.db.query(Collection, icon_count)
                .filter(Collection.clerk_user_id == clerk_user_id)
                .order_by(Collection.created_at.desc())
                .all()
            )
            return [(collection, int(count or 0)) for collection, count in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing collections for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list collections: {str(e)}")

    def list_for_team(self, team_id: str) -> List[Collection]:
        try:
            return (
                self.db.query(Collection)
                .filter(Collection.team_id == team_id)
                .order_by(Collection.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing collections for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to list collections: {str(e)}")

    def list_icons(self, collection_id: str) -> List[Tuple[GeneratedIcon, object]]:
        """Live icons in the collection with the time each was added, newest first."""
        try:
            rows = (
                self.db.query(GeneratedIcon, CollectionIcon.added_at)
                .join(CollectionIcon, CollectionIcon.icon_id == GeneratedIcon.id)
                .filter(
                    CollectionIcon.collection_id == collection_id,
                    GeneratedIcon.deleted_at.is_(None),
                )
                .order_by(CollectionIcon.added_at.desc())
                .all()
            )
            return [(icon, added_at) for icon, added_at in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing icons for collection {collection_id}: {str(e)}")
            raise RepositoryException(f"Failed to list collection icons: {str(e)}")

    def add_icons(self, collection_id: str, icon_ids: Sequence[str]) -> int:
        """Insert join rows, skipping icons already in the collection. Returns rows added."""
        try:
            existing = {
                row[0]
                for row in self.db.query(CollectionIcon.icon_id)
                .filter(
                    CollectionIcon.collection_id == collection_id,
                    CollectionIcon.icon_id.in_(list(icon_ids)),
                )
                .all()
            }
            added = 0
            for icon_id in dict.fromkeys(icon_ids):
                if icon_id in existing:
                    continue
                self.db.add(CollectionIcon(collection_id=collection_id, icon_id=icon_id))
                added += 1
            self.db.flush()
            return added
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding icons to collection {collection_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to add icons: {str(e)}")

    def remove_icons(self, collection_id: str, icon_ids: Sequence[str]) -> int:
        try:
            removed = (
                self.db.query(CollectionIcon)
                .filter(
                    CollectionIcon.collection_id == collection_id,
                    CollectionIcon.icon_id.in_(list(icon_ids)),
                )
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(removed or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing icons from collection {collection_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to remove icons: {str(e)}")


class SharedCollectionRepository(BaseRepository[SharedCollection]):
    def __init__(self, db: Session):
        super().__init__(db, SharedCollection)

    def get_by_slug(self, slug: str) -> Optional[SharedCollection]:
        return self.find_one_by(public_slug=slug)

    def get_for_collection(self, collection_id: str) -> Optional[SharedCollection]:
        return self.find_one_by(collection_id=collection_id)

    def increment_views(self, shared: SharedCollection) -> None:
        try:
            self.db.query(SharedCollection).filter(SharedCollection.id == shared.id).update(
                {SharedCollection.view_count: SharedCollection.view_count + 1},
                synchronize_session=False,
            )
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error incrementing views for {shared.public_slug}: {str(e)}")
            raise RepositoryException(f"Failed to record view: {str(e)}")

    def shares_for_collections(self, collection_ids: Sequence[str]) -> Dict[str, SharedCollection]:
        if not collection_ids:
            return {}
        try:
            rows = (
                self.db.query(SharedCollection)
                .filter(SharedCollection.collection_id.in_(list(collection_ids)))
                .all()
            )
            return {row.collection_id: row for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading collection shares: {str(e)}")
            raise RepositoryException(f"Failed to load shares: {str(e)}")
