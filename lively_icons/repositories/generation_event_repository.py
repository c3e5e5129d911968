"""
Generation Event Repository for Lively Icons

Append-only usage ledger plus the aggregations behind team analytics and
monthly summary emails.
"""

from collections import Counter
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.icon import GenerationEvent
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class GenerationEventRepository(BaseRepository[GenerationEvent]):
    def __init__(self, db: Session):
        super().__init__(db, GenerationEvent)

    def record(
        self,
        *,
        clerk_user_id: str,
        event_type: str,
        tokens_used: int = 0,
        icon_id: Optional[str] = None,
        team_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GenerationEvent:
        return self.create(
            clerk_user_id=clerk_user_id,
            event_type=event_type,
            tokens_used=tokens_used,
            icon_id=icon_id,
            team_id=team_id,
            event_metadata=metadata or {},
        )

    def _in_range(self, query, start: datetime, end: Optional[datetime]):
        query = query.filter(GenerationEvent.created_at >= start)
        if end is not None:
            query = query.filter(GenerationEvent.created_at < end)
        return query

    def team_daily_usage(self, team_id: str, since: datetime) -> List[Dict[str, Any]]:
        """Per-day token totals and event counts for a team, oldest day first."""
        try:
            events = self._in_range(
                self.db.query(GenerationEvent.created_at, GenerationEvent.tokens_used).filter(
                    GenerationEvent.team_id == team_id
                ),
                since,
                None,
            ).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating daily usage for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate usage: {str(e)}")

        days: Dict[str, Dict[str, Any]] = {}
        for created_at, tokens in events:
            key = created_at.date().isoformat()
            bucket = days.setdefault(key, {"date": key, "tokensUsed": 0, "count": 0})
            bucket["tokensUsed"] += tokens or 0
            bucket["count"] += 1
        return [days[key] for key in sorted(days)]

    def user_stats_by_type(
        self, clerk_user_id: str, start: datetime, end: datetime
    ) -> Dict[str, Tuple[int, int]]:
        """Map event type to (count, tokens) for a user in [start, end)."""
        try:
            rows = self._in_range(
                self.db.query(
                    GenerationEvent.event_type,
                    func.count(GenerationEvent.id),
                    func.coalesce(func.sum(GenerationEvent.tokens_used), 0),
                ).filter(GenerationEvent.clerk_user_id == clerk_user_id),
                start,
                end,
            ).group_by(GenerationEvent.event_type).all()
            return {event_type: (int(count), int(tokens)) for event_type, count, tokens in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating stats for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate stats: {str(e)}")

    def most_used_style(self, clerk_user_id: str, start: datetime, end: datetime) -> Optional[str]:
        try:
            rows = self._in_range(
                self.db.query(GenerationEvent.event_metadata).filter(
                    GenerationEvent.clerk_user_id == clerk_user_id,
                    GenerationEvent.event_type == "generate",
                ),
                start,
                end,
            ).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding most used style for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate styles: {str(e)}")

        styles = Counter(
            (metadata or {}).get("style") for (metadata,) in rows if (metadata or {}).get("style")
        )
        if not styles:
            return None
        return styles.most_common(1)[0][0]

    def team_totals(self, team_id: str, start: datetime, end: datetime) -> Tuple[int, int]:
        """(event count, tokens used) for a team in [start, end)."""
        try:
            count, tokens = self._in_range(
                self.db.query(
                    func.count(GenerationEvent.id),
                    func.coalesce(func.sum(GenerationEvent.tokens_used), 0),
                ).filter(GenerationEvent.team_id == team_id),
                start,
                end,
            ).one()
            return int(count or 0), int(tokens or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating totals for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate team totals: {str(e)}")

    def most_active_member(self, team_id: str, start: datetime, end: datetime) -> Optional[str]:
        try:
            count = func.count(GenerationEvent.id)
            row = (
                self._in_range(
                    self.db.query(GenerationEvent.clerk_user_id, count).filter(
                        GenerationEvent.team_id == team_id
                    ),
                    start,
                    end,
                )
                .group_by(GenerationEvent.clerk_user_id)
                .order_by(count.desc())
                .first()
            )
            return row[0] if row else None
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding most active member for team {team_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate members: {str(e)}")
