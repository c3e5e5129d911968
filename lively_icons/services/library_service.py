# lively_icons/services/library_service.py
"""
Library Service for Lively Icons

A user's own icons: listing, metadata edits, soft deletion, manual SVG
edits and animated exports.
"""

from dataclasses import dataclass
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import (
    DEFAULT_QUERY_LIMIT,
    MAX_ANIMATED_EXPORT_SIZE,
    MAX_QUERY_LIMIT,
    MIN_ANIMATED_EXPORT_SIZE,
)
from ..core.enums import GenerationEventType
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    NotImplementedFeatureException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..models.icon import GeneratedIcon
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .icons.animated_export import add_export_size, generate_animated_svg
from .icons.code_generator import generate_react_component
from .icons.svg_validator import validate_and_normalize_svg

logger = logging.getLogger(__name__)

READ_ONLY_MESSAGE = "This icon is read-only. Upgrade your plan to edit."

EDITABLE_FIELDS = ("name", "tags", "animation", "trigger", "color", "duration")

ANIMATED_SVG = "animated-svg"
GIF = "gif"


def export_file_slug(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "-", name).lower()


@dataclass
class AnimatedExport:
    content: str
    filename: str
    media_type: str = "image/svg+xml"


@dataclass
class SvgEditResult:
    icon: GeneratedIcon
    warnings: List[str]


class LibraryService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.icon_repository = RepositoryFactory.create_icon_repository(db)
        self.event_repository = RepositoryFactory.create_generation_event_repository(db)

    def list_icons(
        self,
        clerk_user_id: str,
        *,
        search: Optional[str] = None,
        style: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> List[GeneratedIcon]:
        return self.icon_repository.list_for_user(
            clerk_user_id,
            search=search,
            style=style,
            limit=min(MAX_QUERY_LIMIT, max(1, limit)),
            offset=max(0, offset),
        )

    def get_icon(self, clerk_user_id: str, icon_id: str) -> GeneratedIcon:
        icon = self.icon_repository.get_owned(icon_id, clerk_user_id)
        if icon is None:
            raise NotFoundException("Icon not found", code="icon_not_found")
        return icon

    def _get_editable(self, clerk_user_id: str, icon_id: str) -> GeneratedIcon:
        icon = self.get_icon(clerk_user_id, icon_id)
        if not icon.is_active:
            raise ForbiddenException(READ_ONLY_MESSAGE, code="icon_read_only")
        return icon

    @BaseService.measure_operation("update_icon")
    def update_icon(self, clerk_user_id: str, icon_id: str, changes: Dict[str, Any]) -> GeneratedIcon:
        """Apply the provided metadata fields; ``None`` values are ignored."""
        icon = self._get_editable(clerk_user_id, icon_id)
        updates = {field: changes[field] for field in EDITABLE_FIELDS if changes.get(field) is not None}
        with self.transaction():
            self.icon_repository.update(icon, **updates)
        return icon

    @BaseService.measure_operation("delete_icon")
    def delete_icon(self, clerk_user_id: str, icon_id: str) -> None:
        icon = self.get_icon(clerk_user_id, icon_id)
        with self.transaction():
            self.icon_repository.update(icon, deleted_at=utc_now())
            self.event_repository.record(
                clerk_user_id=clerk_user_id,
                event_type=GenerationEventType.DELETE.value,
                icon_id=icon.id,
                team_id=icon.team_id,
            )
        self.log_operation("icon_deleted", icon_id=icon_id)

    @BaseService.measure_operation("edit_svg")
    def edit_svg(self, clerk_user_id: str, icon_id: str, svg_code: str) -> SvgEditResult:
        icon = self._get_editable(clerk_user_id, icon_id)
        validation = validate_and_normalize_svg(svg_code)
        if not validation.valid:
            raise ValidationException(
                "SVG validation failed", code="invalid_svg", details={"reasons": validation.errors}
            )
        component_code = generate_react_component(
            validation.svg, icon.name, icon.animation, icon.trigger, icon.duration or 0.5
        )
        with self.transaction():
            self.icon_repository.update(icon, svg_code=validation.svg, component_code=component_code)
        return SvgEditResult(icon=icon, warnings=validation.warnings)

    @BaseService.measure_operation("export_animated")
    def export_animated(self, clerk_user_id: str, icon_id: str, export_format: str, size: int = 256) -> AnimatedExport:
        if not MIN_ANIMATED_EXPORT_SIZE <= size <= MAX_ANIMATED_EXPORT_SIZE:
            raise ValidationException(
                f"Size must be between {MIN_ANIMATED_EXPORT_SIZE} and {MAX_ANIMATED_EXPORT_SIZE}.",
                code="invalid_size",
            )
        icon = self.get_icon(clerk_user_id, icon_id)
        if export_format == GIF:
            raise NotImplementedFeatureException(
                "GIF export is coming soon. Use animated SVG for now.",
                code="gif_unsupported",
                details={"suggestion": ANIMATED_SVG},
            )
        if export_format != ANIMATED_SVG:
            raise ValidationException("Unsupported format", code="unsupported_format")

        animated = generate_animated_svg(icon.svg_code, icon.animation, icon.duration or 0.5)
        with self.transaction():
            self.event_repository.record(
                clerk_user_id=clerk_user_id,
                event_type=GenerationEventType.EXPORT.value,
                icon_id=icon.id,
                team_id=icon.team_id,
                metadata={"format": export_format},
            )
        return AnimatedExport(
            content=add_export_size(animated, size),
            filename=f"{export_file_slug(icon.name)}-animated.svg",
        )
