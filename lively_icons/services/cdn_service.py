# lively_icons/services/cdn_service.py
"""
CDN publishing: icons published under a per-user slug are served from a
public JavaScript bundle at ``/api/cdn/{user_id}/icons.js``.
"""

import logging
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import CDN_SLUG_PATTERN, get_plan_config
from ..core.exceptions import ConflictException, ForbiddenException, NotFoundException, ValidationException
from ..models.icon import GeneratedIcon
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .icons.cdn_bundle import CdnIcon, build_cdn_bundle

logger = logging.getLogger(__name__)

_CDN_SLUG_RE = re.compile(CDN_SLUG_PATTERN)

EMPTY_BUNDLE = "/* No published icons */"
EMPTY_BUNDLE_CACHE_CONTROL = "public, max-age=60"
BUNDLE_CACHE_CONTROL = "public, max-age=3600, stale-while-revalidate=86400"


class CdnService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.icon_repository = RepositoryFactory.create_icon_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)

    def list_published(self, clerk_user_id: str) -> List[GeneratedIcon]:
        return self.icon_repository.list_cdn_icons(clerk_user_id)

    @BaseService.measure_operation("publish_cdn_icon")
    def publish(self, clerk_user_id: str, icon_id: str, slug: str) -> GeneratedIcon:
        if not 1 <= len(slug) <= 100 or not _CDN_SLUG_RE.match(slug):
            raise ValidationException(
                "Slug must be lowercase alphanumeric with hyphens", code="invalid_slug"
            )
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None:
            raise ForbiddenException("No subscription found", code="no_subscription")
        max_cdn_icons = get_plan_config(subscription.plan_type).max_cdn_icons
        if max_cdn_icons == 0:
            raise ForbiddenException("CDN publishing is not available on the Free plan.", code="plan_limit")
        if len(self.icon_repository.list_cdn_icons(clerk_user_id)) >= max_cdn_icons:
            raise ForbiddenException(
                f"You've reached the maximum of {int(max_cdn_icons)} CDN icons for your plan.",
                code="plan_limit",
            )
        if self.icon_repository.get_by_cdn_slug(clerk_user_id, slug) is not None:
            raise ConflictException(
                f'Slug "{slug}" is already in use. Choose a different slug.', code="slug_taken"
            )

        icon = self.icon_repository.get_owned(icon_id, clerk_user_id)
        if icon is None:
            raise NotFoundException("Icon not found", code="icon_not_found")
        with self.transaction():
            self.icon_repository.update(icon, cdn_slug=slug)
        self.log_operation("cdn_published", icon_id=icon_id, slug=slug)
        return icon

    def unpublish(self, clerk_user_id: str, icon_id: str) -> None:
        icon = self.icon_repository.get_owned(icon_id, clerk_user_id)
        if icon is None:
            raise NotFoundException("Icon not found", code="icon_not_found")
        with self.transaction():
            self.icon_repository.update(icon, cdn_slug=None)

    def build_bundle(self, user_id: str) -> Optional[str]:
        """The user's bundle script, or None when nothing is published."""
        icons = self.icon_repository.list_cdn_icons(user_id)
        if not icons:
            return None
        return build_cdn_bundle(
            user_id,
            [
                CdnIcon(
                    slug=icon.cdn_slug or "",
                    svg_code=icon.svg_code,
                    animation=icon.animation,
                    trigger=icon.trigger,
                    duration=icon.duration or 0.5,
                )
                for icon in icons
            ],
        )
