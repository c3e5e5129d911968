# lively_icons/services/template_library_service.py
"""Style templates: reusable prompt/style presets with per-plan limits."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import get_plan_config
from ..core.enums import TeamRole
from ..core.exceptions import ForbiddenException, NotFoundException
from ..models.style_template import StyleTemplate
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .team_auth_service import TeamAuthService

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = (
    "name",
    "prompt_modifier",
    "style",
    "color",
    "stroke_weight",
    "animation",
    "trigger",
    "duration",
    "is_shared",
)


class StyleTemplateService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.template_repository = RepositoryFactory.create_style_template_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.team_auth = TeamAuthService(db)

    def list_templates(self, clerk_user_id: str) -> Tuple[List[StyleTemplate], List[StyleTemplate]]:
        """Personal templates plus templates shared in any of the user's teams."""
        personal = self.template_repository.list_for_user(clerk_user_id)
        personal_ids = {template.id for template in personal}
        shared: List[StyleTemplate] = []
        for team, _ in self.team_auth.get_teams_for_user(clerk_user_id):
            shared.extend(
                template
                for template in self.template_repository.list_shared_for_team(team.id)
                if template.id not in personal_ids
            )
        return personal, shared

    @BaseService.measure_operation("create_template")
    def create_template(self, clerk_user_id: str, fields: Dict[str, Any], team_id: Optional[str] = None) -> StyleTemplate:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None:
            raise ForbiddenException("No subscription found", code="no_subscription")
        max_templates = get_plan_config(subscription.plan_type).max_templates
        if max_templates == 0:
            raise ForbiddenException(
                "Templates are not available on the Free plan. Upgrade to Pro to create templates.",
                code="plan_limit",
            )
        if self.template_repository.count(clerk_user_id=clerk_user_id) >= max_templates:
            raise ForbiddenException(
                f"You've reached the maximum of {int(max_templates)} templates for your plan.",
                code="plan_limit",
            )
        if team_id is not None:
            self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.EDITOR.value)

        values = {field: fields.get(field) for field in TEMPLATE_FIELDS}
        values["is_shared"] = bool(values["is_shared"])
        with self.transaction():
            template = self.template_repository.create(clerk_user_id=clerk_user_id, team_id=team_id, **values)
        self.log_operation("template_created", template_id=template.id)
        return template

    def _require_owned(self, clerk_user_id: str, template_id: str) -> StyleTemplate:
        template = self.template_repository.get_owned(template_id, clerk_user_id)
        if template is None:
            raise NotFoundException("Template not found", code="template_not_found")
        return template

    @BaseService.measure_operation("update_template")
    def update_template(self, clerk_user_id: str, template_id: str, changes: Dict[str, Any]) -> StyleTemplate:
        template = self._require_owned(clerk_user_id, template_id)
        updates = {field: changes[field] for field in TEMPLATE_FIELDS if changes.get(field) is not None}
        with self.transaction():
            self.template_repository.update(template, **updates)
        return template

    def delete_template(self, clerk_user_id: str, template_id: str) -> None:
        template = self._require_owned(clerk_user_id, template_id)
        with self.transaction():
            self.template_repository.delete(template)
