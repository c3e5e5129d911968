# lively_icons/services/template_service.py
"""
Template rendering service for Lively Icons.

Provides centralized Jinja2 rendering for the transactional email
templates under ``lively_icons/templates``.
"""

from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME, EMAIL_ACCENT_COLOR
from ..core.time_utils import format_long_date
from .base import BaseService
from .template_registry import TemplateRegistry

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


class TemplateService(BaseService):
    """
    Centralized template rendering service using Jinja2.

    Rendering does not touch the database, so the session is optional.
    """

    def __init__(self, db: Optional[Session] = None):
        super().__init__(db)  # type: ignore[arg-type]

        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._register_custom_filters()

    def _register_custom_filters(self) -> None:
        def currency(cents: int) -> str:
            return f"${cents / 100:,.2f}"

        def long_date(value: Any, fallback: str = "") -> str:
            if isinstance(value, str):
                return value
            return format_long_date(value, fallback)

        self.env.filters["currency"] = currency
        self.env.filters["long_date"] = long_date

    def get_common_context(self) -> Dict[str, Any]:
        """Variables every email template can rely on."""
        return {
            "brand_name": BRAND_NAME,
            "accent_color": EMAIL_ACCENT_COLOR,
            "current_year": datetime.now().year,
            "app_url": settings.app_url,
        }

    @BaseService.measure_operation("render_template")
    def render_template(
        self,
        template_name: TemplateRegistry | str,
        context: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> str:
        """
        Render a template with the common context merged under ``context``.

        Raises:
            TemplateNotFound: If the template doesn't exist
        """
        name = template_name.value if isinstance(template_name, TemplateRegistry) else template_name
        try:
            template = self.env.get_template(name)
        except TemplateNotFound:
            self.logger.error(f"Template not found: {name}")
            raise

        full_context = self.get_common_context()
        if context:
            full_context.update(context)
        full_context.update(kwargs)
        return template.render(full_context)

    def template_exists(self, template_name: str) -> bool:
        try:
            self.env.get_template(template_name)
            return True
        except TemplateNotFound:
            return False
