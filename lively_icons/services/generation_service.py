# lively_icons/services/generation_service.py
"""
Generation Service for Lively Icons

Turns prompts into stored icons. Every path follows the same pipeline:

    moderate -> eligibility (personal or team) -> rate limit -> build prompt
    -> Recraft -> validate/normalize SVG -> charge tokens -> store blob
    -> component code -> persist icon + usage event -> notifications

Tokens are only charged once the model returned a valid SVG, so upstream
failures never cost the caller anything. Batches are the exception: the
whole batch is charged upfront when it is queued.
"""

from dataclasses import dataclass
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import token_cost
from ..core.enums import BatchStatus, GenerationEventType, PlanType, TeamRole
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    ServiceException,
    UpstreamServiceException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..integrations.recraft_client import RecraftApiError, RecraftClient
from ..models.batch_job import BatchJob
from ..models.icon import GeneratedIcon
from ..models.types import new_uuid
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..tasks.enqueue import enqueue_task
from .base import BaseService
from .blob_storage import BlobStorageClient, BlobStorageError, icon_storage_key
from .icons.code_generator import generate_react_component
from .icons.content_moderation import moderate_prompt
from .icons.image_reference import get_reference_image_key, validate_reference_image
from .icons.prompt_templates import (
    build_icon_prompt,
    build_refinement_prompt,
    suggest_animation,
    suggest_trigger,
)
from .icons.svg_validator import validate_and_normalize_svg
from .rate_limit_service import check_rate_limit
from .subscription_service import SubscriptionService
from .team_auth_service import TeamAuthService
from .team_token_service import TeamTokenService
from .token_service import TokenService

logger = logging.getLogger(__name__)

_NAME_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s-]")

DEFAULT_DURATION = 0.5
TEAM_RATE_LIMIT_PLAN = "team"


def derive_icon_name(prompt: str, fallback: str = "Generated Icon") -> str:
    """First 80 characters of the prompt, reduced to letters, digits, spaces and dashes."""
    name = _NAME_DISALLOWED.sub("", prompt[:80]).strip()
    return name or fallback


@dataclass
class GenerationResult:
    icon: GeneratedIcon
    tokens_remaining: int


@dataclass
class BatchStartResult:
    batch: BatchJob
    tokens_cost: int
    tokens_remaining: int


class GenerationService(BaseService):
    def __init__(
        self,
        db: Session,
        recraft_client: Optional[RecraftClient] = None,
        blob_storage: Optional[BlobStorageClient] = None,
        token_service: Optional[TokenService] = None,
    ):
        super().__init__(db)
        self.icon_repository = RepositoryFactory.create_icon_repository(db)
        self.event_repository = RepositoryFactory.create_generation_event_repository(db)
        self.batch_repository = RepositoryFactory.create_batch_job_repository(db)
        self.subscription_service = SubscriptionService(db)
        self.team_auth = TeamAuthService(db)
        self.token_service = token_service or TokenService(db)
        self.team_tokens = TeamTokenService(db, token_service=self.token_service)
        self.recraft = recraft_client or RecraftClient()
        self.blob_storage = blob_storage or BlobStorageClient()

    # Guards

    @staticmethod
    def _moderate(prompt: str) -> None:
        moderation = moderate_prompt(prompt)
        if not moderation.allowed:
            raise ValidationException(moderation.reason or "Prompt rejected.", code="moderation")

    def _authorize(self, clerk_user_id: str, team_id: Optional[str], cost: int) -> str:
        """
        Check eligibility and rate limits for a generation of ``cost`` tokens.

        Returns the plan type used for personal generation (``team`` in team
        context).
        """
        if team_id:
            self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.EDITOR.value)
            allowance = self.team_tokens.can_team_generate(team_id)
            if not allowance.allowed:
                raise ForbiddenException(allowance.reason or "Forbidden", code="not_eligible")
            if allowance.tokens_remaining < cost:
                raise ForbiddenException(
                    "Insufficient team tokens for this generation.", code="insufficient_tokens"
                )
            rate = check_rate_limit(f"team:{team_id}", TEAM_RATE_LIMIT_PLAN)
            if not rate.allowed:
                exc = rate.to_exception()
                exc.message = f"Team rate limit exceeded. Try again in {rate.retry_after} seconds."
                raise exc
            return TEAM_RATE_LIMIT_PLAN

        eligibility = self.subscription_service.can_generate(clerk_user_id)
        if not eligibility.allowed:
            raise ForbiddenException(eligibility.reason or "Forbidden", code="not_eligible")
        if eligibility.tokens_remaining < cost:
            raise ForbiddenException("Insufficient tokens for this generation.", code="insufficient_tokens")
        rate = check_rate_limit(clerk_user_id, eligibility.plan_type)
        if not rate.allowed:
            raise rate.to_exception()
        return eligibility.plan_type

    # Pipeline steps

    def _call_model(
        self,
        prompt: str,
        style: str,
        failure_message: str,
        reference_image_url: Optional[str] = None,
    ) -> str:
        try:
            raw_svg = self.recraft.generate_svg(prompt, style, reference_image_url=reference_image_url)
        except RecraftApiError as exc:
            self.logger.error(f"Recraft API error ({exc.status_code}): {exc.message}")
            raise UpstreamServiceException(failure_message, code="generation_failed")

        validation = validate_and_normalize_svg(raw_svg)
        if not validation.valid:
            self.logger.error(f"SVG validation failed: {validation.errors}")
            raise UpstreamServiceException(
                "Generated SVG failed validation. No token was charged. Please try again.",
                code="invalid_svg",
                details={"errors": validation.errors},
            )
        return validation.svg

    def _charge(self, clerk_user_id: str, team_id: Optional[str], cost: int) -> int:
        result = (
            self.team_tokens.deduct_team_tokens(team_id, cost)
            if team_id
            else self.token_service.deduct_tokens(clerk_user_id, cost)
        )
        if not result.success:
            raise ForbiddenException("Insufficient token balance.", code="insufficient_tokens")
        return result.remaining

    def _store_svg(self, clerk_user_id: str, icon_id: str, svg: str) -> Tuple[str, str]:
        """Upload the SVG; returns (preview_url, key), both empty when storage is unavailable."""
        if not self.blob_storage.is_configured:
            self.logger.warning("Blob storage is not configured; icon stored without preview")
            return "", ""
        key = icon_storage_key(clerk_user_id, icon_id)
        try:
            url = self.blob_storage.put(key, svg.encode("utf-8"), "image/svg+xml")
        except BlobStorageError as exc:
            self.logger.error(f"Failed to store icon {icon_id}: {exc}")
            return "", ""
        return url, key

    def _persist(
        self,
        *,
        event_type: GenerationEventType,
        tokens_used: int,
        **fields: Any,
    ) -> GeneratedIcon:
        with self.transaction():
            icon = self.icon_repository.create(**fields)
            self.event_repository.record(
                clerk_user_id=icon.clerk_user_id,
                team_id=icon.team_id,
                event_type=event_type.value,
                tokens_used=tokens_used,
                icon_id=icon.id,
                metadata={"style": icon.style, "animation": icon.animation},
            )
        prometheus_metrics.record_icon_generated(event_type.value, icon.style)
        return icon

    def _after_generation(self, clerk_user_id: str, icon: GeneratedIcon, plan_type: str, remaining: int) -> None:
        if icon.team_id:
            self._notify_team(icon)
        else:
            self.token_service.notify_low_balance(clerk_user_id, remaining, plan_type)

    def _notify_team(self, icon: GeneratedIcon) -> None:
        try:
            enqueue_task(
                "lively_icons.tasks.slack.notify_icon_generated",
                kwargs={
                    "team_id": icon.team_id,
                    "icon_name": icon.name,
                    "style": icon.style,
                    "prompt": icon.prompt,
                    "creator_id": icon.clerk_user_id,
                },
            )
        except Exception as exc:
            self.logger.error(f"Failed to enqueue Slack notification for {icon.id}: {exc}")

    # Operations

    @BaseService.measure_operation("generate_icon")
    def generate(
        self,
        clerk_user_id: str,
        prompt: str,
        style: str,
        animation: Optional[str] = None,
        trigger: Optional[str] = None,
        duration: Optional[float] = None,
        team_id: Optional[str] = None,
    ) -> GenerationResult:
        self._moderate(prompt)
        cost = token_cost("generate")
        plan_type = self._authorize(clerk_user_id, team_id, cost)

        svg = self._call_model(
            build_icon_prompt(prompt, style),
            style,
            "AI generation failed. No token was charged. Please try again.",
        )
        remaining = self._charge(clerk_user_id, team_id, cost)

        duration = duration or DEFAULT_DURATION
        resolved_animation = animation or suggest_animation(prompt)
        resolved_trigger = trigger or suggest_trigger(prompt)
        name = derive_icon_name(prompt)
        icon_id = new_uuid()
        preview_url, key = self._store_svg(clerk_user_id, icon_id, svg)

        icon = self._persist(
            event_type=GenerationEventType.GENERATE,
            tokens_used=cost,
            id=icon_id,
            clerk_user_id=clerk_user_id,
            team_id=team_id,
            name=name,
            prompt=prompt,
            style=style,
            animation=resolved_animation,
            trigger=resolved_trigger,
            svg_code=svg,
            component_code=generate_react_component(svg, name, resolved_animation, resolved_trigger, duration),
            preview_url=preview_url,
            blob_storage_key=key,
            duration=duration,
        )
        self.log_operation("icon_generated", clerk_user_id=clerk_user_id, icon_id=icon.id, team_id=team_id)
        self._after_generation(clerk_user_id, icon, plan_type, remaining)
        return GenerationResult(icon=icon, tokens_remaining=remaining)

    @BaseService.measure_operation("refine_icon")
    def refine(
        self,
        clerk_user_id: str,
        icon_id: str,
        instruction: str,
        team_id: Optional[str] = None,
    ) -> GenerationResult:
        self._moderate(instruction)
        if team_id:
            self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.EDITOR.value)
            parent = self.icon_repository.get_live(icon_id)
            if parent is not None and parent.team_id != team_id:
                parent = None
        else:
            parent = self.icon_repository.get_owned(icon_id, clerk_user_id)
        if parent is None:
            raise NotFoundException("Icon not found", code="icon_not_found")

        cost = token_cost("refine")
        plan_type = self._authorize(clerk_user_id, team_id, cost)

        svg = self._call_model(
            build_refinement_prompt(parent.prompt, instruction, parent.style),
            parent.style,
            "AI refinement failed. No token was charged. Please try again.",
        )
        remaining = self._charge(clerk_user_id, team_id, cost)

        duration = parent.duration or DEFAULT_DURATION
        name = f"{parent.name} (refined)"[:255]
        new_id = new_uuid()
        preview_url, key = self._store_svg(clerk_user_id, new_id, svg)

        icon = self._persist(
            event_type=GenerationEventType.REFINE,
            tokens_used=cost,
            id=new_id,
            clerk_user_id=clerk_user_id,
            team_id=team_id,
            name=name,
            prompt=f"{parent.prompt} (Refined: {instruction})",
            style=parent.style,
            animation=parent.animation,
            trigger=parent.trigger,
            svg_code=svg,
            component_code=generate_react_component(svg, name, parent.animation, parent.trigger, duration),
            preview_url=preview_url,
            blob_storage_key=key,
            tags=parent.tags,
            color=parent.color,
            stroke_weight=parent.stroke_weight,
            duration=duration,
            parent_icon_id=parent.id,
        )
        self.log_operation("icon_refined", clerk_user_id=clerk_user_id, icon_id=icon.id, parent_id=parent.id)
        self._after_generation(clerk_user_id, icon, plan_type, remaining)
        return GenerationResult(icon=icon, tokens_remaining=remaining)

    @BaseService.measure_operation("generate_from_reference")
    def generate_from_reference(
        self,
        clerk_user_id: str,
        *,
        image: bytes,
        content_type: str,
        prompt: str,
        style: str,
        animation: Optional[str] = None,
        trigger: Optional[str] = None,
        duration: Optional[float] = None,
        team_id: Optional[str] = None,
    ) -> GenerationResult:
        """Upload a reference image and generate an icon guided by it."""
        image_check = validate_reference_image(image, content_type)
        if not image_check.valid:
            raise ValidationException(
                "Invalid image", code="invalid_image", details={"reasons": image_check.errors}
            )
        self._moderate(prompt)
        cost = token_cost("generate")
        plan_type = self._authorize(clerk_user_id, team_id, cost)

        if not self.blob_storage.is_configured:
            raise ServiceException("Reference image storage is not configured.", code="storage_unavailable")
        icon_id = new_uuid()
        reference_key = get_reference_image_key(clerk_user_id, icon_id, content_type)
        try:
            reference_url = self.blob_storage.put(reference_key, image, content_type)
        except BlobStorageError as exc:
            self.logger.error(f"Reference upload failed for {clerk_user_id}: {exc}")
            raise UpstreamServiceException("Failed to upload reference image.", code="upload_failed")

        svg = self._call_model(
            build_icon_prompt(prompt, style),
            style,
            "AI generation from reference failed. No token was charged. Please try again.",
            reference_image_url=reference_url,
        )
        remaining = self._charge(clerk_user_id, team_id, cost)

        duration = duration or DEFAULT_DURATION
        resolved_animation = animation or suggest_animation(prompt)
        resolved_trigger = trigger or suggest_trigger(prompt)
        name = derive_icon_name(prompt, "Reference Icon")
        preview_url, _ = self._store_svg(clerk_user_id, icon_id, svg)

        icon = self._persist(
            event_type=GenerationEventType.GENERATE,
            tokens_used=cost,
            id=icon_id,
            clerk_user_id=clerk_user_id,
            team_id=team_id,
            name=name,
            prompt=prompt,
            style=style,
            animation=resolved_animation,
            trigger=resolved_trigger,
            svg_code=svg,
            component_code=generate_react_component(svg, name, resolved_animation, resolved_trigger, duration),
            preview_url=preview_url,
            blob_storage_key=reference_key,
            reference_image_url=reference_url,
            duration=duration,
        )
        self._after_generation(clerk_user_id, icon, plan_type, remaining)
        return GenerationResult(icon=icon, tokens_remaining=remaining)

    # Batches

    @BaseService.measure_operation("create_batch")
    def create_batch(
        self,
        clerk_user_id: str,
        prompts: List[str],
        style: str,
        animation: Optional[str] = None,
        trigger: Optional[str] = None,
        duration: Optional[float] = None,
        team_id: Optional[str] = None,
    ) -> BatchStartResult:
        """Validate, charge the whole batch upfront and queue it for the worker."""
        if team_id:
            self.team_auth.require_team_member(team_id, clerk_user_id, TeamRole.EDITOR.value)
        else:
            subscription = self.subscription_service.get_subscription(clerk_user_id)
            if subscription is None:
                raise ForbiddenException("No subscription found", code="no_subscription")
            if subscription.plan_type == PlanType.FREE.value:
                raise ForbiddenException(
                    "Batch generation requires a Pro or higher plan.", code="plan_required"
                )

        for prompt in prompts:
            moderation = moderate_prompt(prompt)
            if not moderation.allowed:
                raise ValidationException(
                    moderation.reason or "Prompt rejected.", code="moderation", details={"prompt": prompt}
                )

        total_cost = token_cost("batch_generate", len(prompts))
        if team_id:
            allowance = self.team_tokens.can_team_generate(team_id)
            if not allowance.allowed:
                raise ForbiddenException(allowance.reason or "Forbidden", code="not_eligible")
            if allowance.tokens_remaining < total_cost:
                raise ForbiddenException(
                    f"Batch requires {total_cost} tokens but the team has {allowance.tokens_remaining}.",
                    code="insufficient_tokens",
                )
        else:
            eligibility = self.subscription_service.can_generate(clerk_user_id)
            if not eligibility.allowed:
                raise ForbiddenException(eligibility.reason or "Forbidden", code="not_eligible")
            if eligibility.tokens_remaining < total_cost:
                raise ForbiddenException(
                    f"Batch requires {total_cost} tokens but you have {eligibility.tokens_remaining}.",
                    code="insufficient_tokens",
                )

        remaining = self._charge(clerk_user_id, team_id, total_cost)

        with self.transaction():
            batch = self.batch_repository.create(
                clerk_user_id=clerk_user_id,
                team_id=team_id,
                status=BatchStatus.QUEUED.value,
                total_prompts=len(prompts),
                completed_count=0,
                failed_count=0,
                prompts=list(prompts),
                style=style,
                animation=animation,
                icon_ids=[],
            )

        enqueue_task(
            "lively_icons.tasks.batch.generate_batch",
            kwargs={
                "batch_id": batch.id,
                "trigger": trigger,
                "duration": duration or DEFAULT_DURATION,
            },
        )
        self.log_operation("batch_queued", clerk_user_id=clerk_user_id, batch_id=batch.id, prompts=len(prompts))
        return BatchStartResult(batch=batch, tokens_cost=total_cost, tokens_remaining=remaining)

    def get_batch(self, clerk_user_id: str, batch_id: str) -> Tuple[BatchJob, List[GeneratedIcon]]:
        batch = self.batch_repository.get_owned(batch_id, clerk_user_id)
        if batch is None:
            raise NotFoundException("Batch job not found", code="batch_not_found")
        icons = [
            icon
            for icon in (self.icon_repository.get_live(icon_id) for icon_id in batch.icon_ids or [])
            if icon is not None
        ]
        return batch, icons

    def _generate_batch_icon(
        self, batch: BatchJob, prompt: str, trigger: Optional[str], duration: float
    ) -> Optional[GeneratedIcon]:
        try:
            svg = self._call_model(
                build_icon_prompt(prompt, batch.style),
                batch.style,
                "AI generation failed.",
            )
            resolved_animation = batch.animation or suggest_animation(prompt)
            resolved_trigger = trigger or suggest_trigger(prompt)
            name = derive_icon_name(prompt, "Batch Icon")
            icon_id = new_uuid()
            preview_url, key = self._store_svg(batch.clerk_user_id, icon_id, svg)
            return self._persist(
                event_type=GenerationEventType.GENERATE,
                tokens_used=token_cost("batch_generate"),
                id=icon_id,
                clerk_user_id=batch.clerk_user_id,
                team_id=batch.team_id,
                name=name,
                prompt=prompt,
                style=batch.style,
                animation=resolved_animation,
                trigger=resolved_trigger,
                svg_code=svg,
                component_code=generate_react_component(
                    svg, name, resolved_animation, resolved_trigger, duration
                ),
                preview_url=preview_url,
                blob_storage_key=key,
                duration=duration,
            )
        except UpstreamServiceException as exc:
            self.logger.warning(f"Batch {batch.id} prompt failed: {exc.message}")
        except Exception as exc:
            self.logger.warning(f"Batch {batch.id} prompt failed: {exc}", exc_info=True)
        return None

    @BaseService.measure_operation("run_batch")
    def run_batch(
        self, batch_id: str, trigger: Optional[str] = None, duration: float = DEFAULT_DURATION
    ) -> Dict[str, Any]:
        """
        Generate every prompt of a queued batch, recording progress after each one.

        Individual prompt failures are counted; the batch only fails when
        every prompt failed.
        """
        batch = self.batch_repository.get_by_id(batch_id)
        if batch is None:
            raise NotFoundException("Batch job not found", code="batch_not_found")

        with self.transaction():
            self.batch_repository.update(batch, status=BatchStatus.PROCESSING.value)

        icon_ids: List[str] = []
        failed = 0
        for prompt in batch.prompts:
            icon = self._generate_batch_icon(batch, prompt, trigger, duration)
            if icon is None:
                failed += 1
            else:
                icon_ids.append(icon.id)
            with self.transaction():
                self.batch_repository.update(
                    batch, completed_count=len(icon_ids), failed_count=failed, icon_ids=list(icon_ids)
                )

        status = BatchStatus.FAILED if failed == len(batch.prompts) else BatchStatus.COMPLETED
        with self.transaction():
            self.batch_repository.update(batch, status=status.value, completed_at=utc_now())

        self.log_operation("batch_finished", batch_id=batch_id, completed=len(icon_ids), failed=failed)
        return {
            "batch_id": batch_id,
            "completed": len(icon_ids),
            "failed": failed,
            "total": len(batch.prompts),
        }
