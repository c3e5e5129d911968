"""Generation pipeline: eligibility, charging, persistence and batches."""

import base64
from datetime import datetime, timezone
import struct

import httpx
import pytest

from lively_icons.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    RateLimitException,
    UpstreamServiceException,
    ValidationException,
)
from lively_icons.integrations.recraft_client import RecraftApiError, RecraftClient
from lively_icons.models.batch_job import BatchJob
from lively_icons.models.icon import GeneratedIcon, GenerationEvent
from lively_icons.services.generation_service import GenerationService, derive_icon_name
from lively_icons.services.rate_limit_service import RateLimitResult
from lively_icons.services.token_service import TokenService
from tests.conftest import (
    OTHER_USER_ID,
    SIMPLE_SVG,
    TEST_USER_ID,
    FakeBlobStorage,
    FakeRecraftClient,
    make_icon,
    make_subscription,
    make_team,
)


SIMPLE_FAIL = RecraftApiError("upstream timeout", status_code=504)


def _recraft_replying(*b64_payloads):
    """Real client whose endpoint answers each call with the next b64_json payload."""
    payloads = list(b64_payloads)

    def handler(request):
        return httpx.Response(200, json={"data": [{"b64_json": payloads.pop(0)}]})

    return RecraftClient(api_key="test-key", transport=httpx.MockTransport(handler))


def _service(db, recraft=None, storage=None):
    return GenerationService(
        db,
        recraft_client=recraft or FakeRecraftClient(),
        blob_storage=storage or FakeBlobStorage(),
    )


def _balance(db, user_id=TEST_USER_ID):
    return TokenService(db).get_balance(user_id).total


def _png(width=128, height=128):
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + struct.pack(">II", width, height) + b"\x00" * 8


class TestDeriveName:
    def test_strips_symbols(self):
        assert derive_icon_name("A rocket! (blue) #1") == "A rocket blue 1"

    def test_truncates_to_80(self):
        assert len(derive_icon_name("x" * 200)) == 80

    def test_fallback(self):
        assert derive_icon_name("!!!", "Batch Icon") == "Batch Icon"


class TestGenerate:
    def test_generates_and_charges(self, db):
        make_subscription(db, plan_type="pro")
        recraft = FakeRecraftClient('<svg width="24" height="24"><path d="M0 0" fill="#000000"/></svg>')

        result = _service(db, recraft).generate(TEST_USER_ID, "a red heart", "line")

        icon = result.icon
        assert result.tokens_remaining == 499
        assert icon.name == "a red heart"
        assert icon.animation == "heartbeat"
        assert icon.trigger == "hover"
        assert icon.duration == 0.5
        assert 'fill="currentColor"' in icon.svg_code
        assert "const ARedHeart = " in icon.component_code
        assert icon.preview_url == ""
        assert recraft.calls[0]["style"] == "line"
        assert recraft.calls[0]["prompt"].startswith("Create a single vector icon: a red heart.")

        event = db.query(GenerationEvent).one()
        assert event.event_type == "generate"
        assert event.tokens_used == 1
        assert event.event_metadata == {"style": "line", "animation": "heartbeat"}

    def test_explicit_presets_win(self, db):
        make_subscription(db, plan_type="pro")
        icon = _service(db).generate(
            TEST_USER_ID, "a red heart", "solid", animation="spin", trigger="loop", duration=2
        ).icon
        assert (icon.animation, icon.trigger, icon.duration) == ("spin", "loop", 2)

    def test_uploads_preview_when_storage_configured(self, db):
        make_subscription(db, plan_type="pro")
        storage = FakeBlobStorage(configured=True)
        icon = _service(db, storage=storage).generate(TEST_USER_ID, "a cloud", "line").icon
        assert icon.blob_storage_key == f"icons/{TEST_USER_ID}/{icon.id}.svg"
        assert icon.preview_url == f"https://cdn.test/{icon.blob_storage_key}"
        assert icon.blob_storage_key in storage.objects

    def test_moderation_rejects_before_anything_else(self, db):
        recraft = FakeRecraftClient()
        with pytest.raises(ValidationException) as exc:
            _service(db, recraft).generate(TEST_USER_ID, "a gun", "line")
        assert exc.value.code == "moderation"
        assert recraft.calls == []

    def test_ineligible_user(self, db):
        make_subscription(db, plan_type="free", tokens_balance=0)
        with pytest.raises(ForbiddenException) as exc:
            _service(db).generate(TEST_USER_ID, "a rocket", "line")
        assert exc.value.code == "not_eligible"
        assert "free trial tokens" in exc.value.message

    def test_model_failure_is_not_charged(self, db):
        make_subscription(db, plan_type="pro")
        recraft = FakeRecraftClient(RecraftApiError("boom", status_code=503))
        with pytest.raises(UpstreamServiceException) as exc:
            _service(db, recraft).generate(TEST_USER_ID, "a rocket", "line")
        assert exc.value.code == "generation_failed"
        assert _balance(db) == 500
        assert db.query(GeneratedIcon).count() == 0

    def test_undecodable_model_reply_is_an_upstream_failure(self, db):
        make_subscription(db, plan_type="pro")
        recraft = _recraft_replying(base64.b64encode(b"\xff\xfe\xfd").decode())
        with pytest.raises(UpstreamServiceException) as exc:
            _service(db, recraft).generate(TEST_USER_ID, "a rocket", "line")
        assert exc.value.code == "generation_failed"
        assert _balance(db) == 500

    def test_invalid_svg_is_not_charged(self, db):
        make_subscription(db, plan_type="pro")
        recraft = FakeRecraftClient("sorry, no icon today")
        with pytest.raises(UpstreamServiceException) as exc:
            _service(db, recraft).generate(TEST_USER_ID, "a rocket", "line")
        assert exc.value.code == "invalid_svg"
        assert exc.value.details == {"errors": ["No valid SVG element found in response"]}
        assert _balance(db) == 500

    def test_rate_limited(self, db, monkeypatch):
        make_subscription(db, plan_type="pro")

        def blocked(identifier, plan_type, client=None, now_ms=None):
            return RateLimitResult(
                allowed=False, remaining=0, reset_at=datetime(2030, 1, 1, tzinfo=timezone.utc), retry_after=42
            )

        monkeypatch.setattr("lively_icons.services.generation_service.check_rate_limit", blocked)
        with pytest.raises(RateLimitException) as exc:
            _service(db).generate(TEST_USER_ID, "a rocket", "line")
        assert exc.value.headers()["Retry-After"] == "42"
        assert _balance(db) == 500

    def test_team_generation_spends_owner_tokens_and_notifies(self, db, enqueued):
        make_subscription(db, plan_type="team", tokens_balance=10)
        team = make_team(db, members={OTHER_USER_ID: "editor"})

        result = _service(db).generate(OTHER_USER_ID, "a rocket", "line", team_id=team.id)

        assert result.icon.team_id == team.id
        assert result.icon.clerk_user_id == OTHER_USER_ID
        assert _balance(db) == 9
        assert [call["task"] for call in enqueued] == ["lively_icons.tasks.slack.notify_icon_generated"]
        assert enqueued[0]["kwargs"]["creator_id"] == OTHER_USER_ID

    def test_team_viewer_cannot_generate(self, db):
        make_subscription(db, plan_type="team")
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        with pytest.raises(ForbiddenException) as exc:
            _service(db).generate(OTHER_USER_ID, "a rocket", "line", team_id=team.id)
        assert exc.value.code == "insufficient_role"


class TestRefine:
    def test_refine_creates_child(self, db):
        make_subscription(db, plan_type="pro")
        parent = make_icon(db, name="Rocket", tags=["space"], color="#f00", duration=1.0)
        recraft = FakeRecraftClient()

        icon = _service(db, recraft).refine(TEST_USER_ID, parent.id, "make it blue").icon

        assert icon.name == "Rocket (refined)"
        assert icon.parent_icon_id == parent.id
        assert icon.prompt == "a rocket icon (Refined: make it blue)"
        assert icon.tags == ["space"]
        assert icon.color == "#f00"
        assert icon.duration == 1.0
        assert "Requested change: make it blue." in recraft.calls[0]["prompt"]
        assert db.query(GenerationEvent).one().event_type == "refine"

    def test_refine_other_users_icon(self, db):
        make_subscription(db, plan_type="pro")
        parent = make_icon(db, clerk_user_id=OTHER_USER_ID)
        with pytest.raises(NotFoundException):
            _service(db).refine(TEST_USER_ID, parent.id, "make it blue")

    def test_refine_team_icon_requires_same_team(self, db):
        make_subscription(db, plan_type="team")
        team = make_team(db)
        other_team = make_team(db, slug="other-team")
        parent = make_icon(db, team_id=other_team.id)
        with pytest.raises(NotFoundException):
            _service(db).refine(TEST_USER_ID, parent.id, "bolder lines", team_id=team.id)


class TestGenerateFromReference:
    def test_invalid_image(self, db):
        with pytest.raises(ValidationException) as exc:
            _service(db).generate_from_reference(
                TEST_USER_ID, image=b"", content_type="image/png", prompt="a cat", style="line"
            )
        assert exc.value.code == "invalid_image"

    def test_uploads_reference_and_passes_url(self, db):
        make_subscription(db, plan_type="pro")
        storage = FakeBlobStorage(configured=True)
        recraft = FakeRecraftClient()

        icon = _service(db, recraft, storage).generate_from_reference(
            TEST_USER_ID, image=_png(), content_type="image/png", prompt="a cat", style="line"
        ).icon

        assert icon.reference_image_url == f"https://cdn.test/references/{TEST_USER_ID}/{icon.id}.png"
        assert recraft.calls[0]["reference_image_url"] == icon.reference_image_url
        assert f"icons/{TEST_USER_ID}/{icon.id}.svg" in storage.objects


class TestBatches:
    def test_free_plan_cannot_batch(self, db):
        make_subscription(db, plan_type="free")
        with pytest.raises(ForbiddenException) as exc:
            _service(db).create_batch(TEST_USER_ID, ["a cat", "a dog"], "line")
        assert exc.value.code == "plan_required"

    def test_batch_moderation_names_prompt(self, db):
        make_subscription(db, plan_type="pro")
        with pytest.raises(ValidationException) as exc:
            _service(db).create_batch(TEST_USER_ID, ["a cat", "a bomb"], "line")
        assert exc.value.details == {"prompt": "a bomb"}

    def test_insufficient_tokens_for_batch(self, db):
        make_subscription(db, plan_type="pro", tokens_balance=1)
        with pytest.raises(ForbiddenException) as exc:
            _service(db).create_batch(TEST_USER_ID, ["a cat", "a dog"], "line")
        assert exc.value.message == "Batch requires 2 tokens but you have 1."

    def test_create_charges_upfront_and_enqueues(self, db, enqueued):
        make_subscription(db, plan_type="pro")
        result = _service(db).create_batch(TEST_USER_ID, ["a cat", "a dog", "a fish"], "line", trigger="loop")

        assert result.tokens_cost == 3
        assert result.tokens_remaining == 497
        assert result.batch.status == "queued"
        assert enqueued == [
            {
                "task": "lively_icons.tasks.batch.generate_batch",
                "args": (),
                "kwargs": {"batch_id": result.batch.id, "trigger": "loop", "duration": 0.5},
                "options": {},
            }
        ]

    def test_run_batch_counts_failures(self, db):
        make_subscription(db, plan_type="pro")
        service = _service(db, FakeRecraftClient(SIMPLE_FAIL, '<svg><path d="M0 0"/></svg>'))
        batch = service.create_batch(TEST_USER_ID, ["a cat", "a dog"], "line").batch

        summary = service.run_batch(batch.id)

        assert summary == {"batch_id": batch.id, "completed": 1, "failed": 1, "total": 2}
        assert batch.status == "completed"
        assert batch.completed_at is not None
        loaded, icons = service.get_batch(TEST_USER_ID, batch.id)
        assert [icon.name for icon in icons] == ["a dog"]
        assert loaded.progress == 1.0

    def test_run_batch_counts_unexpected_errors(self, db):
        make_subscription(db, plan_type="pro")
        service = _service(db, FakeRecraftClient(ValueError("bad payload"), SIMPLE_SVG))
        batch = service.create_batch(TEST_USER_ID, ["a cat", "a dog"], "line").batch

        summary = service.run_batch(batch.id)

        assert summary == {"batch_id": batch.id, "completed": 1, "failed": 1, "total": 2}
        assert batch.status == "completed"
        assert batch.completed_at is not None

    def test_run_batch_survives_undecodable_reply(self, db):
        make_subscription(db, plan_type="pro")
        recraft = _recraft_replying(
            base64.b64encode(b"\xff\xfe\xfd").decode(),
            base64.b64encode(SIMPLE_SVG.encode()).decode(),
        )
        service = _service(db, recraft)
        batch = service.create_batch(TEST_USER_ID, ["a cat", "a dog"], "line").batch

        summary = service.run_batch(batch.id)

        assert (summary["completed"], summary["failed"]) == (1, 1)
        assert db.get(BatchJob, batch.id).status == "completed"

    def test_run_batch_all_failed(self, db):
        make_subscription(db, plan_type="pro")
        service = _service(db, FakeRecraftClient(SIMPLE_FAIL))
        batch = service.create_batch(TEST_USER_ID, ["a cat"], "line").batch
        service.run_batch(batch.id)
        assert db.get(BatchJob, batch.id).status == "failed"

    def test_get_batch_of_other_user(self, db):
        make_subscription(db, plan_type="pro")
        batch = _service(db).create_batch(TEST_USER_ID, ["a cat"], "line").batch
        with pytest.raises(NotFoundException):
            _service(db).get_batch(OTHER_USER_ID, batch.id)

