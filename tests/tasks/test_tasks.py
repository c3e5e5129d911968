"""Celery task bodies, run eagerly against the test session."""

from datetime import timedelta

import pytest

from lively_icons.core.time_utils import utc_now
from lively_icons.models.subscription import Subscription
from lively_icons.models.team import TeamInvitation
from lively_icons.services.dunning_service import DunningService
from lively_icons.services.generation_service import GenerationService
from lively_icons.services.team_service import TeamService
from lively_icons.tasks.batch import generate_batch
from lively_icons.tasks.dunning import dunning_step, start_dunning
from lively_icons.tasks.invitations import expire_invitations, send_invitation_email
from lively_icons.tasks.tokens import refresh_due_tokens
from tests.conftest import (
    OTHER_USER_ID,
    TEST_USER_ID,
    FakeBlobStorage,
    FakeRecraftClient,
    make_invitation,
    make_subscription,
    make_team,
    session_scope,
)

DAY = 24 * 60 * 60


@pytest.fixture
def task_db(db, monkeypatch):
    for module in ("tokens", "dunning", "invitations", "batch"):
        monkeypatch.setattr(f"lively_icons.tasks.{module}.get_db_session", lambda: session_scope(db))
    return db


class TestTokenRefresh:
    def test_refreshes_only_due_paid_subscriptions(self, task_db):
        due = make_subscription(task_db, plan_type="pro", tokens_balance=100)
        due.tokens_refresh_date = utc_now() - timedelta(days=1)
        free = make_subscription(task_db, clerk_user_id=OTHER_USER_ID, plan_type="free", tokens_balance=1)
        free.tokens_refresh_date = utc_now() - timedelta(days=1)
        task_db.commit()

        assert refresh_due_tokens.run() == {"refreshed": 1, "failed": 0}

        refreshed = task_db.get(Subscription, due.id)
        assert refreshed.tokens_balance == 600
        assert task_db.get(Subscription, free.id).tokens_balance == 1

    def test_nothing_due(self, task_db):
        make_subscription(task_db, plan_type="pro")
        assert refresh_due_tokens.run() == {"refreshed": 0, "failed": 0}


class TestDunningTasks:
    @pytest.fixture
    def past_due(self, task_db, monkeypatch, email_service, clerk):
        monkeypatch.setattr(
            "lively_icons.tasks.dunning.DunningService",
            lambda db: DunningService(db, email_service=email_service, clerk_client=clerk),
        )
        subscription = make_subscription(task_db, plan_type="pro", status="past_due")
        subscription.past_due_since = utc_now()
        task_db.commit()
        return subscription

    def test_start_schedules_first_stage(self, enqueued):
        start_dunning(TEST_USER_ID, None)
        assert enqueued == [
            {
                "task": "lively_icons.tasks.dunning.dunning_step",
                "args": (),
                "kwargs": {"clerk_user_id": TEST_USER_ID, "stage": "payment_failed", "past_due_since": None},
                "options": {"countdown": 3 * DAY},
            }
        ]

    def test_step_emails_and_schedules_next(self, past_due, enqueued, email_service):
        stamp = past_due.past_due_since.isoformat()

        result = dunning_step.run(TEST_USER_ID, "payment_failed", stamp)

        assert result == {"stage": "payment_failed", "outcome": "sent", "next": "access_warning"}
        assert email_service.names() == ["send_payment_failed"]
        assert enqueued[-1]["kwargs"] == {
            "clerk_user_id": TEST_USER_ID,
            "stage": "access_warning",
            "past_due_since": stamp,
        }
        assert enqueued[-1]["options"] == {"countdown": 4 * DAY}

    def test_resolved_sequence_stops(self, past_due, task_db, enqueued, email_service):
        past_due.status = "active"
        past_due.past_due_since = None
        task_db.commit()

        result = dunning_step.run(TEST_USER_ID, "access_warning", None)

        assert result == {"stage": "access_warning", "outcome": "resolved", "next": None}
        assert enqueued == []
        assert email_service.sent == []


class TestInvitationTasks:
    @pytest.fixture(autouse=True)
    def team_service(self, monkeypatch, email_service, clerk):
        monkeypatch.setattr(
            "lively_icons.tasks.invitations.TeamService",
            lambda db: TeamService(db, email_service=email_service, clerk_client=clerk),
        )

    def test_sends_pending_invitation(self, task_db, email_service):
        invitation = make_invitation(task_db, make_team(task_db), token="tok-email")

        assert send_invitation_email.run(invitation.id) == {"invitation_id": invitation.id, "sent": True}

        name, args, kwargs = email_service.sent[0]
        assert name == "send_team_invitation"
        assert args == ("invitee@example.com",)
        assert kwargs["inviter_name"] == "Owner Person"
        assert kwargs["team_name"] == "Design Crew"
        assert kwargs["accept_url"].endswith("tok-email")

    def test_skips_revoked_invitation(self, task_db, email_service):
        invitation = make_invitation(task_db, make_team(task_db), status="revoked")
        assert send_invitation_email.run(invitation.id)["sent"] is False
        assert email_service.sent == []

    def test_expires_stale_invitations(self, task_db):
        team = make_team(task_db)
        stale = make_invitation(task_db, team, token="tok-stale", expires_in=timedelta(days=-1))
        fresh = make_invitation(task_db, team, email="fresh@example.com", token="tok-fresh")

        assert expire_invitations.run() == {"expired": 1}

        task_db.expire_all()
        assert task_db.get(TeamInvitation, stale.id).status == "expired"
        assert task_db.get(TeamInvitation, fresh.id).status == "pending"


def test_generate_batch_task(task_db, monkeypatch):
    make_subscription(task_db, plan_type="pro")
    service = GenerationService(task_db, recraft_client=FakeRecraftClient(), blob_storage=FakeBlobStorage())
    batch = service.create_batch(TEST_USER_ID, ["a cat", "a dog"], "line").batch
    monkeypatch.setattr("lively_icons.tasks.batch.GenerationService", lambda db: service)

    result = generate_batch.run(batch.id)

    assert result == {"batch_id": batch.id, "completed": 2, "failed": 0, "total": 2}
    assert batch.status == "completed"


def test_generate_batch_is_not_retried(task_db, monkeypatch):
    calls = []

    class ExplodingService:
        def __init__(self, db):
            pass

        def run_batch(self, batch_id, trigger=None, duration=None):
            calls.append(batch_id)
            raise RuntimeError("worker lost")

    monkeypatch.setattr("lively_icons.tasks.batch.GenerationService", ExplodingService)

    result = generate_batch.apply(kwargs={"batch_id": "batch-1"}, throw=False)

    assert result.failed()
    assert calls == ["batch-1"]
    assert generate_batch.autoretry_for == ()
