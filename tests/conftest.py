# tests/conftest.py
"""
Pytest configuration for Lively Icons.

Every test runs against a fresh in-memory SQLite database. External
services are never contacted: Clerk and Recraft have no keys, email goes
to the console transport, and Celery enqueueing is captured in memory.
"""

import os

# Set the environment BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["CLERK_JWKS_URL"] = ""
os.environ.pop("CLERK_SECRET_KEY", None)
os.environ.pop("RECRAFT_API_KEY", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from lively_icons.auth import get_current_user_email, get_current_user_id
from lively_icons.core.enums import InvitationStatus, PlanType, SubscriptionStatus, TeamRole
from lively_icons.core.time_utils import utc_now
from lively_icons.database import Base, get_db
from lively_icons.database.engines import create_app_engine
from lively_icons.integrations.clerk_client import ClerkApiError, ClerkUser, UserEmailInfo
from lively_icons.main import app
import lively_icons.models  # noqa: F401  registers tables
from lively_icons.models.collection import Collection, CollectionIcon, SharedCollection
from lively_icons.models.icon import GeneratedIcon
from lively_icons.models.subscription import Subscription
from lively_icons.models.team import Team, TeamInvitation, TeamMember
from lively_icons.services.subscription_service import monthly_allotment

TEST_USER_ID = "user_test_owner"
OTHER_USER_ID = "user_test_other"
TEST_USER_EMAIL = "owner@example.com"

SIMPLE_SVG = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24"><path d="M12 2L2 22h20z" fill="currentColor"/></svg>'


@pytest.fixture
def engine():
    # Shared in-memory connection with foreign keys enforced
    engine = create_app_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def enqueued(monkeypatch) -> List[Dict[str, Any]]:
    """Capture Celery enqueues instead of talking to a broker."""
    calls: List[Dict[str, Any]] = []

    def fake_enqueue(task_name, args=None, kwargs=None, **options):
        calls.append({"task": task_name, "args": args or (), "kwargs": kwargs or {}, "options": options})
        return None

    monkeypatch.setattr("lively_icons.services.team_service.enqueue_task", fake_enqueue)
    monkeypatch.setattr("lively_icons.services.generation_service.enqueue_task", fake_enqueue)
    monkeypatch.setattr("lively_icons.tasks.dunning.enqueue_task", fake_enqueue)
    return calls


@pytest.fixture(autouse=True)
def _allow_rate_limit(monkeypatch):
    """Rate limiting needs Redis; tests exercise it separately with a fake client."""
    from lively_icons.services.rate_limit_service import RateLimitResult

    def always_allowed(identifier, plan_type, client=None, now_ms=None):
        return RateLimitResult(allowed=True, remaining=10, reset_at=utc_now(), retry_after=0)

    monkeypatch.setattr("lively_icons.services.generation_service.check_rate_limit", always_allowed)


class FakeClerkClient:
    """In-memory stand-in for the Clerk Backend API."""

    def __init__(self, users: Optional[Dict[str, UserEmailInfo]] = None):
        self.users = users or {}

    def get_user_email_info(self, clerk_user_id: str) -> Optional[UserEmailInfo]:
        return self.users.get(clerk_user_id)

    def get_user(self, clerk_user_id: str) -> ClerkUser:
        info = self.users.get(clerk_user_id)
        if info is None:
            raise ClerkApiError(f"User {clerk_user_id} not found", status_code=404)
        first, _, last = info.name.partition(" ")
        return ClerkUser(
            id=clerk_user_id, first_name=first, last_name=last or None, email=info.email, image_url=None
        )


class FakeRecraftClient:
    """Returns queued SVG payloads (or raises queued errors) in order."""

    def __init__(self, *responses: Any):
        self.responses = list(responses) or [SIMPLE_SVG]
        self.calls: List[Dict[str, Any]] = []

    def generate_svg(self, prompt: str, style: str, reference_image_url: Optional[str] = None) -> str:
        self.calls.append({"prompt": prompt, "style": style, "reference_image_url": reference_image_url})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeBlobStorage:
    def __init__(self, configured: bool = False):
        self.is_configured = configured
        self.objects: Dict[str, bytes] = {}

    def put(self, object_key: str, data: bytes, content_type: str) -> str:
        self.objects[object_key] = data
        return f"https://cdn.test/{object_key}"


class RecordingEmailService:
    """Records every email helper call by method name."""

    def __init__(self):
        self.sent: List[tuple] = []

    def __getattr__(self, name: str):
        if not name.startswith("send_"):
            raise AttributeError(name)

        def record(*args, **kwargs):
            self.sent.append((name, args, kwargs))
            return {"id": "test-email-id"}

        return record

    def names(self) -> List[str]:
        return [name for name, _, _ in self.sent]


@pytest.fixture
def clerk() -> FakeClerkClient:
    return FakeClerkClient(
        {
            TEST_USER_ID: UserEmailInfo(email=TEST_USER_EMAIL, name="Owner Person"),
            OTHER_USER_ID: UserEmailInfo(email="other@example.com", name="Other Person"),
        }
    )


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


# Factories


def make_subscription(
    db: Session,
    clerk_user_id: str = TEST_USER_ID,
    plan_type: str = PlanType.PRO.value,
    tokens_balance: Optional[int] = None,
    top_up_tokens: int = 0,
    status: str = SubscriptionStatus.ACTIVE.value,
    stripe_customer_id: Optional[str] = None,
) -> Subscription:
    subscription = Subscription(
        clerk_user_id=clerk_user_id,
        stripe_customer_id=stripe_customer_id or f"cus_{clerk_user_id}",
        plan_type=plan_type,
        status=status,
        tokens_balance=monthly_allotment(plan_type) if tokens_balance is None else tokens_balance,
        top_up_tokens=top_up_tokens,
    )
    db.add(subscription)
    db.commit()
    return subscription


def make_icon(
    db: Session,
    clerk_user_id: str = TEST_USER_ID,
    name: str = "Rocket",
    team_id: Optional[str] = None,
    style: str = "line",
    animation: str = "translate",
    **fields: Any,
) -> GeneratedIcon:
    values: Dict[str, Any] = {
        "clerk_user_id": clerk_user_id,
        "team_id": team_id,
        "name": name,
        "prompt": f"a {name.lower()} icon",
        "style": style,
        "animation": animation,
        "trigger": "hover",
        "svg_code": SIMPLE_SVG,
        "component_code": "export default function Icon() { return null; }",
        "duration": 0.5,
    }
    values.update(fields)
    icon = GeneratedIcon(**values)
    db.add(icon)
    db.commit()
    return icon


def make_team(
    db: Session,
    owner_id: str = TEST_USER_ID,
    name: str = "Design Crew",
    slug: str = "design-crew",
    members: Optional[Dict[str, str]] = None,
) -> Team:
    team = Team(name=name, slug=slug, owner_clerk_user_id=owner_id)
    db.add(team)
    db.flush()
    db.add(TeamMember(team_id=team.id, clerk_user_id=owner_id, role=TeamRole.ADMIN.value))
    for user_id, role in (members or {}).items():
        db.add(TeamMember(team_id=team.id, clerk_user_id=user_id, role=role))
    db.commit()
    return team


def make_invitation(
    db: Session,
    team: Team,
    email: str = "invitee@example.com",
    role: str = TeamRole.EDITOR.value,
    token: str = "tok-123",
    status: str = InvitationStatus.PENDING.value,
    expires_in: timedelta = timedelta(days=7),
) -> TeamInvitation:
    invitation = TeamInvitation(
        team_id=team.id,
        email=email,
        role=role,
        invited_by_clerk_user_id=team.owner_clerk_user_id,
        token=token,
        status=status,
        expires_at=utc_now() + expires_in,
    )
    db.add(invitation)
    db.commit()
    return invitation


def make_collection(
    db: Session,
    clerk_user_id: str = TEST_USER_ID,
    name: str = "Favorites",
    icons: Optional[List[GeneratedIcon]] = None,
    team_id: Optional[str] = None,
) -> Collection:
    collection = Collection(clerk_user_id=clerk_user_id, name=name, team_id=team_id)
    db.add(collection)
    db.flush()
    for icon in icons or []:
        db.add(CollectionIcon(collection_id=collection.id, icon_id=icon.id))
    db.commit()
    return collection


def make_share(
    db: Session,
    collection: Collection,
    slug: str = "abc123",
    password: Optional[str] = None,
    allow_embed: bool = True,
) -> SharedCollection:
    shared = SharedCollection(
        collection_id=collection.id, public_slug=slug, password=password, allow_embed=allow_embed
    )
    db.add(shared)
    db.commit()
    return shared


@contextmanager
def session_scope(db: Session):
    """Stand-in for ``get_db_session`` that hands tasks the test session."""
    yield db


# API client


@pytest.fixture
def current_user() -> Dict[str, Optional[str]]:
    """Mutable identity used by the auth overrides."""
    return {"id": TEST_USER_ID, "email": TEST_USER_EMAIL}


@pytest.fixture
def client(db, current_user, enqueued):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user_id] = lambda: current_user["id"]
    app.dependency_overrides[get_current_user_email] = lambda: current_user["email"]
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db):
    """Client without auth overrides: bearer validation runs for real."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
