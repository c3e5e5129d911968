"""Team lifecycle, membership, invitations and Slack settings."""

from datetime import timedelta

import httpx
import pytest

from lively_icons.core.exceptions import (
    ConflictException,
    ForbiddenException,
    GoneException,
    NotFoundException,
    UpstreamServiceException,
    ValidationException,
)
from lively_icons.models.team import TeamInvitation, TeamMember
from lively_icons.services.slack_service import SlackService, build_icon_generated_payload, truncate
from lively_icons.services.team_auth_service import TeamAuthService, has_role
from lively_icons.services.team_service import TeamService, validate_team_slug
from tests.conftest import (
    OTHER_USER_ID,
    TEST_USER_ID,
    make_icon,
    make_invitation,
    make_subscription,
    make_team,
)


@pytest.fixture
def slack_requests():
    return []


@pytest.fixture
def slack_status():
    return {"code": 200}


@pytest.fixture
def team_service(db, clerk, email_service, slack_requests, slack_status):
    def handler(request: httpx.Request) -> httpx.Response:
        slack_requests.append(request)
        return httpx.Response(slack_status["code"], text="ok")

    slack = SlackService(transport=httpx.MockTransport(handler))
    return TeamService(db, email_service=email_service, clerk_client=clerk, slack_service=slack)


class TestRoles:
    @pytest.mark.parametrize(
        "role,required,expected",
        [
            ("admin", "viewer", True),
            ("admin", "admin", True),
            ("editor", "editor", True),
            ("editor", "admin", False),
            ("viewer", "editor", False),
            ("owner", "viewer", False),
        ],
    )
    def test_has_role(self, role, required, expected):
        assert has_role(role, required) is expected

    def test_require_member_codes(self, db):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        auth = TeamAuthService(db)

        with pytest.raises(ForbiddenException) as not_member:
            auth.require_team_member(team.id, "user_stranger")
        assert not_member.value.code == "not_team_member"

        with pytest.raises(ForbiddenException) as low_role:
            auth.require_team_member(team.id, OTHER_USER_ID, "editor")
        assert low_role.value.code == "insufficient_role"

    def test_team_context_uses_owner_subscription(self, db):
        team = make_team(db, members={OTHER_USER_ID: "editor"})
        context = TeamAuthService(db).resolve_team_context(OTHER_USER_ID, team.id)
        assert context.is_team
        assert context.role == "editor"
        assert context.subscription_owner_id == TEST_USER_ID

        personal = TeamAuthService(db).resolve_team_context(OTHER_USER_ID)
        assert personal.is_team is False
        assert personal.subscription_owner_id == OTHER_USER_ID


class TestTeamLifecycle:
    @pytest.mark.parametrize("slug", ["ab", "-abc", "abc-", "Has-Caps", "a" * 51])
    def test_invalid_slugs(self, slug):
        with pytest.raises(ValidationException):
            validate_team_slug(slug)

    def test_create_requires_team_plan(self, db, team_service):
        make_subscription(db, plan_type="pro")
        with pytest.raises(ForbiddenException) as exc:
            team_service.create_team(TEST_USER_ID, "Crew", "crew")
        assert exc.value.code == "plan_required"

    def test_create_makes_owner_admin_and_emails(self, db, team_service, email_service):
        make_subscription(db, plan_type="team")
        team = team_service.create_team(TEST_USER_ID, "Crew", "crew")

        member = db.query(TeamMember).filter_by(team_id=team.id, clerk_user_id=TEST_USER_ID).one()
        assert member.role == "admin"
        assert email_service.names() == ["send_team_created"]

        teams = team_service.list_teams(TEST_USER_ID)
        assert [(t.slug, role) for t, role in teams] == [("crew", "admin")]

    def test_slug_taken(self, db, team_service):
        make_subscription(db, plan_type="team")
        make_team(db, owner_id="user_else", slug="crew")
        with pytest.raises(ConflictException) as exc:
            team_service.create_team(TEST_USER_ID, "Crew", "crew")
        assert exc.value.code == "slug_taken"

    def test_get_team_stats(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        make_icon(db, team_id=team.id)
        _, stats = team_service.get_team(OTHER_USER_ID, team.id)
        assert stats == {"memberCount": 2, "iconCount": 1}

    def test_update_requires_admin(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "editor"})
        with pytest.raises(ForbiddenException):
            team_service.update_team(OTHER_USER_ID, team.id, {"name": "Renamed"})

        updated = team_service.update_team(TEST_USER_ID, team.id, {"name": "Renamed", "slug": "renamed"})
        assert updated.name == "Renamed"
        assert updated.slug == "renamed"

    def test_delete_is_owner_only(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "admin"})
        with pytest.raises(ForbiddenException) as exc:
            team_service.delete_team(OTHER_USER_ID, team.id)
        assert exc.value.code == "owner_only"

        team_service.delete_team(TEST_USER_ID, team.id)
        assert db.query(TeamMember).filter_by(team_id=team.id).count() == 0


class TestMembers:
    def test_list_members_with_profiles(self, db, team_service):
        team = make_team(db, members={"user_unknown": "viewer"})
        profiles = team_service.list_members(TEST_USER_ID, team.id)

        by_user = {p.member.clerk_user_id: p for p in profiles}
        assert by_user[TEST_USER_ID].email == "owner@example.com"
        assert by_user[TEST_USER_ID].name == "Owner Person"
        assert by_user["user_unknown"].email is None

    def test_owner_role_is_protected(self, db, team_service):
        team = make_team(db)
        owner_member = db.query(TeamMember).filter_by(clerk_user_id=TEST_USER_ID).one()
        with pytest.raises(ForbiddenException) as exc:
            team_service.update_member_role(TEST_USER_ID, team.id, owner_member.id, "viewer")
        assert exc.value.code == "owner_protected"

    def test_admin_changes_role(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        target = db.query(TeamMember).filter_by(clerk_user_id=OTHER_USER_ID).one()
        assert team_service.update_member_role(TEST_USER_ID, team.id, target.id, "editor").role == "editor"

    def test_member_can_leave_without_email(self, db, team_service, email_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        target = db.query(TeamMember).filter_by(clerk_user_id=OTHER_USER_ID).one()

        team_service.remove_member(OTHER_USER_ID, team.id, target.id)

        assert db.query(TeamMember).filter_by(clerk_user_id=OTHER_USER_ID).count() == 0
        assert email_service.sent == []

    def test_admin_removal_emails_member(self, db, team_service, email_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        target = db.query(TeamMember).filter_by(clerk_user_id=OTHER_USER_ID).one()

        team_service.remove_member(TEST_USER_ID, team.id, target.id)

        name, args, _ = email_service.sent[0]
        assert name == "send_member_removed"
        assert args[0] == "other@example.com"
        assert args[-1] == "Owner Person"

    def test_viewer_cannot_remove_others(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer", "user_third": "viewer"})
        target = db.query(TeamMember).filter_by(clerk_user_id="user_third").one()
        with pytest.raises(ForbiddenException):
            team_service.remove_member(OTHER_USER_ID, team.id, target.id)

    def test_unknown_member(self, db, team_service):
        team = make_team(db)
        with pytest.raises(NotFoundException):
            team_service.remove_member(TEST_USER_ID, team.id, "missing")


class TestInvitations:
    def test_create_invitation_enqueues_email(self, db, team_service, enqueued):
        make_subscription(db, plan_type="team")
        team = make_team(db)

        invitation = team_service.create_invitation(TEST_USER_ID, team.id, "New@Example.com", "editor")

        assert invitation.email == "new@example.com"
        assert invitation.status == "pending"
        assert len(invitation.token) == 64
        assert enqueued == [
            {
                "task": "lively_icons.tasks.invitations.send_invitation_email",
                "args": (),
                "kwargs": {"invitation_id": invitation.id},
                "options": {},
            }
        ]

    def test_duplicate_pending_invitation(self, db, team_service):
        make_subscription(db, plan_type="team")
        team = make_team(db)
        make_invitation(db, team, email="dup@example.com")
        with pytest.raises(ConflictException) as exc:
            team_service.create_invitation(TEST_USER_ID, team.id, "DUP@example.com", "viewer")
        assert exc.value.code == "duplicate_invitation"

    def test_seat_limit_counts_pending(self, db, team_service):
        make_subscription(db, plan_type="team")
        team = make_team(db, members={"u2": "viewer", "u3": "viewer"})
        make_invitation(db, team, email="a@example.com", token="t1")
        make_invitation(db, team, email="b@example.com", token="t2")

        with pytest.raises(ForbiddenException) as exc:
            team_service.create_invitation(TEST_USER_ID, team.id, "c@example.com", "viewer")
        assert exc.value.code == "seat_limit"

    def test_revoke_only_pending(self, db, team_service):
        team = make_team(db)
        invitation = make_invitation(db, team)
        team_service.revoke_invitation(TEST_USER_ID, team.id, invitation.id)
        assert invitation.status == "revoked"

        with pytest.raises(ValidationException):
            team_service.revoke_invitation(TEST_USER_ID, team.id, invitation.id)

    def test_preview(self, db, team_service):
        team = make_team(db)
        invitation = make_invitation(db, team)
        preview = team_service.get_invitation_preview(invitation.token)
        assert preview.team_name == "Design Crew"
        assert preview.inviter_name == "Owner Person"

    def test_expired_invitation_is_marked(self, db, team_service):
        team = make_team(db)
        invitation = make_invitation(db, team, expires_in=timedelta(days=-1))
        with pytest.raises(GoneException) as exc:
            team_service.get_invitation_preview(invitation.token)
        assert exc.value.code == "invitation_expired"
        assert invitation.status == "expired"

    def test_used_invitation_is_gone(self, db, team_service):
        team = make_team(db)
        invitation = make_invitation(db, team, status="accepted")
        with pytest.raises(GoneException) as exc:
            team_service.accept_invitation(OTHER_USER_ID, invitation.token)
        assert exc.value.code == "invitation_invalid"
        assert exc.value.details == {"status": "accepted"}

    def test_accept_joins_team_and_welcomes(self, db, team_service, email_service):
        team = make_team(db)
        invitation = make_invitation(db, team, email="other@example.com", role="viewer")

        result = team_service.accept_invitation(OTHER_USER_ID, invitation.token, user_email="Other@Example.com")

        assert result.team_id == team.id
        assert result.role == "viewer"
        assert result.already_member is False
        assert invitation.status == "accepted"
        assert db.query(TeamMember).filter_by(team_id=team.id, clerk_user_id=OTHER_USER_ID).one().role == "viewer"
        assert email_service.names() == ["send_team_welcome"]

    def test_accept_email_mismatch(self, db, team_service):
        team = make_team(db)
        invitation = make_invitation(db, team, email="someone@example.com")
        with pytest.raises(ForbiddenException) as exc:
            team_service.accept_invitation(OTHER_USER_ID, invitation.token, user_email="other@example.com")
        assert exc.value.code == "email_mismatch"

    def test_accept_when_already_member(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "editor"})
        invitation = make_invitation(db, team, role="viewer")
        result = team_service.accept_invitation(OTHER_USER_ID, invitation.token)
        assert result.already_member is True
        assert result.role == "editor"

    def test_accept_pending_for_email_skips_welcome(self, db, team_service, email_service):
        first = make_team(db, slug="first-team")
        second = make_team(db, slug="second-team")
        make_invitation(db, first, email="new@example.com", token="a")
        make_invitation(db, second, email="NEW@example.com", token="b")

        joined = team_service.accept_pending_for_email("user_new", "new@example.com")

        assert sorted(joined) == sorted([first.id, second.id])
        assert email_service.sent == []

    def test_send_invitation_email(self, db, team_service, email_service):
        team = make_team(db)
        invitation = make_invitation(db, team)
        assert team_service.send_invitation_email(invitation.id) is True

        name, args, kwargs = email_service.sent[0]
        assert name == "send_team_invitation"
        assert args == ("invitee@example.com",)
        assert kwargs["accept_url"].endswith(f"/invite/{invitation.token}")
        assert kwargs["expires_in"] == "7 days"

        invitation.status = "revoked"
        db.commit()
        assert team_service.send_invitation_email(invitation.id) is False

    def test_expire_invitations(self, db, team_service):
        team = make_team(db)
        make_invitation(db, team, token="old", email="old@example.com", expires_in=timedelta(days=-2))
        make_invitation(db, team, token="new", email="new@example.com")

        assert team_service.expire_invitations() == 1
        db.expire_all()
        statuses = {i.token: i.status for i in db.query(TeamInvitation).all()}
        assert statuses == {"old": "expired", "new": "pending"}


class TestDashboard:
    def test_library_pagination_and_filters(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        for i in range(3):
            make_icon(db, name=f"Rocket {i}", team_id=team.id)
        make_icon(db, name="Star", team_id=team.id, clerk_user_id=OTHER_USER_ID, style="solid")

        icons, pagination = team_service.list_library(OTHER_USER_ID, team.id, limit=2)
        assert len(icons) == 2
        assert pagination == {"page": 1, "limit": 2, "total": 4, "totalPages": 2}

        icons, _ = team_service.list_library(OTHER_USER_ID, team.id, search="rocket")
        assert len(icons) == 3
        icons, _ = team_service.list_library(OTHER_USER_ID, team.id, created_by=OTHER_USER_ID)
        assert [i.name for i in icons] == ["Star"]

    def test_figma_export(self, db, team_service):
        team = make_team(db)
        make_icon(db, name="Rocket", team_id=team.id, tags=["space"])
        export = team_service.figma_export(TEST_USER_ID, team.id)
        assert export["version"] == 1
        assert export["teamId"] == team.id
        assert export["iconCount"] == 1
        assert export["icons"][0]["metadata"]["tags"] == ["space"]

    def test_analytics_requires_admin(self, db, team_service):
        make_subscription(db, plan_type="team", tokens_balance=100)
        team = make_team(db, members={OTHER_USER_ID: "editor"})
        make_icon(db, team_id=team.id, style="solid")

        with pytest.raises(ForbiddenException):
            team_service.get_analytics(OTHER_USER_ID, team.id)

        analytics = team_service.get_analytics(TEST_USER_ID, team.id, "7d")
        assert analytics["period"] == "7d"
        assert analytics["balance"] == {"monthly": 100, "topUp": 0, "total": 100}
        assert analytics["byStyle"] == [{"style": "solid", "count": 1}]
        assert analytics["byMember"] == [{"clerkUserId": TEST_USER_ID, "count": 1}]

    def test_create_collection_requires_editor(self, db, team_service):
        team = make_team(db, members={OTHER_USER_ID: "viewer", "user_editor": "editor"})
        with pytest.raises(ForbiddenException):
            team_service.create_collection(OTHER_USER_ID, team.id, "Brand")

        collection = team_service.create_collection("user_editor", team.id, "Brand", "Logos")
        assert collection.team_id == team.id
        assert [c.name for c in team_service.list_collections(OTHER_USER_ID, team.id)] == ["Brand"]


class TestSlack:
    def test_configure_rejects_foreign_urls(self, db, team_service):
        team = make_team(db)
        with pytest.raises(ValidationException) as exc:
            team_service.configure_slack(TEST_USER_ID, team.id, "https://example.com/hook")
        assert exc.value.code == "invalid_webhook"

    def test_configure_and_remove(self, db, team_service):
        team = make_team(db)
        team_service.configure_slack(TEST_USER_ID, team.id, "https://hooks.slack.com/services/x", "#icons")
        assert team_service.get_slack_config(TEST_USER_ID, team.id).slack_channel_name == "#icons"

        team_service.remove_slack(TEST_USER_ID, team.id)
        assert team.slack_webhook_url is None

    def test_test_message_requires_configuration(self, db, team_service):
        team = make_team(db)
        with pytest.raises(ValidationException) as exc:
            team_service.send_slack_test(TEST_USER_ID, team.id)
        assert exc.value.code == "slack_not_configured"

    def test_test_message_failure_is_upstream_error(self, db, team_service, slack_status):
        team = make_team(db)
        team_service.configure_slack(TEST_USER_ID, team.id, "https://hooks.slack.com/services/x")
        slack_status["code"] = 404
        with pytest.raises(UpstreamServiceException) as exc:
            team_service.send_slack_test(TEST_USER_ID, team.id)
        assert exc.value.code == "slack_failed"

    def test_notify_icon_generated(self, db, team_service, slack_requests):
        team = make_team(db)
        assert team_service.notify_icon_generated(team.id, "Rocket", "line", "a rocket", TEST_USER_ID) is False

        team_service.configure_slack(TEST_USER_ID, team.id, "https://hooks.slack.com/services/x", "#icons")
        assert team_service.notify_icon_generated(team.id, "Rocket", "line", "a rocket", TEST_USER_ID) is True
        assert len(slack_requests) == 1
        assert b"Owner Person" in slack_requests[0].content

    def test_payload_truncates_prompt(self):
        payload = build_icon_generated_payload(
            team_name="Crew", icon_name=None, style=None, prompt="x" * 150, creator_name="Ana", channel="#c"
        )
        assert payload["channel"] == "#c"
        prompt_field = payload["blocks"][1]["fields"][3]["text"]
        assert prompt_field.endswith("...")
        assert len(truncate("y" * 150, 100)) == 100
