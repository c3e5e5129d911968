"""Team, member, invitation and Slack endpoints."""

from datetime import timedelta

import pytest

from lively_icons.main import app
from lively_icons.routes import invitations as invitation_routes
from lively_icons.routes import teams as team_routes
from lively_icons.services.team_service import TeamService
from tests.conftest import (
    OTHER_USER_ID,
    TEST_USER_ID,
    make_invitation,
    make_subscription,
    make_team,
)


@pytest.fixture
def team_client(client, db, clerk, email_service):
    def service():
        return TeamService(db, email_service=email_service, clerk_client=clerk)

    app.dependency_overrides[team_routes.get_team_service] = service
    app.dependency_overrides[invitation_routes.get_team_service] = service
    return client


class TestTeams:
    def test_create_requires_team_plan(self, team_client, db):
        make_subscription(db, plan_type="pro")
        response = team_client.post("/api/teams", json={"name": "Crew", "slug": "crew"})
        assert response.status_code == 403
        assert response.json() == {
            "error": "A Team plan subscription is required to create a team.",
            "status": 403,
            "code": "plan_required",
        }

    def test_create_validates_slug(self, team_client, db):
        make_subscription(db, plan_type="team")
        response = team_client.post("/api/teams", json={"name": "Crew", "slug": "Bad Slug"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "validation_error"
        assert body["error"] == "Invalid request"

    def test_create_and_list(self, team_client, db, email_service):
        make_subscription(db, plan_type="team")

        created = team_client.post("/api/teams", json={"name": "Crew", "slug": "crew"})

        assert created.status_code == 201
        team = created.json()["team"]
        assert team["slug"] == "crew"
        assert team["ownerClerkUserId"] == TEST_USER_ID
        assert "slackWebhookUrl" not in team
        assert email_service.names() == ["send_team_created"]

        listed = team_client.get("/api/teams").json()["teams"]
        assert [(t["id"], t["role"]) for t in listed] == [(team["id"], "admin")]

    def test_duplicate_slug(self, team_client, db):
        make_subscription(db, plan_type="team")
        make_team(db, owner_id=OTHER_USER_ID, slug="crew")
        response = team_client.post("/api/teams", json={"name": "Crew", "slug": "crew"})
        assert response.status_code == 409
        assert response.json()["code"] == "slug_taken"

    def test_detail_with_stats(self, team_client, db):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        body = team_client.get(f"/api/teams/{team.id}").json()
        assert body["team"]["name"] == "Design Crew"
        assert body["stats"] == {"memberCount": 2, "iconCount": 0}

    def test_non_member_is_forbidden(self, team_client, db):
        team = make_team(db, owner_id=OTHER_USER_ID)
        response = team_client.get(f"/api/teams/{team.id}")
        assert response.status_code == 403
        assert response.json()["code"] == "not_team_member"

    @pytest.mark.parametrize("method", ["PATCH", "PUT"])
    def test_update(self, team_client, db, method):
        team = make_team(db)
        response = team_client.request(method, f"/api/teams/{team.id}", json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["team"]["name"] == "Renamed"

    def test_delete(self, team_client, db):
        team = make_team(db)
        assert team_client.delete(f"/api/teams/{team.id}").json() == {"deleted": True}
        assert team_client.get(f"/api/teams/{team.id}").status_code == 404


class TestMembers:
    def test_members_include_profiles(self, team_client, db):
        team = make_team(db, members={OTHER_USER_ID: "editor"})
        members = team_client.get(f"/api/teams/{team.id}/members").json()["members"]
        by_user = {m["clerkUserId"]: m for m in members}
        assert by_user[OTHER_USER_ID]["name"] == "Other Person"
        assert by_user[OTHER_USER_ID]["email"] == "other@example.com"
        assert by_user[TEST_USER_ID]["role"] == "admin"

    def test_change_role(self, team_client, db):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        members = team_client.get(f"/api/teams/{team.id}/members").json()["members"]
        other = next(m for m in members if m["clerkUserId"] == OTHER_USER_ID)

        response = team_client.patch(f"/api/teams/{team.id}/members/{other['id']}", json={"role": "editor"})

        assert response.status_code == 200
        assert response.json()["member"]["role"] == "editor"

    def test_invalid_role_rejected(self, team_client, db):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        response = team_client.patch(f"/api/teams/{team.id}/members/anything", json={"role": "owner"})
        assert response.status_code == 400


class TestInvitations:
    def test_create_hides_token_and_queues_email(self, team_client, db, enqueued):
        make_subscription(db, plan_type="team")
        team = make_team(db)

        response = team_client.post(
            f"/api/teams/{team.id}/invitations", json={"email": "New@Example.com", "role": "editor"}
        )

        assert response.status_code == 201
        invitation = response.json()["invitation"]
        assert invitation["email"] == "new@example.com"
        assert invitation["status"] == "pending"
        assert "token" not in invitation
        assert enqueued[-1]["task"] == "lively_icons.tasks.invitations.send_invitation_email"
        assert enqueued[-1]["kwargs"] == {"invitation_id": invitation["id"]}

    def test_invalid_email(self, team_client, db):
        team = make_team(db)
        response = team_client.post(
            f"/api/teams/{team.id}/invitations", json={"email": "not-an-email", "role": "editor"}
        )
        assert response.status_code == 400

    def test_preview(self, team_client, db):
        team = make_team(db)
        make_invitation(db, team, token="tok-preview")

        body = team_client.get("/api/invitations/tok-preview").json()

        assert body["teamName"] == "Design Crew"
        assert body["teamSlug"] == "design-crew"
        assert body["inviterName"] == "Owner Person"
        assert body["role"] == "editor"

    def test_preview_of_expired_invitation(self, team_client, db):
        team = make_team(db)
        make_invitation(db, team, token="tok-old", expires_in=timedelta(days=-1))
        response = team_client.get("/api/invitations/tok-old")
        assert response.status_code == 410
        assert response.json()["code"] == "invitation_expired"

    def test_accept(self, team_client, db, current_user):
        team = make_team(db)
        make_invitation(db, team, email="other@example.com", token="tok-accept")
        current_user.update(id=OTHER_USER_ID, email="other@example.com")

        response = team_client.post("/api/invitations/accept", json={"token": "tok-accept"})

        assert response.status_code == 200
        assert response.json() == {"accepted": True, "teamId": team.id, "role": "editor"}

    def test_accept_with_other_email(self, team_client, db, current_user):
        team = make_team(db)
        make_invitation(db, team, email="someone@example.com", token="tok-mismatch")
        current_user.update(id=OTHER_USER_ID, email="other@example.com")

        response = team_client.post("/api/invitations/accept", json={"token": "tok-mismatch"})

        assert response.status_code == 403
        assert response.json()["code"] == "email_mismatch"

    def test_revoke(self, team_client, db):
        team = make_team(db)
        invitation = make_invitation(db, team)
        response = team_client.delete(f"/api/teams/{team.id}/invitations/{invitation.id}")
        assert response.json() == {"revoked": True}
        assert team_client.get(f"/api/teams/{team.id}/invitations").json() == {"invitations": []}
        assert team_client.delete(f"/api/teams/{team.id}/invitations/{invitation.id}").status_code == 400


class TestTeamCollectionsAndSlack:
    def test_team_collection_create_and_list(self, team_client, db):
        team = make_team(db)
        created = team_client.post(f"/api/teams/{team.id}/collections", json={"name": "Shared set"})
        assert created.status_code == 201
        assert created.json()["collection"]["teamId"] == team.id
        listed = team_client.get(f"/api/teams/{team.id}/collections").json()["collections"]
        assert [c["name"] for c in listed] == ["Shared set"]

    def test_viewer_cannot_create_team_collection(self, team_client, db, current_user):
        team = make_team(db, members={OTHER_USER_ID: "viewer"})
        current_user["id"] = OTHER_USER_ID
        response = team_client.post(f"/api/teams/{team.id}/collections", json={"name": "Nope"})
        assert response.status_code == 403

    def test_slack_config_round_trip(self, team_client, db):
        team = make_team(db)
        url = "https://hooks.slack.com/services/T000/B000/XXXX"

        saved = team_client.put(
            f"/api/teams/{team.id}/integrations/slack", json={"webhookUrl": url, "channelName": "#icons"}
        )

        assert saved.json() == {"slackWebhookUrl": url, "slackChannelName": "#icons"}
        assert team_client.get(f"/api/teams/{team.id}/integrations/slack").json()["slackChannelName"] == "#icons"
        assert team_client.delete(f"/api/teams/{team.id}/integrations/slack").json() == {"removed": True}

    def test_slack_rejects_foreign_urls(self, team_client, db):
        team = make_team(db)
        response = team_client.put(
            f"/api/teams/{team.id}/integrations/slack", json={"webhookUrl": "https://example.com/hook"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_webhook"


def test_teams_require_authentication(anonymous_client):
    response = anonymous_client.get("/api/teams")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "status": 401, "code": "unauthenticated"}
