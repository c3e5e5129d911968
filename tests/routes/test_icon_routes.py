"""Generation, library, collection, sharing, CDN and template endpoints."""

import io
import struct
import zipfile

import pytest

from lively_icons.main import app
from lively_icons.routes import ai as ai_routes
from lively_icons.services.generation_service import GenerationService
from tests.conftest import (
    OTHER_USER_ID,
    TEST_USER_ID,
    FakeBlobStorage,
    FakeRecraftClient,
    make_collection,
    make_icon,
    make_share,
    make_subscription,
)


@pytest.fixture
def storage():
    return FakeBlobStorage(configured=True)


@pytest.fixture
def ai_client(client, db, storage):
    app.dependency_overrides[ai_routes.get_generation_service] = lambda: GenerationService(
        db, recraft_client=FakeRecraftClient(), blob_storage=storage
    )
    return client


def _png(width=256, height=256):
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + struct.pack(">II", width, height) + b"\x00" * 8


class TestGenerationRoutes:
    def test_generate(self, ai_client, db):
        make_subscription(db, plan_type="pro")

        response = ai_client.post("/api/ai/generate", json={"prompt": "a red heart", "style": "line"})

        assert response.status_code == 200
        body = response.json()
        assert body["suggestedAnimation"] == "heartbeat"
        assert body["suggestedTrigger"] == "hover"
        assert body["tokensRemaining"] == 499
        assert body["svgCode"].startswith("<svg")
        assert "ARedHeart" in body["componentCode"]

    def test_unknown_style_is_a_validation_error(self, ai_client, db):
        response = ai_client.post("/api/ai/generate", json={"prompt": "a red heart", "style": "neon"})
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_moderated_prompt(self, ai_client, db):
        make_subscription(db, plan_type="pro")
        response = ai_client.post("/api/ai/generate", json={"prompt": "a bomb", "style": "line"})
        assert response.status_code == 400
        assert response.json()["code"] == "moderation"

    def test_out_of_tokens(self, ai_client, db):
        make_subscription(db, plan_type="free", tokens_balance=0)
        response = ai_client.post("/api/ai/generate", json={"prompt": "a rocket", "style": "line"})
        assert response.status_code == 403
        assert response.json()["code"] == "not_eligible"

    def test_refine(self, ai_client, db):
        make_subscription(db, plan_type="pro")
        parent = make_icon(db)

        response = ai_client.post("/api/ai/refine", json={"iconId": parent.id, "instruction": "thicker lines"})

        body = response.json()
        assert body["parentIconId"] == parent.id
        assert body["iconId"] != parent.id
        assert body["tokensRemaining"] == 499

    def test_upload_reference(self, ai_client, db, storage):
        make_subscription(db, plan_type="pro")

        response = ai_client.post(
            "/api/ai/upload-reference",
            files={"image": ("ref.png", _png(), "image/png")},
            data={"prompt": "a cat", "style": "solid"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["referenceImageUrl"].startswith(f"https://cdn.test/references/{TEST_USER_ID}/")
        assert any(key.startswith("references/") for key in storage.objects)

    def test_upload_reference_rejects_unknown_style(self, ai_client, db):
        response = ai_client.post(
            "/api/ai/upload-reference",
            files={"image": ("ref.png", _png(), "image/png")},
            data={"prompt": "a cat", "style": "neon"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_style"

    def test_upload_reference_requires_image(self, ai_client, db):
        response = ai_client.post("/api/ai/upload-reference", data={"prompt": "a cat", "style": "line"})
        assert response.status_code == 400
        assert response.json()["code"] == "missing_image"

    def test_batch_is_queued_and_pollable(self, ai_client, db, enqueued):
        make_subscription(db, plan_type="pro")

        queued = ai_client.post("/api/ai/batch", json={"prompts": ["a cat", "a dog"], "style": "line"})

        assert queued.status_code == 202
        body = queued.json()
        assert body["status"] == "queued"
        assert body["tokensCost"] == 2
        assert body["tokensRemaining"] == 498
        assert enqueued[-1]["task"] == "lively_icons.tasks.batch.generate_batch"

        status = ai_client.get(f"/api/ai/batch/{body['batchId']}").json()
        assert status["totalPrompts"] == 2
        assert status["completedCount"] == 0
        assert status["icons"] == []

    def test_batch_of_another_user(self, ai_client, db, current_user):
        make_subscription(db, plan_type="pro")
        batch_id = ai_client.post("/api/ai/batch", json={"prompts": ["a cat"], "style": "line"}).json()["batchId"]
        current_user["id"] = OTHER_USER_ID
        assert ai_client.get(f"/api/ai/batch/{batch_id}").status_code == 404


class TestLibraryRoutes:
    def test_list_get_update_delete(self, client, db):
        icon = make_icon(db, name="Rocket")
        make_icon(db, clerk_user_id=OTHER_USER_ID, name="Not mine")

        listed = client.get("/api/user/library").json()
        assert listed["count"] == 1
        assert listed["icons"][0]["name"] == "Rocket"

        updated = client.patch(f"/api/user/library/{icon.id}", json={"name": "Moon Rocket", "tags": ["space"]})
        assert updated.json()["icon"]["name"] == "Moon Rocket"
        assert updated.json()["icon"]["tags"] == ["space"]

        assert client.delete(f"/api/user/library/{icon.id}").json() == {"success": True}
        missing = client.get(f"/api/user/library/{icon.id}")
        assert missing.status_code == 404
        assert missing.json()["status"] == 404

    def test_export_animated_svg(self, client, db):
        icon = make_icon(db, name="My Icon")
        response = client.post(
            f"/api/user/library/{icon.id}/export-animated", json={"format": "animated-svg", "size": 128}
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")
        assert 'filename="my-icon-animated.svg"' in response.headers["content-disposition"]

    def test_gif_export_not_implemented(self, client, db):
        icon = make_icon(db)
        response = client.post(f"/api/user/library/{icon.id}/export-animated", json={"format": "gif"})
        assert response.status_code == 501


class TestCollectionRoutes:
    def test_create_add_and_get(self, client, db):
        icon = make_icon(db)

        created = client.post("/api/user/collections", json={"name": "Space", "description": "Rockets"})
        assert created.status_code == 201
        collection_id = created.json()["collection"]["id"]

        added = client.post(f"/api/user/collections/{collection_id}/icons", json={"iconIds": [icon.id]})
        assert added.json() == {"success": True, "addedCount": 1}

        missing = client.post(f"/api/user/collections/{collection_id}/icons", json={"iconIds": ["nope"]})
        assert missing.status_code == 400
        assert missing.json()["invalidIds"] == ["nope"]

        detail = client.get(f"/api/user/collections/{collection_id}").json()
        assert detail["collection"]["name"] == "Space"
        assert [i["id"] for i in detail["icons"]] == [icon.id]
        assert detail["icons"][0]["addedAt"] is not None

        summaries = client.get("/api/user/collections").json()["collections"]
        assert summaries[0]["iconCount"] == 1
        assert summaries[0]["shareUrl"] is None

    def test_export_via_query(self, client, db):
        collection = make_collection(db, name="Space Set", icons=[make_icon(db, name="Rocket")])

        response = client.get(
            f"/api/user/collections/{collection.id}/export", params=[("formats", "svg"), ("formats", "react")]
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["space-set/README.md", "space-set/rocket.svg", "space-set/rocket.tsx"]

    def test_export_via_body(self, client, db):
        collection = make_collection(db, name="Set", icons=[make_icon(db, name="One")])
        response = client.post(f"/api/user/collections/{collection.id}/export", json={"formats": ["vue"]})
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["set/README.md", "set/one.vue"]

    def test_export_empty_collection(self, client, db):
        collection = make_collection(db)
        response = client.get(f"/api/user/collections/{collection.id}/export")
        assert response.status_code == 400
        assert response.json()["code"] == "collection_empty"

    def test_share_requires_team_plan(self, client, db):
        make_subscription(db, plan_type="pro")
        collection = make_collection(db)
        response = client.post(f"/api/user/collections/{collection.id}/share")
        assert response.status_code == 403

    def test_share_and_unshare(self, client, db):
        make_subscription(db, plan_type="team")
        collection = make_collection(db)

        shared = client.post(f"/api/user/collections/{collection.id}/share", json={"password": "s3cret"})

        assert shared.status_code == 201
        body = shared.json()
        assert body["shareUrl"].endswith(f"/shared/{body['share']['publicSlug']}")
        assert client.delete(f"/api/user/collections/{collection.id}/share").status_code == 200


class TestSharedRoutes:
    def test_public_view_counts(self, anonymous_client, db):
        collection = make_collection(db, name="Public", icons=[make_icon(db)])
        make_share(db, collection, slug="pub123")

        body = anonymous_client.get("/api/shared/pub123").json()

        assert body["collection"] == {"name": "Public", "description": None, "iconCount": 1}
        assert body["viewCount"] == 1
        assert body["allowEmbed"] is True

    def test_password_protected(self, anonymous_client, db):
        make_share(db, make_collection(db), slug="locked", password="s3cret")

        denied = anonymous_client.get("/api/shared/locked")
        assert denied.status_code == 401
        body = denied.json()
        assert body["passwordProtected"] is True
        assert body["code"] == "password_required"
        assert "details" not in body

        allowed = anonymous_client.get("/api/shared/locked", headers={"x-share-password": "s3cret"})
        assert allowed.status_code == 200

    def test_embed_script(self, anonymous_client, db):
        make_share(db, make_collection(db, icons=[make_icon(db)]), slug="emb")
        make_share(db, make_collection(db, name="Other"), slug="noemb", allow_embed=False)

        script = anonymous_client.get("/api/shared/emb/embed.js")
        assert script.status_code == 200
        assert script.headers["access-control-allow-origin"] == "*"
        assert script.headers["content-type"].startswith("application/javascript")

        blocked = anonymous_client.get("/api/shared/noemb/embed.js")
        assert blocked.status_code == 404
        assert blocked.text == "// Collection not found or embedding disabled"


class TestCdnRoutes:
    def test_empty_bundle(self, anonymous_client, db):
        response = anonymous_client.get(f"/api/cdn/{TEST_USER_ID}/icons.js")
        assert response.text == "/* No published icons */"
        assert response.headers["cache-control"] == "public, max-age=60"

    def test_publish_then_bundle(self, client, db):
        make_subscription(db, plan_type="pro")
        icon = make_icon(db)

        published = client.post("/api/user/cdn", json={"iconId": icon.id, "slug": "rocket"})
        assert published.json() == {"success": True, "slug": "rocket"}

        listed = client.get("/api/user/cdn").json()["icons"]
        assert [i["cdnSlug"] for i in listed] == ["rocket"]

        bundle = client.get(f"/api/cdn/{TEST_USER_ID}/icons.js")
        assert '"slug":"rocket"' in bundle.text.replace(" ", "")

        assert client.request("DELETE", "/api/user/cdn", json={"iconId": icon.id}).json() == {"success": True}

    def test_free_plan_cannot_publish(self, client, db):
        make_subscription(db, plan_type="free")
        icon = make_icon(db)
        response = client.post("/api/user/cdn", json={"iconId": icon.id, "slug": "rocket"})
        assert response.status_code == 403
        assert response.json()["code"] == "plan_limit"


class TestTemplateRoutes:
    def test_create_and_list(self, client, db):
        make_subscription(db, plan_type="pro")

        created = client.post(
            "/api/user/templates", json={"name": "Brand", "style": "line", "color": "#ff00aa", "duration": 1}
        )

        assert created.status_code == 201
        template = created.json()["template"]
        assert template["style"] == "line"
        listed = client.get("/api/user/templates").json()
        assert [t["name"] for t in listed["templates"]] == ["Brand"]
        assert listed["teamTemplates"] == []

    def test_free_plan_has_no_templates(self, client, db):
        make_subscription(db, plan_type="free")
        response = client.post("/api/user/templates", json={"name": "Brand"})
        assert response.status_code == 403
