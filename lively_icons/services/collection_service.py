# lively_icons/services/collection_service.py
"""
Collection Service for Lively Icons

Personal collections (CRUD, membership, ZIP export), public sharing and the
read side of shared collections (public view and embed script).
"""

from dataclasses import dataclass
import io
import logging
import re
import secrets
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import zipfile

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import SHARE_SLUG_BYTES
from ..core.enums import ExportFormat, GenerationEventType
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..models.collection import Collection, SharedCollection
from ..models.icon import GeneratedIcon
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .icons.code_generator import generate_component_code
from .icons.embed_script import EmbedIcon, build_embed_script
from .team_token_service import TEAM_PLANS

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    ExportFormat.SVG.value: "svg",
    ExportFormat.REACT.value: "tsx",
    ExportFormat.VUE.value: "vue",
    ExportFormat.HTML.value: "html",
}

FORMAT_USAGE = {
    ExportFormat.SVG.value: "### SVG\n```html\n<!-- Paste SVG directly into your HTML -->\n```",
    ExportFormat.REACT.value: (
        "### React\n```tsx\nimport IconName from './icon-name';\n\n"
        '<IconName className="w-6 h-6" />\n```'
    ),
    ExportFormat.VUE.value: (
        '### Vue\n```vue\n<template>\n  <IconName class="w-6 h-6" />\n</template>\n\n'
        "<script setup>\nimport IconName from './icon-name.vue';\n</script>\n```"
    ),
    ExportFormat.HTML.value: "### HTML\n```html\n<!-- Include the HTML snippet in your page -->\n```",
}

_FILE_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")

COLLECTION_NOT_FOUND = "Collection not found"


def sanitize_file_name(name: str) -> str:
    """Lowercase, hyphenated file stem of at most 100 chars (``untitled`` when empty)."""
    cleaned = _WHITESPACE.sub("-", _FILE_DISALLOWED.sub("", name)).lower()[:100]
    return cleaned or "untitled"


def unique_file_stem(stem: str, taken: Set[str]) -> str:
    """``stem``, or ``stem-2``, ``stem-3`` ... when already taken; records the result in ``taken``."""
    candidate = stem
    counter = 1
    while candidate in taken:
        counter += 1
        suffix = f"-{counter}"
        candidate = f"{stem[: 100 - len(suffix)]}{suffix}"
    taken.add(candidate)
    return candidate


def build_readme(collection_name: str, icon_count: int, formats: Sequence[str]) -> str:
    plural = "" if icon_count == 1 else "s"
    usage = "\n\n".join(FORMAT_USAGE.get(fmt, "") for fmt in formats)
    return (
        f"# {collection_name}\n\n"
        f"Exported from Lively Icons - {icon_count} icon{plural}.\n\n"
        f"## Usage\n\n{usage}\n\n"
        "## License\n\n"
        "Generated icons are licensed for use in your projects per the Lively Icons Terms of Service.\n"
    )


def generate_share_slug() -> str:
    return secrets.token_hex(SHARE_SLUG_BYTES)


def share_url(slug: str) -> str:
    return f"{settings.app_url}/shared/{slug}"


@dataclass
class CollectionExport:
    content: bytes
    filename: str


@dataclass
class SharedCollectionView:
    collection: Collection
    shared: SharedCollection
    icons: List[GeneratedIcon]


class CollectionService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.collection_repository = RepositoryFactory.create_collection_repository(db)
        self.shared_repository = RepositoryFactory.create_shared_collection_repository(db)
        self.icon_repository = RepositoryFactory.create_icon_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.event_repository = RepositoryFactory.create_generation_event_repository(db)

    def _require_owned(self, clerk_user_id: str, collection_id: str) -> Collection:
        collection = self.collection_repository.get_owned(collection_id, clerk_user_id)
        if collection is None:
            raise NotFoundException(COLLECTION_NOT_FOUND, code="collection_not_found")
        return collection

    def list_collections(self, clerk_user_id: str) -> List[Tuple[Collection, int, Optional[SharedCollection]]]:
        """Collections with icon counts and their share (if any), newest first."""
        rows = self.collection_repository.list_for_user(clerk_user_id)
        shares = self.shared_repository.shares_for_collections([c.id for c, _ in rows])
        return [(collection, count, shares.get(collection.id)) for collection, count in rows]

    @BaseService.measure_operation("create_collection")
    def create_collection(
        self,
        clerk_user_id: str,
        name: str,
        description: Optional[str] = None,
        parent_collection_id: Optional[str] = None,
    ) -> Collection:
        if parent_collection_id is not None:
            if self.collection_repository.get_owned(parent_collection_id, clerk_user_id) is None:
                raise NotFoundException("Parent collection not found", code="parent_not_found")
        with self.transaction():
            return self.collection_repository.create(
                clerk_user_id=clerk_user_id,
                name=name,
                description=description,
                parent_collection_id=parent_collection_id,
            )

    def get_collection(self, clerk_user_id: str, collection_id: str) -> Tuple[Collection, List[Tuple[GeneratedIcon, Any]]]:
        collection = self._require_owned(clerk_user_id, collection_id)
        return collection, self.collection_repository.list_icons(collection_id)

    @BaseService.measure_operation("update_collection")
    def update_collection(self, clerk_user_id: str, collection_id: str, changes: Dict[str, Any]) -> Collection:
        """
        Update name, description or parent.

        ``changes`` only carries fields the caller sent; an explicit ``None``
        parent detaches the collection.
        """
        collection = self._require_owned(clerk_user_id, collection_id)
        parent_id = changes.get("parent_collection_id")
        if parent_id is not None:
            if parent_id == collection_id:
                raise ValidationException("A collection cannot be its own parent", code="circular_parent")
            if self.collection_repository.get_owned(parent_id, clerk_user_id) is None:
                raise NotFoundException("Parent collection not found", code="parent_not_found")

        updates: Dict[str, Any] = {}
        if changes.get("name") is not None:
            updates["name"] = changes["name"]
        if changes.get("description") is not None:
            updates["description"] = changes["description"]
        if "parent_collection_id" in changes:
            updates["parent_collection_id"] = parent_id
        with self.transaction():
            self.collection_repository.update(collection, **updates)
        return collection

    @BaseService.measure_operation("delete_collection")
    def delete_collection(self, clerk_user_id: str, collection_id: str) -> None:
        collection = self._require_owned(clerk_user_id, collection_id)
        with self.transaction():
            self.collection_repository.delete(collection)

    @BaseService.measure_operation("add_collection_icons")
    def add_icons(self, clerk_user_id: str, collection_id: str, icon_ids: Sequence[str]) -> int:
        self._require_owned(clerk_user_id, collection_id)
        valid = set(self.icon_repository.list_owned_ids(clerk_user_id, icon_ids))
        invalid = [icon_id for icon_id in icon_ids if icon_id not in valid]
        if invalid:
            raise ValidationException(
                "Some icons not found", code="invalid_icons", fields={"invalidIds": invalid}
            )
        with self.transaction():
            self.collection_repository.add_icons(collection_id, icon_ids)
        return len(icon_ids)

    @BaseService.measure_operation("remove_collection_icons")
    def remove_icons(self, clerk_user_id: str, collection_id: str, icon_ids: Sequence[str]) -> int:
        self._require_owned(clerk_user_id, collection_id)
        with self.transaction():
            return self.collection_repository.remove_icons(collection_id, icon_ids)

    # Sharing

    @BaseService.measure_operation("share_collection")
    def share_collection(
        self,
        clerk_user_id: str,
        collection_id: str,
        password: Optional[str] = None,
        allow_embed: Optional[bool] = None,
    ) -> SharedCollection:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None or subscription.plan_type not in TEAM_PLANS:
            raise ForbiddenException(
                "Collection sharing requires a Team or Enterprise plan.", code="plan_required"
            )
        self._require_owned(clerk_user_id, collection_id)
        if self.shared_repository.get_for_collection(collection_id) is not None:
            raise ConflictException("This collection is already shared.", code="already_shared")

        with self.transaction():
            shared = self.shared_repository.create(
                collection_id=collection_id,
                public_slug=generate_share_slug(),
                is_public=True,
                allow_embed=True if allow_embed is None else allow_embed,
                password=password,
            )
        self.log_operation("collection_shared", collection_id=collection_id, slug=shared.public_slug)
        return shared

    def unshare_collection(self, clerk_user_id: str, collection_id: str) -> None:
        self._require_owned(clerk_user_id, collection_id)
        shared = self.shared_repository.get_for_collection(collection_id)
        if shared is None:
            return
        with self.transaction():
            self.shared_repository.delete(shared)

    # Export

    @BaseService.measure_operation("export_collection")
    def export_zip(self, clerk_user_id: str, collection_id: str, formats: Sequence[str]) -> CollectionExport:
        """ZIP of every live icon in each requested format plus a README."""
        collection = self._require_owned(clerk_user_id, collection_id)
        formats = [fmt for fmt in dict.fromkeys(formats) if fmt in FORMAT_EXTENSIONS] or [ExportFormat.SVG.value]
        icons = [icon for icon, _ in self.collection_repository.list_icons(collection_id)]
        if not icons:
            raise ValidationException("Collection is empty", code="collection_empty")

        folder = sanitize_file_name(collection.name)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as archive:
            stems: Set[str] = set()
            for icon in icons:
                stem = unique_file_stem(sanitize_file_name(icon.name), stems)
                for fmt in formats:
                    code = generate_component_code(
                        icon.svg_code, icon.name, icon.animation, icon.trigger, fmt, icon.duration or 0.5
                    )
                    archive.writestr(f"{folder}/{stem}.{FORMAT_EXTENSIONS[fmt]}", code)
            archive.writestr(f"{folder}/README.md", build_readme(collection.name, len(icons), formats))

        with self.transaction():
            self.event_repository.record(
                clerk_user_id=clerk_user_id,
                event_type=GenerationEventType.EXPORT.value,
                team_id=collection.team_id,
                metadata={"collectionId": collection_id, "formats": list(formats), "iconCount": len(icons)},
            )
        return CollectionExport(content=buffer.getvalue(), filename=f"{folder}.zip")


class SharedCollectionService(BaseService):
    """Public, unauthenticated access to shared collections."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.collection_repository = RepositoryFactory.create_collection_repository(db)
        self.shared_repository = RepositoryFactory.create_shared_collection_repository(db)

    def view(self, slug: str, password: Optional[str] = None) -> SharedCollectionView:
        shared = self.shared_repository.get_by_slug(slug)
        if shared is None or not shared.is_public:
            raise NotFoundException(COLLECTION_NOT_FOUND, code="collection_not_found")
        if shared.password and password != shared.password:
            raise UnauthorizedException(
                "Password required", code="password_required", fields={"passwordProtected": True}
            )
        collection = self.collection_repository.get_by_id(shared.collection_id)
        if collection is None:
            raise NotFoundException(COLLECTION_NOT_FOUND, code="collection_not_found")

        icons = [icon for icon, _ in self.collection_repository.list_icons(collection.id)]
        with self.transaction():
            self.shared_repository.increment_views(shared)
        return SharedCollectionView(collection=collection, shared=shared, icons=icons)

    def embed_script(self, slug: str) -> Optional[str]:
        """The embed bundle, or None when the share is missing, private or not embeddable."""
        shared = self.shared_repository.get_by_slug(slug)
        if shared is None or not shared.is_public or not shared.allow_embed:
            return None
        collection = self.collection_repository.get_by_id(shared.collection_id)
        icons = [
            EmbedIcon(name=icon.name, svg_code=icon.svg_code, style=icon.style)
            for icon, _ in self.collection_repository.list_icons(shared.collection_id)
        ]
        return build_embed_script(slug, collection.name if collection else None, icons, settings.app_url)
