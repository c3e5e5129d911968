"""
BlobStorageClient - minimal S3-compatible object storage client

Stores generated SVGs and uploaded reference images. Requests are signed
with SigV4 presigned URLs (query-string auth, UNSIGNED-PAYLOAD) and sent
with ``requests``; no AWS SDK is required.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import hmac
import logging
from typing import Dict, Optional
from urllib.parse import quote

import requests

from ..core.config import settings

logger = logging.getLogger(__name__)

_UNRESERVED = "-_.~"


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def _canonical_query(params: Dict[str, str]) -> str:
    return "&".join(
        f"{quote(k, safe=_UNRESERVED)}={quote(str(params[k]), safe=_UNRESERVED)}"
        for k in sorted(params)
    )


class BlobStorageError(RuntimeError):
    """Raised when an upload or delete is rejected by the storage backend."""


@dataclass
class PresignedUrl:
    url: str
    headers: Dict[str, str]
    expires_at: str


class BlobStorageClient:
    """SigV4 presigner plus byte upload/delete helpers for one bucket."""

    region = "auto"
    service = "s3"
    algorithm = "AWS4-HMAC-SHA256"

    def __init__(
        self,
        *,
        account_id: Optional[str] = None,
        bucket_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        secret = settings.blob_secret_access_key
        self.account_id = account_id if account_id is not None else settings.blob_account_id
        self.bucket_name = bucket_name if bucket_name is not None else settings.blob_bucket_name
        self.access_key_id = (
            access_key_id if access_key_id is not None else settings.blob_access_key_id
        )
        self.secret_key = (
            secret_access_key
            if secret_access_key is not None
            else (secret.get_secret_value() if secret else "")
        )
        self.public_base_url = (
            public_base_url if public_base_url is not None else settings.blob_public_base_url
        ).rstrip("/")
        self.host = f"{self.account_id}.r2.cloudflarestorage.com"
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.bucket_name and self.access_key_id and self.secret_key)

    def _build_presigned_url(
        self,
        method: str,
        object_key: str,
        expires_seconds: int,
        content_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PresignedUrl:
        now = now or datetime.now(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        datestamp = now.strftime("%Y%m%d")

        canonical_uri = f"/{self.bucket_name}/{quote(object_key, safe='/' + _UNRESERVED)}"
        credential_scope = f"{datestamp}/{self.region}/{self.service}/aws4_request"
        params: Dict[str, str] = {
            "X-Amz-Algorithm": self.algorithm,
            "X-Amz-Credential": f"{self.access_key_id}/{credential_scope}",
            "X-Amz-Date": amz_date,
            "X-Amz-Expires": str(expires_seconds),
            "X-Amz-SignedHeaders": "host",
            "X-Amz-Content-Sha256": "UNSIGNED-PAYLOAD",
        }
        if content_type:
            params["content-type"] = content_type

        canonical_querystring = _canonical_query(params)
        canonical_request = "\n".join(
            [
                method.upper(),
                canonical_uri,
                canonical_querystring,
                f"host:{self.host}\n",
                "host",
                "UNSIGNED-PAYLOAD",
            ]
        )
        string_to_sign = "\n".join(
            [
                self.algorithm,
                amz_date,
                credential_scope,
                hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
            ]
        )

        k_date = _hmac(("AWS4" + self.secret_key).encode("utf-8"), datestamp)
        k_signing = _hmac(_hmac(_hmac(k_date, self.region), self.service), "aws4_request")
        signature = hmac.new(k_signing, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        url = f"https://{self.host}{canonical_uri}?{canonical_querystring}&X-Amz-Signature={signature}"
        headers = {"Content-Type": content_type} if content_type else {}
        return PresignedUrl(url=url, headers=headers, expires_at=now.replace(microsecond=0).isoformat())

    def generate_presigned_put(
        self, object_key: str, content_type: str, expires_seconds: int = 300
    ) -> PresignedUrl:
        return self._build_presigned_url("PUT", object_key, expires_seconds, content_type=content_type)

    def generate_presigned_get(self, object_key: str, expires_seconds: int = 3600) -> PresignedUrl:
        return self._build_presigned_url("GET", object_key, expires_seconds)

    def generate_presigned_delete(self, object_key: str, expires_seconds: int = 300) -> PresignedUrl:
        return self._build_presigned_url("DELETE", object_key, expires_seconds)

    def public_url(self, object_key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{object_key}"
        return f"https://{self.host}/{self.bucket_name}/{object_key}"

    def put(self, object_key: str, data: bytes, content_type: str) -> str:
        """Upload bytes and return the object's public URL."""
        pre = self.generate_presigned_put(object_key, content_type)
        try:
            resp = self._session.put(pre.url, data=data, headers=pre.headers, timeout=30)
        except requests.RequestException as e:
            logger.error(f"Failed to upload {object_key}: {e}")
            raise BlobStorageError(f"Upload failed for {object_key}") from e
        if not 200 <= resp.status_code < 300:
            logger.error(f"Failed to upload {object_key}: status={resp.status_code}")
            raise BlobStorageError(f"Upload failed for {object_key} (status {resp.status_code})")
        return self.public_url(object_key)

    def delete(self, object_key: str) -> bool:
        pre = self.generate_presigned_delete(object_key)
        try:
            resp = self._session.delete(pre.url, timeout=30)
        except requests.RequestException as e:
            logger.error(f"Failed to delete {object_key}: {e}")
            return False
        return 200 <= resp.status_code < 300 or resp.status_code == 404


def icon_storage_key(clerk_user_id: str, icon_id: str) -> str:
    return f"icons/{clerk_user_id}/{icon_id}.svg"
