from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from supabase import Client

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/local-storage/"


@dataclass
class StorageResult:
    path: str
    url: str
    content_type: str
    size: int


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local directory fallback."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "spare-parts")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        if self.disabled or self.client is None:
            self.local_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_local(self) -> bool:
        return self.disabled or self.client is None

    def upload_bytes(self, prefix: str, data: bytes, ext: str, content_type: str) -> StorageResult:
        """Store ``data`` at ``{prefix}/{uuid}.{ext}`` and return its path and public URL."""
        ext = ext.lower().lstrip(".") or "jpg"
        storage_path = f"{prefix}/{uuid.uuid4()}.{ext}"
        if self.is_local:
            full_path = self.local_dir / storage_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
        else:
            try:  # pragma: no cover - network
                self.client.storage.from_(self.bucket).upload(
                    path=storage_path,
                    file=data,
                    file_options={"content-type": content_type, "upsert": "false"},
                )
            except Exception as exc:  # pragma: no cover - network
                raise RuntimeError(f"Storage upload failed: {exc}") from exc
        logger.debug("Uploaded %s (%d bytes)", storage_path, len(data))
        return StorageResult(
            path=storage_path,
            url=self.get_public_url(storage_path),
            content_type=content_type,
            size=len(data),
        )

    def get_public_url(self, storage_path: str) -> str:
        if self.is_local:
            return f"{LOCAL_URL_PREFIX}{storage_path}"
        try:  # pragma: no cover - network
            return self.client.storage.from_(self.bucket).get_public_url(storage_path)
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"Storage public URL failed: {exc}") from exc

    def path_from_url(self, url: str) -> str | None:
        """Recover the object path from a public URL, for rows stored without one."""
        if url.startswith(LOCAL_URL_PREFIX):
            return url[len(LOCAL_URL_PREFIX):]
        marker = f"/{self.bucket}/"
        path = unquote(urlparse(url).path)
        if marker not in path:
            return None
        return path.split(marker, 1)[1] or None

    def delete(self, path: str) -> None:
        if self.is_local:
            full_path = self.local_dir / path
            if full_path.exists():
                full_path.unlink()
            return
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"Storage delete failed: {exc}") from exc
