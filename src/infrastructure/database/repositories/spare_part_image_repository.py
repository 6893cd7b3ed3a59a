from __future__ import annotations

import logging
import os
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.spare_part import SparePartImageEntity
from src.infrastructure.database.memory_store import get_memory_store
from src.infrastructure.database.postgres_client import get_postgres_client

logger = logging.getLogger(__name__)

TABLE = "spare_part_images"


def row_to_image(row: dict) -> SparePartImageEntity:
    # PostgreSQL returns datetime objects, Supabase returns ISO strings
    created_at = row.get("created_at")
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    return SparePartImageEntity(
        id=str(row["id"]),
        spare_part_id=str(row["spare_part_id"]),
        url=row.get("url") or "",
        is_primary=bool(row.get("is_primary")),
        storage_path=row.get("storage_path"),
        created_at=created_at,
    )


def order_primary_first(images: list[SparePartImageEntity]) -> list[SparePartImageEntity]:
    """Primary image first, the rest by creation time (stable for missing timestamps)."""
    epoch = datetime.min.replace(tzinfo=UTC)

    def created(img: SparePartImageEntity) -> datetime:
        if img.created_at is None:
            return epoch
        if img.created_at.tzinfo is None:
            return img.created_at.replace(tzinfo=UTC)
        return img.created_at

    return sorted(images, key=lambda img: (not img.is_primary, created(img)))


class SparePartImageRepository:
    """Metadata rows of listing images (table ``spare_part_images``)."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self.mem = get_memory_store()

    def list_by_spare_part(self, spare_part_id: str) -> list[SparePartImageEntity]:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                rows = self.pg_client.execute_many(
                    f"SELECT * FROM {TABLE} WHERE spare_part_id = %s", (spare_part_id,)
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL list images failed: {exc}") from exc
            return order_primary_first([row_to_image(r) for r in rows])

        # In-memory mode
        if self.disabled or self.client is None:
            rows = self.mem.select(TABLE, spare_part_id=spare_part_id)
            return order_primary_first([row_to_image(r) for r in rows])

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(TABLE).select("*").eq("spare_part_id", spare_part_id).execute()
            rows = res.data or []
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB list images failed: {exc}") from exc
        return order_primary_first([row_to_image(r) for r in rows])

    def create(
        self,
        spare_part_id: str,
        url: str,
        is_primary: bool,
        storage_path: str | None = None,
    ) -> SparePartImageEntity:
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                query = f"""
                    INSERT INTO {TABLE} (spare_part_id, url, storage_path, is_primary, created_at)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING *
                """
                row = self.pg_client.execute_insert(
                    query, (spare_part_id, url, storage_path, is_primary, now)
                )
                return row_to_image(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert image failed: {exc}") from exc

        data = {
            "spare_part_id": spare_part_id,
            "url": url,
            "storage_path": storage_path,
            "is_primary": is_primary,
            "created_at": now.isoformat(),
        }

        # In-memory mode
        if self.disabled or self.client is None:
            return row_to_image(self.mem.insert(TABLE, data))

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(TABLE).insert(data).execute()
            return row_to_image(res.data[0])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB insert image failed: {exc}") from exc

    def set_primary_flag(self, image_id: str, is_primary: bool) -> None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                self.pg_client.execute_update(
                    f"UPDATE {TABLE} SET is_primary = %s WHERE id = %s", (is_primary, image_id)
                )
                return
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update image failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            self.mem.update(TABLE, {"is_primary": is_primary}, id=image_id)
            return

        # Supabase mode
        try:  # pragma: no cover - network
            self.client.table(TABLE).update({"is_primary": is_primary}).eq("id", image_id).execute()
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB update image failed: {exc}") from exc

    def clear_primary(self, spare_part_id: str, exclude_image_id: str | None = None) -> None:
        """Unset the primary flag on every image of a listing (optionally sparing one)."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                if exclude_image_id:
                    self.pg_client.execute_update(
                        f"UPDATE {TABLE} SET is_primary = FALSE WHERE spare_part_id = %s AND id <> %s",
                        (spare_part_id, exclude_image_id),
                    )
                else:
                    self.pg_client.execute_update(
                        f"UPDATE {TABLE} SET is_primary = FALSE WHERE spare_part_id = %s",
                        (spare_part_id,),
                    )
                return
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL clear primary failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            for row in self.mem.select(TABLE, spare_part_id=spare_part_id):
                if row["id"] != exclude_image_id:
                    self.mem.update(TABLE, {"is_primary": False}, id=row["id"])
            return

        # Supabase mode
        try:  # pragma: no cover - network
            query = self.client.table(TABLE).update({"is_primary": False}).eq("spare_part_id", spare_part_id)
            if exclude_image_id:
                query = query.neq("id", exclude_image_id)
            query.execute()
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB clear primary failed: {exc}") from exc

    def set_primary(self, spare_part_id: str, image_id: str) -> None:
        """Make ``image_id`` the only primary image of the listing.

        PostgreSQL runs both writes in one transaction. Supabase gets two
        sequential updates (clear all, then set one) with no transaction, so a
        concurrent editor can interleave; the next save repairs the flags.
        """
        if self.use_local_db and self.pg_client:
            try:
                self.pg_client.execute_transaction(
                    [
                        (f"UPDATE {TABLE} SET is_primary = FALSE WHERE spare_part_id = %s", (spare_part_id,)),
                        (
                            f"UPDATE {TABLE} SET is_primary = TRUE WHERE id = %s AND spare_part_id = %s",
                            (image_id, spare_part_id),
                        ),
                    ]
                )
                return
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL set primary failed: {exc}") from exc

        self.clear_primary(spare_part_id)
        self.set_primary_flag(image_id, True)

    def delete(self, image_id: str) -> bool:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                affected = self.pg_client.execute_update(f"DELETE FROM {TABLE} WHERE id = %s", (image_id,))
                return affected > 0
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL delete image failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            return self.mem.delete(TABLE, id=image_id) > 0

        # Supabase mode
        try:  # pragma: no cover - network
            self.client.table(TABLE).delete().eq("id", image_id).execute()
            return True
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB delete image failed: {exc}") from exc
