from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Callable

from supabase import Client

from src.domain.entities.reference import (
    BRANDS,
    CATEGORIES,
    CITIES,
    COUNTRIES,
    MODELS,
    option_from_row,
)
from src.domain.entities.spare_part import DEFAULT_CURRENCY, SparePartEntity
from src.infrastructure.database.memory_store import get_memory_store
from src.infrastructure.database.postgres_client import get_postgres_client
from src.infrastructure.database.repositories.spare_part_image_repository import (
    order_primary_first,
    row_to_image,
)

logger = logging.getLogger(__name__)

TABLE = "spare_parts"
IMAGES_TABLE = "spare_part_images"

# relation name -> (foreign key column, table, reference kind)
RELATIONS: dict[str, tuple[str, str, str]] = {
    "brand": ("brand_id", "brands", BRANDS),
    "model": ("model_id", "models", MODELS),
    "category": ("category_id", "spare_part_categories", CATEGORIES),
    "city": ("city_id", "cities", CITIES),
    "country": ("country_id", "countries", COUNTRIES),
}

SELECT_WITH_RELATIONS = (
    "*, brand:brands(*), model:models(*), category:spare_part_categories(*), "
    "city:cities(*), country:countries(*), images:spare_part_images(*)"
)

UPDATABLE_COLUMNS = (
    "title",
    "name_ar",
    "description",
    "description_ar",
    "price",
    "currency",
    "condition",
    "part_type",
    "brand_id",
    "model_id",
    "category_id",
    "city_id",
    "country_id",
    "status",
    "updated_at",
)


def _parse_ts(value: Any) -> datetime | None:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


class SparePartRepository:
    """Spare-part listings with relation expansion (brand, model, category, city, country, images)."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self.mem = get_memory_store()

    def _row_to_entity(self, row: dict) -> SparePartEntity:
        """Convert an expanded row (relations nested under their names) to an entity."""
        relations = {}
        for name, (_, _, kind) in RELATIONS.items():
            nested = row.get(name)
            relations[name] = option_from_row(kind, nested) if nested else None
        images = order_primary_first([row_to_image(r) for r in row.get("images") or []])
        return SparePartEntity(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            title=row.get("title") or "",
            price=float(row.get("price") or 0),
            name_ar=row.get("name_ar"),
            description=row.get("description"),
            description_ar=row.get("description_ar"),
            currency=row.get("currency") or DEFAULT_CURRENCY,
            condition=row.get("condition") or "new",
            part_type=row.get("part_type") or "original",
            brand_id=_int_or_none(row.get("brand_id")),
            model_id=_int_or_none(row.get("model_id")),
            category_id=_int_or_none(row.get("category_id")),
            city_id=_int_or_none(row.get("city_id")),
            country_id=_int_or_none(row.get("country_id")),
            status=row.get("status"),
            created_at=_parse_ts(row.get("created_at")),
            updated_at=_parse_ts(row.get("updated_at")),
            images=tuple(images),
            **relations,
        )

    def _expand(
        self,
        row: dict,
        fetch_one: Callable[[str, Any], dict | None],
        fetch_images: Callable[[str], list[dict]],
    ) -> dict:
        """Nest related rows the way a Supabase relation select returns them."""
        row = dict(row)
        for name, (column, table, _) in RELATIONS.items():
            fk = row.get(column)
            row[name] = fetch_one(table, fk) if fk is not None else None
        row["images"] = fetch_images(str(row["id"]))
        return row

    def get(self, spare_part_id: str) -> SparePartEntity | None:
        """Fetch a listing with all relations; images ordered primary first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            pg = self.pg_client
            row = pg.execute_one(f"SELECT * FROM {TABLE} WHERE id = %s", (spare_part_id,))
            if row is None:
                return None
            expanded = self._expand(
                row,
                lambda table, fk: pg.execute_one(f"SELECT * FROM {table} WHERE id = %s", (fk,)),
                lambda sp_id: pg.execute_many(
                    f"SELECT * FROM {IMAGES_TABLE} WHERE spare_part_id = %s", (sp_id,)
                ),
            )
            return self._row_to_entity(expanded)

        # In-memory mode
        if self.disabled or self.client is None:
            row = self.mem.get(TABLE, spare_part_id)
            if row is None:
                return None
            expanded = self._expand(
                row,
                lambda table, fk: self.mem.get(table, int(fk)),
                lambda sp_id: self.mem.select(IMAGES_TABLE, spare_part_id=sp_id),
            )
            return self._row_to_entity(expanded)

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table(TABLE)
                .select(SELECT_WITH_RELATIONS)
                .eq("id", spare_part_id)
                .maybe_single()
                .execute()
            )
            row = res.data if res else None
        except Exception as exc:  # pragma: no cover - network
            logger.warning("Fetching spare part %s failed: %s", spare_part_id, exc)
            return None
        return self._row_to_entity(row) if row else None

    def update_fields(self, spare_part_id: str, values: dict[str, Any]) -> None:
        data = {k: v for k, v in values.items() if k in UPDATABLE_COLUMNS}
        if not data:
            return

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            assignments = ", ".join(f"{col} = %s" for col in data)
            try:
                affected = self.pg_client.execute_update(
                    f"UPDATE {TABLE} SET {assignments} WHERE id = %s",
                    (*data.values(), spare_part_id),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update spare part failed: {exc}") from exc
            if affected == 0:
                raise RuntimeError("PostgreSQL update spare part failed: not found")
            return

        # In-memory mode
        if self.disabled or self.client is None:
            if self.mem.update(TABLE, data, id=spare_part_id) == 0:
                raise RuntimeError("DB update spare part failed: not found")
            return

        # Supabase mode
        try:  # pragma: no cover - network
            self.client.table(TABLE).update(data).eq("id", spare_part_id).execute()
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB update spare part failed: {exc}") from exc
