from __future__ import annotations

import logging
import os

from supabase import Client

from src.domain.entities.reference import (
    BRANDS,
    CATEGORIES,
    CITIES,
    COUNTRIES,
    MODELS,
    ReferenceOption,
    option_from_row,
)
from src.infrastructure.database.memory_store import get_memory_store
from src.infrastructure.database.postgres_client import get_postgres_client

logger = logging.getLogger(__name__)

# kind -> (table, columns, order column)
REFERENCE_TABLES: dict[str, tuple[str, str, str]] = {
    BRANDS: ("brands", "id, name, name_ar", "name"),
    MODELS: ("models", "id, name, name_ar, brand_id", "name"),
    CATEGORIES: ("spare_part_categories", "id, name_en, name_ar", "name_en"),
    COUNTRIES: ("countries", "id, name, name_ar, code, currency_code", "name"),
    CITIES: ("cities", "id, name, name_ar, country_id", "name"),
}


class ReferenceRepository:
    """Read-only lookups used to populate the listing edit form."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self.mem = get_memory_store()

    def list_brands(self) -> list[ReferenceOption]:
        return self._list(BRANDS)

    def list_models(self, brand_id: int) -> list[ReferenceOption]:
        return self._list(MODELS, "brand_id", int(brand_id))

    def list_categories(self) -> list[ReferenceOption]:
        return self._list(CATEGORIES)

    def list_countries(self) -> list[ReferenceOption]:
        return self._list(COUNTRIES)

    def list_cities(self, country_id: int) -> list[ReferenceOption]:
        return self._list(CITIES, "country_id", int(country_id))

    def _list(
        self, kind: str, parent_column: str | None = None, parent_id: int | None = None
    ) -> list[ReferenceOption]:
        table, columns, order_by = REFERENCE_TABLES[kind]

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                if parent_column:
                    query = f"SELECT {columns} FROM {table} WHERE {parent_column} = %s ORDER BY {order_by}"
                    rows = self.pg_client.execute_many(query, (parent_id,))
                else:
                    query = f"SELECT {columns} FROM {table} ORDER BY {order_by}"
                    rows = self.pg_client.execute_many(query)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL list {kind} failed: {exc}") from exc
            return [option_from_row(kind, row) for row in rows]

        # In-memory mode
        if self.disabled or self.client is None:
            filters = {parent_column: parent_id} if parent_column else {}
            rows = self.mem.select(table, **filters)
            rows.sort(key=lambda r: (r.get(order_by) or "").lower())
            return [option_from_row(kind, row) for row in rows]

        # Supabase mode
        try:  # pragma: no cover - network
            query = self.client.table(table).select(columns)
            if parent_column:
                query = query.eq(parent_column, parent_id)
            res = query.order(order_by).execute()
            rows = res.data or []
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB list {kind} failed: {exc}") from exc
        return [option_from_row(kind, row) for row in rows]
