from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from src.domain.entities.reference import (
    BRANDS,
    CATEGORIES,
    CITIES,
    COUNTRIES,
    MODELS,
    ReferenceOption,
)
from src.domain.entities.spare_part import SparePartEntity
from src.infrastructure.cache.reference_cache import ReferenceCache
from src.infrastructure.database.repositories.reference_repository import ReferenceRepository

logger = logging.getLogger(__name__)


@dataclass
class ReferenceData:
    brands: list[ReferenceOption] = field(default_factory=list)
    models: list[ReferenceOption] = field(default_factory=list)
    categories: list[ReferenceOption] = field(default_factory=list)
    countries: list[ReferenceOption] = field(default_factory=list)
    cities: list[ReferenceOption] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)

    def find(self, kind: str, option_id: int | str | None) -> ReferenceOption | None:
        if option_id in (None, ""):
            return None
        return next((o for o in getattr(self, kind) if o.id == int(option_id)), None)


def _ensure_present(
    options: list[ReferenceOption],
    selected_id: int | None,
    relation: ReferenceOption | None,
    *,
    prepend: bool = False,
) -> list[ReferenceOption]:
    """Keep the listing's current selection displayable even if the fetched list lacks it."""
    if selected_id is None or relation is None:
        return options
    if any(o.id == selected_id for o in options):
        return options
    placeholder = ReferenceOption(
        id=selected_id,
        name=relation.name,
        name_ar=relation.name_ar,
        name_en=relation.name_en,
        brand_id=relation.brand_id,
        country_id=relation.country_id,
        code=relation.code,
        currency_code=relation.currency_code,
        placeholder=True,
    )
    return [placeholder, *options] if prepend else [*options, placeholder]


@dataclass
class LoadReferenceDataUseCase:
    """
    Populate the dropdowns of a listing edit form.

    Every list is fetched on its own: a failing fetch is logged, reported as a
    notice and leaves only that list empty. Lists come from the shared
    ReferenceCache when fresh.
    """

    reference_repo: ReferenceRepository
    cache: ReferenceCache

    def execute(
        self, spare_part: SparePartEntity, fallback_country_id: int | None = None
    ) -> ReferenceData:
        data = ReferenceData()
        data.brands = self.load_brands(data.notices)
        data.categories = self.load_categories(data.notices)
        data.countries = self.load_countries(data.notices)

        country_id = spare_part.country_id
        if country_id is None and spare_part.city is not None:
            country_id = spare_part.city.country_id
        if country_id is None:
            country_id = fallback_country_id
        data.cities = self.load_cities(country_id, data.notices)
        data.models = self.load_models(spare_part.brand_id, data.notices)

        data.brands = _ensure_present(data.brands, spare_part.brand_id, spare_part.brand)
        data.categories = _ensure_present(
            data.categories, spare_part.category_id, spare_part.category
        )
        data.countries = _ensure_present(data.countries, spare_part.country_id, spare_part.country)
        data.cities = _ensure_present(data.cities, spare_part.city_id, spare_part.city)
        data.models = _ensure_present(
            data.models, spare_part.model_id, spare_part.model, prepend=True
        )
        return data

    def load_brands(self, notices: list[str] | None = None) -> list[ReferenceOption]:
        return self._fetch(BRANDS, None, self.reference_repo.list_brands, notices)

    def load_categories(self, notices: list[str] | None = None) -> list[ReferenceOption]:
        return self._fetch(CATEGORIES, None, self.reference_repo.list_categories, notices)

    def load_countries(self, notices: list[str] | None = None) -> list[ReferenceOption]:
        return self._fetch(COUNTRIES, None, self.reference_repo.list_countries, notices)

    def load_cities(
        self, country_id: int | str | None, notices: list[str] | None = None
    ) -> list[ReferenceOption]:
        if country_id in (None, ""):
            return []
        country_id = int(country_id)
        return self._fetch(
            CITIES, country_id, lambda: self.reference_repo.list_cities(country_id), notices
        )

    def load_models(
        self, brand_id: int | str | None, notices: list[str] | None = None
    ) -> list[ReferenceOption]:
        if brand_id in (None, ""):
            return []
        brand_id = int(brand_id)
        return self._fetch(
            MODELS, brand_id, lambda: self.reference_repo.list_models(brand_id), notices
        )

    def _fetch(
        self,
        kind: str,
        parent_id: int | None,
        loader: Callable[[], list[ReferenceOption]],
        notices: list[str] | None,
    ) -> list[ReferenceOption]:
        try:
            return self.cache.get_or_load((kind, parent_id), loader)
        except RuntimeError as exc:
            logger.error("Error loading %s (parent=%s): %s", kind, parent_id, exc)
            if notices is not None:
                notices.append(f"Error loading {kind}")
            return []
