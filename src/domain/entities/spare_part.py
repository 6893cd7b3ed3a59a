from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from src.domain.entities.reference import ReferenceOption

CONDITIONS = ("new", "used", "refurbished")
PART_TYPES = ("original", "aftermarket")
DEFAULT_CURRENCY = "QAR"


@dataclass(frozen=True)
class SparePartImageEntity:
    id: str
    spare_part_id: str
    url: str
    is_primary: bool = False
    storage_path: str | None = None  # None for rows written before paths were recorded
    created_at: datetime | None = None


@dataclass(frozen=True)
class SparePartEntity:
    id: str
    user_id: str
    title: str
    price: float
    name_ar: str | None = None
    description: str | None = None
    description_ar: str | None = None
    currency: str = DEFAULT_CURRENCY
    condition: str = "new"
    part_type: str = "original"
    brand_id: int | None = None
    model_id: int | None = None
    category_id: int | None = None
    city_id: int | None = None
    country_id: int | None = None
    status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Expanded relations
    brand: ReferenceOption | None = None
    model: ReferenceOption | None = None
    category: ReferenceOption | None = None
    city: ReferenceOption | None = None
    country: ReferenceOption | None = None
    images: tuple[SparePartImageEntity, ...] = ()  # primary first

    @property
    def primary_image(self) -> SparePartImageEntity | None:
        return next((img for img in self.images if img.is_primary), None)
