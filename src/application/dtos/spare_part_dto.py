from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.application.dtos.reference_dto import ReferenceOptionOut
from src.domain.entities.spare_part import SparePartEntity, SparePartImageEntity


class SparePartImageOut(BaseModel):
    """A persisted listing image."""
    id: str = Field(..., description="Identifier of the image row")
    url: str = Field(..., description="Public URL of the image")
    is_primary: bool = Field(..., description="Whether this is the listing's primary image")
    storage_path: str | None = Field(None, description="Object path inside the storage bucket")
    created_at: datetime | None = Field(None, description="When the image was stored")

    @classmethod
    def from_entity(cls, image: SparePartImageEntity) -> SparePartImageOut:
        return cls(
            id=image.id,
            url=image.url,
            is_primary=image.is_primary,
            storage_path=image.storage_path,
            created_at=image.created_at,
        )


def _option(option) -> ReferenceOptionOut | None:
    return ReferenceOptionOut.from_entity(option) if option is not None else None


class SparePartOut(BaseModel):
    """A spare-part listing with its relations, images ordered primary first."""
    id: str = Field(..., description="Identifier of the listing")
    user_id: str = Field(..., description="Owner of the listing")
    title: str = Field(..., description="English title", examples=["Front brake pads"])
    name_ar: str | None = Field(None, description="Arabic title")
    description: str | None = Field(None, description="English description")
    description_ar: str | None = Field(None, description="Arabic description")
    price: float = Field(..., description="Asking price", examples=[250.0])
    currency: str = Field(..., description="Currency code", examples=["QAR"])
    condition: str = Field(..., description="new, used or refurbished")
    part_type: str = Field(..., description="original or aftermarket")
    brand_id: int | None = None
    model_id: int | None = None
    category_id: int | None = None
    city_id: int | None = None
    country_id: int | None = None
    status: str | None = Field(None, description="Moderation status of the listing")
    created_at: datetime | None = None
    updated_at: datetime | None = None
    brand: ReferenceOptionOut | None = None
    model: ReferenceOptionOut | None = None
    category: ReferenceOptionOut | None = None
    city: ReferenceOptionOut | None = None
    country: ReferenceOptionOut | None = None
    images: list[SparePartImageOut] = Field(default_factory=list, description="Primary image first")

    @classmethod
    def from_entity(cls, entity: SparePartEntity) -> SparePartOut:
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            title=entity.title,
            name_ar=entity.name_ar,
            description=entity.description,
            description_ar=entity.description_ar,
            price=entity.price,
            currency=entity.currency,
            condition=entity.condition,
            part_type=entity.part_type,
            brand_id=entity.brand_id,
            model_id=entity.model_id,
            category_id=entity.category_id,
            city_id=entity.city_id,
            country_id=entity.country_id,
            status=entity.status,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            brand=_option(entity.brand),
            model=_option(entity.model),
            category=_option(entity.category),
            city=_option(entity.city),
            country=_option(entity.country),
            images=[SparePartImageOut.from_entity(img) for img in entity.images],
        )


class SubmitEditResponse(BaseModel):
    """Canonical listing returned after a successful save."""
    spare_part: SparePartOut = Field(..., description="Listing as re-fetched after saving")
