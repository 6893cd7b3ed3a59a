from __future__ import annotations

from pydantic import BaseModel, Field

from src.domain.entities.reference import ReferenceOption


class ReferenceOptionOut(BaseModel):
    """A dropdown option (brand, model, category, country or city)."""
    id: int = Field(..., description="Identifier of the referenced row", examples=[12])
    name: str = Field(..., description="Display name (English)", examples=["Toyota"])
    name_ar: str | None = Field(None, description="Arabic display name")
    name_en: str | None = Field(None, description="English name (categories only)")
    brand_id: int | None = Field(None, description="Owning brand (models only)")
    country_id: int | None = Field(None, description="Owning country (cities only)")
    code: str | None = Field(None, description="Country code (countries only)", examples=["QA"])
    currency_code: str | None = Field(None, description="Currency of the country", examples=["QAR"])
    placeholder: bool = Field(
        False, description="True when kept only because the listing still references it"
    )

    @classmethod
    def from_entity(cls, option: ReferenceOption) -> ReferenceOptionOut:
        return cls(
            id=option.id,
            name=option.name,
            name_ar=option.name_ar,
            name_en=option.name_en,
            brand_id=option.brand_id,
            country_id=option.country_id,
            code=option.code,
            currency_code=option.currency_code,
            placeholder=option.placeholder,
        )


class ReferenceListResponse(BaseModel):
    options: list[ReferenceOptionOut] = Field(..., description="Options ordered by name")
