from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import UTC, datetime
from typing import Any, Sequence

from src.domain.entities.reference import ReferenceOption
from src.domain.entities.spare_part import (
    CONDITIONS,
    DEFAULT_CURRENCY,
    PART_TYPES,
    SparePartEntity,
)

_ID_FIELDS = ("brand_id", "model_id", "category_id", "city_id", "country_id")
_OPTIONAL_TEXT_FIELDS = ("name_ar", "description", "description_ar")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class ListingForm:
    """Editable field set of a spare-part listing.

    Values are kept as strings, the way they arrive from form inputs, and only
    converted to backend types in ``to_update_payload``.
    """

    title: str = ""
    name_ar: str = ""
    description: str = ""
    description_ar: str = ""
    price: str = ""
    currency: str = DEFAULT_CURRENCY
    condition: str = "new"
    part_type: str = "original"
    brand_id: str = ""
    model_id: str = ""
    category_id: str = ""
    city_id: str = ""
    country_id: str = ""

    @classmethod
    def from_entity(cls, entity: SparePartEntity) -> ListingForm:
        country_id = entity.country_id
        if country_id is None and entity.city is not None:
            country_id = entity.city.country_id
        return cls(
            title=entity.title or "",
            name_ar=_as_text(entity.name_ar),
            description=_as_text(entity.description),
            description_ar=_as_text(entity.description_ar),
            price=_as_text(entity.price) if entity.price else "",
            currency=entity.currency or DEFAULT_CURRENCY,
            condition=entity.condition or "new",
            part_type=entity.part_type or "original",
            brand_id=_as_text(entity.brand_id),
            model_id=_as_text(entity.model_id),
            category_id=_as_text(entity.category_id),
            city_id=_as_text(entity.city_id),
            country_id=_as_text(country_id),
        )

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def set_field(self, name: str, value: Any) -> None:
        if name not in self.field_names():
            raise ValueError(f"Unknown field: {name}")
        text = _as_text(value)
        if name == "condition" and text not in CONDITIONS:
            raise ValueError(f"Invalid condition: {text}")
        if name == "part_type" and text not in PART_TYPES:
            raise ValueError(f"Invalid part type: {text}")
        if name in _ID_FIELDS and text and not text.isdigit():
            raise ValueError(f"Invalid {name}: {text}")
        if name == "country_id":
            self.change_country(text)
        elif name == "brand_id":
            self.change_brand(text)
        else:
            setattr(self, name, text)

    def change_country(self, country_id: Any, currency_code: str | None = None) -> None:
        """Select a country; the city no longer applies and is cleared."""
        self.country_id = _as_text(country_id)
        self.city_id = ""
        if currency_code:
            self.currency = currency_code

    def apply_cities(self, cities: Sequence[ReferenceOption]) -> bool:
        """Auto-select the only city of the selected country. Returns True when it did."""
        if not self.city_id and len(cities) == 1:
            self.city_id = str(cities[0].id)
            return True
        return False

    def change_brand(self, brand_id: Any) -> None:
        self.brand_id = _as_text(brand_id)
        self.model_id = ""

    def as_dict(self) -> dict[str, str]:
        return asdict(self)

    def to_update_payload(self, now: datetime | None = None) -> dict[str, Any]:
        try:
            price = float(self.price) if self.price else 0.0
        except ValueError:
            price = 0.0
        payload: dict[str, Any] = {
            "title": self.title,
            "price": price,
            "currency": self.currency or DEFAULT_CURRENCY,
            "condition": self.condition,
            "part_type": self.part_type,
            "updated_at": (now or datetime.now(UTC)).isoformat(),
        }
        for name in _OPTIONAL_TEXT_FIELDS:
            payload[name] = getattr(self, name) or None
        for name in _ID_FIELDS:
            value = getattr(self, name)
            payload[name] = int(value) if value else None
        return payload
