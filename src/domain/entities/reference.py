from __future__ import annotations

from dataclasses import dataclass

BRANDS = "brands"
MODELS = "models"
CATEGORIES = "categories"
COUNTRIES = "countries"
CITIES = "cities"

REFERENCE_KINDS = (BRANDS, MODELS, CATEGORIES, COUNTRIES, CITIES)


@dataclass(frozen=True)
class ReferenceOption:
    """A read-only lookup row (brand, model, category, country or city)."""

    id: int
    name: str
    name_ar: str | None = None
    name_en: str | None = None
    brand_id: int | None = None  # models only
    country_id: int | None = None  # cities only
    code: str | None = None  # countries only
    currency_code: str | None = None  # countries only
    # True when synthesized from a listing relation missing from the fetched list
    placeholder: bool = False


def option_from_row(kind: str, row: dict) -> ReferenceOption:
    """Build a ReferenceOption from a backend row of the given kind.

    Categories carry ``name_en`` instead of ``name``; everything else uses ``name``.
    """
    if kind == CATEGORIES:
        name = row.get("name_en") or row.get("name") or ""
        return ReferenceOption(
            id=int(row["id"]),
            name=name,
            name_ar=row.get("name_ar"),
            name_en=name,
        )
    return ReferenceOption(
        id=int(row["id"]),
        name=row.get("name") or "",
        name_ar=row.get("name_ar"),
        brand_id=_int_or_none(row.get("brand_id")),
        country_id=_int_or_none(row.get("country_id")),
        code=row.get("code"),
        currency_code=row.get("currency_code"),
    )


def _int_or_none(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)
