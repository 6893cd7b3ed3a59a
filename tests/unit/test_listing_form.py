from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.domain.entities.reference import ReferenceOption
from src.domain.entities.spare_part import SparePartEntity
from src.domain.services.listing_form import ListingForm


def _entity(**overrides):
    values = dict(
        id="sp-1",
        user_id="u-1",
        title="Brake pads",
        price=250.0,
        brand_id=1,
        model_id=10,
        category_id=5,
        city_id=100,
        country_id=1,
    )
    values.update(overrides)
    return SparePartEntity(**values)


class TestListingForm:
    def test_from_entity_stringifies_values(self):
        form = ListingForm.from_entity(_entity())
        assert form.title == "Brake pads"
        assert form.price == "250.0"
        assert form.brand_id == "1"
        assert form.city_id == "100"
        assert form.currency == "QAR"
        assert form.description == ""

    def test_from_entity_takes_country_from_city(self):
        city = ReferenceOption(id=200, name="Dubai", country_id=2)
        form = ListingForm.from_entity(_entity(country_id=None, city_id=200, city=city))
        assert form.country_id == "2"

    def test_change_country_clears_city(self):
        form = ListingForm.from_entity(_entity())
        form.set_field("country_id", 2)
        assert form.country_id == "2"
        assert form.city_id == ""

    def test_change_country_takes_currency(self):
        form = ListingForm.from_entity(_entity())
        form.change_country(2, "AED")
        assert form.currency == "AED"
        form.change_country(3)
        assert form.currency == "AED"

    def test_change_brand_clears_model(self):
        form = ListingForm.from_entity(_entity())
        form.set_field("brand_id", "2")
        assert form.brand_id == "2"
        assert form.model_id == ""

    def test_apply_cities_auto_selects_single_city(self):
        form = ListingForm(country_id="3")
        assert form.apply_cities([ReferenceOption(id=300, name="Manama", country_id=3)]) is True
        assert form.city_id == "300"

    def test_apply_cities_leaves_choice_open_for_many(self):
        form = ListingForm(country_id="2")
        cities = [ReferenceOption(id=200, name="Dubai"), ReferenceOption(id=201, name="Abu Dhabi")]
        assert form.apply_cities(cities) is False
        assert form.city_id == ""

    @pytest.mark.parametrize(
        "name,value",
        [("condition", "broken"), ("part_type", "fake"), ("brand_id", "abc"), ("colour", "red")],
    )
    def test_set_field_rejects_invalid_values(self, name, value):
        form = ListingForm()
        with pytest.raises(ValueError):
            form.set_field(name, value)

    def test_update_payload_types(self):
        form = ListingForm(
            title="Pads",
            price="99.5",
            description="",
            name_ar="فحمات",
            brand_id="1",
            model_id="",
            country_id="1",
        )
        now = datetime(2026, 3, 1, tzinfo=UTC)
        payload = form.to_update_payload(now)
        assert payload["price"] == 99.5
        assert payload["description"] is None
        assert payload["name_ar"] == "فحمات"
        assert payload["brand_id"] == 1
        assert payload["model_id"] is None
        assert payload["country_id"] == 1
        assert payload["updated_at"] == now.isoformat()

    def test_update_payload_unparseable_price_is_zero(self):
        assert ListingForm(price="twelve").to_update_payload()["price"] == 0.0
        assert ListingForm(price="").to_update_payload()["price"] == 0.0
