"""Tests for ProductDetails validation."""

import pytest
from catalogue.product.product import MAX_TAGS, ProductDetails
from protean.exceptions import IncorrectUsageError, ValidationError
from protean.utils import DomainObjects


def _fields(**overrides):
    fields = {
        "name": "Desk Lamp",
        "price_minor": 4500,
        "stock_count": 3,
        "category": "Home",
        "description": "Adjustable LED desk lamp",
        "tags": ["lighting", "office"],
    }
    fields.update(overrides)
    return fields


def _errors(**overrides):
    with pytest.raises(ValidationError) as exc:
        ProductDetails.from_fields(_fields(**overrides))
    return exc.value.messages


def test_product_details_element_type():
    assert ProductDetails.element_type == DomainObjects.VALUE_OBJECT


class TestValidDetails:
    def test_all_fields_accepted(self):
        details = ProductDetails.from_fields(_fields())
        assert details.name == "Desk Lamp"
        assert details.price_minor == 4500
        assert details.stock_count == 3
        assert details.category == "Home"

    def test_tags_sorted_and_deduplicated(self):
        details = ProductDetails.from_fields(_fields(tags=["office", "lighting", "office", " led "]))
        assert list(details.tags) == ["led", "lighting", "office"]

    def test_name_is_stripped(self):
        details = ProductDetails.from_fields(_fields(name="  Desk Lamp  "))
        assert details.name == "Desk Lamp"

    def test_description_is_optional(self):
        fields = _fields()
        del fields["description"]
        assert ProductDetails.from_fields(fields).description == ""

    def test_zero_stock_allowed(self):
        assert ProductDetails.from_fields(_fields(stock_count=0)).stock_count == 0

    def test_details_are_immutable(self):
        details = ProductDetails.from_fields(_fields())
        with pytest.raises(IncorrectUsageError):
            details.name = "Floor Lamp"


class TestPriceInvariant:
    def test_zero_price_rejected(self):
        assert "price_minor" in _errors(price_minor=0)

    def test_negative_price_rejected(self):
        assert "Price must be greater than zero" in _errors(price_minor=-1)["price_minor"]

    def test_fractional_price_rejected(self):
        assert "price_minor" in _errors(price_minor=12.5)

    def test_boolean_price_rejected(self):
        assert "price_minor" in _errors(price_minor=True)

    def test_numeric_string_price_rejected(self):
        assert "price_minor" in _errors(price_minor="1200")


class TestStockInvariant:
    def test_negative_stock_rejected(self):
        assert "Stock cannot be negative" in _errors(stock_count=-1)["stock_count"]

    def test_numeric_string_stock_rejected(self):
        assert "Stock must be an integer" in _errors(stock_count="7")["stock_count"]


class TestCategoryInvariant:
    def test_unknown_category_rejected(self):
        assert "category" in _errors(category="Weapons")

    @pytest.mark.parametrize(
        "category",
        ["Electronics", "Clothing", "Books", "Home", "Sports", "Food", "Beauty", "Toys"],
    )
    def test_every_known_category_accepted(self, category):
        assert ProductDetails.from_fields(_fields(category=category)).category == category


class TestTagsInvariant:
    def test_empty_tags_rejected(self):
        assert "Tags cannot be empty" in _errors(tags=[])["tags"]

    def test_blank_tags_rejected(self):
        assert "tags" in _errors(tags=["  "])

    def test_too_many_tags_rejected(self):
        tags = [f"tag{i}" for i in range(MAX_TAGS + 1)]
        assert f"Tags cannot be more than {MAX_TAGS}" in _errors(tags=tags)["tags"]

    def test_duplicates_do_not_count_toward_limit(self):
        tags = ["a1", "a2", "a3", "a4", "a5", "a5", "a1"]
        assert len(ProductDetails.from_fields(_fields(tags=tags)).tags) == 5

    def test_tags_must_be_a_list(self):
        assert "tags" in _errors(tags="running")


class TestNameInvariant:
    def test_blank_name_rejected(self):
        assert "Name cannot be blank" in _errors(name="   ")["name"]

    def test_single_character_name_rejected(self):
        assert "name" in _errors(name="A")

    def test_overlong_name_rejected(self):
        assert "name" in _errors(name="x" * 101)


class TestErrorReporting:
    def test_missing_required_fields_reported(self):
        with pytest.raises(ValidationError) as exc:
            ProductDetails.from_fields({})
        assert set(exc.value.messages) == {"name", "price_minor", "stock_count", "category", "tags"}

    def test_all_violations_reported_together(self):
        errors = _errors(price_minor=0, stock_count=-5, category="Nope", tags=[])
        assert {"price_minor", "stock_count", "category", "tags"} <= set(errors)

    def test_unknown_fields_rejected(self):
        assert "_entity" in _errors(colour="red")
