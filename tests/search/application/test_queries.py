"""Tests for text, category, price and paged queries on the search index."""

from datetime import UTC, datetime, timedelta

import pytest
from catalogue.product.events import ProductCreated
from shared.exceptions import ValidationError

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def add(index):
    def _add(product_id, minutes=0, version=1, **overrides):
        values = {
            "product_id": product_id,
            "version": version,
            "owner_id": "user-1",
            "name": "Generic Item",
            "price_minor": 1000,
            "stock_count": 1,
            "category": "Home",
            "description": "",
            "tags": ["misc"],
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME + timedelta(minutes=minutes),
        }
        values.update(overrides)
        index.apply_if_newer(product_id, version, ProductCreated(**values))

    return _add


class TestQueryByText:
    def test_matches_name_description_and_tags(self, index, add):
        add("name", name="Kettle Pro")
        add("description", description="Boils water like a kettle")
        add("tag", tags=["kettle"])
        add("other", name="Toaster")

        ids = {d.product_id for d in index.query_by_text("kettle")}
        assert ids == {"name", "description", "tag"}

    def test_case_insensitive_substring(self, index, add):
        add("p1", name="Electric KETTLE")
        assert [d.product_id for d in index.query_by_text("Kett")] == ["p1"]

    def test_relevance_orders_name_over_tag_over_description(self, index, add):
        add("description", description="a kettle", minutes=3)
        add("tag", tags=["kettle"], minutes=2)
        add("name", name="Kettle", minutes=1)

        assert [d.product_id for d in index.query_by_text("kettle")] == ["name", "tag", "description"]

    def test_more_matching_tokens_rank_higher(self, index, add):
        add("one", name="Steel Kettle", minutes=5)
        add("both", name="Steel Kettle Black", minutes=1)

        assert [d.product_id for d in index.query_by_text("kettle black")] == ["both", "one"]

    def test_ties_broken_by_recency_then_id(self, index, add):
        add("b", name="Kettle", minutes=1)
        add("a", name="Kettle", minutes=1)
        add("c", name="Kettle", minutes=2)

        assert [d.product_id for d in index.query_by_text("kettle")] == ["c", "a", "b"]

    @pytest.mark.parametrize("q", ["Éclair", "éclair", "ÉCLAIR", "tin"])
    def test_accented_names_match_in_any_case(self, index, add, q):
        add("eclair", name="Éclair Tin")
        add("other", name="Eclair Pan")

        # Unaccented "Eclair" is a different word
        assert [d.product_id for d in index.query_by_text(q)] == ["eclair"]

    def test_accented_tags_and_descriptions_match(self, index, add):
        add("tag", tags=["Crème"])
        add("description", description="Fits a CRÈME brûlée dish")

        assert {d.product_id for d in index.query_by_text("crème")} == {"tag", "description"}

    def test_like_wildcards_are_literal(self, index, add):
        add("p1", name="100% cotton shirt")
        add("p2", name="Cotton shirt")

        assert [d.product_id for d in index.query_by_text("100%")] == ["p1"]
        assert index.query_by_text("_") == []

    @pytest.mark.parametrize("q", ["", "   "])
    def test_blank_query_rejected(self, index, q):
        with pytest.raises(ValidationError):
            index.query_by_text(q)


class TestQueryByCategory:
    def test_exact_category_most_recent_first(self, index, add):
        add("old", category="Books", minutes=1)
        add("new", category="Books", minutes=2)
        add("elsewhere", category="Toys")

        assert [d.product_id for d in index.query_by_category("Books")] == ["new", "old"]

    def test_known_category_without_products(self, index):
        assert index.query_by_category("Beauty") == []

    def test_unknown_category_rejected(self, index):
        with pytest.raises(ValidationError):
            index.query_by_category("Weapons")


class TestQueryByPriceRange:
    def test_inclusive_bounds_ordered_by_price(self, index, add):
        add("cheap", price_minor=500)
        add("low", price_minor=1000)
        add("high", price_minor=2000)
        add("pricey", price_minor=2001)

        assert [d.product_id for d in index.query_by_price_range(1000, 2000)] == ["low", "high"]

    def test_equal_prices_ordered_by_id(self, index, add):
        add("b", price_minor=1000)
        add("a", price_minor=1000)
        assert [d.product_id for d in index.query_by_price_range(1000, 1000)] == ["a", "b"]

    @pytest.mark.parametrize("bounds", [(-1, 10), (0, -1), (20, 10)])
    def test_invalid_bounds_rejected(self, index, bounds):
        with pytest.raises(ValidationError):
            index.query_by_price_range(*bounds)


class TestListing:
    def test_paged_listing_skips_tombstones(self, index, add):
        for i in range(5):
            add(f"p{i}", minutes=i)
        index.apply_if_newer("p4", 2, None)

        page = index.list_documents(page=0, size=3)
        assert [d.product_id for d in page.items] == ["p3", "p2", "p1"]
        assert page.total == 4
        assert page.total_pages == 2

    def test_size_clamped(self, index):
        assert index.list_documents(size=500).size == 100

    def test_invalid_paging_rejected(self, index):
        with pytest.raises(ValidationError):
            index.list_documents(page=-1, size=0)
