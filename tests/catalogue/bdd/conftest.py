"""Shared BDD fixtures and step definitions for catalogue writes reaching search."""

import pytest
from pytest_bdd import given, parsers, then, when
from shared.exceptions import CatalogError, ForbiddenError


@pytest.fixture
def error():
    """Holds the exception raised by a when-step, if any."""
    return {"exc": None}


def _fields_of(product, **overrides):
    fields = {
        "name": product.name,
        "price_minor": product.price_minor,
        "stock_count": product.stock_count,
        "category": product.category,
        "description": product.description,
        "tags": list(product.tags),
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def fields_of():
    """Current fields of a product, with overrides, ready for a full-field update."""
    return _fields_of


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('user "{owner_id}" owns a "{category}" product "{name}" priced {price:d}'),
    target_fixture="product",
)
def owned_product(store, owner_id, category, name, price):
    return store.create(
        owner_id,
        {
            "name": name,
            "price_minor": price,
            "stock_count": 5,
            "category": category,
            "tags": ["bdd"],
        },
    )


@given("propagation drains")
@when("propagation drains")
def propagation_drains(services):
    services.propagation.drain()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('user "{user_id}" deletes the product'))
def delete_product(store, product, error, user_id):
    try:
        store.delete(product.id, user_id)
    except CatalogError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the write is rejected as forbidden")
def write_rejected_as_forbidden(error):
    assert error["exc"] is not None, "Expected the write to be rejected but it succeeded"
    assert isinstance(error["exc"], ForbiddenError)


@then(parsers.cfparse('a text search for "{q}" finds the product'))
def text_search_finds_product(index, product, q):
    assert [document.product_id for document in index.query_by_text(q)] == [product.id]


@then(parsers.cfparse('a text search for "{q}" finds nothing'))
def text_search_finds_nothing(index, q):
    assert index.query_by_text(q) == []
