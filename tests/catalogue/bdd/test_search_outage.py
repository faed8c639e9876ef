"""BDD tests for propagation during and after a search index outage."""

from pytest_bdd import given, parsers, scenarios, then, when
from search.index import SearchIndex
from shared.exceptions import TransientInfraError

scenarios("features/search_outage.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the search index is unavailable")
def search_index_unavailable(monkeypatch):
    def unavailable(self, product_id, version, snapshot=None):
        raise TransientInfraError("search index unavailable")

    monkeypatch.setattr(SearchIndex, "apply_if_newer", unavailable)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the search index recovers")
def search_index_recovers(monkeypatch):
    monkeypatch.undo()


@when("the dead letters are replayed")
def replay_dead_letters(outbox):
    for letter in outbox.list_dead_letters():
        outbox.replay_dead_letter(letter.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the product has {count:d} dead letter"))
@then(parsers.cfparse("the product has {count:d} dead letters"))
def product_has_dead_letters(outbox, product, count):
    letters = [letter for letter in outbox.list_dead_letters() if letter.product_id == product.id]
    assert len(letters) == count
