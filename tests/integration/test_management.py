"""Tests for the management CLI and the monitoring dashboard."""

import pytest
from fastapi.testclient import TestClient
from search.index import SearchIndex
from shared.exceptions import TransientInfraError
from sqlalchemy import inspect


def _unavailable(self, product_id, version, snapshot=None):
    raise TransientInfraError("search index unavailable")


def _tables(services, provider):
    return inspect(services.domain.providers[provider]._engine).get_table_names()


@pytest.fixture
def dead_letter(services, store, product_fields, monkeypatch):
    product = store.create("user-1", product_fields())
    monkeypatch.setattr(SearchIndex, "apply_if_newer", _unavailable)
    services.propagation.drain()
    monkeypatch.undo()
    [letter] = services.outbox.list_dead_letters()
    assert letter.product_id == product.id
    return letter


class TestManageCommands:
    def test_setup_and_drop(self, services, capsys):
        from manage import main

        documents = services.index.model.__table__.name
        outbox = services.outbox.repository._dao.database_model_cls.__table__.name

        main(["drop-db", "--database", "search"], services=services)
        assert documents not in _tables(services, "search")
        assert outbox in _tables(services, "default")

        main(["setup-db"], services=services)
        assert documents in _tables(services, "search")
        assert "Done." in capsys.readouterr().out

    def test_propagate(self, services, store, index, product_fields, capsys):
        from manage import main

        product = store.create("user-1", product_fields())
        main(["propagate"], services=services)

        assert index.get_by_id(product.id).source_version == 1
        assert "Settled 1 event(s)" in capsys.readouterr().out

    def test_list_dead_letters(self, services, dead_letter, capsys):
        from manage import main

        main(["dead-letters"], services=services)

        out = capsys.readouterr().out
        assert dead_letter.id in out
        assert "ProductCreated" in out
        assert "search index unavailable" in out

    def test_replay_dead_letter(self, services, index, dead_letter, capsys):
        from manage import main

        main(["replay-dead-letter", str(dead_letter.id)], services=services)
        main(["propagate"], services=services)

        assert index.get_by_id(dead_letter.product_id).source_version == 1
        assert "is pending again" in capsys.readouterr().out

    def test_replay_unknown_dead_letter_exits_with_error(self, services, capsys):
        from manage import main

        with pytest.raises(SystemExit) as exc:
            main(["replay-dead-letter", "does-not-exist"], services=services)

        assert exc.value.code == 1
        assert "Dead letter does-not-exist not found" in capsys.readouterr().err


class TestMonitor:
    def test_dashboard(self, services, dead_letter):
        from monitor import create_monitor

        with TestClient(create_monitor(services)) as client:
            health = client.get("/health").json()
            outbox = client.get("/outbox").json()
            letters = client.get("/dead-letters").json()["dead_letters"]

        assert health["status"] == "ok"
        assert health["search"]["documents"] == 0
        assert outbox["counts"]["abandoned"] == 1
        assert sum(outbox["pending_by_partition"].values()) == 0
        assert [letter["id"] for letter in letters] == [dead_letter.id]
        assert letters[0]["type"] == "Catalogue.ProductCreated.v1"
