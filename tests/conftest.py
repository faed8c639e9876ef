import os
from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings as hypothesis_settings

os.environ.setdefault("STOREFRONT_ENV", "test")

hypothesis_settings.register_profile("default", max_examples=50, deadline=None)
hypothesis_settings.register_profile(
    "thorough",
    max_examples=500,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
hypothesis_settings.load_profile("default")


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Pins the environment and configures logging before the domain is initialized,
    so the domain leaves the handlers alone and no log files are written.
    """
    os.environ["STOREFRONT_ENV"] = session.config.option.env

    from shared.logging import configure_logging

    configure_logging(log_dir=None, force=True)


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path or "/bdd/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/property/" in test_path:
            item.add_marker(pytest.mark.property)


@pytest.fixture(scope="session")
def database_urls(tmp_path_factory):
    """One pair of SQLite files for the whole run; the domain is initialized once per process."""
    directory = tmp_path_factory.mktemp("databases")
    return {
        "catalogue_database_url": f"sqlite:///{directory / 'catalogue.db'}",
        "search_database_url": f"sqlite:///{directory / 'search.db'}",
    }


@pytest.fixture(scope="session", autouse=True)
def domain(database_urls):
    """Initialize the catalogue domain, activate its context and create the schemas.

    The activated domain can then be referred to elsewhere as `current_domain`
    """
    from catalogue.domain import init_catalogue
    from shared.config import Settings
    from shared.db import drop_db, setup_db

    catalogue = init_catalogue(Settings(env="test", **database_urls))
    context = catalogue.domain_context()
    context.push()
    setup_db(catalogue)

    yield catalogue

    drop_db(catalogue)
    context.pop()


@pytest.fixture(autouse=True)
def run_around_tests(domain):
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from shared.db import reset_db

    reset_db(domain)


@pytest.fixture
def settings(database_urls):
    from shared.config import Settings

    return Settings(
        env="test",
        **database_urls,
        propagation_partitions=2,
        propagation_max_attempts=3,
        propagation_base_backoff_seconds=0.01,
        propagation_max_backoff_seconds=0.05,
        propagation_poll_interval_seconds=0.01,
        disconnect_poll_seconds=0.05,
    )


@pytest.fixture
def session_validator():
    from gateway.auth.fake_validator import FakeSessionValidator

    return FakeSessionValidator()


@pytest.fixture
def backoff_sleeps():
    """Delays the outbox processor asked to sleep; nothing actually sleeps."""
    return []


@pytest.fixture
def services(settings, session_validator, backoff_sleeps):
    from services import build_services

    services = build_services(settings, session_validator=session_validator, sleep=backoff_sleeps.append)
    services.setup_databases()
    return services


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def index(services):
    return services.index


@pytest.fixture
def outbox(services):
    return services.outbox


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fixture to reset cached settings and adapters after every test"""
    yield

    from gateway.auth import reset_session_validator
    from shared.config import reset_settings

    reset_session_validator()
    reset_settings()


def _product_fields(**overrides):
    fields = {
        "name": "Trail Running Shoes",
        "price_minor": 1200,
        "stock_count": 10,
        "category": "Sports",
        "description": "Lightweight shoes for rough terrain",
        "tags": ["running", "outdoor"],
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def product_fields():
    """Factory for a valid set of product fields, with overrides."""
    return _product_fields


def _all_pending(outbox):
    pending = []
    for partition in range(outbox.partitions):
        pending.extend(outbox.fetch_pending(partition))
    return pending


@pytest.fixture
def all_pending():
    """Every deliverable outbox event across all partitions."""
    return _all_pending
