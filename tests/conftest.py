import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config environment before the domain is imported, so
    domain.toml and the logging setup pick it up.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session")
def omnistock_bed():
    from omnistock.domain import omnistock
    from omnistock.utils.db import drop_db, setup_db

    bed = DomainFixture(omnistock)
    bed.setup()
    setup_db(omnistock)
    yield bed
    drop_db(omnistock)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(omnistock_bed):
    with omnistock_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Fresh engine, locks and adapters for every test."""
    from omnistock.notification import reset_dispatcher
    from omnistock.shipping import reset_shipping_cost
    from omnistock.stock.engine import reset_engine
    from omnistock.stock.locking import reset_row_locks

    reset_engine()
    reset_row_locks()
    reset_shipping_cost()
    reset_dispatcher()
    yield
    reset_engine()
    reset_row_locks()
    reset_shipping_cost()
    reset_dispatcher()


@pytest.fixture()
def engine():
    from omnistock.stock.engine import get_engine

    return get_engine()


@pytest.fixture()
def dispatcher():
    from omnistock.notification import get_dispatcher

    return get_dispatcher()
