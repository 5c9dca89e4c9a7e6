import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Pin the environment so settings, log levels and the fake-vendor routes
    behave the same on every machine, then initialize the domain and push its
    context. The activated domain can then be referred to as `current_domain`.
    """
    os.environ["ENVIRONMENT"] = session.config.option.env
    os.environ.setdefault("VENDOR_ADAPTER", "fake")

    from orchestration.domain import orchestration
    from orchestration.order import store  # noqa: F401  registers Order and its repository

    orchestration.init(traverse=False)
    orchestration.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to clear stored orders and vendor wiring after every test"""
    yield

    from orchestration.vendors import reset_vendors
    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    reset_vendors()
