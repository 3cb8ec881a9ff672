"""Shared BDD fixtures and step definitions."""

import pytest
from pytest_bdd import parsers, then


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@then(parsers.cfparse('the {action} fails with "{kind}"'))
def failed_with(error, action, kind):
    assert error["exc"] is not None, f"expected the {action} to fail"
    assert type(error["exc"]).__name__ == kind
