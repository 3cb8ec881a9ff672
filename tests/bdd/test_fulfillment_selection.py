"""BDD tests for choosing the fulfillment location."""

from dataclasses import replace

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

from omnistock.allocation.candidates import Candidate, CustomerContext
from omnistock.allocation.strategies import select_location

scenarios("features/fulfillment_selection.feature")


@given(parsers.cfparse("a customer at {latitude:f}, {longitude:f}"), target_fixture="context")
def customer(latitude, longitude):
    return CustomerContext(latitude=latitude, longitude=longitude)


@pytest.fixture()
def candidates():
    return []


@given(parsers.cfparse('location "{name}" at {latitude:f}, {longitude:f} with {available:d} units'))
def location(candidates, name, latitude, longitude, available):
    candidates.append(
        Candidate(
            location_id=name.lower().replace(" ", "-"),
            name=name,
            available=available,
            latitude=latitude,
            longitude=longitude,
        )
    )


@given(parsers.cfparse('the customer prefers "{name}"'), target_fixture="context")
def prefers(context, candidates, name):
    preferred = next(c for c in candidates if c.name == name)
    return replace(context, preferred_location_id=preferred.location_id)


@when(parsers.cfparse('{quantity:d} units are allocated using "{strategy}"'), target_fixture="chosen")
def allocate(context, candidates, error, quantity, strategy):
    try:
        return select_location(strategy, candidates, "var-bdd", quantity, context)
    except ValidationError as exc:
        error["exc"] = exc
        return None


@then(parsers.cfparse('the line ships from "{name}"'))
def ships_from(chosen, name):
    assert chosen is not None
    assert chosen.name == name
