"""Shared BDD fixtures and step definitions for the tracking domain."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a registered customer "{user_code}"'))
def registered_customer(user_code):
    from tracking.customer.registration import RegisterCustomer

    current_domain.process(
        RegisterCustomer(user_code=user_code, first_name="Bdd", last_name="Customer"),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the update is rejected")
def update_rejected(error):
    assert isinstance(error["exc"], ValidationError)
