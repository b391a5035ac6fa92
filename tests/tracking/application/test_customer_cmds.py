"""Application tests for customer registration and updates."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from tracking.customer.customer import Customer, active_customers, find_customer
from tracking.customer.registration import RegisterCustomer, UpdateCustomer


def _register(**overrides):
    defaults = {"user_code": " jd01 ", "first_name": "John", "last_name": "Doe", "branch": "Kingston"}
    defaults.update(overrides)
    return current_domain.process(RegisterCustomer(**defaults), asynchronous=False)


class TestRegisterCustomer:
    def test_user_code_normalized(self):
        customer = current_domain.repository_for(Customer).get(_register())
        assert customer.user_code == "JD01"
        assert customer.is_active is True

    def test_find_by_user_code_ignores_case(self):
        customer_id = _register()
        assert str(find_customer("jd01").id) == customer_id
        assert find_customer("") is None

    def test_duplicate_user_code_rejected(self):
        _register()
        with pytest.raises(ValidationError):
            _register(user_code="JD01")

    def test_partner_format(self):
        record = current_domain.repository_for(Customer).get(_register()).to_partner()
        assert record["UserCode"] == "JD01"
        assert record["Branch"] == "Kingston"


class TestUpdateCustomer:
    def test_only_given_fields_change(self):
        customer_id = _register()
        current_domain.process(UpdateCustomer(customer_id=customer_id, phone="876-555-0100"), asynchronous=False)

        customer = current_domain.repository_for(Customer).get(customer_id)
        assert customer.phone == "876-555-0100"
        assert customer.first_name == "John"

    def test_deactivated_customer_not_listed(self):
        customer_id = _register()
        _register(user_code="JD02")
        current_domain.process(UpdateCustomer(customer_id=customer_id, is_active=False), asynchronous=False)

        assert [c.user_code for c in active_customers()] == ["JD02"]
