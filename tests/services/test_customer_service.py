"""CustomerService: creation, lookups, adjustments and deletion rules."""

from decimal import Decimal
from uuid import uuid4

import pytest

from silver_kernel.domain.payments import EntryType
from silver_kernel.exceptions import (
    ConflictError,
    CustomerNotFoundError,
    CustomerReferencedError,
    DuplicatePhoneError,
    InvalidArgumentError,
)


class TestCreate:
    def test_defaults(self, customer_service, test_actor_id):
        customer = customer_service.create_customer("Lakshmi Stores", "98400 12345", test_actor_id)
        assert customer.phone == "9840012345"
        assert customer.is_active
        assert customer.weight_balance == 0
        assert customer.cash_balance == 0

    def test_opening_balance_written_as_adjustment(self, create_customer, ledger_selector):
        customer = create_customer(opening_weight=Decimal("5.25"), opening_cash=Decimal("-200"))
        statement = ledger_selector.customer_statement(customer.id)
        assert [e.entry_type for e in statement.entries] == [EntryType.ADJUSTMENT]
        assert statement.closing_weight == Decimal("5.250")
        assert statement.closing_cash == Decimal("-200.00")
        assert customer.cash_balance == Decimal("-200.00")

    @pytest.mark.parametrize("name, phone", [("", "9000000000"), ("Ravi", "  ")])
    def test_name_and_phone_required(self, customer_service, test_actor_id, name, phone):
        with pytest.raises(InvalidArgumentError):
            customer_service.create_customer(name, phone, test_actor_id)

    def test_duplicate_phone_is_a_conflict(self, customer_service, test_actor_id):
        first = customer_service.create_customer("Ravi", "90000 00009", test_actor_id)
        with pytest.raises(DuplicatePhoneError) as exc_info:
            customer_service.create_customer("Ravi Kumar", "9000000009", test_actor_id)
        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.existing_customer_id == str(first.id)
        assert customer_service.find_by_phone("9000000009").name == "Ravi"


class TestGetOrCreate:
    def test_existing_phone_returns_same_customer(self, customer_service, test_actor_id):
        first = customer_service.get_or_create_by_phone("Ravi", "9000000001", test_actor_id)
        second = customer_service.get_or_create_by_phone("Ravi K", "9000 000001", test_actor_id)
        assert first.id == second.id
        assert second.name == "Ravi"

    def test_new_phone_creates(self, customer_service, test_actor_id):
        customer = customer_service.get_or_create_by_phone("Meena", "9000000002", test_actor_id)
        assert customer_service.find_by_phone("9000000002").id == customer.id


class TestAdjust:
    def test_adjustment_moves_both_balances(self, create_customer, customer_service, test_actor_id):
        customer = create_customer()
        entry = customer_service.adjust_balances(
            customer.id, Decimal("1.2345"), Decimal("-10.555"), test_actor_id, "Scale recalibration"
        )
        assert entry.entry_type is EntryType.ADJUSTMENT
        assert entry.weight_delta == Decimal("1.235")
        assert entry.cash_delta == Decimal("-10.56")
        after = customer_service.get(customer.id)
        assert after.weight_balance == Decimal("1.235")
        assert after.cash_balance == Decimal("-10.56")

    def test_empty_adjustment_rejected(self, create_customer, customer_service, test_actor_id):
        with pytest.raises(InvalidArgumentError):
            customer_service.adjust_balances(create_customer().id, Decimal("0"), Decimal("0"), test_actor_id, "noop")

    def test_note_required(self, create_customer, customer_service, test_actor_id):
        with pytest.raises(InvalidArgumentError) as exc_info:
            customer_service.adjust_balances(create_customer().id, Decimal("1"), Decimal("0"), test_actor_id, " ")
        assert exc_info.value.field == "note"


class TestLifecycle:
    def test_unknown_customer(self, customer_service):
        with pytest.raises(CustomerNotFoundError):
            customer_service.get(uuid4())

    def test_deactivate(self, create_customer, customer_service, test_actor_id):
        customer = customer_service.deactivate(create_customer().id, test_actor_id)
        assert customer.is_active is False

    def test_delete_unused_customer(self, create_customer, customer_service):
        customer = create_customer()
        customer_service.delete_customer(customer.id)
        assert customer_service.find_by_phone(customer.phone) is None

    def test_delete_refused_with_sales(self, create_customer, create_sale, customer_service):
        customer = create_customer()
        create_sale(customer.id)
        with pytest.raises(CustomerReferencedError) as exc_info:
            customer_service.delete_customer(customer.id)
        assert exc_info.value.sale_count == 1

    def test_delete_refused_with_ledger_history(self, create_customer, customer_service):
        customer = create_customer(opening_cash=Decimal("100"))
        with pytest.raises(CustomerReferencedError):
            customer_service.delete_customer(customer.id)
