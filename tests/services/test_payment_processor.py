"""
PaymentProcessor tests.

Each settlement event against wholesale (cash-for-silver leaves cash alone,
silver returns allowed) and product (cash-for-silver offsets cash) sales.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from silver_kernel.domain.payments import EntryType, SilverPayment
from silver_kernel.domain.status import SaleStatus, SilverReturnStatus
from silver_kernel.exceptions import (
    InvalidPaymentError,
    SaleNotFoundError,
    SilverReturnExceededError,
    UnsupportedChannelOperationError,
)


@pytest.fixture
def customer(create_customer):
    return create_customer()


@pytest.fixture
def wholesale_sale(customer, create_sale):
    return create_sale(customer.id, channel="wholesale")


@pytest.fixture
def product_sale(customer, create_sale):
    return create_sale(customer.id, channel="product")


class TestCashPayment:
    def test_reduces_cash_only(self, wholesale_sale, payments, customer_service, customer, test_actor_id):
        sale = payments.add_cash_payment(wholesale_sale.id, Decimal("475"), test_actor_id)
        assert sale.paid_cash == Decimal("475.00")
        assert sale.remaining_cash == Decimal("9000.00")
        assert sale.remaining_weight == Decimal("94.000")
        balances = customer_service.get(customer.id)
        assert balances.weight_balance == Decimal("94.000")
        assert balances.cash_balance == Decimal("9000.00")

    def test_amount_rounded_to_paise(self, wholesale_sale, payments, ledger_selector, test_actor_id):
        payments.add_cash_payment(wholesale_sale.id, Decimal("100.005"), test_actor_id)
        entry = ledger_selector.sale_entries(wholesale_sale.id)[-1]
        assert entry.cash_delta == Decimal("-100.01")
        assert entry.cash_amount == Decimal("100.01")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("0.004")])
    def test_non_positive_rejected(self, wholesale_sale, payments, test_actor_id, amount):
        with pytest.raises(InvalidPaymentError):
            payments.add_cash_payment(wholesale_sale.id, amount, test_actor_id)

    def test_unknown_sale(self, payments, test_actor_id):
        with pytest.raises(SaleNotFoundError):
            payments.add_cash_payment(uuid4(), Decimal("10"), test_actor_id)


class TestSilverPayment:
    def test_reduces_weight_only(self, wholesale_sale, payments, customer_service, customer, test_actor_id):
        sale = payments.add_silver_payment(wholesale_sale.id, Decimal("40"), test_actor_id)
        assert sale.silver_paid == Decimal("40.000")
        assert sale.remaining_weight == Decimal("54.000")
        assert sale.remaining_cash == Decimal("9475.00")
        assert sale.status is SaleStatus.PARTIAL
        assert customer_service.get(customer.id).weight_balance == Decimal("54.000")

    def test_weighed_silver_credits_fine_and_records_source(self, wholesale_sale, payments, ledger_selector, test_actor_id):
        event = SilverPayment.from_gross(Decimal("50"), Decimal("92.5"), reference="F-12", payer="Mani")
        sale = payments.apply(wholesale_sale.id, event, test_actor_id)
        assert sale.silver_paid == Decimal("46.250")

        entry = ledger_selector.sale_entries(wholesale_sale.id)[-1]
        assert entry.weight_delta == Decimal("-46.250")
        assert entry.note == "Silver payment: fine 46.250g, weight 50.000g at 92.50% touch, by Mani, ref F-12"

    def test_explicit_note_wins(self, wholesale_sale, payments, ledger_selector, test_actor_id):
        event = SilverPayment(Decimal("5"), reference="F-1")
        payments.apply(wholesale_sale.id, event, test_actor_id, note="Old silver bar")
        assert ledger_selector.sale_entries(wholesale_sale.id)[-1].note == "Old silver bar"

    @pytest.mark.parametrize(
        "event, field",
        [
            (SilverPayment(Decimal("46"), gross_weight=Decimal("50"), touch_percent=Decimal("92.5")), "weight"),
            (SilverPayment(Decimal("50"), gross_weight=Decimal("50"), touch_percent=Decimal("100.5")), "touch_percent"),
            (SilverPayment(Decimal("46.25"), gross_weight=Decimal("50")), "touch_percent"),
            (SilverPayment(Decimal("1"), gross_weight=Decimal("0"), touch_percent=Decimal("90")), "gross_weight"),
        ],
    )
    def test_inconsistent_source_rejected(self, wholesale_sale, payments, ledger_selector, test_actor_id, event, field):
        with pytest.raises(InvalidPaymentError) as exc_info:
            payments.apply(wholesale_sale.id, event, test_actor_id)
        assert exc_info.value.field == field
        assert len(ledger_selector.sale_entries(wholesale_sale.id)) == 1


class TestCashForSilver:
    def test_wholesale_does_not_offset_cash(self, wholesale_sale, payments, customer_service, customer, ledger_selector, test_actor_id):
        sale = payments.add_cash_for_silver(wholesale_sale.id, Decimal("10"), Decimal("95"), test_actor_id)
        assert sale.cash_for_silver_weight == Decimal("10.000")
        assert sale.cash_for_silver_value == Decimal("950.00")
        assert sale.remaining_weight == Decimal("84.000")
        assert sale.remaining_cash == Decimal("9475.00")
        balances = customer_service.get(customer.id)
        assert balances.cash_balance == Decimal("9475.00")

        entry = ledger_selector.sale_entries(wholesale_sale.id)[-1]
        assert entry.entry_type is EntryType.CASH_FOR_SILVER
        assert entry.cash_delta == 0
        assert entry.cash_amount == Decimal("950.00")
        assert entry.silver_rate == Decimal("95")

    def test_product_offsets_cash(self, product_sale, payments, customer_service, customer, test_actor_id):
        sale = payments.add_cash_for_silver(product_sale.id, Decimal("10"), Decimal("95"), test_actor_id)
        assert sale.remaining_weight == Decimal("84.000")
        assert sale.remaining_cash == Decimal("8525.00")
        assert customer_service.get(customer.id).cash_balance == Decimal("8525.00")

    def test_zero_rate_rejected(self, product_sale, payments, test_actor_id):
        with pytest.raises(InvalidPaymentError) as exc_info:
            payments.add_cash_for_silver(product_sale.id, Decimal("10"), Decimal("0"), test_actor_id)
        assert exc_info.value.field == "rate"


class TestSilverReturn:
    def test_partial_then_complete(self, wholesale_sale, payments, test_actor_id):
        sale = payments.add_silver_return(wholesale_sale.id, Decimal("40"), test_actor_id)
        assert sale.silver_returned == Decimal("40.000")
        assert sale.silver_return_status is SilverReturnStatus.PARTIAL
        assert sale.remaining_weight == Decimal("54.000")

        sale = payments.add_silver_return(wholesale_sale.id, Decimal("54"), test_actor_id)
        assert sale.silver_return_status is SilverReturnStatus.COMPLETED
        assert sale.remaining_weight == 0

    def test_exceeding_outstanding_rejected(self, wholesale_sale, payments, customer_service, customer, test_actor_id):
        payments.add_silver_return(wholesale_sale.id, Decimal("90"), test_actor_id)
        with pytest.raises(SilverReturnExceededError) as exc_info:
            payments.add_silver_return(wholesale_sale.id, Decimal("4.001"), test_actor_id)
        assert exc_info.value.remaining == Decimal("4.000")
        assert customer_service.get(customer.id).weight_balance == Decimal("4.000")

    def test_silver_already_paid_cannot_be_returned(self, wholesale_sale, payments, customer_service, customer, test_actor_id):
        sale = payments.add_silver_payment(wholesale_sale.id, Decimal("94"), test_actor_id)
        assert sale.silver_return_status is SilverReturnStatus.COMPLETED

        with pytest.raises(SilverReturnExceededError) as exc_info:
            payments.add_silver_return(wholesale_sale.id, Decimal("94"), test_actor_id)
        assert exc_info.value.remaining == 0
        assert customer_service.get(customer.id).weight_balance == 0

    def test_paid_silver_counts_toward_return(self, wholesale_sale, payments, test_actor_id):
        sale = payments.add_silver_payment(wholesale_sale.id, Decimal("50"), test_actor_id)
        assert sale.silver_return_status is SilverReturnStatus.PARTIAL

        sale = payments.add_silver_return(wholesale_sale.id, Decimal("44"), test_actor_id)
        assert sale.silver_return_status is SilverReturnStatus.COMPLETED
        assert sale.remaining_weight == 0
        with pytest.raises(SilverReturnExceededError):
            payments.add_silver_return(wholesale_sale.id, Decimal("0.001"), test_actor_id)

    def test_cash_for_silver_counts_toward_return(self, wholesale_sale, payments, test_actor_id):
        payments.add_cash_for_silver(wholesale_sale.id, Decimal("90"), Decimal("100"), test_actor_id)
        with pytest.raises(SilverReturnExceededError) as exc_info:
            payments.add_silver_return(wholesale_sale.id, Decimal("5"), test_actor_id)
        assert exc_info.value.remaining == Decimal("4.000")

    def test_unsupported_on_product_channel(self, product_sale, payments, test_actor_id):
        with pytest.raises(UnsupportedChannelOperationError) as exc_info:
            payments.add_silver_return(product_sale.id, Decimal("1"), test_actor_id)
        assert exc_info.value.channel == "product"


class TestSettlement:
    def test_full_settlement_is_paid(self, wholesale_sale, payments, test_actor_id):
        payments.add_silver_payment(wholesale_sale.id, Decimal("94"), test_actor_id)
        sale = payments.add_cash_payment(wholesale_sale.id, Decimal("9475"), test_actor_id)
        assert sale.status is SaleStatus.PAID

    def test_within_tolerance_is_paid(self, wholesale_sale, payments, test_actor_id):
        payments.add_silver_payment(wholesale_sale.id, Decimal("93.995"), test_actor_id)
        sale = payments.add_cash_payment(wholesale_sale.id, Decimal("9474"), test_actor_id)
        assert sale.remaining_weight == Decimal("0.005")
        assert sale.remaining_cash == Decimal("1.00")
        assert sale.status is SaleStatus.PAID

    def test_just_outside_tolerance_is_partial(self, wholesale_sale, payments, test_actor_id):
        payments.add_silver_payment(wholesale_sale.id, Decimal("94"), test_actor_id)
        sale = payments.add_cash_payment(wholesale_sale.id, Decimal("9473.99"), test_actor_id)
        assert sale.remaining_cash == Decimal("1.01")
        assert sale.status is SaleStatus.PARTIAL

    def test_overpayment_is_paid(self, wholesale_sale, payments, test_actor_id):
        payments.add_silver_payment(wholesale_sale.id, Decimal("100"), test_actor_id)
        sale = payments.add_cash_payment(wholesale_sale.id, Decimal("10000"), test_actor_id)
        assert sale.remaining_weight == Decimal("-6.000")
        assert sale.status is SaleStatus.PAID

    def test_order_does_not_matter(self, customer, create_sale, payments, test_actor_id):
        first = create_sale(customer.id)
        second = create_sale(customer.id)
        payments.add_cash_payment(first.id, Decimal("5000"), test_actor_id)
        a = payments.add_silver_payment(first.id, Decimal("50"), test_actor_id)
        payments.add_silver_payment(second.id, Decimal("50"), test_actor_id)
        b = payments.add_cash_payment(second.id, Decimal("5000"), test_actor_id)
        assert (a.remaining_weight, a.remaining_cash, a.status) == (
            b.remaining_weight, b.remaining_cash, b.status,
        )

    def test_balance_matches_ledger_after_payments(self, wholesale_sale, payments, ledger_selector, customer, test_actor_id):
        payments.add_cash_payment(wholesale_sale.id, Decimal("1000.333"), test_actor_id)
        payments.add_cash_for_silver(wholesale_sale.id, Decimal("3.3333"), Decimal("91.17"), test_actor_id)
        payments.add_silver_return(wholesale_sale.id, Decimal("12.3456"), test_actor_id)
        check = ledger_selector.verify_customer_balance(customer.id)
        assert check.is_consistent
        assert check.entry_count == 4


class TestLogging:
    def test_payment_applied_logged(self, wholesale_sale, payments, captured_logs, test_actor_id):
        payments.add_cash_payment(wholesale_sale.id, Decimal("1000"), test_actor_id)
        record = next(r for r in captured_logs() if r["message"] == "payment_applied")
        assert record["entry_type"] == "cash_payment"
        assert record["sale_id"] == str(wholesale_sale.id)
        assert record["status"] == "partial"
