"""SaleReversalService: deleting a sale undoes every balance it touched."""

from decimal import Decimal
from uuid import uuid4

import pytest

from silver_kernel.domain.payments import CashPayment
from silver_kernel.exceptions import SaleNotFoundError
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.models.sale import Sale, SaleLineItem


def _count(session, model, **criteria) -> int:
    return session.query(model).filter_by(**criteria).count()


class TestDeleteSale:
    def test_settled_sale_restores_pre_sale_balances(
        self, create_customer, create_sale, payments, reversal, customer_service, ledger_selector, session, test_actor_id
    ):
        customer = create_customer(opening_weight=Decimal("12.5"), opening_cash=Decimal("300"))
        sale = create_sale(customer.id)
        payments.add_silver_payment(sale.id, Decimal("94"), test_actor_id)
        payments.add_cash_payment(sale.id, Decimal("9475"), test_actor_id)

        reversal.delete_sale(sale.id, test_actor_id)

        after = customer_service.get(customer.id)
        assert after.weight_balance == Decimal("12.500")
        assert after.cash_balance == Decimal("300.00")
        assert _count(session, LedgerEntry, sale_id=sale.id) == 0
        assert _count(session, Sale, id=sale.id) == 0
        assert _count(session, SaleLineItem, sale_id=sale.id) == 0
        assert ledger_selector.verify_customer_balance(customer.id).is_consistent

    def test_other_sales_untouched(self, create_customer, create_sale, reversal, customer_service, test_actor_id):
        customer = create_customer()
        keep = create_sale(customer.id)
        drop = create_sale(customer.id, immediate_payments=[CashPayment(Decimal("500"))])

        reversal.delete_sale(drop.id, test_actor_id)

        after = customer_service.get(customer.id)
        assert after.weight_balance == keep.total_silver_weight
        assert after.cash_balance == keep.total_amount

    def test_stock_restored(self, create_customer, create_sale, reversal, inventory_service, make_line, test_actor_id):
        item = inventory_service.add_stock_item("Chains", test_actor_id, pieces=5, gross_weight=Decimal("750"), net_weight=Decimal("500"))
        sale = create_sale(
            create_customer().id, channel="product", lines=[make_line(product_id=item.id, pieces=2)]
        )
        assert item.pieces == 3

        reversal.delete_sale(sale.id, test_actor_id)
        assert item.pieces == 5
        assert item.gross_weight == Decimal("750.000")
        assert item.net_weight == Decimal("500.000")

    def test_unknown_sale(self, reversal, test_actor_id):
        with pytest.raises(SaleNotFoundError):
            reversal.delete_sale(uuid4(), test_actor_id)

    def test_reversal_logged(self, create_customer, create_sale, reversal, captured_logs, test_actor_id):
        sale = create_sale(create_customer().id)
        reversal.delete_sale(sale.id, test_actor_id)
        record = next(r for r in captured_logs() if r["message"] == "sale_reversed")
        assert record["voucher_number"] == sale.voucher_number
        assert record["entries_removed"] == 1
        assert record["weight_after"] == "0.000"
