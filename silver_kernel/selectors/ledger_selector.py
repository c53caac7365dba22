"""
LedgerSelector -- read-only views over customers, sales and ledger entries.

``verify_customer_balance`` is the check behind the ledger's central
invariant: a customer's stored balances equal the sum of their ledger
deltas.  It is cheap enough to run after every write in tests.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from silver_kernel.domain.dtos import (
    BalanceCheck,
    CustomerStatement,
    LedgerEntryView,
    SaleView,
)
from silver_kernel.exceptions import CustomerNotFoundError, SaleNotFoundError
from silver_kernel.models.customer import Customer
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.models.sale import Sale
from silver_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


class LedgerSelector(BaseSelector[LedgerEntry]):
    def _customer(self, customer_id: UUID) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(str(customer_id))
        return customer

    def _sum_deltas(self, *criteria) -> tuple[Decimal, Decimal, int]:
        weight, cash, count = self.session.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.weight_delta), ZERO),
                func.coalesce(func.sum(LedgerEntry.cash_delta), ZERO),
                func.count(LedgerEntry.id),
            ).where(*criteria)
        ).one()
        return Decimal(weight), Decimal(cash), count

    def sale_detail(self, sale_id: UUID) -> SaleView:
        sale = self.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        return sale.to_dto()

    def sale_entries(self, sale_id: UUID) -> list[LedgerEntryView]:
        rows = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.sale_id == sale_id)
            .order_by(LedgerEntry.customer_id, LedgerEntry.sequence)
        ).scalars()
        return [r.to_dto() for r in rows]

    def customer_sales(self, customer_id: UUID) -> list[SaleView]:
        rows = self.session.execute(
            select(Sale)
            .where(Sale.customer_id == customer_id)
            .order_by(Sale.sale_date, Sale.voucher_number)
        ).scalars()
        return [r.to_dto() for r in rows]

    def customer_statement(
        self,
        customer_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CustomerStatement:
        """
        Entries with ``start <= occurred_at < end`` plus the balances on
        either side of the window.  Opening balances are the sum of all
        earlier deltas, so the statement is independent of stored balances.
        """
        customer = self._customer(customer_id)

        if start is not None:
            opening_weight, opening_cash, _ = self._sum_deltas(
                LedgerEntry.customer_id == customer_id,
                LedgerEntry.occurred_at < start,
            )
        else:
            opening_weight = opening_cash = ZERO

        query = select(LedgerEntry).where(LedgerEntry.customer_id == customer_id)
        if start is not None:
            query = query.where(LedgerEntry.occurred_at >= start)
        if end is not None:
            query = query.where(LedgerEntry.occurred_at < end)
        entries = tuple(
            e.to_dto()
            for e in self.session.execute(
                query.order_by(LedgerEntry.customer_id, LedgerEntry.sequence)
            ).scalars()
        )

        closing_weight = opening_weight + sum((e.weight_delta for e in entries), ZERO)
        closing_cash = opening_cash + sum((e.cash_delta for e in entries), ZERO)

        return CustomerStatement(
            customer=customer.to_dto(),
            start=start,
            end=end,
            opening_weight=opening_weight,
            opening_cash=opening_cash,
            entries=entries,
            closing_weight=closing_weight,
            closing_cash=closing_cash,
        )

    def verify_customer_balance(self, customer_id: UUID) -> BalanceCheck:
        customer = self._customer(customer_id)
        weight, cash, count = self._sum_deltas(LedgerEntry.customer_id == customer_id)
        return BalanceCheck(
            customer_id=customer_id,
            stored_weight=customer.weight_balance,
            stored_cash=customer.cash_balance,
            ledger_weight=weight,
            ledger_cash=cash,
            entry_count=count,
        )
