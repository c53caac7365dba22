"""
SaleReversalService -- delete a sale and undo its entire balance impact.

The customer's balances are reduced by the sum of every ledger delta that
belongs to the sale (the ``sale`` debit and all of its payments), tracked
stock is put back, and the sale's entries, lines and row are removed.  With
no other activity in between, the customer ends exactly where they were
before the sale.

Entries are deleted inside ``allow_ledger_reversal`` so the immutability
listener lets them through.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from silver_kernel.db.immutability import allow_ledger_reversal
from silver_kernel.db.types import ZERO
from silver_kernel.domain.clock import Clock, SystemClock
from silver_kernel.logging_config import LogContext, get_logger
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.services.customer_service import CustomerService
from silver_kernel.services.inventory_service import InventoryService
from silver_kernel.services.payment_processor import lock_sale

logger = get_logger("services.reversal")


class SaleReversalService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        inventory: InventoryService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._customers = CustomerService(session, self._clock)
        self._inventory = inventory or InventoryService(session)

    def delete_sale(self, sale_id: UUID, actor_id: UUID) -> None:
        """
        Raises:
            SaleNotFoundError: If the sale does not exist.
        """
        sale = lock_sale(self._session, sale_id)
        customer = self._customers.lock(sale.customer_id)

        entries = self._session.execute(
            select(LedgerEntry).where(LedgerEntry.sale_id == sale.id)
        ).scalars().all()
        weight_impact = sum((e.weight_delta for e in entries), ZERO)
        cash_impact = sum((e.cash_delta for e in entries), ZERO)

        with LogContext.bind(sale_id=sale.id, customer_id=customer.id, channel=sale.channel):
            customer.weight_balance -= weight_impact
            customer.cash_balance -= cash_impact
            customer.updated_by_id = actor_id

            for line in sale.lines:
                if line.product_id is not None:
                    self._inventory.restore(
                        line.product_id, line.pieces, line.gross_weight, line.net_weight
                    )

            with allow_ledger_reversal(self._session):
                for entry in entries:
                    self._session.delete(entry)
                self._session.flush()

            voucher_number = sale.voucher_number
            self._session.delete(sale)
            self._session.flush()

            logger.info(
                "sale_reversed",
                extra={
                    "voucher_number": voucher_number,
                    "entries_removed": len(entries),
                    "weight_reversed": weight_impact,
                    "cash_reversed": cash_impact,
                    "weight_after": customer.weight_balance,
                    "cash_after": customer.cash_balance,
                },
            )
