"""
LedgerWriter -- the only code path that moves a customer balance.

Responsibility:
    Applies a signed (weight, cash) delta to a locked ``Customer`` row and
    appends the matching ``LedgerEntry`` with before/after values for both
    balances.

Invariants enforced:
    - Deltas are rounded to persisted precision (3 dp / 2 dp) *before* they
      are applied, so the stored balance is always exactly the sum of the
      stored deltas.
    - One call writes exactly one entry.
    - Entries are numbered per customer from the locked customer row, so
      the ledger order is total even within one transaction.

Non-goals:
    - Locking.  Callers pass a customer row they already hold
      ``FOR UPDATE``.
    - Commit.  ``flush()`` only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from silver_kernel.db.types import ZERO, round_money, round_weight
from silver_kernel.domain.payments import EntryType
from silver_kernel.logging_config import get_logger
from silver_kernel.models.customer import Customer
from silver_kernel.models.ledger_entry import LedgerEntry

logger = get_logger("services.ledger_writer")


class LedgerWriter:
    def __init__(self, session: Session):
        self._session = session

    def post(
        self,
        customer: Customer,
        entry_type: EntryType,
        weight_delta: Decimal,
        cash_delta: Decimal,
        actor_id: UUID,
        occurred_at: datetime,
        sale_id: UUID | None = None,
        cash_amount: Decimal = ZERO,
        silver_rate: Decimal | None = None,
        note: str | None = None,
    ) -> LedgerEntry:
        """
        Move ``customer``'s balances and record the movement.

        Returns:
            The flushed ``LedgerEntry``.
        """
        weight_delta = round_weight(weight_delta)
        cash_delta = round_money(cash_delta)

        weight_before = customer.weight_balance
        cash_before = customer.cash_balance
        weight_after = weight_before + weight_delta
        cash_after = cash_before + cash_delta

        customer.weight_balance = weight_after
        customer.cash_balance = cash_after
        customer.last_entry_sequence += 1

        entry = LedgerEntry(
            customer_id=customer.id,
            sale_id=sale_id,
            sequence=customer.last_entry_sequence,
            entry_type=entry_type.value,
            weight_delta=weight_delta,
            cash_delta=cash_delta,
            balance_weight_before=weight_before,
            balance_weight_after=weight_after,
            balance_cash_before=cash_before,
            balance_cash_after=cash_after,
            cash_amount=round_money(cash_amount),
            silver_rate=silver_rate,
            note=note,
            occurred_at=occurred_at,
            created_by_id=actor_id,
        )
        self._session.add(entry)
        self._session.flush()

        logger.debug(
            "ledger_entry_written",
            extra={
                "entry_id": entry.id,
                "entry_type": entry_type.value,
                "customer_id": customer.id,
                "sale_id": sale_id,
                "weight_delta": weight_delta,
                "cash_delta": cash_delta,
                "weight_after": weight_after,
                "cash_after": cash_after,
            },
        )
        return entry
