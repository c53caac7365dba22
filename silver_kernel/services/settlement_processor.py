"""
SettlementProcessor -- sale creation.

Responsibility:
    Turns a bill (customer, channel, lines, rate, GST choice, payments taken
    at the counter) into a persisted ``Sale`` with its lines, a ``sale``
    ledger entry debiting both balances, stock decrements, and any
    immediate payment entries, all inside the caller's unit of work.

Architecture position:
    Kernel > Services -- imperative shell.  Flush only, never commit.

Order of operations:
    1. Validate lines, rate, GST and immediate payments (pure).
    2. Lock the customer row.
    3. Allocate the voucher number.
    4. Persist the sale with the customer's balances as its previous
       snapshot, then its lines.
    5. Post the ``sale`` entry (+silver weight, +total amount).
    6. Decrement tracked stock.
    7. Apply immediate payments (cash, silver, cash-for-silver).
    8. Record the closing snapshot and resolve the status.

Failure modes:
    - InvalidArgumentError / InvalidLineError / InvalidPaymentError before
      any row is read.
    - UnknownChannelError for an unconfigured channel code.
    - CustomerNotFoundError for an unknown customer, CustomerInactiveError
      for a deactivated one.
    - VoucherSequenceExhaustedError from the sequencer.
    Any exception leaves the unit of work for the caller to roll back.
"""

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from silver_kernel.db.types import ZERO, round_money, round_weight
from silver_kernel.domain.channel import ChannelPolicy, GstRequest
from silver_kernel.domain.clock import Clock, SystemClock
from silver_kernel.domain.dtos import SaleView
from silver_kernel.domain.formula import LineInput, SaleTotals, compute_sale_totals
from silver_kernel.domain.payments import (
    IMMEDIATE_PAYMENT_TYPES,
    EntryType,
    PaymentEvent,
)
from silver_kernel.domain.status import SaleStatus, SilverReturnStatus
from silver_kernel.exceptions import CustomerInactiveError, InvalidPaymentError
from silver_kernel.logging_config import LogContext, get_logger
from silver_kernel.models.sale import Sale, SaleLineItem
from silver_kernel.services.customer_service import CustomerService
from silver_kernel.services.inventory_service import InventoryService
from silver_kernel.services.ledger_writer import LedgerWriter
from silver_kernel.services.payment_processor import PaymentProcessor, validate_event
from silver_kernel.services.voucher_sequencer import VoucherSequencer

logger = get_logger("services.settlement")


class SettlementProcessor:
    """
    Contract:
        ``create_sale(...)`` returns the new sale's ``SaleView``.  Either
        every row of the sale is flushed or an exception propagates.

    Non-goals:
        - Transaction control.  ``LedgerEngine`` wraps each call in one unit
          of work.
        - Rate lookup.  Callers pass the rate (the facade falls back to
          ``SilverRateService``).
    """

    def __init__(
        self,
        session: Session,
        policies: Mapping[str, ChannelPolicy],
        clock: Clock | None = None,
        inventory: InventoryService | None = None,
        sequencer: VoucherSequencer | None = None,
    ):
        self._session = session
        self._policies = policies
        self._clock = clock or SystemClock()
        self._customers = CustomerService(session, self._clock)
        self._inventory = inventory or InventoryService(session)
        self._sequencer = sequencer or VoucherSequencer(session)
        self._payments = PaymentProcessor(session, policies, self._clock)
        self._writer = LedgerWriter(session)

    def create_sale(
        self,
        customer_id: UUID,
        policy: ChannelPolicy,
        lines: Sequence[LineInput],
        silver_rate: Decimal | None,
        sale_date: date,
        actor_id: UUID,
        gst: GstRequest | None = None,
        immediate_payments: Sequence[PaymentEvent] = (),
        notes: str | None = None,
    ) -> SaleView:
        totals = compute_sale_totals(lines, policy, silver_rate, gst)
        for event in immediate_payments:
            if not isinstance(event, IMMEDIATE_PAYMENT_TYPES):
                raise InvalidPaymentError(
                    type(event).__name__,
                    "only cash, silver and cash-for-silver payments can be taken at sale creation",
                    field="immediate_payments",
                )
            validate_event(event)

        customer = self._customers.lock(customer_id)
        if not customer.is_active:
            raise CustomerInactiveError(str(customer.id))
        voucher_number = self._sequencer.next_voucher(policy, sale_date)
        occurred_at = self._clock.now()

        with LogContext.bind(customer_id=customer.id, channel=policy.code):
            sale = self._persist_sale(
                customer.id, policy, totals, silver_rate, sale_date,
                voucher_number, actor_id, notes,
                previous_weight=customer.weight_balance,
                previous_cash=customer.cash_balance,
            )

            with LogContext.bind(sale_id=sale.id):
                self._writer.post(
                    customer,
                    EntryType.SALE,
                    weight_delta=sale.total_silver_weight,
                    cash_delta=sale.total_amount,
                    actor_id=actor_id,
                    occurred_at=occurred_at,
                    sale_id=sale.id,
                    silver_rate=sale.silver_rate,
                    note=voucher_number,
                )

                for line in sale.lines:
                    if line.product_id is not None:
                        self._inventory.decrement(
                            line.product_id, line.pieces, line.gross_weight, line.net_weight
                        )

                for event in immediate_payments:
                    self._payments.apply_locked(
                        sale, customer, policy, event, actor_id, occurred_at
                    )

                sale.closing_balance_weight = customer.weight_balance
                sale.closing_balance_cash = customer.cash_balance
                self._payments.refresh_status(sale, policy)
                self._session.flush()

                logger.info(
                    "sale_created",
                    extra={
                        "voucher_number": voucher_number,
                        "line_count": len(sale.lines),
                        "total_silver_weight": sale.total_silver_weight,
                        "total_amount": sale.total_amount,
                        "immediate_payments": len(immediate_payments),
                        "closing_weight": sale.closing_balance_weight,
                        "closing_cash": sale.closing_balance_cash,
                        "status": sale.status,
                    },
                )
        return sale.to_dto()

    def _persist_sale(
        self,
        customer_id: UUID,
        policy: ChannelPolicy,
        totals: SaleTotals,
        silver_rate: Decimal | None,
        sale_date: date,
        voucher_number: str,
        actor_id: UUID,
        notes: str | None,
        previous_weight: Decimal,
        previous_cash: Decimal,
    ) -> Sale:
        total_silver = round_weight(totals.total_silver_weight)
        silver_to_return = total_silver if policy.supports_silver_return else ZERO
        return_status = (
            SilverReturnStatus.PENDING
            if silver_to_return > ZERO
            else SilverReturnStatus.NOT_APPLICABLE
        )
        total_amount = round_money(totals.total_amount)

        sale = Sale(
            id=uuid4(),
            voucher_number=voucher_number,
            channel=policy.code,
            customer_id=customer_id,
            sale_date=sale_date,
            silver_rate=silver_rate if silver_rate is not None else ZERO,
            total_net_weight=round_weight(totals.total_net_weight),
            total_wastage=round_weight(totals.total_wastage),
            total_silver_weight=total_silver,
            total_labor_charges=round_money(totals.total_labor_charges),
            subtotal=round_money(totals.subtotal),
            gst_applicable=totals.gst_applicable,
            cgst_percent=totals.cgst_percent,
            sgst_percent=totals.sgst_percent,
            cgst=round_money(totals.cgst),
            sgst=round_money(totals.sgst),
            total_amount=total_amount,
            previous_balance_weight=previous_weight,
            previous_balance_cash=previous_cash,
            paid_weight=ZERO,
            paid_cash=ZERO,
            silver_paid=ZERO,
            cash_for_silver_weight=ZERO,
            cash_for_silver_value=ZERO,
            silver_to_return=silver_to_return,
            silver_returned=ZERO,
            silver_return_status=return_status.value,
            remaining_weight=total_silver,
            remaining_cash=total_amount,
            status=SaleStatus.PENDING.value,
            notes=notes,
            created_by_id=actor_id,
        )
        for number, computed in enumerate(totals.lines, start=1):
            src = computed.source
            sale.lines.append(
                SaleLineItem(
                    line_number=number,
                    description=src.description.strip(),
                    pieces=src.pieces,
                    product_id=src.product_id,
                    gross_weight=round_weight(src.gross_weight),
                    stone_weight=round_weight(src.stone_weight),
                    net_weight=round_weight(computed.net_weight),
                    wastage_percent=src.wastage_percent,
                    touch_percent=src.touch_percent,
                    labor_rate_per_unit=src.labor_rate_per_unit,
                    silver_weight=round_weight(computed.silver_weight),
                    labor_charges=round_money(computed.labor_charges),
                    item_amount=round_money(computed.item_amount),
                    created_by_id=actor_id,
                )
            )
        self._session.add(sale)
        self._session.flush()
        return sale
