"""
PaymentProcessor -- settlement events against an existing sale.

Responsibility:
    Applies one ``PaymentEvent`` (cash, silver, cash-for-silver, silver
    return) to a sale: moves the customer's balances through the
    ``LedgerWriter``, updates the sale's settlement counters and remaining
    balances, and re-derives its status.

Architecture position:
    Kernel > Services -- imperative shell.  Flush only, never commit.
    ``SettlementProcessor`` reuses ``apply_locked`` for payments taken at
    sale creation.

Event semantics:
    CashPayment(amount)       cash -= amount;  paid_cash += amount
    SilverPayment(weight)     weight -= w;     silver_paid, paid_weight += w;
                              gross/touch/slip/payer go into the entry note
    CashForSilver(w, rate)    weight -= w;     value = w * rate recorded on the
                              entry; cash -= value only when the channel's
                              ``cash_for_silver_offsets_cash`` is set
    SilverReturn(weight)      weight -= w;     silver_returned, paid_weight += w;
                              only where ``supports_silver_return``, and never
                              beyond the silver still owed on the sale

Every weight settlement on a sale discharges the same return
obligation: ``silver_return_status`` follows ``paid_weight`` against
``silver_to_return``, so silver already paid cannot be returned again.

Failure modes (in the order they are checked):
    - InvalidPaymentError: non-positive amount, weight or rate.
    - SaleNotFoundError, CustomerNotFoundError.
    - UnsupportedChannelOperationError: silver return on other channels.
    - SilverReturnExceededError: return larger than what is still owed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from silver_kernel.db.types import ZERO, round_money, round_weight
from silver_kernel.domain.channel import ChannelPolicy, policy_for
from silver_kernel.domain.clock import Clock, SystemClock
from silver_kernel.domain.dtos import SaleView
from silver_kernel.domain.payments import (
    HUNDRED,
    PAYMENT_ENTRY_TYPES,
    CashForSilver,
    CashPayment,
    PaymentEvent,
    SilverPayment,
    SilverReturn,
    fine_weight,
)
from silver_kernel.domain.status import resolve_silver_return_status, resolve_status
from silver_kernel.exceptions import (
    InvalidPaymentError,
    SaleNotFoundError,
    SilverReturnExceededError,
    UnsupportedChannelOperationError,
)
from silver_kernel.logging_config import LogContext, get_logger
from silver_kernel.models.customer import Customer
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.models.sale import Sale
from silver_kernel.services.customer_service import CustomerService
from silver_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.payment")


def _positive_weight(kind: str, value: Decimal, field: str = "weight") -> Decimal:
    rounded = round_weight(value)
    if rounded <= ZERO:
        raise InvalidPaymentError(kind, f"{field} must be positive (got {value})", field=field)
    return rounded


def _positive_money(kind: str, value: Decimal, field: str = "amount") -> Decimal:
    rounded = round_money(value)
    if rounded <= ZERO:
        raise InvalidPaymentError(kind, f"{field} must be positive (got {value})", field=field)
    return rounded


def lock_sale(session: Session, sale_id: UUID) -> Sale:
    """
    Load a sale with ``SELECT ... FOR UPDATE``.

    Raises:
        SaleNotFoundError: If the id is unknown.
    """
    sale = session.execute(
        select(Sale)
        .where(Sale.id == sale_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if sale is None:
        raise SaleNotFoundError(str(sale_id))
    return sale


def _validate_silver_source(payment: SilverPayment) -> None:
    """Gross weight and touch come together and must account for the fine weight."""
    if payment.gross_weight is None or payment.touch_percent is None:
        raise InvalidPaymentError(
            "silver_payment", "gross weight and touch must be given together", field="touch_percent"
        )
    _positive_weight("silver_payment", payment.gross_weight, field="gross_weight")
    if not ZERO < payment.touch_percent <= HUNDRED:
        raise InvalidPaymentError(
            "silver_payment",
            f"touch must be in (0, 100] (got {payment.touch_percent})",
            field="touch_percent",
        )
    expected = round_weight(fine_weight(payment.gross_weight, payment.touch_percent))
    if round_weight(payment.weight) != expected:
        raise InvalidPaymentError(
            "silver_payment",
            f"fine weight {payment.weight} does not match gross x touch ({expected})",
            field="weight",
        )


def return_outstanding(sale: Sale) -> Decimal:
    """Silver still owed against the return obligation, never negative."""
    discharged = min(sale.paid_weight, sale.silver_to_return)
    return sale.silver_to_return - discharged


def validate_event(event: PaymentEvent) -> None:
    """Reject non-positive quantities before any row is read."""
    match event:
        case CashPayment(amount=amount):
            _positive_money("cash_payment", amount)
        case SilverPayment(weight=weight) as payment:
            _positive_weight("silver_payment", weight)
            if payment.has_source:
                _validate_silver_source(payment)
        case CashForSilver(weight=weight, rate=rate):
            _positive_weight("cash_for_silver", weight)
            if rate <= ZERO:
                raise InvalidPaymentError(
                    "cash_for_silver", f"rate must be positive (got {rate})", field="rate"
                )
        case SilverReturn(weight=weight):
            _positive_weight("silver_return", weight)
        case _:
            raise InvalidPaymentError(type(event).__name__, "unsupported settlement event")


class PaymentProcessor:
    """
    Contract:
        ``apply(sale_id, event, actor_id)`` writes exactly one ledger entry
        and returns the refreshed ``SaleView``.

    Non-goals:
        - Idempotency.  Applying the same event twice pays twice.
    """

    def __init__(
        self,
        session: Session,
        policies: Mapping[str, ChannelPolicy],
        clock: Clock | None = None,
    ):
        self._session = session
        self._policies = policies
        self._clock = clock or SystemClock()
        self._customers = CustomerService(session, self._clock)
        self._writer = LedgerWriter(session)

    # -- public API ---------------------------------------------------------

    def apply(
        self,
        sale_id: UUID,
        event: PaymentEvent,
        actor_id: UUID,
        note: str | None = None,
    ) -> SaleView:
        validate_event(event)

        sale = lock_sale(self._session, sale_id)
        policy = policy_for(self._policies, sale.channel)
        customer = self._customers.lock(sale.customer_id)

        with LogContext.bind(sale_id=sale.id, customer_id=customer.id, channel=policy.code):
            self.apply_locked(sale, customer, policy, event, actor_id, self._clock.now(), note)
            self.refresh_status(sale, policy)
            self._session.flush()
            logger.info(
                "payment_applied",
                extra={
                    "entry_type": event.entry_type.value,
                    "voucher_number": sale.voucher_number,
                    "remaining_weight": sale.remaining_weight,
                    "remaining_cash": sale.remaining_cash,
                    "status": sale.status,
                },
            )
        return sale.to_dto()

    def add_cash_payment(self, sale_id: UUID, amount: Decimal, actor_id: UUID) -> SaleView:
        return self.apply(sale_id, CashPayment(amount), actor_id)

    def add_silver_payment(self, sale_id: UUID, weight: Decimal, actor_id: UUID) -> SaleView:
        return self.apply(sale_id, SilverPayment(weight), actor_id)

    def add_cash_for_silver(
        self, sale_id: UUID, weight: Decimal, rate: Decimal, actor_id: UUID
    ) -> SaleView:
        return self.apply(sale_id, CashForSilver(weight, rate), actor_id)

    def add_silver_return(self, sale_id: UUID, weight: Decimal, actor_id: UUID) -> SaleView:
        return self.apply(sale_id, SilverReturn(weight), actor_id)

    # -- shared with SettlementProcessor ------------------------------------

    def apply_locked(
        self,
        sale: Sale,
        customer: Customer,
        policy: ChannelPolicy,
        event: PaymentEvent,
        actor_id: UUID,
        occurred_at: datetime,
        note: str | None = None,
    ) -> LedgerEntry:
        """
        Apply ``event`` to rows the caller already holds locked.

        Does not recompute status; call ``refresh_status`` once all events
        of the unit of work are applied.
        """
        validate_event(event)
        post = dict(
            customer=customer,
            entry_type=event.entry_type,
            actor_id=actor_id,
            occurred_at=occurred_at,
            sale_id=sale.id,
            note=note,
        )

        match event:
            case CashPayment(amount=amount):
                amount = round_money(amount)
                entry = self._writer.post(
                    weight_delta=ZERO, cash_delta=-amount, cash_amount=amount, **post
                )
                sale.paid_cash += amount

            case SilverPayment(weight=weight) as payment:
                weight = round_weight(weight)
                post["note"] = note or payment.ledger_note()
                entry = self._writer.post(weight_delta=-weight, cash_delta=ZERO, **post)
                sale.silver_paid += weight
                sale.paid_weight += weight

            case CashForSilver(weight=weight, rate=rate):
                weight = round_weight(weight)
                value = round_money(weight * rate)
                offset = value if policy.cash_for_silver_offsets_cash else ZERO
                entry = self._writer.post(
                    weight_delta=-weight,
                    cash_delta=-offset,
                    cash_amount=value,
                    silver_rate=rate,
                    **post,
                )
                sale.cash_for_silver_weight += weight
                sale.cash_for_silver_value += value
                sale.paid_weight += weight
                sale.paid_cash += offset

            case SilverReturn(weight=weight):
                if not policy.supports_silver_return:
                    raise UnsupportedChannelOperationError(policy.code, "silver_return")
                weight = round_weight(weight)
                outstanding = return_outstanding(sale)
                if weight > outstanding:
                    raise SilverReturnExceededError(str(sale.id), weight, outstanding)
                entry = self._writer.post(weight_delta=-weight, cash_delta=ZERO, **post)
                sale.silver_returned += weight
                sale.paid_weight += weight

        return entry

    def has_payment_history(self, sale_id: UUID) -> bool:
        """Any settlement entry recorded against the sale."""
        count = self._session.execute(
            select(func.count())
            .select_from(LedgerEntry)
            .where(
                LedgerEntry.sale_id == sale_id,
                LedgerEntry.entry_type.in_([t.value for t in PAYMENT_ENTRY_TYPES]),
            )
        ).scalar_one()
        return count > 0

    def refresh_status(self, sale: Sale, policy: ChannelPolicy) -> None:
        """Recompute remaining balances and status from the sale's own counters."""
        sale.remaining_weight = sale.total_silver_weight - sale.paid_weight
        sale.remaining_cash = sale.total_amount - sale.paid_cash
        sale.status = resolve_status(
            sale.remaining_weight,
            sale.remaining_cash,
            self.has_payment_history(sale.id),
            policy.tolerances,
        ).value
        if sale.silver_to_return > ZERO:
            sale.silver_return_status = resolve_silver_return_status(
                sale.silver_to_return,
                min(sale.paid_weight, sale.silver_to_return),
                policy.tolerances.weight,
            ).value
