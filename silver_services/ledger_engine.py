"""
LedgerEngine -- the outer facade of the silver ledger.

Responsibility:
    Maps every external operation (a billing screen action, an API call) to
    exactly one unit of work: a fresh session, ``session.begin()``, the
    kernel service call, then commit, or a full rollback if anything raises.
    Binds a correlation id and the acting user into ``LogContext`` so every
    record emitted during the call can be tied together.

Architecture position:
    Services -- orchestration over ``silver_kernel`` and ``silver_config``.
    The kernel never imports from here.

Failure modes:
    Kernel exceptions (``NotFoundError``, ``InvalidArgumentError``,
    ``ConflictError``) propagate unchanged after the rollback, logged as
    ``transaction_rolled_back``.
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from silver_config import get_channel_policies
from silver_kernel.db.types import ZERO, to_decimal
from silver_kernel.domain.channel import ChannelPolicy, GstRequest, policy_for
from silver_kernel.domain.clock import Clock, SystemClock
from silver_kernel.domain.dtos import (
    BalanceCheck,
    CustomerStatement,
    CustomerView,
    LedgerEntryView,
    SaleView,
    SilverRateView,
    StockItemView,
)
from silver_kernel.domain.formula import LineInput
from silver_kernel.domain.payments import (
    CashForSilver,
    CashPayment,
    PaymentEvent,
    SilverPayment,
    SilverReturn,
)
from silver_kernel.logging_config import LogContext, get_logger
from silver_kernel.selectors.ledger_selector import LedgerSelector
from silver_kernel.services.customer_service import CustomerService
from silver_kernel.services.inventory_service import InventoryService
from silver_kernel.services.payment_processor import PaymentProcessor
from silver_kernel.services.rate_service import SilverRateService
from silver_kernel.services.reversal_service import SaleReversalService
from silver_kernel.services.settlement_processor import SettlementProcessor

logger = get_logger("services.ledger_engine")

# Actor recorded when the caller does not identify a user.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")

LineLike = LineInput | Mapping[str, Any]


def _as_line(line: LineLike) -> LineInput:
    return line if isinstance(line, LineInput) else LineInput.from_mapping(line)


class LedgerEngine:
    """
    Contract:
        Each public method runs in its own transaction and returns frozen
        DTOs.  Nothing is retried automatically.

    Usage:
        engine = LedgerEngine(get_session_factory())
        sale = engine.create_sale(customer.id, "wholesale", lines, silver_rate=Decimal("92"))
        engine.add_cash_payment(sale.id, Decimal("1000"))
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        policies: Mapping[str, ChannelPolicy] | None = None,
        clock: Clock | None = None,
        default_actor_id: UUID = SYSTEM_ACTOR_ID,
        inventory_factory: Callable[[Session], InventoryService] = InventoryService,
    ):
        self._session_factory = session_factory
        self._policies = policies if policies is not None else get_channel_policies()
        self._clock = clock or SystemClock()
        self._default_actor_id = default_actor_id
        self._inventory_factory = inventory_factory

    @property
    def policies(self) -> Mapping[str, ChannelPolicy]:
        return self._policies

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str, actor_id: UUID) -> Iterator[Session]:
        session = self._session_factory()
        with LogContext.bind(correlation_id=str(uuid4()), actor_id=str(actor_id)):
            try:
                with session.begin():
                    yield session
                logger.debug("transaction_committed", extra={"operation": operation})
            except Exception:
                logger.warning(
                    "transaction_rolled_back",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise
            finally:
                session.close()

    def _actor(self, actor_id: UUID | None) -> UUID:
        return actor_id or self._default_actor_id

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def create_sale(
        self,
        customer_id: UUID,
        channel: str,
        lines: Sequence[LineLike],
        silver_rate: Decimal | None = None,
        gst: GstRequest | None = None,
        immediate_payments: Sequence[PaymentEvent] = (),
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> SaleView:
        """
        Create a sale dated today (per the engine's clock).

        When ``silver_rate`` is omitted on a channel that prices silver, the
        day's rate from ``SilverRateService`` is used.
        """
        policy = policy_for(self._policies, channel)
        line_inputs = [_as_line(line) for line in lines]
        rate = None if silver_rate is None else to_decimal(silver_rate, "silver_rate")
        actor = self._actor(actor_id)
        sale_date = self._clock.today()

        with self._unit_of_work("create_sale", actor) as session:
            if rate is None and policy.requires_silver_rate:
                rate = SilverRateService(session).current_rate(sale_date).rate_per_gram
            processor = SettlementProcessor(
                session,
                self._policies,
                clock=self._clock,
                inventory=self._inventory_factory(session),
            )
            return processor.create_sale(
                customer_id,
                policy,
                line_inputs,
                rate,
                sale_date,
                actor,
                gst=gst,
                immediate_payments=tuple(immediate_payments),
                notes=notes,
            )

    def apply_payment(
        self,
        sale_id: UUID,
        event: PaymentEvent,
        actor_id: UUID | None = None,
        note: str | None = None,
    ) -> SaleView:
        actor = self._actor(actor_id)
        with self._unit_of_work(event.entry_type.value, actor) as session:
            return PaymentProcessor(session, self._policies, self._clock).apply(
                sale_id, event, actor, note=note
            )

    def add_cash_payment(
        self, sale_id: UUID, amount: Decimal, actor_id: UUID | None = None
    ) -> SaleView:
        return self.apply_payment(sale_id, CashPayment(to_decimal(amount, "amount")), actor_id)

    def add_silver_payment(
        self,
        sale_id: UUID,
        weight: Decimal | None = None,
        actor_id: UUID | None = None,
        gross_weight: Decimal | None = None,
        touch_percent: Decimal | None = None,
        reference: str | None = None,
        payer: str | None = None,
    ) -> SaleView:
        """
        Credit physical silver.  Pass the fine ``weight``, or the
        ``gross_weight`` and ``touch_percent`` weighed at the counter and let
        the fine weight be derived.
        """
        if weight is None and (gross_weight is not None or touch_percent is not None):
            event = SilverPayment.from_gross(
                to_decimal(gross_weight, "gross_weight"),
                to_decimal(touch_percent, "touch_percent"),
                reference=reference,
                payer=payer,
            )
        else:
            event = SilverPayment(
                to_decimal(weight, "weight"),
                gross_weight=None if gross_weight is None else to_decimal(gross_weight, "gross_weight"),
                touch_percent=None if touch_percent is None else to_decimal(touch_percent, "touch_percent"),
                reference=reference,
                payer=payer,
            )
        return self.apply_payment(sale_id, event, actor_id)

    def add_cash_for_silver(
        self, sale_id: UUID, weight: Decimal, rate: Decimal, actor_id: UUID | None = None
    ) -> SaleView:
        event = CashForSilver(to_decimal(weight, "weight"), to_decimal(rate, "rate"))
        return self.apply_payment(sale_id, event, actor_id)

    def add_silver_return(
        self, sale_id: UUID, weight: Decimal, actor_id: UUID | None = None
    ) -> SaleView:
        return self.apply_payment(sale_id, SilverReturn(to_decimal(weight, "weight")), actor_id)

    def delete_sale(self, sale_id: UUID, actor_id: UUID | None = None) -> None:
        actor = self._actor(actor_id)
        with self._unit_of_work("delete_sale", actor) as session:
            SaleReversalService(
                session, self._clock, inventory=self._inventory_factory(session)
            ).delete_sale(sale_id, actor)

    def get_sale(self, sale_id: UUID) -> SaleView:
        with self._unit_of_work("get_sale", self._default_actor_id) as session:
            return LedgerSelector(session).sale_detail(sale_id)

    def sale_entries(self, sale_id: UUID) -> list[LedgerEntryView]:
        with self._unit_of_work("sale_entries", self._default_actor_id) as session:
            return LedgerSelector(session).sale_entries(sale_id)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def create_customer(
        self,
        name: str,
        phone: str,
        email: str | None = None,
        address: str | None = None,
        gst_number: str | None = None,
        opening_weight: Decimal = ZERO,
        opening_cash: Decimal = ZERO,
        actor_id: UUID | None = None,
    ) -> CustomerView:
        actor = self._actor(actor_id)
        with self._unit_of_work("create_customer", actor) as session:
            return CustomerService(session, self._clock).create_customer(
                name, phone, actor,
                email=email, address=address, gst_number=gst_number,
                opening_weight=to_decimal(opening_weight, "opening_weight"),
                opening_cash=to_decimal(opening_cash, "opening_cash"),
            )

    def get_or_create_customer(
        self,
        name: str,
        phone: str,
        email: str | None = None,
        address: str | None = None,
        gst_number: str | None = None,
        actor_id: UUID | None = None,
    ) -> CustomerView:
        actor = self._actor(actor_id)
        with self._unit_of_work("get_or_create_customer", actor) as session:
            return CustomerService(session, self._clock).get_or_create_by_phone(
                name, phone, actor, email=email, address=address, gst_number=gst_number
            )

    def get_customer(self, customer_id: UUID) -> CustomerView:
        with self._unit_of_work("get_customer", self._default_actor_id) as session:
            return CustomerService(session, self._clock).get(customer_id)

    def adjust_customer_balance(
        self,
        customer_id: UUID,
        weight_delta: Decimal,
        cash_delta: Decimal,
        note: str,
        actor_id: UUID | None = None,
    ) -> LedgerEntryView:
        actor = self._actor(actor_id)
        with self._unit_of_work("adjust_customer_balance", actor) as session:
            return CustomerService(session, self._clock).adjust_balances(
                customer_id,
                to_decimal(weight_delta, "weight_delta"),
                to_decimal(cash_delta, "cash_delta"),
                actor,
                note,
            )

    def deactivate_customer(self, customer_id: UUID, actor_id: UUID | None = None) -> CustomerView:
        actor = self._actor(actor_id)
        with self._unit_of_work("deactivate_customer", actor) as session:
            return CustomerService(session, self._clock).deactivate(customer_id, actor)

    def delete_customer(self, customer_id: UUID, actor_id: UUID | None = None) -> None:
        with self._unit_of_work("delete_customer", self._actor(actor_id)) as session:
            CustomerService(session, self._clock).delete_customer(customer_id)

    def customer_statement(
        self,
        customer_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CustomerStatement:
        with self._unit_of_work("customer_statement", self._default_actor_id) as session:
            return LedgerSelector(session).customer_statement(customer_id, start, end)

    def customer_sales(self, customer_id: UUID) -> list[SaleView]:
        with self._unit_of_work("customer_sales", self._default_actor_id) as session:
            return LedgerSelector(session).customer_sales(customer_id)

    def verify_customer_balance(self, customer_id: UUID) -> BalanceCheck:
        with self._unit_of_work("verify_customer_balance", self._default_actor_id) as session:
            return LedgerSelector(session).verify_customer_balance(customer_id)

    # ------------------------------------------------------------------
    # Silver rate and stock
    # ------------------------------------------------------------------

    def set_silver_rate(
        self, day: date, rate: Decimal, actor_id: UUID | None = None
    ) -> SilverRateView:
        actor = self._actor(actor_id)
        with self._unit_of_work("set_silver_rate", actor) as session:
            return SilverRateService(session).set_rate(day, to_decimal(rate, "rate"), actor)

    def current_silver_rate(self, as_of: date | None = None) -> SilverRateView:
        with self._unit_of_work("current_silver_rate", self._default_actor_id) as session:
            return SilverRateService(session).current_rate(as_of or self._clock.today())

    def add_stock_item(
        self,
        name: str,
        pieces: int = 0,
        gross_weight: Decimal = ZERO,
        net_weight: Decimal = ZERO,
        touch: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> StockItemView:
        actor = self._actor(actor_id)
        with self._unit_of_work("add_stock_item", actor) as session:
            item = self._inventory_factory(session).add_stock_item(
                name,
                actor,
                pieces=pieces,
                gross_weight=to_decimal(gross_weight, "gross_weight"),
                net_weight=to_decimal(net_weight, "net_weight"),
                touch=None if touch is None else to_decimal(touch, "touch"),
            )
            return item.to_dto()

    def get_stock_item(self, product_id: UUID) -> StockItemView | None:
        with self._unit_of_work("get_stock_item", self._default_actor_id) as session:
            item = self._inventory_factory(session).get(product_id)
            return item.to_dto() if item else None
