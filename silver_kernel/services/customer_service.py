"""
CustomerService -- customer directory, row locks and manual adjustments.

Responsibility:
    Creates and looks up customers (phone numbers are unique), takes the
    customer row lock used by every balance-moving operation, and records
    manual balance adjustments and opening balances as ``adjustment``
    ledger entries.

Architecture position:
    Kernel > Services -- imperative shell.  Flush only, never commit.

Failure modes:
    - CustomerNotFoundError for unknown ids.
    - InvalidArgumentError for blank names/phones or empty adjustments.
    - DuplicatePhoneError when the phone is already registered.
    - CustomerReferencedError when deleting a customer that still has
      sales or ledger history.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from silver_kernel.db.types import ZERO
from silver_kernel.domain.clock import Clock, SystemClock
from silver_kernel.domain.dtos import CustomerView, LedgerEntryView
from silver_kernel.domain.payments import EntryType
from silver_kernel.exceptions import (
    CustomerNotFoundError,
    CustomerReferencedError,
    DuplicatePhoneError,
    InvalidArgumentError,
)
from silver_kernel.logging_config import get_logger
from silver_kernel.models.customer import Customer
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.models.sale import Sale
from silver_kernel.services.base import BaseService
from silver_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.customer")


def _normalize_phone(phone: str) -> str:
    return "".join(phone.split())


class CustomerService(BaseService[Customer]):
    """
    All public methods return ``CustomerView`` / ``LedgerEntryView`` DTOs,
    except ``lock()`` which hands the ORM row to sibling services.
    """

    model = Customer

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._writer = LedgerWriter(session)

    # -- lookups ------------------------------------------------------------

    def get(self, customer_id: UUID) -> CustomerView:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(str(customer_id))
        return customer.to_dto()

    def find_by_phone(self, phone: str) -> CustomerView | None:
        customer = self.session.execute(
            select(Customer).where(Customer.phone == _normalize_phone(phone))
        ).scalar_one_or_none()
        return customer.to_dto() if customer else None

    def lock(self, customer_id: UUID) -> Customer:
        """
        Lock the customer row for the rest of the unit of work.

        Raises:
            CustomerNotFoundError: If the id is unknown.
        """
        customer = self._lock(customer_id)
        if customer is None:
            raise CustomerNotFoundError(str(customer_id))
        return customer

    # -- creation -----------------------------------------------------------

    def _validate_identity(self, name: str, phone: str) -> str:
        if not name or not name.strip():
            raise InvalidArgumentError("Customer name is required", field="name")
        normalized = _normalize_phone(phone or "")
        if not normalized:
            raise InvalidArgumentError("Customer phone is required", field="phone")
        return normalized

    def create_customer(
        self,
        name: str,
        phone: str,
        actor_id: UUID,
        email: str | None = None,
        address: str | None = None,
        gst_number: str | None = None,
        opening_weight: Decimal = ZERO,
        opening_cash: Decimal = ZERO,
    ) -> CustomerView:
        """
        Create a customer.  Non-zero opening balances are written as an
        ``adjustment`` entry so that ledger sums match from the first row.

        Raises:
            DuplicatePhoneError: If the phone is already registered.  Use
                ``get_or_create_by_phone`` for idempotent creation.
        """
        normalized = self._validate_identity(name, phone)
        existing = self.find_by_phone(normalized)
        if existing is not None:
            raise DuplicatePhoneError(normalized, str(existing.id))

        customer = Customer(
            name=name.strip(),
            phone=normalized,
            email=email,
            address=address,
            gst_number=gst_number,
            is_active=True,
            weight_balance=ZERO,
            cash_balance=ZERO,
            last_entry_sequence=0,
            created_by_id=actor_id,
        )
        # A concurrent insert of the same phone only surfaces at flush.
        try:
            with self.session.begin_nested():
                self.session.add(customer)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicatePhoneError(normalized) from exc

        if opening_weight != ZERO or opening_cash != ZERO:
            self._writer.post(
                customer,
                EntryType.ADJUSTMENT,
                weight_delta=opening_weight,
                cash_delta=opening_cash,
                actor_id=actor_id,
                occurred_at=self._clock.now(),
                note="Opening balance",
            )

        logger.info(
            "customer_created",
            extra={
                "customer_id": customer.id,
                "opening_weight": customer.weight_balance,
                "opening_cash": customer.cash_balance,
            },
        )
        return customer.to_dto()

    def get_or_create_by_phone(
        self,
        name: str,
        phone: str,
        actor_id: UUID,
        email: str | None = None,
        address: str | None = None,
        gst_number: str | None = None,
    ) -> CustomerView:
        """
        Return the customer registered under ``phone``, creating it if needed.

        A concurrent creation of the same phone loses on the unique
        constraint inside a savepoint and re-reads the winner's row.
        """
        normalized = self._validate_identity(name, phone)
        existing = self.find_by_phone(normalized)
        if existing is not None:
            return existing

        try:
            return self.create_customer(
                name, normalized, actor_id,
                email=email, address=address, gst_number=gst_number,
            )
        except DuplicatePhoneError:
            logger.debug("customer_create_race_retry", extra={"phone": normalized})
            winner = self.find_by_phone(normalized)
            if winner is None:
                raise
            return winner

    # -- maintenance --------------------------------------------------------

    def adjust_balances(
        self,
        customer_id: UUID,
        weight_delta: Decimal,
        cash_delta: Decimal,
        actor_id: UUID,
        note: str,
    ) -> LedgerEntryView:
        """
        Signed manual correction of one or both balances.

        Positive deltas increase what the customer owes.
        """
        if weight_delta == ZERO and cash_delta == ZERO:
            raise InvalidArgumentError(
                "An adjustment must change at least one balance", field="weight_delta"
            )
        if not note or not note.strip():
            raise InvalidArgumentError("An adjustment needs a note", field="note")

        customer = self.lock(customer_id)
        entry = self._writer.post(
            customer,
            EntryType.ADJUSTMENT,
            weight_delta=weight_delta,
            cash_delta=cash_delta,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            note=note.strip(),
        )
        logger.info(
            "customer_balance_adjusted",
            extra={
                "customer_id": customer_id,
                "weight_delta": entry.weight_delta,
                "cash_delta": entry.cash_delta,
            },
        )
        return entry.to_dto()

    def deactivate(self, customer_id: UUID, actor_id: UUID) -> CustomerView:
        customer = self.lock(customer_id)
        customer.is_active = False
        customer.updated_by_id = actor_id
        self.session.flush()
        logger.info("customer_deactivated", extra={"customer_id": customer_id})
        return customer.to_dto()

    def delete_customer(self, customer_id: UUID) -> None:
        """
        Physically delete a customer with no sales and no ledger history.

        Raises:
            CustomerReferencedError: If any sale or ledger entry references
                the customer.  Deactivate instead.
        """
        customer = self.lock(customer_id)
        sale_count = self.session.execute(
            select(func.count()).select_from(Sale).where(Sale.customer_id == customer_id)
        ).scalar_one()
        entry_count = self.session.execute(
            select(func.count())
            .select_from(LedgerEntry)
            .where(LedgerEntry.customer_id == customer_id)
        ).scalar_one()
        if sale_count or entry_count:
            raise CustomerReferencedError(str(customer_id), sale_count, entry_count)

        self.session.delete(customer)
        self.session.flush()
        logger.info("customer_deleted", extra={"customer_id": customer_id})
