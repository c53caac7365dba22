"""
Settlement events -- the tagged union applied by the payment processor.

Each event is a frozen dataclass; the processor dispatches on the concrete
type.  Constructors do not validate: validation (positive quantities,
channel support) happens in the processor so that it can raise the typed
ledger errors before touching any row.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union


HUNDRED = Decimal("100")


def fine_weight(gross_weight: Decimal, touch_percent: Decimal) -> Decimal:
    """Fine silver in a piece of ``gross_weight`` grams at ``touch_percent`` purity."""
    return gross_weight * touch_percent / HUNDRED


class EntryType(str, Enum):
    """Ledger entry kinds."""

    SALE = "sale"
    CASH_PAYMENT = "cash_payment"
    SILVER_PAYMENT = "silver_payment"
    CASH_FOR_SILVER = "cash_for_silver"
    SILVER_RETURN = "silver_return"
    ADJUSTMENT = "adjustment"


# Entry types that count as a payment against a sale.
PAYMENT_ENTRY_TYPES = frozenset({
    EntryType.CASH_PAYMENT,
    EntryType.SILVER_PAYMENT,
    EntryType.CASH_FOR_SILVER,
    EntryType.SILVER_RETURN,
})


@dataclass(frozen=True)
class CashPayment:
    amount: Decimal

    entry_type = EntryType.CASH_PAYMENT


@dataclass(frozen=True)
class SilverPayment:
    """
    Physical fine silver handed over by the customer.

    ``weight`` is always the fine weight credited to the customer.  When the
    silver is weighed at the counter, ``gross_weight`` and ``touch_percent``
    record the piece it came from (``fine = gross * touch / 100``), and
    ``reference`` / ``payer`` name the slip number and the person who brought
    it.  Build such payments with ``from_gross``.
    """

    weight: Decimal
    gross_weight: Decimal | None = None
    touch_percent: Decimal | None = None
    reference: str | None = None
    payer: str | None = None

    entry_type = EntryType.SILVER_PAYMENT

    @classmethod
    def from_gross(
        cls,
        gross_weight: Decimal,
        touch_percent: Decimal,
        reference: str | None = None,
        payer: str | None = None,
    ) -> "SilverPayment":
        return cls(
            weight=fine_weight(gross_weight, touch_percent),
            gross_weight=gross_weight,
            touch_percent=touch_percent,
            reference=reference,
            payer=payer,
        )

    @property
    def has_source(self) -> bool:
        return self.gross_weight is not None or self.touch_percent is not None

    def ledger_note(self) -> str | None:
        """Human-readable provenance for the ledger entry, or None for a bare weight."""
        if not (self.has_source or self.reference or self.payer):
            return None
        parts = [f"Silver payment: fine {self.weight:.3f}g"]
        if self.has_source:
            parts.append(f"weight {self.gross_weight:.3f}g at {self.touch_percent:.2f}% touch")
        if self.payer:
            parts.append(f"by {self.payer}")
        if self.reference:
            parts.append(f"ref {self.reference}")
        return ", ".join(parts)


@dataclass(frozen=True)
class CashForSilver:
    """Customer pays cash instead of the silver owed: ``weight`` grams at ``rate``."""

    weight: Decimal
    rate: Decimal

    entry_type = EntryType.CASH_FOR_SILVER

    @property
    def value(self) -> Decimal:
        return self.weight * self.rate


@dataclass(frozen=True)
class SilverReturn:
    """Wholesale: silver settled against the sale's return obligation."""

    weight: Decimal

    entry_type = EntryType.SILVER_RETURN


PaymentEvent = Union[CashPayment, SilverPayment, CashForSilver, SilverReturn]

# Events accepted as immediate payments at sale creation.
IMMEDIATE_PAYMENT_TYPES = (CashPayment, SilverPayment, CashForSilver)
