"""
Typed Exception Hierarchy for the Silver Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a billing UI, an HTTP layer, a batch import) must react to ledger
errors by category, never by parsing message text:

    try:
        engine.add_silver_return(sale_id, Decimal("12.500"))
    except SilverReturnExceededError as e:
        show(f"Only {e.remaining} g left to return")   # Structured data
        respond(status=409, code=e.code)               # Machine-readable

Every exception therefore carries:
  1. A typed class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SilverLedgerError (base)
    |
    +-- NotFoundError
    |   +-- CustomerNotFoundError
    |   +-- SaleNotFoundError
    |   +-- SilverRateNotFoundError
    |
    +-- InvalidArgumentError
    |   +-- InvalidLineError
    |   +-- InvalidPaymentError
    |   +-- UnsupportedChannelOperationError
    |   +-- UnknownChannelError
    |   +-- CustomerInactiveError
    |
    +-- ConflictError
    |   +-- SilverReturnExceededError
    |   +-- VoucherSequenceExhaustedError
    |   +-- CustomerReferencedError
    |   +-- DuplicatePhoneError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                          | When Raised
-----------|-------------------------------|-----------------------------------------
NotFound   | CUSTOMER_NOT_FOUND            | Customer ID doesn't exist
           | SALE_NOT_FOUND                | Sale ID doesn't exist
           | SILVER_RATE_NOT_FOUND         | No rate on or before the requested day
-----------|-------------------------------|-----------------------------------------
Argument   | INVALID_ARGUMENT              | Generic validation failure
           | INVALID_LINE                  | Negative weight, gross < stone, ...
           | INVALID_PAYMENT               | Non-positive amount/weight/rate
           | UNSUPPORTED_CHANNEL_OPERATION | e.g. silver return on a regular sale
           | UNKNOWN_CHANNEL               | Channel code not configured
           | CUSTOMER_INACTIVE             | New sale for a deactivated customer
-----------|-------------------------------|-----------------------------------------
Conflict   | SILVER_RETURN_EXCEEDED        | Return larger than what is still owed
           | VOUCHER_SEQUENCE_EXHAUSTED    | 9999 vouchers issued for (channel, day)
           | CUSTOMER_REFERENCED           | Customer still has sales
           | DUPLICATE_PHONE               | Phone already registered to a customer
-----------|-------------------------------|-----------------------------------------
Immutable  | IMMUTABILITY_VIOLATION        | Ledger entry UPDATE, snapshot rewrite

Ordering: validation and not-found errors are raised before any write.
Conflicts are raised after the relevant rows are read and locked, but before
anything is written.  Persistence errors propagate unchanged and the unit of
work rolls back.
"""

from decimal import Decimal


class SilverLedgerError(Exception):
    """
    Base exception for all silver ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SILVER_LEDGER_ERROR"


# Not-found exceptions


class NotFoundError(SilverLedgerError):
    """Base exception for missing customers, sales, and rates."""

    code: str = "NOT_FOUND"


class CustomerNotFoundError(NotFoundError):
    """Customer with given ID was not found."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class SaleNotFoundError(NotFoundError):
    """Sale with given ID was not found."""

    code: str = "SALE_NOT_FOUND"

    def __init__(self, sale_id: str):
        self.sale_id = sale_id
        super().__init__(f"Sale not found: {sale_id}")


class SilverRateNotFoundError(NotFoundError):
    """No silver rate recorded on or before the requested day."""

    code: str = "SILVER_RATE_NOT_FOUND"

    def __init__(self, as_of: str):
        self.as_of = as_of
        super().__init__(f"No silver rate found on or before {as_of}")


# Validation exceptions


class InvalidArgumentError(SilverLedgerError):
    """Caller-supplied input failed validation."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidLineError(InvalidArgumentError):
    """A sale line item failed validation."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int, reason: str, field: str | None = None):
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Line {line_index}: {reason}", field=field)


class InvalidPaymentError(InvalidArgumentError):
    """A settlement event failed validation."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, kind: str, reason: str, field: str | None = None):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid {kind}: {reason}", field=field)


class UnsupportedChannelOperationError(InvalidArgumentError):
    """The channel policy does not allow the requested operation."""

    code: str = "UNSUPPORTED_CHANNEL_OPERATION"

    def __init__(self, channel: str, operation: str):
        self.channel = channel
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' is not supported on channel '{channel}'",
            field="channel",
        )


class UnknownChannelError(InvalidArgumentError):
    """No channel policy is configured under the given code."""

    code: str = "UNKNOWN_CHANNEL"

    def __init__(self, channel: str, available: tuple[str, ...] = ()):
        self.channel = channel
        self.available = available
        msg = f"Unknown billing channel: {channel}"
        if available:
            msg += f" (configured: {', '.join(available)})"
        super().__init__(msg, field="channel")


class CustomerInactiveError(InvalidArgumentError):
    """A deactivated customer cannot be billed.  Existing sales can still be settled."""

    code: str = "CUSTOMER_INACTIVE"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} is deactivated", field="customer_id")


# Conflict exceptions


class ConflictError(SilverLedgerError):
    """The request is valid but conflicts with current ledger state."""

    code: str = "CONFLICT"


class SilverReturnExceededError(ConflictError):
    """Silver return larger than the quantity still owed to the customer."""

    code: str = "SILVER_RETURN_EXCEEDED"

    def __init__(self, sale_id: str, requested: Decimal, remaining: Decimal):
        self.sale_id = sale_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Silver return of {requested} g on sale {sale_id} exceeds "
            f"remaining {remaining} g"
        )


class VoucherSequenceExhaustedError(ConflictError):
    """No voucher number can be allocated for (channel, day)."""

    code: str = "VOUCHER_SEQUENCE_EXHAUSTED"

    def __init__(self, channel: str, day: str, reason: str = "daily limit reached"):
        self.channel = channel
        self.day = day
        self.reason = reason
        super().__init__(
            f"Voucher sequence exhausted for channel {channel} on {day}: {reason}"
        )


class CustomerReferencedError(ConflictError):
    """Customer cannot be deleted while sales reference it."""

    code: str = "CUSTOMER_REFERENCED"

    def __init__(self, customer_id: str, sale_count: int, entry_count: int = 0):
        self.customer_id = customer_id
        self.sale_count = sale_count
        self.entry_count = entry_count
        super().__init__(
            f"Customer {customer_id} is referenced by {sale_count} sale(s) "
            f"and {entry_count} ledger entr(ies)"
        )


class DuplicatePhoneError(ConflictError):
    """Another customer is already registered under this phone number."""

    code: str = "DUPLICATE_PHONE"

    def __init__(self, phone: str, existing_customer_id: str | None = None):
        self.phone = phone
        self.existing_customer_id = existing_customer_id
        super().__init__(f"Phone {phone} is already registered")


# Immutability-related exceptions


class ImmutabilityError(SilverLedgerError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger entries are append-only and sale balance snapshots are frozen
    once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
