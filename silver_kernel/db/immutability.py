"""
ORM-level immutability enforcement for the silver ledger.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity       | Rule                                          | Why
-------------|-----------------------------------------------|---------------------------------
LedgerEntry  | never UPDATEd                                 | balances are re-derivable from it
LedgerEntry  | DELETE only inside ``allow_ledger_reversal``  | only sale reversal may remove rows
Sale         | previous_balance_* never change after INSERT  | creation-time snapshot
Sale         | closing_balance_* written once                | snapshot after creation entries

SQLAlchemy fires these listeners during ``session.flush()``, before any SQL is
sent.  A failed check raises ``ImmutabilityViolationError`` and the caller's
unit of work rolls back.

Bulk ``update()``/``delete()`` statements bypass the ORM and therefore these
listeners.  The services never issue them against protected tables.

Usage:
    register_immutability_listeners()      # once at startup
    unregister_immutability_listeners()    # tests only
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from silver_kernel.exceptions import ImmutabilityViolationError
from silver_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_REVERSAL_FLAG = "silver_kernel.ledger_reversal"

SALE_FROZEN_FIELDS = ("previous_balance_weight", "previous_balance_cash")
SALE_WRITE_ONCE_FIELDS = ("closing_balance_weight", "closing_balance_cash")


@contextmanager
def allow_ledger_reversal(session: Session) -> Iterator[Session]:
    """Permit ledger entry deletion on ``session`` for the duration of the block."""
    previous = session.info.get(_REVERSAL_FLAG, False)
    session.info[_REVERSAL_FLAG] = True
    try:
        yield session
    finally:
        session.info[_REVERSAL_FLAG] = previous


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_ledger_entry_update(mapper, connection, target):
    """Ledger entries are append-only."""
    _blocked(
        "LedgerEntry",
        str(target.id),
        "UPDATE",
        "Ledger entries are immutable and cannot be modified",
    )


def _check_ledger_entry_delete_before_flush(session, flush_context, instances):
    """
    Refuse ledger entry deletes outside a sale reversal.

    Runs at session level so the check happens before the flush plan is
    executed.
    """
    from silver_kernel.models.ledger_entry import LedgerEntry

    if session.info.get(_REVERSAL_FLAG, False):
        return
    for obj in session.deleted:
        if isinstance(obj, LedgerEntry):
            _blocked(
                "LedgerEntry",
                str(obj.id),
                "DELETE",
                "Ledger entries can only be removed by reversing their sale",
            )


def _check_sale_snapshot_immutability(mapper, connection, target):
    """Opening snapshot is frozen; closing snapshot may be filled in once."""
    state = inspect(target)
    for name in SALE_FROZEN_FIELDS:
        history = state.attrs[name].history
        if history.deleted:
            _blocked(
                "Sale",
                str(target.id),
                "UPDATE",
                f"{name} is a creation-time snapshot and cannot change",
            )
    for name in SALE_WRITE_ONCE_FIELDS:
        history = state.attrs[name].history
        if any(old is not None for old in history.deleted):
            _blocked(
                "Sale",
                str(target.id),
                "UPDATE",
                f"{name} was already recorded and cannot change",
            )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call once after the models are imported and before any writes.
    Registering twice is harmless.
    """
    from silver_kernel.models.ledger_entry import LedgerEntry
    from silver_kernel.models.sale import Sale

    if not event.contains(Session, "before_flush", _check_ledger_entry_delete_before_flush):
        event.listen(Session, "before_flush", _check_ledger_entry_delete_before_flush)
    if not event.contains(LedgerEntry, "before_update", _check_ledger_entry_update):
        event.listen(LedgerEntry, "before_update", _check_ledger_entry_update)
    if not event.contains(Sale, "before_update", _check_sale_snapshot_immutability):
        event.listen(Sale, "before_update", _check_sale_snapshot_immutability)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    from silver_kernel.models.ledger_entry import LedgerEntry
    from silver_kernel.models.sale import Sale

    _safe_remove_listener(Session, "before_flush", _check_ledger_entry_delete_before_flush)
    _safe_remove_listener(LedgerEntry, "before_update", _check_ledger_entry_update)
    _safe_remove_listener(Sale, "before_update", _check_sale_snapshot_immutability)
