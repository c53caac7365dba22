"""
VoucherSequencer -- per-channel, per-day voucher numbers.

Responsibility:
    Produces ``PREFIX + YYYYMMDD + NNNN`` (e.g. ``WS202401150007``).  The
    sequence restarts at 0001 for every new (channel, day).

Architecture position:
    Kernel > Services -- imperative shell.  Called by the settlement
    processor inside the caller's unit of work.

Invariants enforced:
    - The next number comes from a locked ``VoucherCounter`` row
      (``SELECT ... FOR UPDATE``).  Reading the highest existing voucher
      and adding one is never done.
    - The increment is only visible when the caller commits.  A rolled
      back sale returns its number.

Failure modes:
    - IntegrityError on concurrent first use of a (channel, day): handled by
      rolling back the savepoint and re-reading the row that won.
    - VoucherSequenceExhaustedError once 9999 numbers are issued for a
      day, or when the counter row cannot be created after retrying.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from silver_kernel.domain.channel import ChannelPolicy
from silver_kernel.exceptions import VoucherSequenceExhaustedError
from silver_kernel.logging_config import get_logger
from silver_kernel.models.voucher_counter import VoucherCounter

logger = get_logger("services.voucher")

MAX_DAILY_SEQUENCE = 9999
SEQUENCE_WIDTH = 4


def format_voucher(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}{day:%Y%m%d}{sequence:0{SEQUENCE_WIDTH}d}"


class VoucherSequencer:
    """
    Contract:
        ``next_voucher(policy, day)`` returns a voucher number strictly
        greater (in sequence) than any previously committed one for the
        same (channel, day).

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Gap-free numbering across rolled-back *and* retried requests is
          not promised; a rolled back sale simply frees its number.
    """

    def __init__(self, session: Session, max_create_attempts: int = 3):
        self._session = session
        self._max_create_attempts = max_create_attempts

    def _select_locked(self, channel: str, day: date) -> VoucherCounter | None:
        return self._session.execute(
            select(VoucherCounter)
            .where(
                VoucherCounter.channel == channel,
                VoucherCounter.business_day == day,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_or_create_counter(self, channel: str, day: date) -> VoucherCounter:
        for attempt in range(1, self._max_create_attempts + 1):
            counter = self._select_locked(channel, day)
            if counter is not None:
                return counter

            # First voucher of the day for this channel.  A savepoint keeps a
            # losing insert from discarding the caller's other work.
            savepoint = self._session.begin_nested()
            try:
                counter = VoucherCounter(channel=channel, business_day=day, last_sequence=0)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                return counter
            except IntegrityError:
                savepoint.rollback()
                logger.debug(
                    "voucher_counter_race_retry",
                    extra={"channel": channel, "day": day, "attempt": attempt},
                )

        raise VoucherSequenceExhaustedError(
            channel,
            day.isoformat(),
            reason=f"counter row could not be created after {self._max_create_attempts} attempts",
        )

    def next_sequence(self, channel: str, day: date) -> int:
        counter = self._get_or_create_counter(channel, day)
        if counter.last_sequence >= MAX_DAILY_SEQUENCE:
            logger.warning(
                "voucher_sequence_exhausted",
                extra={"channel": channel, "day": day},
            )
            raise VoucherSequenceExhaustedError(channel, day.isoformat())
        counter.last_sequence += 1
        self._session.flush()
        return counter.last_sequence

    def next_voucher(self, policy: ChannelPolicy, day: date) -> str:
        """Allocate the next voucher number for ``policy`` on ``day``."""
        sequence = self.next_sequence(policy.code, day)
        voucher = format_voucher(policy.voucher_prefix, day, sequence)
        logger.debug(
            "voucher_allocated",
            extra={"channel": policy.code, "day": day, "voucher_number": voucher},
        )
        return voucher

    def current_sequence(self, channel: str, day: date) -> int:
        """Last issued sequence for (channel, day), 0 if none. No lock taken."""
        value = self._session.execute(
            select(VoucherCounter.last_sequence).where(
                VoucherCounter.channel == channel,
                VoucherCounter.business_day == day,
            )
        ).scalar_one_or_none()
        return value or 0
