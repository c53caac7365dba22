"""
SilverRateService -- the daily silver rate per gram.

One row per calendar day.  ``current_rate(as_of)`` answers with that day's
active rate, falling back to the most recent active rate before it, so a
shop that forgets to post today's rate keeps billing at yesterday's.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from silver_kernel.domain.dtos import SilverRateView
from silver_kernel.exceptions import InvalidArgumentError, SilverRateNotFoundError
from silver_kernel.logging_config import get_logger
from silver_kernel.models.silver_rate import SilverRate
from silver_kernel.services.base import BaseService

logger = get_logger("services.silver_rate")


class SilverRateService(BaseService[SilverRate]):
    model = SilverRate

    def set_rate(self, rate_date: date, rate_per_gram: Decimal, actor_id: UUID) -> SilverRateView:
        """Create or replace the rate for ``rate_date``."""
        if rate_per_gram <= 0:
            raise InvalidArgumentError(
                f"Silver rate must be positive (got {rate_per_gram})", field="rate_per_gram"
            )

        existing = self.session.execute(
            select(SilverRate)
            .where(SilverRate.rate_date == rate_date)
            .with_for_update()
        ).scalar_one_or_none()

        if existing is None:
            row = SilverRate(
                rate_date=rate_date,
                rate_per_gram=rate_per_gram,
                is_active=True,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row = existing
            row.rate_per_gram = rate_per_gram
            row.is_active = True
            row.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "silver_rate_set",
            extra={"rate_date": rate_date, "rate_per_gram": rate_per_gram, "replaced": existing is not None},
        )
        return row.to_dto()

    def current_rate(self, as_of: date) -> SilverRateView:
        """
        Rate effective on ``as_of``.

        Raises:
            SilverRateNotFoundError: If no active rate exists on or before ``as_of``.
        """
        row = self.session.execute(
            select(SilverRate)
            .where(SilverRate.is_active.is_(True), SilverRate.rate_date <= as_of)
            .order_by(SilverRate.rate_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        if row is None:
            raise SilverRateNotFoundError(as_of.isoformat())
        return row.to_dto()

    def history(self, limit: int = 30) -> list[SilverRateView]:
        rows = self.session.execute(
            select(SilverRate).order_by(SilverRate.rate_date.desc()).limit(limit)
        ).scalars()
        return [r.to_dto() for r in rows]
