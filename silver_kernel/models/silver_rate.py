"""SilverRate -- the shop's rate per gram for a calendar day."""

from datetime import date

from sqlalchemy import Boolean, Date, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from silver_kernel.db.base import TrackedBase
from silver_kernel.db.types import Rate
from silver_kernel.domain.dtos import SilverRateView


class SilverRate(TrackedBase):
    __tablename__ = "silver_rates"

    __table_args__ = (
        UniqueConstraint("rate_date", name="uq_silver_rates_rate_date"),
    )

    rate_date: Mapped[date] = mapped_column(Date, nullable=False)
    rate_per_gram: Mapped[Rate] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> SilverRateView:
        return SilverRateView(
            id=self.id,
            rate_date=self.rate_date,
            rate_per_gram=self.rate_per_gram,
            is_active=self.is_active,
        )
