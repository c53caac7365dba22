"""
VoucherCounter -- last issued voucher sequence per (channel, day).

Row-level locking on this row is the only way voucher numbers are
allocated; nothing ever derives the next number from existing sales.
"""

from datetime import date

from sqlalchemy import BigInteger, Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from silver_kernel.db.base import Base


class VoucherCounter(Base):
    __tablename__ = "voucher_counters"

    __table_args__ = (
        UniqueConstraint("channel", "business_day", name="uq_voucher_counters_channel_day"),
    )

    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    business_day: Mapped[date] = mapped_column(Date, nullable=False)
    last_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<VoucherCounter {self.channel} {self.business_day} {self.last_sequence}>"
