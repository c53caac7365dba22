"""StockItem -- tracked product stock, decremented by sale lines."""

from decimal import Decimal

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from silver_kernel.db.base import TrackedBase
from silver_kernel.db.types import Percent, Weight
from silver_kernel.domain.dtos import StockItemView


class StockItem(TrackedBase):
    __tablename__ = "stock_items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross_weight: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    net_weight: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    touch: Mapped[Percent | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> StockItemView:
        return StockItemView(
            id=self.id,
            name=self.name,
            pieces=self.pieces,
            gross_weight=self.gross_weight,
            net_weight=self.net_weight,
            touch=self.touch,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<StockItem {self.name} pcs={self.pieces} net={self.net_weight}>"
