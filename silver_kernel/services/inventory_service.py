"""
InventoryService -- best-effort stock movements for tracked products.

Sale lines that carry a ``product_id`` take pieces and weight out of the
matching ``StockItem``; reversing the sale puts them back.  Stock never goes
below zero, and a line pointing at an unknown product is logged and skipped
rather than failing the sale.  Movements happen in the caller's unit of
work, so a failed sale leaves stock untouched.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from silver_kernel.db.types import ZERO, round_weight
from silver_kernel.logging_config import get_logger
from silver_kernel.models.stock_item import StockItem
from silver_kernel.services.base import BaseService

logger = get_logger("services.inventory")


class InventoryService(BaseService[StockItem]):
    model = StockItem

    def add_stock_item(
        self,
        name: str,
        actor_id: UUID,
        pieces: int = 0,
        gross_weight: Decimal = ZERO,
        net_weight: Decimal = ZERO,
        touch: Decimal | None = None,
    ) -> StockItem:
        item = StockItem(
            name=name,
            pieces=pieces,
            gross_weight=round_weight(gross_weight),
            net_weight=round_weight(net_weight),
            touch=touch,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(item)
        self.session.flush()
        return item

    def get(self, product_id: UUID) -> StockItem | None:
        return self.session.execute(
            select(StockItem).where(StockItem.id == product_id)
        ).scalar_one_or_none()

    def decrement(
        self,
        product_id: UUID,
        pieces: int,
        gross_weight: Decimal,
        net_weight: Decimal,
    ) -> StockItem | None:
        """Take a sold line out of stock, clamping every quantity at zero."""
        item = self._lock(product_id)
        if item is None:
            logger.warning(
                "stock_item_not_found",
                extra={"product_id": product_id, "operation": "decrement"},
            )
            return None

        item.pieces = max(0, item.pieces - pieces)
        item.gross_weight = max(ZERO, round_weight(item.gross_weight - gross_weight))
        item.net_weight = max(ZERO, round_weight(item.net_weight - net_weight))
        self.session.flush()
        logger.debug(
            "stock_decremented",
            extra={
                "product_id": product_id,
                "pieces": item.pieces,
                "net_weight": item.net_weight,
            },
        )
        return item

    def restore(
        self,
        product_id: UUID,
        pieces: int,
        gross_weight: Decimal,
        net_weight: Decimal,
    ) -> StockItem | None:
        """Return a reversed line to stock."""
        item = self._lock(product_id)
        if item is None:
            logger.warning(
                "stock_item_not_found",
                extra={"product_id": product_id, "operation": "restore"},
            )
            return None

        item.pieces += pieces
        item.gross_weight = round_weight(item.gross_weight + gross_weight)
        item.net_weight = round_weight(item.net_weight + net_weight)
        self.session.flush()
        logger.debug(
            "stock_restored",
            extra={
                "product_id": product_id,
                "pieces": item.pieces,
                "net_weight": item.net_weight,
            },
        )
        return item
