"""ORM models for the silver ledger."""

from silver_kernel.models.customer import Customer
from silver_kernel.models.ledger_entry import LedgerEntry
from silver_kernel.models.sale import Sale, SaleLineItem
from silver_kernel.models.silver_rate import SilverRate
from silver_kernel.models.stock_item import StockItem
from silver_kernel.models.voucher_counter import VoucherCounter

__all__ = [
    "Customer",
    "LedgerEntry",
    "Sale",
    "SaleLineItem",
    "SilverRate",
    "StockItem",
    "VoucherCounter",
]
