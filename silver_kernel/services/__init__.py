"""Services for the silver ledger (write side)."""

from silver_kernel.services.customer_service import CustomerService
from silver_kernel.services.inventory_service import InventoryService
from silver_kernel.services.ledger_writer import LedgerWriter
from silver_kernel.services.payment_processor import PaymentProcessor
from silver_kernel.services.rate_service import SilverRateService
from silver_kernel.services.reversal_service import SaleReversalService
from silver_kernel.services.settlement_processor import SettlementProcessor
from silver_kernel.services.voucher_sequencer import VoucherSequencer

__all__ = [
    "CustomerService",
    "InventoryService",
    "LedgerWriter",
    "PaymentProcessor",
    "SaleReversalService",
    "SettlementProcessor",
    "SilverRateService",
    "VoucherSequencer",
]
