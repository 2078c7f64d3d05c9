# Accounting Models

from .trade import TradeEvent, TradeKind, fiscal_year_for, FISCAL_YEAR_START_MONTH
from .tax_lot import Lot, SellingFulfillment
from .transaction import ConsolidatedTransaction

__all__ = [
    "TradeEvent",
    "TradeKind",
    "fiscal_year_for",
    "FISCAL_YEAR_START_MONTH",
    "Lot",
    "SellingFulfillment",
    "ConsolidatedTransaction",
]
