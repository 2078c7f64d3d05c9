# Business Logic Services

from .ledger_invariants import (
    AccountingError,
    InvalidEventError,
    UnknownInstrumentError,
    InsufficientInventoryError,
    ValidationError,
    LotOrderingError,
    FulfillmentQuantityError,
    ProfitMismatchError,
    FiscalTotalMismatchError,
    LedgerInvariantService,
)
from .lot_ledger import LotLedger
from .fiscal_year import FiscalYearAggregator
from .accounting import (
    FIFOTaxEngine,
    SellResult,
    TransactionRecorderService,
    CSVExportService,
)
from .config import (
    ConfigService,
    config_service,
    ConfigValidationException,
    ConfigValidationError,
)
from .logging_service import (
    TransactionLogService,
    configure_logging,
)
from .trade_feed import (
    TradeFeedService,
    FeedParseError,
)
from .reporting_service import (
    ReportingService,
    TransactionReportRecord,
    FulfillmentReportRecord,
    FiscalYearSummaryRecord,
    HoldingRecord,
)

__all__ = [
    # Errors
    "AccountingError",
    "InvalidEventError",
    "UnknownInstrumentError",
    "InsufficientInventoryError",
    # Invariants
    "ValidationError",
    "LotOrderingError",
    "FulfillmentQuantityError",
    "ProfitMismatchError",
    "FiscalTotalMismatchError",
    "LedgerInvariantService",
    # Accounting
    "LotLedger",
    "FiscalYearAggregator",
    "FIFOTaxEngine",
    "SellResult",
    "TransactionRecorderService",
    "CSVExportService",
    # Config
    "ConfigService",
    "config_service",
    "ConfigValidationException",
    "ConfigValidationError",
    # Logging
    "TransactionLogService",
    "configure_logging",
    # Feed
    "TradeFeedService",
    "FeedParseError",
    # Reporting
    "ReportingService",
    "TransactionReportRecord",
    "FulfillmentReportRecord",
    "FiscalYearSummaryRecord",
    "HoldingRecord",
]
