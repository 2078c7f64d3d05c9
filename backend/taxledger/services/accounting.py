"""Complete accounting services: Transaction recording, FIFO tax engine, CSV exports.

CRITICAL: This module provides accounting-grade lot matching:
- Transaction recording with full audit trail
- FIFO tax lot matching (deterministic)
- Realized gain/loss and dividend income per fiscal year
- CSV export of the recorded results

Design constraints:
- Events are processed one at a time, in arrival order
- An event is fully validated before any state is mutated
- Recorded transactions are never mutated
- CSV files are derived exports only
"""

import csv
import logging
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import (
    ConsolidatedTransaction,
    Lot,
    SellingFulfillment,
    TradeEvent,
    TradeKind,
)
from .fiscal_year import FiscalYearAggregator
from .ledger_invariants import (
    InsufficientInventoryError,
    InvalidEventError,
    LedgerInvariantService,
    UnknownInstrumentError,
)
from .lot_ledger import LotLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SellResult:
    """Outcome of matching one SELL against the lot ledger."""
    fulfillments: Tuple[SellingFulfillment, ...]
    net_profit: float


class FIFOTaxEngine:
    """FIFO tax engine for cost basis tracking and realized gain calculation.

    CRITICAL: This engine provides deterministic lot matching.
    - BUY events create tax lots
    - SELL events consume lots in FIFO order
    - A lot's buy fee is charged to the first fulfillment row drawing from it
    - A sell's fee is charged to the first fulfillment row of that sell

    Design constraints:
    - FIFO matching is deterministic
    - A SELL is checked against holdings before any lot is touched
    """

    def __init__(self, ledger: LotLedger):
        """Initialize FIFO tax engine.

        Args:
            ledger: Lot ledger to create and consume lots in
        """
        self.ledger = ledger

    def process_buy(self, event: TradeEvent) -> Lot:
        """Process a BUY event - create a new tax lot.

        Args:
            event: Buy event

        Returns:
            Created tax lot
        """
        lot = Lot(
            acquired_at=event.date,
            quantity=event.quantity,
            price=event.price,
            remaining_fee=event.fee,
        )
        self.ledger.insert(event.code, lot)

        logger.info(
            f"Created tax lot: {lot.quantity} {event.code} "
            f"@ ${lot.price:.3f}/unit fee ${lot.remaining_fee:.2f}"
        )

        return lot

    def check_sell(self, event: TradeEvent) -> None:
        """Check a SELL can be fully matched without touching the ledger.

        Raises:
            UnknownInstrumentError: If no lots are held for the instrument
            InsufficientInventoryError: If the sell exceeds holdings
        """
        if not self.ledger.has_lots(event.code):
            raise UnknownInstrumentError(event.code)

        held = self.ledger.holdings(event.code)
        if event.quantity > held:
            raise InsufficientInventoryError(event.code, event.quantity, held)

    def process_sell(self, event: TradeEvent) -> SellResult:
        """Process a SELL event - consume tax lots in FIFO order.

        Args:
            event: Sell event

        Returns:
            Ordered fulfillment rows and the sell's net profit

        Raises:
            UnknownInstrumentError: If no lots are held for the instrument
            InsufficientInventoryError: If the sell exceeds holdings
        """
        self.check_sell(event)

        remaining_to_sell = event.quantity
        fulfillments: List[SellingFulfillment] = []
        net_profit = 0.0

        while remaining_to_sell > 0:
            lot = self.ledger.earliest(event.code)
            consumed = lot.consume(remaining_to_sell)
            remaining_to_sell -= consumed

            buy_fee = lot.take_fee() if lot.remaining_fee > 0 else 0.0
            sell_fee = event.fee if not fulfillments else 0.0
            profit = consumed * (event.price - lot.price) - buy_fee - sell_fee

            row = SellingFulfillment(
                acquired_at=lot.acquired_at,
                purchase_price=lot.price,
                quantity=consumed,
                buy_fee=buy_fee,
                sell_fee=sell_fee,
                holding_period=event.date - lot.acquired_at,
                profit=profit,
            )

            self.ledger.remove_if_exhausted(event.code)

            fulfillments.append(row)
            net_profit += profit

            logger.info(
                f"Realized gain: {consumed} {event.code} "
                f"bought @ ${lot.price:.3f} sold @ ${event.price:.3f} "
                f"gain/loss=${profit:+.2f} ({row.holding_period_days} days)"
            )

        return SellResult(fulfillments=tuple(fulfillments), net_profit=net_profit)


class TransactionRecorderService:
    """Service for recording trade events into the accounting engine.

    CRITICAL: Each event produces exactly one consolidated transaction.
    The recorder owns all engine state: the lot ledger, the fiscal year
    totals and the transaction log. Nothing is shared between instances.

    Responsibilities:
    - Validate incoming events
    - Dispatch to the FIFO tax engine
    - Accumulate fiscal year profit
    - Append the audit record
    """

    def __init__(
        self,
        allow_dividend_without_holdings: bool = True,
        validate_invariants: bool = True,
        transaction_log=None,
    ):
        """Initialize transaction recorder.

        Args:
            allow_dividend_without_holdings: Accept dividends for instruments
                with no open lots
            validate_invariants: Run ledger invariant checks after each event
            transaction_log: Optional TransactionLogService for CSV audit files
        """
        self.allow_dividend_without_holdings = allow_dividend_without_holdings
        self.ledger = LotLedger()
        self.tax_engine = FIFOTaxEngine(self.ledger)
        self.aggregator = FiscalYearAggregator()
        self.validator = LedgerInvariantService() if validate_invariants else None
        self.transaction_log = transaction_log
        self._transactions: List[ConsolidatedTransaction] = []

    @classmethod
    def from_config(cls, config, transaction_log=None) -> "TransactionRecorderService":
        """Build a recorder from a loaded ConfigService."""
        return cls(
            allow_dividend_without_holdings=config.get(
                "accounting.allow_dividend_without_holdings", True
            ),
            validate_invariants=config.get("accounting.validate_invariants", True),
            transaction_log=transaction_log,
        )

    @property
    def transactions(self) -> Tuple[ConsolidatedTransaction, ...]:
        return tuple(self._transactions)

    @property
    def fiscal_year_profits(self) -> Dict[int, float]:
        return self.aggregator.totals()

    def reset(self) -> None:
        """Discard all lots, totals and recorded transactions."""
        self.ledger.reset()
        self.aggregator.reset()
        self._transactions.clear()
        logger.info("Accounting state reset")

    def validate_event(self, event: TradeEvent) -> TradeEvent:
        """Reject malformed events before they reach the engine.

        Returns:
            The event, with a plain-string kind coerced to TradeKind

        Raises:
            InvalidEventError: On bad kind, quantity, price, fee or code
        """
        try:
            kind = TradeKind(event.kind)
        except (ValueError, TypeError):
            raise InvalidEventError(
                f"Unknown trade kind {event.kind!r} for {event.code} on {event.date}"
            )
        if kind is not event.kind:
            event = replace(event, kind=kind)

        if not event.code:
            raise InvalidEventError(f"{event!r}: instrument code is empty")

        if isinstance(event.quantity, bool) or not isinstance(event.quantity, int) or event.quantity <= 0:
            raise InvalidEventError(f"{event!r}: quantity must be a positive integer")

        if not math.isfinite(event.price) or event.price < 0:
            raise InvalidEventError(f"{event!r}: price must be non-negative")

        if not math.isfinite(event.fee) or event.fee < 0:
            raise InvalidEventError(f"{event!r}: fee must be non-negative")

        if event.kind == TradeKind.DIVIDEND and event.fee != 0:
            raise InvalidEventError(f"{event!r}: dividends carry no fee")

        return event

    def record(self, event: TradeEvent) -> ConsolidatedTransaction:
        """Record one trade event.

        This creates:
        1. Tax lot (for BUY) or consumes lots (for SELL)
        2. Fiscal year profit (for SELL and DIVIDEND)
        3. Consolidated transaction record

        Args:
            event: Validated, date-normalized trade event

        Returns:
            Recorded consolidated transaction

        Raises:
            AccountingError subclass if the event can't be processed.
            No state is changed for a rejected event.
        """
        event = self.validate_event(event)

        if event.kind == TradeKind.BUY:
            record = self._record_buy(event)
        elif event.kind == TradeKind.SELL:
            record = self._record_sell(event)
        elif event.kind == TradeKind.DIVIDEND:
            record = self._record_dividend(event)
        else:
            raise InvalidEventError(f"{event!r}: unknown trade kind")

        self._transactions.append(record)

        if self.validator is not None:
            self.validator.validate_transaction(record, self.ledger)

        if self.transaction_log is not None:
            self.transaction_log.log_transaction(record)

        logger.info(
            f"Recorded {event.kind.value.upper()} {event.quantity} {event.code} "
            f"@ ${event.price:.3f} on {event.date.date().isoformat()} "
            f"(FY{record.fiscal_year}, profit ${record.net_profit:+.2f})"
        )

        return record

    def record_all(self, events: Iterable[TradeEvent]) -> List[ConsolidatedTransaction]:
        """Record events in order, stopping at the first failure."""
        return [self.record(event) for event in events]

    def _record_buy(self, event: TradeEvent) -> ConsolidatedTransaction:
        self.tax_engine.process_buy(event)
        return ConsolidatedTransaction(
            date=event.date,
            kind=event.kind,
            code=event.code,
            quantity=event.quantity,
            price=event.price,
            fee=event.fee,
            amount_settled=event.gross_amount() + event.fee,
            net_profit=0.0,
            fiscal_year=event.fiscal_year,
        )

    def _record_sell(self, event: TradeEvent) -> ConsolidatedTransaction:
        result = self.tax_engine.process_sell(event)
        self.aggregator.accumulate(event.fiscal_year, result.net_profit)
        return ConsolidatedTransaction(
            date=event.date,
            kind=event.kind,
            code=event.code,
            quantity=event.quantity,
            price=event.price,
            fee=event.fee,
            amount_settled=event.gross_amount() - event.fee,
            net_profit=result.net_profit,
            fiscal_year=event.fiscal_year,
            fulfillments=result.fulfillments,
        )

    def _record_dividend(self, event: TradeEvent) -> ConsolidatedTransaction:
        if not self.ledger.has_lots(event.code):
            if not self.allow_dividend_without_holdings:
                raise UnknownInstrumentError(event.code)
            logger.warning(
                f"Dividend for {event.code} on {event.date.date().isoformat()} "
                f"with no lots held"
            )

        amount = event.gross_amount()
        self.aggregator.accumulate(event.fiscal_year, amount)
        return ConsolidatedTransaction(
            date=event.date,
            kind=event.kind,
            code=event.code,
            quantity=event.quantity,
            price=event.price,
            fee=0.0,
            amount_settled=amount,
            net_profit=amount,
            fiscal_year=event.fiscal_year,
        )


class CSVExportService:
    """Service for exporting recorded results to CSV files.

    CRITICAL: CSV files are EXPORTS, not primary storage.
    - The recorder's transaction log is the authoritative source
    - CSV files can be regenerated at any time from the same feed
    """

    def __init__(self, recorder: TransactionRecorderService):
        """Initialize CSV export service.

        Args:
            recorder: Recorder that has processed the feed
        """
        self.recorder = recorder

    def export_transactions_csv(self, output_path: Path) -> int:
        """Export all consolidated transactions to CSV.

        Returns:
            Number of transactions written
        """
        transactions = self.recorder.transactions
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', newline='') as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow([
                'date', 'kind', 'code', 'quantity', 'price', 'fee',
                'amount_settled', 'cash_flow', 'net_profit', 'fiscal_year',
                'fulfillment_rows',
            ])

            for record in transactions:
                writer.writerow([
                    record.date.isoformat(),
                    record.kind.value,
                    record.code,
                    record.quantity,
                    record.price,
                    record.fee,
                    record.amount_settled,
                    record.cash_flow,
                    record.net_profit,
                    record.fiscal_year,
                    len(record.fulfillments),
                ])

        logger.info(f"Exported {len(transactions)} transactions to {output_path}")
        return len(transactions)

    def export_fiscal_csv(self, fiscal_year: int, output_path: Path) -> int:
        """Export realized gains and dividend income for one fiscal year.

        One row per SELL fulfillment and one row per DIVIDEND.

        Returns:
            Number of rows written
        """
        rows = 0
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', newline='') as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow([
                'date', 'kind', 'code', 'acquired_at', 'quantity',
                'purchase_price', 'sale_price', 'buy_fee', 'sell_fee',
                'cost_basis', 'holding_period_days', 'profit',
            ])

            for record in self.recorder.transactions:
                if record.fiscal_year != fiscal_year:
                    continue

                if record.kind == TradeKind.SELL:
                    for row in record.fulfillments:
                        writer.writerow([
                            record.date.isoformat(),
                            record.kind.value,
                            record.code,
                            row.acquired_at.isoformat(),
                            row.quantity,
                            row.purchase_price,
                            record.price,
                            row.buy_fee,
                            row.sell_fee,
                            row.cost_basis,
                            row.holding_period_days,
                            row.profit,
                        ])
                        rows += 1
                elif record.kind == TradeKind.DIVIDEND:
                    writer.writerow([
                        record.date.isoformat(),
                        record.kind.value,
                        record.code,
                        '',
                        record.quantity,
                        '',
                        record.price,
                        0.0,
                        0.0,
                        '',
                        '',
                        record.net_profit,
                    ])
                    rows += 1

        logger.info(f"Exported {rows} FY{fiscal_year} rows to {output_path}")
        return rows

    def export_fiscal_summary_csv(self, output_path: Path) -> int:
        """Export fiscal year profit totals.

        Returns:
            Number of fiscal years written
        """
        totals = self.recorder.fiscal_year_profits
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', newline='') as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(['fiscal_year', 'net_profit'])
            for fiscal_year, amount in totals.items():
                writer.writerow([fiscal_year, amount])

        logger.info(f"Exported {len(totals)} fiscal year totals to {output_path}")
        return len(totals)
