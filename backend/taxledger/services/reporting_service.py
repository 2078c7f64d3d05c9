"""Reporting Service

This service provides read-only reports derived from a recorder's output:
- consolidated transactions (audit trail)
- sell fulfillments (realized gains per lot)
- fiscal year totals
- open lots (remaining holdings)

Design principles:
- Read-only (no mutations)
- All P&L from recorded transactions (never recomputed)
- Full traceability
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from rich.table import Table

from ..models import TradeKind

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================

@dataclass
class TransactionReportRecord:
    """Consolidated transaction report record."""
    date: datetime
    kind: str
    code: str
    quantity: int
    price: float
    fee: float
    amount_settled: float
    cash_flow: float
    net_profit: float
    fiscal_year: int
    fulfillment_count: int


@dataclass
class FulfillmentReportRecord:
    """Realized gain report record (one per sell fulfillment)."""
    sell_date: datetime
    code: str
    acquired_at: datetime
    quantity: int
    purchase_price: float
    sale_price: float
    buy_fee: float
    sell_fee: float
    holding_period_days: int
    profit: float
    fiscal_year: int


@dataclass
class FiscalYearSummaryRecord:
    """Fiscal year summary report record."""
    fiscal_year: int
    realized_gain: float
    dividend_income: float
    net_profit: float
    sell_count: int
    dividend_count: int


@dataclass
class HoldingRecord:
    """Open lot report record."""
    code: str
    acquired_at: datetime
    quantity: int
    price: float
    remaining_fee: float


# ============================================================================
# Reporting Service
# ============================================================================

class ReportingService:
    """Service for generating reports from recorded transactions."""

    def __init__(self, recorder, price_decimals: int = 3, amount_decimals: int = 2):
        """Initialize reporting service.

        Args:
            recorder: TransactionRecorderService that has processed the feed
            price_decimals: Decimal places for unit prices in rendered tables
            amount_decimals: Decimal places for amounts in rendered tables
        """
        self.recorder = recorder
        self.price_decimals = price_decimals
        self.amount_decimals = amount_decimals

    @classmethod
    def from_config(cls, recorder, config) -> "ReportingService":
        return cls(
            recorder,
            price_decimals=config.get("report.price_decimals", 3),
            amount_decimals=config.get("report.amount_decimals", 2),
        )

    def get_transactions(self, code: Optional[str] = None) -> List[TransactionReportRecord]:
        """Get consolidated transactions in processing order."""
        return [
            TransactionReportRecord(
                date=t.date,
                kind=t.kind.value,
                code=t.code,
                quantity=t.quantity,
                price=t.price,
                fee=t.fee,
                amount_settled=t.amount_settled,
                cash_flow=t.cash_flow,
                net_profit=t.net_profit,
                fiscal_year=t.fiscal_year,
                fulfillment_count=len(t.fulfillments),
            )
            for t in self.recorder.transactions
            if code is None or t.code == code
        ]

    def get_realized_gains(self, fiscal_year: Optional[int] = None) -> List[FulfillmentReportRecord]:
        """Get realized gains, one record per sell fulfillment."""
        records = []
        for t in self.recorder.transactions:
            if t.kind != TradeKind.SELL:
                continue
            if fiscal_year is not None and t.fiscal_year != fiscal_year:
                continue
            for row in t.fulfillments:
                records.append(FulfillmentReportRecord(
                    sell_date=t.date,
                    code=t.code,
                    acquired_at=row.acquired_at,
                    quantity=row.quantity,
                    purchase_price=row.purchase_price,
                    sale_price=t.price,
                    buy_fee=row.buy_fee,
                    sell_fee=row.sell_fee,
                    holding_period_days=row.holding_period_days,
                    profit=row.profit,
                    fiscal_year=t.fiscal_year,
                ))
        return records

    def get_fiscal_year_summary(self) -> List[FiscalYearSummaryRecord]:
        """Get per fiscal year gain/income breakdown, oldest year first."""
        summaries = {}
        for t in self.recorder.transactions:
            if t.kind == TradeKind.BUY:
                continue

            summary = summaries.get(t.fiscal_year)
            if summary is None:
                summary = FiscalYearSummaryRecord(
                    fiscal_year=t.fiscal_year,
                    realized_gain=0.0,
                    dividend_income=0.0,
                    net_profit=0.0,
                    sell_count=0,
                    dividend_count=0,
                )
                summaries[t.fiscal_year] = summary

            if t.kind == TradeKind.SELL:
                summary.realized_gain += t.net_profit
                summary.sell_count += 1
            else:
                summary.dividend_income += t.net_profit
                summary.dividend_count += 1

        # Net profit comes from the aggregator, the authoritative running total
        totals = self.recorder.fiscal_year_profits
        for fiscal_year, summary in summaries.items():
            summary.net_profit = totals.get(fiscal_year, 0.0)

        return [summaries[fy] for fy in sorted(summaries)]

    def get_holdings(self) -> List[HoldingRecord]:
        """Get all open lots, grouped by instrument, earliest first."""
        ledger = self.recorder.ledger
        return [
            HoldingRecord(
                code=code,
                acquired_at=lot.acquired_at,
                quantity=lot.quantity,
                price=lot.price,
                remaining_fee=lot.remaining_fee,
            )
            for code in ledger.codes()
            for lot in ledger.lots(code)
        ]

    # ------------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------------

    def _price(self, value: float) -> str:
        return f"{value:.{self.price_decimals}f}"

    def _amount(self, value: float) -> str:
        return f"{value:.{self.amount_decimals}f}"

    def render_transactions(self) -> Table:
        """Render the audit trail with fulfillment rows under each sell.

        Buy totals are shown with a leading "- " as cash paid out.
        """
        table = Table(title="Transactions")
        table.add_column("Date")
        table.add_column("Trade")
        table.add_column("Code")
        table.add_column("Volume", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Fee", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Profit", justify="right")

        for t in self.recorder.transactions:
            total = self._amount(t.amount_settled)
            if t.kind == TradeKind.BUY:
                total = "- " + total

            table.add_row(
                t.date.strftime("%Y-%m-%d"),
                t.kind.value.upper(),
                t.code,
                str(t.quantity),
                self._price(t.price),
                self._amount(t.fee),
                total,
                "" if t.kind == TradeKind.BUY else self._amount(t.net_profit),
            )

            for row in t.fulfillments:
                table.add_row(
                    f"  {row.acquired_at.strftime('%Y-%m-%d')}",
                    f"  {row.holding_period_days}d",
                    "",
                    str(row.quantity),
                    self._price(row.purchase_price),
                    self._amount(row.buy_fee + row.sell_fee),
                    "",
                    self._amount(row.profit),
                    style="dim",
                )

        return table

    def render_fiscal_years(self) -> Table:
        """Render fiscal year totals."""
        table = Table(title="Fiscal Years")
        table.add_column("FY")
        table.add_column("Realized Gain", justify="right")
        table.add_column("Dividends", justify="right")
        table.add_column("Net Profit", justify="right")

        for summary in self.get_fiscal_year_summary():
            table.add_row(
                f"FY{summary.fiscal_year}",
                self._amount(summary.realized_gain),
                self._amount(summary.dividend_income),
                self._amount(summary.net_profit),
            )

        return table

    def render_holdings(self) -> Table:
        """Render open lots."""
        table = Table(title="Holdings")
        table.add_column("Code")
        table.add_column("Acquired")
        table.add_column("Volume", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Unattributed Fee", justify="right")

        for holding in self.get_holdings():
            table.add_row(
                holding.code,
                holding.acquired_at.strftime("%Y-%m-%d"),
                str(holding.quantity),
                self._price(holding.price),
                self._amount(holding.remaining_fee),
            )

        return table
