"""Logging setup and CSV audit logs for recorded transactions."""

import csv
import logging
from pathlib import Path
from typing import Optional

from ..models import ConsolidatedTransaction, TradeKind

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: Log record format, defaults to DEFAULT_LOG_FORMAT
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt or DEFAULT_LOG_FORMAT,
        force=True,
    )


class TransactionLogService:
    """Service for appending recorded transactions to CSV audit files.

    Files written to the log directory:
    - transactions.csv: one row per consolidated transaction
    - fiscal_<FY>.csv: one row per sell fulfillment or dividend in that FY
    """

    def __init__(self, log_dir: Path):
        """Initialize transaction log service.

        Args:
            log_dir: Directory for the CSV audit files
        """
        self.log_dir = Path(log_dir)
        self._ensure_log_directory()

    def _ensure_log_directory(self) -> None:
        """Create the log directory if it doesn't exist."""
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Log directory ensured at {self.log_dir}")
        except OSError as e:
            logger.error(f"Failed to create log directory {self.log_dir}: {e}")

    def log_transaction(self, record: ConsolidatedTransaction) -> None:
        """Log a transaction and, for sells and dividends, its fiscal rows.

        Args:
            record: Recorded transaction
        """
        log_file = self.log_dir / "transactions.csv"
        write_header = not log_file.exists()

        try:
            with open(log_file, 'a', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)

                if write_header:
                    writer.writerow([
                        'date', 'kind', 'code', 'quantity', 'price', 'fee',
                        'amount_settled', 'net_profit', 'fiscal_year'
                    ])

                writer.writerow([
                    record.date.isoformat(),
                    record.kind.value,
                    record.code,
                    record.quantity,
                    f"{record.price:.8f}",
                    f"{record.fee:.8f}",
                    f"{record.amount_settled:.2f}",
                    f"{record.net_profit:.2f}",
                    record.fiscal_year,
                ])

            logger.debug(f"Logged {record.kind.value} {record.code} to {log_file.name}")

        except OSError as e:
            logger.error(f"Failed to log transaction {record!r}: {e}")

        if record.kind != TradeKind.BUY:
            self.log_fiscal_entry(record)

    def log_fiscal_entry(self, record: ConsolidatedTransaction) -> None:
        """Log realized gain rows or dividend income for a fiscal year.

        Args:
            record: SELL or DIVIDEND transaction
        """
        fiscal_file = self.log_dir / f"fiscal_{record.fiscal_year}.csv"
        write_header = not fiscal_file.exists()

        try:
            with open(fiscal_file, 'a', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)

                if write_header:
                    writer.writerow([
                        'date', 'kind', 'code', 'acquired_at', 'quantity',
                        'purchase_price', 'sale_price', 'buy_fee', 'sell_fee',
                        'holding_period_days', 'profit'
                    ])

                if record.kind == TradeKind.DIVIDEND:
                    writer.writerow([
                        record.date.strftime('%Y-%m-%d'),
                        record.kind.value,
                        record.code,
                        "",
                        record.quantity,
                        "",
                        f"{record.price:.8f}",
                        "",
                        "",
                        "",
                        f"{record.net_profit:.2f}",
                    ])

                for row in record.fulfillments:
                    writer.writerow([
                        record.date.strftime('%Y-%m-%d'),
                        record.kind.value,
                        record.code,
                        row.acquired_at.strftime('%Y-%m-%d'),
                        row.quantity,
                        f"{row.purchase_price:.8f}",
                        f"{record.price:.8f}",
                        f"{row.buy_fee:.2f}",
                        f"{row.sell_fee:.2f}",
                        row.holding_period_days,
                        f"{row.profit:.2f}",
                    ])

            logger.debug(f"Logged fiscal entry to {fiscal_file.name}")

        except OSError as e:
            logger.error(f"Failed to log fiscal entry {record!r}: {e}")
