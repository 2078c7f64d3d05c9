"""Trade feed service - parse CSV trade files into trade events.

Expected columns (header names are case-insensitive):
    date, buy or sell, code, volume, price, fee

``type``/``kind`` are accepted for the trade column and ``quantity`` for
``volume``. ``fee`` may be blank or missing for dividends.
"""

import csv
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from ..models import TradeEvent, TradeKind

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
]

COLUMN_ALIASES = {
    "date": ("date",),
    "kind": ("buy or sell", "type", "kind"),
    "code": ("code",),
    "quantity": ("volume", "quantity"),
    "price": ("price",),
    "fee": ("fee",),
}

KIND_ALIASES = {
    "buy": TradeKind.BUY,
    "b": TradeKind.BUY,
    "sell": TradeKind.SELL,
    "s": TradeKind.SELL,
    "dividend": TradeKind.DIVIDEND,
    "div": TradeKind.DIVIDEND,
}


class FeedParseError(Exception):
    """Raised when a feed row can't be turned into a trade event."""

    def __init__(self, line: int, message: str):
        self.line = line
        super().__init__(f"Line {line}: {message}")


class TradeFeedService:
    """Service for reading trade events from CSV."""

    def __init__(self, date_formats: Optional[Sequence[str]] = None):
        """Initialize trade feed service.

        Args:
            date_formats: strptime formats to try, in order
        """
        self.date_formats = list(date_formats or DEFAULT_DATE_FORMATS)

    @classmethod
    def from_config(cls, config) -> "TradeFeedService":
        return cls(date_formats=config.get("feed.date_formats"))

    def read(self, path: Path) -> List[TradeEvent]:
        """Read all trade events from a CSV file.

        Raises:
            FeedParseError: On the first malformed row
        """
        with open(path, 'r', newline='', encoding='utf-8-sig') as f:
            events = list(self.iter_events(f))

        logger.info(f"Read {len(events)} trade events from {path}")
        return events

    def iter_events(self, lines: Iterable[str]) -> Iterator[TradeEvent]:
        """Parse CSV text lines (header first) into trade events."""
        reader = csv.DictReader(lines)
        if reader.fieldnames is None:
            return

        columns = self._resolve_columns(reader.fieldnames)
        previous: Optional[datetime] = None

        for row in reader:
            if not any((value or "").strip() for value in row.values()):
                continue

            event = self.parse_row(row, columns, reader.line_num)

            if previous is not None and event.date < previous:
                logger.warning(
                    f"Line {reader.line_num}: {event.date.isoformat()} is earlier "
                    f"than the previous event {previous.isoformat()}"
                )
            previous = event.date

            yield event

    def _resolve_columns(self, fieldnames: Sequence[str]) -> Dict[str, Optional[str]]:
        """Map logical field names to the header names present in the file."""
        normalized = {name.strip().lower(): name for name in fieldnames if name}
        columns: Dict[str, Optional[str]] = {}

        for field, aliases in COLUMN_ALIASES.items():
            columns[field] = next((normalized[a] for a in aliases if a in normalized), None)
            if columns[field] is None and field != "fee":
                raise FeedParseError(1, f"Missing column '{aliases[0]}'")

        return columns

    def parse_row(self, row: Dict[str, str], columns: Dict[str, Optional[str]], line: int) -> TradeEvent:
        """Parse one CSV row into a trade event.

        Raises:
            FeedParseError: If any field is missing or malformed
        """
        def field(name: str) -> str:
            column = columns.get(name)
            return (row.get(column) or "").strip() if column else ""

        kind_text = field("kind").lower()
        kind = KIND_ALIASES.get(kind_text)
        if kind is None:
            raise FeedParseError(line, f"Unknown trade type '{field('kind')}'")

        code = field("code")
        if not code:
            raise FeedParseError(line, "Missing instrument code")

        quantity_text = field("quantity")
        try:
            quantity = int(quantity_text)
        except ValueError:
            raise FeedParseError(line, f"Volume '{quantity_text}' is not a whole number")

        price = self._parse_amount(field("price"), "price", line)
        fee_text = field("fee")
        fee = self._parse_amount(fee_text, "fee", line) if fee_text else 0.0

        return TradeEvent(
            date=self.parse_date(field("date"), line),
            kind=kind,
            code=code,
            quantity=quantity,
            price=price,
            fee=fee,
        )

    def parse_date(self, text: str, line: int = 0) -> datetime:
        """Parse a date using the configured formats.

        Raises:
            FeedParseError: If no format matches
        """
        for fmt in self.date_formats:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise FeedParseError(line, f"Unrecognized date '{text}'")

    def _parse_amount(self, text: str, name: str, line: int) -> float:
        try:
            value = float(text.replace(",", "").replace("$", ""))
        except ValueError:
            raise FeedParseError(line, f"{name.capitalize()} '{text}' is not a number")
        if not math.isfinite(value):
            raise FeedParseError(line, f"{name.capitalize()} '{text}' is not a finite number")
        return value
