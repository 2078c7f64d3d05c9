"""Trade event model - validated input events for accounting.

CRITICAL: Trade events are the only input to the accounting engine.
- Events arrive one at a time in non-decreasing date order
- Events are parsed and date-normalized before reaching the engine
- BUY events create tax lots, SELL events consume them (FIFO)
- DIVIDEND events are pure income and never touch the lot ledger

Design constraints:
- Immutable once constructed
- Monetary fields are plain floats (single currency)
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


# Fiscal year runs July..June and is labelled by the calendar year it ends in
FISCAL_YEAR_START_MONTH = 7


def fiscal_year_for(moment: datetime) -> int:
    """Get the fiscal year a date falls in.

    Jan..Jun of year Y belong to FY Y, Jul..Dec of year Y belong to FY Y+1.
    """
    if moment.month < FISCAL_YEAR_START_MONTH:
        return moment.year
    return moment.year + 1


class TradeKind(str, Enum):
    """Trade event kind enumeration."""
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"


@dataclass(frozen=True)
class TradeEvent:
    """One trade event from the external feed.

    For BUY/SELL, ``price`` is the unit price and ``fee`` the brokerage fee.
    For DIVIDEND, ``price`` is the amount paid per unit and ``fee`` is 0.

    Example:
        TradeEvent(datetime(2022, 1, 10), TradeKind.BUY, "CBA", 100, 10.0, 5.0)
    """
    date: datetime
    kind: TradeKind
    code: str
    quantity: int
    price: float
    fee: float = 0.0

    def __repr__(self):
        return (
            f"<TradeEvent({self.kind.value} {self.quantity} {self.code} "
            f"@ ${self.price:.3f} fee=${self.fee:.2f} on {self.date.isoformat()})>"
        )

    @property
    def fiscal_year(self) -> int:
        return fiscal_year_for(self.date)

    def gross_amount(self) -> float:
        """Get quantity * price, before fees."""
        return self.quantity * self.price

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "date": self.date.isoformat(),
            "kind": self.kind.value,
            "code": self.code,
            "quantity": self.quantity,
            "price": self.price,
            "fee": self.fee,
        }
