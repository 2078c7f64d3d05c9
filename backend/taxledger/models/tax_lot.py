"""Tax lot model - FIFO cost basis tracking for realized gains.

CRITICAL: Tax lots track the cost basis of acquired shares using FIFO.
- BUY events create tax lots
- SELL events consume lots in acquisition-date order
- A lot's buy-side fee is attributed exactly once, to the first
  fulfillment row that draws from it
- Fully consumed lots are removed from the ledger immediately

Design constraints:
- Lots are owned by the lot ledger and mutated only by the matching engine
- Fulfillment rows are immutable snapshots of lot data
"""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class Lot:
    """One acquisition batch that is still (partially) unsold.

    Example workflow:
        BUY 1: 50 @ $10 fee $2 -> Lot A (50 remaining, fee $2)
        BUY 2: 50 @ $11 fee $2 -> Lot B (50 remaining, fee $2)
        SELL: 80 @ $15 ->
            Lot A: 50 consumed, fee $2 attributed (lot removed)
            Lot B: 30 consumed, fee $2 attributed (20 remaining, fee $0)
    """
    acquired_at: datetime
    quantity: int
    price: float
    remaining_fee: float = 0.0

    def __repr__(self):
        return (
            f"<Lot(acquired={self.acquired_at.isoformat()}, "
            f"remaining={self.quantity}, "
            f"price=${self.price:.3f}, fee=${self.remaining_fee:.2f})>"
        )

    @property
    def is_exhausted(self) -> bool:
        return self.quantity == 0

    def consume(self, quantity: int) -> int:
        """Consume quantity from this lot.

        Args:
            quantity: Amount requested

        Returns:
            Amount actually consumed (may be less if the lot doesn't have enough)
        """
        consumed = min(quantity, self.quantity)
        self.quantity -= consumed
        return consumed

    def take_fee(self) -> float:
        """Take the unattributed buy fee, leaving the lot with none."""
        fee = self.remaining_fee
        self.remaining_fee = 0.0
        return fee

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "acquired_at": self.acquired_at.isoformat(),
            "quantity": self.quantity,
            "price": self.price,
            "remaining_fee": self.remaining_fee,
        }


@dataclass(frozen=True)
class SellingFulfillment:
    """One row of a sell's lot-by-lot breakdown.

    Each row represents the part of a sell matched against a single lot.
    """
    acquired_at: datetime
    purchase_price: float
    quantity: int
    buy_fee: float
    sell_fee: float
    holding_period: timedelta
    profit: float

    def __repr__(self):
        return (
            f"<SellingFulfillment(quantity={self.quantity}, "
            f"purchase_price=${self.purchase_price:.3f}, "
            f"profit=${self.profit:+.2f})>"
        )

    @property
    def holding_period_days(self) -> int:
        return self.holding_period.days

    @property
    def cost_basis(self) -> float:
        """Purchase cost of the matched quantity, including its buy fee."""
        return self.quantity * self.purchase_price + self.buy_fee

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "acquired_at": self.acquired_at.isoformat(),
            "purchase_price": self.purchase_price,
            "quantity": self.quantity,
            "buy_fee": self.buy_fee,
            "sell_fee": self.sell_fee,
            "holding_period_days": self.holding_period_days,
            "holding_period_seconds": self.holding_period.total_seconds(),
            "profit": self.profit,
        }
