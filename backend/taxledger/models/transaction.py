"""Consolidated transaction model - append-only audit trail.

CRITICAL: This is the authoritative output of the accounting engine.
- Exactly one record per processed event, in processing order
- APPEND-ONLY: records are never mutated after they are recorded
- SELL records carry their ordered fulfillment breakdown
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from .tax_lot import SellingFulfillment
from .trade import TradeKind


@dataclass(frozen=True)
class ConsolidatedTransaction:
    """Audit record for one processed trade event.

    amount_settled:
        BUY: quantity * price + fee (cash paid)
        SELL: quantity * price - fee (cash received)
        DIVIDEND: quantity * amount per unit (cash received)

    net_profit:
        BUY: 0
        SELL: sum of fulfillment row profits
        DIVIDEND: the dividend amount
    """
    date: datetime
    kind: TradeKind
    code: str
    quantity: int
    price: float
    fee: float
    amount_settled: float
    net_profit: float
    fiscal_year: int
    fulfillments: Tuple[SellingFulfillment, ...] = ()

    def __repr__(self):
        return (
            f"<ConsolidatedTransaction({self.kind.value} {self.quantity} {self.code} "
            f"settled=${self.amount_settled:.2f} profit=${self.net_profit:+.2f})>"
        )

    @property
    def cash_flow(self) -> float:
        """Signed cash effect: negative for purchases, positive otherwise."""
        if self.kind == TradeKind.BUY:
            return -self.amount_settled
        return self.amount_settled

    @property
    def fulfilled_quantity(self) -> int:
        return sum(f.quantity for f in self.fulfillments)

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "date": self.date.isoformat(),
            "kind": self.kind.value,
            "code": self.code,
            "quantity": self.quantity,
            "price": self.price,
            "fee": self.fee,
            "amount_settled": self.amount_settled,
            "cash_flow": self.cash_flow,
            "net_profit": self.net_profit,
            "fiscal_year": self.fiscal_year,
            "fulfillments": [f.to_dict() for f in self.fulfillments],
        }
