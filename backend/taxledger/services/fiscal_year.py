"""Fiscal year profit aggregation.

Realized profit from sells and dividend income are accumulated per fiscal
year. Buys never touch the totals.
"""

import logging
from datetime import datetime
from typing import Dict

from ..models import fiscal_year_for

logger = logging.getLogger(__name__)


class FiscalYearAggregator:
    """Running profit totals keyed by fiscal year."""

    def __init__(self):
        self._totals: Dict[int, float] = {}

    def accumulate(self, fiscal_year: int, amount: float) -> float:
        """Add an amount to a fiscal year's total.

        Args:
            fiscal_year: Fiscal year label (year the FY ends in)
            amount: Profit (or loss, if negative) to add

        Returns:
            New total for the fiscal year
        """
        total = self._totals.get(fiscal_year, 0.0) + amount
        self._totals[fiscal_year] = total
        logger.debug(f"FY{fiscal_year}: {amount:+.2f} -> total {total:.2f}")
        return total

    def accumulate_for_date(self, moment: datetime, amount: float) -> float:
        return self.accumulate(fiscal_year_for(moment), amount)

    def total(self, fiscal_year: int) -> float:
        return self._totals.get(fiscal_year, 0.0)

    def totals(self) -> Dict[int, float]:
        """Get a copy of all totals, ordered by fiscal year."""
        return {fy: self._totals[fy] for fy in sorted(self._totals)}

    def reset(self) -> None:
        self._totals.clear()
