"""Lot ledger - per-instrument FIFO queues of open tax lots.

Lots for an instrument are kept in non-decreasing acquisition-date order.
New lots are inserted after every lot with an equal or earlier date, so
backfilled purchases land in date order and same-day purchases keep their
arrival order. Sells always draw from index 0.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Tuple

from ..models import Lot
from .ledger_invariants import UnknownInstrumentError

logger = logging.getLogger(__name__)


class LotLedger:
    """Mapping from instrument code to its ordered open lots."""

    def __init__(self):
        self._lots: Dict[str, Deque[Lot]] = {}

    def insert(self, code: str, lot: Lot) -> int:
        """Insert a lot in acquisition-date order.

        Args:
            code: Instrument code
            lot: New lot

        Returns:
            Index the lot was inserted at
        """
        lots = self._lots.setdefault(code, deque())

        # Events usually arrive in date order, so scan from the back
        position = len(lots)
        while position > 0 and lots[position - 1].acquired_at > lot.acquired_at:
            position -= 1

        lots.insert(position, lot)

        if position != len(lots) - 1:
            logger.debug(
                f"{code}: Backfilled lot acquired {lot.acquired_at.isoformat()} "
                f"at position {position} of {len(lots)}"
            )

        return position

    def earliest(self, code: str) -> Lot:
        """Get the earliest open lot for an instrument.

        Raises:
            UnknownInstrumentError: If the instrument holds no lots
        """
        lots = self._lots.get(code)
        if not lots:
            raise UnknownInstrumentError(code)
        return lots[0]

    def remove_if_exhausted(self, code: str) -> bool:
        """Remove the earliest lot once its quantity reaches 0.

        Returns:
            True if a lot was removed
        """
        lots = self._lots.get(code)
        if not lots or not lots[0].is_exhausted:
            return False

        lot = lots.popleft()
        logger.debug(f"{code}: Lot acquired {lot.acquired_at.isoformat()} fully consumed")

        if not lots:
            del self._lots[code]
        return True

    def has_lots(self, code: str) -> bool:
        return bool(self._lots.get(code))

    def holdings(self, code: str) -> int:
        """Get total quantity held across all lots of an instrument."""
        return sum(lot.quantity for lot in self._lots.get(code, ()))

    def lots(self, code: str) -> Tuple[Lot, ...]:
        """Get a snapshot of an instrument's lots, earliest first."""
        return tuple(self._lots.get(code, ()))

    def codes(self) -> List[str]:
        """Get codes of all instruments with open lots, sorted."""
        return sorted(code for code, lots in self._lots.items() if lots)

    def reset(self) -> None:
        self._lots.clear()
