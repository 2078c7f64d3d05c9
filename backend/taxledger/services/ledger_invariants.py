"""Ledger Invariant Validation Service

This service validates accounting invariants after each recorded transaction.
All violations raise exceptions and halt processing to prevent corrupt state.

Design principles:
- Fail fast: Raise exceptions on violation
- Read-only: No data modification
- Deterministic: No randomness or time-based logic
- Scoped: Validate one transaction at a time
"""

import logging
from typing import Dict, Iterable

from ..models import ConsolidatedTransaction, TradeKind

logger = logging.getLogger(__name__)


# ============================================================================
# Exception Hierarchy
# ============================================================================

class AccountingError(Exception):
    """Base class for events the engine refuses to process."""
    pass


class InvalidEventError(AccountingError):
    """Non-positive quantity, negative price or negative fee."""
    pass


class UnknownInstrumentError(AccountingError):
    """Event references an instrument with no recorded lots."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"No lots held for instrument '{code}'")


class InsufficientInventoryError(AccountingError):
    """Sell quantity exceeds the quantity held across all lots."""

    def __init__(self, code: str, requested: int, held: int):
        self.code = code
        self.requested = requested
        self.held = held
        super().__init__(
            f"Cannot sell {requested} of '{code}': only {held} held"
        )


class ValidationError(Exception):
    """Base class for all invariant violations."""
    pass


class LotOrderingError(ValidationError):
    """Lots are not in acquisition-date order or hold no quantity."""
    pass


class FulfillmentQuantityError(ValidationError):
    """Fulfillment quantities don't add up to the sell quantity."""
    pass


class ProfitMismatchError(ValidationError):
    """Recorded net profit doesn't match its components."""
    pass


class FiscalTotalMismatchError(ValidationError):
    """Fiscal year totals don't match the recorded transactions."""
    pass


# ============================================================================
# Ledger Invariant Service
# ============================================================================

class LedgerInvariantService:
    """Service for validating accounting invariants.

    This service performs 3 validations after each transaction:
    1. Lots for the instrument are date-ordered with positive quantities
    2. SELL fulfillment quantities sum to the sell quantity
    3. SELL net profit equals the sum of fulfillment profits

    Fiscal year totals can be cross-checked against the full transaction
    log with validate_fiscal_totals().
    """

    # Floating point tolerance for all comparisons
    TOLERANCE = 1e-6

    def validate_transaction(self, record: ConsolidatedTransaction, ledger) -> None:
        """Validate all invariants for a recorded transaction.

        Args:
            record: Transaction just recorded
            ledger: LotLedger after the transaction was applied

        Raises:
            ValidationError subclass if any invariant is violated
        """
        try:
            self.validate_lot_ordering(ledger, record.code)
            self.validate_fulfillment_quantity(record)
            self.validate_net_profit(record)
        except ValidationError as e:
            logger.error(f"{record.kind.value.upper()} {record.code} on {record.date.isoformat()}: Validation failed - {e}")
            raise

        logger.debug(f"{record.kind.value.upper()} {record.code}: All invariants validated")

    def validate_lot_ordering(self, ledger, code: str) -> None:
        """Validate lots are in non-decreasing acquisition order.

        Raises:
            LotOrderingError if a lot is out of order or empty
        """
        previous = None
        for lot in ledger.lots(code):
            if lot.quantity <= 0:
                raise LotOrderingError(
                    f"{code}: Lot acquired {lot.acquired_at.isoformat()} has "
                    f"quantity {lot.quantity} but is still in the ledger"
                )
            if previous is not None and lot.acquired_at < previous.acquired_at:
                raise LotOrderingError(
                    f"{code}: Lot acquired {lot.acquired_at.isoformat()} is "
                    f"after lot acquired {previous.acquired_at.isoformat()}"
                )
            previous = lot

    def validate_fulfillment_quantity(self, record: ConsolidatedTransaction) -> None:
        """Validate SELL records are fully matched against lots.

        Raises:
            FulfillmentQuantityError if quantities don't match
        """
        if record.kind != TradeKind.SELL:
            if record.fulfillments:
                raise FulfillmentQuantityError(
                    f"{record.kind.value.upper()} record carries "
                    f"{len(record.fulfillments)} fulfillment rows"
                )
            return

        consumed = record.fulfilled_quantity
        if consumed != record.quantity:
            raise FulfillmentQuantityError(
                f"Sell quantity={record.quantity}, "
                f"Consumed={consumed}, "
                f"Difference={record.quantity - consumed}"
            )

    def validate_net_profit(self, record: ConsolidatedTransaction) -> None:
        """Validate net profit against the record's components.

        Raises:
            ProfitMismatchError if net profit is inconsistent
        """
        if record.kind == TradeKind.SELL:
            expected = sum(f.profit for f in record.fulfillments)
        elif record.kind == TradeKind.DIVIDEND:
            expected = record.amount_settled
        else:
            expected = 0.0

        if abs(record.net_profit - expected) > self.TOLERANCE:
            raise ProfitMismatchError(
                f"Net profit={record.net_profit:.6f}, "
                f"expected={expected:.6f}"
            )

    def validate_fiscal_totals(
        self,
        transactions: Iterable[ConsolidatedTransaction],
        totals: Dict[int, float],
    ) -> None:
        """Validate fiscal year totals equal the sum of recorded profits.

        Raises:
            FiscalTotalMismatchError on any mismatch
        """
        expected: Dict[int, float] = {}
        for record in transactions:
            if record.kind == TradeKind.BUY:
                continue
            expected[record.fiscal_year] = expected.get(record.fiscal_year, 0.0) + record.net_profit

        if set(expected) != set(totals):
            raise FiscalTotalMismatchError(
                f"Fiscal years differ: recorded={sorted(expected)}, "
                f"totals={sorted(totals)}"
            )

        for fiscal_year, amount in expected.items():
            if abs(totals[fiscal_year] - amount) > self.TOLERANCE:
                raise FiscalTotalMismatchError(
                    f"FY{fiscal_year}: total={totals[fiscal_year]:.6f}, "
                    f"recorded={amount:.6f}"
                )
