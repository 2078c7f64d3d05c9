"""Tests for Ledger Invariant Validation Service"""

import pytest
from datetime import datetime, timedelta

from taxledger.models import (
    ConsolidatedTransaction,
    Lot,
    SellingFulfillment,
    TradeKind,
)
from taxledger.services.ledger_invariants import (
    LedgerInvariantService,
    LotOrderingError,
    FulfillmentQuantityError,
    ProfitMismatchError,
    FiscalTotalMismatchError,
)
from taxledger.services.lot_ledger import LotLedger

from factories import buy, sell, dividend


def make_sell_record(quantity, rows, net_profit=None):
    fulfillments = tuple(
        SellingFulfillment(
            acquired_at=datetime(2022, 1, 1),
            purchase_price=10.0,
            quantity=q,
            buy_fee=0.0,
            sell_fee=0.0,
            holding_period=timedelta(days=30),
            profit=p,
        )
        for q, p in rows
    )
    return ConsolidatedTransaction(
        date=datetime(2022, 2, 1),
        kind=TradeKind.SELL,
        code="CBA",
        quantity=quantity,
        price=12.0,
        fee=0.0,
        amount_settled=quantity * 12.0,
        net_profit=sum(p for _, p in rows) if net_profit is None else net_profit,
        fiscal_year=2022,
        fulfillments=fulfillments,
    )


@pytest.fixture
def validator():
    return LedgerInvariantService()


def test_valid_feed_passes_all_validations(recorder, validator):
    """Test that correctly recorded transactions pass all validations."""
    recorder.record_all([
        buy("CBA", 50, 10.0, fee=2.0, date=datetime(2022, 1, 1)),
        buy("CBA", 50, 11.0, fee=2.0, date=datetime(2022, 2, 1)),
        sell("CBA", 80, 15.0, fee=3.0, date=datetime(2022, 3, 1)),
        dividend("CBA", 20, 0.5, date=datetime(2022, 5, 1)),
    ])

    for record in recorder.transactions:
        validator.validate_transaction(record, recorder.ledger)  # Should not raise
    validator.validate_fiscal_totals(recorder.transactions, recorder.fiscal_year_profits)


def test_lot_ordering_violation_fails(validator):
    """Test that out-of-order lots raise error."""
    ledger = LotLedger()
    ledger.insert("CBA", Lot(datetime(2022, 1, 5), 10, 1.0))
    # Bypass insert() ordering to corrupt the ledger
    ledger._lots["CBA"].append(Lot(datetime(2022, 1, 1), 10, 1.0))

    with pytest.raises(LotOrderingError) as exc_info:
        validator.validate_lot_ordering(ledger, "CBA")

    assert "is after lot" in str(exc_info.value)


def test_empty_lot_in_ledger_fails(validator):
    """Test that an exhausted lot left in the ledger raises error."""
    ledger = LotLedger()
    ledger.insert("CBA", Lot(datetime(2022, 1, 5), 0, 1.0))

    with pytest.raises(LotOrderingError):
        validator.validate_lot_ordering(ledger, "CBA")


def test_fulfillment_quantity_mismatch_fails(validator):
    """Test that under-matched sell raises error."""
    record = make_sell_record(100, [(60, 120.0), (30, 60.0)])

    with pytest.raises(FulfillmentQuantityError) as exc_info:
        validator.validate_fulfillment_quantity(record)

    assert "Consumed=90" in str(exc_info.value)


def test_buy_with_fulfillments_fails(validator):
    """Test that fulfillment rows on a non-sell record raise error."""
    sell_record = make_sell_record(10, [(10, 20.0)])
    record = ConsolidatedTransaction(
        date=sell_record.date,
        kind=TradeKind.BUY,
        code="CBA",
        quantity=10,
        price=10.0,
        fee=0.0,
        amount_settled=100.0,
        net_profit=0.0,
        fiscal_year=2022,
        fulfillments=sell_record.fulfillments,
    )

    with pytest.raises(FulfillmentQuantityError):
        validator.validate_fulfillment_quantity(record)


def test_net_profit_mismatch_fails(validator):
    """Test that sell net profit must equal the sum of row profits."""
    record = make_sell_record(20, [(10, 20.0), (10, 15.0)], net_profit=40.0)

    with pytest.raises(ProfitMismatchError):
        validator.validate_net_profit(record)


def test_validate_transaction_runs_all_checks(validator):
    """Test the master validation re-raises the first violation."""
    record = make_sell_record(20, [(10, 20.0)])

    with pytest.raises(FulfillmentQuantityError):
        validator.validate_transaction(record, LotLedger())


def test_fiscal_totals_mismatch_fails(recorder, validator):
    """Test that tampered fiscal totals raise error."""
    recorder.record_all([
        buy("CBA", 10, 10.0, date=datetime(2022, 1, 1)),
        sell("CBA", 10, 12.0, date=datetime(2022, 3, 1)),
    ])
    totals = recorder.fiscal_year_profits
    totals[2022] += 1.0

    with pytest.raises(FiscalTotalMismatchError):
        validator.validate_fiscal_totals(recorder.transactions, totals)


def test_fiscal_totals_missing_year_fails(recorder, validator):
    """Test that a fiscal year without a total raises error."""
    recorder.record(dividend("CBA", 10, 1.0, date=datetime(2022, 8, 1)))

    with pytest.raises(FiscalTotalMismatchError):
        validator.validate_fiscal_totals(recorder.transactions, {})
