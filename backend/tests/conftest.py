"""Pytest configuration and fixtures."""

import pytest

from taxledger.services.accounting import TransactionRecorderService


@pytest.fixture
def recorder():
    """Create a fresh recorder with invariant checks enabled."""
    return TransactionRecorderService()


@pytest.fixture
def trades_csv(tmp_path):
    """Write a small trade file in the broker export column layout."""
    path = tmp_path / "trades.csv"
    path.write_text(
        "date,buy or sell,code,volume,price,fee\n"
        "2022-01-01,BUY,CBA,50,10.00,2.00\n"
        "2022-02-01,BUY,CBA,50,11.00,2.00\n"
        "2022-03-01,SELL,CBA,80,15.00,3.00\n"
        "2022-05-01,DIVIDEND,CBA,20,0.50,\n"
        "2022-08-01,SELL,CBA,20,9.00,1.00\n"
    )
    return path
