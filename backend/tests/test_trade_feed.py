"""Tests for CSV trade feed parsing."""

import pytest
from datetime import datetime

from taxledger.models import TradeKind
from taxledger.services.trade_feed import FeedParseError, TradeFeedService


def parse(text, **kwargs):
    return list(TradeFeedService(**kwargs).iter_events(text.splitlines()))


class TestTradeFeedService:
    """Test parsing trade rows into events."""

    def test_read_file(self, trades_csv):
        events = TradeFeedService().read(trades_csv)

        assert len(events) == 5
        assert [e.kind for e in events] == [
            TradeKind.BUY, TradeKind.BUY, TradeKind.SELL, TradeKind.DIVIDEND, TradeKind.SELL,
        ]
        first = events[0]
        assert first.date == datetime(2022, 1, 1)
        assert (first.code, first.quantity, first.price, first.fee) == ("CBA", 50, 10.0, 2.0)
        assert events[3].fee == 0.0

    def test_column_aliases(self):
        events = parse(
            "Date,Type,Code,Quantity,Price\n"
            "2022-01-01,buy,CBA,10,1.5\n"
        )

        assert events[0].kind == TradeKind.BUY
        assert events[0].quantity == 10
        assert events[0].fee == 0.0

    def test_datetime_and_day_first_formats(self):
        events = parse(
            "date,buy or sell,code,volume,price,fee\n"
            "2022-01-01 09:30:00,BUY,CBA,10,1.5,1\n"
            "15/02/2022,SELL,CBA,10,1.6,1\n"
        )

        assert events[0].date == datetime(2022, 1, 1, 9, 30)
        assert events[1].date == datetime(2022, 2, 15)

    def test_custom_date_formats(self):
        events = parse(
            "date,buy or sell,code,volume,price,fee\n"
            "01-02-2022,BUY,CBA,10,1.5,1\n",
            date_formats=["%m-%d-%Y"],
        )
        assert events[0].date == datetime(2022, 1, 2)

    def test_blank_rows_skipped(self):
        events = parse(
            "date,buy or sell,code,volume,price,fee\n"
            "2022-01-01,BUY,CBA,10,1.5,1\n"
            ",,,,,\n"
        )
        assert len(events) == 1

    def test_empty_input(self):
        assert parse("") == []

    def test_unknown_trade_type(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse(
                "date,buy or sell,code,volume,price,fee\n"
                "2022-01-01,SPLIT,CBA,10,1.5,1\n"
            )
        assert exc_info.value.line == 2

    def test_fractional_volume(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse(
                "date,buy or sell,code,volume,price,fee\n"
                "2022-01-01,BUY,CBA,1.5,1.5,1\n"
            )
        assert "whole number" in str(exc_info.value)

    def test_bad_price(self):
        with pytest.raises(FeedParseError):
            parse(
                "date,buy or sell,code,volume,price,fee\n"
                "2022-01-01,BUY,CBA,10,abc,1\n"
            )

    def test_bad_date(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse(
                "date,buy or sell,code,volume,price,fee\n"
                "yesterday,BUY,CBA,10,1.5,1\n"
            )
        assert "Unrecognized date" in str(exc_info.value)

    def test_missing_column(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse("date,buy or sell,volume,price\n2022-01-01,BUY,10,1.5\n")
        assert "code" in str(exc_info.value)

    def test_negative_values_are_passed_through(self):
        """Negative fees parse; the recorder rejects them."""
        events = parse(
            "date,buy or sell,code,volume,price,fee\n"
            "2022-01-01,BUY,CBA,10,1.5,-1\n"
        )
        assert events[0].fee == -1.0
