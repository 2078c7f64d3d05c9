"""API tests for reports endpoints.

Tests focus on HTTP layer, status codes, parameter validation, and JSON response shapes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taxledger.routers.reports import router


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def app():
    """Create FastAPI test app."""
    test_app = FastAPI()
    test_app.include_router(router, prefix="/reports")
    return test_app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


def event(date, kind, code, quantity, price, fee=0.0):
    return {
        "date": date,
        "kind": kind,
        "code": code,
        "quantity": quantity,
        "price": price,
        "fee": fee,
    }


# ============================================================================
# Process Endpoint Tests
# ============================================================================


class TestProcessEndpoint:
    """Tests for POST /process."""

    def test_success_case(self, client):
        """Success case returns 200 with correct JSON shape."""
        response = client.post("/reports/process", json={"events": [
            event("2022-01-10T00:00:00", "buy", "CBA", 100, 10.0, 5.0),
            event("2022-03-01T00:00:00", "sell", "CBA", 100, 12.0, 5.0),
            event("2022-05-01T00:00:00", "dividend", "CBA", 100, 0.5),
        ]})

        assert response.status_code == 200
        data = response.json()

        assert [t["kind"] for t in data["transactions"]] == ["buy", "sell", "dividend"]
        buy_record, sell_record, dividend_record = data["transactions"]
        assert buy_record["amount_settled"] == pytest.approx(1005.0)
        assert buy_record["cash_flow"] == pytest.approx(-1005.0)
        assert sell_record["net_profit"] == pytest.approx(190.0)
        assert len(sell_record["fulfillments"]) == 1
        assert sell_record["fulfillments"][0]["holding_period_days"] == 50
        assert dividend_record["net_profit"] == pytest.approx(50.0)

        assert data["fiscal_years"] == [{
            "fiscal_year": 2022,
            "realized_gain": pytest.approx(190.0),
            "dividend_income": pytest.approx(50.0),
            "net_profit": pytest.approx(240.0),
            "sell_count": 1,
            "dividend_count": 1,
        }]
        assert data["holdings"] == []

    def test_holdings_returned(self, client):
        response = client.post("/reports/process", json={"events": [
            event("2022-01-10T00:00:00", "buy", "CBA", 100, 10.0, 5.0),
            event("2022-03-01T00:00:00", "sell", "CBA", 40, 12.0),
        ]})

        assert response.status_code == 200
        holdings = response.json()["holdings"]
        assert len(holdings) == 1
        assert holdings[0]["quantity"] == 60
        assert holdings[0]["remaining_fee"] == 0.0

    def test_empty_feed(self, client):
        response = client.post("/reports/process", json={"events": []})

        assert response.status_code == 200
        assert response.json() == {"transactions": [], "fiscal_years": [], "holdings": []}

    def test_insufficient_inventory_returns_400(self, client):
        response = client.post("/reports/process", json={"events": [
            event("2022-01-10T00:00:00", "buy", "CBA", 10, 5.0),
            event("2022-03-01T00:00:00", "sell", "CBA", 20, 6.0),
        ]})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "InsufficientInventoryError"
        assert detail["index"] == 1

    def test_dividend_policy_override(self, client):
        response = client.post("/reports/process", json={
            "events": [event("2022-03-01T00:00:00", "dividend", "CBA", 20, 0.5)],
            "allow_dividend_without_holdings": False,
        })

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "UnknownInstrumentError"

    @pytest.mark.parametrize("bad", [
        {"quantity": 0},
        {"quantity": -1},
        {"price": -1.0},
        {"fee": -0.01},
        {"kind": "split"},
        {"code": ""},
    ])
    def test_invalid_events_rejected(self, client, bad):
        """Invalid events are rejected at the boundary with 422."""
        payload = event("2022-01-10T00:00:00", "buy", "CBA", 10, 5.0)
        payload.update(bad)

        response = client.post("/reports/process", json={"events": [payload]})

        assert response.status_code == 422


class TestProcessCSVEndpoint:
    """Tests for POST /process-csv."""

    def test_success_case(self, client, trades_csv):
        response = client.post(
            "/reports/process-csv",
            content=trades_csv.read_bytes(),
            headers={"Content-Type": "text/csv"},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["transactions"]) == 5
        assert [fy["fiscal_year"] for fy in data["fiscal_years"]] == [2022, 2023]
        assert data["fiscal_years"][0]["net_profit"] == pytest.approx(373.0)

    def test_parse_error_returns_400(self, client):
        response = client.post(
            "/reports/process-csv",
            content=b"date,buy or sell,code,volume,price,fee\nnope,BUY,CBA,1,1,0\n",
            headers={"Content-Type": "text/csv"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["line"] == 2

    def test_negative_fee_returns_400(self, client):
        response = client.post(
            "/reports/process-csv",
            content=b"date,buy or sell,code,volume,price,fee\n2022-01-01,BUY,CBA,1,1,-1\n",
            headers={"Content-Type": "text/csv"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidEventError"
