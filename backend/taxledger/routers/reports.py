"""Reports Router

API endpoints that run a trade feed through a fresh accounting engine and
return the resulting reports. Nothing is kept between requests.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..models import TradeEvent, TradeKind
from ..services.accounting import TransactionRecorderService
from ..services.config import config_service
from ..services.ledger_invariants import AccountingError
from ..services.reporting_service import ReportingService
from ..services.trade_feed import TradeFeedService, FeedParseError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request / Response Models (Pydantic)
# ============================================================================

class TradeEventRequest(BaseModel):
    """One trade event. Negative price/fee and non-positive quantity are rejected."""
    date: datetime
    kind: TradeKind
    code: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)
    fee: float = Field(0.0, ge=0)

    def to_event(self) -> TradeEvent:
        return TradeEvent(
            date=self.date,
            kind=self.kind,
            code=self.code,
            quantity=self.quantity,
            price=self.price,
            fee=self.fee,
        )


class ProcessRequest(BaseModel):
    """Trade feed to process, in chronological order."""
    events: List[TradeEventRequest]
    allow_dividend_without_holdings: Optional[bool] = None


class FulfillmentResponse(BaseModel):
    """Sell fulfillment response model."""
    acquired_at: datetime
    purchase_price: float
    quantity: int
    buy_fee: float
    sell_fee: float
    holding_period_days: int
    holding_period_seconds: float
    profit: float


class TransactionResponse(BaseModel):
    """Consolidated transaction response model."""
    date: datetime
    kind: str
    code: str
    quantity: int
    price: float
    fee: float
    amount_settled: float
    cash_flow: float
    net_profit: float
    fiscal_year: int
    fulfillments: List[FulfillmentResponse]


class FiscalYearResponse(BaseModel):
    """Fiscal year summary response model."""
    fiscal_year: int
    realized_gain: float
    dividend_income: float
    net_profit: float
    sell_count: int
    dividend_count: int

    class Config:
        from_attributes = True


class HoldingResponse(BaseModel):
    """Open lot response model."""
    code: str
    acquired_at: datetime
    quantity: int
    price: float
    remaining_fee: float

    class Config:
        from_attributes = True


class ProcessResponse(BaseModel):
    """Result of processing a trade feed."""
    transactions: List[TransactionResponse]
    fiscal_years: List[FiscalYearResponse]
    holdings: List[HoldingResponse]


# ============================================================================
# Helpers
# ============================================================================

def _build_recorder(allow_dividend_without_holdings: Optional[bool]) -> TransactionRecorderService:
    recorder = TransactionRecorderService.from_config(config_service)
    if allow_dividend_without_holdings is not None:
        recorder.allow_dividend_without_holdings = allow_dividend_without_holdings
    return recorder


def _process(events: List[TradeEvent], allow_dividend_without_holdings: Optional[bool] = None) -> ProcessResponse:
    """Record events and build the response, mapping accounting errors to 400."""
    recorder = _build_recorder(allow_dividend_without_holdings)

    for index, event in enumerate(events):
        try:
            recorder.record(event)
        except AccountingError as e:
            logger.warning(f"Rejected event {index}: {e}")
            raise HTTPException(
                status_code=400,
                detail={
                    "error": type(e).__name__,
                    "message": str(e),
                    "index": index,
                },
            )

    service = ReportingService(recorder)
    return ProcessResponse(
        transactions=[TransactionResponse(**t.to_dict()) for t in recorder.transactions],
        fiscal_years=[FiscalYearResponse.model_validate(r) for r in service.get_fiscal_year_summary()],
        holdings=[HoldingResponse.model_validate(h) for h in service.get_holdings()],
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/process", response_model=ProcessResponse)
async def process_events(request: ProcessRequest):
    """Process a JSON trade feed.

    Returns:
    - transactions (audit trail, with sell fulfillments)
    - fiscal_years (gain/income per fiscal year)
    - holdings (lots still open after the feed)
    """
    events = [e.to_event() for e in request.events]
    return _process(events, request.allow_dividend_without_holdings)


@router.post("/process-csv", response_model=ProcessResponse)
async def process_csv(request: Request):
    """Process a CSV trade feed sent as the request body (text/csv)."""
    body = await request.body()

    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Body must be UTF-8 encoded CSV")

    feed = TradeFeedService.from_config(config_service)
    try:
        events = list(feed.iter_events(text.splitlines()))
    except FeedParseError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "FeedParseError", "message": str(e), "line": e.line},
        )

    return _process(events)
