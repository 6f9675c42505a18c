"""
Pydantic schemas：API 的 request / response 格式
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import RaffleState


# ============ Raffle ============

class EnterRequest(BaseModel):
    account: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class EnterResponse(BaseModel):
    account: str
    slot: int
    number_of_players: int


class RaffleStateResponse(BaseModel):
    raffle_id: int
    state: RaffleState
    entrance_fee: int
    interval: int
    last_timestamp: int
    recent_winner: Optional[str] = None
    pending_request_id: Optional[int] = None
    number_of_players: int
    pool_balance: int
    num_words: int
    request_confirmations: int


class UpkeepResponse(BaseModel):
    upkeep_needed: bool
    time_passed: bool
    is_open: bool
    has_players: bool
    has_balance: bool


class PerformUpkeepResponse(BaseModel):
    request_id: int


class EntranceFeeResponse(BaseModel):
    entrance_fee: int


class PlayerResponse(BaseModel):
    index: int
    account: str


class PlayersResponse(BaseModel):
    players: List[str]


class RecentWinnerResponse(BaseModel):
    recent_winner: Optional[str] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    data: Dict[str, Any]
    created_at: datetime


# ============ Oracle ============

class FulfillRequest(BaseModel):
    request_id: int
    random_words: List[int] = Field(..., min_length=1)


class CoordinatorFulfillRequest(BaseModel):
    random_words: Optional[List[int]] = None


class WinnerResponse(BaseModel):
    request_id: int
    winner: str


# ============ Accounts ============

class FundRequest(BaseModel):
    amount: int = Field(..., gt=0)


class AcceptsPaymentsRequest(BaseModel):
    accepts_payments: bool


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    address: str
    balance: int
    accepts_payments: bool
