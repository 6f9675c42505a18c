"""
Raffle API Endpoints

職責：
1. 報名（enter）
2. upkeep 檢查與觸發（任何人都可以呼叫）
3. 唯讀查詢：狀態、入場費、參加者、最近得主、事件
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    EnterRequest,
    EnterResponse,
    RaffleStateResponse,
    UpkeepResponse,
    PerformUpkeepResponse,
    EntranceFeeResponse,
    PlayerResponse,
    PlayersResponse,
    RecentWinnerResponse,
    EventResponse,
)
from core.raffle_manager import RaffleManager
from core.exceptions import (
    RaffleNotFound,
    NotOpen,
    InsufficientPayment,
    PoolCannotEnter,
    UpkeepNotNeeded,
    PlayerIndexOutOfRange,
    AccountNotFound,
    InsufficientBalance,
    SelfTransfer,
)
from services import event_service
from api.dependencies import get_raffle_id

router = APIRouter(prefix="/api/raffle", tags=["raffle"])
logger = logging.getLogger(__name__)


@router.get("", response_model=RaffleStateResponse)
def get_raffle_state(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    """
    取得抽獎目前的完整狀態
    """
    try:
        raffle = RaffleManager.get_raffle(db, raffle_id)
        return RaffleStateResponse(
            raffle_id=raffle.id,
            state=raffle.state,
            entrance_fee=raffle.entrance_fee,
            interval=raffle.interval,
            last_timestamp=raffle.last_timestamp,
            recent_winner=raffle.recent_winner,
            pending_request_id=raffle.pending_request_id,
            number_of_players=RaffleManager.get_number_of_players(db, raffle_id),
            pool_balance=RaffleManager.get_pool_balance(db, raffle_id),
            num_words=raffle.num_words,
            request_confirmations=raffle.request_confirmations
        )

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except Exception as e:
        logger.error(f"Failed to get raffle state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/enter", response_model=EnterResponse)
def enter_raffle(
    entry: EnterRequest,
    db: Session = Depends(get_db),
    raffle_id: int = Depends(get_raffle_id)
):
    """
    報名本回合

    前置條件：
    - 狀態必須是 OPEN
    - amount >= entrance_fee
    - 玩家帳戶餘額足夠

    錯誤：
    - 409 NotOpen
    - 400 InsufficientPayment / InsufficientBalance / 獎池帳戶報名
    - 404 帳戶不存在
    """
    try:
        participant = RaffleManager.enter(db, raffle_id, entry.account, entry.amount)
        return EnterResponse(
            account=participant.account,
            slot=participant.slot,
            number_of_players=RaffleManager.get_number_of_players(db, raffle_id)
        )

    except NotOpen as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (InsufficientPayment, InsufficientBalance, PoolCannotEnter, SelfTransfer) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (RaffleNotFound, AccountNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to enter raffle: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/upkeep", response_model=UpkeepResponse)
def check_upkeep(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    """
    檢查是否需要推進回合（唯讀）

    給外部自動化程式輪詢用：upkeep_needed 為 True 時再呼叫 POST /upkeep
    """
    try:
        check = RaffleManager.check_upkeep(db, raffle_id)
        return UpkeepResponse(
            upkeep_needed=check.upkeep_needed,
            time_passed=check.time_passed,
            is_open=check.is_open,
            has_players=check.has_players,
            has_balance=check.has_balance
        )

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except Exception as e:
        logger.error(f"Failed to check upkeep: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/upkeep", response_model=PerformUpkeepResponse)
def perform_upkeep(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    """
    推進回合：送出隨機數請求

    任何人都可以呼叫；條件不成立時返回 409，detail 帶有
    balance / num_players / raffle_state 讓呼叫端判斷
    """
    try:
        request_id = RaffleManager.perform_upkeep(db, raffle_id)
        return PerformUpkeepResponse(request_id=request_id)

    except UpkeepNotNeeded as e:
        raise HTTPException(status_code=409, detail=e.to_detail())
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except Exception as e:
        logger.error(f"Failed to perform upkeep: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/entrance-fee", response_model=EntranceFeeResponse)
def get_entrance_fee(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    try:
        raffle = RaffleManager.get_raffle(db, raffle_id)
        return EntranceFeeResponse(entrance_fee=raffle.entrance_fee)

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.get("/players", response_model=PlayersResponse)
def get_players(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    try:
        return PlayersResponse(players=RaffleManager.get_players(db, raffle_id))

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.get("/players/{index}", response_model=PlayerResponse)
def get_player(
    index: int,
    db: Session = Depends(get_db),
    raffle_id: int = Depends(get_raffle_id)
):
    """
    依索引取得參加者（索引即抽獎時使用的位置）
    """
    try:
        account = RaffleManager.get_player(db, raffle_id, index)
        return PlayerResponse(index=index, account=account)

    except (RaffleNotFound, PlayerIndexOutOfRange) as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/recent-winner", response_model=RecentWinnerResponse)
def get_recent_winner(db: Session = Depends(get_db), raffle_id: int = Depends(get_raffle_id)):
    try:
        raffle = RaffleManager.get_raffle(db, raffle_id)
        return RecentWinnerResponse(recent_winner=raffle.recent_winner)

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.get("/events", response_model=List[EventResponse])
def get_events(
    event_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    raffle_id: int = Depends(get_raffle_id)
):
    """
    取得事件紀錄（Entered / RequestedWinner / WinnerPicked）

    參數：
        event_type: 只取某一種事件（query parameter，可省略）
        limit: 最多幾筆
    """
    events = event_service.list_events(db, raffle_id, event_type=event_type, limit=limit)
    return [EventResponse.model_validate(event) for event in events]
