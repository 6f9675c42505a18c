"""
Oracle API Endpoints

職責：
1. /callback：外部 oracle 回傳隨機數（以 X-Oracle-Address header 驗證身分）
2. /requests/{id}/fulfill：開發用 coordinator，自行產生隨機數並觸發 callback

callback 任何一步失敗都整個 rollback，Raffle 維持 CALCULATING，可以重送
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import FulfillRequest, CoordinatorFulfillRequest, WinnerResponse
from core.raffle_manager import RaffleManager
from core.exceptions import (
    RaffleNotFound,
    UnauthorizedCallback,
    InvalidStateTransition,
    RequestNotPending,
    InvalidRandomWords,
    TransferFailed,
    OracleRequestNotFound,
    RequestAlreadyFulfilled,
)
from services import oracle_service
from api.dependencies import get_raffle_id

router = APIRouter(prefix="/api/oracle", tags=["oracle"])
logger = logging.getLogger(__name__)


@router.post("/callback", response_model=WinnerResponse)
def oracle_callback(
    payload: FulfillRequest,
    x_oracle_address: str = Header(...),
    db: Session = Depends(get_db),
    raffle_id: int = Depends(get_raffle_id)
):
    """
    Oracle callback（只有設定的 oracle 可以呼叫）

    錯誤：
    - 403 呼叫者不是 oracle
    - 409 狀態不是 CALCULATING 或 request_id 不符
    - 502 發獎失敗（狀態已 rollback）
    """
    try:
        winner = RaffleManager.fulfill_random_words(
            db,
            raffle_id,
            payload.request_id,
            payload.random_words,
            caller=x_oracle_address
        )
        return WinnerResponse(request_id=payload.request_id, winner=winner)

    except UnauthorizedCallback as e:
        logger.warning(f"Rejected oracle callback: {e}")
        raise HTTPException(status_code=403, detail=str(e))
    except (InvalidStateTransition, RequestNotPending) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidRandomWords as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransferFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except Exception as e:
        logger.error(f"Failed to handle oracle callback: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/requests/{request_id}/fulfill", response_model=WinnerResponse)
def fulfill_request(
    request_id: int,
    payload: Optional[CoordinatorFulfillRequest] = None,
    db: Session = Depends(get_db)
):
    """
    開發用 coordinator：回應一個等待中的請求

    沒有指定 random_words 時由 request_id 推導
    """
    try:
        random_words = payload.random_words if payload else None
        winner = oracle_service.fulfill_request(db, request_id, random_words)
        return WinnerResponse(request_id=request_id, winner=winner)

    except OracleRequestNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (RequestAlreadyFulfilled, InvalidStateTransition, RequestNotPending) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidRandomWords as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransferFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to fulfill oracle request: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
