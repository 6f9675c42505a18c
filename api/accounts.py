"""
Account API Endpoints（ledger）

職責：
1. 查詢帳戶餘額
2. 開發用水龍頭：增加帳戶餘額
3. 設定帳戶是否接受款項
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import FundRequest, AcceptsPaymentsRequest, AccountResponse
from core.exceptions import AccountNotFound
from services import ledger_service

router = APIRouter(prefix="/api/accounts", tags=["accounts"])
logger = logging.getLogger(__name__)


@router.get("/{address}", response_model=AccountResponse)
def get_account(address: str, db: Session = Depends(get_db)):
    try:
        return AccountResponse.model_validate(ledger_service.get_account(db, address))

    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{address}/fund", response_model=AccountResponse)
def fund_account(address: str, payload: FundRequest, db: Session = Depends(get_db)):
    """
    增加帳戶餘額（帳戶不存在時自動建立）
    """
    try:
        account = ledger_service.fund(db, address, payload.amount)
        db.commit()
        db.refresh(account)

        logger.info(f"Funded account {address} with {payload.amount}")
        return AccountResponse.model_validate(account)

    except Exception as e:
        logger.error(f"Failed to fund account: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{address}/accepts-payments", response_model=AccountResponse)
def set_accepts_payments(
    address: str,
    payload: AcceptsPaymentsRequest,
    db: Session = Depends(get_db)
):
    try:
        account = ledger_service.set_accepts_payments(db, address, payload.accepts_payments)
        db.commit()
        db.refresh(account)
        return AccountResponse.model_validate(account)

    except AccountNotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
