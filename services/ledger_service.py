"""
Ledger 服務：帳戶餘額與轉帳

抽獎核心把它當成外部協作者：
- deposit：報名時把入場費從玩家帳戶移入獎池（失敗會拋出異常）
- transfer：發獎時把獎池轉給得主（失敗只回傳 False，由呼叫端決定怎麼處理）

所有函式都只 flush，不 commit（交由外層 transaction 處理）
"""
import logging

from sqlalchemy.orm import Session

from models import Account
from core.exceptions import AccountNotFound, InsufficientBalance, SelfTransfer
from core.locks import with_account_lock

logger = logging.getLogger(__name__)


def open_account(db: Session, address: str) -> Account:
    """取得帳戶，不存在就建立（餘額 0）"""
    account = db.query(Account).filter(Account.address == address).first()
    if account is None:
        account = Account(address=address, balance=0, accepts_payments=True)
        db.add(account)
        db.flush()
        logger.info(f"Opened ledger account {address}")
    return account


def get_account(db: Session, address: str) -> Account:
    account = db.query(Account).filter(Account.address == address).first()
    if account is None:
        raise AccountNotFound(address)
    return account


def balance_of(db: Session, address: str) -> int:
    """帳戶餘額；不存在的帳戶視為 0"""
    account = db.query(Account).filter(Account.address == address).first()
    return account.balance if account else 0


def fund(db: Session, address: str, amount: int) -> Account:
    """
    直接增加帳戶餘額（開發 / 測試用的水龍頭）

    異常：
        ValueError: amount <= 0
    """
    if amount <= 0:
        raise ValueError(f"Funding amount must be positive, got {amount}")
    account = open_account(db, address)
    account.balance += amount
    db.flush()
    return account


def set_accepts_payments(db: Session, address: str, accepts: bool) -> Account:
    account = get_account(db, address)
    account.accepts_payments = accepts
    db.flush()
    return account


def deposit(db: Session, payer: str, to: str, amount: int) -> None:
    """
    玩家付款進獎池

    異常：
        SelfTransfer: 付款帳戶與收款帳戶相同
        AccountNotFound: 付款帳戶不存在
        InsufficientBalance: 餘額不足
    """
    if payer == to:
        raise SelfTransfer(payer)

    source = with_account_lock(payer, db).first()
    if source is None:
        raise AccountNotFound(payer)
    if source.balance < amount:
        raise InsufficientBalance(payer, source.balance, amount)

    target = open_account(db, to)
    source.balance -= amount
    target.balance += amount
    db.flush()


def transfer(db: Session, sender: str, to: str, amount: int) -> bool:
    """
    轉帳

    返回：
        True 轉帳成功；False 轉帳失敗（不拋出異常）

    失敗情況：
        - 收款帳戶不存在或拒收款項
        - 付款帳戶與收款帳戶相同
        - 付款帳戶不存在或餘額不足
    """
    if sender == to:
        logger.warning(f"Transfer {sender} -> {to} failed: same account")
        return False

    source = with_account_lock(sender, db).first()
    target = with_account_lock(to, db).first()

    if source is None or target is None:
        logger.warning(f"Transfer {sender} -> {to} failed: unknown account")
        return False
    if not target.accepts_payments:
        logger.warning(f"Transfer {sender} -> {to} failed: recipient rejects payments")
        return False
    if source.balance < amount:
        logger.warning(
            f"Transfer {sender} -> {to} failed: balance {source.balance} < {amount}"
        )
        return False

    source.balance -= amount
    target.balance += amount
    db.flush()
    return True
