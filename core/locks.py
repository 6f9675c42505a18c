"""
並發控制工具

兩層鎖定：
1. Process-level：一把全域 RLock，所有會修改 Raffle 狀態的操作依序執行
2. Database-level：PostgreSQL 的 SELECT ... FOR UPDATE（多個 process 部署時使用）

SQLite 會忽略 FOR UPDATE，因此單機部署完全依賴第 1 層
"""
import threading
from functools import wraps

from sqlalchemy.orm import Session, Query

from models import Raffle, Account


_raffle_mutex = threading.RLock()


def serialized(func):
    """
    讓函式在全域 raffle mutex 內執行

    使用方式：
        @staticmethod
        @serialized
        @transactional
        def enter(db: Session, ...):
            ...

    注意：
        - 必須放在 @transactional 外層，commit 才會在持有鎖時完成
        - RLock：同一個 thread 的巢狀呼叫（例如 coordinator 觸發 callback）不會 deadlock
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        with _raffle_mutex:
            return func(*args, **kwargs)

    return wrapper


def with_raffle_lock(raffle_id: int, db: Session) -> Query:
    """
    鎖定 Raffle（行級鎖）

    使用場景：
    - 檢查並修改 Raffle 狀態時（報名、推進回合、oracle callback）

    範例：
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)

    參數：
        raffle_id: Raffle 的 id
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）
    """
    return db.query(Raffle).filter(
        Raffle.id == raffle_id
    ).with_for_update(nowait=False)


def with_account_lock(address: str, db: Session) -> Query:
    """
    鎖定 ledger 帳戶（行級鎖），轉帳時使用
    """
    return db.query(Account).filter(
        Account.address == address
    ).with_for_update(nowait=False)
