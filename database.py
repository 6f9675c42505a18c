from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./raffle.db"

    # 抽獎規則（建立 Raffle 時寫入資料庫，之後不再讀取）
    entrance_fee: int = 10_000_000_000_000_000
    interval_seconds: int = 30

    # Oracle 路由參數：對核心邏輯而言是不透明的，原樣轉交給 coordinator
    key_hash: str = "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c"
    subscription_id: int = 1
    request_confirmations: int = 3
    callback_gas_limit: int = 500_000
    oracle_address: str = "oracle-coordinator"

    # 獎池在 ledger 中的帳戶
    holding_address: str = "raffle-pool"

    class Config:
        env_file = ".env"
        frozen = True


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            participant = Participant(...)
            db.add(participant)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）

    巢狀呼叫：
        - 內層 @transactional 會加入外層的 transaction
        - 只有最外層負責 commit / rollback
        - 內層拋出的異常會一路傳到外層，整個 transaction 一起 rollback

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        depth = db.info.get("transaction_depth", 0)
        db.info["transaction_depth"] = depth + 1
        try:
            result = func(*args, **kwargs)
            if depth == 0:
                db.commit()
            return result
        except Exception as e:
            if depth == 0:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
            raise
        finally:
            db.info["transaction_depth"] = depth

    return wrapper
