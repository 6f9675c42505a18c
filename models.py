"""
ORM Models

資料表：
- Raffle：唯一的抽獎回合（狀態、回合起始時間、最近得主、建立時的設定）
- Participant：本回合參加者，slot 即抽獎時使用的索引
- Account：ledger 帳戶餘額（獎池也是其中一個帳戶）
- OracleRequest：送給隨機數 oracle 的請求
- EventLog：對外可觀察的事件（Entered / RequestedWinner / WinnerPicked）
"""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from database import Base


class Amount(TypeDecorator):
    """
    金額欄位（最多 78 位數的非負整數，足以容納 uint256）

    - PostgreSQL：NUMERIC(78, 0)
    - SQLite：以十進位字串保存（SQLite 的 INTEGER 只有 64-bit，NUMERIC 會退化成浮點數）

    Python 端一律是 int
    """
    impl = String(78)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(78))
        return dialect.type_descriptor(Numeric(78, 0))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(int(value))
        return Decimal(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RaffleState(str, enum.Enum):
    OPEN = "OPEN"
    CALCULATING = "CALCULATING"


class Raffle(Base):
    __tablename__ = "raffles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state = Column(Enum(RaffleState), nullable=False, default=RaffleState.OPEN)
    last_timestamp = Column(BigInteger, nullable=False)
    recent_winner = Column(String, nullable=True)
    pending_request_id = Column(Integer, nullable=True)

    # 建立時的設定，之後不可變
    entrance_fee = Column(Amount, nullable=False)
    interval = Column(Integer, nullable=False)
    key_hash = Column(String, nullable=False)
    subscription_id = Column(BigInteger, nullable=False)
    request_confirmations = Column(Integer, nullable=False)
    callback_gas_limit = Column(Integer, nullable=False)
    num_words = Column(Integer, nullable=False, default=1)
    oracle_address = Column(String, nullable=False)
    holding_address = Column(String, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    participants = relationship(
        "Participant",
        back_populates="raffle",
        order_by="Participant.slot",
    )


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (UniqueConstraint("raffle_id", "slot", name="uq_participant_slot"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    slot = Column(Integer, nullable=False)
    account = Column(String, nullable=False)
    entered_at = Column(DateTime, default=datetime.utcnow)

    raffle = relationship("Raffle", back_populates="participants")


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String, primary_key=True)
    balance = Column(Amount, nullable=False, default=0)
    # False 代表此帳戶拒收款項（轉帳會失敗）
    accepts_payments = Column(Boolean, nullable=False, default=True)


class OracleRequest(Base):
    __tablename__ = "oracle_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    key_hash = Column(String, nullable=False)
    subscription_id = Column(BigInteger, nullable=False)
    request_confirmations = Column(Integer, nullable=False)
    callback_gas_limit = Column(Integer, nullable=False)
    num_words = Column(Integer, nullable=False)
    fulfilled = Column(Boolean, nullable=False, default=False)
    # uint256 會超過 64-bit，以字串保存
    random_words = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
