"""
Raffle Manager：管理抽獎回合的完整生命週期

職責：
1. 建立 Raffle（唯一的回合狀態，呼叫端持有它的 id）
2. 報名（enter）
3. 判斷是否可以推進回合（check_upkeep）並送出隨機數請求（perform_upkeep）
4. 處理 oracle callback：選出得主、重置回合、發獎（fulfill_random_words）

原則：
- 所有修改都經過 @serialized + @transactional：一次一個操作，失敗就整個 rollback
- 所有狀態變更經過 RaffleStateMachine
- 發獎時先寫入狀態，最後才轉帳；轉帳失敗就連狀態一起 rollback
"""
from dataclasses import dataclass
from typing import List, Sequence
import logging

from sqlalchemy.orm import Session

from models import Raffle, RaffleState, Participant
from core import round_ledger
from core.state_machine import RaffleStateMachine
from core.locks import serialized, with_raffle_lock
from core.exceptions import (
    RaffleNotFound,
    NotOpen,
    InsufficientPayment,
    PoolCannotEnter,
    UpkeepNotNeeded,
    InvalidStateTransition,
    UnauthorizedCallback,
    RequestNotPending,
    InvalidRandomWords,
    TransferFailed,
)
from services import clock_service, event_service, ledger_service, oracle_service
from database import Settings, transactional

logger = logging.getLogger(__name__)

NUM_WORDS = 1


@dataclass(frozen=True)
class UpkeepCheck:
    """推進回合的四個條件，upkeep_needed 為它們的 AND"""
    upkeep_needed: bool
    time_passed: bool
    is_open: bool
    has_players: bool
    has_balance: bool


class RaffleManager:
    """Raffle 生命週期管理器"""

    @staticmethod
    @transactional
    def create_raffle(db: Session, settings: Settings) -> Raffle:
        """
        建立 Raffle（狀態 OPEN、沒有參加者、回合從現在開始）

        設定值在這裡寫入資料庫，之後不會再改變

        參數：
            db: SQLAlchemy Session
            settings: 應用程式設定

        返回：
            新建立的 Raffle
        """
        raffle = Raffle(
            state=RaffleState.OPEN,
            last_timestamp=clock_service.current_timestamp(),
            recent_winner=None,
            pending_request_id=None,
            entrance_fee=settings.entrance_fee,
            interval=settings.interval_seconds,
            key_hash=settings.key_hash,
            subscription_id=settings.subscription_id,
            request_confirmations=settings.request_confirmations,
            callback_gas_limit=settings.callback_gas_limit,
            num_words=NUM_WORDS,
            oracle_address=settings.oracle_address,
            holding_address=settings.holding_address
        )
        db.add(raffle)
        db.flush()

        ledger_service.open_account(db, settings.holding_address)

        logger.info(
            f"Created raffle {raffle.id} (entrance_fee={raffle.entrance_fee}, "
            f"interval={raffle.interval}s)"
        )
        return raffle

    @staticmethod
    def get_or_create_raffle(db: Session, settings: Settings) -> Raffle:
        """服務啟動時使用：已有 Raffle 就沿用，否則建立"""
        raffle = db.query(Raffle).order_by(Raffle.id).first()
        if raffle is not None:
            return raffle
        return RaffleManager.create_raffle(db, settings)

    @staticmethod
    def get_raffle(db: Session, raffle_id: int) -> Raffle:
        """
        異常：
            RaffleNotFound: Raffle 不存在
        """
        raffle = db.query(Raffle).filter(Raffle.id == raffle_id).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        return raffle

    @staticmethod
    def _lock_raffle(db: Session, raffle_id: int) -> Raffle:
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        return raffle

    # ============ 報名 ============

    @staticmethod
    @serialized
    @transactional
    def enter(db: Session, raffle_id: int, account: str, amount: int) -> Participant:
        """
        報名本回合

        前置條件：
        1. Raffle 狀態必須是 OPEN
        2. amount >= entrance_fee

        流程：
        1. 驗證前置條件
        2. 從玩家帳戶付款進獎池
        3. 加入參加者名單（可重複報名）
        4. 記錄 Entered 事件

        返回：
            新建立的 Participant

        異常：
            NotOpen: Raffle 正在計算中
            InsufficientPayment: 金額不足
            PoolCannotEnter: 報名帳戶是獎池本身
            AccountNotFound / InsufficientBalance: 玩家帳戶無法付款
        """
        raffle = RaffleManager._lock_raffle(db, raffle_id)

        if raffle.state != RaffleState.OPEN:
            raise NotOpen(raffle_id)
        if amount < raffle.entrance_fee:
            raise InsufficientPayment(amount, raffle.entrance_fee)
        if account == raffle.holding_address:
            raise PoolCannotEnter(account)

        ledger_service.deposit(db, account, raffle.holding_address, amount)
        participant = round_ledger.append_participant(db, raffle_id, account)

        event_service.emit_event(db, raffle_id, event_service.ENTERED, {"player": account})

        logger.info(
            f"Account {account} entered raffle {raffle_id} with {amount} (slot {participant.slot})"
        )
        return participant

    # ============ 推進回合 ============

    @staticmethod
    def _evaluate_upkeep(db: Session, raffle: Raffle) -> UpkeepCheck:
        now = clock_service.current_timestamp()
        time_passed = (now - raffle.last_timestamp) >= raffle.interval
        is_open = raffle.state == RaffleState.OPEN
        has_players = round_ledger.participant_count(db, raffle.id) > 0
        has_balance = ledger_service.balance_of(db, raffle.holding_address) > 0

        return UpkeepCheck(
            upkeep_needed=time_passed and is_open and has_players and has_balance,
            time_passed=time_passed,
            is_open=is_open,
            has_players=has_players,
            has_balance=has_balance
        )

    @staticmethod
    def check_upkeep(db: Session, raffle_id: int) -> UpkeepCheck:
        """
        判斷是否可以推進回合（唯讀，沒有副作用）

        四個條件都成立才需要 upkeep：
        - 距離回合開始已經過了 interval
        - 狀態是 OPEN
        - 至少一位參加者
        - 獎池餘額 > 0

        用途：
            perform_upkeep 內部檢查，也給外部的自動化程式決定要不要呼叫
        """
        raffle = RaffleManager.get_raffle(db, raffle_id)
        return RaffleManager._evaluate_upkeep(db, raffle)

    @staticmethod
    @serialized
    @transactional
    def perform_upkeep(db: Session, raffle_id: int) -> int:
        """
        推進回合：狀態轉換 OPEN -> CALCULATING 並送出隨機數請求

        任何人都可以呼叫，是否允許完全由 check_upkeep 決定

        流程：
        1. 重新檢查 upkeep 條件
        2. 狀態轉換
        3. 送出隨機數請求（1 個 word）
        4. 記錄 pending_request_id
        5. 記錄 RequestedWinner 事件

        返回：
            request_id

        異常：
            UpkeepNotNeeded: 條件不成立（帶餘額、人數、狀態）
        """
        raffle = RaffleManager._lock_raffle(db, raffle_id)

        check = RaffleManager._evaluate_upkeep(db, raffle)
        if not check.upkeep_needed:
            raise UpkeepNotNeeded(
                balance=ledger_service.balance_of(db, raffle.holding_address),
                num_players=round_ledger.participant_count(db, raffle_id),
                raffle_state=raffle.state.value
            )

        RaffleStateMachine.transition(raffle, RaffleState.CALCULATING)

        request_id = oracle_service.request_random_words(
            db,
            raffle_id,
            key_hash=raffle.key_hash,
            subscription_id=raffle.subscription_id,
            request_confirmations=raffle.request_confirmations,
            callback_gas_limit=raffle.callback_gas_limit,
            num_words=raffle.num_words
        )
        raffle.pending_request_id = request_id

        event_service.emit_event(
            db, raffle_id, event_service.REQUESTED_WINNER, {"request_id": request_id}
        )

        logger.info(f"Raffle {raffle_id} requested winner (request_id={request_id})")
        return request_id

    # ============ Oracle callback ============

    @staticmethod
    @serialized
    @transactional
    def fulfill_random_words(
        db: Session,
        raffle_id: int,
        request_id: int,
        random_words: Sequence[int],
        caller: str
    ) -> str:
        """
        Oracle callback：選出得主、重置回合、發獎

        前置條件：
        1. caller 必須是設定的 oracle
        2. 狀態必須是 CALCULATING
        3. request_id 必須是等待中的請求

        流程（順序不可調換）：
        1. winner = participants[random_words[0] % N]
        2. 寫入狀態：recent_winner、清空名單、回合重新開始、狀態 OPEN、請求標記為已回應
        3. 記錄 WinnerPicked 事件
        4. 最後才把整個獎池轉給得主

        轉帳失敗時拋出 TransferFailed，@transactional 會把第 2、3 步一起 rollback，
        Raffle 維持 CALCULATING、名單不變、請求維持未回應，oracle 可以重送同一個請求

        返回：
            得主帳戶

        異常：
            UnauthorizedCallback: 呼叫者不是 oracle
            InvalidStateTransition: 狀態不是 CALCULATING
            RequestNotPending: request_id 不符
            InvalidRandomWords: 沒有隨機數
            TransferFailed: 發獎失敗
        """
        raffle = RaffleManager._lock_raffle(db, raffle_id)

        if caller != raffle.oracle_address:
            raise UnauthorizedCallback(caller)
        if raffle.state != RaffleState.CALCULATING:
            raise InvalidStateTransition(
                f"Raffle {raffle_id} is {raffle.state.value}, no randomness expected"
            )
        if raffle.pending_request_id != request_id:
            raise RequestNotPending(request_id, raffle.pending_request_id)
        if not random_words:
            raise InvalidRandomWords(f"No random words for request {request_id}")

        # 1. 選出得主
        num_players = round_ledger.participant_count(db, raffle_id)
        winner_index = int(random_words[0]) % num_players
        winner = round_ledger.get_participant(db, raffle_id, winner_index)
        prize = ledger_service.balance_of(db, raffle.holding_address)

        # 2. 先寫入狀態
        raffle.recent_winner = winner
        round_ledger.clear_participants(db, raffle_id)
        raffle.last_timestamp = clock_service.current_timestamp()
        RaffleStateMachine.transition(raffle, RaffleState.OPEN)
        raffle.pending_request_id = None
        oracle_service.mark_fulfilled(db, request_id, random_words)

        # 3. 記錄事件
        event_service.emit_event(db, raffle_id, event_service.WINNER_PICKED, {"winner": winner})
        db.flush()

        # 4. 最後才轉帳
        if not ledger_service.transfer(db, raffle.holding_address, winner, prize):
            raise TransferFailed(winner, prize)

        logger.info(
            f"Raffle {raffle_id} picked winner {winner} "
            f"(index {winner_index} of {num_players}, prize {prize})"
        )
        return winner

    # ============ 查詢 ============

    @staticmethod
    def get_pool_balance(db: Session, raffle_id: int) -> int:
        raffle = RaffleManager.get_raffle(db, raffle_id)
        return ledger_service.balance_of(db, raffle.holding_address)

    @staticmethod
    def get_player(db: Session, raffle_id: int, index: int) -> str:
        RaffleManager.get_raffle(db, raffle_id)
        return round_ledger.get_participant(db, raffle_id, index)

    @staticmethod
    def get_players(db: Session, raffle_id: int) -> List[str]:
        RaffleManager.get_raffle(db, raffle_id)
        return round_ledger.list_participants(db, raffle_id)

    @staticmethod
    def get_number_of_players(db: Session, raffle_id: int) -> int:
        RaffleManager.get_raffle(db, raffle_id)
        return round_ledger.participant_count(db, raffle_id)
