"""
Oracle 服務：隨機數 coordinator

扮演外部隨機數 oracle 的角色：
1. request_random_words：記錄請求並回傳 request_id（由 perform_upkeep 呼叫）
2. fulfill_request：產生隨機數，以 oracle 身分呼叫 RaffleManager.fulfill_random_words

正式部署時由真正的 oracle 透過 /api/oracle/callback 回呼，
fulfill_request 則用在開發環境與測試
"""
from typing import List, Optional, Sequence
import hashlib
import logging

from sqlalchemy.orm import Session

from models import OracleRequest, Raffle
from core.exceptions import OracleRequestNotFound, RequestAlreadyFulfilled
from core.locks import serialized
from database import transactional

logger = logging.getLogger(__name__)


def request_random_words(
    db: Session,
    raffle_id: int,
    key_hash: str,
    subscription_id: int,
    request_confirmations: int,
    callback_gas_limit: int,
    num_words: int
) -> int:
    """
    送出隨機數請求（flush，不 commit）

    參數會原樣保存，核心邏輯不解讀它們

    返回：
        request_id（遞增的整數）
    """
    request = OracleRequest(
        raffle_id=raffle_id,
        key_hash=key_hash,
        subscription_id=subscription_id,
        request_confirmations=request_confirmations,
        callback_gas_limit=callback_gas_limit,
        num_words=num_words,
        fulfilled=False
    )
    db.add(request)
    db.flush()

    logger.info(
        f"Oracle request {request.id} for raffle {raffle_id} "
        f"(confirmations={request_confirmations}, gas_limit={callback_gas_limit}, words={num_words})"
    )
    return request.id


def derive_random_words(request_id: int, num_words: int) -> List[int]:
    """
    由 request_id 推導出 num_words 個 256-bit 隨機數

    範例：
        derive_random_words(1, 1) -> [int(sha256("1:0"), 16)]
    """
    words = []
    for i in range(num_words):
        digest = hashlib.sha256(f"{request_id}:{i}".encode("utf-8")).hexdigest()
        words.append(int(digest, 16))
    return words


def get_request(db: Session, request_id: int) -> OracleRequest:
    request = db.query(OracleRequest).filter(OracleRequest.id == request_id).first()
    if request is None:
        raise OracleRequestNotFound(request_id)
    return request


def mark_fulfilled(db: Session, request_id: int, random_words: Sequence[int]) -> OracleRequest:
    """
    記錄請求已回應（flush，不 commit）

    由 RaffleManager.fulfill_random_words 呼叫，外部 oracle 與開發用 coordinator 兩條路徑都會經過這裡
    """
    request = get_request(db, request_id)
    request.fulfilled = True
    request.random_words = [str(word) for word in random_words]
    db.flush()
    return request


@serialized
@transactional
def fulfill_request(
    db: Session,
    request_id: int,
    random_words: Optional[List[int]] = None
) -> str:
    """
    回應一個隨機數請求

    流程：
    1. 找到請求，確認尚未回應
    2. 產生隨機數（沒有指定時）
    3. 以設定的 oracle 身分呼叫 callback（callback 會標記為已回應）

    callback 失敗時整個 transaction rollback，請求維持未回應，可以重送

    返回：
        得主帳戶

    異常：
        OracleRequestNotFound: 請求不存在
        RequestAlreadyFulfilled: 已經回應過
        以及 RaffleManager.fulfill_random_words 的所有異常
    """
    from core.raffle_manager import RaffleManager  # 避免 circular import

    request = get_request(db, request_id)
    if request.fulfilled:
        raise RequestAlreadyFulfilled(request_id)

    words = random_words if random_words is not None else derive_random_words(
        request_id, request.num_words
    )

    raffle = db.query(Raffle).filter(Raffle.id == request.raffle_id).one()
    return RaffleManager.fulfill_random_words(
        db,
        request.raffle_id,
        request_id,
        words,
        caller=raffle.oracle_address
    )
