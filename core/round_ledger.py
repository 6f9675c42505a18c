"""
Round Ledger：本回合參加者名單

純資料操作，不做任何驗證（驗證由 RaffleManager 負責），也不 commit
"""
from typing import List

from sqlalchemy.orm import Session

from models import Participant
from core.exceptions import PlayerIndexOutOfRange


def participant_count(db: Session, raffle_id: int) -> int:
    return db.query(Participant).filter(Participant.raffle_id == raffle_id).count()


def append_participant(db: Session, raffle_id: int, account: str) -> Participant:
    """
    新增一筆報名（同一帳戶可以重複報名，每次都是獨立的 slot）

    返回：
        新建立的 Participant，slot 為目前人數
    """
    participant = Participant(
        raffle_id=raffle_id,
        slot=participant_count(db, raffle_id),
        account=account
    )
    db.add(participant)
    db.flush()
    return participant


def get_participant(db: Session, raffle_id: int, index: int) -> str:
    """
    依索引取得參加者帳戶

    異常：
        PlayerIndexOutOfRange: 索引不存在
    """
    participant = db.query(Participant).filter(
        Participant.raffle_id == raffle_id,
        Participant.slot == index
    ).first()
    if participant is None:
        raise PlayerIndexOutOfRange(index, participant_count(db, raffle_id))
    return participant.account


def list_participants(db: Session, raffle_id: int) -> List[str]:
    rows = (
        db.query(Participant.account)
        .filter(Participant.raffle_id == raffle_id)
        .order_by(Participant.slot)
        .all()
    )
    return [account for (account,) in rows]


def clear_participants(db: Session, raffle_id: int) -> int:
    """清空名單，返回刪除筆數"""
    deleted = db.query(Participant).filter(
        Participant.raffle_id == raffle_id
    ).delete(synchronize_session="fetch")
    db.flush()
    return deleted
