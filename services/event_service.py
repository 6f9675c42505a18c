"""
事件服務：記錄對外可觀察的事件

事件寫入 EventLog，跟業務操作在同一個 transaction 內；
操作失敗 rollback 時，事件也會一起消失
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models import EventLog

logger = logging.getLogger(__name__)

ENTERED = "Entered"
REQUESTED_WINNER = "RequestedWinner"
WINNER_PICKED = "WinnerPicked"


def emit_event(db: Session, raffle_id: int, event_type: str, data: Dict[str, Any]) -> EventLog:
    """
    新增一筆事件（flush，不 commit）

    參數：
        db: SQLAlchemy Session
        raffle_id: Raffle id
        event_type: ENTERED / REQUESTED_WINNER / WINNER_PICKED
        data: 事件內容
    """
    event = EventLog(raffle_id=raffle_id, event_type=event_type, data=data)
    db.add(event)
    db.flush()
    logger.debug("Event %s for raffle %s: %s", event_type, raffle_id, data)
    return event


def list_events(
    db: Session,
    raffle_id: int,
    event_type: Optional[str] = None,
    limit: int = 100
) -> List[EventLog]:
    query = db.query(EventLog).filter(EventLog.raffle_id == raffle_id)
    if event_type:
        query = query.filter(EventLog.event_type == event_type)
    return query.order_by(EventLog.id).limit(limit).all()
