"""
狀態機：集中管理 Raffle 的狀態轉換

合法的轉換只有兩條：
    OPEN -> CALCULATING   （perform_upkeep 送出隨機數請求）
    CALCULATING -> OPEN   （oracle callback 選出得主並重置）
"""
import logging

from models import Raffle, RaffleState
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RaffleStateMachine:
    """Raffle 狀態轉換規則"""

    TRANSITIONS = {
        RaffleState.OPEN: {RaffleState.CALCULATING},
        RaffleState.CALCULATING: {RaffleState.OPEN},
    }

    @classmethod
    def can_transition(cls, current: RaffleState, target: RaffleState) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, raffle: Raffle, target: RaffleState) -> Raffle:
        """
        轉換狀態（只修改物件，不 commit）

        異常：
            InvalidStateTransition: 不允許的轉換
        """
        current = raffle.state
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Cannot transition raffle {raffle.id} from {current.value} to {target.value}"
            )

        raffle.state = target
        logger.info(f"Raffle {raffle.id} state: {current.value} -> {target.value}")
        return raffle
