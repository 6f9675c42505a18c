"""
共用的 FastAPI dependencies
"""
from fastapi import HTTPException, Request


def get_raffle_id(request: Request) -> int:
    """
    取得服務持有的 Raffle id（由 main.lifespan 在啟動時設定）
    """
    raffle_id = getattr(request.app.state, "raffle_id", None)
    if raffle_id is None:
        raise HTTPException(status_code=503, detail="Raffle not initialized")
    return raffle_id
