"""
時間服務：提供目前時間（Unix 秒數）

集中在這裡，測試時可以替換
"""
import time


def current_timestamp() -> int:
    return int(time.time())
