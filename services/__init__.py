"""
服務層

這個 package 包含外部協作者與純計算邏輯，不負責狀態轉換：
- LedgerService：帳戶餘額與轉帳
- OracleService：隨機數請求與 coordinator
- EventService：事件紀錄
- ClockService：目前時間
"""
