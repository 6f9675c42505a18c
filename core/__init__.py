"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 OPEN / CALCULATING 的轉換
- Manager：報名、推進回合、oracle callback
- Round Ledger：本回合參加者名單
- Locks：並發控制工具
"""
