"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class RaffleException(Exception):
    """所有抽獎異常的基類"""
    pass


# ============ Raffle 相關異常 ============

class RaffleNotFound(RaffleException):
    """抽獎不存在"""
    def __init__(self, raffle_id):
        self.raffle_id = raffle_id
        super().__init__(f"Raffle {raffle_id} not found")


class NotOpen(RaffleException):
    """抽獎正在計算中，不接受報名"""
    def __init__(self, raffle_id):
        self.raffle_id = raffle_id
        super().__init__(f"Raffle {raffle_id} is not open")


class InsufficientPayment(RaffleException):
    """報名金額低於入場費"""
    def __init__(self, amount, entrance_fee):
        self.amount = amount
        self.entrance_fee = entrance_fee
        super().__init__(
            f"Payment of {amount} is below the entrance fee of {entrance_fee}"
        )


class PoolCannotEnter(RaffleException):
    """獎池帳戶本身不能報名"""
    def __init__(self, account):
        self.account = account
        super().__init__(f"Pool account {account} cannot enter the raffle")


class UpkeepNotNeeded(RaffleException):
    """
    尚未符合推進回合的條件

    帶有診斷資訊（餘額、人數、狀態），讓自動化呼叫端可以依欄位判斷
    """
    def __init__(self, balance, num_players, raffle_state):
        self.balance = balance
        self.num_players = num_players
        self.raffle_state = raffle_state
        super().__init__(
            f"Upkeep not needed (balance={balance}, "
            f"num_players={num_players}, state={raffle_state})"
        )

    def to_detail(self) -> dict:
        return {
            "error": "UpkeepNotNeeded",
            "balance": self.balance,
            "num_players": self.num_players,
            "raffle_state": self.raffle_state,
        }


class PlayerIndexOutOfRange(RaffleException):
    """指定的參加者索引不存在"""
    def __init__(self, index, count):
        self.index = index
        self.count = count
        super().__init__(f"Player index {index} out of range (players: {count})")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(RaffleException):
    """非法的狀態轉換"""
    pass


# ============ Oracle callback 相關異常 ============

class UnauthorizedCallback(RaffleException):
    """callback 不是由設定的 oracle 發出"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"Caller {caller} is not the configured oracle")


class RequestNotPending(RaffleException):
    """request_id 與目前等待中的請求不符"""
    def __init__(self, request_id, pending_request_id):
        self.request_id = request_id
        self.pending_request_id = pending_request_id
        super().__init__(
            f"Request {request_id} is not pending (pending: {pending_request_id})"
        )


class InvalidRandomWords(RaffleException):
    """callback 沒有帶任何隨機數"""
    pass


class TransferFailed(RaffleException):
    """獎金轉帳給得主失敗"""
    def __init__(self, winner, amount):
        self.winner = winner
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {winner} failed")


# ============ Oracle coordinator 相關異常 ============

class OracleRequestNotFound(RaffleException):
    """oracle 請求不存在"""
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"Oracle request {request_id} not found")


class RequestAlreadyFulfilled(RaffleException):
    """oracle 請求已經回應過了"""
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"Oracle request {request_id} already fulfilled")


# ============ Ledger 相關異常 ============

class AccountNotFound(RaffleException):
    """帳戶不存在"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Account {address} not found")


class SelfTransfer(RaffleException):
    """付款帳戶與收款帳戶相同"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Account {address} cannot pay itself")


class InsufficientBalance(RaffleException):
    """帳戶餘額不足"""
    def __init__(self, address, balance, amount):
        self.address = address
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Account {address} has balance {balance}, needs {amount}"
        )
