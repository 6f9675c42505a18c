"""Oracle coordinator — request bookkeeping and callback delivery."""

import pytest

from models import OracleRequest, RaffleState
from core.raffle_manager import RaffleManager
from core.exceptions import (
    OracleRequestNotFound,
    RequestAlreadyFulfilled,
    TransferFailed,
)
from services import ledger_service, oracle_service
from tests.conftest import ENTRANCE_FEE, INTERVAL


@pytest.fixture
def pending_request(db, raffle, fund, clock):
    for player in ["alice", "bob"]:
        fund(player)
        RaffleManager.enter(db, raffle.id, player, ENTRANCE_FEE)
    clock.advance(INTERVAL)
    return RaffleManager.perform_upkeep(db, raffle.id)


def test_request_ids_increment(db, raffle):
    first = oracle_service.request_random_words(db, raffle.id, "0xkey", 1, 3, 500_000, 1)
    second = oracle_service.request_random_words(db, raffle.id, "0xkey", 1, 3, 500_000, 1)

    assert second == first + 1
    stored = oracle_service.get_request(db, first)
    assert stored.key_hash == "0xkey"
    assert not stored.fulfilled


def test_derive_random_words_is_deterministic():
    words = oracle_service.derive_random_words(1, 2)

    assert words == oracle_service.derive_random_words(1, 2)
    assert len(words) == 2
    assert words[0] != words[1]
    assert all(0 <= w < 2**256 for w in words)


def test_fulfill_with_given_words(db, raffle, pending_request):
    winner = oracle_service.fulfill_request(db, pending_request, [1])

    assert winner == "bob"
    request = db.query(OracleRequest).filter(OracleRequest.id == pending_request).one()
    assert request.fulfilled
    assert request.random_words == ["1"]


def test_fulfill_with_derived_words(db, raffle, pending_request):
    expected_index = oracle_service.derive_random_words(pending_request, 1)[0] % 2

    winner = oracle_service.fulfill_request(db, pending_request)

    assert winner == ["alice", "bob"][expected_index]
    assert RaffleManager.get_raffle(db, raffle.id).state == RaffleState.OPEN


def test_fulfill_twice_rejected(db, raffle, pending_request):
    oracle_service.fulfill_request(db, pending_request, [0])

    with pytest.raises(RequestAlreadyFulfilled):
        oracle_service.fulfill_request(db, pending_request, [0])


def test_fulfill_unknown_request(db, raffle):
    with pytest.raises(OracleRequestNotFound):
        oracle_service.fulfill_request(db, 999, [0])


def test_failed_callback_leaves_request_pending(db, raffle, pending_request):
    ledger_service.set_accepts_payments(db, "alice", False)
    db.commit()

    with pytest.raises(TransferFailed):
        oracle_service.fulfill_request(db, pending_request, [0])

    request = oracle_service.get_request(db, pending_request)
    assert not request.fulfilled
    assert request.random_words is None
    assert RaffleManager.get_raffle(db, raffle.id).state == RaffleState.CALCULATING

    ledger_service.set_accepts_payments(db, "alice", True)
    db.commit()
    assert oracle_service.fulfill_request(db, pending_request, [0]) == "alice"
