"""fulfill_random_words — winner selection, reset, payout and atomic failure."""

import pytest

from models import EventLog, RaffleState
from core.raffle_manager import RaffleManager
from core.exceptions import (
    UnauthorizedCallback,
    InvalidStateTransition,
    RequestNotPending,
    InvalidRandomWords,
    TransferFailed,
)
from services import ledger_service, oracle_service
from tests.conftest import ENTRANCE_FEE, INTERVAL, ORACLE, POOL


def start_round(db, raffle, clock, players):
    """Enter every player once (funding them first) and advance to CALCULATING."""
    for player in players:
        if ledger_service.balance_of(db, player) < ENTRANCE_FEE:
            ledger_service.fund(db, player, 1_000)
            db.commit()
        RaffleManager.enter(db, raffle.id, player, ENTRANCE_FEE)
    clock.advance(INTERVAL)
    return RaffleManager.perform_upkeep(db, raffle.id)


@pytest.mark.parametrize("random_word, expected", [
    (0, "alice"),
    (1, "bob"),
    (2, "carol"),
    (7, "bob"),
    (2**256 - 1, "alice"),
])
def test_winner_is_random_mod_player_count(db, raffle, clock, random_word, expected):
    request_id = start_round(db, raffle, clock, ["alice", "bob", "carol"])

    winner = RaffleManager.fulfill_random_words(
        db, raffle.id, request_id, [random_word], caller=ORACLE
    )

    assert winner == expected


@pytest.mark.parametrize("random_word", [0, 1, 12345, 2**255])
def test_single_player_always_wins(db, raffle, clock, random_word):
    request_id = start_round(db, raffle, clock, ["alice"])

    winner = RaffleManager.fulfill_random_words(
        db, raffle.id, request_id, [random_word], caller=ORACLE
    )

    assert winner == "alice"


def test_successful_callback_resets_and_pays(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice", "bob"])
    clock.advance(5)

    winner = RaffleManager.fulfill_random_words(db, raffle.id, request_id, [1], caller=ORACLE)

    refreshed = RaffleManager.get_raffle(db, raffle.id)
    assert winner == "bob"
    assert refreshed.state == RaffleState.OPEN
    assert refreshed.recent_winner == "bob"
    assert refreshed.pending_request_id is None
    assert refreshed.last_timestamp == clock.now
    assert RaffleManager.get_number_of_players(db, raffle.id) == 0
    assert RaffleManager.get_pool_balance(db, raffle.id) == 0
    assert ledger_service.balance_of(db, "bob") == 1_000 - ENTRANCE_FEE + 2 * ENTRANCE_FEE

    event = db.query(EventLog).filter(EventLog.event_type == "WinnerPicked").one()
    assert event.data == {"winner": "bob"}


def test_only_oracle_may_call_back(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice"])

    with pytest.raises(UnauthorizedCallback):
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller="mallory")

    assert RaffleManager.get_raffle(db, raffle.id).state == RaffleState.CALCULATING


def test_callback_while_open_rejected(db, raffle, fund):
    fund("alice")
    RaffleManager.enter(db, raffle.id, "alice", ENTRANCE_FEE)

    with pytest.raises(InvalidStateTransition):
        RaffleManager.fulfill_random_words(db, raffle.id, 1, [0], caller=ORACLE)

    assert RaffleManager.get_players(db, raffle.id) == ["alice"]


def test_callback_for_other_request_rejected(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice"])

    with pytest.raises(RequestNotPending) as exc:
        RaffleManager.fulfill_random_words(db, raffle.id, request_id + 1, [0], caller=ORACLE)

    assert exc.value.pending_request_id == request_id


def test_callback_without_words_rejected(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice"])

    with pytest.raises(InvalidRandomWords):
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [], caller=ORACLE)


def test_second_callback_for_same_request_rejected(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice"])
    RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller=ORACLE)

    with pytest.raises(InvalidStateTransition):
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller=ORACLE)

    assert ledger_service.balance_of(db, "alice") == 1_000


def test_failed_transfer_rolls_back_everything(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice", "bob", "carol"])
    started_at = RaffleManager.get_raffle(db, raffle.id).last_timestamp
    ledger_service.set_accepts_payments(db, "bob", False)
    db.commit()
    clock.advance(10)

    with pytest.raises(TransferFailed) as exc:
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [1], caller=ORACLE)

    assert exc.value.winner == "bob"
    assert exc.value.amount == 3 * ENTRANCE_FEE

    refreshed = RaffleManager.get_raffle(db, raffle.id)
    assert refreshed.state == RaffleState.CALCULATING
    assert refreshed.pending_request_id == request_id
    assert refreshed.recent_winner is None
    assert refreshed.last_timestamp == started_at
    assert RaffleManager.get_players(db, raffle.id) == ["alice", "bob", "carol"]
    assert ledger_service.balance_of(db, POOL) == 3 * ENTRANCE_FEE
    assert ledger_service.balance_of(db, "bob") == 1_000 - ENTRANCE_FEE
    assert db.query(EventLog).filter(EventLog.event_type == "WinnerPicked").count() == 0


def test_failed_transfer_can_be_retried(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice", "bob"])
    ledger_service.set_accepts_payments(db, "alice", False)
    db.commit()

    with pytest.raises(TransferFailed):
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller=ORACLE)

    ledger_service.set_accepts_payments(db, "alice", True)
    db.commit()
    winner = RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller=ORACLE)

    assert winner == "alice"
    assert ledger_service.balance_of(db, "alice") == 1_000 + ENTRANCE_FEE
    assert RaffleManager.get_raffle(db, raffle.id).state == RaffleState.OPEN


def test_recent_winner_survives_next_round(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice"])
    RaffleManager.fulfill_random_words(db, raffle.id, request_id, [0], caller=ORACLE)

    RaffleManager.enter(db, raffle.id, "alice", ENTRANCE_FEE)

    assert RaffleManager.get_raffle(db, raffle.id).recent_winner == "alice"


def test_callback_marks_request_fulfilled(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice", "bob"])

    RaffleManager.fulfill_random_words(db, raffle.id, request_id, [7], caller=ORACLE)

    request = oracle_service.get_request(db, request_id)
    assert request.fulfilled
    assert request.random_words == ["7"]


def test_failed_transfer_leaves_request_unfulfilled(db, raffle, clock):
    request_id = start_round(db, raffle, clock, ["alice", "bob"])
    ledger_service.set_accepts_payments(db, "bob", False)
    db.commit()

    with pytest.raises(TransferFailed):
        RaffleManager.fulfill_random_words(db, raffle.id, request_id, [7], caller=ORACLE)

    request = oracle_service.get_request(db, request_id)
    assert not request.fulfilled
    assert request.random_words is None
