"""Account routes — faucet, balance lookup and payment acceptance."""


def test_fund_and_read(client):
    res = client.post("/api/accounts/alice/fund", json={"amount": 250})

    assert res.status_code == 200
    assert res.json() == {"address": "alice", "balance": 250, "accepts_payments": True}
    assert client.get("/api/accounts/alice").json()["balance"] == 250


def test_fund_rejects_zero(client):
    assert client.post("/api/accounts/alice/fund", json={"amount": 0}).status_code == 422


def test_unknown_account(client):
    assert client.get("/api/accounts/ghost").status_code == 404


def test_toggle_accepts_payments(client):
    client.post("/api/accounts/alice/fund", json={"amount": 1})

    res = client.put("/api/accounts/alice/accepts-payments", json={"accepts_payments": False})

    assert res.status_code == 200
    assert res.json()["accepts_payments"] is False


def test_toggle_unknown_account(client):
    res = client.put("/api/accounts/ghost/accepts-payments", json={"accepts_payments": False})
    assert res.status_code == 404
