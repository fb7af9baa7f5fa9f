import random
from datetime import datetime

from fastapi.testclient import TestClient

from savevibe.app import build_services, create_app
from savevibe.config import Settings
from savevibe.seed_db import DEMO_PASSWORD, DEMO_USERNAME
from savevibe.storage import MemStorage


def _add_tx(client, amount, category, date="2024-03-05T10:00:00", **extra):
    body = {"amount": amount, "category": category, "description": category, "date": date, "type": "expense"}
    body.update(extra)
    resp = client.post("/api/transactions", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


# --- Auth ---

def test_register_login_logout(client):
    resp = client.post("/api/auth/register", json={"username": "asha", "password": "secret123"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "asha"
    assert "passwordHash" not in body and "password_hash" not in body

    assert client.get("/api/auth/me").json()["username"] == "asha"

    assert client.post("/api/auth/logout").status_code == 204
    assert client.get("/api/auth/me").status_code == 401

    assert client.post("/api/auth/login", json={"username": "asha", "password": "wrong-pass"}).status_code == 401
    assert client.post("/api/auth/login", json={"username": "asha", "password": "secret123"}).status_code == 200
    assert client.get("/api/auth/me").status_code == 200


def test_duplicate_username(client):
    client.post("/api/auth/register", json={"username": "asha", "password": "secret123"})
    resp = client.post("/api/auth/register", json={"username": "asha", "password": "secret123"})
    assert resp.status_code == 409
    assert resp.json() == {"message": "Username already exists"}


def test_protected_routes_need_session(client):
    resp = client.get("/api/transactions")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Unauthorized"}


def test_validation_errors_are_400(auth_client):
    resp = auth_client.post("/api/transactions", json={"amount": -5, "category": "food"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid data"


# --- Transactions ---

def test_transactions_create_and_filter_by_month(auth_client):
    created = _add_tx(auth_client, 250, "food", isWant=False, merchant="Zomato")
    _add_tx(auth_client, 900, "shopping", date="2024-04-02T10:00:00")

    assert created["userId"] == 1
    assert created["isWant"] is False

    assert len(auth_client.get("/api/transactions").json()) == 2
    march = auth_client.get("/api/transactions/month/3/year/2024").json()
    assert [t["category"] for t in march] == ["food"]


def test_bad_month_is_rejected(auth_client):
    assert auth_client.get("/api/transactions/month/13/year/2024").status_code == 400
    assert auth_client.get("/api/transactions/month/abc/year/2024").status_code == 400
    assert auth_client.get("/api/ai/spending-classification/0/2024").status_code == 400


def test_batch_import_skips_invalid_rows(auth_client):
    resp = auth_client.post("/api/transactions/batch", json={"transactions": [
        {"amount": 100, "category": "food", "description": "tea", "type": "expense"},
        {"amount": -1, "category": "food", "description": "bad", "type": "expense"},
    ]})
    assert resp.status_code == 201
    assert resp.json() == {"message": "Transactions imported successfully", "count": 1}

    assert auth_client.post("/api/transactions/batch", json={"transactions": []}).status_code == 400


def test_csv_upload(auth_client):
    content = b"description,amount,category\nCoffee,180,food\nBroken,n/a,food\n"
    resp = auth_client.post("/api/transactions/upload", files={"file": ("march.csv", content, "text/csv")})
    assert resp.status_code == 201
    assert resp.json()["count"] == 1
    assert "1 skipped" in resp.json()["message"]

    bad = auth_client.post("/api/transactions/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert bad.status_code == 400


# --- Goals, budget, badges ---

def test_goals_ownership(client, storage):
    client.post("/api/auth/register", json={"username": "owner", "password": "secret123"})
    goal = client.post("/api/goals", json={"name": "Bike", "targetAmount": 40000, "isPrimary": True}).json()
    client.post("/api/auth/logout")

    client.post("/api/auth/register", json={"username": "intruder", "password": "secret123"})
    assert client.get(f"/api/goals/{goal['id']}").status_code == 403
    assert client.patch(f"/api/goals/{goal['id']}", json={"name": "Mine"}).status_code == 403
    assert client.get("/api/goals/999").status_code == 404


def test_goal_update(auth_client):
    goal = auth_client.post("/api/goals", json={"name": "Bike", "targetAmount": 40000}).json()
    resp = auth_client.patch(f"/api/goals/{goal['id']}", json={"currentAmount": 1500})
    assert resp.status_code == 200
    assert resp.json()["currentAmount"] == 1500
    assert resp.json()["name"] == "Bike"


def test_budget_lifecycle(auth_client):
    assert auth_client.get("/api/budget").status_code == 404
    assert auth_client.post("/api/budget", json={"monthlyBudget": 25000}).status_code == 201
    assert auth_client.post("/api/budget", json={"monthlyBudget": 25000}).status_code == 400

    resp = auth_client.patch("/api/budget", json={"foodPercentage": 25})
    assert resp.json()["foodPercentage"] == 25
    assert resp.json()["monthlyBudget"] == 25000


def test_badges_empty(auth_client):
    assert auth_client.get("/api/badges").json() == []


# --- Connected apps ---

def test_connected_apps_flow(auth_client):
    app = auth_client.post("/api/connected-apps/connect", json={"appName": "Amazon", "appType": "shopping"}).json()
    assert app["connected"] is True

    _add_tx(auth_client, 1999, "shopping", merchant="Amazon")
    spending = auth_client.get("/api/connected-apps/spending/3/2024").json()
    assert spending == [{"appId": app["id"], "appName": "Amazon", "appType": "shopping",
                         "amount": 1999.0, "month": 3, "year": 2024}]

    resp = auth_client.post(f"/api/connected-apps/{app['id']}/disconnect")
    assert resp.json()["connected"] is False
    assert auth_client.get("/api/connected-apps/spending/3/2024").json() == []
    assert auth_client.post("/api/connected-apps/999/disconnect").status_code == 404


# --- Classification & insights ---

def test_spending_classification_endpoint(auth_client):
    _add_tx(auth_client, 100, "food", date="2024-03-01T09:00:00")
    _add_tx(auth_client, 200, "food", date="2024-03-02T09:00:00")
    _add_tx(auth_client, 150, "food", date="2024-03-03T09:00:00")

    body = auth_client.get("/api/ai/spending-classification/3/2024").json()

    assert body["totalSpending"] == 450
    assert body["necessities"] == 450
    assert body["patterns"][0] == {
        "category": "food", "frequency": "daily", "averageAmount": 150.0,
        "isNecessity": True, "savingsPotential": 8,
    }
    assert len(body["nextMonthPredictions"]) == 1


def test_spending_classification_failure_is_500(auth_client, services):
    def boom(*args, **kwargs):
        raise RuntimeError("storage down")

    services.classifier.classify_spending = boom
    resp = auth_client.get("/api/ai/spending-classification/3/2024")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to classify spending"}


def test_monthly_insights_endpoint(auth_client):
    _add_tx(auth_client, 500, "food", merchant="Zomato")
    body = auth_client.get("/api/insights/month/3/year/2024").json()
    assert body["topCategory"] == "food"
    assert body["transactionCount"] == 1


def test_analyze_spending_requires_period(auth_client):
    assert auth_client.post("/api/ai/analyze-spending", json={}).status_code == 400
    resp = auth_client.post("/api/ai/analyze-spending", json={"month": 3, "year": 2024})
    assert resp.status_code == 200
    assert resp.json()["period"] == {"month": 3, "year": 2024}


def test_ai_insights_need_budget(auth_client):
    assert auth_client.get("/api/ai/insights/month/3/year/2024").status_code == 400

    auth_client.post("/api/budget", json={"monthlyBudget": 30000})
    empty = auth_client.get("/api/ai/insights/month/3/year/2024").json()
    assert empty["insights"][0]["title"] == "Review your transactions"

    _add_tx(auth_client, 1200, "shopping", merchant="Myntra")
    body = auth_client.get("/api/ai/insights/month/3/year/2024").json()
    assert "₹1,200" in body["summary"]


def test_advice(auth_client):
    assert auth_client.post("/api/ai/advice", json={"question": "  "}).status_code == 400
    resp = auth_client.post("/api/ai/advice", json={"question": "How can I save?"})
    assert resp.status_code == 200
    assert resp.json()["advice"]


# --- Alerts & challenges ---

def test_alerts_flow(auth_client):
    alert = auth_client.post("/api/spending-alerts", json={
        "category": "food", "threshold": 100, "timePeriod": "weekly", "message": "Spent {amount}",
    }).json()
    _add_tx(auth_client, 150, "food", date=datetime.now().isoformat())

    checked = auth_client.get("/api/spending-alerts/check").json()
    assert checked == [{"alert": alert, "amountSpent": 150.0, "message": "Spent ₹150.00"}]

    patched = auth_client.patch(f"/api/spending-alerts/{alert['id']}", json={"isActive": False}).json()
    assert patched["isActive"] is False
    assert auth_client.get("/api/spending-alerts/check").json() == []

    assert auth_client.delete(f"/api/spending-alerts/{alert['id']}").status_code == 204
    assert auth_client.delete(f"/api/spending-alerts/{alert['id']}").status_code == 404


def test_challenges_flow(auth_client):
    challenge = auth_client.post("/api/savings-challenges", json={
        "title": "Weekly Saver", "description": "Save", "targetAmount": 500,
        "startDate": "2024-01-01T00:00:00", "endDate": "2999-01-01T00:00:00",
    }).json()

    assert [c["id"] for c in auth_client.get("/api/savings-challenges/active").json()] == [challenge["id"]]
    assert auth_client.post(f"/api/savings-challenges/{challenge['id']}/add-savings",
                            json={"amount": 0}).status_code == 400

    done = auth_client.post(f"/api/savings-challenges/{challenge['id']}/add-savings", json={"amount": 500}).json()
    assert done["isCompleted"] is True
    assert auth_client.get("/api/savings-challenges/active").json() == []
    assert len(auth_client.get("/api/savings-challenges").json()) == 1

    assert auth_client.delete(f"/api/savings-challenges/{challenge['id']}").status_code == 204
    assert auth_client.post("/api/savings-challenges/999/add-savings", json={"amount": 5}).status_code == 404


def test_savings_suggestion(auth_client):
    _add_tx(auth_client, 2000, "shopping")
    resp = auth_client.get("/api/savings-suggestion")
    assert "₹200" in resp.json()["suggestion"]


# --- Gateways ---

def test_razorpay_order(auth_client):
    assert auth_client.post("/api/razorpay/create-order", json={}).status_code == 400
    order = auth_client.post("/api/razorpay/create-order", json={"amount": 50000, "receipt": "r1"}).json()
    assert order["status"] == "created"
    assert order["amount_due"] == 50000
    assert order["currency"] == "INR"


def test_plaid_simulated(auth_client):
    token = auth_client.post("/api/plaid/create-link-token").json()
    assert token["link_token"].startswith("link-sandbox-1-")

    assert auth_client.post("/api/plaid/exchange-public-token", json={}).status_code == 400
    exchanged = auth_client.post("/api/plaid/exchange-public-token", json={"public_token": "public-x"}).json()
    assert exchanged["success"] is True
    assert exchanged["access_token"].startswith("access-sandbox-")


# --- Demo data ---

def test_demo_user_is_seeded():
    settings = Settings(seed_demo_data=True, secret_key="test-secret")
    storage = MemStorage()
    services = build_services(storage, settings, random.Random(1))
    app = create_app(settings=settings, storage=storage, services=services)

    with TestClient(app) as client:
        resp = client.post("/api/auth/login", json={"username": DEMO_USERNAME, "password": DEMO_PASSWORD})
        assert resp.status_code == 200
        assert len(client.get("/api/goals").json()) == 3
        assert client.get("/api/goals").json()[0]["isPrimary"] is True
        assert len(client.get("/api/spending-alerts").json()) == 3
        assert len(client.get("/api/savings-challenges").json()) == 4
        assert len(client.get("/api/badges").json()) == 7
        assert client.get("/api/budget").json()["monthlyBudget"] == 30000

    # Building a second app over the same storage does not duplicate the user
    create_app(settings=settings, storage=storage, services=services)
    assert len(storage.users) == 1


def test_null_fields_in_patch_are_ignored(auth_client):
    goal = auth_client.post("/api/goals", json={"name": "Bike", "targetAmount": 40000}).json()
    resp = auth_client.patch(f"/api/goals/{goal['id']}", json={"name": None, "currentAmount": 200})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Bike"
    assert resp.json()["currentAmount"] == 200
    listed = auth_client.get("/api/goals")
    assert listed.status_code == 200
    assert [g["name"] for g in listed.json()] == ["Bike"]

    auth_client.post("/api/budget", json={"monthlyBudget": 25000})
    resp = auth_client.patch("/api/budget", json={"monthlyBudget": None})
    assert resp.json()["monthlyBudget"] == 25000

    app = auth_client.post("/api/connected-apps", json={"appName": "Zomato", "appType": "food"}).json()
    resp = auth_client.patch(f"/api/connected-apps/{app['id']}", json={"appName": None, "connected": True})
    assert resp.json()["appName"] == "Zomato"
    assert resp.json()["connected"] is True
    assert auth_client.get("/api/connected-apps").status_code == 200


def test_null_end_date_keeps_challenge_listable(auth_client):
    challenge = auth_client.post("/api/savings-challenges", json={
        "title": "Weekly Saver", "description": "Save", "targetAmount": 500,
        "startDate": "2024-01-01T00:00:00", "endDate": "2999-01-01T00:00:00",
    }).json()

    resp = auth_client.patch(f"/api/savings-challenges/{challenge['id']}", json={"endDate": None})
    assert resp.status_code == 200
    assert resp.json()["endDate"] == challenge["endDate"]

    active = auth_client.get("/api/savings-challenges/active")
    assert active.status_code == 200
    assert [c["id"] for c in active.json()] == [challenge["id"]]
