from datetime import datetime

import pytest

from savevibe.schemas import (
    BadgeCreate,
    BudgetSettingsCreate,
    ConnectedAppCreate,
    GoalCreate,
    TransactionCreate,
)
from savevibe.storage import month_bounds


@pytest.fixture(params=["memory", "database"])
def repo(request, storage, db_storage):
    return storage if request.param == "memory" else db_storage


@pytest.fixture
def user(repo):
    return repo.create_user("ravi", "hash", nickname="Ravi")


def _tx(amount, date, category="food", type="expense"):
    return TransactionCreate(amount=amount, category=category, description="x", date=date, type=type)


def test_month_bounds_wraps_december():
    assert month_bounds(12, 2023) == (datetime(2023, 12, 1), datetime(2024, 1, 1))
    assert month_bounds(2, 2024) == (datetime(2024, 2, 1), datetime(2024, 3, 1))


def test_users_lookup(repo, user):
    assert repo.get_user(user.id).username == "ravi"
    assert repo.get_user_by_username("ravi").id == user.id
    assert repo.get_user_by_username("nobody") is None
    assert repo.get_user(999) is None


def test_transactions_newest_first_and_scoped(repo, user):
    other = repo.create_user("other", "hash")
    repo.create_transaction(user.id, _tx(10, datetime(2024, 3, 1)))
    repo.create_transaction(user.id, _tx(20, datetime(2024, 3, 20)))
    repo.create_transaction(other.id, _tx(30, datetime(2024, 3, 5)))

    amounts = [t.amount for t in repo.get_transactions(user.id)]
    assert amounts == [20, 10]


def test_transactions_by_month_uses_one_indexed_months(repo, user):
    repo.create_transaction(user.id, _tx(1, datetime(2024, 2, 29, 23, 59)))
    repo.create_transaction(user.id, _tx(2, datetime(2024, 3, 1)))
    repo.create_transaction(user.id, _tx(3, datetime(2024, 3, 31, 23, 59)))
    repo.create_transaction(user.id, _tx(4, datetime(2024, 4, 1)))

    assert [t.amount for t in repo.get_transactions_by_month(user.id, 3, 2024)] == [3, 2]


def test_transaction_date_defaults_to_now(repo, user):
    created = repo.create_transaction(user.id, _tx(5, None))
    assert abs((datetime.now() - created.date).total_seconds()) < 60


def test_new_primary_goal_demotes_previous(repo, user):
    first = repo.create_goal(user.id, GoalCreate(name="Bike", target_amount=5000, is_primary=True))
    second = repo.create_goal(user.id, GoalCreate(name="Laptop", target_amount=60000, is_primary=True))

    assert repo.get_goal(first.id).is_primary is False
    assert [g.id for g in repo.get_goals(user.id)] == [second.id, first.id]


def test_update_goal_promotes_and_demotes(repo, user):
    first = repo.create_goal(user.id, GoalCreate(name="Bike", target_amount=5000, is_primary=True))
    second = repo.create_goal(user.id, GoalCreate(name="Camera", target_amount=20000))

    updated = repo.update_goal(second.id, {"is_primary": True, "current_amount": 100})

    assert updated.is_primary is True
    assert updated.current_amount == 100
    assert repo.get_goal(first.id).is_primary is False
    assert repo.update_goal(999, {"name": "missing"}) is None


def test_badge_order(repo, user):
    repo.create_badge(user.id, BadgeCreate(name="Zen", description="d", icon="i"))
    repo.create_badge(user.id, BadgeCreate(name="Older", description="d", icon="i", earned=True,
                                           earned_date=datetime(2024, 1, 1)))
    newer = repo.create_badge(user.id, BadgeCreate(name="Newer", description="d", icon="i", earned=True,
                                                   earned_date=datetime(2024, 2, 1)))

    assert [b.name for b in repo.get_badges(user.id)] == ["Newer", "Older", "Zen"]

    repo.update_badge(newer.id, {"name": "Renamed"})
    assert repo.get_badge(newer.id).name == "Renamed"


def test_budget_settings_one_per_user(repo, user):
    assert repo.get_budget_settings(user.id) is None
    assert repo.update_budget_settings(user.id, {"monthly_budget": 1}) is None

    created = repo.create_budget_settings(user.id, BudgetSettingsCreate(monthly_budget=25000))
    assert created.essentials_percentage == 50

    updated = repo.update_budget_settings(user.id, {"monthly_budget": 30000})
    assert updated.id == created.id
    assert repo.get_budget_settings(user.id).monthly_budget == 30000


def test_connected_apps(repo, user):
    repo.create_connected_app(user.id, ConnectedAppCreate(app_name="Zomato", app_type="food"))
    app = repo.create_connected_app(user.id, ConnectedAppCreate(app_name="Amazon", app_type="shopping",
                                                                connected=True))

    assert [a.app_name for a in repo.get_connected_apps(user.id)] == ["Amazon", "Zomato"]
    assert repo.update_connected_app(app.id, {"connected": False}).connected is False
    assert repo.get_connected_app(app.id).connected is False
