"""
Repository layer for SaveVibe.

``Storage`` names the operations the services and routes need.  Two
interchangeable backings implement it:

* ``MemStorage`` keeps records in per-instance dicts with manual id counters
  (tests, local development).
* ``DatabaseStorage`` maps the same operations onto the SQLAlchemy models in
  ``database.py`` (SQLite locally, Postgres in production).

Both return the pydantic records from ``schemas.py`` so callers never see ORM
rows.  Months are 1-indexed everywhere (1 = January).
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from savevibe import database as orm
from savevibe.schemas import (
    Badge,
    BadgeCreate,
    BudgetSetting,
    BudgetSettingsCreate,
    ConnectedApp,
    ConnectedAppCreate,
    Goal,
    GoalCreate,
    Transaction,
    TransactionCreate,
    User,
)


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    """Return ``[start, end)`` covering the whole calendar month."""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def _newest_first(transactions: List[Transaction]) -> List[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def _goal_order(goals: List[Goal]) -> List[Goal]:
    # Primary goal first, then alphabetical
    return sorted(goals, key=lambda g: (not g.is_primary, g.name.casefold()))


def _badge_order(badges: List[Badge]) -> List[Badge]:
    # Earned badges first (most recently earned on top), then alphabetical
    def key(badge: Badge):
        recency = -badge.earned_date.timestamp() if badge.earned and badge.earned_date else 0.0
        return (not badge.earned, recency, badge.name.casefold())

    return sorted(badges, key=key)


class Storage(Protocol):
    # Users
    def get_user(self, user_id: int) -> Optional[User]: ...
    def get_user_by_username(self, username: str) -> Optional[User]: ...
    def create_user(self, username: str, password_hash: str, nickname: Optional[str] = None,
                    avatar_type: Optional[str] = None, age_range: Optional[str] = None) -> User: ...

    # Transactions
    def get_transactions(self, user_id: int) -> List[Transaction]: ...
    def get_transactions_by_month(self, user_id: int, month: int, year: int) -> List[Transaction]: ...
    def create_transaction(self, user_id: int, data: TransactionCreate) -> Transaction: ...

    # Goals
    def get_goals(self, user_id: int) -> List[Goal]: ...
    def get_goal(self, goal_id: int) -> Optional[Goal]: ...
    def create_goal(self, user_id: int, data: GoalCreate) -> Goal: ...
    def update_goal(self, goal_id: int, changes: dict) -> Optional[Goal]: ...

    # Badges
    def get_badges(self, user_id: int) -> List[Badge]: ...
    def get_badge(self, badge_id: int) -> Optional[Badge]: ...
    def create_badge(self, user_id: int, data: BadgeCreate) -> Badge: ...
    def update_badge(self, badge_id: int, changes: dict) -> Optional[Badge]: ...

    # Budget settings
    def get_budget_settings(self, user_id: int) -> Optional[BudgetSetting]: ...
    def create_budget_settings(self, user_id: int, data: BudgetSettingsCreate) -> BudgetSetting: ...
    def update_budget_settings(self, user_id: int, changes: dict) -> Optional[BudgetSetting]: ...

    # Connected apps
    def get_connected_apps(self, user_id: int) -> List[ConnectedApp]: ...
    def get_connected_app(self, app_id: int) -> Optional[ConnectedApp]: ...
    def create_connected_app(self, user_id: int, data: ConnectedAppCreate) -> ConnectedApp: ...
    def update_connected_app(self, app_id: int, changes: dict) -> Optional[ConnectedApp]: ...


class MemStorage:
    """In-memory backing.  Not safe for concurrent mutation."""

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.transactions: Dict[int, Transaction] = {}
        self.goals: Dict[int, Goal] = {}
        self.badges: Dict[int, Badge] = {}
        self.budget_settings: Dict[int, BudgetSetting] = {}
        self.connected_apps: Dict[int, ConnectedApp] = {}
        self._counters: Dict[str, int] = {}

    def _next_id(self, kind: str) -> int:
        self._counters[kind] = self._counters.get(kind, 0) + 1
        return self._counters[kind]

    # --- Users ---

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_user_by_username(self, username):
        return next((u for u in self.users.values() if u.username == username), None)

    def create_user(self, username, password_hash, nickname=None, avatar_type=None, age_range=None):
        user = User(
            id=self._next_id("user"),
            username=username,
            password_hash=password_hash,
            nickname=nickname,
            avatar_type=avatar_type,
            age_range=age_range,
            created_at=datetime.now(),
        )
        self.users[user.id] = user
        return user

    # --- Transactions ---

    def get_transactions(self, user_id):
        return _newest_first([t for t in self.transactions.values() if t.user_id == user_id])

    def get_transactions_by_month(self, user_id, month, year):
        start, end = month_bounds(month, year)
        return _newest_first([
            t for t in self.transactions.values()
            if t.user_id == user_id and start <= t.date < end
        ])

    def create_transaction(self, user_id, data):
        fields = data.model_dump()
        fields["date"] = fields["date"] or datetime.now()
        transaction = Transaction(id=self._next_id("transaction"), user_id=user_id, **fields)
        self.transactions[transaction.id] = transaction
        return transaction

    # --- Goals ---

    def get_goals(self, user_id):
        return _goal_order([g for g in self.goals.values() if g.user_id == user_id])

    def get_goal(self, goal_id):
        return self.goals.get(goal_id)

    def _demote_primary(self, user_id: int, keep_id: Optional[int] = None):
        for goal in list(self.goals.values()):
            if goal.user_id == user_id and goal.is_primary and goal.id != keep_id:
                self.goals[goal.id] = goal.model_copy(update={"is_primary": False})

    def create_goal(self, user_id, data):
        if data.is_primary:
            self._demote_primary(user_id)
        goal = Goal(id=self._next_id("goal"), user_id=user_id, **data.model_dump())
        self.goals[goal.id] = goal
        return goal

    def update_goal(self, goal_id, changes):
        existing = self.goals.get(goal_id)
        if existing is None:
            return None
        if changes.get("is_primary"):
            self._demote_primary(existing.user_id, keep_id=goal_id)
        updated = existing.model_copy(update=changes)
        self.goals[goal_id] = updated
        return updated

    # --- Badges ---

    def get_badges(self, user_id):
        return _badge_order([b for b in self.badges.values() if b.user_id == user_id])

    def get_badge(self, badge_id):
        return self.badges.get(badge_id)

    def create_badge(self, user_id, data):
        badge = Badge(id=self._next_id("badge"), user_id=user_id, **data.model_dump())
        self.badges[badge.id] = badge
        return badge

    def update_badge(self, badge_id, changes):
        existing = self.badges.get(badge_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.badges[badge_id] = updated
        return updated

    # --- Budget settings ---

    def get_budget_settings(self, user_id):
        return next((b for b in self.budget_settings.values() if b.user_id == user_id), None)

    def create_budget_settings(self, user_id, data):
        budget = BudgetSetting(id=self._next_id("budget"), user_id=user_id, **data.model_dump())
        self.budget_settings[budget.id] = budget
        return budget

    def update_budget_settings(self, user_id, changes):
        existing = self.get_budget_settings(user_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.budget_settings[existing.id] = updated
        return updated

    # --- Connected apps ---

    def get_connected_apps(self, user_id):
        apps = [a for a in self.connected_apps.values() if a.user_id == user_id]
        return sorted(apps, key=lambda a: a.app_name.casefold())

    def get_connected_app(self, app_id):
        return self.connected_apps.get(app_id)

    def create_connected_app(self, user_id, data):
        app = ConnectedApp(id=self._next_id("app"), user_id=user_id, **data.model_dump())
        self.connected_apps[app.id] = app
        return app

    def update_connected_app(self, app_id, changes):
        existing = self.connected_apps.get(app_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.connected_apps[app_id] = updated
        return updated


class DatabaseStorage:
    """SQLAlchemy backing; one short-lived session per operation."""

    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    def _session(self) -> Session:
        return self.SessionLocal()

    def _update(self, model, row_id: int, changes: dict, record_cls):
        with self._session() as db:
            row = db.get(model, row_id)
            if row is None:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            db.commit()
            return record_cls.model_validate(row)

    def _insert(self, row, record_cls):
        with self._session() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            return record_cls.model_validate(row)

    # --- Users ---

    def get_user(self, user_id):
        with self._session() as db:
            row = db.get(orm.User, user_id)
            return User.model_validate(row) if row else None

    def get_user_by_username(self, username):
        with self._session() as db:
            row = db.query(orm.User).filter(orm.User.username == username).first()
            return User.model_validate(row) if row else None

    def create_user(self, username, password_hash, nickname=None, avatar_type=None, age_range=None):
        row = orm.User(
            username=username,
            password_hash=password_hash,
            nickname=nickname,
            avatar_type=avatar_type,
            age_range=age_range,
            created_at=datetime.now(),
        )
        return self._insert(row, User)

    # --- Transactions ---

    def get_transactions(self, user_id):
        with self._session() as db:
            rows = (
                db.query(orm.Transaction)
                .filter(orm.Transaction.user_id == user_id)
                .order_by(orm.Transaction.date.desc())
                .all()
            )
            return [Transaction.model_validate(r) for r in rows]

    def get_transactions_by_month(self, user_id, month, year):
        start, end = month_bounds(month, year)
        with self._session() as db:
            rows = (
                db.query(orm.Transaction)
                .filter(
                    orm.Transaction.user_id == user_id,
                    orm.Transaction.date >= start,
                    orm.Transaction.date < end,
                )
                .order_by(orm.Transaction.date.desc())
                .all()
            )
            return [Transaction.model_validate(r) for r in rows]

    def create_transaction(self, user_id, data):
        fields = data.model_dump()
        fields["date"] = fields["date"] or datetime.now()
        return self._insert(orm.Transaction(user_id=user_id, **fields), Transaction)

    # --- Goals ---

    def get_goals(self, user_id):
        with self._session() as db:
            rows = db.query(orm.Goal).filter(orm.Goal.user_id == user_id).all()
            return _goal_order([Goal.model_validate(r) for r in rows])

    def get_goal(self, goal_id):
        with self._session() as db:
            row = db.get(orm.Goal, goal_id)
            return Goal.model_validate(row) if row else None

    @staticmethod
    def _demote_primary(db: Session, user_id: int, keep_id: Optional[int] = None):
        query = db.query(orm.Goal).filter(orm.Goal.user_id == user_id, orm.Goal.is_primary.is_(True))
        if keep_id is not None:
            query = query.filter(orm.Goal.id != keep_id)
        query.update({orm.Goal.is_primary: False}, synchronize_session=False)

    def create_goal(self, user_id, data):
        with self._session() as db:
            if data.is_primary:
                self._demote_primary(db, user_id)
            row = orm.Goal(user_id=user_id, **data.model_dump())
            db.add(row)
            db.commit()
            db.refresh(row)
            return Goal.model_validate(row)

    def update_goal(self, goal_id, changes):
        with self._session() as db:
            row = db.get(orm.Goal, goal_id)
            if row is None:
                return None
            if changes.get("is_primary"):
                self._demote_primary(db, row.user_id, keep_id=goal_id)
            for key, value in changes.items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return Goal.model_validate(row)

    # --- Badges ---

    def get_badges(self, user_id):
        with self._session() as db:
            rows = db.query(orm.Badge).filter(orm.Badge.user_id == user_id).all()
            return _badge_order([Badge.model_validate(r) for r in rows])

    def get_badge(self, badge_id):
        with self._session() as db:
            row = db.get(orm.Badge, badge_id)
            return Badge.model_validate(row) if row else None

    def create_badge(self, user_id, data):
        return self._insert(orm.Badge(user_id=user_id, **data.model_dump()), Badge)

    def update_badge(self, badge_id, changes):
        return self._update(orm.Badge, badge_id, changes, Badge)

    # --- Budget settings ---

    def get_budget_settings(self, user_id):
        with self._session() as db:
            row = db.query(orm.BudgetSetting).filter(orm.BudgetSetting.user_id == user_id).first()
            return BudgetSetting.model_validate(row) if row else None

    def create_budget_settings(self, user_id, data):
        return self._insert(orm.BudgetSetting(user_id=user_id, **data.model_dump()), BudgetSetting)

    def update_budget_settings(self, user_id, changes):
        existing = self.get_budget_settings(user_id)
        if existing is None:
            return None
        return self._update(orm.BudgetSetting, existing.id, changes, BudgetSetting)

    # --- Connected apps ---

    def get_connected_apps(self, user_id):
        with self._session() as db:
            rows = db.query(orm.ConnectedApp).filter(orm.ConnectedApp.user_id == user_id).all()
            return sorted(
                (ConnectedApp.model_validate(r) for r in rows),
                key=lambda a: a.app_name.casefold(),
            )

    def get_connected_app(self, app_id):
        with self._session() as db:
            row = db.get(orm.ConnectedApp, app_id)
            return ConnectedApp.model_validate(row) if row else None

    def create_connected_app(self, user_id, data):
        return self._insert(orm.ConnectedApp(user_id=user_id, **data.model_dump()), ConnectedApp)

    def update_connected_app(self, app_id, changes):
        return self._update(orm.ConnectedApp, app_id, changes, ConnectedApp)
