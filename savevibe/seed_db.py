import logging
from datetime import datetime, timedelta

from savevibe.auth import register_user
from savevibe.schemas import (
    BadgeCreate,
    BudgetSettingsCreate,
    ConnectedAppCreate,
    GoalCreate,
    TransactionCreate,
    UserCreate,
)

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo@example.com"
DEMO_PASSWORD = "password123"

DEMO_GOALS = [
    GoalCreate(name="New Headphones", emoji="🎧", target_amount=12000, current_amount=3000, is_primary=True),
    GoalCreate(name="Trip Fund", emoji="✈️", target_amount=50000, current_amount=5000),
    GoalCreate(name="Impulse Control", emoji="💸", target_amount=0, current_amount=0),
]

DEMO_APPS = [
    ("Google Pay", "payment", True),
    ("PhonePe", "payment", False),
    ("Paytm", "payment", False),
    ("Amazon", "shopping", True),
    ("Myntra", "shopping", True),
    ("Zomato", "food", False),
]


def seed_demo_user(storage, alerts=None, challenges=None, now=None):
    """
    Create the demo account with goals, badges, a budget, connected apps and
    a few weeks of transactions.  Sample alerts and challenges are added when
    the services are supplied.
    """
    now = now or datetime.now()
    user = register_user(storage, UserCreate(
        username=DEMO_USERNAME,
        password=DEMO_PASSWORD,
        nickname="Aman",
        avatar_type="funny",
        age_range="18-24",
    ))
    uid = user.id

    for goal in DEMO_GOALS:
        storage.create_goal(uid, goal)

    storage.create_badge(uid, BadgeCreate(
        name="Budget Bae", description="Stayed under monthly goal",
        icon="ri-money-dollar-circle-line", earned=True, earned_date=now,
    ))
    storage.create_badge(uid, BadgeCreate(
        name="Zomato Zen", description="No food delivery for a week", icon="ri-restaurant-line",
    ))
    storage.create_badge(uid, BadgeCreate(
        name="Impulse Ninja", description="Cancelled an impulsive spend",
        icon="ri-shield-check-line", earned=True, earned_date=now,
    ))

    storage.create_budget_settings(uid, BudgetSettingsCreate(monthly_budget=30000))

    for name, app_type, connected in DEMO_APPS:
        storage.create_connected_app(uid, ConnectedAppCreate(app_name=name, app_type=app_type, connected=connected))

    day = timedelta(days=1)
    rows = [
        TransactionCreate(amount=1999, category="shopping", description="Amazon purchase", date=now,
                          type="expense", is_want=True, merchant="Amazon"),
        TransactionCreate(amount=45000, category="income", description="Salary Deposit", date=now - day,
                          type="income", is_want=False, merchant="Bank"),
        TransactionCreate(amount=520, category="food", description="Food Delivery", date=now - 3 * day,
                          type="expense", is_want=True, merchant="Zomato"),
    ]
    for i in range(1, 11):
        rows.append(TransactionCreate(
            amount=200 + i * 50, category="food", description="Food purchase", date=now - i * day,
            type="expense", is_want=i % 2 == 0, merchant="Zomato" if i % 2 == 0 else "Grocery Store",
        ))
    for i in range(1, 9):
        rows.append(TransactionCreate(
            amount=500 + i * 300, category="shopping", description="Fashion purchase", date=now - 2 * i * day,
            type="expense", is_want=True, merchant="Amazon" if i % 2 == 0 else "Myntra",
        ))
    for row in rows:
        storage.create_transaction(uid, row)

    if alerts is not None:
        alerts.setup_sample_alerts(uid)
    if challenges is not None:
        challenges.setup_sample_challenges(uid, now=now)

    logger.info("Seeded demo user %s with %d transactions", DEMO_USERNAME, len(rows))
    return user


def main():
    from savevibe.config import configure_logging, load_settings
    from savevibe.database import init_db, make_engine, make_session_factory
    from savevibe.storage import DatabaseStorage

    settings = load_settings()
    configure_logging(settings.log_level)

    engine = make_engine(settings.database_url)
    init_db(engine)
    storage = DatabaseStorage(make_session_factory(engine))

    if storage.get_user_by_username(DEMO_USERNAME):
        print("Demo user already exists. Skipping seed.")
        return
    seed_demo_user(storage)
    print("Database initialized with the demo user.")


if __name__ == "__main__":
    main()
