from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

# --- Models ---

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)  # bcrypt hash, never plain text
    nickname = Column(String, nullable=True)
    avatar_type = Column(String, default="funny")
    age_range = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, nullable=False)
    date = Column(DateTime, default=datetime.now, index=True)
    type = Column(String, nullable=False)  # 'income' or 'expense'
    is_want = Column(Boolean, default=True)  # True for wants, False for needs
    merchant = Column(String, nullable=True)


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    name = Column(String, nullable=False)
    emoji = Column(String, default="💰")
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, default=0.0)
    completed = Column(Boolean, default=False)
    is_primary = Column(Boolean, default=False)


class Badge(Base):
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    icon = Column(String, nullable=False)
    earned = Column(Boolean, default=False)
    earned_date = Column(DateTime, nullable=True)


class BudgetSetting(Base):
    __tablename__ = "budget_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, nullable=False)
    monthly_budget = Column(Float, nullable=False)
    essentials_percentage = Column(Float, default=50.0)
    food_percentage = Column(Float, default=20.0)
    fun_percentage = Column(Float, default=20.0)
    treats_percentage = Column(Float, default=10.0)


class ConnectedApp(Base):
    __tablename__ = "connected_apps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    app_name = Column(String, nullable=False)
    app_type = Column(String, nullable=False)  # 'payment', 'shopping', 'food', ...
    connected = Column(Boolean, default=False)


# --- Engine / sessions ---

def make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every session sees the same in-memory database
        from sqlalchemy.pool import StaticPool

        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine):
    Base.metadata.create_all(bind=engine)
