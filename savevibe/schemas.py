"""
Pydantic models for the SaveVibe API.

Records returned by the storage layer and the request/response bodies share
one camelCase wire format (``userId``, ``isWant`` ...) while Python code keeps
snake_case attribute names.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TransactionType = Literal["income", "expense"]
TimePeriod = Literal["daily", "weekly", "monthly"]
Frequency = Literal["daily", "weekly", "monthly"]
AppType = Literal["payment", "shopping", "food", "entertainment", "music", "other"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    # Stored dates are naive local time; aware inputs are converted first
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# --- Users ---

class UserCreate(CamelModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    nickname: Optional[str] = None
    avatar_type: Optional[str] = "funny"
    age_range: Optional[str] = None


class LoginRequest(CamelModel):
    username: str
    password: str


class User(CamelModel):
    id: int
    username: str
    password_hash: str = Field(exclude=True)
    nickname: Optional[str] = None
    avatar_type: Optional[str] = None
    age_range: Optional[str] = None
    created_at: Optional[datetime] = None


class PublicUser(CamelModel):
    id: int
    username: str
    nickname: Optional[str] = None
    avatar_type: Optional[str] = None
    age_range: Optional[str] = None
    created_at: Optional[datetime] = None


# --- Transactions ---

class TransactionCreate(CamelModel):
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: str
    date: Optional[datetime] = None
    type: TransactionType
    is_want: bool = True
    merchant: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _strip_timezone(cls, value):
        return _naive(value)


class Transaction(CamelModel):
    id: int
    user_id: int
    amount: float
    category: str
    description: str
    date: datetime
    type: TransactionType
    is_want: bool = True
    merchant: Optional[str] = None


class TransactionBatch(CamelModel):
    # Rows are validated one by one so a bad row does not sink the batch
    transactions: List[dict]


class ImportResult(CamelModel):
    message: str
    count: int


# --- Goals ---

class GoalCreate(CamelModel):
    name: str = Field(..., min_length=1)
    emoji: Optional[str] = "💰"
    target_amount: float = Field(..., ge=0)
    current_amount: float = Field(0.0, ge=0)
    completed: bool = False
    is_primary: bool = False


class GoalUpdate(CamelModel):
    name: Optional[str] = None
    emoji: Optional[str] = None
    target_amount: Optional[float] = Field(None, ge=0)
    current_amount: Optional[float] = Field(None, ge=0)
    completed: Optional[bool] = None
    is_primary: Optional[bool] = None


class Goal(CamelModel):
    id: int
    user_id: int
    name: str
    emoji: Optional[str] = None
    target_amount: float
    current_amount: float = 0.0
    completed: bool = False
    is_primary: bool = False


# --- Badges ---

class BadgeCreate(CamelModel):
    name: str
    description: str
    icon: str
    earned: bool = False
    earned_date: Optional[datetime] = None


class Badge(CamelModel):
    id: int
    user_id: int
    name: str
    description: str
    icon: str
    earned: bool = False
    earned_date: Optional[datetime] = None


# --- Budget settings ---

class BudgetSettingsCreate(CamelModel):
    monthly_budget: float = Field(..., gt=0)
    essentials_percentage: float = Field(50.0, ge=0, le=100)
    food_percentage: float = Field(20.0, ge=0, le=100)
    fun_percentage: float = Field(20.0, ge=0, le=100)
    treats_percentage: float = Field(10.0, ge=0, le=100)


class BudgetSettingsUpdate(CamelModel):
    monthly_budget: Optional[float] = Field(None, gt=0)
    essentials_percentage: Optional[float] = Field(None, ge=0, le=100)
    food_percentage: Optional[float] = Field(None, ge=0, le=100)
    fun_percentage: Optional[float] = Field(None, ge=0, le=100)
    treats_percentage: Optional[float] = Field(None, ge=0, le=100)


class BudgetSetting(CamelModel):
    id: int
    user_id: int
    monthly_budget: float
    essentials_percentage: float = 50.0
    food_percentage: float = 20.0
    fun_percentage: float = 20.0
    treats_percentage: float = 10.0


# --- Connected apps ---

class ConnectedAppCreate(CamelModel):
    app_name: str = Field(..., min_length=1)
    app_type: str
    connected: bool = False


class ConnectedAppUpdate(CamelModel):
    app_name: Optional[str] = None
    app_type: Optional[str] = None
    connected: Optional[bool] = None


class ConnectedApp(CamelModel):
    id: int
    user_id: int
    app_name: str
    app_type: str
    connected: bool = False


class ConnectAppRequest(CamelModel):
    app_name: str = Field(..., min_length=1)
    app_type: AppType
    website: Optional[str] = None
    app_icon: Optional[str] = None


class AppSpending(CamelModel):
    app_id: int
    app_name: str
    app_type: str
    amount: float
    month: int
    year: int


# --- Spending alerts ---

class SpendingAlertCreate(CamelModel):
    category: str = Field(..., min_length=1)
    threshold: float = Field(..., gt=0)
    time_period: TimePeriod
    message: Optional[str] = None
    is_active: bool = True


class SpendingAlertUpdate(CamelModel):
    category: Optional[str] = None
    threshold: Optional[float] = Field(None, gt=0)
    time_period: Optional[TimePeriod] = None
    message: Optional[str] = None
    is_active: Optional[bool] = None


class SpendingAlert(CamelModel):
    id: int
    user_id: int
    category: str
    threshold: float
    time_period: TimePeriod
    message: Optional[str] = None
    is_active: bool = True
    created_at: datetime


class TriggeredAlert(CamelModel):
    alert: SpendingAlert
    amount_spent: float


class AlertNotification(CamelModel):
    alert: SpendingAlert
    amount_spent: float
    message: str


# --- Savings challenges ---

class SavingsChallengeCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str
    target_amount: float = Field(..., gt=0)
    start_date: datetime
    end_date: datetime
    badge_id: Optional[int] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _strip_timezone(cls, value):
        return _naive(value)


class SavingsChallengeUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    target_amount: Optional[float] = Field(None, gt=0)
    end_date: Optional[datetime] = None
    badge_id: Optional[int] = None

    @field_validator("end_date")
    @classmethod
    def _strip_timezone(cls, value):
        return _naive(value)


class SavingsChallenge(CamelModel):
    id: int
    user_id: int
    title: str
    description: str
    target_amount: float
    current_amount: float = 0.0
    start_date: datetime
    end_date: datetime
    is_completed: bool = False
    badge_id: Optional[int] = None


class AddSavingsRequest(CamelModel):
    amount: float


class SuggestionResponse(CamelModel):
    suggestion: str


# --- Spending classification ---

class TopCategory(CamelModel):
    category: str
    amount: float
    percentage: float


class SpendingPattern(CamelModel):
    category: str
    frequency: Frequency
    average_amount: float
    is_necessity: bool
    savings_potential: int


class SpendingPredict(CamelModel):
    category: str
    predicted_amount: int
    confidence: float


class SpendingClassification(CamelModel):
    total_spending: float = 0.0
    necessities: float = 0.0
    wants: float = 0.0
    savings: float = 0.0
    top_categories: List[TopCategory] = Field(default_factory=list)
    patterns: List[SpendingPattern] = Field(default_factory=list)
    next_month_predictions: List[SpendingPredict] = Field(default_factory=list)


# --- Insights ---

class MonthlyInsights(CamelModel):
    spending_by_category: Dict[str, float]
    top_category: str
    top_amount: float
    total_spending: float
    total_saving: float
    top_merchant: str
    top_count: int
    biggest_spend: float
    transaction_count: int


class AnalyzeSpendingRequest(CamelModel):
    month: Optional[int] = None
    year: Optional[int] = None


class CategoryBreakdown(CamelModel):
    total: float = 0.0
    wants: float = 0.0
    needs: float = 0.0


class Period(CamelModel):
    month: int
    year: int


class SpendingAnalysis(CamelModel):
    total_spending: float
    wants_total: float
    needs_total: float
    wants_percentage: float
    needs_percentage: float
    category_breakdown: Dict[str, CategoryBreakdown]
    savings_total: float
    savings_percentage: float
    transaction_count: int
    period: Period


InsightType = Literal["saving_opportunity", "spending_pattern", "behavior_change", "goal_recommendation"]


class Insight(CamelModel):
    type: InsightType
    title: str
    description: str
    saving_potential: Optional[float] = None
    confidence_score: float = Field(..., ge=0, le=1)


class MonthlyTrend(CamelModel):
    description: str
    change_percentage: Optional[float] = None
    is_positive: Optional[bool] = None


class NextMonthPrediction(CamelModel):
    description: str
    predicted_amount: Optional[float] = None


class InsightResponse(CamelModel):
    summary: str
    insights: List[Insight]
    monthly_trend: MonthlyTrend
    next_month_prediction: NextMonthPrediction
    saving_tips: List[str]


class AdviceRequest(CamelModel):
    question: Optional[str] = None


class AdviceResponse(CamelModel):
    advice: str


# --- Payment gateways ---

class RazorpayOrderRequest(CamelModel):
    amount: Optional[float] = None
    currency: str = "INR"
    receipt: Optional[str] = None
    notes: Optional[dict] = None


class PublicTokenRequest(BaseModel):
    public_token: Optional[str] = None
