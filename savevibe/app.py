"""SaveVibe REST API."""

import logging
import os
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import Depends, FastAPI, File, HTTPException, Request, Response, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from savevibe import auth
from savevibe.alerts import SpendingAlertsService
from savevibe.auth import get_current_user, get_storage
from savevibe.challenges import GamifiedSavingsService
from savevibe.classifier import HeuristicPredictor, SpendingClassifierService
from savevibe.config import Settings, configure_logging, load_settings
from savevibe.connected_apps import ConnectedAppsService
from savevibe.database import init_db, make_engine, make_session_factory
from savevibe.insights import FALLBACK_ADVICE, InsightService, fallback_insights
from savevibe.plaid_integration import PlaidGateway, make_client
from savevibe.process_transactions import parse_transactions_csv
from savevibe.schemas import (
    AddSavingsRequest,
    AdviceRequest,
    AdviceResponse,
    AlertNotification,
    AnalyzeSpendingRequest,
    AppSpending,
    Badge,
    BudgetSetting,
    BudgetSettingsCreate,
    BudgetSettingsUpdate,
    ConnectAppRequest,
    ConnectedApp,
    ConnectedAppCreate,
    ConnectedAppUpdate,
    Goal,
    GoalCreate,
    GoalUpdate,
    ImportResult,
    InsightResponse,
    MonthlyInsights,
    PublicTokenRequest,
    RazorpayOrderRequest,
    SavingsChallenge,
    SavingsChallengeCreate,
    SavingsChallengeUpdate,
    SpendingAlert,
    SpendingAlertCreate,
    SpendingAlertUpdate,
    SpendingAnalysis,
    SpendingClassification,
    SuggestionResponse,
    Transaction,
    TransactionBatch,
    TransactionCreate,
    User,
)
from savevibe.seed_db import DEMO_USERNAME, seed_demo_user
from savevibe.storage import DatabaseStorage, MemStorage

logger = logging.getLogger("savevibe.api")


@dataclass
class Services:
    classifier: SpendingClassifierService
    insights: InsightService
    alerts: SpendingAlertsService
    challenges: GamifiedSavingsService
    connected_apps: ConnectedAppsService
    plaid: PlaidGateway


def build_storage(settings: Settings):
    if settings.storage_backend == "database":
        engine = make_engine(settings.database_url)
        init_db(engine)
        logger.info("Using database storage")
        return DatabaseStorage(make_session_factory(engine))
    logger.info("Using in-memory storage")
    return MemStorage()


def build_services(storage, settings: Settings, rng: Optional[random.Random] = None) -> Services:
    rng = rng or random.Random()
    predictor = HeuristicPredictor(rng)
    return Services(
        classifier=SpendingClassifierService(storage, predictor),
        insights=InsightService(storage, predictor),
        alerts=SpendingAlertsService(storage, rng),
        challenges=GamifiedSavingsService(storage, rng),
        connected_apps=ConnectedAppsService(storage),
        plaid=PlaidGateway(make_client(settings.plaid_client_id, settings.plaid_secret, settings.plaid_env)),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def parse_period(month: str, year: str) -> Tuple[int, int]:
    """Validate a 1-indexed month and a year taken from the URL."""
    try:
        month_num, year_num = int(month), int(year)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid month or year")
    if not 1 <= month_num <= 12 or year_num < 1:
        raise HTTPException(status_code=400, detail="Invalid month or year")
    return month_num, year_num


def previous_period(month: int, year: int) -> Tuple[int, int]:
    return (12, year - 1) if month == 1 else (month - 1, year)


def _owned_or_404(record, user: User, detail: str):
    if record is None or record.user_id != user.id:
        raise HTTPException(status_code=404, detail=detail)
    return record


def create_app(settings: Optional[Settings] = None, storage=None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or load_settings()
    storage = storage if storage is not None else build_storage(settings)
    services = services or build_services(storage, settings)

    app = FastAPI(title="SaveVibe API")
    app.state.settings = settings
    app.state.storage = storage
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, same_site="lax")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"message": "Invalid data", "errors": jsonable_encoder(exc.errors())}, status_code=400)

    app.include_router(auth.router)

    if settings.seed_demo_data and storage.get_user_by_username(DEMO_USERNAME) is None:
        seed_demo_user(storage, services.alerts, services.challenges)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ---------------- Transactions ----------------

    @app.get("/api/transactions", response_model=List[Transaction])
    async def list_transactions(user: User = Depends(get_current_user), storage=Depends(get_storage)):
        return storage.get_transactions(user.id)

    @app.get("/api/transactions/month/{month}/year/{year}", response_model=List[Transaction])
    async def list_transactions_by_month(month: str, year: str, user: User = Depends(get_current_user),
                                         storage=Depends(get_storage)):
        month_num, year_num = parse_period(month, year)
        return storage.get_transactions_by_month(user.id, month_num, year_num)

    @app.post("/api/transactions", response_model=Transaction, status_code=status.HTTP_201_CREATED)
    async def create_transaction(data: TransactionCreate, user: User = Depends(get_current_user),
                                 storage=Depends(get_storage)):
        return storage.create_transaction(user.id, data)

    @app.post("/api/transactions/batch", response_model=ImportResult, status_code=status.HTTP_201_CREATED)
    async def import_transactions(batch: TransactionBatch, user: User = Depends(get_current_user),
                                  storage=Depends(get_storage)):
        if not batch.transactions:
            raise HTTPException(status_code=400, detail="Invalid transactions data. Expected non-empty array.")

        count = 0
        for row in batch.transactions:
            try:
                data = TransactionCreate.model_validate(row)
            except ValidationError as exc:
                logger.warning("Skipping invalid transaction in batch: %s", exc.errors()[0]["msg"])
                continue
            storage.create_transaction(user.id, data)
            count += 1
        return ImportResult(message="Transactions imported successfully", count=count)

    @app.post("/api/transactions/upload", response_model=ImportResult, status_code=status.HTTP_201_CREATED)
    async def upload_transactions(file: UploadFile = File(...), user: User = Depends(get_current_user),
                                  storage=Depends(get_storage)):
        if not (file.filename or "").lower().endswith(".csv") and file.content_type != "text/csv":
            raise HTTPException(status_code=400, detail="Please upload a CSV file")
        try:
            rows, skipped = parse_transactions_csv(await file.read())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        for data in rows:
            storage.create_transaction(user.id, data)
        message = f"{len(rows)} transactions imported"
        if skipped:
            message += f", {skipped} skipped"
        return ImportResult(message=message, count=len(rows))

    # ---------------- Goals ----------------

    @app.get("/api/goals", response_model=List[Goal])
    async def list_goals(user: User = Depends(get_current_user), storage=Depends(get_storage)):
        return storage.get_goals(user.id)

    def _user_goal(goal_id: int, user: User, storage) -> Goal:
        goal = storage.get_goal(goal_id)
        if goal is None:
            raise HTTPException(status_code=404, detail="Goal not found")
        if goal.user_id != user.id:
            raise HTTPException(status_code=403, detail="Unauthorized")
        return goal

    @app.get("/api/goals/{goal_id}", response_model=Goal)
    async def get_goal(goal_id: int, user: User = Depends(get_current_user), storage=Depends(get_storage)):
        return _user_goal(goal_id, user, storage)

    @app.post("/api/goals", response_model=Goal, status_code=status.HTTP_201_CREATED)
    async def create_goal(data: GoalCreate, user: User = Depends(get_current_user), storage=Depends(get_storage)):
        return storage.create_goal(user.id, data)

    @app.patch("/api/goals/{goal_id}", response_model=Goal)
    async def update_goal(goal_id: int, data: GoalUpdate, user: User = Depends(get_current_user),
                          storage=Depends(get_storage)):
        _user_goal(goal_id, user, storage)
        return storage.update_goal(goal_id, data.model_dump(exclude_unset=True, exclude_none=True))

    # ---------------- Budget ----------------

    @app.get("/api/budget", response_model=BudgetSetting)
    async def get_budget(user: User = Depends(get_current_user), storage=Depends(get_storage)):
        budget = storage.get_budget_settings(user.id)
        if budget is None:
            raise HTTPException(status_code=404, detail="Budget settings not found")
        return budget

    @app.post("/api/budget", response_model=BudgetSetting, status_code=status.HTTP_201_CREATED)
    async def create_budget(data: BudgetSettingsCreate, user: User = Depends(get_current_user),
                            storage=Depends(get_storage)):
        if storage.get_budget_settings(user.id):
            raise HTTPException(status_code=400, detail="Budget settings already exist")
        return storage.create_budget_settings(user.id, data)

    @app.patch("/api/budget", response_model=BudgetSetting)
    async def update_budget(data: BudgetSettingsUpdate, user: User = Depends(get_current_user),
                            storage=Depends(get_storage)):
        budget = storage.update_budget_settings(user.id, data.model_dump(exclude_unset=True, exclude_none=True))
        if budget is None:
            raise HTTPException(status_code=404, detail="Budget settings not found")
        return budget

    # ---------------- Badges ----------------

    @app.get("/api/badges", response_model=List[Badge])
    async def list_badges(user: User = Depends(get_current_user), storage=Depends(get_storage)):
        return storage.get_badges(user.id)

    # ---------------- Connected apps ----------------

    @app.get("/api/connected-apps", response_model=List[ConnectedApp])
    async def list_connected_apps(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        return services.connected_apps.get_user_connected_apps(user.id)

    @app.post("/api/connected-apps", response_model=ConnectedApp, status_code=status.HTTP_201_CREATED)
    async def create_connected_app(data: ConnectedAppCreate, user: User = Depends(get_current_user),
                                   storage=Depends(get_storage)):
        return storage.create_connected_app(user.id, data)

    @app.post("/api/connected-apps/connect", response_model=ConnectedApp, status_code=status.HTTP_201_CREATED)
    async def connect_app(data: ConnectAppRequest, user: User = Depends(get_current_user),
                          services: Services = Depends(get_services)):
        return services.connected_apps.connect_app(user.id, data)

    @app.patch("/api/connected-apps/{app_id}", response_model=ConnectedApp)
    async def update_connected_app(app_id: int, data: ConnectedAppUpdate, user: User = Depends(get_current_user),
                                   storage=Depends(get_storage)):
        _owned_or_404(storage.get_connected_app(app_id), user, "Connected app not found")
        return storage.update_connected_app(app_id, data.model_dump(exclude_unset=True, exclude_none=True))

    @app.post("/api/connected-apps/{app_id}/disconnect", response_model=ConnectedApp)
    async def disconnect_app(app_id: int, user: User = Depends(get_current_user), storage=Depends(get_storage),
                             services: Services = Depends(get_services)):
        _owned_or_404(storage.get_connected_app(app_id), user, "Connected app not found")
        return services.connected_apps.disconnect_app(app_id)

    @app.get("/api/connected-apps/spending/{month}/{year}", response_model=List[AppSpending])
    async def app_spending(month: str, year: str, user: User = Depends(get_current_user),
                           services: Services = Depends(get_services)):
        month_num, year_num = parse_period(month, year)
        try:
            return services.connected_apps.get_app_spending(user.id, month_num, year_num)
        except Exception:
            logger.exception("Error getting app spending")
            raise HTTPException(status_code=500, detail="An error occurred")

    # ---------------- Insights ----------------

    @app.get("/api/insights/month/{month}/year/{year}", response_model=MonthlyInsights)
    async def monthly_insights(month: str, year: str, user: User = Depends(get_current_user),
                               services: Services = Depends(get_services)):
        month_num, year_num = parse_period(month, year)
        return services.insights.monthly_insights(user.id, month_num, year_num)

    @app.post("/api/ai/analyze-spending", response_model=SpendingAnalysis)
    async def analyze_spending(data: AnalyzeSpendingRequest, user: User = Depends(get_current_user),
                               services: Services = Depends(get_services)):
        if not data.month or not data.year:
            raise HTTPException(status_code=400, detail="Month and year are required")
        month_num, year_num = parse_period(str(data.month), str(data.year))
        try:
            return services.insights.analyze_spending(user.id, month_num, year_num)
        except Exception:
            logger.exception("Error analyzing spending")
            raise HTTPException(status_code=500, detail="An error occurred during analysis")

    @app.get("/api/ai/insights/month/{month}/year/{year}", response_model=InsightResponse)
    async def ai_insights(month: str, year: str, user: User = Depends(get_current_user),
                          storage=Depends(get_storage), services: Services = Depends(get_services)):
        month_num, year_num = parse_period(month, year)
        budget = storage.get_budget_settings(user.id)
        if budget is None:
            raise HTTPException(status_code=400, detail="Budget settings not found, required for insights")

        try:
            transactions = storage.get_transactions_by_month(user.id, month_num, year_num)
            previous = storage.get_transactions_by_month(user.id, *previous_period(month_num, year_num))
            goals = storage.get_goals(user.id)
        except Exception:
            logger.exception("Error loading data for insights")
            raise HTTPException(status_code=500, detail="An error occurred while generating insights")

        if not transactions:
            return fallback_insights()
        return services.insights.generate_spending_insights(transactions, goals, budget.monthly_budget, previous)

    @app.post("/api/ai/advice", response_model=AdviceResponse)
    async def ai_advice(data: AdviceRequest, user: User = Depends(get_current_user), storage=Depends(get_storage),
                        services: Services = Depends(get_services)):
        if not data.question or not data.question.strip():
            raise HTTPException(status_code=400, detail="Question is required")
        try:
            transactions = storage.get_transactions(user.id)
            goals = storage.get_goals(user.id)
        except Exception:
            logger.exception("Error loading data for advice")
            return AdviceResponse(advice=FALLBACK_ADVICE)
        return AdviceResponse(advice=services.insights.get_personalized_advice(data.question, transactions, goals))

    @app.get("/api/ai/spending-classification/{month}/{year}", response_model=SpendingClassification)
    async def spending_classification(month: str, year: str, user: User = Depends(get_current_user),
                                      services: Services = Depends(get_services)):
        month_num, year_num = parse_period(month, year)
        try:
            return services.classifier.classify_spending(user.id, month_num, year_num)
        except Exception:
            logger.exception("Error classifying spending")
            raise HTTPException(status_code=500, detail="Failed to classify spending")

    # ---------------- Spending alerts ----------------

    @app.get("/api/spending-alerts", response_model=List[SpendingAlert])
    async def list_alerts(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        return services.alerts.get_user_alerts(user.id)

    @app.post("/api/spending-alerts", response_model=SpendingAlert, status_code=status.HTTP_201_CREATED)
    async def create_alert(data: SpendingAlertCreate, user: User = Depends(get_current_user),
                           services: Services = Depends(get_services)):
        return services.alerts.create_alert(user.id, data)

    @app.get("/api/spending-alerts/check", response_model=List[AlertNotification])
    async def check_alerts(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        try:
            triggered = services.alerts.check_alerts(user.id)
            return [
                AlertNotification(
                    alert=t.alert,
                    amount_spent=t.amount_spent,
                    message=services.alerts.generate_notification(t),
                )
                for t in triggered
            ]
        except Exception:
            logger.exception("Error checking alerts")
            raise HTTPException(status_code=500, detail="Failed to check alerts")

    @app.patch("/api/spending-alerts/{alert_id}", response_model=SpendingAlert)
    async def update_alert(alert_id: int, data: SpendingAlertUpdate, user: User = Depends(get_current_user),
                           services: Services = Depends(get_services)):
        _owned_or_404(services.alerts.get_alert(alert_id), user, "Alert not found")
        return services.alerts.update_alert(alert_id, data)

    @app.delete("/api/spending-alerts/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_alert(alert_id: int, user: User = Depends(get_current_user),
                           services: Services = Depends(get_services)):
        _owned_or_404(services.alerts.get_alert(alert_id), user, "Alert not found")
        services.alerts.delete_alert(alert_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ---------------- Savings challenges ----------------

    @app.get("/api/savings-challenges", response_model=List[SavingsChallenge])
    async def list_challenges(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        return services.challenges.get_user_challenges(user.id)

    @app.get("/api/savings-challenges/active", response_model=List[SavingsChallenge])
    async def active_challenges(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        return services.challenges.get_active_challenges(user.id)

    @app.post("/api/savings-challenges", response_model=SavingsChallenge, status_code=status.HTTP_201_CREATED)
    async def create_challenge(data: SavingsChallengeCreate, user: User = Depends(get_current_user),
                               services: Services = Depends(get_services)):
        return services.challenges.create_challenge(user.id, data)

    @app.patch("/api/savings-challenges/{challenge_id}", response_model=SavingsChallenge)
    async def update_challenge(challenge_id: int, data: SavingsChallengeUpdate,
                               user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        _owned_or_404(services.challenges.get_challenge(challenge_id), user, "Challenge not found")
        return services.challenges.update_challenge(challenge_id, data)

    @app.delete("/api/savings-challenges/{challenge_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_challenge(challenge_id: int, user: User = Depends(get_current_user),
                               services: Services = Depends(get_services)):
        _owned_or_404(services.challenges.get_challenge(challenge_id), user, "Challenge not found")
        services.challenges.delete_challenge(challenge_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/api/savings-challenges/{challenge_id}/add-savings", response_model=SavingsChallenge)
    async def add_savings(challenge_id: int, data: AddSavingsRequest, user: User = Depends(get_current_user),
                          services: Services = Depends(get_services)):
        if data.amount <= 0:
            raise HTTPException(status_code=400, detail="Valid amount is required")
        _owned_or_404(services.challenges.get_challenge(challenge_id), user, "Challenge not found")
        return services.challenges.add_savings(challenge_id, data.amount)

    @app.get("/api/savings-suggestion", response_model=SuggestionResponse)
    async def savings_suggestion(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        try:
            return SuggestionResponse(suggestion=services.challenges.generate_savings_suggestion(user.id))
        except Exception:
            logger.exception("Error generating savings suggestion")
            raise HTTPException(status_code=500, detail="Failed to generate savings suggestion")

    # ---------------- Payment gateways ----------------

    @app.post("/api/razorpay/create-order")
    async def create_razorpay_order(data: RazorpayOrderRequest, user: User = Depends(get_current_user)):
        if not data.amount or data.amount <= 0:
            raise HTTPException(status_code=400, detail="Valid amount is required")
        # Simulated order; a live integration would call the Razorpay SDK here
        return {
            "id": f"order_{int(time.time() * 1000)}",
            "entity": "order",
            "amount": data.amount,
            "amount_paid": 0,
            "amount_due": data.amount,
            "currency": data.currency,
            "receipt": data.receipt,
            "status": "created",
            "attempts": 0,
            "notes": data.notes,
            "created_at": datetime.now().isoformat(),
        }

    @app.post("/api/plaid/create-link-token")
    async def plaid_link_token(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
        try:
            return services.plaid.create_link_token(user.id)
        except Exception:
            logger.exception("Plaid link token request failed")
            raise HTTPException(status_code=500, detail="Failed to create Plaid link token")

    @app.post("/api/plaid/exchange-public-token")
    async def plaid_exchange(data: PublicTokenRequest, user: User = Depends(get_current_user),
                             services: Services = Depends(get_services)):
        if not data.public_token:
            raise HTTPException(status_code=400, detail="Public token is required")
        try:
            return {"success": True, **services.plaid.exchange_public_token(data.public_token)}
        except Exception:
            logger.exception("Plaid token exchange failed")
            raise HTTPException(status_code=500, detail="Failed to exchange Plaid token")

    return app


def main():
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("savevibe.app:create_app", factory=True, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
