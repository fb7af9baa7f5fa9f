import logging
from typing import Dict, List, Optional

import pandas as pd

from savevibe.classifier import HeuristicPredictor, categorize_transactions
from savevibe.schemas import (
    CategoryBreakdown,
    Goal,
    Insight,
    InsightResponse,
    MonthlyInsights,
    MonthlyTrend,
    NextMonthPrediction,
    Period,
    SpendingAnalysis,
    Transaction,
)

logger = logging.getLogger(__name__)

FALLBACK_ADVICE = "I'm having trouble analyzing your financial data right now. Please try again later."

TX_COLUMNS = ["date", "amount", "category", "type", "is_want", "merchant"]


def fallback_insights() -> InsightResponse:
    return InsightResponse(
        summary="We couldn't generate personalized insights at this time due to insufficient data.",
        insights=[
            Insight(
                type="spending_pattern",
                title="Review your transactions",
                description="Please add more transaction data to get personalized insights.",
                confidence_score=1,
            )
        ],
        monthly_trend=MonthlyTrend(description="Not enough data to determine spending trends."),
        next_month_prediction=NextMonthPrediction(description="Add more transactions to get spending predictions."),
        saving_tips=["Track your expenses regularly", "Set clear financial goals"],
    )


def _prep(transactions: List[Transaction]) -> pd.DataFrame:
    """
    Frames transactions for analysis.
    """
    if not transactions:
        return pd.DataFrame(columns=TX_COLUMNS)

    df = pd.DataFrame([t.model_dump(include=set(TX_COLUMNS)) for t in transactions], columns=TX_COLUMNS)
    df["date"] = pd.to_datetime(df["date"])
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce").fillna(0.0)
    df["is_want"] = df["is_want"].fillna(False).astype(bool)
    return df


def _expenses(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["type"] == "expense"]


def _goal_savings(goals: List[Goal]) -> float:
    return float(sum(g.current_amount for g in goals if (g.current_amount or 0) > 0))


def _rupees(amount: float) -> str:
    return f"₹{amount:,.0f}"


class InsightService:
    """Month summaries plus rule-based narrated insights and advice."""

    def __init__(self, storage, predictor=None):
        self.storage = storage
        self.predictor = predictor or HeuristicPredictor()

    def monthly_insights(self, user_id: int, month: int, year: int) -> MonthlyInsights:
        """Money Wrapped numbers for a 1-indexed month."""
        df = _prep(self.storage.get_transactions_by_month(user_id, month, year))
        expenses = _expenses(df)

        # Categories keep first-seen order so ties resolve to the earliest
        by_category = expenses.groupby("category", sort=False)["amount"].sum()
        spending_by_category = {str(c): float(a) for c, a in by_category.items()}

        top_category, top_amount = "", 0.0
        for category, amount in spending_by_category.items():
            if amount > top_amount:
                top_category, top_amount = category, amount

        merchant_counts = expenses.dropna(subset=["merchant"])
        merchant_counts = merchant_counts[merchant_counts["merchant"] != ""]
        merchant_counts = merchant_counts.groupby("merchant", sort=False).size()
        top_merchant, top_count = "", 0
        for merchant, count in merchant_counts.items():
            if count > top_count:
                top_merchant, top_count = str(merchant), int(count)

        return MonthlyInsights(
            spending_by_category=spending_by_category,
            top_category=top_category,
            top_amount=top_amount,
            total_spending=float(expenses["amount"].sum()) if not expenses.empty else 0.0,
            total_saving=_goal_savings(self.storage.get_goals(user_id)),
            top_merchant=top_merchant,
            top_count=top_count,
            biggest_spend=float(expenses["amount"].max()) if not expenses.empty else 0.0,
            transaction_count=len(expenses),
        )

    def analyze_spending(self, user_id: int, month: int, year: int) -> SpendingAnalysis:
        """Wants vs needs split for the month, driven by each row's ``is_want`` flag."""
        df = _prep(self.storage.get_transactions_by_month(user_id, month, year))

        wants_total = float(df.loc[df["is_want"], "amount"].sum()) if not df.empty else 0.0
        needs_total = float(df.loc[~df["is_want"], "amount"].sum()) if not df.empty else 0.0
        total_spending = wants_total + needs_total

        breakdown: Dict[str, CategoryBreakdown] = {}
        for category, group in df.groupby("category", sort=False):
            wants = float(group.loc[group["is_want"], "amount"].sum())
            needs = float(group.loc[~group["is_want"], "amount"].sum())
            breakdown[str(category)] = CategoryBreakdown(total=wants + needs, wants=wants, needs=needs)

        savings_total = _goal_savings(self.storage.get_goals(user_id))

        return SpendingAnalysis(
            total_spending=total_spending,
            wants_total=wants_total,
            needs_total=needs_total,
            wants_percentage=(wants_total / total_spending) * 100 if total_spending > 0 else 0,
            needs_percentage=(needs_total / total_spending) * 100 if total_spending > 0 else 0,
            category_breakdown=breakdown,
            savings_total=savings_total,
            savings_percentage=(
                (savings_total / (total_spending + savings_total)) * 100
                if total_spending + savings_total > 0 else 0
            ),
            transaction_count=len(df),
            period=Period(month=month, year=year),
        )

    def generate_spending_insights(
        self,
        transactions: List[Transaction],
        goals: List[Goal],
        monthly_budget: float,
        previous_transactions: Optional[List[Transaction]] = None,
    ) -> InsightResponse:
        """
        Narrate the month's numbers into saving opportunities, patterns and
        goal recommendations.  Falls back to a fixed response when there is
        nothing to analyze or the analysis fails.
        """
        try:
            return self._build_insights(transactions, goals, monthly_budget, previous_transactions or [])
        except Exception:
            logger.exception("Error generating spending insights")
            return fallback_insights()

    def _build_insights(self, transactions, goals, monthly_budget, previous_transactions) -> InsightResponse:
        df = _prep(transactions)
        expenses = _expenses(df)
        if expenses.empty:
            return fallback_insights()

        total_spent = float(expenses["amount"].sum())
        total_income = float(df.loc[df["type"] == "income", "amount"].sum())
        savings_rate = ((total_income - total_spent) / total_income) * 100 if total_income > 0 else 0.0
        remaining = monthly_budget - total_spent

        by_category = expenses.groupby("category")["amount"].sum().sort_values(ascending=False)
        wants_total = float(expenses.loc[expenses["is_want"], "amount"].sum())
        by_merchant = (
            expenses.dropna(subset=["merchant"]).groupby("merchant")["amount"].sum().sort_values(ascending=False)
        )

        insights = []

        if wants_total > 0:
            insights.append(
                Insight(
                    type="saving_opportunity",
                    title="Trim the wants",
                    description=(
                        f"{_rupees(wants_total)} of your {_rupees(total_spent)} spend went on wants. "
                        "Cutting a quarter of that would go straight into savings."
                    ),
                    saving_potential=round(wants_total * 0.25, 2),
                    confidence_score=0.8,
                )
            )

        top_category = str(by_category.index[0])
        top_share = float(by_category.iloc[0]) / total_spent
        insights.append(
            Insight(
                type="spending_pattern",
                title=f"{top_category.title()} leads your spending",
                description=(
                    f"{top_category} took {top_share * 100:.0f}% of this month's spending "
                    f"({_rupees(float(by_category.iloc[0]))})."
                ),
                confidence_score=0.9,
            )
        )

        if not by_merchant.empty:
            merchant = str(by_merchant.index[0])
            insights.append(
                Insight(
                    type="behavior_change",
                    title=f"Go easy on {merchant}",
                    description=(
                        f"You spent {_rupees(float(by_merchant.iloc[0]))} at {merchant}. "
                        "Try a no-spend week there and see how it feels."
                    ),
                    saving_potential=round(float(by_merchant.iloc[0]) * 0.1, 2),
                    confidence_score=0.6,
                )
            )

        open_goals = [g for g in goals if g.target_amount > (g.current_amount or 0)]
        if open_goals:
            goal = max(open_goals, key=lambda g: g.current_amount / g.target_amount if g.target_amount else 0)
            gap = goal.target_amount - (goal.current_amount or 0)
            monthly_surplus = max(remaining, 0)
            eta = f" At this month's surplus that is about {gap / monthly_surplus:.1f} months away." if monthly_surplus else ""
            insights.append(
                Insight(
                    type="goal_recommendation",
                    title=f"Push on {goal.name}",
                    description=f"You're {_rupees(gap)} away from {goal.name}.{eta}",
                    confidence_score=0.7,
                )
            )

        trend = MonthlyTrend(description="This is your first tracked month, so there is no trend yet.")
        previous_spent = float(_expenses(_prep(previous_transactions))["amount"].sum()) if previous_transactions else 0.0
        if previous_spent > 0:
            change = ((total_spent - previous_spent) / previous_spent) * 100
            direction = "up" if change > 0 else "down"
            trend = MonthlyTrend(
                description=f"Spending is {direction} {abs(change):.0f}% compared with last month.",
                change_percentage=round(change, 1),
                is_positive=change <= 0,
            )

        expense_rows = [t for t in transactions if t.type == "expense"]
        predictions = self.predictor.predict_next_month(categorize_transactions(expense_rows), expense_rows)
        predicted_amount = float(sum(p.predicted_amount for p in predictions))
        next_month = NextMonthPrediction(
            description=f"Next month is shaping up to be around {_rupees(predicted_amount)} across your top categories.",
            predicted_amount=predicted_amount,
        )

        if remaining >= 0:
            summary = f"You've spent {_rupees(total_spent)} of your {_rupees(monthly_budget)} budget, with {_rupees(remaining)} left."
        else:
            summary = f"You've spent {_rupees(total_spent)}, which is {_rupees(-remaining)} over your {_rupees(monthly_budget)} budget."
        if total_income > 0:
            summary += f" Your savings rate is {savings_rate:.0f}%."

        tips = [
            f"Set a weekly cap for {top_category} and check it every Sunday",
            "Move money to savings on payday before you spend it",
        ]
        if wants_total > total_spent / 2:
            tips.append("Wait 24 hours before any non-essential purchase")

        return InsightResponse(
            summary=summary,
            insights=insights,
            monthly_trend=trend,
            next_month_prediction=next_month,
            saving_tips=tips,
        )

    def get_personalized_advice(self, question: str, transactions: List[Transaction], goals: List[Goal]) -> str:
        """Rule-based answer built from the top categories, wants vs needs and goals."""
        try:
            df = _expenses(_prep(transactions))
            parts = []

            if not df.empty:
                top = df.groupby("category")["amount"].sum().sort_values(ascending=False).head(3)
                listed = ", ".join(f"{c} ({_rupees(float(a))})" for c, a in top.items())
                parts.append(f"Your biggest spending categories are {listed}.")

                wants = float(df.loc[df["is_want"], "amount"].sum())
                needs = float(df.loc[~df["is_want"], "amount"].sum())
                if wants > needs:
                    parts.append(
                        f"Wants ({_rupees(wants)}) are ahead of needs ({_rupees(needs)}), "
                        "so that's the easiest place to find savings."
                    )
                else:
                    parts.append(f"Needs ({_rupees(needs)}) outweigh wants ({_rupees(wants)}), which is a solid base.")

            if goals:
                primary = next((g for g in goals if g.is_primary), goals[0])
                gap = max(primary.target_amount - (primary.current_amount or 0), 0)
                if gap > 0:
                    parts.append(f"You're {_rupees(gap)} away from {primary.name}; even small weekly transfers add up.")

            if not parts:
                parts.append("Start by logging a few weeks of spending so I can spot patterns for you.")

            parts.append(f"On '{question}': focus first on the categories where spend is rising fastest.")
            return " ".join(parts)
        except Exception:
            logger.exception("Error generating personalized advice")
            return FALLBACK_ADVICE