"""
Spending classification for a user's month.

Buckets expense transactions into necessities, wants and savings, surfaces the
top categories, detects how often each category recurs, and produces a naive
next-month forecast per category.

The "prediction" is a heuristic stand-in for a trained model: the current
month's category total with a bounded random perturbation.  It lives behind
``SpendingPredictor`` so a learned model can be dropped in without touching
``SpendingClassifierService`` or its callers.
"""
from __future__ import annotations

import logging
import math
import random
from typing import Dict, Iterable, List, Optional, Protocol

import pandas as pd

from savevibe.schemas import (
    SpendingClassification,
    SpendingPattern,
    SpendingPredict,
    TopCategory,
    Transaction,
)

logger = logging.getLogger(__name__)

# Known categories and whether they are a necessity (True) or a want (False)
CATEGORY_CLASSIFICATION: Dict[str, bool] = {
    "rent": True,
    "mortgage": True,
    "utilities": True,
    "groceries": True,
    "healthcare": True,
    "insurance": True,
    "transportation": True,
    "education": True,
    "childcare": True,
    "dining": False,
    "entertainment": False,
    "shopping": False,
    "travel": False,
    "gifts": False,
    "subscriptions": False,
    "beauty": False,
    "clothing": False,
    "electronics": False,
    "hobbies": False,
    "food": True,
    "savings": True,
    "investment": True,
}

NECESSITY_KEYWORDS = ["bill", "utility", "rent", "food", "grocery", "health", "medical", "transport"]

SAVINGS_CATEGORIES = ("savings", "investment")

NECESSITY_SAVINGS_RATE = 0.05
WANT_SAVINGS_RATE = 0.25

DAILY_MAX_GAP_DAYS = 2
WEEKLY_MAX_GAP_DAYS = 10

TOP_CATEGORY_LIMIT = 5
PREDICTION_LIMIT = 5

SECONDS_PER_DAY = 60 * 60 * 24

FRAME_COLUMNS = ["date", "amount", "category"]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def is_necessity(category: str) -> bool:
    """Classify a free-text category label as a necessity (True) or a want."""
    label = (category or "").strip().lower()
    if CATEGORY_CLASSIFICATION.get(label):
        return True
    return any(keyword in label for keyword in NECESSITY_KEYWORDS)


def transactions_to_df(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Frame the fields the classifier needs, with lower-cased categories."""
    rows = [
        {"date": t.date, "amount": float(t.amount), "category": t.category.lower()}
        for t in transactions
    ]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["date"] = pd.to_datetime(df["date"])
    return df


def categorize_transactions(transactions: Iterable[Transaction]) -> Dict[str, float]:
    """Sum amounts per lower-cased category."""
    df = transactions_to_df(transactions)
    if df.empty:
        return {}
    totals = df.groupby("category", sort=False)["amount"].sum()
    return {category: float(amount) for category, amount in totals.items()}


def classify_necessities_and_wants(categorized: Dict[str, float]) -> Dict[str, float]:
    necessities = wants = savings = 0.0
    for category, amount in categorized.items():
        label = category.lower()
        if label in SAVINGS_CATEGORIES:
            savings += amount
        elif is_necessity(label):
            necessities += amount
        else:
            wants += amount
    return {"necessities": necessities, "wants": wants, "savings": savings}


def generate_top_categories(categorized: Dict[str, float], total_spending: float) -> List[TopCategory]:
    ranked = sorted(categorized.items(), key=lambda item: item[1], reverse=True)
    return [
        TopCategory(
            category=category,
            amount=amount,
            percentage=(amount / total_spending) * 100 if total_spending > 0 else 0,
        )
        for category, amount in ranked[:TOP_CATEGORY_LIMIT]
    ]


def frequency_for_gap(avg_days: float) -> str:
    if avg_days <= DAILY_MAX_GAP_DAYS:
        return "daily"
    if avg_days <= WEEKLY_MAX_GAP_DAYS:
        return "weekly"
    return "monthly"


def identify_patterns(categorized: Dict[str, float], transactions: Iterable[Transaction]) -> List[SpendingPattern]:
    """
    Detect the cadence of each category that has at least two transactions.

    The gap between consecutive transactions is rounded to whole days before
    averaging.  Results are ordered by savings potential, highest first.
    """
    df = transactions_to_df(transactions)
    if df.empty:
        return []

    patterns = []
    for category, group in df.groupby("category", sort=False):
        if len(group) < 2:
            continue

        group = group.sort_values("date", kind="stable")
        gaps = [
            round_half_up(seconds / SECONDS_PER_DAY)
            for seconds in group["date"].diff().dropna().dt.total_seconds()
        ]
        avg_days = sum(gaps) / len(gaps)

        average_amount = float(group["amount"].sum()) / len(group)
        necessity = is_necessity(category)
        rate = NECESSITY_SAVINGS_RATE if necessity else WANT_SAVINGS_RATE

        patterns.append(
            SpendingPattern(
                category=category,
                frequency=frequency_for_gap(avg_days),
                average_amount=average_amount,
                is_necessity=necessity,
                savings_potential=round_half_up(average_amount * rate),
            )
        )

    return sorted(patterns, key=lambda p: p.savings_potential, reverse=True)


class SpendingPredictor(Protocol):
    def predict_next_month(
        self, categorized: Dict[str, float], transactions: Iterable[Transaction]
    ) -> List[SpendingPredict]: ...


class HeuristicPredictor:
    """
    Next month ~= this month's category total +/- up to 10%.

    Confidence grows with the number of transactions in the category (capped
    at 0.9) plus up to 0.1 of noise.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def predict_next_month(
        self, categorized: Dict[str, float], transactions: Iterable[Transaction]
    ) -> List[SpendingPredict]:
        df = transactions_to_df(transactions)
        counts = df.groupby("category").size() if not df.empty else pd.Series(dtype=int)

        predictions = []
        for category, amount in categorized.items():
            count = int(counts.get(category.lower(), 0))
            if count == 0:
                continue

            variance = self.rng.random() * 0.2 - 0.1
            confidence = min(count / 10, 0.9) + self.rng.random() * 0.1

            predictions.append(
                SpendingPredict(
                    category=category,
                    predicted_amount=round_half_up(amount * (1 + variance)),
                    confidence=round(confidence, 2),
                )
            )

        predictions.sort(key=lambda p: p.predicted_amount, reverse=True)
        return predictions[:PREDICTION_LIMIT]


class SpendingClassifierService:
    def __init__(self, storage, predictor: Optional[SpendingPredictor] = None):
        self.storage = storage
        self.predictor = predictor or HeuristicPredictor()

    def classify_spending(self, user_id: int, month: int, year: int) -> SpendingClassification:
        """Classify a user's expenses for a 1-indexed month."""
        transactions = [
            t for t in self.storage.get_transactions_by_month(user_id, month, year)
            if t.type == "expense"
        ]
        return self.classify_transactions(transactions)

    def classify_transactions(self, transactions: List[Transaction]) -> SpendingClassification:
        total_spending = float(sum(t.amount for t in transactions))
        categorized = categorize_transactions(transactions)
        buckets = classify_necessities_and_wants(categorized)

        logger.debug("Classified %d transactions into %d categories", len(transactions), len(categorized))

        return SpendingClassification(
            total_spending=total_spending,
            necessities=buckets["necessities"],
            wants=buckets["wants"],
            savings=buckets["savings"],
            top_categories=generate_top_categories(categorized, total_spending),
            patterns=identify_patterns(categorized, transactions),
            next_month_predictions=self.predictor.predict_next_month(categorized, transactions),
        )
