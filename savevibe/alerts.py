import logging
import math
import random
from datetime import datetime
from typing import Dict, List, Optional

from savevibe.schemas import (
    SpendingAlert,
    SpendingAlertCreate,
    SpendingAlertUpdate,
    Transaction,
    TriggeredAlert,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


def format_inr(amount: float) -> str:
    """Indian-style currency formatting, e.g. 123456.5 -> ₹1,23,456.50."""
    sign = "-" if amount < 0 else ""
    whole, fraction = f"{abs(amount):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}₹{whole}.{fraction}"


def filter_by_time_period(transactions: List[Transaction], time_period: str, now: datetime) -> List[Transaction]:
    """Keep transactions inside the alert window ending at ``now``."""
    selected = []
    for transaction in transactions:
        diff_days = math.ceil((now - transaction.date).total_seconds() / SECONDS_PER_DAY)
        if time_period == "daily":
            keep = diff_days <= 1
        elif time_period == "weekly":
            keep = diff_days <= 7
        elif time_period == "monthly":
            keep = transaction.date.month == now.month and transaction.date.year == now.year
        else:
            keep = False
        if keep:
            selected.append(transaction)
    return selected


class SpendingAlertsService:
    """Per-category spending thresholds and the notifications they raise."""

    def __init__(self, storage, rng: Optional[random.Random] = None):
        self.storage = storage
        self.rng = rng or random.Random()
        self.alerts: Dict[int, SpendingAlert] = {}
        self._next_id = 1

    def create_alert(self, user_id: int, data: SpendingAlertCreate) -> SpendingAlert:
        alert = SpendingAlert(
            id=self._next_id,
            user_id=user_id,
            category=data.category,
            threshold=data.threshold,
            time_period=data.time_period,
            message=data.message or self.default_message(data.category, data.threshold, data.time_period),
            is_active=data.is_active,
            created_at=datetime.now(),
        )
        self._next_id += 1
        self.alerts[alert.id] = alert
        return alert

    def get_alert(self, alert_id: int) -> Optional[SpendingAlert]:
        return self.alerts.get(alert_id)

    def get_user_alerts(self, user_id: int) -> List[SpendingAlert]:
        return [a for a in self.alerts.values() if a.user_id == user_id]

    def update_alert(self, alert_id: int, data: SpendingAlertUpdate) -> Optional[SpendingAlert]:
        alert = self.alerts.get(alert_id)
        if alert is None:
            return None

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        message = changes.pop("message", None)
        updated = alert.model_copy(update=changes)
        if message:
            updated = updated.model_copy(update={"message": message})
        elif {"category", "threshold", "time_period"} & changes.keys():
            updated = updated.model_copy(update={
                "message": self.default_message(updated.category, updated.threshold, updated.time_period)
            })

        self.alerts[alert_id] = updated
        return updated

    def delete_alert(self, alert_id: int) -> bool:
        return self.alerts.pop(alert_id, None) is not None

    def check_alerts(self, user_id: int, now: Optional[datetime] = None) -> List[TriggeredAlert]:
        """Active alerts whose category spend in the window is over the threshold."""
        now = now or datetime.now()
        transactions = self.storage.get_transactions(user_id)

        triggered = []
        for alert in self.get_user_alerts(user_id):
            if not alert.is_active:
                continue
            in_window = filter_by_time_period(transactions, alert.time_period, now)
            spent = sum(t.amount for t in in_window if t.category.lower() == alert.category.lower())
            if spent > alert.threshold:
                triggered.append(TriggeredAlert(alert=alert, amount_spent=spent))

        logger.debug("User %s: %d alert(s) triggered", user_id, len(triggered))
        return triggered

    def generate_notification(self, triggered: TriggeredAlert) -> str:
        alert = triggered.alert
        if alert.message:
            return (
                alert.message
                .replace("{amount}", format_inr(triggered.amount_spent), 1)
                .replace("{threshold}", format_inr(alert.threshold), 1)
                .replace("{category}", alert.category, 1)
                .replace("{period}", alert.time_period, 1)
            )
        return self.default_message(alert.category, triggered.amount_spent, alert.time_period)

    def default_message(self, category: str, amount: float, time_period: str) -> str:
        formatted = format_inr(amount)
        messages = [
            f"You've spent {formatted} on {category} this {time_period}!",
            f"Heads up! Your {category} spending has reached {formatted} this {time_period}.",
            f"Alert: You've spent {formatted} on {category} this {time_period}. That's above your target!",
            f"Your {time_period} {category} spending is now at {formatted}. Do you want to slow down?",
        ]
        return self.rng.choice(messages)

    def setup_sample_alerts(self, user_id: int) -> None:
        self.create_alert(user_id, SpendingAlertCreate(
            category="food",
            threshold=2000,
            time_period="weekly",
            message="You've spent {amount} on food this week, which is above your {threshold} target!",
        ))
        self.create_alert(user_id, SpendingAlertCreate(
            category="shopping",
            threshold=5000,
            time_period="monthly",
            message="Your monthly shopping spree has reached {amount}! That's over your {threshold} budget.",
        ))
        self.create_alert(user_id, SpendingAlertCreate(
            category="entertainment",
            threshold=1000,
            time_period="weekly",
            message="Entertainment expenses this week: {amount}. Your limit is {threshold}.",
        ))
