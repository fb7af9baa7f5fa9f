import logging
import re
from typing import List, Optional

from savevibe.schemas import AppSpending, ConnectAppRequest, ConnectedApp, ConnectedAppCreate

logger = logging.getLogger(__name__)

# Common app URLs
APP_URLS = {
    "amazon": "https://amazon.com",
    "zomato": "https://zomato.com",
    "ubereats": "https://ubereats.com",
    "walmart": "https://walmart.com",
    "target": "https://target.com",
    "netflix": "https://netflix.com",
    "spotify": "https://spotify.com",
    "hulu": "https://hulu.com",
    "disney+": "https://disneyplus.com",
    "doordash": "https://doordash.com",
    "grubhub": "https://grubhub.com",
    "instacart": "https://instacart.com",
    "ebay": "https://ebay.com",
    "etsy": "https://etsy.com",
}


def resolve_app_website(app_name: str, website: Optional[str] = None) -> str:
    if website:
        return website
    name = app_name.lower()
    if name in APP_URLS:
        return APP_URLS[name]
    slug = re.sub(r"\s+", "", name)
    return f"https://{slug}.com"


class ConnectedAppsService:
    def __init__(self, storage):
        self.storage = storage

    def get_user_connected_apps(self, user_id: int) -> List[ConnectedApp]:
        return self.storage.get_connected_apps(user_id)

    def connect_app(self, user_id: int, data: ConnectAppRequest) -> ConnectedApp:
        website = resolve_app_website(data.app_name, data.website)
        logger.info("Connecting %s (%s) for user %s", data.app_name, website, user_id)
        return self.storage.create_connected_app(
            user_id,
            ConnectedAppCreate(app_name=data.app_name, app_type=data.app_type, connected=True),
        )

    def disconnect_app(self, app_id: int) -> Optional[ConnectedApp]:
        return self.storage.update_connected_app(app_id, {"connected": False})

    def get_app_spending(self, user_id: int, month: int, year: int) -> List[AppSpending]:
        """
        Expense totals per connected app for a 1-indexed month.  A transaction
        belongs to an app when its merchant contains the app name.
        """
        transactions = self.storage.get_transactions_by_month(user_id, month, year)

        spending = []
        for app in self.storage.get_connected_apps(user_id):
            if not app.connected:
                continue
            name = app.app_name.lower()
            total = sum(
                t.amount for t in transactions
                if t.type == "expense" and name in (t.merchant or "").lower()
            )
            if total > 0:
                spending.append(AppSpending(
                    app_id=app.id,
                    app_name=app.app_name,
                    app_type=app.app_type,
                    amount=total,
                    month=month,
                    year=year,
                ))
        return spending
