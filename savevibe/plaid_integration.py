import datetime
import logging
import time

import plaid
from plaid.api import plaid_api
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": plaid.Environment.Sandbox,
    "production": plaid.Environment.Production,
}


def make_client(client_id, secret, env="sandbox"):
    """Build a Plaid API client, or ``None`` when credentials are missing."""
    if not client_id or not secret:
        return None
    configuration = plaid.Configuration(
        host=PLAID_HOSTS.get(env, plaid.Environment.Sandbox),
        api_key={
            "clientId": client_id,
            "secret": secret,
        },
    )
    return plaid_api.PlaidApi(plaid.ApiClient(configuration))


class PlaidGateway:
    """
    Plaid Link token helpers.  Without credentials it answers with simulated
    sandbox responses so the onboarding flow can be exercised locally.
    """

    def __init__(self, client=None):
        self.client = client

    def create_link_token(self, user_id: int) -> dict:
        if not self.client:
            now_ms = int(time.time() * 1000)
            expiration = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=4)
            return {
                "link_token": f"link-sandbox-{user_id}-{now_ms}",
                "expiration": expiration.isoformat(),
                "request_id": f"request-{now_ms}",
            }

        request = LinkTokenCreateRequest(
            products=[Products("transactions")],
            client_name="SaveVibe",
            country_codes=[CountryCode("US")],
            language="en",
            user=LinkTokenCreateRequestUser(client_user_id=str(user_id)),
        )
        response = self.client.link_token_create(request)
        return {
            "link_token": response["link_token"],
            "expiration": str(response["expiration"]),
            "request_id": response["request_id"],
        }

    def exchange_public_token(self, public_token: str) -> dict:
        if not self.client:
            now_ms = int(time.time() * 1000)
            return {
                "access_token": f"access-sandbox-{now_ms}",
                "item_id": f"item-sandbox-{now_ms}",
                "request_id": f"request-{now_ms}",
            }

        request = ItemPublicTokenExchangeRequest(public_token=public_token)
        response = self.client.item_public_token_exchange(request)
        return {
            "access_token": response["access_token"],
            "item_id": response["item_id"],
            "request_id": response["request_id"],
        }
