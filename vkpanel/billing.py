"""
Deepgram billing client for vkpanel.

Fetches the account balances of a Deepgram project for the control panel.
"""

from dataclasses import dataclass
from typing import List

import requests


API_BASE = "https://api.deepgram.com/v1"


class BillingError(Exception):
    """Exception raised for billing API errors."""
    pass


@dataclass
class Balance:
    """One balance entry of a project."""
    balance_id: str
    amount: float
    units: str


class BillingClient:
    """
    Client for the Deepgram balances endpoint.

    Usage:
        client = BillingClient(api_key="your-key")
        balances = client.get_balances("project-id")
        print(format_balances(balances))
    """

    def __init__(self, api_key: str, timeout: float = 10.0, base_url: str = API_BASE):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._session = requests.Session()

    def get_balances(self, project_id: str) -> List[Balance]:
        """
        Fetch the balances of ``project_id``.

        Raises:
            BillingError: If the key or project id is missing, the request
                          fails, or the response cannot be parsed
        """
        if not self.api_key:
            raise BillingError("API key is not set")
        if not project_id:
            raise BillingError("Project ID is not set")

        url = f"{self.base_url}/projects/{project_id}/balances"
        try:
            response = self._session.get(
                url,
                headers={"Authorization": f"Token {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BillingError(f"Request failed: {e}") from e

        if not response.ok:
            raise BillingError(f"API error: {response.status_code} {response.reason}")

        try:
            data = response.json()
            return [
                Balance(
                    balance_id=str(item["balance_id"]),
                    amount=float(item["amount"]),
                    units=str(item["units"]),
                )
                for item in data["balances"]
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise BillingError(f"Parse error: {e}") from e


def format_balances(balances: List[Balance]) -> str:
    """Render balances for display."""
    if not balances:
        return "No balance information available"
    lines = "\n".join(f"{b.units}: ${b.amount:.2f}" for b in balances)
    return f"Account Balance:\n{lines}"
