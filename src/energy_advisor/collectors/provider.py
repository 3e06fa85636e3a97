"""Energy-provider consumption API client.

Two providers share the same interface:

- ``HttpEnergyProvider`` talks to a provider REST API over httpx.
- ``MockEnergyProvider`` generates realistic half-hourly data in process.
  Its account registry is injected so tests can isolate instances.

``get_provider()`` picks the HTTP provider when ``ENERGY_PROVIDER_URL`` is set.
"""

import logging
import os
import random
from datetime import datetime, time, timedelta

import httpx
from dotenv import load_dotenv

from ..intervals import SLOT_MINUTES, slot_index
from ..models import ConsumptionReading

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNTS = {
    "ACC001": "password123",
    "ACC002": "securepass456",
    "ACC003": "energyuser789",
    "TEST123": "testpass",
}

# Typical household profile (kWh per half-hour), one value per slot
CONSUMPTION_PATTERN = [
    0.25, 0.22, 0.20, 0.20, 0.20, 0.20, 0.20, 0.20,  # 00:00-04:00
    0.22, 0.25, 0.30, 0.40, 0.60, 0.85, 1.10, 1.15,  # 04:00-08:00
    0.90, 0.70, 0.50, 0.45, 0.40, 0.40, 0.35, 0.35,  # 08:00-12:00
    0.35, 0.35, 0.40, 0.40, 0.45, 0.55, 0.65, 0.75,  # 12:00-16:00
    0.90, 1.10, 1.40, 1.65, 1.80, 1.75, 1.60, 1.40,  # 16:00-20:00
    1.20, 1.00, 0.80, 0.60, 0.45, 0.35, 0.30, 0.25,  # 20:00-24:00
]


class ProviderError(Exception):
    """Base exception for energy-provider errors."""
    pass


class AccountRegistry:
    """Known provider accounts and their passwords."""

    def __init__(self, accounts: dict[str, str] | None = None, auto_register: bool = True):
        self._accounts = dict(DEFAULT_ACCOUNTS if accounts is None else accounts)
        self.auto_register = auto_register

    def add(self, account_id: str, password: str) -> None:
        self._accounts[account_id] = password

    def remove(self, account_id: str) -> None:
        self._accounts.pop(account_id, None)

    def reset(self) -> None:
        self._accounts = dict(DEFAULT_ACCOUNTS)

    def get(self, account_id: str) -> str | None:
        return self._accounts.get(account_id)

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._accounts


class MockEnergyProvider:
    """In-process provider for development and tests."""

    def __init__(self, registry: AccountRegistry | None = None, rng: random.Random | None = None):
        self.registry = registry or AccountRegistry()
        self.rng = rng or random.Random()

    def validate_credentials(self, account_id: str, password: str) -> dict:
        """Check account credentials. Unknown accounts are registered on first use."""
        if not account_id or not password:
            return {"success": False, "message": "Account ID and password are required"}

        if account_id not in self.registry and self.registry.auto_register:
            self.registry.add(account_id, password)

        if self.registry.get(account_id) != password:
            return {"success": False, "message": "Invalid credentials"}

        return {"success": True, "message": "Account validated successfully"}

    def get_consumption_data(self, account_id: str, start: datetime, end: datetime) -> list[ConsumptionReading]:
        """Half-hourly readings covering whole days from start to end."""
        if not account_id:
            raise ProviderError("Energy account ID is required")

        current = datetime.combine(start.date(), time.min)
        last = datetime.combine(end.date(), time.max)
        step = timedelta(minutes=SLOT_MINUTES)

        readings = []
        while current <= last:
            base = CONSUMPTION_PATTERN[slot_index(current)]
            # ±10% variation
            consumption = base * (0.9 + self.rng.random() * 0.2)
            readings.append(ConsumptionReading(current, round(consumption, 2)))
            current += step

        return readings


class HttpEnergyProvider:
    """Client for a provider REST API."""

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def validate_credentials(self, account_id: str, password: str) -> dict:
        url = f"{self.base_url}/accounts/validate"
        try:
            response = httpx.post(
                url,
                json={"account_id": account_id, "password": password},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Network error connecting to provider: {e}") from e

        if response.status_code in (401, 403):
            return {"success": False, "message": "Invalid credentials"}
        if response.is_error:
            raise ProviderError(f"HTTP error from provider: {response.status_code}")
        return {"success": True, "message": "Account validated successfully"}

    def get_consumption_data(self, account_id: str, start: datetime, end: datetime) -> list[ConsumptionReading]:
        url = f"{self.base_url}/accounts/{account_id}/consumption"
        params = {"start": start.isoformat(), "end": end.isoformat()}

        try:
            response = httpx.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"HTTP error from provider: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Network error connecting to provider: {e}") from e

        readings = []
        for item in data or []:
            try:
                readings.append(
                    ConsumptionReading(
                        timestamp=datetime.fromisoformat(item["timestamp"]).replace(tzinfo=None),
                        consumption_kwh=float(item["consumption_kwh"]),
                    )
                )
            except (KeyError, ValueError, TypeError):
                logger.warning("Skipping malformed provider reading: %r", item)
                continue

        return readings


def get_provider() -> MockEnergyProvider | HttpEnergyProvider:
    """Provider configured from the environment (mock when no URL is set)."""
    base_url = os.environ.get("ENERGY_PROVIDER_URL")
    if base_url:
        return HttpEnergyProvider(base_url, os.environ.get("ENERGY_PROVIDER_TOKEN"))
    return MockEnergyProvider()
