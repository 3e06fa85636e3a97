"""Tests for the energy-provider clients."""

import random
from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest
from energy_advisor.collectors import provider
from energy_advisor.collectors.provider import (
    AccountRegistry,
    HttpEnergyProvider,
    MockEnergyProvider,
    ProviderError,
)


@pytest.fixture
def mock_get():
    with patch("energy_advisor.collectors.provider.httpx.get") as mock:
        yield mock


@pytest.fixture
def mock_post():
    with patch("energy_advisor.collectors.provider.httpx.post") as mock:
        yield mock


def make_response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.is_error = status_code >= 400
    response.json.return_value = data
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=response
        )
    return response


def test_fetch_consumption_success(mock_get):
    """Test successful fetching and parsing of readings."""
    mock_get.return_value = make_response(data=[
        {"timestamp": "2024-06-17T00:00:00+00:00", "consumption_kwh": 0.25},
        {"timestamp": "2024-06-17T00:30:00", "consumption_kwh": "0.5"},
        {"timestamp": "2024-06-17T01:00:00"},
    ])

    client = HttpEnergyProvider("https://provider.test/", token="secret")
    readings = client.get_consumption_data("ACC001", datetime(2024, 6, 17), datetime(2024, 6, 18))

    assert len(readings) == 2
    assert readings[0].timestamp == datetime(2024, 6, 17, 0, 0)
    assert readings[1].consumption_kwh == 0.5

    url = mock_get.call_args.args[0]
    assert url == "https://provider.test/accounts/ACC001/consumption"
    assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"


def test_fetch_consumption_http_error(mock_get):
    """Test handling of HTTP errors."""
    mock_get.return_value = make_response(status_code=503)

    with pytest.raises(ProviderError, match="503"):
        HttpEnergyProvider("https://provider.test").get_consumption_data(
            "ACC001", datetime(2024, 6, 17), datetime(2024, 6, 18)
        )


def test_fetch_consumption_network_error(mock_get):
    """Test handling of network errors."""
    mock_get.side_effect = httpx.ConnectError("Connection refused")

    with pytest.raises(ProviderError, match="Network error"):
        HttpEnergyProvider("https://provider.test").get_consumption_data(
            "ACC001", datetime(2024, 6, 17), datetime(2024, 6, 18)
        )


def test_validate_credentials_http(mock_post):
    mock_post.return_value = make_response(status_code=200)
    assert HttpEnergyProvider("https://provider.test").validate_credentials("ACC001", "pw")["success"]

    mock_post.return_value = make_response(status_code=401)
    result = HttpEnergyProvider("https://provider.test").validate_credentials("ACC001", "bad")
    assert result == {"success": False, "message": "Invalid credentials"}


def test_mock_provider_credentials():
    registry = AccountRegistry()
    client = MockEnergyProvider(registry)

    assert client.validate_credentials("ACC001", "password123")["success"]
    assert not client.validate_credentials("ACC001", "nope")["success"]
    assert not client.validate_credentials("", "pw")["success"]


def test_mock_provider_auto_registers_new_accounts():
    registry = AccountRegistry()
    client = MockEnergyProvider(registry)

    assert client.validate_credentials("NEW1", "first")["success"]
    assert "NEW1" in registry
    assert not client.validate_credentials("NEW1", "second")["success"]

    strict = MockEnergyProvider(AccountRegistry(auto_register=False))
    assert not strict.validate_credentials("NEW2", "first")["success"]


def test_registry_instances_are_isolated():
    a, b = AccountRegistry(), AccountRegistry()
    a.add("ONLY_A", "pw")
    assert "ONLY_A" in a
    assert "ONLY_A" not in b
    a.reset()
    assert "ONLY_A" not in a


def test_mock_provider_readings_cover_whole_days():
    client = MockEnergyProvider(AccountRegistry(), rng=random.Random(42))
    readings = client.get_consumption_data("ACC001", datetime(2024, 6, 17, 15), datetime(2024, 6, 18, 2))

    assert len(readings) == 96
    assert readings[0].timestamp == datetime(2024, 6, 17, 0, 0)
    for reading in readings:
        base = provider.CONSUMPTION_PATTERN[reading.timestamp.hour * 2 + reading.timestamp.minute // 30]
        assert base * 0.9 - 0.01 <= reading.consumption_kwh <= base * 1.1 + 0.01


def test_get_provider_from_environment(monkeypatch):
    monkeypatch.delenv("ENERGY_PROVIDER_URL", raising=False)
    assert isinstance(provider.get_provider(), MockEnergyProvider)

    monkeypatch.setenv("ENERGY_PROVIDER_URL", "https://provider.test")
    monkeypatch.setenv("ENERGY_PROVIDER_TOKEN", "abc")
    client = provider.get_provider()
    assert isinstance(client, HttpEnergyProvider)
    assert client.token == "abc"
