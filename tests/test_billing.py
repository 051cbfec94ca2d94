"""Tests for the Deepgram billing client."""

import pytest
import requests

from vkpanel.billing import Balance, BillingClient, BillingError, format_balances


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def client():
    return BillingClient(api_key="secret", timeout=3)


def install(monkeypatch, client, result):
    calls = []

    def fake_get(url, headers, timeout):
        calls.append((url, headers, timeout))
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(client._session, "get", fake_get)
    return calls


def test_get_balances(monkeypatch, client):
    payload = {
        "balances": [
            {"balance_id": "b1", "amount": 187.5, "units": "usd"},
            {"balance_id": "b2", "amount": 3, "units": "hour"},
        ]
    }
    calls = install(monkeypatch, client, FakeResponse(payload=payload))

    balances = client.get_balances("proj-9")

    assert balances == [Balance("b1", 187.5, "usd"), Balance("b2", 3.0, "hour")]
    url, headers, timeout = calls[0]
    assert url == "https://api.deepgram.com/v1/projects/proj-9/balances"
    assert headers == {"Authorization": "Token secret"}
    assert timeout == 3


def test_http_error(monkeypatch, client):
    install(monkeypatch, client, FakeResponse(status_code=401, reason="Unauthorized"))
    with pytest.raises(BillingError, match="API error: 401"):
        client.get_balances("p")


def test_connection_error(monkeypatch, client):
    install(monkeypatch, client, requests.ConnectionError("unreachable"))
    with pytest.raises(BillingError, match="Request failed"):
        client.get_balances("p")


@pytest.mark.parametrize("payload", [ValueError("not json"), {"nope": []}, {"balances": [{"amount": 1}]}])
def test_parse_error(monkeypatch, client, payload):
    install(monkeypatch, client, FakeResponse(payload=payload))
    with pytest.raises(BillingError, match="Parse error"):
        client.get_balances("p")


def test_missing_settings_fail_before_request(monkeypatch):
    client = BillingClient(api_key="")
    calls = install(monkeypatch, client, FakeResponse(payload={"balances": []}))
    with pytest.raises(BillingError, match="API key"):
        client.get_balances("p")

    client = BillingClient(api_key="k")
    calls = install(monkeypatch, client, FakeResponse(payload={"balances": []}))
    with pytest.raises(BillingError, match="Project ID"):
        client.get_balances("")
    assert calls == []


def test_format_balances():
    assert format_balances([]) == "No balance information available"
    assert format_balances([Balance("b", 12.346, "usd")]) == "Account Balance:\nusd: $12.35"
