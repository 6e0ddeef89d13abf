import pytest
import requests

import inventory_api
from conftest import FakeResponse
from errors import ResolutionError, TransportError
from inventory_api import InventoryApiClient


@pytest.fixture()
def client():
    return InventoryApiClient(base_url="http://backend/")


def _route(monkeypatch, handler):
    calls = []

    def fake_request(method, url, headers=None, timeout=None, **kwargs):
        calls.append((method, url, kwargs))
        return handler(method, url, kwargs)

    monkeypatch.setattr(inventory_api.requests, "request", fake_request)
    return calls


class TestEntries:
    def test_missing_entry_is_created(self, client, monkeypatch):
        def handler(method, url, kwargs):
            return FakeResponse(404, {"detail": "not found"}) if method == "GET" else FakeResponse(201, {"id": 1})

        calls = _route(monkeypatch, handler)
        payload = {"transaction": {"transaction_no": "TR-1-1"}}

        assert client.save_entry("ACME", "TR-1-1", payload) == "created"
        assert [c[0] for c in calls] == ["GET", "POST"]
        assert calls[0][1] == "http://backend/inward/ACME/TR-1-1"
        assert calls[1][1] == "http://backend/inward"
        assert calls[1][2]["json"] == payload

    def test_existing_entry_is_updated(self, client, monkeypatch):
        calls = _route(monkeypatch, lambda method, url, kwargs: FakeResponse(200, {"company": "ACME"}))

        assert client.save_entry("ACME", "TR-1-1", {}) == "updated"
        assert [c[0] for c in calls] == ["GET", "PUT"]

    def test_names_are_quoted(self, client, monkeypatch):
        calls = _route(monkeypatch, lambda method, url, kwargs: FakeResponse(404))
        client.get_entry("A B", "TR/1")
        assert calls[0][1] == "http://backend/inward/A%20B/TR%2F1"

    def test_server_error(self, client, monkeypatch):
        _route(monkeypatch, lambda method, url, kwargs: FakeResponse(500, {"detail": "DB down"}))
        with pytest.raises(TransportError) as info:
            client.get_entry("ACME", "TR-1")
        assert "DB down" in info.value.message

    def test_connection_error(self, client, monkeypatch):
        def fake_request(method, url, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(inventory_api.requests, "request", fake_request)
        with pytest.raises(TransportError):
            client.create_entry({})

    def test_html_instead_of_json(self, client, monkeypatch):
        _route(monkeypatch, lambda method, url, kwargs: FakeResponse(200, text="<html>Proxy-Anmeldung</html>"))
        with pytest.raises(TransportError) as info:
            client.get_entry("ACME", "TR-1")
        assert "kein JSON" in info.value.message

    def test_empty_body_after_create(self, client, monkeypatch):
        _route(monkeypatch, lambda method, url, kwargs: FakeResponse(201))
        assert client.create_entry({"transaction": {"transaction_no": "TR-1-1"}}) == {}


class TestResolveSku:
    def test_resolves(self, client, monkeypatch):
        calls = _route(monkeypatch, lambda method, url, kwargs: FakeResponse(200, {"sku_id": 42}))

        assert client.resolve_sku("Wheat Flour", "Flour", "", "acme") == 42
        method, url, kwargs = calls[0]
        assert url == "http://backend/inward/sku-id"
        assert kwargs["params"] == {"company": "ACME", "item_description": "Wheat Flour", "item_category": "Flour"}

    def test_accepts_id_field(self, client, monkeypatch):
        _route(monkeypatch, lambda method, url, kwargs: FakeResponse(200, {"id": "7"}))
        assert client.resolve_sku("Salt", "", "", "ACME") == 7

    @pytest.mark.parametrize("response", [
        FakeResponse(404, {"detail": "SKU not found"}),
        FakeResponse(200, {}),
        FakeResponse(200, {"sku_id": 0}),
        FakeResponse(200, {"sku_id": "abc"}),
    ])
    def test_unresolvable(self, client, monkeypatch, response):
        _route(monkeypatch, lambda method, url, kwargs: response)
        with pytest.raises(ResolutionError) as info:
            client.resolve_sku("Wheat Flour", "", "", "ACME")
        assert info.value.item_description == "Wheat Flour"

    def test_html_answer_is_not_a_sku(self, client, monkeypatch):
        _route(monkeypatch, lambda method, url, kwargs: FakeResponse(200, text="<html>Wartung</html>"))
        with pytest.raises(ResolutionError) as info:
            client.resolve_sku("Wheat Flour", "", "", "ACME")
        assert "kein JSON" in info.value.message
