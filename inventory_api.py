# inventory_api.py
"""
Zugriff auf das Buchungs-Backend: Eingänge lesen/anlegen/ändern, SKU auflösen.
"""
from urllib.parse import quote

import requests

from config import API_BASE_URL, API_TIMEOUT
from errors import ResolutionError, TransportError

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _detail(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.reason or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        detail = data.get("detail") or data.get("message")
        if detail:
            return detail if isinstance(detail, str) else str(detail)
    return resp.reason or f"HTTP {resp.status_code}"


def _json_body(resp: requests.Response, url: str) -> dict:
    """Leere Antwort -> {}, kein JSON (z.B. HTML vom Proxy) -> TransportError."""
    if not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError as exc:
        raise TransportError(url, f"Antwort ist kein JSON (HTTP {resp.status_code})") from exc
    return data if isinstance(data, dict) else {}


class InventoryApiClient:
    def __init__(self, base_url: str = API_BASE_URL, timeout: float = API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _entry_url(self, company: str, transaction_no: str) -> str:
        return f"{self.base_url}/inward/{quote(company, safe='')}/{quote(transaction_no, safe='')}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return requests.request(method, url, headers=JSON_HEADERS, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            print(f"[inventory_api] {method} {url} fehlgeschlagen: {exc}")
            raise TransportError(url, str(exc)) from exc

    def get_entry(self, company: str, transaction_no: str) -> dict | None:
        url = self._entry_url(company, transaction_no)
        r = self._request("GET", url)
        if r.status_code == 404:
            return None
        if not r.ok:
            raise TransportError(url, f"Eingang konnte nicht geprüft werden: {_detail(r)}")
        return _json_body(r, url)

    def create_entry(self, payload: dict) -> dict:
        url = f"{self.base_url}/inward"
        r = self._request("POST", url, json=payload)
        if not r.ok:
            raise TransportError(url, f"Eingang konnte nicht angelegt werden: {_detail(r)}")
        print(f"[inventory_api] Eingang angelegt: {payload.get('transaction', {}).get('transaction_no')}")
        return _json_body(r, url)

    def update_entry(self, company: str, transaction_no: str, payload: dict) -> dict:
        url = self._entry_url(company, transaction_no)
        r = self._request("PUT", url, json=payload)
        if not r.ok:
            raise TransportError(url, f"Eingang konnte nicht aktualisiert werden: {_detail(r)}")
        print(f"[inventory_api] Eingang aktualisiert: {transaction_no}")
        return _json_body(r, url)

    def save_entry(self, company: str, transaction_no: str, payload: dict) -> str:
        """Anlegen oder aktualisieren, je nachdem ob es den Eingang schon gibt."""
        if self.get_entry(company, transaction_no) is None:
            self.create_entry(payload)
            return "created"
        self.update_entry(company, transaction_no, payload)
        return "updated"

    def resolve_sku(self, item_description: str, item_category: str, sub_category: str,
                    company: str) -> int:
        url = f"{self.base_url}/inward/sku-id"
        params = {"company": company.upper(), "item_description": item_description}
        if item_category:
            params["item_category"] = item_category
        if sub_category:
            params["sub_category"] = sub_category

        r = self._request("GET", url, params=params)
        if not r.ok:
            raise ResolutionError(item_description, _detail(r))

        try:
            data = _json_body(r, url)
        except TransportError as exc:
            raise ResolutionError(item_description, exc.message) from exc
        sku_id = data.get("sku_id") if data.get("sku_id") is not None else data.get("id")
        try:
            sku_id = int(sku_id)
        except (TypeError, ValueError):
            raise ResolutionError(item_description, "keine SKU-ID in der Antwort")
        if sku_id <= 0:
            raise ResolutionError(item_description, f"ungültige SKU-ID {sku_id}")
        print(f"[inventory_api] SKU {item_description} -> {sku_id}")
        return sku_id
