from datetime import date

import pytest

from boxes import index_by_id
from dispatcher import PrintDispatcher
from errors import DispatchError, ResolutionError, TransportError
from inventory_api import InventoryApiClient
from label_service import LabelService
from models import Article, JobStatusReport, PrinterInfo, Transaction
from print_channels import PrintChannel
from printers import PrintSession, PrinterDirectory

TODAY = date(2024, 3, 5)


class FakeChannel(PrintChannel):
    """Druckkanal ohne Netz: zeichnet Aufrufe auf und spielt Status ab."""

    name = "fake"

    def __init__(self, statuses=None, fail_on_submit=(), printers=None, discovery_error=False):
        self.statuses = statuses or [
            JobStatusReport("queued", 0),
            JobStatusReport("printing", 50),
            JobStatusReport("completed", 100),
        ]
        self.fail_on_submit = set(fail_on_submit)
        self.printers = printers if printers is not None else [PrinterInfo(name="Label-1")]
        self.discovery_error = discovery_error
        self.submitted = []
        self.polls = []
        self.discoveries = 0
        self._scripts = {}

    @property
    def calls(self) -> int:
        return self.discoveries + len(self.submitted) + len(self.polls)

    def list_printers(self):
        self.discoveries += 1
        if self.discovery_error:
            raise TransportError("http://printer-api", "timeout")
        return list(self.printers)

    def submit(self, printer_name, images, media=None, box_info=None):
        number = len(self.submitted) + 1
        self.submitted.append({"printer": printer_name, "images": images, "media": media, "box_info": box_info})
        if number in self.fail_on_submit:
            raise DispatchError(printer_name, "Papierstau")
        job_id = f"job-{number}"
        self._scripts[job_id] = list(self.statuses)
        return job_id

    def poll(self, job_id):
        self.polls.append(job_id)
        script = self._scripts[job_id]
        return script.pop(0) if len(script) > 1 else script[0]


class FakeInventory(InventoryApiClient):
    def __init__(self, existing=(), unknown_skus=(), skus=None):
        super().__init__(base_url="http://inventory.test")
        self.entries = {tx: {} for tx in existing}
        self.unknown_skus = set(unknown_skus)
        self.skus = skus or {}
        self.calls = []

    def get_entry(self, company, transaction_no):
        self.calls.append(("get", transaction_no))
        return self.entries.get(transaction_no)

    def create_entry(self, payload):
        tx = payload["transaction"]["transaction_no"]
        self.calls.append(("create", tx))
        self.entries[tx] = payload
        return {}

    def update_entry(self, company, transaction_no, payload):
        self.calls.append(("update", transaction_no))
        self.entries[transaction_no] = payload
        return {}

    def resolve_sku(self, item_description, item_category, sub_category, company):
        self.calls.append(("sku", item_description))
        if item_description in self.unknown_skus:
            raise ResolutionError(item_description, "HTTP 404")
        return self.skus.get(item_description, 101)


@pytest.fixture()
def today():
    return TODAY


@pytest.fixture()
def wheat_flour():
    return Article(
        id="a1",
        item_description="Wheat Flour",
        item_category="Flour",
        sub_category="Atta",
        quantity_units=3,
        uom="BOX",
        net_weight=30,
        total_weight=33,
        batch_number="B-7781",
        manufacturing_date="2024-02-01",
        expiry_date="2024-12-01",
        unit_rate=120.0,
        tax_amount=36.0,
    )


@pytest.fixture()
def articles(wheat_flour):
    sugar = Article(
        id="a2",
        item_description="Sugar 50kg",
        quantity_units=2,
        uom="CARTON",
        net_weight=100,
        total_weight=104,
    )
    loose = Article(id="a3", item_description="Salt", quantity_units=5, uom="KG", net_weight=5, total_weight=5)
    return index_by_id([wheat_flour, sugar, loose])


@pytest.fixture()
def transaction():
    return Transaction(
        transaction_no="TR-2024-001",
        entry_date="2024-03-05",
        vendor_supplier_name="Shree Mills",
        approval_authority="R. Sharma",
    )


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def inventory():
    return FakeInventory()


def make_service(channel, inventory, **kwargs):
    session = PrintSession(PrinterDirectory(channel))
    session.refresh()
    dispatcher = PrintDispatcher(channel, poll_interval=0, max_poll_attempts=5, inter_job_delay=0)
    return LabelService(inventory, dispatcher, session, dpi=100, **kwargs)


@pytest.fixture()
def service(channel, inventory):
    return make_service(channel, inventory)


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text
        self.reason = "" if status_code < 400 else "Error"
        self.content = text.encode() if text else (b"" if data is None else b"{}")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("kein JSON")
        return self._data
