# models.py
from dataclasses import dataclass, field, asdict

BOX_UOMS = ("BOX", "CARTON")

JOB_QUEUED = "queued"
JOB_PRINTING = "printing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_STATUSES = (JOB_QUEUED, JOB_PRINTING, JOB_COMPLETED, JOB_FAILED)
TERMINAL_STATUSES = (JOB_COMPLETED, JOB_FAILED)

# Endergebnis aus Sicht des Aufrufers (zusätzlich zu completed/failed)
OUTCOME_TIMED_OUT = "timed_out"

PRINTER_ONLINE = "online"
PRINTER_OFFLINE = "offline"
PRINTER_BUSY = "busy"


def _str(value) -> str:
    return "" if value is None else str(value).strip()


def _float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _opt_int(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Article:
    """
    Eine Position im Wareneingang (ein Artikeltyp mit Gesamtmenge/-gewicht).
    net_weight / total_weight sind Summen über alle Einheiten.
    """
    id: str
    item_description: str = ""
    item_category: str = ""
    sub_category: str = ""
    sku_id: int | None = None
    quantity_units: int = 0
    uom: str = ""
    net_weight: float = 0.0
    total_weight: float = 0.0
    batch_number: str = ""
    lot_number: str = ""
    manufacturing_date: str = ""
    expiry_date: str = ""
    import_date: str = ""
    packaging_type: str = ""
    unit_rate: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0

    @property
    def label(self) -> str:
        # Boxen verweisen über diesen Text auf ihren Artikel
        return self.item_description or f"Article {self.id}"

    @classmethod
    def from_dict(cls, data: dict) -> "Article":
        return cls(
            id=_str(data.get("id")),
            item_description=_str(data.get("item_description")),
            item_category=_str(data.get("item_category")),
            sub_category=_str(data.get("sub_category")),
            sku_id=_opt_int(data.get("sku_id")),
            quantity_units=_int(data.get("quantity_units")),
            uom=_str(data.get("uom")).upper(),
            net_weight=_float(data.get("net_weight")),
            total_weight=_float(data.get("total_weight")),
            batch_number=_str(data.get("batch_number")),
            lot_number=_str(data.get("lot_number")),
            manufacturing_date=_str(data.get("manufacturing_date")),
            expiry_date=_str(data.get("expiry_date")),
            import_date=_str(data.get("import_date")),
            packaging_type=_str(data.get("packaging_type")),
            unit_rate=_float(data.get("unit_rate")),
            tax_amount=_float(data.get("tax_amount")),
            discount_amount=_float(data.get("discount_amount")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Box:
    id: str
    box_number: int
    article: str
    net_weight: float = 0.0
    gross_weight: float = 0.0
    lot_number: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Box":
        return cls(
            id=_str(data.get("id")),
            box_number=_int(data.get("box_number")),
            article=_str(data.get("article") or data.get("article_description")),
            net_weight=_float(data.get("net_weight")),
            gross_weight=_float(data.get("gross_weight")),
            lot_number=_str(data.get("lot_number")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Transaction:
    """Kopfdaten des Eingangs, die alle Boxen teilen."""
    transaction_no: str
    entry_date: str = ""
    vendor_supplier_name: str = ""
    customer_party_name: str = ""
    vehicle_number: str = ""
    transporter_name: str = ""
    lr_number: str = ""
    source_location: str = ""
    destination_location: str = ""
    challan_number: str = ""
    invoice_number: str = ""
    po_number: str = ""
    grn_number: str = ""
    system_grn_date: str = ""
    purchase_by: str = ""
    service_invoice_number: str = ""
    dn_number: str = ""
    approval_authority: str = ""
    remark: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(**{name: _str(data.get(name)) for name in cls.__dataclass_fields__})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LabelPayload:
    company: str
    transaction_no: str
    box_number: int
    item_description: str
    entry_date: str
    net_weight: float = 0.0
    total_weight: float = 0.0
    sku_id: int | None = None
    box_id: str = ""
    manufacturing_date: str = ""
    expiry_date: str = ""
    batch_number: str = ""
    lot_number: str = ""
    vendor_name: str = ""
    customer_name: str = ""
    approval_authority: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PrinterInfo:
    name: str
    connection_type: str = "USB"
    status: str = PRINTER_ONLINE
    supports_label_printing: bool = True
    max_width_inches: float | None = 4.0
    max_height_inches: float | None = 2.0
    dpi: int | None = 300

    @property
    def usable_for_labels(self) -> bool:
        return self.status == PRINTER_ONLINE and self.supports_label_printing

    @classmethod
    def from_dict(cls, data: dict) -> "PrinterInfo":
        return cls(
            name=_str(data.get("name")),
            connection_type=_str(data.get("type") or data.get("connection_type")) or "USB",
            status=_str(data.get("status")).lower() or PRINTER_OFFLINE,
            supports_label_printing=bool(data.get("supports_label_printing", False)),
            max_width_inches=data.get("max_width_inches"),
            max_height_inches=data.get("max_height_inches"),
            dpi=_opt_int(data.get("dpi")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PrintJob:
    job_id: str
    printer_name: str
    images: list = field(default_factory=list)
    status: str = JOB_QUEUED
    progress: int = 0
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "printer_name": self.printer_name,
            "labels_count": len(self.images),
            "status": self.status,
            "progress": self.progress,
            "error": self.error,
        }


@dataclass(frozen=True)
class JobStatusReport:
    """Eine Antwort des Druckkanals auf poll()."""
    status: str
    progress: int = 0
    error: str | None = None


@dataclass(frozen=True)
class JobResult:
    """Endergebnis eines beobachteten Druckauftrags."""
    job_id: str
    outcome: str  # completed | failed | timed_out
    progress: int = 0
    error: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome == JOB_COMPLETED


@dataclass(frozen=True)
class BoxPrintResult:
    box_number: int
    ok: bool
    message: str
    job_id: str | None = None
    outcome: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BatchReport:
    results: list[BoxPrintResult]

    @property
    def failed(self) -> list[BoxPrintResult]:
        return [r for r in self.results if not r.ok]

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def ok(self) -> bool:
        return self.failure_count == 0

    @property
    def message(self) -> str:
        total = len(self.results)
        if self.ok:
            return f"{total} Etikett(en) gedruckt"
        numbers = ", ".join(str(r.box_number) for r in self.failed)
        return f"{total - self.failure_count} von {total} gedruckt, neu drucken: Box {numbers}"

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "message": self.message,
            "failure_count": self.failure_count,
            "reprint_boxes": [r.box_number for r in self.failed],
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class WeightCheck:
    is_valid: bool
    net_weight_match: bool
    gross_weight_match: bool
    box_net_total: float
    article_net_total: float
    box_gross_total: float
    article_gross_total: float
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
