# label_payload.py
import json
from dataclasses import asdict
from datetime import datetime

from models import Article, Box, LabelPayload, Transaction

# Kurzschlüssel für den QR-Inhalt, damit der Code bei 4x2" lesbar bleibt
SHORT_KEYS = {
    "company": "co",
    "transaction_no": "tx",
    "box_id": "bi",
    "box_number": "bx",
    "sku_id": "sk",
    "item_description": "it",
    "net_weight": "nw",
    "total_weight": "tw",
    "entry_date": "ed",
    "manufacturing_date": "md",
    "expiry_date": "ex",
    "batch_number": "bt",
    "lot_number": "lt",
    "vendor_name": "vd",
    "customer_name": "cs",
    "approval_authority": "aa",
}
LONG_KEYS = {short: long for long, short in SHORT_KEYS.items()}


def build_label_payload(company: str, transaction: Transaction, article: Article, box: Box,
                        sku_id: int | None = None) -> LabelPayload:
    # Boxgewichte haben Vorrang, sonst Artikelgewichte
    return LabelPayload(
        company=company,
        transaction_no=transaction.transaction_no,
        box_number=box.box_number,
        item_description=article.item_description,
        entry_date=transaction.entry_date,
        net_weight=box.net_weight or article.net_weight or 0.0,
        total_weight=box.gross_weight or article.total_weight or 0.0,
        sku_id=sku_id if sku_id is not None else article.sku_id,
        box_id=box.id,
        manufacturing_date=article.manufacturing_date,
        expiry_date=article.expiry_date,
        batch_number=article.batch_number,
        lot_number=box.lot_number or article.lot_number,
        vendor_name=transaction.vendor_supplier_name,
        customer_name=transaction.customer_party_name,
        approval_authority=transaction.approval_authority,
    )


def parse_date(value: str) -> datetime | None:
    """ISO-Datum (optional mit Zeit / 'Z') -> datetime, sonst None."""
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def validate_payload(payload: LabelPayload) -> list[str]:
    errors = []
    if not payload.company:
        errors.append("Firma fehlt")
    if not payload.transaction_no:
        errors.append("Transaktionsnummer fehlt")
    if not payload.box_number:
        errors.append("Boxnummer fehlt")
    if not payload.item_description:
        errors.append("Artikelbeschreibung fehlt")
    if not payload.entry_date:
        errors.append("Eingangsdatum fehlt")

    for name, label in (
        ("entry_date", "Eingangsdatum"),
        ("manufacturing_date", "Herstelldatum"),
        ("expiry_date", "Ablaufdatum"),
    ):
        value = getattr(payload, name)
        if value and parse_date(value) is None:
            errors.append(f"{label} ungültig: {value}")

    if payload.net_weight is not None and payload.net_weight < 0:
        errors.append("Nettogewicht darf nicht negativ sein")
    if payload.total_weight is not None and payload.total_weight < 0:
        errors.append("Bruttogewicht darf nicht negativ sein")
    return errors


def _is_empty(value) -> bool:
    return value is None or value == ""


def compact_payload(payload: LabelPayload) -> dict:
    """Langnamen -> Kurzschlüssel, leere Felder fallen weg."""
    data = asdict(payload)
    return {
        SHORT_KEYS[name]: value
        for name, value in data.items()
        if name in SHORT_KEYS and not _is_empty(value)
    }


def expand_payload(compact: dict) -> dict:
    return {
        LONG_KEYS[key]: value
        for key, value in compact.items()
        if key in LONG_KEYS and not _is_empty(value)
    }


def encode_payload(payload: LabelPayload) -> str:
    return json.dumps(compact_payload(payload), separators=(",", ":"), ensure_ascii=False)


def decode_payload(text: str) -> dict:
    """QR-Text zurück in Langnamen. Unlesbarer Inhalt -> leeres dict."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        print(f"[label_payload] QR-Inhalt nicht lesbar: {exc}")
        return {}
    if not isinstance(data, dict):
        return {}
    return expand_payload(data)
