# label_service.py
"""
Ablauf für die Formulare: Boxen ableiten, Vorschau, Etikett je Box drucken,
alle Boxen drucken.

Je Box gilt die Reihenfolge: Drucker prüfen -> SKU auflösen -> Eingang
speichern -> Etikett rendern -> Auftrag abschicken -> bis Endzustand abfragen.
Das Etikett enthält die Transaktionsnummer der Box, die deshalb vorher im
Backend existieren muss.
"""
import asyncio
from dataclasses import replace
from datetime import date
from typing import Iterable, Mapping

from boxes import derive_boxes, remove_box, validate_box_totals
from config import (
    BLOCK_PRINT_ON_WEIGHT_MISMATCH,
    LABEL_DPI,
    LABEL_HEIGHT_INCHES,
    LABEL_LAYOUT,
    LABEL_WIDTH_INCHES,
)
from dispatcher import PrintDispatcher, box_result_from_job
from errors import LabelError, LabelValidationError, PreconditionError
from inventory_api import InventoryApiClient
from label_payload import build_label_payload, validate_payload
from label_renderer import label_to_base64, render_label, render_preview, save_label
from models import Article, BatchReport, Box, BoxPrintResult, Transaction, WeightCheck
from printers import PrintSession


def box_transaction_no(transaction_no: str, box_number: int) -> str:
    return f"{transaction_no}-{box_number}"


def find_article(articles: Mapping[str, Article], box: Box) -> Article | None:
    for article in articles.values():
        if article.label == box.article:
            return article
    return None


def _per_unit(amount: float, quantity: int) -> float:
    return amount / quantity if quantity > 0 else 0.0


def build_box_entry(company: str, transaction: Transaction, article: Article, box: Box,
                    sku_id: int, box_tx: str) -> dict:
    """Eingang für genau eine Box, so wie ihn das Backend erwartet."""
    tax = _per_unit(article.tax_amount, article.quantity_units)
    discount = _per_unit(article.discount_amount, article.quantity_units)
    head = transaction.to_dict()
    head.update({
        "transaction_no": box_tx,
        "grn_quantity": 1,
        "total_amount": article.unit_rate,
        "tax_amount": tax,
        "discount_amount": discount,
        "received_quantity": 1,
        "remark": f"Box {box.box_number} from {transaction.transaction_no}",
        "currency": "INR",
    })
    return {
        "company": company,
        "transaction": head,
        "articles": [{
            "transaction_no": box_tx,
            "sku_id": sku_id,
            "item_description": article.item_description,
            "item_category": article.item_category,
            "sub_category": article.sub_category,
            "uom": "BOX",
            "packaging_type": article.packaging_type,
            "quantity_units": 1,
            "net_weight": box.net_weight,
            "total_weight": box.gross_weight,
            "batch_number": article.batch_number,
            "lot_number": box.lot_number or article.lot_number,
            "manufacturing_date": article.manufacturing_date,
            "expiry_date": article.expiry_date,
            "import_date": article.import_date,
            "unit_rate": article.unit_rate,
            "total_amount": article.unit_rate,
            "tax_amount": tax,
            "discount_amount": discount,
            "currency": "INR",
        }],
        "boxes": [{
            "transaction_no": box_tx,
            "article_description": box.article,
            "box_number": box.box_number,
            "net_weight": box.net_weight,
            "gross_weight": box.gross_weight,
            "lot_number": box.lot_number,
        }],
    }


class LabelService:
    def __init__(self, inventory: InventoryApiClient, dispatcher: PrintDispatcher, session: PrintSession,
                 width_inches: float = LABEL_WIDTH_INCHES, height_inches: float = LABEL_HEIGHT_INCHES,
                 dpi: int = LABEL_DPI, layout: str = LABEL_LAYOUT,
                 block_on_weight_mismatch: bool = BLOCK_PRINT_ON_WEIGHT_MISMATCH):
        self.inventory = inventory
        self.dispatcher = dispatcher
        self.session = session
        self.width_inches = width_inches
        self.height_inches = height_inches
        self.dpi = dpi
        self.layout = layout
        self.block_on_weight_mismatch = block_on_weight_mismatch

    @property
    def media(self) -> dict:
        return {"width": self.width_inches, "height": self.height_inches, "dpi": self.dpi}

    def _render_settings(self) -> dict:
        return {
            "width_inches": self.width_inches,
            "height_inches": self.height_inches,
            "dpi": self.dpi,
            "layout": self.layout,
        }

    # ---------- Boxen ----------

    def derive(self, articles: Mapping[str, Article], boxes: Mapping[str, Box],
               today: date | None = None) -> tuple[dict[str, Box], WeightCheck]:
        new_boxes = derive_boxes(articles, boxes, today=today)
        return new_boxes, validate_box_totals(new_boxes, articles)

    def remove(self, box_id: str, boxes: Mapping[str, Box], articles: Mapping[str, Article]):
        return remove_box(box_id, boxes, articles)

    # ---------- Vorschau / Export ----------

    @staticmethod
    def _box_transaction(transaction: Transaction, box: Box) -> Transaction:
        # ohne Transaktionsnummer bleibt das Feld leer, damit die Prüfung greift
        if not transaction.transaction_no:
            return transaction
        return replace(transaction, transaction_no=box_transaction_no(transaction.transaction_no, box.box_number))

    def _payload(self, company: str, transaction: Transaction, articles: Mapping[str, Article], box: Box,
                 sku_id: int | None = None):
        article = find_article(articles, box)
        if article is None:
            raise LabelValidationError([f"Kein Artikel zu Box {box.box_number} ({box.article})"])
        return article, build_label_payload(company, transaction, article, box, sku_id=sku_id)

    def preview(self, company: str, transaction: Transaction, articles: Mapping[str, Article], box: Box,
                max_width_px: int | None = None) -> str:
        """Etikett als base64-PNG, ohne SKU-Auflösung und ohne Speichern."""
        _, payload = self._payload(company, self._box_transaction(transaction, box), articles, box)
        if max_width_px:
            img = render_preview(payload, max_width_px=max_width_px, **self._render_settings())
        else:
            img = render_label(payload, **self._render_settings())
        return label_to_base64(img)

    def export(self, company: str, transaction: Transaction, articles: Mapping[str, Article], box: Box,
               directory: str | None = None) -> str:
        _, payload = self._payload(company, self._box_transaction(transaction, box), articles, box)
        if directory:
            return save_label(payload, directory=directory, **self._render_settings())
        return save_label(payload, **self._render_settings())

    # ---------- Drucken ----------

    def _check_weights(self, boxes: Mapping[str, Box], article: Article) -> None:
        check = validate_box_totals(boxes, {article.id: article})
        if not check.warnings:
            return
        if self.block_on_weight_mismatch:
            raise LabelValidationError(check.warnings)
        for warning in check.warnings:
            print(f"[label_service] Warnung: {warning}")

    async def _resolve_sku(self, company: str, article: Article, sku_cache: dict) -> int:
        if article.sku_id and article.sku_id > 0:
            return article.sku_id
        if article.id in sku_cache:
            return sku_cache[article.id]
        sku_id = await asyncio.to_thread(
            self.inventory.resolve_sku,
            article.item_description,
            article.item_category,
            article.sub_category,
            company,
        )
        sku_cache[article.id] = sku_id
        return sku_id

    async def _print_one(self, company: str, transaction: Transaction, articles: Mapping[str, Article],
                         boxes: Mapping[str, Box], box: Box, printer_name: str,
                         sku_cache: dict) -> BoxPrintResult:
        box_transaction = self._box_transaction(transaction, box)
        box_tx = box_transaction.transaction_no

        article, payload = self._payload(company, box_transaction, articles, box)
        errors = validate_payload(payload)
        if errors:
            raise LabelValidationError(errors)
        self._check_weights(boxes, article)

        sku_id = await self._resolve_sku(company, article, sku_cache)

        entry = build_box_entry(company, transaction, article, box, sku_id, box_tx)
        action = await asyncio.to_thread(self.inventory.save_entry, company, box_tx, entry)
        print(f"[label_service] Box {box.box_number}: Eingang {box_tx} {action}")

        payload = replace(payload, sku_id=sku_id)
        img = await asyncio.to_thread(render_label, payload, **self._render_settings())

        box_info = {
            "transaction_no": box_tx,
            "company": company,
            "box_numbers": [box.box_number],
            "article": article.item_description,
        }
        result = await self.dispatcher.print_images(printer_name, [img], media=self.media, box_info=box_info)
        return box_result_from_job(box.box_number, printer_name, result)

    async def print_box(self, company: str, transaction: Transaction, articles: Mapping[str, Article],
                        boxes: Mapping[str, Box], box_id: str) -> BoxPrintResult:
        box = boxes.get(box_id)
        if box is None:
            return BoxPrintResult(box_number=0, ok=False, message=f"Box {box_id} nicht gefunden")
        try:
            printer_name = self.session.require_printer()
            return await self._print_one(company, transaction, articles, boxes, box, printer_name, {})
        except LabelError as exc:
            print(f"[label_service] Box {box.box_number}: {exc.message}")
            return BoxPrintResult(box_number=box.box_number, ok=False, message=f"Box {box.box_number}: {exc.message}")
        except Exception as exc:
            print(f"[label_service] Unerwarteter Fehler bei Box {box.box_number}: {exc!r}")
            return BoxPrintResult(
                box_number=box.box_number, ok=False, message=f"Box {box.box_number}: Unerwarteter Fehler: {exc}"
            )

    async def print_batch(self, company: str, transaction: Transaction, articles: Mapping[str, Article],
                          boxes: Mapping[str, Box], box_ids: Iterable[str] | None = None) -> BatchReport:
        printer_name = self.session.require_printer()

        selected = [boxes[bid] for bid in box_ids if bid in boxes] if box_ids is not None else list(boxes.values())
        if not selected:
            raise PreconditionError("Keine Boxen zum Drucken ausgewählt")
        # Druckreihenfolge = Boxnummer
        selected.sort(key=lambda box: box.box_number)

        sku_cache = {}

        async def job_fn(box):
            return await self._print_one(company, transaction, articles, boxes, box, printer_name, sku_cache)

        def on_error(box, message):
            return BoxPrintResult(box_number=box.box_number, ok=False, message=f"Box {box.box_number}: {message}")

        results = await self.dispatcher.run_batch(selected, job_fn, on_error)
        report = BatchReport(results=results)
        print(f"[label_service] {report.message}")
        return report
