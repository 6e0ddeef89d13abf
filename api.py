# api.py
import asyncio

from boxes import index_by_id, update_box
from dispatcher import PrintDispatcher
from errors import LabelError
from inventory_api import InventoryApiClient
from label_service import LabelService
from models import Article, Box, Transaction
from print_channels import detect_channel
from printers import PrintSession, PrinterDirectory
from websocket_server import broadcast_from_anywhere


def build_service() -> LabelService:
    channel = detect_channel()
    session = PrintSession(PrinterDirectory(channel))
    dispatcher = PrintDispatcher(channel, on_update=broadcast_from_anywhere)
    return LabelService(InventoryApiClient(), dispatcher, session)


def parse_articles(rows) -> dict:
    articles = []
    for index, row in enumerate(rows or [], start=1):
        row = row or {}
        article = Article.from_dict(row)
        if not article.id:
            article = Article.from_dict({**row, "id": str(index)})
        articles.append(article)
    return index_by_id(articles)


def parse_boxes(rows) -> dict:
    return index_by_id(Box.from_dict(row or {}) for row in rows or [])


class Api:
    """
    Wird per pywebview als js_api bereitgestellt und von webapp.py genutzt.
    Alle Methoden liefern dicts mit "ok" und "message".
    """

    def __init__(self, service: LabelService | None = None):
        self.service = service or build_service()
        self.session = self.service.session

    # ---------- Drucker ----------

    def list_printers(self, refresh: bool = True):
        if refresh or not self.session.printers:
            self.session.refresh()
        return {"ok": True, "message": "", **self.session.to_dict()}

    def select_printer(self, name: str):
        try:
            self.session.select(name)
        except LabelError as exc:
            return {"ok": False, "message": exc.message}
        return {"ok": True, "message": f"Drucker {name} gewählt", "selected_printer": name}

    def clear_printer(self):
        self.session.clear()
        return {"ok": True, "message": "Druckerauswahl zurückgesetzt"}

    # ---------- Boxen ----------

    def derive_boxes(self, articles, boxes=None):
        article_map = parse_articles(articles)
        new_boxes, check = self.service.derive(article_map, parse_boxes(boxes))
        print(f"[derive_boxes] {len(new_boxes)} Boxen aus {len(article_map)} Artikeln")
        return {
            "ok": True,
            "message": "; ".join(check.warnings) if check.warnings else f"{len(new_boxes)} Boxen erzeugt",
            "boxes": [b.to_dict() for b in new_boxes.values()],
            "weight_check": check.to_dict(),
        }

    def remove_box(self, box_id: str, boxes, articles):
        box_map = parse_boxes(boxes)
        if box_id not in box_map:
            return {"ok": False, "message": f"Box {box_id} nicht gefunden"}
        new_boxes, new_articles = self.service.remove(box_id, box_map, parse_articles(articles))
        return {
            "ok": True,
            "message": f"Box {box_map[box_id].box_number} entfernt",
            "boxes": [b.to_dict() for b in new_boxes.values()],
            "articles": [a.to_dict() for a in new_articles.values()],
        }

    def update_box(self, box_id: str, boxes, changes: dict):
        try:
            new_boxes = update_box(parse_boxes(boxes), box_id, **(changes or {}))
        except KeyError:
            return {"ok": False, "message": f"Box {box_id} nicht gefunden"}
        except (TypeError, ValueError) as exc:
            return {"ok": False, "message": str(exc)}
        return {"ok": True, "message": "Box aktualisiert", "boxes": [b.to_dict() for b in new_boxes.values()]}

    # ---------- Etiketten ----------

    def preview_label(self, company: str, transaction: dict, articles, box: dict, max_width_px: int | None = None):
        try:
            image_b64 = self.service.preview(
                company,
                Transaction.from_dict(transaction or {}),
                parse_articles(articles),
                Box.from_dict(box or {}),
                max_width_px=max_width_px,
            )
        except LabelError as exc:
            return {"ok": False, "message": exc.message}
        return {"ok": True, "message": "", "image_base64": image_b64, "format": "png"}

    def export_label(self, company: str, transaction: dict, articles, box: dict):
        try:
            path = self.service.export(
                company, Transaction.from_dict(transaction or {}), parse_articles(articles), Box.from_dict(box or {})
            )
        except LabelError as exc:
            return {"ok": False, "message": exc.message}
        except OSError as exc:
            print(f"[export_label] Fehler beim Speichern: {exc}")
            return {"ok": False, "message": f"Etikett konnte nicht gespeichert werden: {exc}"}
        return {"ok": True, "message": "Etikett gespeichert", "path": path}

    def print_box(self, company: str, transaction: dict, articles, boxes, box_id: str):
        result = asyncio.run(self.service.print_box(
            company,
            Transaction.from_dict(transaction or {}),
            parse_articles(articles),
            parse_boxes(boxes),
            box_id,
        ))
        return result.to_dict()

    def print_batch(self, company: str, transaction: dict, articles, boxes, box_ids=None):
        try:
            report = asyncio.run(self.service.print_batch(
                company,
                Transaction.from_dict(transaction or {}),
                parse_articles(articles),
                parse_boxes(boxes),
                box_ids=box_ids,
            ))
        except LabelError as exc:
            return {"ok": False, "message": exc.message, "results": []}
        return report.to_dict()

    def get_print_job(self, job_id: str):
        job = self.service.dispatcher.jobs.get(job_id)
        if job is None:
            return {"ok": False, "message": f"Druckauftrag {job_id} nicht aktiv"}
        return {"ok": True, "message": "", **job.to_dict()}
