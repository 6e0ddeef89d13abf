# boxes.py
"""
Boxen aus Artikeln ableiten.

Artikel und Boxen liegen jeweils in einem dict {id: Objekt}. Alle Funktionen
hier liefern neue dicts zurück und verändern ihre Eingaben nicht.
"""
import re
from dataclasses import replace
from datetime import date
from typing import Iterable, Mapping

from config import WEIGHT_EPSILON
from models import Article, Box, BOX_UOMS, WeightCheck

DESCRIPTION_KEY_LENGTH = 10

Articles = Mapping[str, Article]
Boxes = Mapping[str, Box]


def index_by_id(items: Iterable) -> dict[str, object]:
    """Liste von Artikeln/Boxen -> dict nach id (Reihenfolge bleibt erhalten)."""
    return {item.id: item for item in items}


def date_stamp(today: date | None = None) -> str:
    today = today or date.today()
    return today.strftime("%y%m%d")


def sanitize_description(description: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", description or "").upper()[:DESCRIPTION_KEY_LENGTH]


def make_box_id(stamp: str, article: Article, box_number: int) -> str:
    # Trenner verhindern Kollisionen bei Beschreibungen, die auf Ziffern enden
    key = sanitize_description(article.item_description) or f"ARTICLE{sanitize_description(article.id)}"
    return f"{stamp}-{key}-{box_number}"


def is_boxed(article: Article) -> bool:
    return article.quantity_units > 0 and article.uom.upper() in BOX_UOMS


def _share(total: float, quantity: int) -> float:
    if total <= 0 or quantity <= 0:
        return 0.0
    return total / quantity


def derive_boxes(articles: Articles, existing_boxes: Boxes, today: date | None = None) -> dict[str, Box]:
    """
    Erzeugt für jeden BOX/CARTON-Artikel quantity_units Boxen.

    Die Boxnummer läuft über alle Artikel durch (1..N). Existiert schon eine
    Box mit gleicher Nummer und gleichem Artikeltext, werden ihre Gewichte
    (und eine gesetzte Chargen-/Lotnummer) übernommen, sonst gilt
    Gesamtgewicht / Menge.
    """
    stamp = date_stamp(today)
    previous = {(box.box_number, box.article): box for box in existing_boxes.values()}

    boxes: dict[str, Box] = {}
    counter = 1
    for article in articles.values():
        if not is_boxed(article):
            continue

        label = article.label
        for _ in range(article.quantity_units):
            old = previous.get((counter, label))
            if old is not None:
                net, gross = old.net_weight, old.gross_weight
                lot = old.lot_number or article.lot_number
            else:
                net = _share(article.net_weight, article.quantity_units)
                gross = _share(article.total_weight, article.quantity_units)
                lot = article.lot_number

            box = Box(
                id=make_box_id(stamp, article, counter),
                box_number=counter,
                article=label,
                net_weight=net,
                gross_weight=gross,
                lot_number=lot,
            )
            boxes[box.id] = box
            counter += 1

    return boxes


def remove_box(box_id: str, boxes: Boxes, articles: Articles) -> tuple[dict[str, Box], dict[str, Article]]:
    """Box löschen und Menge des zugehörigen Artikels um 1 verringern (nie unter 0)."""
    target = boxes.get(box_id)
    if target is None:
        return dict(boxes), dict(articles)

    new_boxes = {bid: box for bid, box in boxes.items() if bid != box_id}
    new_articles = dict(articles)
    for article_id, article in articles.items():
        if article.label == target.article:
            new_articles[article_id] = replace(
                article, quantity_units=max(0, article.quantity_units - 1)
            )
            break

    return new_boxes, new_articles


def next_box_number(boxes: Boxes) -> int:
    if not boxes:
        return 1
    return max(box.box_number for box in boxes.values()) + 1


def add_box(boxes: Boxes, article: str, net_weight: float = 0.0, gross_weight: float = 0.0,
            lot_number: str = "", today: date | None = None) -> dict[str, Box]:
    """Manuell eine Box anhängen; sie bekommt die nächste freie Nummer."""
    number = next_box_number(boxes)
    key = sanitize_description(article) or "MANUAL"
    box = Box(
        id=f"{date_stamp(today)}-{key}-{number}",
        box_number=number,
        article=article,
        net_weight=net_weight,
        gross_weight=gross_weight,
        lot_number=lot_number,
    )
    new_boxes = dict(boxes)
    new_boxes[box.id] = box
    return new_boxes


EDITABLE_BOX_FIELDS = ("box_number", "net_weight", "gross_weight", "lot_number")


def update_box(boxes: Boxes, box_id: str, **changes) -> dict[str, Box]:
    if box_id not in boxes:
        raise KeyError(box_id)
    unknown = set(changes) - set(EDITABLE_BOX_FIELDS)
    if unknown:
        raise ValueError(f"Felder nicht änderbar: {', '.join(sorted(unknown))}")

    if "box_number" in changes:
        number = int(changes["box_number"])
        taken = {box.box_number for bid, box in boxes.items() if bid != box_id}
        if number in taken:
            raise ValueError(f"Boxnummer {number} ist schon vergeben")
        changes["box_number"] = number
    for name in ("net_weight", "gross_weight"):
        if name in changes:
            changes[name] = float(changes[name])

    new_boxes = dict(boxes)
    new_boxes[box_id] = replace(boxes[box_id], **changes)
    return new_boxes


def boxes_for_article(boxes: Boxes, article_label: str) -> list[Box]:
    return sorted(
        (box for box in boxes.values() if box.article == article_label),
        key=lambda box: box.box_number,
    )


def box_stats(boxes: Boxes, articles: Articles) -> dict:
    stats = {
        "total_boxes": len(boxes),
        "total_net_weight": sum(box.net_weight for box in boxes.values()),
        "total_gross_weight": sum(box.gross_weight for box in boxes.values()),
        "articles": {},
    }
    for article in articles.values():
        own = boxes_for_article(boxes, article.label)
        if not own:
            continue
        stats["articles"][article.id] = {
            "article_name": article.label,
            "boxes": len(own),
            "net_weight": sum(box.net_weight for box in own),
            "gross_weight": sum(box.gross_weight for box in own),
        }
    return stats


def validate_box_totals(boxes: Boxes, articles: Articles, epsilon: float = WEIGHT_EPSILON) -> WeightCheck:
    """
    Vergleicht Box-Summen mit den Artikelgewichten. Nur boxpflichtige Artikel
    zählen. Abweichungen sind Warnungen, kein harter Fehler.
    """
    boxed = [a for a in articles.values() if a.uom.upper() in BOX_UOMS]
    warnings = []

    for article in boxed:
        own = boxes_for_article(boxes, article.label)
        if not own:
            continue
        net = sum(box.net_weight for box in own)
        gross = sum(box.gross_weight for box in own)
        if abs(net - article.net_weight) >= epsilon:
            warnings.append(
                f"{article.label}: Netto der Boxen {net:.2f} kg, Artikel {article.net_weight:.2f} kg"
            )
        if abs(gross - article.total_weight) >= epsilon:
            warnings.append(
                f"{article.label}: Brutto der Boxen {gross:.2f} kg, Artikel {article.total_weight:.2f} kg"
            )

    box_net = sum(box.net_weight for box in boxes.values())
    box_gross = sum(box.gross_weight for box in boxes.values())
    article_net = sum(a.net_weight for a in boxed)
    article_gross = sum(a.total_weight for a in boxed)
    net_match = abs(box_net - article_net) < epsilon
    gross_match = abs(box_gross - article_gross) < epsilon

    return WeightCheck(
        is_valid=net_match and gross_match and not warnings,
        net_weight_match=net_match,
        gross_weight_match=gross_match,
        box_net_total=box_net,
        article_net_total=article_net,
        box_gross_total=box_gross,
        article_gross_total=article_gross,
        warnings=warnings,
    )


def auto_adjust_box_weights(boxes: Boxes, articles: Articles) -> dict[str, Box]:
    """Boxgewichte je Artikel proportional skalieren, bis die Summen passen."""
    new_boxes = dict(boxes)
    for article in articles.values():
        own = boxes_for_article(boxes, article.label)
        if not own:
            continue
        net = sum(box.net_weight for box in own)
        gross = sum(box.gross_weight for box in own)
        for box in own:
            new_net = box.net_weight * article.net_weight / net if net > 0 else _share(article.net_weight, len(own))
            new_gross = (
                box.gross_weight * article.total_weight / gross if gross > 0
                else _share(article.total_weight, len(own))
            )
            new_boxes[box.id] = replace(box, net_weight=new_net, gross_weight=new_gross)
    return new_boxes
