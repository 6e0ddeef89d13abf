# label_renderer.py
"""
Etikett als Rasterbild erzeugen (Standard 4.0" x 2.0").

Alle Maße sind in Zoll angegeben und werden erst beim Rendern mit der dpi
multipliziert, damit dieselbe Logik bei 203 und 300 dpi passt.
"""
import base64
import os
from io import BytesIO

import qrcode
from PIL import Image, ImageDraw, ImageFont

from config import LABEL_DPI, LABEL_EXPORT_DIR, LABEL_HEIGHT_INCHES, LABEL_LAYOUT, LABEL_WIDTH_INCHES
from errors import LabelValidationError
from label_payload import encode_payload, parse_date, validate_payload
from models import LabelPayload

BORDER_INCHES = 0.05
PADDING_INCHES = 0.1
LINE_HEIGHT_INCHES = 0.12
FONT_SIZE_INCHES = 0.08
HEADER_SCALE = 1.2
FOOTER_SCALE = 0.9

# Breite des QR-Bereichs je Layout
LAYOUTS = {
    "standard": lambda width_inches: 1.5,
    "split": lambda width_inches: width_inches / 2,
}

TRUNCATE_FALLBACK_CHARS = 20

FONT_CANDIDATES = {
    True: ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf"),
    False: ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf"),
}
_font_cache = {}


def to_pixels(inches: float, dpi: int) -> int:
    return int(round(inches * dpi))


def load_font(size: int, bold: bool = False):
    key = (size, bold)
    if key in _font_cache:
        return _font_cache[key]

    font = None
    for name in FONT_CANDIDATES[bold]:
        try:
            font = ImageFont.truetype(name, size)
            break
        except OSError:
            continue
    if font is None:
        # mitgelieferte Pillow-Schrift, skalierbar ab Pillow 10.1
        font = ImageFont.load_default(size=size)

    _font_cache[key] = font
    return font


def truncate_text(draw: ImageDraw.ImageDraw, text: str, max_width: float, font) -> str:
    """Größtes Wort-Präfix, das in max_width passt, sonst 20 Zeichen + '...'."""
    text = text or ""
    if draw.textlength(text, font=font) <= max_width:
        return text

    truncated = ""
    for word in text.split(" "):
        candidate = f"{truncated} {word}" if truncated else word
        if draw.textlength(candidate, font=font) <= max_width:
            truncated = candidate
        else:
            break
    return truncated or text[:TRUNCATE_FALLBACK_CHARS] + "..."


def format_weight(value) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "-"
    return f"{round(number, 3):g}kg"


def format_date(value: str) -> str:
    parsed = parse_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else value


def make_qr_image(data: str, size_px: int) -> Image.Image:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=0,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
    return img.resize((size_px, size_px), Image.NEAREST)


def _check_settings(payload: LabelPayload, width_inches: float, height_inches: float, dpi: int, layout: str) -> None:
    errors = validate_payload(payload)
    if errors:
        raise LabelValidationError(errors)
    if layout not in LAYOUTS:
        raise ValueError(f"Unbekanntes Layout: {layout}")
    if width_inches <= 0 or height_inches <= 0 or dpi <= 0:
        raise ValueError("Etikettmaße und dpi müssen positiv sein")


def render_label(payload: LabelPayload, width_inches: float = LABEL_WIDTH_INCHES,
                 height_inches: float = LABEL_HEIGHT_INCHES, dpi: int = LABEL_DPI,
                 layout: str = LABEL_LAYOUT) -> Image.Image:
    _check_settings(payload, width_inches, height_inches, dpi, layout)

    width_px = to_pixels(width_inches, dpi)
    height_px = to_pixels(height_inches, dpi)
    img = Image.new("RGB", (width_px, height_px), "white")
    draw = ImageDraw.Draw(img)

    border = max(1, to_pixels(BORDER_INCHES, dpi))
    draw.rectangle([0, 0, width_px - 1, height_px - 1], outline="black", width=border)

    padding = PADDING_INCHES * dpi
    code_section = LAYOUTS[layout](width_inches) * dpi
    qr_size = int(min(code_section - 2 * padding, height_px - 2 * padding))
    if qr_size > 0:
        qr_img = make_qr_image(encode_payload(payload), qr_size)
        img.paste(qr_img, (int(padding), int((height_px - qr_size) / 2)))

    x = code_section + padding
    for y, text, font in _plan_text_block(draw, payload, x, padding, width_px, height_px, dpi):
        draw.text((x, y), text, fill="black", font=font)
    return img


def plan_label_text(payload: LabelPayload, width_inches: float = LABEL_WIDTH_INCHES,
                    height_inches: float = LABEL_HEIGHT_INCHES, dpi: int = LABEL_DPI,
                    layout: str = LABEL_LAYOUT) -> list[tuple[float, str]]:
    """Textzeilen (y, Text) so, wie render_label sie setzen würde."""
    _check_settings(payload, width_inches, height_inches, dpi, layout)
    draw = ImageDraw.Draw(Image.new("RGB", (1, 1), "white"))
    padding = PADDING_INCHES * dpi
    x = LAYOUTS[layout](width_inches) * dpi + padding
    lines = _plan_text_block(
        draw, payload, x, padding, to_pixels(width_inches, dpi), to_pixels(height_inches, dpi), dpi
    )
    return [(y, text) for y, text, _ in lines]


def _plan_text_block(draw, payload: LabelPayload, x: float, padding: float,
                     width_px: int, height_px: int, dpi: int) -> list:
    line_height = LINE_HEIGHT_INCHES * dpi
    font_size = FONT_SIZE_INCHES * dpi
    max_width = width_px - x - padding

    header_font = load_font(max(1, round(font_size * HEADER_SCALE)), bold=True)
    body_font = load_font(max(1, round(font_size)), bold=True)
    small_font = load_font(max(1, round(font_size * FOOTER_SCALE)))

    lines = []
    y = padding

    # Firma + Transaktion immer
    for text in (f"Co: {payload.company}", f"Tx: {payload.transaction_no}"):
        lines.append((y, truncate_text(draw, text, max_width, header_font), header_font))
        y += line_height * HEADER_SCALE

    sku = payload.sku_id if payload.sku_id is not None else "-"
    body = [
        f"Box: {payload.box_number}",
        f"SKU: {sku}",
        "Item: " + truncate_text(draw, payload.item_description, max_width - draw.textlength("Item: ", font=body_font), body_font),
        f"Net: {format_weight(payload.net_weight)}",
        f"Gross: {format_weight(payload.total_weight)}",
    ]
    for text in body:
        lines.append((y, text, body_font))
        y += line_height

    # Ab hier nur, solange Platz ist
    if y < height_px - line_height * 4:
        if payload.manufacturing_date:
            lines.append((y, f"Mfg: {format_date(payload.manufacturing_date)}", body_font))
            y += line_height
        if payload.expiry_date:
            lines.append((y, f"Exp: {format_date(payload.expiry_date)}", body_font))
            y += line_height

    if y < height_px - line_height * 2 and payload.batch_number:
        batch = truncate_text(draw, payload.batch_number, max_width - draw.textlength("Batch: ", font=body_font), body_font)
        lines.append((y, f"Batch: {batch}", body_font))
        y += line_height

    if y < height_px - line_height and payload.approval_authority:
        auth = truncate_text(draw, payload.approval_authority, max_width - draw.textlength("Auth: ", font=small_font), small_font)
        lines.append((y, f"Auth: {auth}", small_font))
    return lines


def label_to_png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def label_to_base64(img: Image.Image) -> str:
    return base64.b64encode(label_to_png_bytes(img)).decode("ascii")


def render_preview(payload: LabelPayload, max_width_px: int = 300, **settings) -> Image.Image:
    """Verkleinerte Vorschau für den Bildschirm."""
    img = render_label(payload, **settings)
    if img.width <= max_width_px:
        return img
    ratio = max_width_px / img.width
    return img.resize((max_width_px, max(1, int(round(img.height * ratio)))), Image.LANCZOS)


def save_label(payload: LabelPayload, directory: str = LABEL_EXPORT_DIR, filename: str | None = None,
               **settings) -> str:
    os.makedirs(directory, exist_ok=True)
    filename = filename or f"label_box_{payload.box_number}_{payload.transaction_no}.png"
    path = os.path.join(directory, filename)
    render_label(payload, **settings).save(path, format="PNG")
    print(f"[label_renderer] Etikett gespeichert unter {path}")
    return path


def build_print_data(img: Image.Image, payload: LabelPayload, width_inches: float = LABEL_WIDTH_INCHES,
                     height_inches: float = LABEL_HEIGHT_INCHES, dpi: int = LABEL_DPI) -> dict:
    return {
        "type": "qr_label",
        "data": label_to_base64(img),
        "format": "png",
        "dimensions": {
            "width": width_inches,
            "height": height_inches,
            "dpi": dpi,
            "unit": "inches",
        },
        "box_info": {
            "box_number": payload.box_number,
            "article": payload.item_description,
            "transaction_no": payload.transaction_no,
            "company": payload.company,
        },
    }
