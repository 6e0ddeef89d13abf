# tspl.py
from PIL import Image, ImageOps

MM_PER_INCH = 25.4


def load_1bit_bitmap(img: Image.Image, invert: bool = False):
    """PIL-Bild -> (Breite, Höhe, Bytes pro Zeile, Rohdaten) im 1-bit-Format."""
    gray = img.convert("L")
    if invert:
        gray = ImageOps.invert(gray)
    mono = gray.convert("1", dither=Image.Dither.NONE)
    width_px, height_px = mono.size
    bytes_per_row = (width_px + 7) // 8
    raw = mono.tobytes()
    return width_px, height_px, bytes_per_row, raw


def tspl_bitmap_bytes(img: Image.Image, x: int = 0, y: int = 0, invert: bool = False) -> bytes:
    width_px, height_px, bytes_per_row, raw = load_1bit_bitmap(img, invert=invert)
    header = f"BITMAP {x},{y},{bytes_per_row},{height_px},0,".encode("ascii")
    return header + raw + b"\n"


def build_label_bytes(img: Image.Image, width_inches: float, height_inches: float,
                      copies: int = 1, invert: bool = False) -> bytes:
    """Ein komplettes Etikett als TSPL: Kopf, Bitmap, PRINT."""
    width_mm = round(width_inches * MM_PER_INCH, 1)
    height_mm = round(height_inches * MM_PER_INCH, 1)

    out = b""
    out += f"SIZE {width_mm:g} mm, {height_mm:g} mm\n".encode("ascii")
    out += b"GAP 3 mm, 0 mm\nDENSITY 8\nSPEED 4\nDIRECTION 1\nCLS\n"
    out += tspl_bitmap_bytes(img, x=0, y=0, invert=invert)
    out += f"PRINT 1,{max(1, int(copies))}\n".encode("ascii")
    return out
