# config.py
import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

VIEWS_DIR = os.path.join(BASE_DIR, "views")
PUBLIC_DIR = os.path.join(BASE_DIR, "public")
LABEL_EXPORT_DIR = os.environ.get("LABEL_EXPORT_DIR", os.path.join(BASE_DIR, "labels"))


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        print(f"[config] Ungültiger Wert für {name}, nehme {default}")
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        print(f"[config] Ungültiger Wert für {name}, nehme {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ------------------------------------------------------------
# Backend (Buchungen, SKU-Auflösung, Druck-Backend)
# ------------------------------------------------------------

API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:8000").rstrip("/")
API_TIMEOUT = _env_float("API_TIMEOUT", 10.0)
PRINTER_DISCOVERY_TIMEOUT = _env_float("PRINTER_DISCOVERY_TIMEOUT", 3.0)

# ------------------------------------------------------------
# Drucker / Kanal
# ------------------------------------------------------------

# "local" = direkt auf Gerätedatei (Desktop-Host), "remote" = HTTP-Backend,
# "auto" = local, sobald Gerätedateien vorhanden sind
PRINT_CHANNEL = os.environ.get("PRINT_CHANNEL", "auto").strip().lower()
PRINTER_DEVICE_GLOB = os.environ.get("PRINTER_DEVICE_GLOB", "/dev/usb/lp*")
DEFAULT_PRINTER_NAME = "Default Printer"

# ------------------------------------------------------------
# Etikett: 4" x 2" bei 300 dpi
# ------------------------------------------------------------

LABEL_WIDTH_INCHES = _env_float("LABEL_WIDTH_INCHES", 4.0)
LABEL_HEIGHT_INCHES = _env_float("LABEL_HEIGHT_INCHES", 2.0)
LABEL_DPI = _env_int("LABEL_DPI", 300)
LABEL_LAYOUT = os.environ.get("LABEL_LAYOUT", "standard")

# ------------------------------------------------------------
# Druckaufträge
# ------------------------------------------------------------

POLL_INTERVAL_SECONDS = _env_float("POLL_INTERVAL_SECONDS", 2.0)
MAX_POLL_ATTEMPTS = _env_int("MAX_POLL_ATTEMPTS", 30)
INTER_JOB_DELAY_SECONDS = _env_float("INTER_JOB_DELAY_SECONDS", 0.5)
# abgeschlossene, nie abgefragte Aufträge der lokalen Bridge werden danach verworfen
LOCAL_JOB_RETENTION_SECONDS = _env_float("LOCAL_JOB_RETENTION_SECONDS", 600.0)

# Gewichtsabweichung Box <-> Artikel blockiert den Druck nur, wenn gesetzt
BLOCK_PRINT_ON_WEIGHT_MISMATCH = _env_bool("BLOCK_PRINT_ON_WEIGHT_MISMATCH", False)
WEIGHT_EPSILON = 0.01

# ------------------------------------------------------------
# Server
# ------------------------------------------------------------

HTTP_HOST = os.environ.get("HTTP_HOST", "0.0.0.0")
HTTP_PORT = _env_int("HTTP_PORT", 8080)
WS_HOST = os.environ.get("WS_HOST", "0.0.0.0")
WS_PORT = _env_int("WS_PORT", 8765)
DESKTOP_URL = os.environ.get("DESKTOP_URL", f"http://127.0.0.1:{HTTP_PORT}/desktop")
