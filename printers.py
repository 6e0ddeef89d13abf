# printers.py

from config import DEFAULT_PRINTER_NAME, LABEL_DPI, LABEL_HEIGHT_INCHES, LABEL_WIDTH_INCHES
from errors import LabelError, PreconditionError
from models import PrinterInfo


def default_printer() -> PrinterInfo:
    return PrinterInfo(
        name=DEFAULT_PRINTER_NAME,
        connection_type="USB",
        status="online",
        supports_label_printing=True,
        max_width_inches=LABEL_WIDTH_INCHES,
        max_height_inches=LABEL_HEIGHT_INCHES,
        dpi=LABEL_DPI,
    )


def auto_select(printers: list[PrinterInfo]) -> str | None:
    """Erster Drucker, der online ist und Etiketten kann, sonst None."""
    for printer in printers:
        if printer.usable_for_labels:
            return printer.name
    return None


class PrinterDirectory:
    def __init__(self, channel):
        self.channel = channel

    def list_printers(self) -> list[PrinterInfo]:
        try:
            printers = self.channel.list_printers()
        except LabelError as exc:
            print(f"[printers] Druckerliste nicht verfügbar: {exc.message}")
            printers = []

        if not printers:
            print("[printers] Keine Drucker gefunden, nehme Standarddrucker")
            return [default_printer()]
        return printers


class PrintSession:
    """
    Druckerauswahl einer Sitzung. Wird explizit an Druckaufrufe übergeben
    statt global gehalten.
    """

    def __init__(self, directory: PrinterDirectory):
        self.directory = directory
        self.printers: list[PrinterInfo] = []
        self.selected_printer: str | None = None
        self._explicit = False

    def refresh(self) -> list[PrinterInfo]:
        self.printers = self.directory.list_printers()
        names = {p.name for p in self.printers}

        if self.selected_printer and self.selected_printer not in names:
            print(f"[printers] Ausgewählter Drucker {self.selected_printer} nicht mehr vorhanden")
            self.selected_printer = None
            self._explicit = False

        if not self._explicit:
            self.selected_printer = auto_select(self.printers)
            if self.selected_printer:
                print(f"[printers] Automatisch gewählt: {self.selected_printer}")
        return self.printers

    def select(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise PreconditionError("Kein Drucker angegeben")
        if self.printers and name not in {p.name for p in self.printers}:
            raise PreconditionError(f"Drucker {name} ist nicht verfügbar")
        self.selected_printer = name
        self._explicit = True
        print(f"[printers] Drucker gewählt: {name}")

    def clear(self) -> None:
        self.selected_printer = None
        self._explicit = False

    def require_printer(self) -> str:
        if not self.selected_printer:
            raise PreconditionError("Bitte zuerst einen Drucker auswählen")
        return self.selected_printer

    def to_dict(self) -> dict:
        return {
            "selected_printer": self.selected_printer,
            "printers": [p.to_dict() for p in self.printers],
        }
