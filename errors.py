# errors.py


class LabelError(Exception):
    """Basis aller Fehler im Etiketten-/Druckablauf. message ist für die Anzeige gedacht."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LabelValidationError(LabelError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Etikett ungültig: " + ", ".join(self.errors))


class ResolutionError(LabelError):
    def __init__(self, item_description: str, reason: str = ""):
        self.item_description = item_description
        text = f'SKU für "{item_description}" nicht gefunden'
        if reason:
            text += f": {reason}"
        super().__init__(text)


class PreconditionError(LabelError):
    pass


class TransportError(LabelError):
    def __init__(self, target: str, reason: str):
        self.target = target
        super().__init__(f"Verbindung zu {target} fehlgeschlagen: {reason}")


class DispatchError(LabelError):
    def __init__(self, printer_name: str, reason: str):
        self.printer_name = printer_name
        super().__init__(f"Drucker {printer_name} hat den Auftrag abgelehnt: {reason}")


class JobFailedError(LabelError):
    def __init__(self, job_id: str, reason: str | None):
        self.job_id = job_id
        super().__init__(f"Druckauftrag {job_id} fehlgeschlagen: {reason or 'unbekannter Fehler'}")


class PollTimeoutError(LabelError):
    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            f"Abschluss von Druckauftrag {job_id} konnte nach {attempts} Abfragen "
            f"nicht bestätigt werden, bitte am Drucker prüfen"
        )
