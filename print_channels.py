# print_channels.py
"""
Zwei Wege zum Drucker:

LocalBridgeChannel  - Desktop-Host mit direktem Zugriff auf /dev/usb/lp*,
                      schreibt TSPL-Bitmaps in die Gerätedatei.
RemoteHttpChannel   - Druck-Backend per HTTP (/qr/...).

Beide sprechen nur list_printers / submit / poll; der Dispatcher weiß nicht,
welcher Kanal dahintersteht.
"""
import glob
import os
import threading
import time
import uuid

import requests

from config import (
    API_BASE_URL,
    API_TIMEOUT,
    LABEL_DPI,
    LABEL_HEIGHT_INCHES,
    LABEL_WIDTH_INCHES,
    LOCAL_JOB_RETENTION_SECONDS,
    PRINT_CHANNEL,
    PRINTER_DEVICE_GLOB,
    PRINTER_DISCOVERY_TIMEOUT,
)
from errors import DispatchError, TransportError
from label_renderer import label_to_base64
from models import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PRINTING,
    JOB_QUEUED,
    JOB_STATUSES,
    JobStatusReport,
    PrinterInfo,
)
from tspl import build_label_bytes


def default_media() -> dict:
    return {"width": LABEL_WIDTH_INCHES, "height": LABEL_HEIGHT_INCHES, "dpi": LABEL_DPI}


class PrintChannel:
    name = "base"

    def list_printers(self) -> list:
        raise NotImplementedError

    def submit(self, printer_name: str, images: list, media: dict | None = None,
               box_info: dict | None = None) -> str:
        raise NotImplementedError

    def poll(self, job_id: str) -> JobStatusReport:
        raise NotImplementedError


class LocalBridgeChannel(PrintChannel):
    name = "local"

    def __init__(self, device_glob: str = PRINTER_DEVICE_GLOB,
                 retention_seconds: float = LOCAL_JOB_RETENTION_SECONDS):
        self.device_glob = device_glob
        self.retention_seconds = retention_seconds
        self._jobs = {}
        self._lock = threading.Lock()

    def _devices(self) -> list:
        return sorted(glob.glob(self.device_glob))

    def list_printers(self) -> list:
        devices = self._devices()
        print(f"[local-bridge] Gefundene Geräte: {devices}")
        return [
            PrinterInfo(
                name=path,
                connection_type="USB",
                status="online" if os.access(path, os.W_OK) else "offline",
                supports_label_printing=True,
                max_width_inches=LABEL_WIDTH_INCHES,
                max_height_inches=LABEL_HEIGHT_INCHES,
                dpi=LABEL_DPI,
            )
            for path in devices
        ]

    def _set(self, job_id: str, **fields) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.update(fields)
            if job["status"] in (JOB_COMPLETED, JOB_FAILED) and job["finished_at"] is None:
                job["finished_at"] = time.monotonic()

    def _evict_finished(self) -> None:
        """Endzustände, die keiner mehr abfragt (z.B. nach Timeout), aus der Tabelle nehmen."""
        cutoff = time.monotonic() - self.retention_seconds
        with self._lock:
            stale = [
                job_id for job_id, job in self._jobs.items()
                if job["finished_at"] is not None and job["finished_at"] <= cutoff
            ]
            for job_id in stale:
                del self._jobs[job_id]
        if stale:
            print(f"[local-bridge] {len(stale)} alte Aufträge verworfen")

    def submit(self, printer_name: str, images: list, media: dict | None = None,
               box_info: dict | None = None) -> str:
        if printer_name not in self._devices() and not os.path.exists(printer_name):
            raise DispatchError(printer_name, "Gerät nicht gefunden")
        self._evict_finished()

        job_id = uuid.uuid4().hex[:12]
        with self._lock:
            self._jobs[job_id] = {"status": JOB_QUEUED, "progress": 0, "error": None, "finished_at": None}

        threading.Thread(
            target=self._run_job,
            args=(job_id, printer_name, list(images), media or default_media()),
            daemon=True,
        ).start()
        print(f"[local-bridge] Auftrag {job_id}: {len(images)} Etikett(en) an {printer_name}")
        return job_id

    def _run_job(self, job_id: str, device: str, images: list, media: dict) -> None:
        self._set(job_id, status=JOB_PRINTING)
        try:
            with open(device, "wb") as f:
                for index, img in enumerate(images, start=1):
                    f.write(build_label_bytes(img, media["width"], media["height"]))
                    f.flush()
                    self._set(job_id, progress=int(index * 100 / len(images)))
        except OSError as exc:
            print(f"[local-bridge] Auftrag {job_id} fehlgeschlagen: {exc}")
            self._set(job_id, status=JOB_FAILED, error=str(exc))
            return
        self._set(job_id, status=JOB_COMPLETED, progress=100)

    def poll(self, job_id: str) -> JobStatusReport:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return JobStatusReport(status=JOB_FAILED, error=f"Auftrag {job_id} unbekannt")
            report = JobStatusReport(status=job["status"], progress=job["progress"], error=job["error"])
            if job["status"] in (JOB_COMPLETED, JOB_FAILED):
                # abgeschlossene Aufträge nur einmal melden
                del self._jobs[job_id]
        return report


STATUS_ALIASES = {
    "pending": JOB_QUEUED,
    "processing": JOB_PRINTING,
    "done": JOB_COMPLETED,
    "error": JOB_FAILED,
}


def _error_detail(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        detail = data.get("detail") or data.get("message")
        if detail:
            return detail if isinstance(detail, str) else str(detail)
    return f"HTTP {resp.status_code}"


def _json_body(resp: requests.Response, url: str) -> dict:
    """Antwort als dict; HTML-Fehlerseiten oder Listen gelten als Übertragungsfehler."""
    try:
        data = resp.json()
    except ValueError as exc:
        raise TransportError(url, f"Antwort ist kein JSON (HTTP {resp.status_code})") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TransportError(url, f"unerwartete Antwort: {type(data).__name__}")
    return data


class RemoteHttpChannel(PrintChannel):
    name = "remote"

    def __init__(self, base_url: str = API_BASE_URL, timeout: float = API_TIMEOUT,
                 discovery_timeout: float = PRINTER_DISCOVERY_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.discovery_timeout = discovery_timeout

    def list_printers(self) -> list:
        url = f"{self.base_url}/qr/available-printers"
        try:
            r = requests.get(url, headers={"Accept": "application/json"}, timeout=self.discovery_timeout)
        except requests.RequestException as exc:
            raise TransportError(url, str(exc)) from exc
        if r.status_code != 200:
            raise TransportError(url, _error_detail(r))

        data = _json_body(r, url)
        printers = [
            PrinterInfo.from_dict(p) for p in data.get("printers") or []
            if isinstance(p, dict) and p.get("name")
        ]
        print(f"[remote] {len(printers)} Drucker vom Backend ({data.get('detection_status', '-')})")
        return printers

    def submit(self, printer_name: str, images: list, media: dict | None = None,
               box_info: dict | None = None) -> str:
        url = f"{self.base_url}/qr/create-print-job"
        media = media or default_media()
        box_info = box_info or {}
        body = {
            "transaction_no": box_info.get("transaction_no", ""),
            "company": box_info.get("company", ""),
            "box_numbers": box_info.get("box_numbers", []),
            "printer_name": printer_name,
            "print_settings": {
                "width": f"{media['width']:g}in",
                "height": f"{media['height']:g}in",
                "dpi": media["dpi"],
                "orientation": "landscape",
                "copies": 1,
            },
            "labels": [{"format": "png", "data": label_to_base64(img)} for img in images],
        }
        try:
            r = requests.post(url, json=body, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(url, str(exc)) from exc
        if not r.ok:
            raise DispatchError(printer_name, _error_detail(r))

        data = _json_body(r, url)
        job_id = data.get("job_id")
        if not job_id:
            raise DispatchError(printer_name, "keine Auftragsnummer erhalten")
        print(f"[remote] Auftrag {job_id}: {data.get('labels_count', len(images))} Etikett(en) an {printer_name}")
        return str(job_id)

    def poll(self, job_id: str) -> JobStatusReport:
        url = f"{self.base_url}/qr/print-job/{job_id}"
        try:
            r = requests.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(url, str(exc)) from exc
        if not r.ok:
            raise TransportError(url, _error_detail(r))

        data = _json_body(r, url)
        status = str(data.get("status") or "").lower()
        status = STATUS_ALIASES.get(status, status)
        if status not in JOB_STATUSES:
            # unbekannter Zwischenstand, weiter abfragen
            status = JOB_QUEUED
        try:
            progress = int(data.get("progress") or 0)
        except (TypeError, ValueError):
            progress = 0
        return JobStatusReport(
            status=status,
            progress=max(0, min(100, progress)),
            error=data.get("error_message") or data.get("error"),
        )


def detect_channel(mode: str = PRINT_CHANNEL, device_glob: str = PRINTER_DEVICE_GLOB,
                   base_url: str = API_BASE_URL) -> PrintChannel:
    """Einmal beim Start: lokaler Bridge-Kanal oder HTTP-Backend."""
    mode = (mode or "auto").lower()
    if mode == "local":
        channel = LocalBridgeChannel(device_glob)
    elif mode == "remote":
        channel = RemoteHttpChannel(base_url)
    elif glob.glob(device_glob):
        channel = LocalBridgeChannel(device_glob)
    else:
        channel = RemoteHttpChannel(base_url)
    print(f"[print_channels] Kanal: {channel.name} (Modus {mode})")
    return channel
