# dispatcher.py
"""
Druckaufträge abschicken und bis zum Endzustand beobachten.

queued -> printing -> completed | failed

Der Status kommt vom Druckkanal; hier wird nur abgefragt. Die Abfrage endet
bei completed/failed oder nach max_poll_attempts (dann timed_out).
"""
import asyncio
from typing import Callable, Iterable

from config import INTER_JOB_DELAY_SECONDS, MAX_POLL_ATTEMPTS, POLL_INTERVAL_SECONDS
from errors import JobFailedError, LabelError, PollTimeoutError, PreconditionError, TransportError
from models import (
    JOB_FAILED,
    OUTCOME_TIMED_OUT,
    TERMINAL_STATUSES,
    BatchReport,
    BoxPrintResult,
    JobResult,
    JobStatusReport,
    PrintJob,
)


def raise_for_result(result: JobResult) -> None:
    if result.outcome == JOB_FAILED:
        raise JobFailedError(result.job_id, result.error)
    if result.outcome == OUTCOME_TIMED_OUT:
        raise PollTimeoutError(result.job_id, result.attempts)


def box_result_from_job(box_number: int, printer_name: str, result: JobResult) -> BoxPrintResult:
    try:
        raise_for_result(result)
    except LabelError as exc:
        return BoxPrintResult(
            box_number=box_number,
            ok=False,
            message=f"Box {box_number}: {exc.message}",
            job_id=result.job_id,
            outcome=result.outcome,
        )
    return BoxPrintResult(
        box_number=box_number,
        ok=True,
        message=f"Box {box_number} auf {printer_name} gedruckt",
        job_id=result.job_id,
        outcome=result.outcome,
    )


class PrintDispatcher:
    def __init__(self, channel, poll_interval: float = POLL_INTERVAL_SECONDS,
                 max_poll_attempts: int = MAX_POLL_ATTEMPTS,
                 inter_job_delay: float = INTER_JOB_DELAY_SECONDS,
                 on_update: Callable[[dict], None] | None = None):
        self.channel = channel
        self.poll_interval = poll_interval
        self.max_poll_attempts = max(1, int(max_poll_attempts))
        self.inter_job_delay = inter_job_delay
        self.on_update = on_update
        # nur laufende Aufträge; Endzustände werden entfernt
        self.jobs: dict = {}

    def _notify(self, job: PrintJob) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update({"type": "print_job", **job.to_dict()})
        except Exception as exc:
            print(f"[dispatcher] on_update Fehler: {exc}")

    async def submit_job(self, printer_name: str, images: list, media: dict | None = None,
                         box_info: dict | None = None) -> str:
        printer_name = (printer_name or "").strip()
        if not printer_name:
            raise PreconditionError("Bitte zuerst einen Drucker auswählen")
        if not images:
            raise PreconditionError("Keine Etiketten zum Drucken")

        job_id = await asyncio.to_thread(self.channel.submit, printer_name, list(images), media, box_info)
        job = PrintJob(job_id=job_id, printer_name=printer_name, images=list(images))
        self.jobs[job_id] = job
        print(f"[dispatcher] Auftrag {job_id} angelegt ({len(images)} Etikett(en), {printer_name})")
        self._notify(job)
        return job_id

    async def poll_job(self, job_id: str) -> JobStatusReport:
        report = await asyncio.to_thread(self.channel.poll, job_id)
        job = self.jobs.get(job_id)
        if job is not None and (job.status, job.progress, job.error) != (report.status, report.progress, report.error):
            job.status = report.status
            job.progress = report.progress
            job.error = report.error
            self._notify(job)
        return report

    async def wait_for_job(self, job_id: str) -> JobResult:
        try:
            return await self._watch(job_id)
        finally:
            # beobachtet wird nur bis zum Ergebnis, egal wie es ausgeht
            self.jobs.pop(job_id, None)

    async def _watch(self, job_id: str) -> JobResult:
        attempts = 0
        last: JobStatusReport | None = None

        while attempts < self.max_poll_attempts:
            attempts += 1
            try:
                report = await self.poll_job(job_id)
            except TransportError as exc:
                print(f"[dispatcher] Abfrage {attempts}/{self.max_poll_attempts} für {job_id} fehlgeschlagen: {exc.message}")
            else:
                last = report
                if report.status in TERMINAL_STATUSES:
                    print(f"[dispatcher] Auftrag {job_id}: {report.status}")
                    return JobResult(
                        job_id=job_id,
                        outcome=report.status,
                        progress=report.progress,
                        error=report.error,
                        attempts=attempts,
                    )
            if attempts < self.max_poll_attempts:
                await asyncio.sleep(self.poll_interval)

        print(f"[dispatcher] Auftrag {job_id}: kein Endzustand nach {attempts} Abfragen")
        return JobResult(
            job_id=job_id,
            outcome=OUTCOME_TIMED_OUT,
            progress=last.progress if last else 0,
            attempts=attempts,
        )

    async def print_images(self, printer_name: str, images: list, media: dict | None = None,
                           box_info: dict | None = None) -> JobResult:
        job_id = await self.submit_job(printer_name, images, media=media, box_info=box_info)
        return await self.wait_for_job(job_id)

    async def run_batch(self, items: Iterable, job_fn: Callable,
                        on_error: Callable[[object, str], BoxPrintResult]) -> list[BoxPrintResult]:
        """
        Nacheinander abarbeiten, mit kurzer Pause dazwischen. Ein Fehler wird
        notiert, die restlichen Einträge laufen trotzdem.
        """
        items = list(items)
        results = []
        for index, item in enumerate(items):
            try:
                results.append(await job_fn(item))
            except LabelError as exc:
                print(f"[dispatcher] Batch-Eintrag {index + 1}/{len(items)} fehlgeschlagen: {exc.message}")
                results.append(on_error(item, exc.message))
            except Exception as exc:
                print(f"[dispatcher] Unerwarteter Fehler bei Batch-Eintrag {index + 1}/{len(items)}: {exc}")
                results.append(on_error(item, f"Unerwarteter Fehler: {exc}"))

            if index < len(items) - 1 and self.inter_job_delay > 0:
                await asyncio.sleep(self.inter_job_delay)
        return results

    async def dispatch_batch(self, printer_name: str, labelled_images: list, media: dict | None = None,
                             box_info: dict | None = None) -> BatchReport:
        """labelled_images: [(box_number, [image, ...]), ...] in Druckreihenfolge."""
        printer_name = (printer_name or "").strip()
        if not printer_name:
            raise PreconditionError("Bitte zuerst einen Drucker auswählen")

        async def job_fn(item):
            box_number, images = item
            info = dict(box_info or {}, box_numbers=[box_number])
            result = await self.print_images(printer_name, images, media=media, box_info=info)
            return box_result_from_job(box_number, printer_name, result)

        def on_error(item, message):
            box_number = item[0]
            return BoxPrintResult(box_number=box_number, ok=False, message=f"Box {box_number}: {message}")

        results = await self.run_batch(labelled_images, job_fn, on_error)
        report = BatchReport(results=results)
        print(f"[dispatcher] Batch fertig: {report.message}")
        return report
