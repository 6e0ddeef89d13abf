import asyncio

import pytest
from PIL import Image

import print_channels
from conftest import FakeChannel, FakeResponse
from dispatcher import PrintDispatcher, box_result_from_job, raise_for_result
from errors import JobFailedError, PollTimeoutError, PreconditionError, TransportError
from models import JobResult, JobStatusReport
from print_channels import RemoteHttpChannel


def _image():
    return Image.new("RGB", (40, 20), "white")


def _dispatcher(channel, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("max_poll_attempts", 5)
    kwargs.setdefault("inter_job_delay", 0)
    return PrintDispatcher(channel, **kwargs)


class FlakyChannel(FakeChannel):
    """Erste Abfragen scheitern am Netz, danach normaler Ablauf."""

    def __init__(self, failures, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    def poll(self, job_id):
        if self.failures > 0:
            self.failures -= 1
            self.polls.append(job_id)
            raise TransportError("http://printer-api", "timeout")
        return super().poll(job_id)


class TestPreconditions:
    def test_empty_printer_makes_no_channel_calls(self, channel):
        dispatcher = _dispatcher(channel)
        before = channel.calls

        with pytest.raises(PreconditionError):
            asyncio.run(dispatcher.print_images("", [_image()]))
        assert channel.calls == before

    def test_empty_images(self, channel):
        with pytest.raises(PreconditionError):
            asyncio.run(_dispatcher(channel).submit_job("Label-1", []))
        assert channel.submitted == []

    def test_batch_without_printer(self, channel):
        with pytest.raises(PreconditionError):
            asyncio.run(_dispatcher(channel).dispatch_batch(" ", [(1, [_image()])]))
        assert channel.calls == 0


class TestWaitForJob:
    def test_completes(self, channel):
        dispatcher = _dispatcher(channel)
        result = asyncio.run(dispatcher.print_images("Label-1", [_image()]))

        assert result.ok
        assert result.outcome == "completed"
        assert result.attempts == 3
        assert dispatcher.jobs == {}

    def test_failed_job(self):
        channel = FakeChannel(statuses=[JobStatusReport("failed", 0, "Kein Papier")])
        result = asyncio.run(_dispatcher(channel).print_images("Label-1", [_image()]))

        assert result.outcome == "failed"
        assert result.error == "Kein Papier"
        assert len(channel.polls) == 1

    def test_stuck_job_times_out(self):
        channel = FakeChannel(statuses=[JobStatusReport("queued", 0)])
        result = asyncio.run(_dispatcher(channel, max_poll_attempts=4).print_images("Label-1", [_image()]))

        assert result.outcome == "timed_out"
        assert result.attempts == 4
        assert len(channel.polls) == 4
        assert not result.ok

    def test_transport_errors_count_as_attempts(self):
        channel = FlakyChannel(failures=2)
        result = asyncio.run(_dispatcher(channel).print_images("Label-1", [_image()]))

        assert result.ok
        assert result.attempts == 5

    def test_transport_errors_until_timeout(self):
        channel = FlakyChannel(failures=10)
        result = asyncio.run(_dispatcher(channel, max_poll_attempts=3).print_images("Label-1", [_image()]))

        assert result.outcome == "timed_out"
        assert result.attempts == 3

    def test_updates_are_published(self, channel):
        updates = []
        dispatcher = _dispatcher(channel, on_update=updates.append)
        asyncio.run(dispatcher.print_images("Label-1", [_image()]))

        assert [u["status"] for u in updates] == ["queued", "printing", "completed"]
        assert updates[-1]["progress"] == 100
        assert all(u["type"] == "print_job" and u["job_id"] == "job-1" for u in updates)

    def test_broken_listener_does_not_stop_job(self, channel):
        def listener(update):
            raise RuntimeError("kaputt")

        result = asyncio.run(_dispatcher(channel, on_update=listener).print_images("Label-1", [_image()]))
        assert result.ok

    def test_job_forgotten_when_poll_breaks(self):
        class BrokenChannel(FakeChannel):
            def poll(self, job_id):
                raise RuntimeError("Antwort unlesbar")

        dispatcher = _dispatcher(BrokenChannel())
        with pytest.raises(RuntimeError):
            asyncio.run(dispatcher.print_images("Label-1", [_image()]))
        assert dispatcher.jobs == {}

    def test_unreadable_remote_polls_time_out(self, monkeypatch):
        monkeypatch.setattr(
            print_channels.requests, "post",
            lambda url, json=None, headers=None, timeout=None: FakeResponse(200, {"job_id": "J-9"}),
        )
        monkeypatch.setattr(
            print_channels.requests, "get",
            lambda url, headers=None, timeout=None: FakeResponse(200, text="<html>Bad Gateway</html>"),
        )
        dispatcher = _dispatcher(RemoteHttpChannel("http://backend"), max_poll_attempts=3)

        result = asyncio.run(dispatcher.print_images("Zebra", [_image()]))

        assert result.outcome == "timed_out"
        assert result.attempts == 3
        assert dispatcher.jobs == {}


class TestBatch:
    def test_failure_in_the_middle_keeps_going(self):
        channel = FakeChannel(fail_on_submit={3})
        items = [(n, [_image()]) for n in range(1, 6)]

        report = asyncio.run(_dispatcher(channel).dispatch_batch("Label-1", items))

        assert [r.box_number for r in report.results] == [1, 2, 3, 4, 5]
        assert [r.ok for r in report.results] == [True, True, False, True, True]
        assert report.failure_count == 1
        assert "Papierstau" in report.results[2].message
        assert report.message == "4 von 5 gedruckt, neu drucken: Box 3"
        assert len(channel.submitted) == 5

    def test_each_box_submitted_separately(self, channel):
        items = [(n, [_image()]) for n in (7, 8)]
        asyncio.run(_dispatcher(channel).dispatch_batch("Label-1", items, box_info={"company": "ACME"}))

        assert [s["box_info"]["box_numbers"] for s in channel.submitted] == [[7], [8]]
        assert channel.submitted[0]["box_info"]["company"] == "ACME"

    def test_unexpected_error_is_recorded(self, channel):
        dispatcher = _dispatcher(channel)

        async def job_fn(item):
            raise RuntimeError("boom")

        results = asyncio.run(dispatcher.run_batch([1, 2], job_fn, lambda item, msg: msg))
        assert results == ["Unerwarteter Fehler: boom"] * 2

    def test_all_ok_message(self, channel):
        report = asyncio.run(_dispatcher(channel).dispatch_batch("Label-1", [(1, [_image()])]))
        assert report.ok
        assert report.message == "1 Etikett(en) gedruckt"


class TestResults:
    def test_raise_for_result(self):
        raise_for_result(JobResult("j", "completed"))
        with pytest.raises(JobFailedError):
            raise_for_result(JobResult("j", "failed", error="Kein Papier"))
        with pytest.raises(PollTimeoutError):
            raise_for_result(JobResult("j", "timed_out", attempts=30))

    def test_timeout_message_asks_to_check_printer(self):
        result = box_result_from_job(4, "Label-1", JobResult("j", "timed_out", attempts=30))

        assert not result.ok
        assert result.message.startswith("Box 4: ")
        assert "nach 30 Abfragen" in result.message

    def test_success_message(self):
        result = box_result_from_job(4, "Label-1", JobResult("j", "completed", progress=100))
        assert result.message == "Box 4 auf Label-1 gedruckt"
