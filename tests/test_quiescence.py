"""Tests for network-quiescence detection.

The QuiescenceMonitor is driven directly with synthetic request events on
the test's event loop. The render driver's event wiring is checked with a
stand-in page object, so no browser is needed.
"""

import asyncio
import logging

import pytest

from blockscrape.fetcher.quiescence import (
    QuiescenceMonitor,
    RenderState,
    RenderTrigger,
)
from blockscrape.fetcher.render_driver import watch_requests
from tests.fake_playwright import FakePage, FakeRequest, FakeResponse

# Slack allowed for timer scheduling on a loaded test machine.
SLACK = 0.25


def schedule_finish(monitor: QuiescenceMonitor, delay: float, url: str) -> None:
    """Start a request now and finish it after delay seconds."""
    request_id = monitor.request_started(url)
    asyncio.get_running_loop().call_later(
        delay, monitor.request_finished, request_id, url, 200
    )


class TestDebounce:
    """Tests for the settle window."""

    @pytest.mark.asyncio
    async def test_renders_after_last_resource_plus_window(self):
        """Resources finishing at 50/150/250ms shall render at about 250ms + window."""
        monitor = QuiescenceMonitor(settle_seconds=0.1, max_wait_seconds=5.0)
        monitor.start()
        for delay in (0.05, 0.15, 0.25):
            schedule_finish(monitor, delay, f"http://example.com/{delay}")

        trigger = await monitor.wait()

        assert trigger is RenderTrigger.SETTLED
        assert monitor.in_flight == 0
        assert 0.3 <= monitor.rendered_after < 0.35 + SLACK

    @pytest.mark.asyncio
    async def test_new_request_cancels_settle_timer(self):
        """A request arriving inside the window shall postpone the render."""
        monitor = QuiescenceMonitor(settle_seconds=0.1, max_wait_seconds=5.0)
        monitor.start()
        loop = asyncio.get_running_loop()

        schedule_finish(monitor, 0.05, "http://example.com/a")
        # Starts 100ms in, while the settle timer armed at 50ms is pending
        loop.call_later(
            0.1, schedule_finish, monitor, 0.1, "http://example.com/b"
        )

        trigger = await monitor.wait()

        assert trigger is RenderTrigger.SETTLED
        assert 0.28 <= monitor.rendered_after < 0.3 + SLACK

    @pytest.mark.asyncio
    async def test_state_transitions(self):
        """The monitor shall move IDLE, NAVIGATING, LOADING, SETTLING, RENDERED."""
        monitor = QuiescenceMonitor(settle_seconds=0.05, max_wait_seconds=5.0)
        assert monitor.state is RenderState.IDLE

        monitor.start()
        assert monitor.state is RenderState.NAVIGATING

        request_id = monitor.request_started("http://example.com/")
        assert monitor.state is RenderState.LOADING
        assert monitor.in_flight == 1

        monitor.request_finished(request_id, "http://example.com/", 200)
        assert monitor.state is RenderState.SETTLING

        await monitor.wait()
        assert monitor.state is RenderState.RENDERED
        assert monitor.done


class TestDeadline:
    """Tests for the hard deadline."""

    @pytest.mark.asyncio
    async def test_never_completing_resource(self):
        """A resource that never completes shall force a deadline render."""
        monitor = QuiescenceMonitor(settle_seconds=0.05, max_wait_seconds=0.3)
        monitor.start()
        monitor.request_started("http://example.com/poll")
        schedule_finish(monitor, 0.05, "http://example.com/fast")

        trigger = await monitor.wait()

        assert trigger is RenderTrigger.DEADLINE
        assert monitor.in_flight == 1
        assert 0.28 <= monitor.rendered_after < 0.3 + SLACK

    @pytest.mark.asyncio
    async def test_no_activity_renders_at_deadline(self):
        """A page with no resource events shall render at the deadline."""
        monitor = QuiescenceMonitor(settle_seconds=0.05, max_wait_seconds=0.1)
        monitor.start()
        assert await monitor.wait() is RenderTrigger.DEADLINE

    @pytest.mark.asyncio
    async def test_render_happens_once(self):
        """After rendering, further events shall not change the outcome."""
        monitor = QuiescenceMonitor(settle_seconds=0.05, max_wait_seconds=0.1)
        monitor.start()
        await monitor.wait()

        request_id = monitor.request_started("http://example.com/late")
        monitor.request_finished(request_id, "http://example.com/late", 200)
        await asyncio.sleep(0.1)

        assert monitor.trigger is RenderTrigger.DEADLINE
        assert monitor.in_flight == 0
        assert await monitor.wait() is RenderTrigger.DEADLINE


class TestMisuse:
    @pytest.mark.asyncio
    async def test_start_twice(self):
        """start() shall only be allowed once."""
        monitor = QuiescenceMonitor()
        monitor.start()
        with pytest.raises(RuntimeError):
            monitor.start()
        monitor.stop()

    @pytest.mark.asyncio
    async def test_wait_before_start(self):
        """wait() before start() shall raise."""
        with pytest.raises(RuntimeError):
            await QuiescenceMonitor().wait()


class TestEventLog:
    @pytest.mark.asyncio
    async def test_logs_requests_and_completions(self, caplog):
        """Requests shall log "> id - url" and completions "id status - url"."""
        caplog.set_level(logging.INFO, logger="blockscrape.fetcher.quiescence")
        monitor = QuiescenceMonitor(settle_seconds=0.01, max_wait_seconds=1.0)
        monitor.start()

        request_id = monitor.request_started("http://example.com/a.js")
        monitor.request_finished(request_id, "http://example.com/a.js", 200)
        await monitor.wait()

        assert "> 1 - http://example.com/a.js" in caplog.messages
        assert "1 200 - http://example.com/a.js" in caplog.messages


# =============================================================================
# Render driver event wiring
# =============================================================================


class TestWatchRequests:
    """Tests for feeding page events into the monitor."""

    @pytest.mark.asyncio
    async def test_registers_lifecycle_events(self):
        """All four request lifecycle events shall be observed."""
        page = FakePage()
        watch_requests(page, QuiescenceMonitor())
        assert set(page.handlers) == {
            "request",
            "response",
            "requestfinished",
            "requestfailed",
        }

    @pytest.mark.asyncio
    async def test_finished_and_failed_both_decrement(self, caplog):
        """Finished and failed requests shall both leave the in-flight count."""
        caplog.set_level(logging.INFO, logger="blockscrape.fetcher.quiescence")
        monitor = QuiescenceMonitor(settle_seconds=0.01, max_wait_seconds=1.0)
        page = FakePage()
        watch_requests(page, monitor)
        monitor.start()

        ok = FakeRequest("http://example.com/ok.css")
        bad = FakeRequest("http://example.com/bad.js", failure="net::ERR_FAILED")
        page.emit("request", ok)
        page.emit("request", bad)
        assert monitor.in_flight == 2

        page.emit("response", FakeResponse(ok, 200))
        page.emit("requestfinished", ok)
        page.emit("requestfailed", bad)
        assert monitor.in_flight == 0

        assert await monitor.wait() is RenderTrigger.SETTLED
        assert "1 200 - http://example.com/ok.css" in caplog.messages
        assert (
            "2 failed (net::ERR_FAILED) - http://example.com/bad.js"
            in caplog.messages
        )

    @pytest.mark.asyncio
    async def test_unknown_request_ignored(self):
        """Completion of a request never seen starting shall be ignored."""
        monitor = QuiescenceMonitor()
        page = FakePage()
        watch_requests(page, monitor)
        monitor.start()

        page.emit("requestfinished", FakeRequest("http://example.com/x"))
        assert monitor.in_flight == 0
        monitor.stop()
