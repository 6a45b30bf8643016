"""Network-quiescence detection for rendered pages.

QuiescenceMonitor decides, from a live stream of resource request and
completion events, when a script-driven page has settled enough to read.
It runs inside the browser driver subprocess, on that process's asyncio
event loop, and holds all state for exactly one render.

Two timers race:

- The settle timer is armed every time the in-flight counter drops to zero
  and cancelled by any new request. If it fires, the page is quiescent.
- The deadline timer is armed once when navigation begins. If it fires first,
  the page is rendered as-is, even with requests still outstanding (pages
  with background polling never go quiet).

State machine::

    IDLE -> NAVIGATING -> LOADING <-> SETTLING -> RENDERED
              (deadline: any state -> RENDERED)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_MS = 300
DEFAULT_MAX_WAIT_MS = 10_000


class RenderState(Enum):
    """Where a single render currently is."""

    IDLE = "idle"
    NAVIGATING = "navigating"
    LOADING = "loading"
    SETTLING = "settling"
    RENDERED = "rendered"


class RenderTrigger(Enum):
    """Why a page was rendered."""

    SETTLED = "settled"
    DEADLINE = "deadline"


class QuiescenceMonitor:
    """Tracks in-flight resource loads and signals when to render.

    Example::

        monitor = QuiescenceMonitor(settle_seconds=0.3, max_wait_seconds=10)
        monitor.start()
        page.on("request", lambda r: monitor.request_started(r.url))
        ...
        trigger = await monitor.wait()

    Attributes:
        settle_seconds: Quiet time required after the counter reaches zero.
        max_wait_seconds: Hard deadline measured from start().
        in_flight: Requests seen minus requests completed. Signed.
        state: Current RenderState.
        trigger: Why the render fired, None until it has.
        rendered_after: Seconds from start() to the render, None until then.
    """

    def __init__(
        self,
        settle_seconds: float = DEFAULT_SETTLE_MS / 1000,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_MS / 1000,
    ) -> None:
        self.settle_seconds = settle_seconds
        self.max_wait_seconds = max_wait_seconds
        self.in_flight = 0
        self.state = RenderState.IDLE
        self.trigger: RenderTrigger | None = None
        self.rendered_after: float | None = None

        self._ids = itertools.count(1)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._rendered: asyncio.Future[RenderTrigger] | None = None
        self._settle_timer: asyncio.TimerHandle | None = None
        self._deadline_timer: asyncio.TimerHandle | None = None
        self._started_at = 0.0

    def start(self) -> None:
        """Begin a render: arm the hard deadline.

        Must be called from inside the running event loop, before navigation.
        """
        if self.state is not RenderState.IDLE:
            raise RuntimeError("QuiescenceMonitor can only be started once")

        self._loop = asyncio.get_running_loop()
        self._rendered = self._loop.create_future()
        self._started_at = self._loop.time()
        self.state = RenderState.NAVIGATING
        self._deadline_timer = self._loop.call_later(
            self.max_wait_seconds, self._render, RenderTrigger.DEADLINE
        )

    @property
    def done(self) -> bool:
        return self.state is RenderState.RENDERED

    def elapsed(self) -> float:
        """Seconds since start()."""
        if self._loop is None:
            return 0.0
        return self._loop.time() - self._started_at

    def request_started(self, url: str) -> int:
        """Record a new resource request.

        Cancels any pending settle timer.

        Returns:
            Identifier to pass to request_finished().
        """
        request_id = next(self._ids)
        logger.info(f"> {request_id} - {url}")
        if self.done:
            return request_id

        self.in_flight += 1
        self._cancel_settle()
        self.state = RenderState.LOADING
        return request_id

    def request_finished(
        self, request_id: int, url: str, status: int | str = ""
    ) -> None:
        """Record a completed (or failed) resource request.

        Arms the settle timer when nothing is left in flight.
        """
        logger.info(f"{request_id} {status} - {url}")
        if self.done:
            return

        self.in_flight -= 1
        if self.in_flight == 0:
            self._cancel_settle()
            self.state = RenderState.SETTLING
            assert self._loop is not None
            self._settle_timer = self._loop.call_later(
                self.settle_seconds, self._render, RenderTrigger.SETTLED
            )

    async def wait(self) -> RenderTrigger:
        """Wait until the page should be rendered.

        Returns:
            The RenderTrigger that fired.
        """
        if self._rendered is None:
            raise RuntimeError("QuiescenceMonitor.wait() called before start()")
        return await self._rendered

    def stop(self) -> None:
        """Cancel both timers without rendering."""
        self._cancel_settle()
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None

    def _cancel_settle(self) -> None:
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None

    def _render(self, trigger: RenderTrigger) -> None:
        if self.done:
            return
        self.stop()
        self.state = RenderState.RENDERED
        self.trigger = trigger
        self.rendered_after = self.elapsed()
        logger.debug(
            f"Rendering after {self.rendered_after:.3f}s ({trigger.value}, "
            f"{self.in_flight} in flight)"
        )
        assert self._rendered is not None
        if not self._rendered.done():
            self._rendered.set_result(trigger)
