"""Continuous analysis of a live frame source."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from pill_counter.config import LIVE_MIN_INTERVAL_S, LIVE_TICK_INTERVAL_S
from pill_counter.schemas import CountResult

logger = logging.getLogger(__name__)

FACING_ENVIRONMENT = "environment"
FACING_USER = "user"


class FrameSource(Protocol):
    def capture(self) -> Optional[str]:
        """Current frame as an image data URL, or None if not ready."""
        ...

    def set_facing_mode(self, facing_mode: str) -> None:
        ...


@dataclass(frozen=True)
class LiveSession:
    """Read-only snapshot of the scheduler state."""
    is_paused: bool = False
    is_analyzing: bool = False
    last_analysis_at: Optional[float] = None
    latest_result: Optional[CountResult] = None
    facing_mode: str = FACING_ENVIRONMENT


class LiveAnalysisScheduler:
    """
    Runs the counting pipeline against successive frames at a bounded rate.

    A timer fires every ``tick_interval`` seconds; each tick starts at most one
    analysis, and only when:
      - the scheduler is not stopped or paused,
      - no analysis is in flight (single-flight; the tick is skipped, not queued),
      - at least ``min_interval`` seconds passed since the last started analysis.

    Failures of a single analysis are logged and dropped. Results of an
    analysis started before a camera switch, a resume or ``stop()`` are
    discarded. ``stop()`` never cancels an in-flight call.
    """

    def __init__(
        self,
        analyze: Callable[[str], Awaitable[CountResult]],
        frame_source: FrameSource,
        tick_interval: float = LIVE_TICK_INTERVAL_S,
        min_interval: float = LIVE_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[LiveSession], None]] = None,
    ):
        self._analyze = analyze
        self._frame_source = frame_source
        self.tick_interval = tick_interval
        self.min_interval = min_interval
        self._clock = clock
        self._on_change = on_change

        self._paused = False
        self._analyzing = False
        self._last_started: Optional[float] = None
        self._latest: Optional[CountResult] = None
        self._facing_mode = FACING_ENVIRONMENT
        # Bumped whenever results of older analyses must no longer be shown.
        self._epoch = 0
        self._stopped = False
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    # -----------------------------------
    # State
    # -----------------------------------

    def snapshot(self) -> LiveSession:
        return LiveSession(
            is_paused=self._paused,
            is_analyzing=self._analyzing,
            last_analysis_at=self._last_started,
            latest_result=self._latest,
            facing_mode=self._facing_mode,
        )

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def _notify(self) -> None:
        if self._on_change is not None and not self._stopped:
            self._on_change(self.snapshot())

    # -----------------------------------
    # Timer
    # -----------------------------------

    def start(self) -> None:
        """Start the periodic timer; the first tick runs immediately."""
        if self.is_running:
            return
        self._stopped = False
        self._timer = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            "[LIVE] Scheduler started (tick=%ss, min_interval=%ss)",
            self.tick_interval,
            self.min_interval,
        )

    async def _run(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("[LIVE] Tick failed")
            await asyncio.sleep(self.tick_interval)

    def stop(self) -> None:
        """Stop scheduling. An in-flight analysis runs on, its result is dropped."""
        self._stopped = True
        self._epoch += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info("[LIVE] Scheduler stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight analysis, if any, to finish."""
        task = self._inflight
        if task is not None and not task.done():
            await asyncio.wait([task])

    # -----------------------------------
    # Ticks
    # -----------------------------------

    def tick(self) -> bool:
        """Start one analysis if the guards allow it. Returns True if started."""
        if self._stopped or self._paused or self._analyzing:
            return False

        now = self._clock()
        if self._last_started is not None and now - self._last_started < self.min_interval:
            return False

        try:
            frame = self._frame_source.capture()
        except Exception:
            logger.exception("[LIVE] Frame capture failed")
            return False
        if not frame:
            return False

        self._analyzing = True
        self._last_started = now
        self._inflight = asyncio.get_running_loop().create_task(
            self._analyze_frame(frame, self._epoch)
        )
        self._notify()
        return True

    async def _analyze_frame(self, frame: str, epoch: int) -> None:
        t0 = time.perf_counter()
        try:
            result = await self._analyze(frame)
        except Exception as e:
            # Live mode keeps going; the shown result just does not update.
            logger.error("[LIVE] Error analyzing frame: %s", e)
        else:
            if epoch == self._epoch and not self._stopped:
                self._latest = result
                logger.info(
                    "[LIVE] count=%s confidence=%s in %.3fs",
                    result.count,
                    result.confidence.value,
                    time.perf_counter() - t0,
                )
            else:
                logger.debug("[LIVE] Discarding stale result")
        finally:
            self._analyzing = False
            self._notify()

    # -----------------------------------
    # Controls
    # -----------------------------------

    def pause(self) -> None:
        if self._paused:
            return
        self._paused = True
        self._notify()

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._clear_result()
        if self.is_running:
            self.tick()

    def toggle_pause(self) -> bool:
        """Flip pause state; returns the new ``is_paused``."""
        if self._paused:
            self.resume()
        else:
            self.pause()
        return self._paused

    def switch_camera(self) -> str:
        """Flip facing mode and drop the markers of the previous camera."""
        self._facing_mode = FACING_USER if self._facing_mode == FACING_ENVIRONMENT else FACING_ENVIRONMENT
        self._frame_source.set_facing_mode(self._facing_mode)
        self._clear_result()
        return self._facing_mode

    def _clear_result(self) -> None:
        self._epoch += 1
        self._latest = None
        self._notify()
