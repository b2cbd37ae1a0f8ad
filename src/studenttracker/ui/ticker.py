import asyncio
from typing import Callable, Optional

from studenttracker.config.logger import get_logger


logger = get_logger("ui.ticker")


class CountdownTicker:
    """
    Calls `on_tick` every `interval` seconds until `stop()` is called.

    Each tick is independent, so a late or skipped tick is corrected by the
    next one. Errors raised by `on_tick` stop the loop and are logged.
    `stop()` is final: a ticker stopped before its task starts never ticks.
    """

    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than 0")
        self.on_tick = on_tick
        self.interval = interval
        self._stopped = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def run(self, max_ticks: Optional[int] = None) -> int:
        if self._stopped or self._running:
            return 0
        self._running = True
        ticks = 0
        try:
            while not self._stopped:
                await asyncio.sleep(self.interval)
                if self._stopped:
                    break
                self.on_tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
        except Exception:
            logger.exception("Countdown tick failed, stopping ticker")
            self._stopped = True
        finally:
            self._running = False
        return ticks

    def stop(self) -> None:
        self._stopped = True
