import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from parkdesk import config
from parkdesk.errors import ParkDeskError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshingSnapshot:
    """A cached remote read, replaced wholesale on every successful fetch.

    Each fetch is stamped with a sequence number when it is issued. A response
    is applied only if no later-issued fetch has already been applied, so
    out-of-order completions never regress the view. A failed fetch leaves the
    previous snapshot in place and records the error.
    """

    name = "snapshot"

    def __init__(self, interval: float = config.REFRESH_INTERVAL_SECONDS, clock=utcnow):
        self.interval = interval
        self.clock = clock
        self.refreshed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._issued = 0
        self._applied = 0
        self._task: Optional[asyncio.Task] = None

    async def _fetch(self):
        raise NotImplementedError

    def _apply(self, result):
        raise NotImplementedError

    async def refresh(self) -> bool:
        self._issued += 1
        stamp = self._issued
        try:
            result = await self._fetch()
        except ParkDeskError as e:
            if stamp > self._applied:
                self.last_error = str(e)
            logging.warning(f"{self.name} refresh #{stamp} failed, keeping previous snapshot: {e}")
            return False

        if stamp < self._applied:
            logging.info(f"{self.name} refresh #{stamp} superseded by #{self._applied}, discarding")
            return False

        self._apply(result)
        self._applied = stamp
        self.refreshed_at = self.clock()
        self.last_error = None
        return True

    async def run(self):
        while True:
            try:
                await self.refresh()
            except Exception as e:
                # the loop outlives any single bad response
                self.last_error = f"{self.name} refresh failed: {e}"
                logging.error(f"Unexpected error during {self.name} refresh, keeping previous snapshot: {e}")
            await asyncio.sleep(self.interval)

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
