# tasks/mirror_dispatch.py
import asyncio
import logging
from typing import Set

from pusarapay.services.mirror_service import MirrorSync

logger = logging.getLogger("pusarapay.mirror")


class AsyncioMirrorDispatcher:
    """Runs MirrorSync as a detached task on the running event loop.

    The caller gets control back immediately; references to pending tasks
    are held here so they are not garbage collected mid-flight.
    """

    def __init__(self, mirror_sync: MirrorSync):
        self.mirror_sync = mirror_sync
        self._tasks: Set[asyncio.Task] = set()

    def __call__(self, bill_code: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self.mirror_sync.mirror(bill_code), name=f"mirror:{bill_code}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Mirror scheduled for bill {bill_code}")

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Mirror task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Mirror task {task.get_name()} crashed: {error}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight mirrors, e.g. on shutdown."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryMirrorDispatcher:
    """Queues MirrorSync on the Celery worker instead of the web process."""

    def __call__(self, bill_code: str) -> None:
        from pusarapay.tasks.mirror_celery import mirror_reservation_task

        try:
            mirror_reservation_task.delay(bill_code)
            logger.info(f"Mirror task queued via Celery -> {bill_code}")
        except Exception as e:
            logger.error(f"Mirror task failed to queue for bill {bill_code}: {e}", exc_info=True)

    async def drain(self) -> None:
        return None
