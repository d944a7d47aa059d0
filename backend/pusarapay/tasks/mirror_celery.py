import asyncio
import logging

from pusarapay.core.celery_app import celery_app

logger = logging.getLogger("pusarapay.mirror")


@celery_app.task(name="pusarapay.mirror_reservation", ignore_result=True)
def mirror_reservation_task(bill_code: str):
    """
    Wrapper to run the async MirrorSync in a sync Celery worker.
    No retries: a mirror is best-effort and MirrorSync already logs failures.
    """
    from pusarapay.core.dependencies import get_mirror_sync

    logger.info(f"Mirroring bill {bill_code} to legacy reservation store")
    asyncio.run(get_mirror_sync().mirror(bill_code))
