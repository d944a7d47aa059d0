# services/mirror_service.py
import logging

from pusarapay.services.legacy_client import LegacyReservationClient
from pusarapay.services.payment_store import PaymentStore, most_recent

logger = logging.getLogger("pusarapay.mirror")


class MirrorSync:
    """Best-effort copy of a paid outcome into the legacy reservation store.

    Runs from a background context only. ``mirror`` never raises.
    """

    def __init__(self, store: PaymentStore, legacy: LegacyReservationClient):
        self.store = store
        self.legacy = legacy

    async def mirror(self, bill_code: str) -> None:
        try:
            await self._mirror(bill_code)
        except Exception as e:
            logger.error(f"Mirror failed for bill {bill_code}: {e}", exc_info=True)

    async def _mirror(self, bill_code: str) -> None:
        if not self.legacy.enabled:
            logger.debug(f"LEGACY_UPDATE_URL not set; skipping mirror for bill {bill_code}")
            return

        record = most_recent(await self.store.find_by_key("bill_code", bill_code))
        if record is None or not record.get("reservation_id"):
            logger.warning(f"Mirror skipped: no payment with a reservation for bill {bill_code}")
            return

        await self.legacy.mark_paid(int(record["reservation_id"]))
