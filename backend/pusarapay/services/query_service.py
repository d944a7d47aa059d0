from typing import Optional

from pusarapay.models.payment_model import PaymentOrder
from pusarapay.services.payment_store import ID_KEY, PaymentStore, most_recent


class PaymentQueryService:
    """Read side. Retries leave several orders per reservation; the newest wins."""

    def __init__(self, store: PaymentStore):
        self.store = store

    @staticmethod
    def _to_order(record) -> Optional[PaymentOrder]:
        if record is None:
            return None
        data = dict(record)
        return PaymentOrder.from_record(data.pop(ID_KEY), data)

    async def latest_for_reservation(self, reservation_id: int) -> Optional[PaymentOrder]:
        records = await self.store.find_by_key("reservation_id", reservation_id)
        return self._to_order(most_recent(records))

    async def by_bill_code(self, bill_code: str) -> Optional[PaymentOrder]:
        records = await self.store.find_by_key("bill_code", bill_code)
        return self._to_order(most_recent(records))
