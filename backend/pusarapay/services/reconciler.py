# services/reconciler.py
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pusarapay.core.errors import MalformedNotification, StorageError
from pusarapay.models.payment_model import (
    Acknowledgement,
    Notification,
    NotificationChannel,
    PaymentStatus,
    utcnow,
)
from pusarapay.services.payment_store import PaymentStore
from pusarapay.services.status import normalize

logger = logging.getLogger("pusarapay.reconcile")

# ToyyibPay spells the same field differently on the return redirect and
# the server callback. Candidates are tried in order; first non-empty wins.
NOTIFICATION_FIELDS = {
    "bill_code": ("billCode", "billcode", "BillCode", "bill_code"),
    "raw_status": ("statusId", "status_id", "StatusId", "status"),
    "transaction_id": ("transaction_id", "transactionId", "TransactionId", "refno"),
    "message": ("msg", "message", "reason"),
}

MirrorDispatcher = Callable[[str], None]


def first_present(payload: Mapping[str, Any], candidates: Iterable[str]) -> Optional[str]:
    for name in candidates:
        value = payload.get(name)
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def extract_notification(channel: NotificationChannel, payload: Mapping[str, Any]) -> Notification:
    fields = {
        field: first_present(payload, candidates)
        for field, candidates in NOTIFICATION_FIELDS.items()
    }
    return Notification(channel=channel, **fields)


class NotificationReconciler:
    """Applies redirect/callback notifications to the stored PaymentOrder.

    The update is keyed on bill_code only and is not conditioned on the
    current status: duplicates are idempotent and the last write wins.
    Nothing raised here crosses the acknowledgement boundary.
    """

    def __init__(self, store: PaymentStore, dispatch_mirror: Optional[MirrorDispatcher] = None):
        self.store = store
        self.dispatch_mirror = dispatch_mirror

    async def reconcile(
        self, channel: NotificationChannel, raw_payload: Optional[Mapping[str, Any]]
    ) -> Acknowledgement:
        notification = extract_notification(channel, raw_payload or {})
        return await self.apply(notification)

    async def apply(self, notification: Notification) -> Acknowledgement:
        channel = notification.channel.value
        bill_code = notification.bill_code

        if not bill_code:
            error = MalformedNotification(f"{channel} notification without a bill code")
            logger.warning(f"{error.message}; acknowledged without update")
            return Acknowledgement(accepted=True, applied=False)

        status = normalize(notification.raw_status)
        patch = {
            "status": status.value,
            "message": notification.message,
            "transaction_id": notification.transaction_id,
            "channel": channel,
            "updated_at": utcnow(),
        }

        try:
            matched = await self.store.update_by_key("bill_code", bill_code, patch)
        except StorageError as e:
            logger.error(f"[{channel}] could not store status {status.value} for bill {bill_code}: {e}")
            return Acknowledgement(accepted=True, applied=False, status=status, bill_code=bill_code)

        if not matched:
            logger.warning(f"[{channel}] no payment found for bill {bill_code}; nothing updated")
            return Acknowledgement(accepted=True, applied=False, status=status, bill_code=bill_code)

        logger.info(
            f"[{channel}] bill {bill_code} -> {status.value} "
            f"(raw={notification.raw_status!r}, txn={notification.transaction_id})"
        )

        if status is PaymentStatus.SUCCESS:
            self._hand_off_mirror(bill_code)

        return Acknowledgement(accepted=True, applied=True, status=status, bill_code=bill_code)

    def _hand_off_mirror(self, bill_code: str) -> None:
        if self.dispatch_mirror is None:
            return
        try:
            self.dispatch_mirror(bill_code)
        except Exception as e:
            logger.error(f"Mirror hand-off failed for bill {bill_code}: {e}", exc_info=True)
