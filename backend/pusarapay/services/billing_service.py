# services/billing_service.py
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional

from pusarapay.core.errors import ProviderError, StorageError, ValidationError
from pusarapay.models.payment_model import (
    CreateBillRequest,
    Customer,
    PaymentOrder,
    PaymentStatus,
    utcnow,
)
from pusarapay.services.payment_store import ID_KEY, PaymentStore
from pusarapay.services.reservation_client import ReservationClient
from pusarapay.services.toyyibpay import BillRequest, ToyyibPayClient

logger = logging.getLogger("pusarapay.billing")


@dataclass(frozen=True)
class CreateBillResult:
    bill_code: str
    payment_url: str
    order_id: str


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        return None
    return number if number > 0 else None


def _positive_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return None
        # RM to two decimals; anything that rounds to zero sen is not payable
        amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


def _non_empty(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def validate_request(request: CreateBillRequest) -> BillRequest:
    """Check every creation field up front. Nothing is written on failure."""
    reservation_id = _positive_int(request.reservation_id)
    name = _non_empty(request.name)
    email = _non_empty(request.email)
    phone = _non_empty(request.phone)
    amount = _positive_amount(request.amount)

    invalid: List[str] = [
        field
        for field, value in (
            ("reservation_id", reservation_id),
            ("name", name),
            ("email", email),
            ("phone", phone),
            ("amount", amount),
        )
        if value is None
    ]
    if invalid:
        raise ValidationError(
            f"Missing or invalid fields: {', '.join(invalid)}", fields=invalid
        )

    return BillRequest(
        reservation_id=reservation_id,
        name=name,
        email=email,
        phone=phone,
        amount=amount,
    )


class BillCreationFlow:
    def __init__(
        self,
        store: PaymentStore,
        provider: ToyyibPayClient,
        reservations: Optional[ReservationClient] = None,
    ):
        self.store = store
        self.provider = provider
        self.reservations = reservations

    async def create(self, request: CreateBillRequest) -> CreateBillResult:
        """
        1. validate, 2. check the reservation exists, 3. insert a pending PaymentOrder,
        4. ask ToyyibPay for a bill, 5. attach the BillCode to the order.

        ValidationError, ReservationNotFound, ReservationServiceError,
        StorageError (insert) and ProviderError propagate.
        A failure in step 5 is logged only: the bill already exists at ToyyibPay.
        """
        bill = validate_request(request)

        if self.reservations is not None and self.reservations.enabled:
            await self.reservations.fetch(bill.reservation_id)

        order = PaymentOrder(
            reservation_id=bill.reservation_id,
            customer=Customer(name=bill.name, email=bill.email, phone=bill.phone),
            amount=bill.amount,
            status=PaymentStatus.PENDING,
        )
        order_id = await self.store.insert(order.to_record())
        logger.info(f"Pending payment {order_id} stored for reservation {bill.reservation_id}")

        try:
            bill_code = await self.provider.create_bill(bill)
        except ProviderError:
            logger.warning(
                f"Bill creation failed; payment {order_id} stays pending without a bill code"
            )
            raise

        try:
            matched = await self.store.update_by_key(
                ID_KEY, order_id, {"bill_code": bill_code, "updated_at": utcnow()}
            )
            if not matched:
                logger.error(f"Payment {order_id} vanished before bill {bill_code} could be attached")
        except StorageError as e:
            logger.error(
                f"Could not attach bill {bill_code} to payment {order_id} "
                f"(reservation {bill.reservation_id}): {e}"
            )

        return CreateBillResult(
            bill_code=bill_code,
            payment_url=self.provider.payment_url(bill_code),
            order_id=order_id,
        )
