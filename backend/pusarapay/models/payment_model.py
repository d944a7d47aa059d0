# models/payment_model.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, field_serializer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    UNKNOWN = "unknown"


class NotificationChannel(str, Enum):
    REDIRECT = "redirect"   # browser returning from the ToyyibPay page
    CALLBACK = "callback"   # ToyyibPay server-to-server POST


class Customer(BaseModel):
    name: str
    email: str
    phone: str


class PaymentOrder(BaseModel):
    """One bill-creation attempt for a reservation, as stored in Firestore."""
    id: Optional[str] = None
    reservation_id: int
    customer: Customer
    amount: Decimal

    bill_code: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    channel: Optional[NotificationChannel] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_record(self) -> Dict[str, Any]:
        """Firestore-ready dict. The store assigns the id, so it is not written."""
        record = self.model_dump(mode="json", exclude={"id"})
        # keep native datetimes so Firestore stores real timestamps
        record["created_at"] = self.created_at
        record["updated_at"] = self.updated_at
        return record

    @classmethod
    def from_record(cls, record_id: str, record: Dict[str, Any]) -> "PaymentOrder":
        return cls(id=record_id, **record)

    @field_serializer("amount")
    def _amount_as_string(self, amount: Decimal) -> str:
        return f"{amount:.2f}"


# ----------------------------
# API payloads
# ----------------------------
class CreateBillRequest(BaseModel):
    """Body of POST /api/payment/create.

    Everything is optional here so that missing or malformed values are
    reported by the billing flow itself as a 400, not by FastAPI as a 422.
    """
    reservation_id: Any = Field(
        default=None, validation_alias=AliasChoices("reservation_id", "reservationId")
    )
    name: Any = None
    email: Any = None
    phone: Any = None
    amount: Any = None


class CreateBillResponse(BaseModel):
    success: bool = True
    bill_code: str = Field(..., serialization_alias="billCode")
    payment_url: str = Field(..., serialization_alias="paymentUrl")


class Notification(BaseModel):
    """Fields pulled out of a redirect or callback payload."""
    channel: NotificationChannel
    bill_code: Optional[str] = None
    raw_status: Optional[str] = None
    transaction_id: Optional[str] = None
    message: Optional[str] = None


class Acknowledgement(BaseModel):
    accepted: bool = True
    applied: bool = False
    status: Optional[PaymentStatus] = None
    bill_code: Optional[str] = None


class PaymentStatusView(BaseModel):
    success: bool = True
    reservation_id: int
    bill_code: Optional[str] = None
    status: PaymentStatus
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    amount: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: PaymentOrder) -> "PaymentStatusView":
        return cls(
            reservation_id=order.reservation_id,
            bill_code=order.bill_code,
            status=order.status,
            transaction_id=order.transaction_id,
            message=order.message,
            amount=f"{order.amount:.2f}",
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
