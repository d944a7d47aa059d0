from typing import Optional, Union

from pusarapay.models.payment_model import PaymentStatus

# ToyyibPay status_id values
TOYYIBPAY_STATUS_CODES = {
    "1": PaymentStatus.SUCCESS,
    "2": PaymentStatus.FAILED,
    "3": PaymentStatus.PENDING,
}


def normalize(raw_status_code: Optional[Union[str, int]]) -> PaymentStatus:
    """Map a ToyyibPay status code to a PaymentStatus. Never raises."""
    if raw_status_code is None:
        return PaymentStatus.UNKNOWN
    return TOYYIBPAY_STATUS_CODES.get(str(raw_status_code).strip(), PaymentStatus.UNKNOWN)
