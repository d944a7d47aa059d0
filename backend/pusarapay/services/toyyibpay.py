# services/toyyibpay.py
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import httpx

from pusarapay.core.config import Settings
from pusarapay.core.errors import ProviderError

logger = logging.getLogger("pusarapay.toyyibpay")

CREATE_BILL_PATH = "/index.php/api/createBill"


@dataclass(frozen=True)
class BillRequest:
    reservation_id: int
    name: str
    email: str
    phone: str
    amount: Decimal


def amount_in_sen(amount: Decimal) -> int:
    """RM amount to the integer sen ToyyibPay expects (half-up)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ToyyibPayClient:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    @property
    def base_url(self) -> str:
        return self.settings.TOYYIBPAY_BASE_URL

    def payment_url(self, bill_code: str) -> str:
        return f"{self.base_url}/{bill_code}"

    def bill_name(self, reservation_id: int) -> str:
        return f"Reservation #{reservation_id}"[: self.settings.BILL_NAME_MAX_LENGTH]

    def build_params(self, bill: BillRequest) -> dict:
        backend = self.settings.BACKEND_URL
        return {
            "userSecretKey": self.settings.TOYYIBPAY_API_KEY.strip(),
            "categoryCode": self.settings.TOYYIBPAY_CATEGORY_CODE.strip(),
            "billName": self.bill_name(bill.reservation_id),
            "billDescription": f"Payment for Reservation #{bill.reservation_id} (RM {bill.amount:.2f})",
            "billPriceSetting": "1",
            "billPayorInfo": "1",
            "billAmount": str(amount_in_sen(bill.amount)),
            "billReturnUrl": f"{backend}/api/payment/return?reservation_id={bill.reservation_id}",
            "billCallbackUrl": f"{backend}/api/payment/callback?reservation_id={bill.reservation_id}",
            "billTo": bill.name,
            "billEmail": bill.email,
            "billPhone": bill.phone,
        }

    async def create_bill(self, bill: BillRequest) -> str:
        """
        POST createBill and return the BillCode.
        Raises ProviderError on timeout, transport failure or an unusable response.
        """
        if not self.settings.toyyibpay_configured:
            raise ProviderError("ToyyibPay configuration missing")

        url = f"{self.base_url}{CREATE_BILL_PATH}"
        params = self.build_params(bill)

        logger.info(
            f"Creating ToyyibPay bill | reservation={bill.reservation_id} | sen={params['billAmount']}"
        )

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    url, data=params, timeout=self.settings.PROVIDER_TIMEOUT_SECONDS
                )
            else:
                async with httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT_SECONDS) as client:
                    response = await client.post(url, data=params)
        except httpx.TimeoutException as e:
            logger.error(f"ToyyibPay createBill timed out for reservation {bill.reservation_id}")
            raise ProviderError("ToyyibPay request timed out", details=str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"ToyyibPay createBill transport error: {e}")
            raise ProviderError("ToyyibPay request failed", details=str(e)) from e

        if response.status_code >= 400:
            logger.error(f"ToyyibPay API error {response.status_code} | {response.text[:500]}")
            raise ProviderError(
                f"ToyyibPay returned HTTP {response.status_code}", details=response.text[:500]
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        bill_code = None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            bill_code = str(data[0].get("BillCode") or "").strip() or None

        if not bill_code:
            logger.error(f"ToyyibPay response without BillCode: {response.text[:500]}")
            raise ProviderError("Failed to create ToyyibPay bill", details=data if data is not None else response.text[:500])

        logger.info(f"ToyyibPay bill created | reservation={bill.reservation_id} | billCode={bill_code}")
        return bill_code
