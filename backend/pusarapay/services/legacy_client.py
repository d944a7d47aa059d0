# services/legacy_client.py
import logging
from typing import Optional

import httpx

from pusarapay.core.config import Settings

logger = logging.getLogger("pusarapay.mirror")


class LegacyReservationClient:
    """Marks a reservation as paid on the SQL Server reservation backend."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.settings.LEGACY_UPDATE_URL.strip())

    def update_url(self, reservation_id: int) -> str:
        return self.settings.LEGACY_UPDATE_URL.strip().format(reservation_id=reservation_id)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.settings.LEGACY_INTERNAL_KEY:
            headers["x-internal-key"] = self.settings.LEGACY_INTERNAL_KEY
        return headers

    async def mark_paid(self, reservation_id: int) -> None:
        """Raises httpx.HTTPError on transport failure or a non-2xx answer."""
        url = self.update_url(reservation_id)
        payload = {
            "reservation_id": reservation_id,
            "payment_status": self.settings.LEGACY_PAID_STATUS,
        }

        if self._http_client is not None:
            response = await self._http_client.post(
                url, json=payload, headers=self._headers(),
                timeout=self.settings.LEGACY_TIMEOUT_SECONDS,
            )
        else:
            async with httpx.AsyncClient(timeout=self.settings.LEGACY_TIMEOUT_SECONDS) as client:
                response = await client.post(url, json=payload, headers=self._headers())

        response.raise_for_status()
        logger.info(f"Legacy reservation {reservation_id} marked {self.settings.LEGACY_PAID_STATUS}")
