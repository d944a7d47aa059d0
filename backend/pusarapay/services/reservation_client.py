# services/reservation_client.py
import logging
from typing import Any, Dict, Optional

import httpx

from pusarapay.core.config import Settings
from pusarapay.core.errors import ReservationNotFound, ReservationServiceError

logger = logging.getLogger("pusarapay.reservations")


class ReservationClient:
    """Read-only lookup of a reservation on the SQL Server reservation backend."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.settings.RESERVATION_BASE_URL.strip())

    def reservation_url(self, reservation_id: int) -> str:
        return f"{self.settings.RESERVATION_BASE_URL}/api/reservations/{reservation_id}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.settings.RESERVATION_INTERNAL_KEY:
            headers["x-internal-key"] = self.settings.RESERVATION_INTERNAL_KEY
        return headers

    async def fetch(self, reservation_id: int) -> Dict[str, Any]:
        """
        Return the reservation dict.
        Raises ReservationNotFound on a 4xx or an answer without a reservation,
        ReservationServiceError when the backend is unreachable or fails.
        """
        url = self.reservation_url(reservation_id)
        timeout = self.settings.RESERVATION_TIMEOUT_SECONDS

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, headers=self._headers(), timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Reservation lookup for {reservation_id} failed: {e}")
            raise ReservationServiceError("Reservation service unavailable") from e

        if response.status_code >= 500:
            logger.error(f"Reservation backend error {response.status_code} | {response.text[:500]}")
            raise ReservationServiceError(f"Reservation service returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = None

        reservation = data.get("reservation") if isinstance(data, dict) and data.get("success") else None
        if response.status_code >= 400 or not isinstance(reservation, dict):
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"Reservation {reservation_id} not found (HTTP {response.status_code})")
            raise ReservationNotFound(message or "Reservation not found.", details=data)

        return reservation
