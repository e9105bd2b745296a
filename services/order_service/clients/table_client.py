"""
Order Service — Reservation service table client

PATCH /tables/{id}/status on the reservation service. Failures are logged
and reported as False; they never fail the caller's request.
"""
import logging

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


class TableClient:
    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def set_table_status(self, table_id: int | None, status: str) -> bool:
        if not table_id:
            return False

        url = f"{self._base_url}/tables/{table_id}/status"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.patch(url, json={"status": status})
        except httpx.HTTPError as exc:
            logger.warning("Reservation service unreachable for table %s: %s", table_id, exc)
            return False

        if not response.is_success:
            logger.warning(
                "Setting table %s to %s failed (HTTP %s): %s",
                table_id, status, response.status_code, response.text[:200],
            )
            return False

        logger.info("Table %s set to %s", table_id, status)
        return True


def get_table_client(request: Request) -> TableClient:
    return request.app.state.table_client
