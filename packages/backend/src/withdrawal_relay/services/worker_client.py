"""Callback to the upstream payment worker.

Learn: The worker owns the wallet ledger. When an admin completes or
rejects a withdrawal we tell it with

    PUT {worker_url}/internal/withdraw-status  {"id": ..., "status": ...}

The admin's decision is already committed here by then, so a failed
callback is logged and reported, never raised.
"""

from typing import Optional

import httpx
import structlog

logger = structlog.get_logger()

STATUS_PATH = "/internal/withdraw-status"


class WorkerClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def notify_status(self, withdrawal_id: str, status: str) -> bool:
        """Returns True when the worker acknowledged the update."""
        if not self.enabled:
            logger.debug("wrelay.worker_callback_skipped", withdrawal_id=withdrawal_id)
            return False

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.timeout
            ) as client:
                resp = await client.put(
                    f"{self.base_url}{STATUS_PATH}",
                    json={"id": withdrawal_id, "status": status},
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "wrelay.worker_callback_failed",
                withdrawal_id=withdrawal_id,
                status=status,
                error=str(e),
            )
            return False

        logger.info("wrelay.worker_notified", withdrawal_id=withdrawal_id, status=status)
        return True
