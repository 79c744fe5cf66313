"""Event webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

import httpx

from yield_ledger.config import settings
from yield_ledger.domain.events import LedgerEvent
from yield_ledger.infrastructure.observability.metrics import webhook_failure_counter, webhook_latency_histogram


class WebhookClient:
    """Client for forwarding committed ledger events to an external endpoint"""

    def __init__(self, webhook_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.webhook_url = webhook_url or settings.event_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        POST one event with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2x base, 4x base, ...
        - Retries on non-2xx responses and network failures
        - Tracks latency histogram and failure counter

        Raises:
            httpx.HTTPStatusError or httpx.RequestError after the final attempt
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

    async def deliver(self, event: LedgerEvent) -> None:
        """Fire-and-forget wrapper: delivery failures are logged, never raised"""
        try:
            await self.send_event(event.to_dict())
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logging.error(
                f"Event webhook delivery failed: {e}",
                extra={"event_type": event.type, "account_id": event.account_id, "step": "webhook"},
            )


class WebhookForwarder:
    """
    Event bus subscriber that schedules webhook delivery on the app's event
    loop. Publishing happens on worker threads for sync endpoints, so the
    coroutine is handed over thread-safely.
    """

    def __init__(self, client: WebhookClient, loop: asyncio.AbstractEventLoop):
        self.client = client
        self.loop = loop
        self._pending: Set[asyncio.Task] = set()

    def __call__(self, event: LedgerEvent) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self.loop:
            task = self.loop.create_task(self.client.deliver(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            asyncio.run_coroutine_threadsafe(self.client.deliver(event), self.loop)
