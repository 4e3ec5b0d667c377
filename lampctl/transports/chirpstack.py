"""ChirpStack REST transport for the device downlink queue."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from lampctl.core.errors import SubmissionError, TransportTimeoutError
from lampctl.core.model import QueueSettings

LOGGER = logging.getLogger(__name__)


class ChirpStackQueue:
    def __init__(
        self,
        settings: QueueSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    async def enqueue(self, dev_eui: str, data: str) -> Any:
        path = f"/api/devices/{dev_eui}/queue"
        payload = {
            "queueItem": {
                "confirmed": self.settings.confirmed,
                "data": data,
                "fPort": self.settings.f_port,
            }
        }
        headers = {"Grpc-Metadata-Authorization": f"Bearer {self.settings.token}"}

        timeout = httpx.Timeout(self.settings.timeout_s)
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.url,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(f"Queue submission for {dev_eui} timed out") from exc
        except httpx.RequestError as exc:
            raise SubmissionError(f"Queue submission for {dev_eui} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = response.text.strip() or "no detail"
            raise SubmissionError(
                f"Queue submission for {dev_eui} returned HTTP {response.status_code}: {detail}"
            )

        try:
            body = response.json()
        except ValueError:
            body = response.text
        LOGGER.info("ChirpStack response for device %s: %s", dev_eui, body)
        return body
