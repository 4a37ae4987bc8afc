"""AgroMonitoring provider for polygons, NDVI history and imagery."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Final
from urllib.parse import parse_qsl, urlsplit

import httpx
from django.conf import settings

from ndvi.errors import (
    AgroError,
    ErrorClassifier,
    Operation,
    UpstreamRejected,
)
from ndvi.metrics import (
    agro_upstream_latency_seconds,
    agro_upstream_requests_total,
)

from .base import AgroProvider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL: Final[str] = str(
    getattr(
        settings,
        "AGRO_API_BASE_URL",
        "https://api.agromonitoring.com/agro/1.0",
    )
)
DEFAULT_TIMEOUT: Final[float] = float(
    getattr(settings, "AGRO_REQUEST_TIMEOUT_SECONDS", 20)
)
DEFAULT_MAX_RETRIES: Final[int] = int(getattr(settings, "AGRO_MAX_RETRIES", 1))
DEFAULT_BACKOFF_SECONDS: Final[float] = float(
    getattr(settings, "AGRO_RETRY_BACKOFF_SECONDS", 0.5)
)


class AgroMonitoringProvider(AgroProvider):
    """Talk to the AgroMonitoring REST API over `httpx.AsyncClient`.

    Transient failures (5xx and transport errors) are retried
    `max_retries` times with a linear backoff; everything else is
    classified immediately.
    """

    name: Final[str] = "agromonitoring"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.api_key = (
            api_key
            or getattr(settings, "AGRO_API_KEY", None)
            or os.getenv("AGRO_API_KEY")
        )
        if not self.api_key:
            raise ValueError("AgroMonitoring API key is required")

        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.max_retries = (
            DEFAULT_MAX_RETRIES if max_retries is None else max_retries
        )
        self.backoff_seconds = (
            DEFAULT_BACKOFF_SECONDS
            if backoff_seconds is None
            else backoff_seconds
        )
        self.classifier = classifier or ErrorClassifier()
        self._transport = transport

    async def list_polygons(self) -> Any:
        response = await self._request(
            "GET",
            f"{self.base_url}/polygons",
            operation=Operation.LIST_POLYGONS,
        )
        return self._decode(response, Operation.LIST_POLYGONS)

    async def create_polygon(self, name: str, geo_json: dict[str, Any]) -> Any:
        response = await self._request(
            "POST",
            f"{self.base_url}/polygons",
            operation=Operation.CREATE_POLYGON,
            params={"duplicated": "true"},
            json={"name": name, "geo_json": geo_json},
        )
        return self._decode(response, Operation.CREATE_POLYGON)

    async def get_polygon(self, polygon_id: str) -> Any:
        response = await self._request(
            "GET",
            f"{self.base_url}/polygons/{polygon_id}",
            operation=Operation.GET_POLYGON,
        )
        if not response.content.strip():
            return None
        return self._decode(response, Operation.GET_POLYGON)

    async def delete_polygon(self, polygon_id: str) -> None:
        await self._request(
            "DELETE",
            f"{self.base_url}/polygons/{polygon_id}",
            operation=Operation.DELETE_POLYGON,
        )

    async def ndvi_history(
        self,
        *,
        polygon_id: str,
        start: int,
        end: int,
        satellite_type: str,
        zoom: int,
        coverage_min: int,
    ) -> Any:
        response = await self._request(
            "GET",
            f"{self.base_url}/ndvi/history",
            operation=Operation.NDVI_HISTORY,
            params={
                "polyid": polygon_id,
                "start": start,
                "end": end,
                "type": satellite_type,
                "zoom": zoom,
                "coverage_min": coverage_min,
            },
        )
        return self._decode(response, Operation.NDVI_HISTORY)

    async def search_images(
        self,
        *,
        polygon_id: str,
        start: int,
        end: int,
        clouds_max: int,
        resolution_min: int,
    ) -> Any:
        response = await self._request(
            "GET",
            f"{self.base_url}/image/search",
            operation=Operation.IMAGE_SEARCH,
            params={
                "polyid": polygon_id,
                "start": start,
                "end": end,
                "clouds_max": clouds_max,
                "resolution_min": resolution_min,
            },
        )
        return self._decode(response, Operation.IMAGE_SEARCH)

    async def index_stats(self, url: str) -> Any:
        # Stats URLs come back from the provider already signed.
        query = dict(parse_qsl(urlsplit(url).query))
        response = await self._request(
            "GET",
            url,
            operation=Operation.INDEX_STATS,
            authenticate="appid" not in query,
        )
        return self._decode(response, Operation.INDEX_STATS)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: Operation,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        authenticate: bool = True,
    ) -> httpx.Response:
        query: dict[str, Any] = dict(params or {})
        if authenticate:
            query["appid"] = self.api_key

        attempt = 0
        while True:
            attempt += 1
            started = time.monotonic()
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.request(
                        method, url, params=query or None, json=json
                    )
            except httpx.TransportError as exc:
                agro_upstream_requests_total.labels(
                    operation=operation.value, outcome="network"
                ).inc()
                logger.warning(
                    "agro.request_failed operation=%s attempt=%s error=%s",
                    operation.value,
                    attempt,
                    exc.__class__.__name__,
                )
                if attempt <= self.max_retries:
                    await asyncio.sleep(self.backoff_seconds * attempt)
                    continue
                raise self.classifier.classify_transport(
                    operation, exc
                ) from exc
            finally:
                agro_upstream_latency_seconds.labels(
                    operation=operation.value
                ).observe(time.monotonic() - started)

            logger.debug(
                "agro.request operation=%s status=%s attempt=%s",
                operation.value,
                response.status_code,
                attempt,
            )
            if response.is_success:
                agro_upstream_requests_total.labels(
                    operation=operation.value, outcome="success"
                ).inc()
                return response

            agro_upstream_requests_total.labels(
                operation=operation.value, outcome="error"
            ).inc()
            if response.status_code >= 500 and attempt <= self.max_retries:
                await asyncio.sleep(self.backoff_seconds * attempt)
                continue
            error: AgroError = self.classifier.classify_response(
                operation, response
            )
            logger.info(
                "agro.request_classified operation=%s status=%s code=%s",
                operation.value,
                response.status_code,
                error.code,
            )
            raise error

    def _decode(self, response: httpx.Response, operation: Operation) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamRejected(
                f"Unexpected {operation.value} response body.",
                upstream_status=response.status_code,
            ) from exc

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return (
            "AgroMonitoringProvider("
            f"base_url={self.base_url}, timeout={self.timeout}, "
            f"max_retries={self.max_retries}"
            ")"
        )
