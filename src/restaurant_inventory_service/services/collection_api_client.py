"""Client for the restaurant REST API and backend discovery."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from restaurant_inventory_service.models.restaurant_models import CollectionName
from restaurant_inventory_service.repositories.collection_store import CollectionStore

logger = logging.getLogger(__name__)

COLLECTION_ENDPOINTS: dict[CollectionName, str] = {
    CollectionName.ORDERS: "/api/orders",
    CollectionName.MENU_ITEMS: "/api/menu-items",
    CollectionName.INGREDIENTS: "/api/ingredients",
    CollectionName.USERS: "/api/users",
    CollectionName.EXPENSES: "/api/expenses",
    CollectionName.REQUISITIONS: "/api/requisitions",
    CollectionName.CUSTOMERS: "/api/customers",
}

HEALTH_ENDPOINTS = ["/api/health", "/health", "/ping", "/_status", "/"]

# Suffixes people commonly paste along with the base URL
_URL_SUFFIXES = ["/api/health", "/health", "/ping", "/_status", "/api"]


def sanitize_base_url(url: str) -> str:
    """Normalize a user-supplied base URL.

    Strips whitespace, trailing slashes and a known health/API suffix, so
    ``https://host/api/health/`` becomes ``https://host``.

    Args:
        url: Raw base URL

    Returns:
        str: Cleaned base URL (may be empty)
    """
    clean = url.strip().rstrip("/")
    for suffix in _URL_SUFFIXES:
        if clean.endswith(suffix):
            clean = clean[: -len(suffix)]
    return clean.rstrip("/")


@dataclass
class HealthCheckResult:
    """Outcome of probing a backend for a health endpoint.

    Attributes:
        ok: Whether a health endpoint answered successfully
        message: Human readable outcome
        last_url: Last URL tried when the probe failed
    """

    ok: bool
    message: str
    last_url: str | None = None


async def check_health(base_url: str, timeout_seconds: float = 5.0) -> HealthCheckResult:
    """Probe a backend for a working health endpoint.

    Endpoints are tried in order. A 404 moves on to the next endpoint, any
    other error status fails immediately, and network errors move on until
    the last endpoint.

    Args:
        base_url: Backend base URL
        timeout_seconds: Timeout applied to each request

    Returns:
        HealthCheckResult describing the outcome
    """
    target = base_url.rstrip("/")

    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        for path in HEALTH_ENDPOINTS:
            url = f"{target}{path}"
            try:
                response = await client.get(url, headers={"Accept": "application/json"})
            except httpx.RequestError as e:
                logger.debug(f"Health probe error on {url}: {e}")
                if path == HEALTH_ENDPOINTS[-1]:
                    return HealthCheckResult(ok=False, message=f"Network Error: {e}", last_url=url)
                continue

            if response.is_success:
                return HealthCheckResult(ok=True, message="Connected")
            if response.status_code == 404:
                logger.debug(f"404 on {url}, trying next health endpoint")
                continue
            return HealthCheckResult(
                ok=False, message=f"Server Error: {response.status_code}", last_url=url
            )

    return HealthCheckResult(
        ok=False,
        message="API endpoints not found (404)",
        last_url=f"{target}{HEALTH_ENDPOINTS[0]}",
    )


async def discover_api_base_url(
    configured_url: str | None,
    candidates: list[str],
    timeout_seconds: float = 5.0,
) -> str | None:
    """Find a reachable backend.

    The configured URL is tried first, then each candidate in order.

    Args:
        configured_url: Base URL from configuration, if any
        candidates: Fallback base URLs to try
        timeout_seconds: Per-request probe timeout

    Returns:
        The first reachable base URL, or None if no backend answered
    """
    if configured_url:
        url = sanitize_base_url(configured_url)
        logger.info(f"Testing configured API URL: {url}")
        health = await check_health(url, timeout_seconds)
        if health.ok:
            logger.info("Connection established via configured URL")
            return url
        logger.warning(f"Configured URL failed ({health.message}), trying auto-discovery")

    for candidate in candidates:
        url = sanitize_base_url(candidate)
        health = await check_health(url, timeout_seconds)
        if health.ok:
            logger.info(f"Auto-connected to {url}")
            return url

    logger.info("Could not reach a backend API")
    return None


class ApiCollectionStore(CollectionStore):
    """HTTP collection store talking to the restaurant REST API.

    Single-record writes map to POST/PUT/DELETE on the collection endpoint.
    Bulk writes fan out as concurrent single-record requests. Requests carry
    no explicit timeout or retry.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the API store.

        Args:
            base_url: Base URL of the REST API (e.g., "https://rms.example.com")
            client: Optional shared httpx client
        """
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=None)

    def _url(self, collection: CollectionName, record_id: str | None = None) -> str:
        endpoint = f"{self.base_url}{COLLECTION_ENDPOINTS[collection]}"
        return f"{endpoint}/{record_id}" if record_id is not None else endpoint

    async def list_records(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        """Fetch a collection from the API.

        Args:
            collection: Collection to read

        Returns:
            list: Records returned by the API, or None on failure
        """
        try:
            response = await self.client.get(self._url(collection))
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, list):
                logger.warning(f"Unexpected payload for {collection.value}, expected a list")
                return None
            return data

        except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as e:
            logger.warning(f"Fetch failed for {collection.value}: {e}")  # pragma: no cover
            return None

    async def add(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        return await self._send("POST", self._url(collection), record)

    async def update(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        return await self._send("PUT", self._url(collection, record["id"]), record)

    async def delete(self, collection: CollectionName, record_id: str) -> bool:
        return await self._send("DELETE", self._url(collection, record_id))

    async def bulk_add(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        results = await asyncio.gather(*(self.add(collection, r) for r in records))
        return all(results)

    async def bulk_update(
        self, collection: CollectionName, records: list[dict[str, Any]]
    ) -> bool:
        results = await asyncio.gather(*(self.update(collection, r) for r in records))
        return all(results)

    async def bulk_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        results = await asyncio.gather(*(self.delete(collection, i) for i in record_ids))
        return all(results)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _send(self, method: str, url: str, payload: dict[str, Any] | None = None) -> bool:
        try:
            response = await self.client.request(method, url, json=payload)
            response.raise_for_status()
            return True

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"{method} {url} failed: {e}")  # pragma: no cover
            return False
