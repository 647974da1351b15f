"""Unit tests for the REST collection store and backend discovery."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from restaurant_inventory_service.models.restaurant_models import CollectionName
from restaurant_inventory_service.services.collection_api_client import (
    ApiCollectionStore,
    check_health,
    discover_api_base_url,
    sanitize_base_url,
)


def response(status_code: int, json_body: object = None, method: str = "GET") -> httpx.Response:
    return httpx.Response(
        status_code,
        json=json_body,
        request=httpx.Request(method, "https://rms.test/api"),
    )


@pytest.mark.unit
class TestSanitizeBaseUrl:
    """Test suite for base URL normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("https://rms.test", "https://rms.test"),
            ("  https://rms.test/  ", "https://rms.test"),
            ("https://rms.test/api/health/", "https://rms.test"),
            ("https://rms.test/api", "https://rms.test"),
            ("https://rms.test/ping", "https://rms.test"),
            ("https://rms.test/_status", "https://rms.test"),
            ("", ""),
        ],
    )
    def test_sanitize(self, raw: str, expected: str) -> None:
        assert sanitize_base_url(raw) == expected


@pytest.mark.unit
class TestCheckHealth:
    """Test suite for the health endpoint probe."""

    @pytest.mark.asyncio
    async def test_first_endpoint_ok(self) -> None:
        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, return_value=response(200, {})
        ) as mock_get:
            result = await check_health("https://rms.test")

        assert result.ok is True
        assert result.message == "Connected"
        assert mock_get.await_args.args[0] == "https://rms.test/api/health"

    @pytest.mark.asyncio
    async def test_404_moves_to_next_endpoint(self) -> None:
        responses = [response(404), response(404), response(200, {"status": "ok"})]

        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, side_effect=responses
        ) as mock_get:
            result = await check_health("https://rms.test/")

        assert result.ok is True
        urls = [call.args[0] for call in mock_get.await_args_list]
        assert urls == ["https://rms.test/api/health", "https://rms.test/health", "https://rms.test/ping"]

    @pytest.mark.asyncio
    async def test_server_error_fails_immediately(self) -> None:
        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, return_value=response(500)
        ) as mock_get:
            result = await check_health("https://rms.test")

        assert result.ok is False
        assert result.message == "Server Error: 500"
        assert result.last_url == "https://rms.test/api/health"
        assert mock_get.await_count == 1

    @pytest.mark.asyncio
    async def test_all_endpoints_missing(self) -> None:
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=response(404)):
            result = await check_health("https://rms.test")

        assert result.ok is False
        assert result.message == "API endpoints not found (404)"

    @pytest.mark.asyncio
    async def test_network_error_on_every_endpoint(self) -> None:
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("connection refused"),
        ) as mock_get:
            result = await check_health("https://rms.test")

        assert result.ok is False
        assert result.message.startswith("Network Error")
        assert result.last_url == "https://rms.test/"
        assert mock_get.await_count == 5


@pytest.mark.unit
class TestDiscoverApiBaseUrl:
    """Test suite for backend discovery."""

    @pytest.mark.asyncio
    async def test_configured_url_preferred(self) -> None:
        with patch(
            "restaurant_inventory_service.services.collection_api_client.check_health",
            new_callable=AsyncMock,
        ) as mock_check:
            mock_check.return_value = MagicMock(ok=True)
            url = await discover_api_base_url("https://rms.test/api/", ["http://localhost:8080"])

        assert url == "https://rms.test"
        mock_check.assert_awaited_once_with("https://rms.test", 5.0)

    @pytest.mark.asyncio
    async def test_falls_back_to_candidates(self) -> None:
        with patch(
            "restaurant_inventory_service.services.collection_api_client.check_health",
            new_callable=AsyncMock,
            side_effect=[MagicMock(ok=False, message="Network Error"), MagicMock(ok=True)],
        ):
            url = await discover_api_base_url("https://down.test", ["http://localhost:8080"])

        assert url == "http://localhost:8080"

    @pytest.mark.asyncio
    async def test_none_when_nothing_reachable(self) -> None:
        with patch(
            "restaurant_inventory_service.services.collection_api_client.check_health",
            new_callable=AsyncMock,
            return_value=MagicMock(ok=False, message="Network Error"),
        ):
            assert await discover_api_base_url(None, ["http://a.test", "http://b.test"]) is None


@pytest.mark.unit
class TestApiCollectionStore:
    """Test suite for ApiCollectionStore."""

    @pytest.fixture
    def mock_client(self) -> MagicMock:
        client = MagicMock(spec=httpx.AsyncClient)
        client.get = AsyncMock()
        client.request = AsyncMock(return_value=response(200, {}))
        client.aclose = AsyncMock()
        return client

    @pytest.fixture
    def store(self, mock_client: MagicMock) -> ApiCollectionStore:
        return ApiCollectionStore(base_url="https://rms.test/", client=mock_client)

    @pytest.mark.asyncio
    async def test_list_records(self, store: ApiCollectionStore, mock_client: MagicMock) -> None:
        mock_client.get.return_value = response(200, [{"id": "m-1", "name": "Dal Fry"}])

        records = await store.list_records(CollectionName.MENU_ITEMS)

        assert records == [{"id": "m-1", "name": "Dal Fry"}]
        mock_client.get.assert_awaited_once_with("https://rms.test/api/menu-items")

    @pytest.mark.asyncio
    async def test_list_records_rejects_non_list_payload(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        mock_client.get.return_value = response(200, {"items": []})

        assert await store.list_records(CollectionName.ORDERS) is None

    @pytest.mark.asyncio
    async def test_list_records_http_error(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        mock_client.get.return_value = response(503)

        assert await store.list_records(CollectionName.ORDERS) is None

    @pytest.mark.asyncio
    async def test_list_records_network_error(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        mock_client.get.side_effect = httpx.ConnectTimeout("timed out")

        assert await store.list_records(CollectionName.ORDERS) is None

    @pytest.mark.asyncio
    async def test_write_methods_map_to_http_verbs(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        record = {"id": "i-1", "stockQuantity": 4}

        assert await store.add(CollectionName.INGREDIENTS, record) is True
        assert await store.update(CollectionName.INGREDIENTS, record) is True
        assert await store.delete(CollectionName.INGREDIENTS, "i-1") is True

        calls = [(c.args[0], c.args[1]) for c in mock_client.request.await_args_list]
        assert calls == [
            ("POST", "https://rms.test/api/ingredients"),
            ("PUT", "https://rms.test/api/ingredients/i-1"),
            ("DELETE", "https://rms.test/api/ingredients/i-1"),
        ]

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        mock_client.request.return_value = response(500, method="PUT")

        assert await store.update(CollectionName.ORDERS, {"id": "o-1"}) is False

    @pytest.mark.asyncio
    async def test_bulk_update_reports_partial_failure(
        self, store: ApiCollectionStore, mock_client: MagicMock
    ) -> None:
        mock_client.request.side_effect = [
            response(200, {}, method="PUT"),
            httpx.ConnectError("reset"),
        ]

        success = await store.bulk_update(
            CollectionName.INGREDIENTS, [{"id": "i-1"}, {"id": "i-2"}]
        )

        assert success is False
        assert mock_client.request.await_count == 2

    @pytest.mark.asyncio
    async def test_close(self, store: ApiCollectionStore, mock_client: MagicMock) -> None:
        await store.close()

        mock_client.aclose.assert_awaited_once()
