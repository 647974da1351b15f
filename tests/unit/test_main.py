"""Unit tests for main application entry point."""

import importlib
import os
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from restaurant_inventory_service.repositories.collection_store import LocalCollectionStore
from restaurant_inventory_service.repositories.dynamodb_store import DynamoDBCollectionStore
from restaurant_inventory_service.services.collection_api_client import ApiCollectionStore
from restaurant_inventory_service.services.snapshot_service import PollingCollectionStore
from src.main import (
    create_application,
    create_collection_store,
    create_services,
    get_dynamodb_resource,
)


@pytest.mark.unit
class TestGetDynamoDBResource:
    """Tests for get_dynamodb_resource function."""

    @patch.dict(os.environ, {"DYNAMODB_ENDPOINT": "", "AWS_REGION": "ap-south-1"}, clear=True)
    @patch("src.main.boto3.resource")
    def test_creates_aws_resource_when_no_endpoint(self, mock_boto3_resource: Mock) -> None:
        """Test that AWS DynamoDB resource is created when no local endpoint configured."""
        mock_resource = MagicMock()
        mock_boto3_resource.return_value = mock_resource

        result = get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="ap-south-1")
        assert result == mock_resource

    @patch.dict(
        os.environ,
        {
            "DYNAMODB_ENDPOINT": "http://localhost:8000",
            "AWS_ACCESS_KEY_ID": "dummy",
            "AWS_SECRET_ACCESS_KEY": "dummy",
        },
        clear=True,
    )
    @patch("src.main.boto3.resource")
    def test_creates_local_resource_when_endpoint_provided(self, mock_boto3_resource: Mock) -> None:
        """Test that local DynamoDB resource is created when endpoint configured."""
        get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with(
            "dynamodb",
            endpoint_url="http://localhost:8000",
            region_name="us-east-1",
            aws_access_key_id="dummy",
            aws_secret_access_key="dummy",
        )


@pytest.mark.unit
class TestCreateCollectionStore:
    """Tests for create_collection_store function."""

    @pytest.mark.asyncio
    @patch.dict(os.environ, {"STORE_BACKEND": "local"}, clear=True)
    async def test_local_backend(self) -> None:
        store = await create_collection_store()

        assert isinstance(store, LocalCollectionStore)
        assert store.path is None

    @pytest.mark.asyncio
    @patch.dict(os.environ, {"STORE_BACKEND": "local", "LOCAL_STORE_PATH": "/tmp/x.json"}, clear=True)
    async def test_local_backend_with_file(self) -> None:
        store = await create_collection_store()

        assert isinstance(store, LocalCollectionStore)
        assert str(store.path) == "/tmp/x.json"

    @pytest.mark.asyncio
    @patch.dict(
        os.environ, {"STORE_BACKEND": "dynamodb", "DYNAMODB_TABLE_PREFIX": "prod-"}, clear=True
    )
    @patch("src.main.get_dynamodb_resource")
    async def test_dynamodb_backend(self, mock_get_dynamodb: Mock) -> None:
        store = await create_collection_store()

        assert isinstance(store, DynamoDBCollectionStore)
        assert store.table_prefix == "prod-"
        mock_get_dynamodb.return_value.Table.assert_any_call("prod-orders")

    @pytest.mark.asyncio
    @patch.dict(os.environ, {"API_BASE_URL": "https://rms.test"}, clear=True)
    @patch("src.main.discover_api_base_url", new_callable=AsyncMock)
    async def test_api_backend_is_default(self, mock_discover: AsyncMock) -> None:
        mock_discover.return_value = "https://rms.test"

        store = await create_collection_store()

        assert isinstance(store, ApiCollectionStore)
        assert store.base_url == "https://rms.test"
        mock_discover.assert_awaited_once_with("https://rms.test", ["http://localhost:8080"], 5.0)

    @pytest.mark.asyncio
    @patch.dict(os.environ, {"STORE_BACKEND": "api"}, clear=True)
    @patch("src.main.discover_api_base_url", new_callable=AsyncMock, return_value=None)
    async def test_api_backend_falls_back_to_local(self, mock_discover: AsyncMock) -> None:
        store = await create_collection_store()

        assert isinstance(store, LocalCollectionStore)

    @pytest.mark.asyncio
    @patch.dict(os.environ, {"STORE_BACKEND": "firebase"}, clear=True)
    async def test_unknown_backend_raises(self) -> None:
        with pytest.raises(ValueError, match="STORE_BACKEND"):
            await create_collection_store()


@pytest.mark.unit
class TestCreateServices:
    """Tests for create_services function."""

    @pytest.mark.asyncio
    @patch("src.main.create_collection_store", new_callable=AsyncMock)
    @patch.dict(os.environ, {"POLL_INTERVAL_SECONDS": "2"}, clear=True)
    async def test_services_share_polling_store_and_state(
        self, mock_create_store: AsyncMock
    ) -> None:
        backend = LocalCollectionStore()
        mock_create_store.return_value = backend

        controller, procurement_service = await create_services()

        assert isinstance(controller.store, PollingCollectionStore)
        assert controller.store.backend is backend
        assert controller.store.poll_interval_seconds == 2.0
        assert procurement_service.state is controller.state
        assert procurement_service.store is controller.store


@pytest.mark.unit
class TestCreateApplication:
    """Tests for create_application function."""

    @patch("src.main.configure_logging")
    @patch("src.main.setup_observability")
    @patch("src.main.create_collection_store", new_callable=AsyncMock)
    @patch.dict(os.environ, {"LOG_LEVEL": "DEBUG", "POLL_INTERVAL_SECONDS": "2"}, clear=True)
    def test_creates_application_with_all_dependencies(
        self,
        mock_create_store: AsyncMock,
        mock_setup_observability: Mock,
        mock_configure_logging: Mock,
    ) -> None:
        """Test that services are wired when the application starts up."""
        backend = LocalCollectionStore()
        mock_create_store.return_value = backend

        app = create_application()

        assert isinstance(app, FastAPI)
        mock_configure_logging.assert_called_once_with("DEBUG")
        mock_setup_observability.assert_called_once_with(app)
        mock_create_store.assert_not_awaited()
        assert app.state.controller is None

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

            controller = app.state.controller
            assert isinstance(controller.store, PollingCollectionStore)
            assert controller.store.backend is backend
            assert controller.store.poll_interval_seconds == 2.0
            assert app.state.procurement_service.state is controller.state

        mock_create_store.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_module_imports_inside_running_event_loop(self) -> None:
        """Test that importing main under a server's event loop does no blocking discovery."""
        import src.main

        mock_discover = AsyncMock(return_value="https://rms.test")
        try:
            with (
                patch.dict(
                    os.environ, {"ENVIRONMENT": "production", "STORE_BACKEND": "api"}, clear=True
                ),
                patch("restaurant_inventory_service.observability.configure_logging"),
                patch("restaurant_inventory_service.observability.setup_observability"),
                patch(
                    "restaurant_inventory_service.services.collection_api_client.discover_api_base_url",
                    mock_discover,
                ),
            ):
                module = importlib.reload(src.main)

                assert isinstance(module.app, FastAPI)
                assert module.app.state.controller is None
                mock_discover.assert_not_awaited()

                controller, _ = await module.create_services()
                assert isinstance(controller.store.backend, ApiCollectionStore)
                mock_discover.assert_awaited_once()
        finally:
            with patch.dict(os.environ, {"ENVIRONMENT": "test"}):
                importlib.reload(src.main)
