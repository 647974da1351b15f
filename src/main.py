"""Main application entry point for the restaurant inventory service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_inventory_service.handlers.api_handler import create_app
from restaurant_inventory_service.observability import configure_logging, setup_observability
from restaurant_inventory_service.repositories.collection_store import (
    CollectionStore,
    LocalCollectionStore,
)
from restaurant_inventory_service.repositories.dynamodb_store import DynamoDBCollectionStore
from restaurant_inventory_service.services.collection_api_client import (
    ApiCollectionStore,
    discover_api_base_url,
)
from restaurant_inventory_service.services.order_service import OrderLifecycleController
from restaurant_inventory_service.services.procurement_service import ProcurementService
from restaurant_inventory_service.services.snapshot_service import PollingCollectionStore

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("api", "dynamodb", "local")

# Tried after the configured API URL when discovering a backend
DEFAULT_API_CANDIDATES = ["http://localhost:8080"]


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def create_local_store() -> LocalCollectionStore:
    """Create the local fallback store, file-backed if LOCAL_STORE_PATH is set."""
    path = os.getenv("LOCAL_STORE_PATH")
    logger.info(f"Using local collection store{f' at {path}' if path else ' (in memory)'}")
    return LocalCollectionStore(path=path)


async def create_collection_store() -> CollectionStore:
    """Select and build the persistence backend from the environment.

    ``STORE_BACKEND=api`` (the default) probes the configured API URL and the
    default candidates, falling back to the local store if none answers.

    Returns:
        The backend collection store

    Raises:
        ValueError: If STORE_BACKEND names an unknown backend
    """
    backend = os.getenv("STORE_BACKEND", "api").lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {backend!r}"
        )

    if backend == "dynamodb":
        prefix = os.getenv("DYNAMODB_TABLE_PREFIX", "rms-")
        logger.info(f"Using DynamoDB collection store with table prefix {prefix}")
        return DynamoDBCollectionStore(
            dynamodb_resource=get_dynamodb_resource(), table_prefix=prefix
        )

    if backend == "local":
        return create_local_store()

    timeout = float(os.getenv("API_PROBE_TIMEOUT_SECONDS", "5"))
    base_url = await discover_api_base_url(
        os.getenv("API_BASE_URL"), DEFAULT_API_CANDIDATES, timeout
    )
    if base_url is None:
        logger.warning("No backend API reachable, defaulting to local mode")
        return create_local_store()

    logger.info(f"Using API collection store at {base_url}")
    return ApiCollectionStore(base_url=base_url)


async def create_services() -> tuple[OrderLifecycleController, ProcurementService]:
    """Build the store, the order controller and the procurement service.

    Awaited by the application lifespan, so backend discovery runs on the
    server's event loop.

    Returns:
        The order controller and the procurement service sharing one state
    """
    poll_interval = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
    store = PollingCollectionStore(
        await create_collection_store(), poll_interval_seconds=poll_interval
    )
    logger.info(f"Collection polling every {poll_interval}s")

    controller = OrderLifecycleController(store=store)
    procurement_service = ProcurementService(state=controller.state, store=store)
    return controller, procurement_service


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the FastAPI app, deferring service construction to startup
    3. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing restaurant inventory service...")

    app = create_app(service_factory=create_services)
    setup_observability(app)

    logger.info("Restaurant inventory service initialized successfully")
    return app


# Only build the real application outside of tests so test collection has no side effects
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
