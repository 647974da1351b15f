"""FastAPI application exposing the order lifecycle and inventory operations."""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from restaurant_inventory_service.models.restaurant_models import (
    CollectionName,
    Ingredient,
    LineItem,
    MenuItem,
    Order,
    OrderStatus,
    PaymentMethod,
    RequisitionRequest,
    RequisitionStatus,
)
from restaurant_inventory_service.services.order_service import OrderLifecycleController
from restaurant_inventory_service.services.procurement_service import ProcurementService

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class EditItemsRequest(BaseModel):
    """Request body replacing an order's line items."""

    items: list[LineItem]


class StatusUpdateRequest(BaseModel):
    """Request body for an order status change."""

    status: OrderStatus


class PaymentRequest(BaseModel):
    """Request body for recording a payment."""

    method: PaymentMethod


class RequisitionStatusRequest(BaseModel):
    """Request body for a requisition status change."""

    status: RequisitionStatus


class BulkMenuUpdateRequest(BaseModel):
    """Request body applying the same partial update to several menu items."""

    ids: list[str]
    updates: dict[str, Any]


class WriteResponse(BaseModel):
    """Response model for plain store writes."""

    success: bool


ServiceFactory = Callable[[], Awaitable[tuple[OrderLifecycleController, ProcurementService]]]


def create_app(
    controller: OrderLifecycleController | None = None,
    procurement_service: ProcurementService | None = None,
    subscribe_on_startup: bool = True,
    service_factory: ServiceFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Services are either passed in ready-made or built by ``service_factory``
    inside the lifespan, which lets backend discovery await network probes on
    the server's own event loop.

    Args:
        controller: Order lifecycle controller owning the application state
        procurement_service: Service for the requisition workflow
        subscribe_on_startup: Whether to start collection subscriptions with the app
        service_factory: Async factory building both services at startup

    Returns:
        Configured FastAPI application

    Raises:
        ValueError: If neither the services nor a factory are given
    """
    if service_factory is None and (controller is None or procurement_service is None):
        raise ValueError("create_app needs a controller and procurement service, or a factory")

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI) -> AsyncIterator[None]:
        state = fastapi_app.state
        if service_factory is not None:
            state.controller, state.procurement_service = await service_factory()
            logger.info("Services built at startup")
        if subscribe_on_startup:
            await state.controller.start()
        yield
        state.controller.stop()

    app = FastAPI(
        title="Restaurant Inventory Service API",
        description="Order lifecycle and inventory reconciliation for a single restaurant",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.controller = controller
    app.state.procurement_service = procurement_service

    def found(value: Any, detail: str) -> Any:
        if value is None:
            raise HTTPException(status_code=404, detail=detail)
        return value

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        return HealthResponse(status="healthy")

    # Orders

    @app.get("/orders", response_model=list[Order], tags=["Orders"])
    async def list_orders() -> list[Order]:
        return app.state.controller.state.orders

    @app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
    async def place_order(order: Order) -> Order:
        """Place a new order and deduct its ingredients.

        Raises:
            HTTPException: 409 if an order with the same id already exists
        """
        placed = await app.state.controller.place_order(order)
        if placed is None:
            raise HTTPException(status_code=409, detail=f"Order {order.id} already exists")
        return placed  # type: ignore[no-any-return]

    @app.put("/orders/{order_id}/items", response_model=Order, tags=["Orders"])
    async def edit_order_items(order_id: str, body: EditItemsRequest) -> Order:
        """Replace an order's items and reconcile the difference."""
        updated = await app.state.controller.edit_order_items(order_id=order_id, items=body.items)
        return found(updated, f"Order {order_id} not found")  # type: ignore[no-any-return]

    @app.post("/orders/{order_id}/status", response_model=Order, tags=["Orders"])
    async def update_order_status(order_id: str, body: StatusUpdateRequest) -> Order:
        """Move an order to a new status.

        Raises:
            HTTPException: 404 for unknown orders, 409 for disallowed transitions
        """
        found(app.state.controller.get_order(order_id), f"Order {order_id} not found")
        updated = await app.state.controller.update_order_status(
            order_id=order_id, status=body.status
        )
        if updated is None:
            raise HTTPException(
                status_code=409, detail=f"Order {order_id} cannot move to {body.status.value}"
            )
        return updated  # type: ignore[no-any-return]

    @app.post("/orders/{order_id}/cancel", response_model=Order, tags=["Orders"])
    async def cancel_order(order_id: str) -> Order:
        found(app.state.controller.get_order(order_id), f"Order {order_id} not found")
        cancelled = await app.state.controller.cancel_order(order_id=order_id)
        if cancelled is None:
            raise HTTPException(status_code=409, detail=f"Order {order_id} cannot be cancelled")
        return cancelled  # type: ignore[no-any-return]

    @app.post("/orders/{order_id}/payment", response_model=Order, tags=["Orders"])
    async def update_payment(order_id: str, body: PaymentRequest) -> Order:
        updated = await app.state.controller.update_payment(order_id=order_id, method=body.method)
        return found(updated, f"Order {order_id} not found")  # type: ignore[no-any-return]

    # Inventory

    @app.get("/ingredients", response_model=list[Ingredient], tags=["Inventory"])
    async def list_ingredients() -> list[Ingredient]:
        return app.state.controller.state.ingredients

    @app.put("/ingredients", response_model=WriteResponse, tags=["Inventory"])
    async def save_ingredients(ingredients: list[Ingredient]) -> WriteResponse:
        """Save manual edits to ingredient records."""
        success = await app.state.controller.inventory_service.save_ingredients(ingredients)
        return WriteResponse(success=success)

    @app.post("/ingredients", response_model=WriteResponse, status_code=201, tags=["Inventory"])
    async def add_ingredient(ingredient: Ingredient) -> WriteResponse:
        success = await app.state.controller.inventory_service.add_ingredient(ingredient)
        return WriteResponse(success=success)

    # Menu

    @app.get("/menu-items", response_model=list[MenuItem], tags=["Menu"])
    async def list_menu_items() -> list[MenuItem]:
        return app.state.controller.state.menu_items

    @app.post("/menu-items", response_model=WriteResponse, status_code=201, tags=["Menu"])
    async def add_menu_item(item: MenuItem) -> WriteResponse:
        state = app.state.controller.state
        state.menu_items = [item, *state.menu_items]
        success = await app.state.controller.store.add(CollectionName.MENU_ITEMS, item.to_record())
        return WriteResponse(success=success)

    @app.put("/menu-items/{item_id}", response_model=WriteResponse, tags=["Menu"])
    async def update_menu_item(item_id: str, item: MenuItem) -> WriteResponse:
        state = app.state.controller.state
        found(
            next((m for m in state.menu_items if m.id == item_id), None),
            f"Menu item {item_id} not found",
        )
        updated = item.model_copy(update={"id": item_id})
        state.menu_items = [updated if m.id == item_id else m for m in state.menu_items]
        success = await app.state.controller.store.update(
            CollectionName.MENU_ITEMS, updated.to_record()
        )
        return WriteResponse(success=success)

    @app.delete("/menu-items/{item_id}", response_model=WriteResponse, tags=["Menu"])
    async def delete_menu_item(item_id: str) -> WriteResponse:
        state = app.state.controller.state
        state.menu_items = [m for m in state.menu_items if m.id != item_id]
        success = await app.state.controller.store.delete(CollectionName.MENU_ITEMS, item_id)
        return WriteResponse(success=success)

    @app.patch("/menu-items", response_model=WriteResponse, tags=["Menu"])
    async def bulk_update_menu_items(body: BulkMenuUpdateRequest) -> WriteResponse:
        """Apply one partial update (e.g. availability or category) to several items."""
        state = app.state.controller.state
        ids = set(body.ids)
        merged = [
            MenuItem.from_record({**m.to_record(), **body.updates, "id": m.id})
            for m in state.menu_items
            if m.id in ids
        ]
        by_id = {m.id: m for m in merged}
        state.menu_items = [by_id.get(m.id, m) for m in state.menu_items]
        success = await app.state.controller.store.bulk_update(
            CollectionName.MENU_ITEMS, [m.to_record() for m in merged]
        )
        return WriteResponse(success=success)

    # Procurement

    @app.get("/requisitions", response_model=list[RequisitionRequest], tags=["Procurement"])
    async def list_requisitions() -> list[RequisitionRequest]:
        return app.state.controller.state.requisitions

    @app.post(
        "/requisitions", response_model=RequisitionRequest, status_code=201, tags=["Procurement"]
    )
    async def add_requisition(requisition: RequisitionRequest) -> RequisitionRequest:
        added: RequisitionRequest = await app.state.procurement_service.add_requisition(requisition)
        return added

    @app.post(
        "/requisitions/{requisition_id}/status",
        response_model=RequisitionRequest,
        tags=["Procurement"],
    )
    async def update_requisition_status(
        requisition_id: str, body: RequisitionStatusRequest
    ) -> RequisitionRequest:
        updated = await app.state.procurement_service.update_requisition_status(
            requisition_id=requisition_id, status=body.status
        )
        return found(updated, f"Requisition {requisition_id} not found")  # type: ignore[no-any-return]

    @app.post(
        "/requisitions/{requisition_id}/receive",
        response_model=RequisitionRequest,
        tags=["Procurement"],
    )
    async def receive_requisition(requisition_id: str) -> RequisitionRequest:
        """Receive stock for a requisition.

        Raises:
            HTTPException: 404 for unknown requisitions, 409 if already received
        """
        state = app.state.controller.state
        found(state.find_requisition(requisition_id), f"Requisition {requisition_id} not found")
        received = await app.state.procurement_service.receive_requisition(
            requisition_id=requisition_id
        )
        if received is None:
            raise HTTPException(
                status_code=409, detail=f"Requisition {requisition_id} already received"
            )
        return received  # type: ignore[no-any-return]

    return app
