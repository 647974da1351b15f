"""Polling-based collection subscriptions.

The backends only support full reads, so subscriptions are emulated by
fetching the whole collection on subscribe, on a fixed interval and right
after this client's own writes. Subscribers always receive full snapshots,
never diffs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from restaurant_inventory_service.models.restaurant_models import (
    CollectionName,
    CollectionRecord,
    parse_records,
)
from restaurant_inventory_service.observability.metrics import record_store_write_failure
from restaurant_inventory_service.repositories.collection_store import CollectionStore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[CollectionRecord]], Awaitable[None] | None]


class PollingCollectionStore(CollectionStore):
    """Collection store wrapper adding snapshot subscriptions.

    Writes are delegated to the wrapped backend. While any write is in
    flight, poll ticks and refreshes are skipped so a stale server snapshot
    never overwrites the client's optimistic state. After a write completes
    the written collection is refreshed immediately.
    """

    def __init__(self, backend: CollectionStore, poll_interval_seconds: float = 5.0) -> None:
        """Initialize the wrapper.

        Args:
            backend: Store that actually persists the records
            poll_interval_seconds: Seconds between poll ticks
        """
        self.backend = backend
        self.poll_interval_seconds = poll_interval_seconds
        self.active_write_count = 0
        self._subscribers: dict[CollectionName, list[SnapshotCallback]] = {}
        self._poll_tasks: dict[int, asyncio.Task[None]] = {}

    async def subscribe(
        self, collection: CollectionName, on_snapshot: SnapshotCallback
    ) -> Callable[[], None]:
        """Subscribe to full snapshots of a collection.

        Delivers the current snapshot before returning, then keeps polling in
        a background task.

        Args:
            collection: Collection to watch
            on_snapshot: Callback receiving the parsed records (sync or async)

        Returns:
            Callable that cancels the subscription
        """
        self._subscribers.setdefault(collection, []).append(on_snapshot)
        await self._fetch_and_deliver(collection, [on_snapshot])

        task = asyncio.create_task(self._poll(collection, on_snapshot))
        key = id(task)
        self._poll_tasks[key] = task

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(collection, [])
            if on_snapshot in callbacks:
                callbacks.remove(on_snapshot)
            poll_task = self._poll_tasks.pop(key, None)
            if poll_task is not None:
                poll_task.cancel()

        return unsubscribe

    async def refresh(self, collection: CollectionName) -> None:
        """Fetch a collection now and deliver it to all its subscribers."""
        callbacks = list(self._subscribers.get(collection, []))
        if callbacks:
            await self._fetch_and_deliver(collection, callbacks)

    async def close(self) -> None:
        """Cancel all polling tasks."""
        tasks = list(self._poll_tasks.values())
        self._poll_tasks.clear()
        self._subscribers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def list_records(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        return await self.backend.list_records(collection)

    async def add(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        return await self._write(collection, self.backend.add(collection, record))

    async def update(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        return await self._write(collection, self.backend.update(collection, record))

    async def delete(self, collection: CollectionName, record_id: str) -> bool:
        return await self._write(collection, self.backend.delete(collection, record_id))

    async def bulk_add(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        return await self._write(collection, self.backend.bulk_add(collection, records))

    async def bulk_update(
        self, collection: CollectionName, records: list[dict[str, Any]]
    ) -> bool:
        return await self._write(collection, self.backend.bulk_update(collection, records))

    async def bulk_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        return await self._write(collection, self.backend.bulk_delete(collection, record_ids))

    async def _write(self, collection: CollectionName, operation: Awaitable[bool]) -> bool:
        self.active_write_count += 1
        try:
            success = await operation
        finally:
            self.active_write_count -= 1

        if not success:
            logger.error(f"Write to {collection.value} failed")  # pragma: no cover
            record_store_write_failure(collection.value)

        await self.refresh(collection)
        return success

    async def _poll(self, collection: CollectionName, on_snapshot: SnapshotCallback) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            await self._fetch_and_deliver(collection, [on_snapshot])

    async def _fetch_and_deliver(
        self, collection: CollectionName, callbacks: list[SnapshotCallback]
    ) -> None:
        if self.active_write_count > 0:
            logger.debug(f"Skipping {collection.value} refresh, write in progress")
            return

        records = await self.backend.list_records(collection)
        if records is None:
            return

        # A write may have started while the fetch was in flight
        if self.active_write_count > 0:
            return

        snapshot, invalid = parse_records(collection, records)
        if invalid:
            logger.warning(f"Skipped {invalid} invalid records in {collection.value} snapshot")

        for callback in callbacks:
            result = callback(snapshot)
            if asyncio.iscoroutine(result):
                await result
