"""Collection store interface and local fallback store.

The store is a generic key-value persistence layer over named collections.
Records are plain camelCase dictionaries keyed by ``id``. Following the rest
of the service, expected failures are reported with simple return values
(None/False) rather than exceptions.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from restaurant_inventory_service.models.restaurant_models import CollectionName

logger = logging.getLogger(__name__)


class CollectionStore(ABC):
    """Abstract base class for collection persistence backends.

    All backends (REST API, DynamoDB, local) implement these operations.

    - ``list_records`` returns None on failure
    - write operations return False on failure
    - callers decide whether a failure matters
    """

    @abstractmethod
    async def list_records(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        """Fetch the full current contents of a collection.

        Args:
            collection: Collection to read

        Returns:
            list: All records (empty list if none), or None on failure
        """

    @abstractmethod
    async def add(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        """Add a record to a collection.

        Args:
            collection: Target collection
            record: Record to add (must contain ``id``)

        Returns:
            bool: True if the write succeeded, False otherwise
        """

    @abstractmethod
    async def update(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        """Replace the record with the same ``id``.

        Args:
            collection: Target collection
            record: Full record to store

        Returns:
            bool: True if the write succeeded, False otherwise
        """

    @abstractmethod
    async def delete(self, collection: CollectionName, record_id: str) -> bool:
        """Delete a record by id.

        Args:
            collection: Target collection
            record_id: Identifier of the record to delete

        Returns:
            bool: True if the delete succeeded, False otherwise
        """

    async def bulk_add(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        """Add several records. Returns True only if every write succeeded."""
        results = [await self.add(collection, record) for record in records]
        return all(results)

    async def bulk_update(
        self, collection: CollectionName, records: list[dict[str, Any]]
    ) -> bool:
        """Update several records. Returns True only if every write succeeded."""
        results = [await self.update(collection, record) for record in records]
        return all(results)

    async def bulk_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        """Delete several records. Returns True only if every delete succeeded."""
        results = [await self.delete(collection, record_id) for record_id in record_ids]
        return all(results)


class LocalCollectionStore(CollectionStore):
    """Local fallback store used when no backend is reachable.

    Keeps every collection in memory, newest records first. When a file path
    is given the collections are loaded from and written back to a JSON file
    after every change.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: Optional JSON file used to persist collections between runs
        """
        self.path = Path(path) if path else None
        self._collections: dict[str, list[dict[str, Any]]] = {
            name.value: [] for name in CollectionName
        }
        if self.path is not None and self.path.exists():
            self._load(self.path)

    async def list_records(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        return copy.deepcopy(self._collections[collection.value])

    async def add(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        self._collections[collection.value].insert(0, copy.deepcopy(record))
        return self._save()

    async def update(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        records = self._collections[collection.value]
        self._collections[collection.value] = [
            copy.deepcopy(record) if existing.get("id") == record.get("id") else existing
            for existing in records
        ]
        return self._save()

    async def delete(self, collection: CollectionName, record_id: str) -> bool:
        records = self._collections[collection.value]
        self._collections[collection.value] = [r for r in records if r.get("id") != record_id]
        return self._save()

    async def bulk_add(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        self._collections[collection.value] = [
            *copy.deepcopy(records),
            *self._collections[collection.value],
        ]
        return self._save()

    async def bulk_update(
        self, collection: CollectionName, records: list[dict[str, Any]]
    ) -> bool:
        # Partial records are merged into the stored ones
        updates = {record.get("id"): record for record in records}
        self._collections[collection.value] = [
            {**existing, **copy.deepcopy(updates[existing.get("id")])}
            if existing.get("id") in updates
            else existing
            for existing in self._collections[collection.value]
        ]
        return self._save()

    async def bulk_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        ids = set(record_ids)
        self._collections[collection.value] = [
            r for r in self._collections[collection.value] if r.get("id") not in ids
        ]
        return self._save()

    def _load(self, path: Path) -> None:
        """Load collections from a JSON file, ignoring unreadable files."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read local store {path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring local store {path}: expected a JSON object")
            return

        for name in CollectionName:
            records = data.get(name.value)
            if isinstance(records, list):
                self._collections[name.value] = records

    def _save(self) -> bool:
        """Write collections to the JSON file if one is configured."""
        if self.path is None:
            return True

        try:
            self.path.write_text(json.dumps(self._collections, indent=2), encoding="utf-8")
            return True

        except OSError as e:
            logger.error(f"Failed to write local store {self.path}: {e}")  # pragma: no cover
            return False
