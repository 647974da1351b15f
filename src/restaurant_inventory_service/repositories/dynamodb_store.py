"""DynamoDB collection store.

Each collection lives in its own table with ``id`` as partition key. DynamoDB
rejects Python floats, so numbers are converted to Decimal on the way in and
back to int/float on the way out.
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_inventory_service.models.restaurant_models import CollectionName
from restaurant_inventory_service.repositories.collection_store import CollectionStore

logger = logging.getLogger(__name__)


def to_dynamodb_item(record: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON record into a DynamoDB-compatible item.

    Args:
        record: JSON-compatible record

    Returns:
        dict: Item with floats replaced by Decimal
    """
    result: dict[str, Any] = json.loads(json.dumps(record), parse_float=Decimal)
    return result


def from_dynamodb_item(item: dict[str, Any]) -> dict[str, Any]:
    """Convert a DynamoDB item back into a JSON record.

    Args:
        item: Item as returned by boto3

    Returns:
        dict: Record with Decimal values converted to int or float
    """

    def convert(value: Any) -> Any:
        if isinstance(value, Decimal):
            return int(value) if value == value.to_integral_value() else float(value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    result: dict[str, Any] = convert(item)
    return result


class DynamoDBCollectionStore(CollectionStore):
    """Collection store backed by one DynamoDB table per collection.

    Table names are ``<prefix><collection>``, for example ``rms-orders``.
    """

    def __init__(
        self, dynamodb_resource: DynamoDBServiceResource, table_prefix: str = "rms-"
    ) -> None:
        """Initialize the store.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_prefix: Prefix prepended to collection names to build table names
        """
        self.dynamodb = dynamodb_resource
        self.table_prefix = table_prefix
        self.tables: dict[CollectionName, Table] = {
            name: dynamodb_resource.Table(f"{table_prefix}{name.value}") for name in CollectionName
        }

    async def list_records(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        """Scan the whole table, following pagination.

        Args:
            collection: Collection to read

        Returns:
            list: All records, or None on failure
        """
        return await asyncio.to_thread(self._scan, collection)

    async def add(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        return await asyncio.to_thread(self._put, collection, record)

    async def update(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        # put_item replaces the whole item, which is last-write-wins by id
        return await asyncio.to_thread(self._put, collection, record)

    async def delete(self, collection: CollectionName, record_id: str) -> bool:
        return await asyncio.to_thread(self._delete, collection, record_id)

    async def bulk_add(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        return await asyncio.to_thread(self._batch_put, collection, records)

    async def bulk_update(
        self, collection: CollectionName, records: list[dict[str, Any]]
    ) -> bool:
        return await asyncio.to_thread(self._batch_put, collection, records)

    async def bulk_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        return await asyncio.to_thread(self._batch_delete, collection, record_ids)

    # boto3 calls block, so the methods below run in a worker thread

    def _scan(self, collection: CollectionName) -> list[dict[str, Any]] | None:
        table = self.tables[collection]
        try:
            response = table.scan()
            items = list(response.get("Items", []))

            while "LastEvaluatedKey" in response:
                response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
                items.extend(response.get("Items", []))

            return [from_dynamodb_item(item) for item in items]

        except ClientError as e:
            logger.error(f"Failed to list {collection.value}: {e}")  # pragma: no cover
            return None

    def _put(self, collection: CollectionName, record: dict[str, Any]) -> bool:
        try:
            self.tables[collection].put_item(Item=to_dynamodb_item(record))
            return True

        except ClientError as e:
            logger.error(
                f"Failed to write {collection.value}/{record.get('id')}: {e}"
            )  # pragma: no cover
            return False

    def _delete(self, collection: CollectionName, record_id: str) -> bool:
        try:
            self.tables[collection].delete_item(Key={"id": record_id})
            return True

        except ClientError as e:
            logger.error(f"Failed to delete {collection.value}/{record_id}: {e}")  # pragma: no cover
            return False

    def _batch_put(self, collection: CollectionName, records: list[dict[str, Any]]) -> bool:
        try:
            with self.tables[collection].batch_writer() as batch:
                for record in records:
                    batch.put_item(Item=to_dynamodb_item(record))
            return True

        except ClientError as e:
            logger.error(f"Failed to bulk write to {collection.value}: {e}")  # pragma: no cover
            return False

    def _batch_delete(self, collection: CollectionName, record_ids: list[str]) -> bool:
        try:
            with self.tables[collection].batch_writer() as batch:
                for record_id in record_ids:
                    batch.delete_item(Key={"id": record_id})
            return True

        except ClientError as e:
            logger.error(f"Failed to bulk delete from {collection.value}: {e}")  # pragma: no cover
            return False
