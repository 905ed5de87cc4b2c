"""
Cosmos DB client wrapper.

Provides a clean interface to Azure Cosmos DB with:
- Connection management
- Container access
- Paged query execution with continuation tokens
- Retry logic for transient failures
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosHttpResponseError

from ..exceptions import ConfigurationError, StoreConnectionError, StoreIOError
from .base import SESSIONS_COLLECTION, STEP_EVENTS_COLLECTION

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "funnel_analytics"

# Both containers are partitioned by session so a session's events are co-located
PARTITION_KEY_PATH = "/sessionId"

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds


@dataclass
class CosmosConfig:
    """Configuration for Cosmos DB connection.

    Attributes:
        endpoint: Cosmos DB account endpoint URL
        key: Cosmos DB account key
        database_name: Name of the database to use
        max_retries: Maximum retry attempts for transient failures
        retry_delay: Base delay between retries (seconds)
    """

    endpoint: str
    key: str
    database_name: str = DEFAULT_DATABASE
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_env(cls) -> "CosmosConfig":
        """Create config from environment variables.

        Expected environment variables:
        - FUNNEL_COSMOS_ENDPOINT: Cosmos DB account endpoint
        - FUNNEL_COSMOS_KEY: Cosmos DB account key
        - FUNNEL_COSMOS_DATABASE: Database name (optional)

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        endpoint = os.environ.get("FUNNEL_COSMOS_ENDPOINT")
        key = os.environ.get("FUNNEL_COSMOS_KEY")

        if not endpoint:
            raise ConfigurationError("FUNNEL_COSMOS_ENDPOINT", "environment variable not set")
        if not key:
            raise ConfigurationError("FUNNEL_COSMOS_KEY", "environment variable not set")

        return cls(
            endpoint=endpoint,
            key=key,
            database_name=os.environ.get("FUNNEL_COSMOS_DATABASE", DEFAULT_DATABASE),
        )


class CosmosClientWrapper:
    """Wrapper for Azure Cosmos DB async client.

    Manages connection lifecycle, provides container access,
    and handles retry logic for transient failures.

    Containers:
    - sessions: Session records (partition: /sessionId)
    - stepAnalytics: Step events (partition: /sessionId)
    """

    def __init__(self, config: CosmosConfig):
        self.config = config
        self._client: CosmosClient | None = None
        self._database: DatabaseProxy | None = None
        self._containers: dict[str, ContainerProxy] = {}
        self._initialized = False

    async def initialize(self) -> None:
        """Open the connection and ensure the database and containers exist."""
        if self._initialized:
            return

        try:
            client = CosmosClient(self.config.endpoint, credential=self.config.key)
            self._client = client

            self._database = await client.create_database_if_not_exists(
                id=self.config.database_name
            )

            await self._ensure_container(SESSIONS_COLLECTION)
            await self._ensure_container(STEP_EVENTS_COLLECTION)

            self._initialized = True
            logger.info(f"Connected to Cosmos DB database {self.config.database_name}")

        except CosmosHttpResponseError as e:
            raise StoreConnectionError(self.config.endpoint, e) from e
        except Exception as e:
            raise StoreConnectionError(self.config.endpoint, e) from e

    async def _ensure_container(self, name: str) -> None:
        """Ensure a container exists, creating if necessary."""
        if self._database is None:
            raise StoreIOError("ensure_container", name, RuntimeError("Database not initialized"))

        container = await self._database.create_container_if_not_exists(
            id=name,
            partition_key=PartitionKey(path=PARTITION_KEY_PATH),
        )
        self._containers[name] = container

    async def close(self) -> None:
        """Close the Cosmos DB connection."""
        if self._client:
            await self._client.close()
            self._client = None
            self._database = None
            self._containers = {}
            self._initialized = False

    async def __aenter__(self) -> "CosmosClientWrapper":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def container(self, name: str) -> ContainerProxy:
        """Get a container proxy by name."""
        if not self._initialized:
            raise StoreIOError("get_container", name, RuntimeError("Client not initialized"))
        if name not in self._containers:
            raise StoreIOError("get_container", name, KeyError(f"Unknown container: {name}"))
        return self._containers[name]

    # =========================================================================
    # Operations with Retry
    # =========================================================================

    async def create_item(self, container_name: str, item: dict[str, Any]) -> dict[str, Any]:
        """Create an item in a container with retry logic."""
        container = self.container(container_name)
        return await self._with_retry(lambda: container.create_item(body=item))

    async def read_item(
        self, container_name: str, item_id: str, partition_key: str
    ) -> dict[str, Any]:
        """Read an item; not-found errors propagate to the caller."""
        container = self.container(container_name)
        return await self._with_retry(
            lambda: container.read_item(item=item_id, partition_key=partition_key)
        )

    async def patch_item(
        self,
        container_name: str,
        item_id: str,
        partition_key: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """Set top-level fields on an existing item with retry logic."""
        container = self.container(container_name)
        operations = [{"op": "set", "path": f"/{k}", "value": v} for k, v in fields.items()]
        return await self._with_retry(
            lambda: container.patch_item(
                item=item_id,
                partition_key=partition_key,
                patch_operations=operations,
            )
        )

    async def query_page(
        self,
        container_name: str,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        page_size: int | None = None,
        continuation_token: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Run a query and return one page plus the continuation token.

        Without a page size, every matching item is returned and the token is None.

        Args:
            container_name: Name of the container
            query: SQL query string
            parameters: Query parameters
            page_size: Maximum items in the page
            continuation_token: Token returned by the previous page

        Returns:
            (items, next continuation token or None)
        """
        container = self.container(container_name)

        try:
            if page_size is None:
                items = [
                    item
                    async for item in container.query_items(
                        query=query, parameters=parameters or []
                    )
                ]
                return items, None

            pager = container.query_items(
                query=query,
                parameters=parameters or [],
                max_item_count=page_size,
            ).by_page(continuation_token)

            items = []
            async for page in pager:
                async for item in page:
                    items.append(item)
                break
            return items, pager.continuation_token
        except CosmosHttpResponseError as e:
            raise StoreIOError("query", container_name, e) from e

    async def _with_retry(self, operation: Any) -> Any:
        """Execute an operation with retry logic for transient failures.

        Raises:
            CosmosHttpResponseError: Client errors (4xx other than 429) are not retried
            StoreIOError: After max retries, or for unknown errors
        """
        last_error: Exception | None = None

        for attempt in range(self.config.max_retries):
            try:
                return await operation()
            except CosmosHttpResponseError as e:
                # Don't retry client errors (4xx) except rate limiting
                if 400 <= (e.status_code or 0) < 500 and e.status_code != 429:
                    raise

                last_error = e
                if attempt < self.config.max_retries - 1:
                    delay = self.config.retry_delay * (2**attempt)
                    logger.warning(
                        f"Transient Cosmos error (status {e.status_code}), retrying in {delay}s"
                    )
                    await asyncio.sleep(delay)
            except Exception as e:
                # Don't retry unknown errors
                raise StoreIOError("cosmos_operation", cause=e) from e

        if last_error:
            raise StoreIOError("cosmos_operation", cause=last_error) from last_error
        raise StoreIOError("cosmos_operation", cause=RuntimeError("Unexpected retry failure"))
