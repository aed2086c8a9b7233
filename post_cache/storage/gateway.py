"""Store gateway between posts and the remote table."""
from typing import AsyncIterator, Optional

import structlog

from post_cache.config import TableStorageConfig
from post_cache.errors import UnsupportedOperationError
from post_cache.metrics import metrics
from post_cache.models import Post
from post_cache.storage.mapping import RemoteRecord, from_remote, to_remote
from post_cache.storage.table_client import ContinuationToken, TableClient

logger = structlog.get_logger(__name__)


class StoreGateway:
    """Reads and writes posts against a partitioned table.

    Each post is stored as its own partition, keyed by the post ID.
    """

    to_remote = staticmethod(to_remote)
    from_remote = staticmethod(from_remote)

    def __init__(self, client: TableClient):
        """Initialize the gateway.

        Args:
            client: Table client bound to the posts table
        """
        self.client = client

    @classmethod
    def from_config(cls, config: TableStorageConfig) -> "StoreGateway":
        return cls(TableClient(config))

    async def ensure_table_exists(self) -> None:
        """Create the backing table if it is missing.

        Raises:
            StoreUnavailableError: If the table service cannot be used
        """
        await self.client.create_table_if_not_exists()

    async def drain_all(self) -> AsyncIterator[RemoteRecord]:
        """Yield every record in the table, following continuation tokens.

        A page may hold entities and still carry a token, so the loop only
        stops once a page arrives without one.
        """
        continuation: Optional[ContinuationToken] = None
        page = 0
        while True:
            segment = await self.client.query_entities(continuation)
            page += 1
            metrics.increment_counter("post_cache_pages")
            logger.debug(
                "table_page_fetched",
                page=page,
                entities=len(segment.entities),
                has_more=segment.continuation is not None,
            )
            for entity in segment.entities:
                yield entity
            continuation = segment.continuation
            if continuation is None:
                break

    async def upsert(self, post: Post) -> None:
        """Insert or replace the post's full record."""
        await self.client.upsert_entity(to_remote(post))
        logger.debug("post_upserted", post_id=post.id)

    async def delete(self, post: Post) -> None:
        """Delete the post's record.

        Raises:
            RecordNotFoundError: If the table holds no record for the post
        """
        await self.client.delete_entity(post.id, post.id)
        logger.debug("post_deleted", post_id=post.id)

    async def save_binary_asset(self, data: bytes, name: str, suffix: Optional[str] = None) -> str:
        """Store a binary asset such as an uploaded image.

        Raises:
            UnsupportedOperationError: Always; the table store has no asset storage
        """
        raise UnsupportedOperationError(
            "Binary asset storage is not implemented for the table store",
            details={"name": name, "suffix": suffix, "size": len(data)},
        )

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "StoreGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
