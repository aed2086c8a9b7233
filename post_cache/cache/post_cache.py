"""In-memory post cache backed by the table store.

This module provides the read path of the blog:
- A full load of the table at startup, following continuation tokens
- Visibility filtering of every read against the current caller
- Write-through saves and deletes that touch memory only after the table does

Readers never lock. The cache publishes an immutable tuple of posts and every
mutation builds and swaps in a new tuple under a writer lock.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

import structlog

from post_cache.errors import CacheNotReadyError, RecordDecodeError
from post_cache.identity import IdentityProvider, is_privileged
from post_cache.metrics import metrics
from post_cache.models import Post
from post_cache.storage.gateway import StoreGateway

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sorted(posts: Iterable[Post]) -> Tuple[Post, ...]:
    # sorted() is stable, so posts sharing a publish date keep their order
    return tuple(sorted(posts, key=lambda p: p.pub_date, reverse=True))


class PostCache:
    """Read-optimized cache of every post in the table.

    Construction is cheap; call ``initialize()`` once during startup before
    serving reads. Posts returned by reads are shared with the cache and
    should be treated as read-only; pass a modified post to ``save``.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        identity: IdentityProvider = is_privileged,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the post cache.

        Args:
            gateway: Store gateway for the posts table
            identity: Returns whether the current caller is privileged
            clock: Returns the current UTC time
        """
        self._gateway = gateway
        self._identity = identity
        self._clock = clock
        self._posts: Optional[Tuple[Post, ...]] = None
        self._write_lock = asyncio.Lock()
        self._init_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._posts is not None

    def __len__(self) -> int:
        return len(self._snapshot())

    async def initialize(self) -> None:
        """Load every post from the table and make the cache readable.

        Records that fail to decode are logged and skipped. Store errors
        propagate and leave the cache unready. Concurrent callers wait for
        the load already in flight; once it completes they return without
        loading again.

        Raises:
            StoreUnavailableError: If the table cannot be created or read
        """
        async with self._init_lock:
            if self.ready:
                logger.debug("post_cache_already_initialized")
                return

            await self._gateway.ensure_table_exists()

            loaded: List[Post] = []
            skipped = 0
            async for remote in self._gateway.drain_all():
                try:
                    loaded.append(self._gateway.from_remote(remote))
                except RecordDecodeError as e:
                    skipped += 1
                    metrics.increment_counter("post_cache_decode_failures")
                    logger.error("post_decode_failed", **e.to_dict())

            async with self._write_lock:
                self._posts = tuple(loaded)
                self.sort()

            metrics.set_gauge("post_cache_records", len(self._posts))
            logger.info("post_cache_initialized", posts=len(self._posts), skipped=skipped)

    def sort(self) -> None:
        """Order the cached posts by publish date, newest first."""
        self._posts = _sorted(self._snapshot())

    def _snapshot(self) -> Tuple[Post, ...]:
        posts = self._posts
        if posts is None:
            raise CacheNotReadyError("Post cache has not been initialized")
        return posts

    def _visible(self) -> List[Post]:
        posts = self._snapshot()
        privileged = self._identity()
        now = self._clock()
        return [p for p in posts if p.is_visible(now, privileged)]

    def _find_visible(self, match: Callable[[Post], bool]) -> Optional[Post]:
        posts = self._snapshot()
        post = next((p for p in posts if match(p)), None)
        if post is not None and post.is_visible(self._clock(), self._identity()):
            return post
        return None

    async def list_posts(self, count: int, skip: int = 0) -> List[Post]:
        """Return up to ``count`` visible posts after skipping ``skip``."""
        count = max(count, 0)
        skip = max(skip, 0)
        return self._visible()[skip : skip + count]

    async def list_by_category(self, category: str) -> List[Post]:
        """Return visible posts tagged with ``category``, ignoring case."""
        wanted = category.casefold()
        return [p for p in self._visible() if any(c.casefold() == wanted for c in p.categories)]

    async def get_by_slug(self, slug: str) -> Optional[Post]:
        wanted = slug.casefold()
        return self._find_visible(lambda p: p.slug.casefold() == wanted)

    async def get_by_id(self, post_id: str) -> Optional[Post]:
        wanted = post_id.casefold()
        return self._find_visible(lambda p: p.id.casefold() == wanted)

    async def list_categories(self) -> List[str]:
        """Return the distinct lower-cased categories of all visible posts."""
        categories = (c.lower() for p in self._visible() for c in p.categories)
        return list(dict.fromkeys(categories))

    async def save(self, post: Post) -> None:
        """Persist a post and mirror it into the cache.

        The cache keeps its own copy, matched to existing entries by ID, so
        saving a separately loaded copy of a post updates it in place.

        Raises:
            StoreUnavailableError: If the table write fails; the cache is unchanged
        """
        self._snapshot()
        now = self._clock()
        stored = post.model_copy(deep=True, update={"last_modified": now})

        try:
            await self._gateway.upsert(stored)
        except Exception:
            metrics.increment_counter("post_cache_writes", {"operation": "save", "status": "error"})
            raise
        post.last_modified = now

        async with self._write_lock:
            posts = [p for p in self._snapshot() if p.id != stored.id]
            posts.append(stored)
            self._posts = tuple(posts)
            self.sort()

        metrics.increment_counter("post_cache_writes", {"operation": "save", "status": "success"})
        metrics.set_gauge("post_cache_records", len(self._posts))
        logger.info("post_saved", post_id=stored.id)

    async def delete(self, post: Post) -> None:
        """Delete a post from the table, then from the cache.

        Raises:
            RecordNotFoundError: If the table has no record for the post
            StoreUnavailableError: If the table write fails
        """
        self._snapshot()
        try:
            await self._gateway.delete(post)
        except Exception:
            metrics.increment_counter(
                "post_cache_writes", {"operation": "delete", "status": "error"}
            )
            raise

        async with self._write_lock:
            self._posts = tuple(p for p in self._snapshot() if p.id != post.id)

        metrics.increment_counter("post_cache_writes", {"operation": "delete", "status": "success"})
        metrics.set_gauge("post_cache_records", len(self._posts))
        logger.info("post_deleted", post_id=post.id)

    async def save_binary_asset(self, data: bytes, name: str, suffix: Optional[str] = None) -> str:
        """Store a binary asset through the gateway; always unsupported here."""
        return await self._gateway.save_binary_asset(data, name, suffix)
