"""Post cache module."""

from .cache import PostCache
from .config import TableStorageConfig
from .models import Comment, Post
from .storage import StoreGateway, TableClient

__version__ = "1.0.0"

__all__ = ["PostCache", "StoreGateway", "TableClient", "TableStorageConfig", "Post", "Comment"]
