"""Post caching package.

This package provides the in-memory post cache with:
- Full table load at startup
- Visibility filtering per caller
- Write-through saves and deletes
"""

from post_cache.cache.post_cache import PostCache

__all__ = ["PostCache"]
