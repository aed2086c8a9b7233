"""
Storage module for reading and writing posts in the table service.
"""
from post_cache.storage.connection import StorageCredentials, parse_connection_string
from post_cache.storage.gateway import StoreGateway
from post_cache.storage.mapping import from_remote, to_remote
from post_cache.storage.table_client import ContinuationToken, QuerySegment, TableClient

__all__ = [
    "ContinuationToken",
    "QuerySegment",
    "StorageCredentials",
    "StoreGateway",
    "TableClient",
    "from_remote",
    "parse_connection_string",
    "to_remote",
]
