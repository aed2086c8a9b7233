"""Configuration management for post cache components."""

from .table_config import DEFAULT_CONNECTION_STRING, DEFAULT_TABLE_NAME, TableStorageConfig

__all__ = ["DEFAULT_CONNECTION_STRING", "DEFAULT_TABLE_NAME", "TableStorageConfig"]
