"""Configuration settings for the table storage backend."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_TABLE_NAME = "MiniblogCoreServicesPosts"
DEFAULT_CONNECTION_STRING = "UseDevelopmentStorage=true"


class TableStorageConfig(BaseModel):
    """Configuration for the Azure Table storage gateway.

    Attributes:
        connection_string: Azure storage account connection string
        table_name: Name of the table holding posts
        max_retries: Attempts per request before giving up on transient errors
        request_timeout: Total timeout in seconds for a single HTTP request
        api_version: Value sent in the x-ms-version header
    """

    connection_string: str = Field(DEFAULT_CONNECTION_STRING, description="Storage connection string")
    table_name: str = Field(DEFAULT_TABLE_NAME, description="Backing table name")
    max_retries: int = Field(3, ge=1)
    request_timeout: float = Field(30.0, gt=0)
    api_version: str = "2019-02-02"

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        # Table names are alphanumeric, 3-63 chars, and may not start with a digit
        if not (3 <= len(v) <= 63) or not v.isalnum() or v[0].isdigit():
            raise ValueError(f"Invalid table name: {v!r}")
        return v

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "TableStorageConfig":
        """Build a config from environment variables, loading a .env file first.

        Recognised variables are AZURE_STORAGE_CONNECTION_STRING,
        AZURE_TABLE_NAME, TABLE_MAX_RETRIES and TABLE_REQUEST_TIMEOUT.
        """
        load_dotenv(env_file)
        values = {
            "connection_string": os.getenv("AZURE_STORAGE_CONNECTION_STRING"),
            "table_name": os.getenv("AZURE_TABLE_NAME"),
            "max_retries": os.getenv("TABLE_MAX_RETRIES"),
            "request_timeout": os.getenv("TABLE_REQUEST_TIMEOUT"),
        }
        return cls(**{k: v for k, v in values.items() if v})
