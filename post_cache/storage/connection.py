"""Parsing of Azure storage connection strings."""

from dataclasses import dataclass
from typing import Dict, Optional

from post_cache.errors import ConfigurationError

# Well-known credentials of the local storage emulator
DEV_ACCOUNT_NAME = "devstoreaccount1"
DEV_ACCOUNT_KEY = (
    "Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=="
)
DEV_TABLE_ENDPOINT = "http://127.0.0.1:10002/devstoreaccount1"


@dataclass(frozen=True)
class StorageCredentials:
    """Endpoint and credentials resolved from a connection string.

    Attributes:
        account_name: Storage account name, used when signing requests
        table_endpoint: Base URL of the table service, without a trailing slash
        account_key: Base64 shared key, if the string carries one
        sas_token: Shared access signature query string, if the string carries one
    """

    account_name: str
    table_endpoint: str
    account_key: Optional[str] = None
    sas_token: Optional[str] = None


def _split(connection_string: str) -> Dict[str, str]:
    parts = {}
    for segment in connection_string.strip().split(";"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise ConfigurationError(f"Malformed connection string segment: {key!r}")
        parts[key.strip()] = value.strip()
    return parts


def parse_connection_string(connection_string: str) -> StorageCredentials:
    """Parse a storage connection string into endpoint and credentials.

    Args:
        connection_string: Connection string as copied from the storage account

    Returns:
        Resolved credentials

    Raises:
        ConfigurationError: If the string lacks an account, endpoint or credential
    """
    if not connection_string or not connection_string.strip():
        raise ConfigurationError("Storage connection string is empty")

    parts = _split(connection_string)

    if parts.get("UseDevelopmentStorage", "").lower() == "true":
        return StorageCredentials(
            account_name=DEV_ACCOUNT_NAME,
            table_endpoint=DEV_TABLE_ENDPOINT,
            account_key=DEV_ACCOUNT_KEY,
        )

    account_name = parts.get("AccountName")
    account_key = parts.get("AccountKey")
    sas_token = parts.get("SharedAccessSignature")

    endpoint = parts.get("TableEndpoint")
    if not endpoint:
        if not account_name:
            raise ConfigurationError("Connection string has neither TableEndpoint nor AccountName")
        protocol = parts.get("DefaultEndpointsProtocol", "https")
        suffix = parts.get("EndpointSuffix", "core.windows.net")
        endpoint = f"{protocol}://{account_name}.table.{suffix}"

    if not account_name:
        # https://<account>.table.<suffix>
        account_name = endpoint.split("://", 1)[-1].split(".", 1)[0]

    if not account_key and not sas_token:
        raise ConfigurationError(
            "Connection string has no AccountKey or SharedAccessSignature",
            details={"account_name": account_name},
        )

    return StorageCredentials(
        account_name=account_name,
        table_endpoint=endpoint.rstrip("/"),
        account_key=account_key,
        sas_token=sas_token.lstrip("?") if sas_token else None,
    )
