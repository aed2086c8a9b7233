"""Azure Table service REST client."""
import asyncio
import base64
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence
from urllib.parse import quote

import aiohttp
import structlog

from post_cache.config import TableStorageConfig
from post_cache.errors import RecordNotFoundError, StoreUnavailableError
from post_cache.metrics import metrics
from post_cache.storage.connection import StorageCredentials, parse_connection_string

logger = structlog.get_logger(__name__)

JSON_NO_METADATA = "application/json;odata=nometadata"
JSON_MINIMAL_METADATA = "application/json;odata=minimalmetadata"

EDM_DATETIME = "Edm.DateTime"
EDM_INT64 = "Edm.Int64"
_INT32_MAX = 2**31 - 1
_DATETIME_RE = re.compile(r"^(?P<base>[^.Z]+)(?:\.(?P<fraction>\d+))?Z?$")

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class ContinuationToken:
    """Cursor for resuming a segmented query at the next page."""

    next_partition_key: str
    next_row_key: Optional[str] = None

    def as_params(self) -> Dict[str, str]:
        params = {"NextPartitionKey": self.next_partition_key}
        if self.next_row_key:
            params["NextRowKey"] = self.next_row_key
        return params

    @classmethod
    def from_headers(cls, headers) -> Optional["ContinuationToken"]:
        partition_key = headers.get("x-ms-continuation-NextPartitionKey")
        if not partition_key:
            return None
        return cls(partition_key, headers.get("x-ms-continuation-NextRowKey"))


@dataclass
class QuerySegment:
    """One page of a segmented query."""

    entities: List[Dict[str, Any]] = field(default_factory=list)
    continuation: Optional[ContinuationToken] = None


class _Response(NamedTuple):
    status: int
    headers: Mapping[str, str]
    body: Any
    attempt: int = 1


def format_edm_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_edm_datetime(value: str) -> datetime:
    """Parse a table service timestamp, which may carry seven fractional digits."""
    match = _DATETIME_RE.match(value)
    if not match:
        raise ValueError(f"Invalid Edm.DateTime value: {value!r}")
    parsed = datetime.strptime(match["base"], "%Y-%m-%dT%H:%M:%S")
    fraction = (match["fraction"] or "0")[:6].ljust(6, "0")
    return parsed.replace(microsecond=int(fraction), tzinfo=timezone.utc)


def encode_entity(entity: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a flat entity into its JSON wire form with type annotations."""
    encoded: Dict[str, Any] = {}
    for name, value in entity.items():
        if isinstance(value, datetime):
            encoded[name] = format_edm_datetime(value)
            encoded[f"{name}@odata.type"] = EDM_DATETIME
        elif isinstance(value, int) and not isinstance(value, bool) and abs(value) > _INT32_MAX:
            encoded[name] = str(value)
            encoded[f"{name}@odata.type"] = EDM_INT64
        elif value is not None:
            encoded[name] = value
    return encoded


def decode_entity(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a JSON wire entity into a flat dict of Python values."""
    entity: Dict[str, Any] = {}
    for name, value in raw.items():
        if name.startswith("odata.") or "@odata." in name:
            continue
        edm_type = raw.get(f"{name}@odata.type")
        if edm_type == EDM_DATETIME:
            entity[name] = parse_edm_datetime(value)
        elif edm_type == EDM_INT64:
            entity[name] = int(value)
        else:
            entity[name] = value
    return entity


def _quote_key(value: str) -> str:
    # Single quotes inside a key literal are doubled before percent-encoding
    return quote(value.replace("'", "''"), safe="")


class TableClient:
    """Client for a single table of the Azure Table service."""

    def __init__(
        self,
        config: TableStorageConfig,
        credentials: Optional[StorageCredentials] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the table client.

        Args:
            config: Table storage configuration
            credentials: Pre-resolved credentials, parsed from the config's
                connection string when omitted
            session: Optional externally managed HTTP session
        """
        self.config = config
        self.table_name = config.table_name
        self.credentials = credentials or parse_connection_string(config.connection_string)
        self.session = session
        self._owns_session = session is None
        self._key = (
            base64.b64decode(self.credentials.account_key)
            if self.credentials.account_key
            else None
        )

    async def _init_session(self):
        """Initialize aiohttp session on first use."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    def _sign(self, headers: Dict[str, str], path: str) -> None:
        """Add a SharedKeyLite authorization header for the given request path."""
        if self._key is None:
            return
        account = self.credentials.account_name
        endpoint_path = self.credentials.table_endpoint.split("://", 1)[-1].partition("/")[2]
        resource = f"/{account}/{endpoint_path}/{path}" if endpoint_path else f"/{account}/{path}"
        string_to_sign = f"{headers['x-ms-date']}\n{resource}"
        digest = hmac.new(self._key, string_to_sign.encode("utf-8"), hashlib.sha256).digest()
        signature = base64.b64encode(digest).decode("utf-8")
        headers["Authorization"] = f"SharedKeyLite {account}:{signature}"

    def _build_headers(self, accept: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "x-ms-date": formatdate(usegmt=True),
            "x-ms-version": self.config.api_version,
            "Accept": accept,
            "DataServiceVersion": "3.0;NetFx",
            "MaxDataServiceVersion": "3.0;NetFx",
            "User-Agent": "PostCache/1.0",
        }
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str, params: Optional[Dict[str, str]]) -> str:
        url = f"{self.credentials.table_endpoint}/{path}"
        query = []
        if params:
            query.extend(f"{k}={quote(str(v), safe='')}" for k, v in params.items())
        if self.credentials.sas_token:
            query.append(self.credentials.sas_token)
        return f"{url}?{'&'.join(query)}" if query else url

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        accept: str = JSON_NO_METADATA,
        extra_headers: Optional[Dict[str, str]] = None,
        allowed: Sequence[int] = (),
    ) -> _Response:
        """Send a request, retrying transient failures with exponential backoff.

        Statuses in ``allowed`` are returned to the caller instead of raising.

        Raises:
            StoreUnavailableError: On connection failure or an unexpected status
        """
        await self._init_session()
        url = self._url(path, params)
        last_error = None

        for attempt in range(1, self.config.max_retries + 1):
            headers = self._build_headers(accept, extra_headers)
            if json_body is not None:
                headers["Content-Type"] = "application/json"
            self._sign(headers, path)

            start_time = time.time()
            try:
                async with self.session.request(
                    method, url, headers=headers, json=json_body
                ) as response:
                    status = response.status
                    text = await response.text()
                    response_headers = response.headers
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                metrics.increment_counter(
                    "table_requests_total", {"operation": operation, "status": "error"}
                )
                logger.warning(
                    "table_request_failed", operation=operation, attempt=attempt, error=str(e)
                )
                last_error = StoreUnavailableError(
                    f"Table request '{operation}' failed: {e}",
                    details={"operation": operation, "table": self.table_name},
                )
            else:
                metrics.observe_histogram(
                    "table_request_duration_seconds",
                    time.time() - start_time,
                    {"operation": operation},
                )
                if 200 <= status < 300 or status in allowed:
                    metrics.increment_counter(
                        "table_requests_total",
                        {"operation": operation, "status": str(status)},
                    )
                    body = json.loads(text) if text and status < 300 else None
                    return _Response(status, response_headers, body, attempt)

                metrics.increment_counter(
                    "table_requests_total", {"operation": operation, "status": str(status)}
                )
                last_error = StoreUnavailableError(
                    f"Table request '{operation}' returned {status}: {text[:500]}",
                    details={"operation": operation, "table": self.table_name, "status": status},
                )
                if status not in RETRYABLE_STATUSES:
                    logger.error(
                        "table_request_rejected", operation=operation, status=status, body=text[:500]
                    )
                    raise last_error
                logger.warning(
                    "table_request_retryable", operation=operation, attempt=attempt, status=status
                )

            if attempt < self.config.max_retries:
                await asyncio.sleep(2**attempt)  # Exponential backoff

        raise last_error

    async def create_table_if_not_exists(self) -> bool:
        """Create the table unless it already exists.

        Returns:
            True if the table was created, False if it already existed
        """
        response = await self._request(
            "create_table",
            "POST",
            "Tables",
            json_body={"TableName": self.table_name},
            extra_headers={"Prefer": "return-no-content"},
            allowed=(409,),
        )
        if response.status == 409:
            logger.debug("table_exists", table=self.table_name)
            return False
        logger.info("table_created", table=self.table_name)
        return True

    async def query_entities(
        self, continuation: Optional[ContinuationToken] = None
    ) -> QuerySegment:
        """Fetch one segment of an unfiltered query over the table.

        Args:
            continuation: Token returned by the previous segment, if any

        Returns:
            The entities of this segment and the token for the next one
        """
        params = continuation.as_params() if continuation else None
        response = await self._request(
            "query", "GET", f"{self.table_name}()", params=params, accept=JSON_MINIMAL_METADATA
        )
        raw_entities = (response.body or {}).get("value", [])
        return QuerySegment(
            entities=[decode_entity(raw) for raw in raw_entities],
            continuation=ContinuationToken.from_headers(response.headers),
        )

    def _entity_path(self, partition_key: str, row_key: str) -> str:
        return (
            f"{self.table_name}(PartitionKey='{_quote_key(partition_key)}',"
            f"RowKey='{_quote_key(row_key)}')"
        )

    async def upsert_entity(self, entity: Dict[str, Any]) -> None:
        """Insert the entity, replacing any existing entity with the same keys."""
        path = self._entity_path(entity["PartitionKey"], entity["RowKey"])
        await self._request("upsert", "PUT", path, json_body=encode_entity(entity))

    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        """Delete an entity by key.

        A 404 on a retried attempt counts as success, since the earlier
        attempt may have deleted the entity before its response was lost.

        Raises:
            RecordNotFoundError: If no entity has these keys
        """
        path = self._entity_path(partition_key, row_key)
        response = await self._request(
            "delete", "DELETE", path, extra_headers={"If-Match": "*"}, allowed=(404,)
        )
        if response.status == 404 and response.attempt > 1:
            logger.info(
                "delete_already_applied",
                table=self.table_name,
                row_key=row_key,
                attempt=response.attempt,
            )
            return
        if response.status == 404:
            raise RecordNotFoundError(
                f"No entity with PartitionKey={partition_key!r} RowKey={row_key!r}",
                details={"table": self.table_name},
            )

    async def close(self):
        """Close the client session."""
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None
