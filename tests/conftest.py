import pytest

from post_cache.storage.gateway import StoreGateway
from tests.fixtures.table_fixtures import NOW, FakeTableClient


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real storage settings out of the tests."""
    for name in (
        "AZURE_STORAGE_CONNECTION_STRING",
        "AZURE_TABLE_NAME",
        "TABLE_MAX_RETRIES",
        "TABLE_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_table():
    return FakeTableClient()


@pytest.fixture
def gateway(fake_table):
    return StoreGateway(fake_table)


@pytest.fixture
def clock():
    return lambda: NOW
