"""Tests for the caller identity boundary."""
import asyncio

import pytest

from post_cache.identity import is_privileged, privileged_caller


def test_default_is_anonymous():
    assert is_privileged() is False


def test_privileged_caller_restores_previous_value():
    with privileged_caller():
        assert is_privileged()
        with privileged_caller(False):
            assert not is_privileged()
        assert is_privileged()
    assert not is_privileged()


@pytest.mark.asyncio
async def test_privilege_is_scoped_per_task():
    seen = {}

    async def author():
        with privileged_caller():
            await asyncio.sleep(0)
            seen["author"] = is_privileged()

    async def reader():
        await asyncio.sleep(0)
        seen["reader"] = is_privileged()

    await asyncio.gather(author(), reader())

    assert seen == {"author": True, "reader": False}
