"""Caller identity boundary for visibility decisions."""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

IdentityProvider = Callable[[], bool]

_privileged: ContextVar[bool] = ContextVar("post_cache_privileged", default=False)


def is_privileged() -> bool:
    """Return whether the current request comes from an authenticated actor."""
    return _privileged.get()


def set_privileged(value: bool):
    """Mark the current context as privileged or not.

    Returns:
        Token for restoring the previous value with ``reset_privileged``
    """
    return _privileged.set(value)


def reset_privileged(token) -> None:
    _privileged.reset(token)


@contextmanager
def privileged_caller(value: bool = True) -> Iterator[None]:
    """Run a block as an authenticated (or explicitly anonymous) caller."""
    token = set_privileged(value)
    try:
        yield
    finally:
        reset_privileged(token)
