"""Command line interface for the post cache."""
import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, Optional

import click
import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

from post_cache.cache import PostCache
from post_cache.config import DEFAULT_CONNECTION_STRING, DEFAULT_TABLE_NAME, TableStorageConfig
from post_cache.errors import BaseError
from post_cache.identity import privileged_caller
from post_cache.metrics import start_metrics_server
from post_cache.storage import StoreGateway

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    """Configure structlog to emit JSON lines at the given level."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def async_command(f):
    """Decorator to run async Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


async def _with_cache(
    config: TableStorageConfig, admin: bool, action: Callable[[PostCache], Awaitable[None]]
) -> None:
    """Build and initialize a cache, then run ``action`` against it."""
    try:
        async with StoreGateway.from_config(config) as gateway:
            cache = PostCache(gateway)
            await cache.initialize()
            with privileged_caller(admin):
                await action(cache)
    except BaseError as e:
        logger.error("command_failed", **e.to_dict())
        raise click.ClickException(e.message)


@click.group()
@click.option(
    "--connection-string",
    envvar="AZURE_STORAGE_CONNECTION_STRING",
    default=DEFAULT_CONNECTION_STRING,
    show_default=True,
    help="Azure storage connection string",
)
@click.option(
    "--table-name",
    envvar="AZURE_TABLE_NAME",
    default=DEFAULT_TABLE_NAME,
    show_default=True,
    help="Table holding the posts",
)
@click.option(
    "--max-retries",
    envvar="TABLE_MAX_RETRIES",
    type=int,
    default=None,
    help="Attempts per table request",
)
@click.option(
    "--request-timeout",
    envvar="TABLE_REQUEST_TIMEOUT",
    type=float,
    default=None,
    help="Seconds before a table request times out",
)
@click.option("--log-level", default="info", envvar="LOG_LEVEL", help="Log level")
@click.option("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")
@click.pass_context
def cli(
    ctx,
    connection_string: str,
    table_name: str,
    max_retries: Optional[int],
    request_timeout: Optional[float],
    log_level: str,
    metrics_port: Optional[int],
):
    """Inspect the post cache backed by Azure Table storage."""
    configure_logging(log_level)
    if metrics_port:
        start_metrics_server(metrics_port)
    settings = {"connection_string": connection_string, "table_name": table_name}
    if max_retries is not None:
        settings["max_retries"] = max_retries
    if request_timeout is not None:
        settings["request_timeout"] = request_timeout
    try:
        ctx.obj = TableStorageConfig(**settings)
    except ValidationError as e:
        logger.error("invalid_configuration", error_count=e.error_count())
        raise click.UsageError(str(e))


@cli.command()
@click.pass_obj
@async_command
async def warm(config: TableStorageConfig):
    """Load every post and report what the cache holds."""

    async def report(cache: PostCache) -> None:
        categories = await cache.list_categories()
        click.echo(f"Loaded {len(cache)} posts in {len(categories)} categories")

    await _with_cache(config, True, report)


@cli.command(name="list")
@click.option("--count", default=10, show_default=True, type=click.IntRange(min=0))
@click.option("--skip", default=0, show_default=True, type=click.IntRange(min=0))
@click.option("--category", default=None, help="Only list posts in this category")
@click.option("--admin", is_flag=True, help="List as an authenticated author")
@click.pass_obj
@async_command
async def list_posts(
    config: TableStorageConfig, count: int, skip: int, category: Optional[str], admin: bool
):
    """List posts newest first."""

    async def show(cache: PostCache) -> None:
        if category:
            posts = (await cache.list_by_category(category))[skip : skip + count]
        else:
            posts = await cache.list_posts(count, skip)
        for post in posts:
            status = "" if post.is_published else " [draft]"
            click.echo(f"{post.pub_date:%Y-%m-%d}  {post.slug}  {post.title}{status}")

    await _with_cache(config, admin, show)


@cli.command()
@click.option("--admin", is_flag=True, help="Include categories of unpublished posts")
@click.pass_obj
@async_command
async def categories(config: TableStorageConfig, admin: bool):
    """List the distinct categories of visible posts."""

    async def show(cache: PostCache) -> None:
        for category in sorted(await cache.list_categories()):
            click.echo(category)

    await _with_cache(config, admin, show)


def main():
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
