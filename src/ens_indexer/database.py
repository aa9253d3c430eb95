import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg  # type: ignore[import-untyped]
from tortoise import Tortoise
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.connection import connections

from ens_indexer.exceptions import ConfigurationError

_logger = logging.getLogger(__name__)

MODELS_MODULE = 'ens_indexer.models'


def get_connection() -> BaseDBAsyncClient:
    return connections.get('default')


async def _connect(url: str, attempts: int) -> None:
    """Wait for the database to accept connections, at most `attempts` seconds"""
    attempt = 1
    while True:
        try:
            await Tortoise.init(db_url=url, modules={'models': [MODELS_MODULE]})
            await get_connection().execute_query('SELECT 1')
            return
        except asyncpg.exceptions.InvalidPasswordError as e:
            raise ConfigurationError(f'{e.__class__.__name__}: {e}') from e
        except (OSError, asyncpg.exceptions.CannotConnectNowError) as e:
            if attempt >= attempts:
                raise
            _logger.warning('Database is not ready (%s), attempt %s/%s', e, attempt, attempts)
            attempt += 1
            await asyncio.sleep(1)


@asynccontextmanager
async def tortoise_wrapper(
    url: str,
    timeout: int = 60,
    generate_schemas: bool = True,
) -> AsyncIterator[None]:
    """Open connection with indexer models registered, close it when done"""
    if ':memory:' in url:
        _logger.info('Using in-memory database; data will be lost on exit')

    try:
        await _connect(url, max(timeout, 1))
        if generate_schemas:
            # NOTE: Existing tables are kept
            await Tortoise.generate_schemas(safe=True)
        yield
    finally:
        await Tortoise.close_connections()
