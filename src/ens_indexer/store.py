"""Entity store adapter.

The only place where the indexer touches the database. Everything above this module works with
plain `load`/`save` calls; writes made while processing a single event are grouped into one
transaction by the caller.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from typing import TypeVar

from tortoise.exceptions import BaseORMException
from tortoise.models import Model
from tortoise.transactions import in_transaction

from ens_indexer.exceptions import FrameworkException
from ens_indexer.exceptions import StoreWriteError

ModelT = TypeVar('ModelT', bound=Model)

_logger = logging.getLogger(__name__)


class EntityStore:
    def __init__(self) -> None:
        self._in_transaction = False

    async def load(self, model: type[ModelT], pk: str) -> ModelT | None:
        return await model.get_or_none(id=pk)

    async def save(self, entity: Model) -> None:
        _logger.debug('Saving %s(%s)', entity.__class__.__name__, entity.pk)
        try:
            await entity.save()
        except BaseORMException as e:
            raise StoreWriteError(entity.__class__.__name__, str(entity.pk), str(e)) from e

    async def get_or_create(self, model: type[ModelT], pk: str, **defaults: Any) -> tuple[ModelT, bool]:
        entity = await self.load(model, pk)
        if entity is not None:
            return entity, False

        entity = model(id=pk, **defaults)
        await self.save(entity)
        return entity, True

    @asynccontextmanager
    async def in_transaction(self) -> AsyncIterator[None]:
        """Apply all writes inside wrapped block atomically"""
        if self._in_transaction:
            raise FrameworkException('Transaction is already started')

        self._in_transaction = True
        try:
            async with in_transaction():
                yield
        finally:
            self._in_transaction = False
