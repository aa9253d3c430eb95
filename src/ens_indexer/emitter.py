import logging
from typing import Any

from ens_indexer.events import NewOwnerPayload
from ens_indexer.events import RegistryEventData
from ens_indexer.models import DomainEvent
from ens_indexer.models import NewOwner
from ens_indexer.models import NewResolver
from ens_indexer.models import NewTTL
from ens_indexer.models import Transfer
from ens_indexer.store import EntityStore

_logger = logging.getLogger(__name__)


class EventEmitter:
    """Appends immutable audit records, one per applied registry log"""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def new_owner(self, data: RegistryEventData, payload: NewOwnerPayload, subnode: str) -> None:
        await self._append(
            NewOwner,
            data,
            domain=subnode,
            parent_domain=payload.node,
            owner=payload.owner,
        )

    async def transfer(self, data: RegistryEventData, node: str, owner: str) -> None:
        await self._append(Transfer, data, domain=node, owner=owner)

    async def new_resolver(self, data: RegistryEventData, node: str, resolver: str) -> None:
        await self._append(NewResolver, data, domain=node, resolver=resolver)

    async def new_ttl(self, data: RegistryEventData, node: str, ttl: int) -> None:
        await self._append(NewTTL, data, domain=node, ttl=ttl)

    async def _append(self, model: type[DomainEvent], data: RegistryEventData, **fields: Any) -> None:
        _, created = await self._store.get_or_create(
            model,
            data.event_id,
            block_number=data.level,
            transaction_id=data.transaction_hash,
            **fields,
        )
        if not created:
            _logger.debug('%s(%s) is already recorded', model.__name__, data.event_id)
