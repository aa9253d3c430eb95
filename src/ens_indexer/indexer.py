import logging
from collections.abc import AsyncIterable
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ens_indexer.arbiter import MigrationArbiter
from ens_indexer.config import IndexerConfig
from ens_indexer.emitter import EventEmitter
from ens_indexer.events import NewOwnerPayload
from ens_indexer.events import NewResolverPayload
from ens_indexer.events import NewTTLPayload
from ens_indexer.events import RegistryEvent
from ens_indexer.events import RegistryEventData
from ens_indexer.events import RegistrySource
from ens_indexer.events import TransferPayload
from ens_indexer.exceptions import FrameworkException
from ens_indexer.exceptions import MalformedInputError
from ens_indexer.exceptions import OutOfOrderEventError
from ens_indexer.labels import LabelOracle
from ens_indexer.store import EntityStore
from ens_indexer.tree import DomainTree
from ens_indexer.tree import NamespaceFilter

_logger = logging.getLogger(__name__)


@dataclass
class IndexerStats:
    applied: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.skipped


class RegistryIndexer:
    """Applies registry logs to the domain tree one by one, in block and log order"""

    def __init__(
        self,
        store: EntityStore,
        tree: DomainTree,
        arbiter: MigrationArbiter,
        reserved_name: str | None = None,
    ) -> None:
        self._store = store
        self._tree = tree
        self._arbiter = arbiter
        self._reserved_name = reserved_name
        self._last_event: RegistryEventData | None = None

    @classmethod
    def create(
        cls,
        oracle: LabelOracle,
        namespace: NamespaceFilter,
        reserved_name: str | None = None,
    ) -> 'RegistryIndexer':
        store = EntityStore()
        tree = DomainTree(
            store=store,
            emitter=EventEmitter(store),
            oracle=oracle,
            namespace=namespace,
        )
        return cls(
            store=store,
            tree=tree,
            arbiter=MigrationArbiter(tree),
            reserved_name=reserved_name,
        )

    @classmethod
    def from_config(cls, config: IndexerConfig) -> 'RegistryIndexer':
        return cls.create(
            oracle=config.labels.get_rainbow_table(),
            namespace=config.namespace.get_filter(),
            reserved_name=config.namespace.reserved_name,
        )

    @property
    def tree(self) -> DomainTree:
        return self._tree

    async def bootstrap(self) -> None:
        async with self._store.in_transaction():
            await self._tree.bootstrap(self._reserved_name)

    async def process(self, event: RegistryEvent[Any]) -> bool:
        """Apply a single event atomically; return whether it was applied"""
        self._check_order(event.data)

        try:
            async with self._store.in_transaction():
                if await self._arbiter.should_apply(event):
                    await self._apply(event)
                    applied = True
                else:
                    applied = False
        except MalformedInputError as e:
            _logger.warning('Dropping malformed %s `%s`: %s', event.kind, event.data.event_id, e.msg)
            applied = False

        self._last_event = event.data
        if applied:
            _logger.debug('Applied %s %s `%s`', event.source.value, event.kind, event.data.event_id)
        else:
            _logger.debug('Skipped %s %s `%s`', event.source.value, event.kind, event.data.event_id)
        return applied

    async def run(self, events: Iterable[RegistryEvent[Any]] | AsyncIterable[RegistryEvent[Any]]) -> IndexerStats:
        stats = IndexerStats()

        async def _process(event: RegistryEvent[Any]) -> None:
            if await self.process(event):
                stats.applied += 1
            else:
                stats.skipped += 1

        if isinstance(events, AsyncIterable):
            async for event in events:
                await _process(event)
        else:
            for event in events:
                await _process(event)

        _logger.info('%s events processed: %s applied, %s skipped', stats.total, stats.applied, stats.skipped)
        return stats

    def _check_order(self, data: RegistryEventData) -> None:
        if self._last_event is None:
            return
        # NOTE: Re-delivery of the last event is allowed, handlers are idempotent for it
        if data.position < self._last_event.position:
            raise OutOfOrderEventError(data.event_id, self._last_event.event_id)

    async def _apply(self, event: RegistryEvent[Any]) -> None:
        payload, data = event.payload, event.data

        if isinstance(payload, NewOwnerPayload):
            migrated = event.source is RegistrySource.current
            await self._tree.apply_new_owner(data, payload, migrated)
        elif isinstance(payload, TransferPayload):
            await self._tree.apply_transfer(data, payload)
        elif isinstance(payload, NewResolverPayload):
            await self._tree.apply_new_resolver(data, payload)
        elif isinstance(payload, NewTTLPayload):
            await self._tree.apply_new_ttl(data, payload)
        else:
            raise FrameworkException(f'Unknown payload type: {payload.__class__.__name__}')
