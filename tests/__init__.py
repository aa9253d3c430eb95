from collections.abc import AsyncIterator
from collections.abc import Iterable
from contextlib import asynccontextmanager

from ens_indexer.codec import labelhash
from ens_indexer.const import EMPTY_ADDRESS
from ens_indexer.database import tortoise_wrapper
from ens_indexer.events import NewOwnerPayload
from ens_indexer.events import NewResolverPayload
from ens_indexer.events import NewTTLPayload
from ens_indexer.events import RegistryEvent
from ens_indexer.events import RegistryEventData
from ens_indexer.events import RegistrySource
from ens_indexer.events import TransferPayload
from ens_indexer.indexer import RegistryIndexer
from ens_indexer.labels import RainbowTable
from ens_indexer.models import Domain
from ens_indexer.tree import NamespaceFilter

ALICE = '0x' + 'a1' * 20
BOB = '0x' + 'b0' * 20
RESOLVER = '0x' + '4e' * 20

# NOTE: `namehash('eth')`
ETH_NODE = '0x93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae'

TIMESTAMP = 1_580_000_000
KNOWN_LABELS = ('eth', 'tkn', 'foo', 'bar')


@asynccontextmanager
async def indexer_wrapper(
    suffixes: Iterable[str] = ('tkn.eth',),
    labels: Iterable[str] = KNOWN_LABELS,
    reserved_name: str | None = 'eth',
) -> AsyncIterator[RegistryIndexer]:
    async with tortoise_wrapper('sqlite://:memory:', timeout=1):
        indexer = RegistryIndexer.create(
            oracle=RainbowTable(labels),
            namespace=NamespaceFilter(suffixes),
            reserved_name=reserved_name,
        )
        await indexer.bootstrap()
        yield indexer


def _labelhash(label: str) -> str:
    return label if label.startswith('0x') else labelhash(label)


class EventFactory:
    """Builds registry events in increasing block and log order"""

    def __init__(self, level: int = 1) -> None:
        self.level = level
        self.log_index = -1

    def next_block(self) -> None:
        self.level += 1
        self.log_index = -1

    def _data(self) -> RegistryEventData:
        self.log_index += 1
        return RegistryEventData(
            level=self.level,
            log_index=self.log_index,
            timestamp=TIMESTAMP + self.level,
            transaction_hash=f'0x{self.level:064x}',
        )

    def new_owner(
        self,
        node: str,
        label: str,
        owner: str = ALICE,
        source: RegistrySource = RegistrySource.current,
    ) -> RegistryEvent[NewOwnerPayload]:
        payload = NewOwnerPayload(node=node, label=_labelhash(label), owner=owner)
        return RegistryEvent(source=source, data=self._data(), payload=payload)

    def transfer(
        self,
        node: str,
        owner: str = EMPTY_ADDRESS,
        source: RegistrySource = RegistrySource.current,
    ) -> RegistryEvent[TransferPayload]:
        payload = TransferPayload(node=node, owner=owner)
        return RegistryEvent(source=source, data=self._data(), payload=payload)

    def new_resolver(
        self,
        node: str,
        resolver: str = RESOLVER,
        source: RegistrySource = RegistrySource.current,
    ) -> RegistryEvent[NewResolverPayload]:
        payload = NewResolverPayload(node=node, resolver=resolver)
        return RegistryEvent(source=source, data=self._data(), payload=payload)

    def new_ttl(
        self,
        node: str,
        ttl: int,
        source: RegistrySource = RegistrySource.current,
    ) -> RegistryEvent[NewTTLPayload]:
        payload = NewTTLPayload(node=node, ttl=ttl)
        return RegistryEvent(source=source, data=self._data(), payload=payload)


async def get_domain(node: str) -> Domain:
    domain = await Domain.get_or_none(id=node)
    assert domain is not None, f'Domain `{node}` is not persisted'
    return domain


async def assert_subdomain_counts() -> None:
    """Every persisted domain counts exactly its tracked children"""
    for domain in await Domain.all():
        tracked = await Domain.filter(parent=domain.id, is_tracked=True).count()
        assert domain.subdomain_count == tracked, domain.name
