"""Domain tree maintenance.

Every registry log ends up here. Domains are created lazily the first time a log refers to them,
linked to their parents, named once both the label and the parent's name are known, and excised
from parent's `subdomain_count` when they become empty.

The cascade walks the tree upwards and writes every ancestor it touches, while the domain itself
is written only if its name is inside the indexed namespace. Counts stay correct regardless of
which part of the tree is queryable.
"""

import logging
from collections.abc import Iterable

from ens_indexer.codec import derive_subnode
from ens_indexer.codec import is_valid_label
from ens_indexer.codec import labelhash
from ens_indexer.codec import namehash
from ens_indexer.const import EMPTY_ADDRESS
from ens_indexer.const import LABEL_SEPARATOR
from ens_indexer.const import ROOT_NODE
from ens_indexer.emitter import EventEmitter
from ens_indexer.events import NewOwnerPayload
from ens_indexer.events import NewResolverPayload
from ens_indexer.events import NewTTLPayload
from ens_indexer.events import RegistryEventData
from ens_indexer.events import TransferPayload
from ens_indexer.labels import LabelOracle
from ens_indexer.models import Account
from ens_indexer.models import Domain
from ens_indexer.models import Resolver
from ens_indexer.store import EntityStore

_logger = logging.getLogger(__name__)


def is_empty(domain: Domain) -> bool:
    """Domain has no owner, no resolver and no tracked children"""
    return (
        domain.owner == EMPTY_ADDRESS
        and domain.resolver_address in (None, EMPTY_ADDRESS)
        and domain.subdomain_count == 0
    )


class NamespaceFilter:
    """Decides which domains are persisted by their composed name"""

    def __init__(self, suffixes: Iterable[str] = ()) -> None:
        self._suffixes = tuple(s.strip(LABEL_SEPARATOR).lower() for s in suffixes if s)

    def __repr__(self) -> str:
        return f'NamespaceFilter({self._suffixes!r})'

    def matches(self, name: str | None) -> bool:
        if name is None:
            return False
        if not self._suffixes:
            return True
        return any(name == s or name.endswith(LABEL_SEPARATOR + s) for s in self._suffixes)


class DomainTree:
    def __init__(
        self,
        store: EntityStore,
        emitter: EventEmitter,
        oracle: LabelOracle,
        namespace: NamespaceFilter,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._oracle = oracle
        self._namespace = namespace

    async def bootstrap(self, reserved_name: str | None = None) -> None:
        """Seed the zero node and the reserved node; must be called before processing any events"""
        _, created = await self._store.get_or_create(
            Domain,
            ROOT_NODE,
            owner=EMPTY_ADDRESS,
            is_migrated=True,
            subdomain_count=0,
            created_at=0,
        )
        if created:
            _logger.info('Root node created')

        if not reserved_name:
            return

        label, _, parent_name = reserved_name.partition(LABEL_SEPARATOR)
        node = namehash(reserved_name)
        _, created = await self._store.get_or_create(
            Domain,
            node,
            name=reserved_name,
            label_name=label,
            labelhash=labelhash(label),
            parent=namehash(parent_name),
            owner=EMPTY_ADDRESS,
            is_migrated=True,
            subdomain_count=0,
            created_at=0,
        )
        if created:
            _logger.info('Reserved node `%s` created: %s', reserved_name, node)

    async def get_domain(self, node: str) -> Domain | None:
        return await self._store.load(Domain, node)

    async def apply_new_owner(
        self,
        data: RegistryEventData,
        payload: NewOwnerPayload,
        migrated: bool,
    ) -> Domain:
        await self._store.get_or_create(Account, payload.owner)

        subnode = derive_subnode(payload.node, payload.label)
        domain = await self.get_domain(subnode)
        parent = await self.get_domain(payload.node)

        if domain is None:
            domain = Domain(
                id=subnode,
                created_at=data.timestamp,
                subdomain_count=0,
            )

        if domain.parent is None and parent is not None:
            parent.subdomain_count += 1
            await self._store.save(parent)
            domain.parent = parent.id
            domain.is_tracked = True

        # NOTE: Names are computed once; repeated and legacy logs for a named domain change nothing
        if domain.name is not None:
            _logger.debug('`%s` is already named, skipping', domain.name)
            return domain

        label = self._oracle.name_by_hash(payload.label)
        if label is not None and not is_valid_label(label):
            label = None

        if label is not None:
            domain.label_name = label
        else:
            label = f'[{payload.label[2:]}]'

        if payload.node == ROOT_NODE:
            domain.name = label
        elif parent is not None and parent.name is not None:
            domain.name = f'{label}{LABEL_SEPARATOR}{parent.name}'

        domain.owner = payload.owner
        domain.parent = payload.node
        domain.labelhash = payload.label
        domain.is_migrated = migrated
        await self.cascading_save(domain)

        if self._namespace.matches(domain.name):
            await self._emitter.new_owner(data, payload, subnode)
        return domain

    async def apply_transfer(self, data: RegistryEventData, payload: TransferPayload) -> Domain | None:
        await self._store.get_or_create(Account, payload.owner)

        domain = await self.get_domain(payload.node)
        if domain is None:
            return None

        domain.owner = payload.owner
        await self.cascading_save(domain)
        await self._emitter.transfer(data, payload.node, payload.owner)
        return domain

    async def apply_new_resolver(self, data: RegistryEventData, payload: NewResolverPayload) -> Domain | None:
        # NOTE: No resolver entity for the zero address
        if payload.resolver == EMPTY_ADDRESS:
            resolver_id = None
        else:
            resolver_id = Resolver.make_id(payload.resolver, payload.node)

        domain = await self.get_domain(payload.node)
        if domain is not None:
            domain.resolver = resolver_id

            if resolver_id is None:
                domain.resolved_address = None
            else:
                resolver = await self._store.load(Resolver, resolver_id)
                if resolver is None:
                    resolver = Resolver(
                        id=resolver_id,
                        domain=payload.node,
                        address=payload.resolver,
                    )
                    await self._store.save(resolver)
                    domain.resolved_address = None
                else:
                    domain.resolved_address = resolver.addr

            await self.cascading_save(domain)

        await self._emitter.new_resolver(data, payload.node, resolver_id or EMPTY_ADDRESS)
        return domain

    async def apply_new_ttl(self, data: RegistryEventData, payload: NewTTLPayload) -> Domain | None:
        domain = await self.get_domain(payload.node)
        # NOTE: Owner and resolver could be emptied in the same transaction that sets TTL
        if domain is not None:
            domain.ttl = payload.ttl
            await self.cascading_save(domain)

        await self._emitter.new_ttl(data, payload.node, payload.ttl)
        return domain

    async def cascading_save(self, domain: Domain) -> None:
        """Excise empty domains from their ancestors' counts, then save the domain if it's indexed"""
        current = domain
        while is_empty(current) and current.is_tracked and current.parent is not None:
            parent = await self.get_domain(current.parent)
            if parent is None:
                _logger.warning('Cascade halted at `%s`: parent `%s` is missing', current.id, current.parent)
                break

            parent.subdomain_count -= 1
            current.is_tracked = False
            await self._store.save(parent)
            if current is not domain:
                await self._store.save(current)
            current = parent

        if self._namespace.matches(domain.name):
            await self._store.save(domain)
        else:
            _logger.debug('`%s` (%s) is outside of indexed namespace', domain.name, domain.id)
