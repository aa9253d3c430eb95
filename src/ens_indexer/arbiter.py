import logging
from typing import Any

from ens_indexer.codec import derive_subnode
from ens_indexer.const import ROOT_NODE
from ens_indexer.events import NewOwnerPayload
from ens_indexer.events import NewResolverPayload
from ens_indexer.events import RegistryEvent
from ens_indexer.events import RegistrySource
from ens_indexer.tree import DomainTree

_logger = logging.getLogger(__name__)


class MigrationArbiter:
    """Decides whether a registry log should be applied.

    Logs from the current registry are always applied. Logs from the legacy registry are applied
    only to domains the current registry hasn't taken over yet.
    """

    def __init__(self, tree: DomainTree) -> None:
        self._tree = tree

    async def should_apply(self, event: RegistryEvent[Any]) -> bool:
        if event.source is RegistrySource.current:
            return True

        payload = event.payload
        if isinstance(payload, NewOwnerPayload):
            subnode = derive_subnode(payload.node, payload.label)
            domain = await self._tree.get_domain(subnode)
            return domain is None or not domain.is_migrated

        domain = await self._tree.get_domain(payload.node)
        if domain is None:
            _logger.debug('Legacy `%s` for unknown node `%s`', event.kind, payload.node)
            return False
        if isinstance(payload, NewResolverPayload) and payload.node == ROOT_NODE:
            return True
        return not domain.is_migrated
