from tortoise import fields
from tortoise.models import Model

from ens_indexer.const import EMPTY_ADDRESS
from ens_indexer.const import RESOLVER_ID_SEPARATOR

# NOTE: Node ids, addresses and resolver ids are lowercase hex strings with `0x` prefix
NODE_LENGTH = 66
ADDRESS_LENGTH = 66
RESOLVER_ID_LENGTH = ADDRESS_LENGTH + 1 + NODE_LENGTH


class Account(Model):
    id = fields.CharField(max_length=ADDRESS_LENGTH, pk=True)

    class Meta:
        table = 'account'


class Domain(Model):
    id = fields.CharField(max_length=NODE_LENGTH, pk=True)
    name = fields.TextField(null=True)
    label_name = fields.TextField(null=True)
    labelhash = fields.CharField(max_length=NODE_LENGTH, null=True)
    # NOTE: Plain ids instead of foreign keys; referenced domain may be outside of indexed namespace
    parent = fields.CharField(max_length=NODE_LENGTH, null=True, index=True)
    subdomain_count = fields.IntField(default=0)
    # NOTE: Whether this domain is counted in parent's `subdomain_count`
    is_tracked = fields.BooleanField(default=False)
    resolver = fields.CharField(max_length=RESOLVER_ID_LENGTH, null=True)
    resolved_address = fields.CharField(max_length=ADDRESS_LENGTH, null=True)
    owner = fields.CharField(max_length=ADDRESS_LENGTH, default=EMPTY_ADDRESS, index=True)
    ttl = fields.DecimalField(max_digits=20, decimal_places=0, null=True)
    is_migrated = fields.BooleanField(default=False)
    created_at = fields.BigIntField(default=0)

    class Meta:
        table = 'domain'

    @property
    def resolver_address(self) -> str | None:
        if self.resolver is None:
            return None
        return self.resolver.split(RESOLVER_ID_SEPARATOR)[0]


class Resolver(Model):
    id = fields.CharField(max_length=RESOLVER_ID_LENGTH, pk=True)
    domain = fields.CharField(max_length=NODE_LENGTH, index=True)
    address = fields.CharField(max_length=ADDRESS_LENGTH)
    addr = fields.CharField(max_length=ADDRESS_LENGTH, null=True)

    class Meta:
        table = 'resolver'

    @staticmethod
    def make_id(address: str, node: str) -> str:
        return f'{address}{RESOLVER_ID_SEPARATOR}{node}'


class DomainEvent(Model):
    """Append-only record of a single registry log"""

    id = fields.CharField(max_length=64, pk=True)
    block_number = fields.BigIntField()
    transaction_id = fields.CharField(max_length=NODE_LENGTH, null=True)
    domain = fields.CharField(max_length=NODE_LENGTH, index=True)

    class Meta:
        abstract = True


class NewOwner(DomainEvent):
    parent_domain = fields.CharField(max_length=NODE_LENGTH)
    owner = fields.CharField(max_length=ADDRESS_LENGTH)

    class Meta:
        table = 'new_owner'


class Transfer(DomainEvent):
    owner = fields.CharField(max_length=ADDRESS_LENGTH)

    class Meta:
        table = 'transfer'


class NewResolver(DomainEvent):
    resolver = fields.CharField(max_length=RESOLVER_ID_LENGTH)

    class Meta:
        table = 'new_resolver'


class NewTTL(DomainEvent):
    ttl = fields.DecimalField(max_digits=20, decimal_places=0)

    class Meta:
        table = 'new_ttl'
