"""Inbound registry events.

Both registries emit the same four logs. Every event is tagged with the registry it came from, and
the migration arbiter decides what to do with it based on that tag.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated
from typing import Any
from typing import Generic
from typing import TypeVar

import orjson
from pydantic import AfterValidator
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from ens_indexer.codec import bytes_to_hex
from ens_indexer.codec import hex_to_bytes
from ens_indexer.codec import to_bytes32
from ens_indexer.exceptions import MalformedInputError

_logger = logging.getLogger(__name__)

ADDRESS_LENGTH = 20
UINT64_MAX = 2**64 - 1


def _bytes32(value: str) -> str:
    return bytes_to_hex(to_bytes32(value))


def _address(value: str) -> str:
    raw = hex_to_bytes(value)
    if len(raw) != ADDRESS_LENGTH:
        raise MalformedInputError(f'Expected {ADDRESS_LENGTH} bytes address, got {len(raw)}', value)
    return bytes_to_hex(raw)


Bytes32 = Annotated[str, AfterValidator(_bytes32)]
Address = Annotated[str, AfterValidator(_address)]


class RegistrySource(Enum):
    current = 'current'
    legacy = 'legacy'


@dataclass(frozen=True)
class RegistryEventData:
    level: int
    log_index: int
    timestamp: int = 0
    transaction_hash: str | None = None

    @property
    def event_id(self) -> str:
        return f'{self.level}-{self.log_index}'

    @property
    def position(self) -> tuple[int, int]:
        return self.level, self.log_index


class NewOwnerPayload(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    node: Bytes32
    label: Bytes32
    owner: Address


class TransferPayload(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    node: Bytes32
    owner: Address


class NewResolverPayload(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    node: Bytes32
    resolver: Address


class NewTTLPayload(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    node: Bytes32
    ttl: int = Field(ge=0, le=UINT64_MAX)


PayloadT = TypeVar('PayloadT', bound=BaseModel)

payload_types: dict[str, type[BaseModel]] = {
    'NewOwner': NewOwnerPayload,
    'Transfer': TransferPayload,
    'NewResolver': NewResolverPayload,
    'NewTTL': NewTTLPayload,
}


@dataclass(frozen=True)
class RegistryEvent(Generic[PayloadT]):
    source: RegistrySource
    data: RegistryEventData
    payload: PayloadT

    @property
    def kind(self) -> str:
        return self.payload.__class__.__name__.removesuffix('Payload')


def _transaction_hash(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedInputError('Transaction hash must be a hex string', str(value))
    return _bytes32(value)


def decode_event(event_json: Any) -> RegistryEvent[Any]:
    """Build event from JSON object: envelope fields plus camelCase payload fields"""
    if not isinstance(event_json, dict):
        raise MalformedInputError(f'Expected JSON object, got {type(event_json).__name__}', str(event_json))

    event_json = dict(event_json)
    try:
        kind = event_json.pop('kind')
        source = RegistrySource(event_json.pop('source'))
        data = RegistryEventData(
            level=int(event_json.pop('blockNumber')),
            log_index=int(event_json.pop('logIndex')),
            timestamp=int(event_json.pop('timestamp', 0)),
            transaction_hash=_transaction_hash(event_json.pop('transactionHash', None)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedInputError(f'Invalid event envelope: {e!r}', str(event_json)) from e

    if not isinstance(kind, str) or kind not in payload_types:
        raise MalformedInputError(f'Unknown event kind `{kind}`', str(kind))
    try:
        payload = payload_types[kind].model_validate(event_json)
    except ValidationError as e:
        raise MalformedInputError(f'Invalid `{kind}` payload: {e.errors()[0]["msg"]}', str(event_json)) from e

    return RegistryEvent(source=source, data=data, payload=payload)


def iter_events_file(path: Path) -> Iterator[RegistryEvent[Any]]:
    """Read JSON lines file; blank lines are ignored, malformed ones are logged and skipped"""
    with path.open('rb') as file:
        for lineno, line in enumerate(file, start=1):
            if not line.strip():
                continue
            try:
                event = decode_event(orjson.loads(line))
            except orjson.JSONDecodeError as e:
                _logger.warning('%s:%s: invalid JSON, skipping: %s', path, lineno, e)
                continue
            except MalformedInputError as e:
                _logger.warning('%s:%s: malformed event, skipping: %s', path, lineno, e.msg)
                continue
            yield event
