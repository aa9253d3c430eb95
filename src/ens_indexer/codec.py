"""Node identifier derivation and hex/byte conversions.

All helpers are pure. Anything that can't be decoded raises `MalformedInputError`, which makes the
indexer drop the event before any state is touched.
"""

import logging

from eth_utils import keccak

from ens_indexer.const import LABEL_SEPARATOR
from ens_indexer.exceptions import MalformedInputError

_logger = logging.getLogger(__name__)

BYTES32_LENGTH = 32


def hex_to_bytes(value: str) -> bytes:
    """Decode hex string with optional `0x` prefix"""
    digits = value[2:] if value.startswith(('0x', '0X')) else value
    if len(digits) % 2:
        raise MalformedInputError('Hex string must have an even number of characters', value)
    try:
        return bytes.fromhex(digits)
    except ValueError as e:
        raise MalformedInputError(f'Invalid hex string: {e}', value) from e


def bytes_to_hex(value: bytes) -> str:
    return '0x' + value.hex()


def to_bytes32(value: str | bytes) -> bytes:
    result = hex_to_bytes(value) if isinstance(value, str) else value
    if len(result) != BYTES32_LENGTH:
        raise MalformedInputError(f'Expected {BYTES32_LENGTH} bytes, got {len(result)}', str(value))
    return result


def derive_subnode(node: str | bytes, label: str | bytes) -> str:
    """Compute child node id: `keccak256(node ++ label)`"""
    return bytes_to_hex(keccak(to_bytes32(node) + to_bytes32(label)))


def labelhash(label: str) -> str:
    return bytes_to_hex(keccak(label.encode()))


def namehash(name: str) -> str:
    node = b'\x00' * BYTES32_LENGTH
    if name:
        for label in reversed(name.split(LABEL_SEPARATOR)):
            node = keccak(node + keccak(label.encode()))
    return bytes_to_hex(node)


def is_valid_label(label: str) -> bool:
    if '\x00' in label:
        _logger.warning('Invalid label `%s` contained null byte. Skipping.', label)
        return False
    if LABEL_SEPARATOR in label:
        _logger.warning("Invalid label `%s` contained separator char '.'. Skipping.", label)
        return False
    return True
