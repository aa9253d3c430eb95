from pytest import raises

from ens_indexer.codec import bytes_to_hex
from ens_indexer.codec import derive_subnode
from ens_indexer.codec import hex_to_bytes
from ens_indexer.codec import is_valid_label
from ens_indexer.codec import labelhash
from ens_indexer.codec import namehash
from ens_indexer.codec import to_bytes32
from ens_indexer.const import ROOT_NODE
from ens_indexer.exceptions import MalformedInputError
from tests import ETH_NODE

ETH_LABELHASH = '0x4f5b812789fc606be1b3b16908db13fc7a9adf7ca72641f84d75b47069d3d7f0'
FOO_ETH_NODE = '0xde9b09fd7c5f901e23a3f19fecc54828e9c848539801e86591bd9801b019f84f'


async def test_hex_to_bytes() -> None:
    assert hex_to_bytes('0x0102') == b'\x01\x02'
    assert hex_to_bytes('0XaBcD') == b'\xab\xcd'
    assert hex_to_bytes('ff') == b'\xff'
    assert hex_to_bytes('0x') == b''

    with raises(MalformedInputError):
        hex_to_bytes('0x123')
    with raises(MalformedInputError):
        hex_to_bytes('0xzz')


async def test_bytes_to_hex() -> None:
    assert bytes_to_hex(b'\x00\xff') == '0x00ff'
    assert bytes_to_hex(to_bytes32(ROOT_NODE)) == ROOT_NODE


async def test_to_bytes32() -> None:
    assert to_bytes32(b'\x01' * 32) == b'\x01' * 32
    assert to_bytes32(ETH_NODE.upper().replace('0X', '0x')) == to_bytes32(ETH_NODE)

    with raises(MalformedInputError):
        to_bytes32('0x0102')
    with raises(MalformedInputError):
        to_bytes32(b'\x01' * 33)


async def test_labelhash() -> None:
    assert labelhash('eth') == ETH_LABELHASH


async def test_namehash() -> None:
    assert namehash('') == ROOT_NODE
    assert namehash('eth') == ETH_NODE
    assert namehash('foo.eth') == FOO_ETH_NODE


async def test_derive_subnode() -> None:
    assert derive_subnode(ROOT_NODE, ETH_LABELHASH) == ETH_NODE
    assert derive_subnode(ETH_NODE, labelhash('foo')) == FOO_ETH_NODE
    assert derive_subnode(to_bytes32(ETH_NODE), to_bytes32(labelhash('foo'))) == FOO_ETH_NODE

    # NOTE: Concatenation order matters
    assert derive_subnode(labelhash('foo'), ETH_NODE) != FOO_ETH_NODE

    with raises(MalformedInputError):
        derive_subnode('0xabc', ETH_LABELHASH)


async def test_is_valid_label() -> None:
    assert is_valid_label('tkn')
    assert is_valid_label('')
    assert not is_valid_label('tkn.eth')
    assert not is_valid_label('tkn\x00')
