ROOT_NODE = '0x' + '00' * 32
EMPTY_ADDRESS = '0x' + '00' * 20

DEFAULT_RESERVED_NAME = 'eth'
DEFAULT_NAMESPACE_SUFFIX = 'tkn.eth'
DEFAULT_CONFIG_NAME = 'ens-indexer.yaml'

LABEL_SEPARATOR = '.'
RESOLVER_ID_SEPARATOR = '-'
