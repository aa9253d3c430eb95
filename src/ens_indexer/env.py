"""Process-wide flags read from `ENS_INDEXER_*` environment variables on import"""

from os import getenv

PREFIX = 'ENS_INDEXER_'
TRUE_VALUES = ('1', 'y', 'yes', 't', 'true', 'on')


def get(key: str) -> str | None:
    return getenv(PREFIX + key)


def get_bool(key: str) -> bool:
    return (get(key) or '').lower() in TRUE_VALUES


DEBUG: bool = get_bool('DEBUG')
JSON_LOG: bool = get_bool('JSON_LOG')
