"""Indexer config: database, indexed namespace, known labels and logging.

Reading files and substituting environment variables is done in `ens_indexer.yaml`; here the
resulting mapping is validated into pydantic dataclasses.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from typing import Literal
from urllib.parse import quote_plus

import orjson
from pydantic import ConfigDict
from pydantic import Field
from pydantic import TypeAdapter
from pydantic import ValidationError
from pydantic.dataclasses import dataclass
from pydantic_core import to_jsonable_python

from ens_indexer import env
from ens_indexer.const import DEFAULT_NAMESPACE_SUFFIX
from ens_indexer.const import DEFAULT_RESERVED_NAME
from ens_indexer.exceptions import ConfigurationError
from ens_indexer.labels import RainbowTable
from ens_indexer.tree import NamespaceFilter
from ens_indexer.yaml import dump as dump_yaml
from ens_indexer.yaml import load_config_files

SQLITE_MEMORY = ':memory:'
DEFAULT_POSTGRES_PORT = 5432
DEFAULT_POSTGRES_SCHEMA = 'public'

_logger = logging.getLogger(__name__)


@dataclass(config=ConfigDict(extra='forbid'), kw_only=True)
class SqliteDatabaseConfig:
    """
    SQLite database; the default

    :param kind: always 'sqlite'
    :param path: Database file, `:memory:` to keep everything in memory
    """

    kind: Literal['sqlite']
    path: str = SQLITE_MEMORY

    @property
    def connection_string(self) -> str:
        if self.path == SQLITE_MEMORY:
            return f'sqlite://{SQLITE_MEMORY}'

        path = Path(self.path).resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f'sqlite:///{path}'

    @property
    def connection_timeout(self) -> int:
        # NOTE: Local file, nothing to wait for
        return 1


@dataclass(config=ConfigDict(extra='forbid'), kw_only=True)
class PostgresDatabaseConfig:
    """
    PostgreSQL database

    :param kind: always 'postgres'
    :param host: Host
    :param port: Port
    :param user: User
    :param password: Password
    :param database: Database name
    :param schema_name: Schema name
    :param connection_timeout: Seconds to wait for the database to come up
    """

    kind: Literal['postgres']
    host: str
    port: int = DEFAULT_POSTGRES_PORT
    user: str = 'postgres'
    password: str = Field(default='', repr=False)
    database: str = 'postgres'
    schema_name: str = DEFAULT_POSTGRES_SCHEMA
    connection_timeout: int = 60

    @property
    def connection_string(self) -> str:
        credentials = f'{self.user}:{quote_plus(self.password)}'
        # NOTE: Single connection; events are applied strictly one by one
        params = ['maxsize=1']
        if self.schema_name != DEFAULT_POSTGRES_SCHEMA:
            params.append(f'schema={self.schema_name}')
        return f'postgres://{credentials}@{self.host}:{self.port}/{self.database}?{"&".join(params)}'


@dataclass(config=ConfigDict(extra='forbid'), kw_only=True)
class NamespaceConfig:
    """Which part of the tree is persisted

    :param suffixes: Persist only domains equal to or ending with one of these names; empty list to persist all named domains
    :param reserved_name: Top-level name seeded on start along with the root node
    """

    suffixes: list[str] = Field(default_factory=lambda: [DEFAULT_NAMESPACE_SUFFIX])
    reserved_name: str | None = DEFAULT_RESERVED_NAME

    def get_filter(self) -> NamespaceFilter:
        return NamespaceFilter(self.suffixes)


@dataclass(config=ConfigDict(extra='forbid'), kw_only=True)
class LabelsConfig:
    """Known labels used to reverse labelhashes

    :param names: List of labels
    :param path: Path to a file with one label per line
    """

    names: list[str] = Field(default_factory=list)
    path: str | None = None

    def get_rainbow_table(self) -> RainbowTable:
        if self.path:
            return RainbowTable.from_file(Path(self.path), self.names)
        return RainbowTable(self.names)


def format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        loc = item['loc']
        # NOTE: Mismatched `kind` means another member of a database union was tried; not helpful
        if loc and loc[-1] == 'kind' and item['type'] == 'literal_error':
            continue
        lines.append(f'- {".".join(str(part) for part in loc)}: {item["msg"]}')
    return 'Config validation failed:\n\n' + '\n'.join(lines)


def parse_loglevel(name: str, level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ConfigurationError(f'Invalid logging level `{level}` for logger `{name}`')
    return value


@dataclass(config=ConfigDict(extra='forbid'), kw_only=True)
class IndexerConfig:
    """Indexer configuration file

    :param database: Database config
    :param namespace: Indexed namespace config
    :param labels: Known labels config
    :param logging: Level for `ens_indexer` loggers, or mapping of logger names to levels
    """

    database: SqliteDatabaseConfig | PostgresDatabaseConfig = Field(
        default_factory=lambda: SqliteDatabaseConfig(kind='sqlite'),
        discriminator='kind',
    )
    namespace: NamespaceConfig = Field(default_factory=NamespaceConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    logging: dict[str, str | int] | str | int = 'INFO'

    def __post_init__(self) -> None:
        self._paths: list[Path] = []
        self._environment: dict[str, str] = {}

    @property
    def paths(self) -> list[Path]:
        return self._paths

    @property
    def environment(self) -> dict[str, str]:
        return self._environment

    @classmethod
    def load(
        cls,
        paths: list[Path],
        environment: bool = True,
        unsafe: bool = False,
    ) -> IndexerConfig:
        config_json, config_environment = load_config_files(
            paths=paths,
            environment=environment,
            unsafe=unsafe,
        )

        try:
            config = TypeAdapter(cls).validate_python(config_json)
        except ValidationError as e:
            raise ConfigurationError(format_validation_error(e)) from e

        config._paths = paths
        config._environment = config_environment
        _logger.debug('Config loaded from %s', ', '.join(str(p) for p in paths))
        return config

    def dump(self) -> str:
        # NOTE: Private attributes are skipped by orjson
        config_json: dict[str, Any] = orjson.loads(orjson.dumps(self, default=to_jsonable_python))
        return dump_yaml(config_json)

    def get_loglevels(self) -> dict[str, int]:
        if isinstance(self.logging, dict):
            loglevels = dict(self.logging)
        else:
            loglevels = {'ens_indexer': self.logging}

        # NOTE: Environment variables have higher priority
        if env.DEBUG:
            loglevels['ens_indexer'] = logging.DEBUG

        return {name: parse_loglevel(name, level) for name, level in loglevels.items()}

    def set_up_logging(self) -> None:
        for name, level in self.get_loglevels().items():
            logging.getLogger(name).setLevel(level)
