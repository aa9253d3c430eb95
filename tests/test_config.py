import logging
from pathlib import Path

from pytest import MonkeyPatch
from pytest import raises

from ens_indexer.config import IndexerConfig
from ens_indexer.config import PostgresDatabaseConfig
from ens_indexer.config import SqliteDatabaseConfig
from ens_indexer.exceptions import ConfigurationError

CONFIG_YAML = """
# Indexer config
database:
  kind: postgres
  host: ${POSTGRES_HOST:-db}
  password: '${POSTGRES_PASSWORD:-}'

namespace:
  suffixes:
    - ${NAMESPACE:-tkn.eth}
    - foo.eth

labels:
  names:
    - tkn
    - foo

logging: WARNING
"""


def _write_config(tmp_path: Path, config_yaml: str = CONFIG_YAML) -> Path:
    path = tmp_path / 'ens-indexer.yaml'
    path.write_text(config_yaml)
    return path


async def test_load(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    config = IndexerConfig.load([path], unsafe=False)
    assert config.paths == [path]

    assert isinstance(config.database, PostgresDatabaseConfig)
    assert config.database.host == 'db'
    assert config.namespace.suffixes == ['tkn.eth', 'foo.eth']
    assert config.namespace.reserved_name == 'eth'
    assert config.labels.names == ['tkn', 'foo']
    assert config.environment == {'POSTGRES_HOST': 'db', 'POSTGRES_PASSWORD': '', 'NAMESPACE': 'tkn.eth'}

    namespace = config.namespace.get_filter()
    assert namespace.matches('bar.foo.eth')
    assert not namespace.matches('eth')
    assert len(config.labels.get_rainbow_table()) == 2


async def test_load_directory(tmp_path: Path) -> None:
    _write_config(tmp_path)
    config = IndexerConfig.load([tmp_path], unsafe=False)
    assert config.namespace.suffixes == ['tkn.eth', 'foo.eth']


async def test_load_environment(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv('POSTGRES_HOST', 'localhost')
    monkeypatch.setenv('NAMESPACE', 'bar.eth')
    path = _write_config(tmp_path)

    config = IndexerConfig.load([path], unsafe=True)
    assert isinstance(config.database, PostgresDatabaseConfig)
    assert config.database.host == 'localhost'
    assert config.namespace.suffixes == ['bar.eth', 'foo.eth']

    # NOTE: Defaults only
    config = IndexerConfig.load([path], unsafe=False)
    assert config.namespace.suffixes == ['tkn.eth', 'foo.eth']


async def test_load_missing_variable(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.delenv('LABELS_PATH', raising=False)
    path = _write_config(tmp_path, 'labels:\n  path: ${LABELS_PATH}\n')

    with raises(ConfigurationError):
        IndexerConfig.load([path], unsafe=True)


async def test_load_merge(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    override = tmp_path / 'override.yaml'
    override.write_text('database:\n  kind: sqlite\n  path: ":memory:"\n')

    config = IndexerConfig.load([path, override], unsafe=False)
    assert isinstance(config.database, SqliteDatabaseConfig)
    assert config.labels.names == ['tkn', 'foo']


async def test_load_errors(tmp_path: Path) -> None:
    with raises(ConfigurationError):
        IndexerConfig.load([tmp_path / 'missing.yaml'])

    path = _write_config(tmp_path, 'namespace:\n  suffix: tkn.eth\n')
    with raises(ConfigurationError) as exc_info:
        IndexerConfig.load([path])
    assert 'namespace.suffix' in exc_info.value.msg


async def test_defaults() -> None:
    config = IndexerConfig()
    assert isinstance(config.database, SqliteDatabaseConfig)
    assert config.database.connection_string == 'sqlite://:memory:'
    assert config.namespace.suffixes == ['tkn.eth']
    assert config.labels.path is None


async def test_connection_string(tmp_path: Path) -> None:
    postgres = PostgresDatabaseConfig(kind='postgres', host='db', password='p@ss')
    assert postgres.connection_string == 'postgres://postgres:p%40ss@db:5432/postgres?maxsize=1'

    postgres = PostgresDatabaseConfig(kind='postgres', host='db', schema_name='ens')
    assert postgres.connection_string.endswith('?maxsize=1&schema=ens')

    sqlite = SqliteDatabaseConfig(kind='sqlite', path=str(tmp_path / 'data' / 'ens.sqlite'))
    assert sqlite.connection_string == f'sqlite:///{tmp_path.resolve()}/data/ens.sqlite'
    assert (tmp_path / 'data').is_dir()


async def test_labels_file(tmp_path: Path) -> None:
    labels_path = tmp_path / 'labels.txt'
    labels_path.write_text('bar\nbaz\n')
    path = _write_config(tmp_path, f'labels:\n  names:\n    - foo\n  path: {labels_path}\n')

    config = IndexerConfig.load([path])
    assert len(config.labels.get_rainbow_table()) == 3


async def test_set_up_logging() -> None:
    IndexerConfig(logging={'ens_indexer.tree': 'DEBUG', 'tortoise': 30}).set_up_logging()
    assert logging.getLogger('ens_indexer.tree').level == logging.DEBUG
    assert logging.getLogger('tortoise').level == logging.WARNING

    with raises(ConfigurationError):
        IndexerConfig(logging='LOUD').set_up_logging()


async def test_dump(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    config = IndexerConfig.load([path])

    config_yaml = config.dump()
    assert 'suffixes:' in config_yaml
    assert '- foo.eth' in config_yaml
    assert '_paths' not in config_yaml

    dumped_path = tmp_path / 'dumped.yaml'
    dumped_path.write_text(config_yaml)
    assert IndexerConfig.load([dumped_path]).namespace == config.namespace
