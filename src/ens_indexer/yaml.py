"""Reading indexer config from YAML files.

Files are read in the order given; top-level sections of later files replace the same sections of
earlier ones. `${VAR}` and `${VAR:-default}` placeholders are substituted before parsing. Without
`unsafe` flag only default values are used, so the result is safe to print.
"""

from __future__ import annotations

import logging
import re
from io import StringIO
from os import environ
from typing import TYPE_CHECKING
from typing import Any

from ruamel.yaml import YAML

from ens_indexer.const import DEFAULT_CONFIG_NAME
from ens_indexer.exceptions import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path

# NOTE: ${VARIABLE:-default} | ${VARIABLE}
ENV_VARIABLE_REGEX = re.compile(r'\$\{(?P<var_name>\w+)(?::-(?P<default_value>[^}]*))?\}')
CONFIG_SUFFIXES = ('.yaml', '.yml')

_logger = logging.getLogger(__name__)

_loader = YAML(typ='safe')

_dumper = YAML()
_dumper.default_flow_style = False
_dumper.indent(mapping=2, sequence=4, offset=2)


def find_config_file(path: Path) -> Path:
    """Directory means the default config inside it; suffix may be omitted"""
    if path.is_dir():
        path /= DEFAULT_CONFIG_NAME

    for candidate in (path, *(path.with_suffix(s) for s in CONFIG_SUFFIXES)):
        if candidate.is_file():
            return candidate
    raise ConfigurationError(f'Config file `{path}` is missing.')


def read_config_file(path: Path) -> str:
    path = find_config_file(path)
    _logger.debug('Loading config file `%s`', path)
    try:
        lines = path.read_text().splitlines(keepends=True)
    except OSError as e:
        raise ConfigurationError(f'Config file `{path}` is not readable: {e}') from e

    # NOTE: Placeholders in commented out lines must not be substituted
    return ''.join(line for line in lines if not line.lstrip().startswith('#'))


def substitute_env_variables(config_yaml: str, unsafe: bool) -> tuple[str, dict[str, str]]:
    environment: dict[str, str] = {}

    def _substitute(match: re.Match[str]) -> str:
        variable, default = match.group('var_name'), match.group('default_value')
        if unsafe:
            value = environ.get(variable, default)
            # NOTE: Empty string is a valid value
            if value is None:
                raise ConfigurationError(f'Environment variable `{variable}` is not set')
        else:
            value = default or ''

        environment[variable] = value
        return value

    return ENV_VARIABLE_REGEX.sub(_substitute, config_yaml), environment


def load_config_files(
    paths: list[Path],
    environment: bool = True,
    unsafe: bool = False,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Merge config files into a single mapping; return it with substituted variables"""
    config: dict[str, Any] = {}
    config_environment: dict[str, str] = {}

    for path in paths:
        config_yaml = read_config_file(path)
        if environment:
            config_yaml, path_environment = substitute_env_variables(config_yaml, unsafe)
            config_environment.update(path_environment)

        sections = _loader.load(config_yaml) or {}
        if not isinstance(sections, dict):
            raise ConfigurationError(f'Config file `{path}` must be a mapping, got {type(sections).__name__}')
        config.update(sections)

    return config, config_environment


def drop_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list | tuple):
        return [drop_nulls(v) for v in value if v is not None]
    return value


def dump(value: dict[str, Any]) -> str:
    buffer = StringIO()
    _dumper.dump(drop_nulls(value), buffer)
    return buffer.getvalue()
