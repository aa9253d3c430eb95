# NOTE: All imports except the basic ones are lazy in this module. Let's keep it that way.
import logging
from collections.abc import Callable
from collections.abc import Coroutine
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING
from typing import Any
from typing import TypeVar
from typing import cast

import click
import uvloop

from ens_indexer import __version__
from ens_indexer.const import DEFAULT_CONFIG_NAME

if TYPE_CHECKING:
    from ens_indexer.config import IndexerConfig

# NOTE: These commands load config themselves
NO_CONFIG_CMDS = {
    'config',
}

_logger = logging.getLogger(__name__)

CommandT = TypeVar('CommandT', bound=Callable[..., Coroutine[Any, Any, None]])


@dataclass
class CLIContext:
    config: 'IndexerConfig'


def _async_command(fn: CommandT) -> CommandT:
    """Run coroutine command in uvloop; print help text of known errors"""

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        from ens_indexer.exceptions import Error

        try:
            uvloop.run(fn(*args, **kwargs))
        except KeyboardInterrupt:
            _logger.info('Interrupted')
        except Error as e:
            click.secho(e.help(), err=True, fg='red')
            raise

    return cast(CommandT, wrapper)


def _load_config(root_params: dict[str, Any], unsafe: bool) -> 'IndexerConfig':
    from dotenv import load_dotenv

    from ens_indexer.config import IndexerConfig

    # NOTE: Variables from env files are used for substitution, so apply them first
    for env_file in root_params['env_file']:
        _logger.info('Applying env file `%s`', env_file)
        load_dotenv(env_file, override=True)

    paths = [Path(p) for p in root_params['config']] or [Path(DEFAULT_CONFIG_NAME)]
    return IndexerConfig.load(paths=paths, environment=True, unsafe=unsafe)


@click.group(context_settings={'max_content_width': 120})
@click.version_option(__version__)
@click.option(
    '--config',
    '-c',
    type=str,
    multiple=True,
    default=[],
    metavar='PATH',
    envvar='ENS_INDEXER_CONFIG',
    help=f'Config file or directory; repeat to merge several. Defaults to `{DEFAULT_CONFIG_NAME}`.',
)
@click.option(
    '--env-file',
    '-e',
    type=str,
    multiple=True,
    default=[],
    metavar='PATH',
    envvar='ENS_INDEXER_ENV_FILE',
    help='`.env` file with variables to substitute in config.',
)
@click.pass_context
@_async_command
async def cli(ctx: click.Context, config: list[str], env_file: list[str]) -> None:
    """Index ownership, resolver and TTL changes of a name registry."""
    from ens_indexer.sys import set_up_logging

    set_up_logging()

    if ctx.invoked_subcommand in NO_CONFIG_CMDS:
        logging.getLogger('ens_indexer').setLevel(logging.INFO)
        return

    _config = _load_config(ctx.params, unsafe=True)
    _config.set_up_logging()
    ctx.obj = CLIContext(config=_config)


@cli.command()
@click.argument(
    'events_path',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    metavar='EVENTS',
)
@click.pass_context
@_async_command
async def run(ctx: click.Context, events_path: Path) -> None:
    """Replay registry events from a JSON lines file.

    Each line is a single log from either registry, in block and log order.
    """
    from ens_indexer.database import tortoise_wrapper
    from ens_indexer.events import iter_events_file
    from ens_indexer.indexer import RegistryIndexer

    config: IndexerConfig = ctx.obj.config

    async with tortoise_wrapper(
        url=config.database.connection_string,
        timeout=config.database.connection_timeout,
    ):
        indexer = RegistryIndexer.from_config(config)
        await indexer.bootstrap()
        stats = await indexer.run(iter_events_file(events_path))

    click.secho(f'Done: {stats.applied} events applied, {stats.skipped} skipped', fg='green')


@cli.group()
def config() -> None:
    """Commands to manage indexer configuration."""


@config.command(name='export')
@click.option('--unsafe', is_flag=True, help='Substitute actual environment variables instead of default values.')
@click.pass_context
def config_export(ctx: click.Context, unsafe: bool) -> None:
    """Print config after substituting environment variables and applying defaults.

    WARNING: With `--unsafe` flag the output may contain secrets!
    """
    root_ctx = ctx.find_root()
    _config = _load_config(root_ctx.params, unsafe=unsafe)
    click.echo(_config.dump())
