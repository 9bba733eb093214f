"""Top-level CLI wiring, exit-code mapping, and logging setup."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click
from loguru import logger

from .. import __version__
from ._common import CliState, log
from .config import config_group
from .disk import close_cmd, open_cmd
from .help import help_group
from .host import doctor_cmd, update_cmd
from .sync_cmd import sync_cmd, unsync_cmd


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option(
    '--config',
    'config_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Settings file (default: $PSPR_CONFIG or ~/.pspr/config).',
)
@click.option(
    '-v', '--verbose', count=True, help='Increase verbosity (-v, -vv).'
)
@click.version_option(version=__version__, prog_name='pspr')
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: int):
    """Local project workspace: settings, disk image, editor and S3 sync."""
    _setup_logging(verbose)
    ctx.obj = CliState(config_path=config_path)


cli.add_command(config_group)
cli.add_command(open_cmd)
cli.add_command(close_cmd)
cli.add_command(sync_cmd)
cli.add_command(unsync_cmd)
cli.add_command(update_cmd)
cli.add_command(doctor_cmd)
cli.add_command(help_group)


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    _setup_logging(0)
    try:
        rc = cli.main(args=argv, prog_name='pspr', standalone_mode=False)
    except click.ClickException as ex:
        ex.show()
        sys.exit(1)
    except click.exceptions.Abort:
        print('Aborted!', file=sys.stderr)
        sys.exit(1)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.opt(exception=ex).debug('Unhandled pspr error')
        sys.exit(1)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(verbosity: int) -> None:
    logger.remove()
    level = 'WARNING'
    if verbosity == 1:
        level = 'INFO'
    elif verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (verbosity={}, colorize={})',
        level,
        verbosity,
        colorize,
    )
