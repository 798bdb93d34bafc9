"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ._common import log
from .server import SendCLI, ServeCLI
from .settings import ListSettingsCLI, SetCLI, StartCLI
from .shell import ShellCLI

# Own options of the commands that forward the rest of argv verbatim.
_PASSTHROUGH_FLAGS = {
    'send': {'-j', '--json', '--json_output', '-d', '--debug'},
    'shell': {'--dry_run'},
}
_VALUE_OPTIONS = {'--port_file', '--cd'}


class RDCtlModalCLI(scfg.ModalCLI):
    """Control a running Rancher Desktop from the command line."""

    set = SetCLI
    start = StartCLI
    list_settings = ListSettingsCLI
    shell = ShellCLI
    send = SendCLI
    serve = ServeCLI


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    _setup_logging(_count_verbose(argv))

    try:
        rc = RDCtlModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled rdctl error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(verbose: int) -> None:
    logger.remove()
    level = 'WARNING'
    if verbose == 1:
        level = 'INFO'
    elif verbose >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug('Logging configured at {} (colorize={})', level, colorize)


def _normalize_argv(argv: list[str]) -> list[str]:
    """Normalize hyphenated command names and protect forwarded arguments."""
    if len(argv) >= 1 and argv[0] == 'list-settings':
        return ['list_settings', *argv[1:]]
    if len(argv) >= 1 and argv[0] in _PASSTHROUGH_FLAGS:
        flags = _PASSTHROUGH_FLAGS[argv[0]]
        return [argv[0], *_mark_forwarded(argv[1:], flags)]
    return argv


def _mark_forwarded(rest: list[str], flags: set[str]) -> list[str]:
    # Insert `--` before the first argument that is not one of our options,
    # so `rdctl send set --kubernetes-port 6444` is not parsed as our flags.
    out: list[str] = []
    i = 0
    while i < len(rest):
        item = rest[i]
        if item == '--':
            return out + rest[i:]
        name = item.split('=', 1)[0]
        if name in _VALUE_OPTIONS:
            out.append(item)
            if '=' not in item and i + 1 < len(rest):
                i += 1
                out.append(rest[i])
        elif item in flags or _is_verbose_flag(item):
            out.append(item)
        else:
            return out + ['--', *rest[i:]]
        i += 1
    return out


def _is_verbose_flag(item: str) -> bool:
    if item == '--verbose':
        return True
    short = item[1:]
    return item.startswith('-') and not item.startswith('--') and bool(short) and set(short) <= {'v'}


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--':
            break
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
