"""Locate and launch the desktop application, and open shells in its VM."""

from __future__ import annotations

import os
import platform
import stat
import sys
from pathlib import Path
from typing import Mapping, MutableMapping, Sequence

from loguru import logger

from .errors import AppNotFoundError, RDCtlError
from .runtime import APP_NAME
from .util import run_cmd, shell_join, which

log = logger

MACOS_APP_PATH = '/Applications/Rancher Desktop.app'
LINUX_APP_PATH = '/opt/rancher-desktop/rancher-desktop'
LINUX_APP_NAME = 'rancher-desktop'

_LIMA_HOME_HINT = 'try rerunning with the environment variable LIMA_HOME set to such a directory'


def current_system() -> str:
    return platform.system().lower()


def check_existence(candidate: str | Path, mode_bits: int = 0) -> str:
    """
    Return ``candidate`` if it exists, else an empty string.

    With ``mode_bits`` the candidate must also be a regular file with at
    least one of those permission bits set. The macOS app is a directory,
    so it is checked without mode bits.
    """
    try:
        st = os.stat(candidate)
    except OSError:
        return ''
    if mode_bits and (
        not stat.S_ISREG(st.st_mode) or stat.S_IMODE(st.st_mode) & mode_bits == 0
    ):
        return ''
    return str(candidate)


def _windows_app_path(env: Mapping[str, str]) -> str:
    local_app_data = env.get('LOCALAPPDATA', '')
    if not local_app_data:
        home_drive = env.get('HOMEDRIVE', '')
        home_path = env.get('HOMEPATH', '')
        if home_drive and home_path:
            home = home_drive + home_path
        else:
            home = env.get('HOME', '')
        if not home:
            return ''
        local_app_data = os.path.join(home, 'AppData', 'Local')
    return check_existence(
        os.path.join(local_app_data, 'Programs', 'Rancher Desktop', 'Rancher Desktop.exe')
    )


def _macos_app_path(env: Mapping[str, str]) -> str:
    return check_existence(MACOS_APP_PATH)


def _linux_app_path(env: Mapping[str, str]) -> str:
    candidate = check_existence(LINUX_APP_PATH, 0o111)
    if candidate:
        return candidate
    # which() already checks existence and the executable bit.
    return which(LINUX_APP_NAME, path=env.get('PATH')) or ''


_APP_PATH_LOOKUPS = {
    'windows': _windows_app_path,
    'linux': _linux_app_path,
    'darwin': _macos_app_path,
}


def find_app_path(
    system: str | None = None, env: Mapping[str, str] | None = None
) -> str:
    system = system or current_system()
    env = os.environ if env is None else env
    lookup = _APP_PATH_LOOKUPS.get(system)
    if lookup is None:
        raise AppNotFoundError(
            f"Don't know how to find the path to Rancher Desktop on OS {system}"
        )
    found = lookup(env)
    if not found:
        raise AppNotFoundError(
            'No executable found in the default location; please retry with the --path option'
        )
    log.debug('Found application at {}', found)
    return found


def launch_command(
    app_path: str, args: Sequence[str], system: str | None = None
) -> list[str]:
    system = system or current_system()
    if system == 'darwin':
        cmd = ['open', '-a', app_path]
        if args:
            cmd += ['--args', *args]
        return cmd
    return [app_path, *args]


def launch_app(
    app_path: str,
    args: Sequence[str],
    *,
    system: str | None = None,
    dry_run: bool = False,
) -> list[str]:
    cmd = launch_command(app_path, args, system)
    # There is a delay before the UI comes up, so say what is happening.
    print(f'About to launch {shell_join(cmd)} ...', file=sys.stderr)
    if not dry_run:
        run_cmd(cmd, check=True, capture=False)
    return cmd


def add_lima_bin_to_path(
    env: MutableMapping[str, str], executable: str | None = None
) -> None:
    if which('limactl', path=env.get('PATH')):
        return
    exe = Path(executable or sys.argv[0]).resolve()
    candidate = exe.parent.parent / 'lima' / 'bin'
    log.debug('Looking for limactl in {}', candidate)
    if not check_existence(candidate / 'limactl', 0o111):
        raise AppNotFoundError(
            f'No executable limactl file found in {candidate}; '
            'try rerunning with the directory containing `limactl` added to PATH'
        )
    env['PATH'] = f'{candidate}{os.pathsep}{env.get("PATH", "")}'


def setup_lima_home(env: MutableMapping[str, str], system: str | None = None) -> None:
    if env.get('LIMA_HOME'):
        return
    system = system or current_system()
    home = Path(env.get('HOME', '~')).expanduser()
    if system == 'linux':
        candidate = home / '.local' / 'share' / APP_NAME / 'lima'
    else:
        candidate = home / 'Library' / 'Application Support' / APP_NAME / 'lima'
    if not candidate.exists():
        raise RDCtlError(
            f"Can't find the lima-home directory in the expected spot; {_LIMA_HOME_HINT}"
        )
    if not candidate.is_dir():
        raise RDCtlError(f"Path {candidate} exists but isn't a directory; {_LIMA_HOME_HINT}")
    env['LIMA_HOME'] = str(candidate)


def shell_command(
    args: Sequence[str],
    *,
    system: str | None = None,
    cd: str = '',
    env: Mapping[str, str] | None = None,
    executable: str | None = None,
) -> tuple[list[str], dict[str, str]]:
    """Build the command (and environment) that runs ``args`` inside the VM."""
    system = system or current_system()
    run_env = dict(os.environ if env is None else env)
    if system == 'windows':
        prefix = ['--cd', cd] if cd else []
        return ['wsl', *prefix, *args], run_env
    add_lima_bin_to_path(run_env, executable)
    setup_lima_home(run_env, system)
    log.debug('LIMA_HOME={}', run_env['LIMA_HOME'])
    return ['limactl', 'shell', '0', *args], run_env
