"""Well-known locations shared by the server and the CLI client."""

from __future__ import annotations

import os
from pathlib import Path

import ubelt as ub

APP_NAME = 'rancher-desktop'
PORT_FILENAME = '.rdCliPort'
DEFAULT_HOST = '127.0.0.1'


def appdir(kind: str = 'config') -> Path:
    p = ub.Path.appdir(APP_NAME, type=kind).ensuredir()
    return Path(p)


def port_file_path() -> Path:
    override = os.environ.get('RDCTL_PORT_FILE', '').strip()
    if override:
        return Path(override)
    return appdir('data') / PORT_FILENAME
