"""Thin client for the background command server."""

from __future__ import annotations

import json
import socket
from pathlib import Path
from typing import Any, Sequence

from loguru import logger

from .errors import RDCtlError, ServerNotRunningError
from .results import CommandResult
from .runtime import DEFAULT_HOST, port_file_path

log = logger

HEARTBEAT_S = 1.0
IDLE_TIMEOUT_S = 30.0


def read_port(path: Path | None = None) -> int:
    fpath = path or port_file_path()
    try:
        text = fpath.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise ServerNotRunningError(
            f"File {fpath} doesn't exist, can't talk to the server"
        ) from None
    try:
        return int(text.strip())
    except ValueError:
        raise ServerNotRunningError(
            f'Port file {fpath} holds {text.strip()!r}, not a port number'
        ) from None


def send_command(
    argv: Sequence[str],
    *,
    port: int | None = None,
    port_file: Path | None = None,
    host: str = DEFAULT_HOST,
    heartbeat: float = HEARTBEAT_S,
    idle_timeout: float = IDLE_TIMEOUT_S,
) -> CommandResult:
    if port is None:
        port = read_port(port_file)
    payload = json.dumps(list(argv)).encode('utf-8')
    try:
        sock = socket.create_connection((host, port), timeout=heartbeat)
    except OSError as ex:
        raise ServerNotRunningError(
            f"Can't connect to the server at {host}:{port}: {ex}"
        ) from ex
    pieces: list[bytes] = []
    with sock:
        log.debug('Connected to {}:{}', host, port)
        sock.sendall(payload)
        sock.shutdown(socket.SHUT_WR)
        cycles = 0
        while True:
            try:
                chunk = sock.recv(65536)
            except socket.timeout:
                cycles += 1
                if cycles > 1:
                    log.debug('Waiting for more events...')
                if cycles * heartbeat >= idle_timeout:
                    raise RDCtlError(
                        f'No response from the server after {idle_timeout:g}s'
                    ) from None
                continue
            if not chunk:
                break
            pieces.append(chunk)
            cycles = 0
    data = b''.join(pieces).decode('utf-8')
    log.debug('Connection closed; got back all data: {}', data)
    try:
        raw = json.loads(data)
    except ValueError as ex:
        raise RDCtlError(f'Error showing {data!r}: {ex}') from ex
    if not isinstance(raw, dict):
        raise RDCtlError(f'Unexpected response from the server: {data!r}')
    return CommandResult.from_dict(raw)


def render_result(
    result: CommandResult, argv: Sequence[str], *, json_output: bool = False
) -> str:
    lines: list[str] = []
    status = result.status
    if status == 'error':
        lines.append(f'Error in command {" ".join(argv)}: ')
    if status in (True, False) or status in ('error', 'help', 'updated'):
        if result.type == 'json' and json_output:
            try:
                lines.append(json.dumps(json.loads(result.value), indent=4))
            except ValueError as ex:
                lines.append(f"Can't dump json: {ex}")
                lines.append(str(result.value))
        else:
            lines.append(str(result.value))
    else:
        lines.append(str(result.as_dict()))
    if status == 'help':
        lines.append('-j - output json')
        lines.append('-d - debug/verbose mode')
    return '\n'.join(lines)


def list_settings(**kwargs: Any) -> dict[str, Any]:
    result = send_command(['list-settings'], **kwargs)
    if result.status == 'error':
        raise RDCtlError(result.value)
    return json.loads(result.value)


def set_settings(args: Sequence[str], **kwargs: Any) -> CommandResult:
    result = send_command(['set', *args], **kwargs)
    if result.status == 'error':
        raise RDCtlError(result.value)
    return result
