"""Background command server and HTTP settings API.

Both front ends share one ``SettingsService``, which owns the settings file
and serializes every read-patch-write cycle behind a single lock.

The command protocol is the one the CLI client speaks: the client sends a
JSON array of argv strings and half-closes the connection; the server answers
with one ``CommandResult`` envelope and closes.
"""

from __future__ import annotations

import json
import socketserver
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Sequence

from loguru import logger

from .cmdline import update_from_command_line
from .errors import SettingsError
from .results import CommandResult
from .runtime import DEFAULT_HOST, port_file_path
from .settings import load_settings, save_settings, settings_path, settings_to_args
from .util import ensure_dir

log = logger

SETTINGS_ENDPOINT = '/v0/settings'
REQUEST_TIMEOUT_S = 30.0
MAX_REQUEST_BYTES = 1 << 20

HELP_TEXT = '\n'.join(
    [
        'Commands:',
        '  help                      show this message',
        '  list-settings             print the current settings as JSON',
        '  set --<path>[=<value>]... change one or more settings, e.g.',
        '                            set --kubernetes-version=1.23.6 --kubernetes-options-flannel',
    ]
)


class SettingsService:
    """Apply command-line patches to the persisted settings, one writer at a time."""

    def __init__(self, path: Path | None = None):
        self.path = path or settings_path()
        self._lock = threading.Lock()

    def current(self) -> dict[str, Any]:
        with self._lock:
            return load_settings(self.path)

    def apply(self, argv: Sequence[str]) -> tuple[dict[str, Any], bool]:
        with self._lock:
            current = load_settings(self.path)
            return self._commit(current, list(argv))

    def apply_document(self, partial: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """Like :meth:`apply`, for a partial settings object."""
        with self._lock:
            current = load_settings(self.path)
            argv = settings_to_args(partial, current=current)
            return self._commit(current, argv)

    def _commit(self, current: dict[str, Any], argv: list[str]) -> tuple[dict[str, Any], bool]:
        updated = update_from_command_line(current, argv)
        changed = updated != current
        if changed:
            save_settings(updated, self.path)
            log.info('Updated settings at {}', self.path)
        else:
            log.debug('Settings unchanged by {}', argv)
        return updated, changed

    def handle_command(self, argv: Sequence[str]) -> CommandResult:
        if not argv:
            return CommandResult(status='help', value=HELP_TEXT)
        command, rest = argv[0], list(argv[1:])
        log.debug('Handling command {} {}', command, rest)
        try:
            if command == 'help':
                return CommandResult(status='help', value=HELP_TEXT)
            if command == 'list-settings':
                if rest:
                    return CommandResult.error(
                        f'list-settings takes no arguments, got {rest}'
                    )
                return CommandResult.json_value(True, self.current())
            if command == 'set':
                if not rest:
                    return CommandResult(status=False, value='No settings specified')
                updated, changed = self.apply(rest)
                if changed:
                    return CommandResult.json_value('updated', updated)
                return CommandResult(status=False, value='Settings are already up to date')
        except SettingsError as ex:
            log.info('Rejected command {}: {}', command, ex)
            return CommandResult.error(str(ex))
        return CommandResult.error(f"Unrecognized command '{command}'")


class _BackgroundServerMixin:
    _thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self.server_address[1]

    def start_in_thread(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.serve_forever,
            name=type(self).__name__,
            daemon=True,
        )
        self._thread.start()
        log.debug('{} listening on {}:{}', type(self).__name__, *self.server_address[:2])
        return self._thread

    def close(self) -> None:
        if self._thread is not None:
            self.shutdown()
            self._thread.join()
            self._thread = None
        self.server_close()


class _CommandHandler(socketserver.StreamRequestHandler):
    # Applied to the connection in setup(); a client that never half-closes
    # gets an error envelope instead of holding the thread.
    timeout = REQUEST_TIMEOUT_S

    def handle(self) -> None:
        try:
            raw = self.rfile.read(MAX_REQUEST_BYTES + 1)
        except TimeoutError:
            log.info('Client {} sent no complete command', self.client_address)
            result = CommandResult.error(
                f'Timed out after {self.timeout:g}s waiting for the command'
            )
            self.wfile.write(result.dumps().encode('utf-8'))
            return
        if len(raw) > MAX_REQUEST_BYTES:
            result = CommandResult.error(
                f'Command is larger than {MAX_REQUEST_BYTES} bytes'
            )
            self.wfile.write(result.dumps().encode('utf-8'))
            return
        try:
            argv = json.loads(raw.decode('utf-8'))
        except ValueError as ex:
            result = CommandResult.error(f"Can't parse command: {ex}")
        else:
            if not isinstance(argv, list) or not all(isinstance(a, str) for a in argv):
                result = CommandResult.error('Expected a JSON array of strings')
            else:
                result = self._dispatch(argv)
        self.wfile.write(result.dumps().encode('utf-8'))

    def _dispatch(self, argv: list[str]) -> CommandResult:
        try:
            return self.server.service.handle_command(argv)
        except Exception as ex:
            log.exception('Command {} failed', argv)
            return CommandResult.error(f'Internal error: {ex}')


class CommandServer(_BackgroundServerMixin, socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, service: SettingsService, host: str = DEFAULT_HOST, port: int = 0):
        self.service = service
        super().__init__((host, port), _CommandHandler)

    def write_port_file(self, path: Path | None = None) -> Path:
        fpath = path or port_file_path()
        ensure_dir(fpath.parent)
        fpath.write_text(str(self.port), encoding='utf-8')
        log.debug('Wrote port {} to {}', self.port, fpath)
        return fpath


class _SettingsAPIHandler(BaseHTTPRequestHandler):
    server: 'SettingsAPIServer'

    def log_message(self, format: str, *args: Any) -> None:
        log.debug('HTTP {} - {}', self.address_string(), format % args)

    def _send(self, status: HTTPStatus, body: str, content_type: str = 'text/plain') -> None:
        data = body.encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', f'{content_type}; charset=utf-8')
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _internal_error(self, ex: Exception) -> None:
        log.exception('Settings API request {} {} failed', self.command, self.path)
        self._send(HTTPStatus.INTERNAL_SERVER_ERROR, f'Internal error: {ex}')

    def do_GET(self) -> None:
        if self.path != SETTINGS_ENDPOINT:
            self._send(HTTPStatus.NOT_FOUND, f'Unknown endpoint {self.path}')
            return
        try:
            doc = self.server.service.current()
        except Exception as ex:
            self._internal_error(ex)
            return
        self._send(HTTPStatus.OK, json.dumps(doc), 'application/json')

    def do_PUT(self) -> None:
        if self.path != SETTINGS_ENDPOINT:
            self._send(HTTPStatus.NOT_FOUND, f'Unknown endpoint {self.path}')
            return
        try:
            length = int(self.headers.get('Content-Length') or 0)
            if length < 0:
                raise ValueError(f'negative Content-Length {length}')
            body = json.loads(self.rfile.read(length).decode('utf-8'))
        except ValueError as ex:
            self._send(HTTPStatus.BAD_REQUEST, f"Can't parse request body: {ex}")
            return
        is_argv = isinstance(body, list) and all(isinstance(a, str) for a in body)
        if not isinstance(body, dict) and not is_argv:
            self._send(
                HTTPStatus.BAD_REQUEST,
                'Request body must be a settings object or an array of options',
            )
            return
        try:
            if is_argv:
                updated, _ = self.server.service.apply(body)
            else:
                updated, _ = self.server.service.apply_document(body)
        except SettingsError as ex:
            self._send(HTTPStatus.BAD_REQUEST, str(ex))
            return
        except Exception as ex:
            self._internal_error(ex)
            return
        self._send(HTTPStatus.ACCEPTED, json.dumps(updated), 'application/json')


class SettingsAPIServer(_BackgroundServerMixin, ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, service: SettingsService, host: str = DEFAULT_HOST, port: int = 0):
        self.service = service
        super().__init__((host, port), _SettingsAPIHandler)
