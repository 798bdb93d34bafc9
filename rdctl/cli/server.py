"""CLI commands that run or talk to the background command server."""

from __future__ import annotations

import scriptconfig as scfg

from ..client import render_result, send_command
from ..runtime import DEFAULT_HOST
from ..server import CommandServer, SettingsAPIServer, SettingsService
from ._common import _BaseCommand, _port_file, _settings_file, log


class SendCLI(_BaseCommand):
    """Send a raw command to the server, e.g. `rdctl send set --kubernetes-port 6444`."""

    command = scfg.Value(
        [],
        position=1,
        nargs='*',
        help='Command and arguments, forwarded verbatim.',
    )
    json_output = scfg.Value(
        False,
        isflag=True,
        alias=['json'],
        short_alias=['j'],
        help='Pretty-print JSON results.',
    )
    debug = scfg.Value(
        False, isflag=True, short_alias=['d'], help='Debug/verbose mode.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        if args.debug:
            # Import lazily to avoid circular import: cli.main imports cli.server.
            from .main import _setup_logging

            _setup_logging(2)
        command = [str(c) for c in (args.command or [])]
        result = send_command(command, port_file=_port_file(args.port_file))
        print(render_result(result, command, json_output=bool(args.json_output)))
        return 1 if result.status == 'error' else 0


class ServeCLI(_BaseCommand):
    """Run the command server and settings API in the foreground."""

    settings = scfg.Value(
        None,
        help='Settings file to serve (default: application config dir).',
    )
    host = scfg.Value(DEFAULT_HOST, help='Interface to listen on.')
    port = scfg.Value(0, help='Command server port (default: any free port).')
    http_port = scfg.Value(0, help='Settings API port (default: any free port).')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        service = SettingsService(_settings_file(args.settings))
        command_server = CommandServer(service, host=args.host, port=int(args.port))
        api_server = SettingsAPIServer(
            service, host=args.host, port=int(args.http_port)
        )
        port_path = command_server.write_port_file(_port_file(args.port_file))
        print(f'Command server listening on {args.host}:{command_server.port}')
        print(f'Port file: {port_path}')
        print(f'Settings API: http://{args.host}:{api_server.port}/v0/settings')
        print(f'Settings file: {service.path}')
        command_server.start_in_thread()
        try:
            api_server.serve_forever()
        except KeyboardInterrupt:
            log.info('Interrupted; shutting down')
        finally:
            api_server.server_close()
            command_server.close()
            port_path.unlink(missing_ok=True)
        return 0
