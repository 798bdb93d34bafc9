"""CLI commands that read or change application settings."""

from __future__ import annotations

import json
import sys

import scriptconfig as scfg

from ..client import list_settings, render_result, set_settings
from ..errors import RDCtlError, ServerNotRunningError
from ..launcher import find_app_path, launch_app
from ..server import SettingsService
from ..settings import load_settings
from ._common import (
    _BaseCommand,
    _SettingsCommand,
    _port_file,
    _settings_args,
    _settings_file,
    log,
)


class SetCLI(_SettingsCommand):
    """Update selected settings of the running application."""

    local = scfg.Value(
        False,
        isflag=True,
        help='Apply the change directly to the settings file instead of the server.',
    )
    settings = scfg.Value(
        None,
        help='Settings file used with --local (default: application config dir).',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        patch = _settings_args(args)
        if not patch:
            raise RDCtlError('set command: no settings to change were given')
        if args.local:
            service = SettingsService(_settings_file(args.settings))
            _, changed = service.apply(patch)
            if changed:
                print(f'Updated settings: {service.path}')
            else:
                print('Settings are already up to date')
            return 0
        result = set_settings(patch, port_file=_port_file(args.port_file))
        print(render_result(result, ['set', *patch]))
        return 0


class StartCLI(_SettingsCommand):
    """Start the application, or update its settings if it is already running."""

    path = scfg.Value(
        '',
        short_alias=['p'],
        help='Path to main executable.',
    )
    dry_run = scfg.Value(
        False, isflag=True, help='Print the launch command without running it.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        patch = _settings_args(args)
        port_file = _port_file(args.port_file)
        # Unavoidable race: the server may exit between this probe and the
        # settings upload below.
        try:
            list_settings(port_file=port_file)
        except ServerNotRunningError as ex:
            log.debug('Server not reachable ({}); launching the application', ex)
        else:
            if args.path:
                raise RDCtlError(
                    f'--path {args.path} specified but Rancher Desktop is already running'
                )
            if not patch:
                print('Rancher Desktop is already running')
                return 0
            result = set_settings(patch, port_file=port_file)
            print(render_result(result, ['set', *patch]))
            return 0
        app_path = args.path or find_app_path()
        launch_app(app_path, patch, dry_run=bool(args.dry_run))
        return 0


class ListSettingsCLI(_BaseCommand):
    """Print the current settings as JSON."""

    local = scfg.Value(
        False,
        isflag=True,
        help='Read the settings file directly instead of asking the server.',
    )
    settings = scfg.Value(
        None,
        help='Settings file used with --local (default: application config dir).',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        if args.local:
            doc = load_settings(_settings_file(args.settings))
        else:
            doc = list_settings(port_file=_port_file(args.port_file))
        json.dump(doc, sys.stdout, indent=2)
        print()
        return 0
