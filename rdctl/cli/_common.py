"""Options and helpers shared by the rdctl subcommands."""

from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..util import expand

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )
    port_file = scfg.Value(
        None,
        help='Path to the server port file (default: application data dir).',
    )


class _SettingsCommand(_BaseCommand):
    """Options that map onto individual settings."""

    container_engine = scfg.Value(
        None,
        help='Set the container engine (moby or containerd).',
    )
    kubernetes_enabled = scfg.Value(
        None,
        isflag=True,
        help='Enable or disable Kubernetes (--no-kubernetes_enabled to disable).',
    )
    kubernetes_version = scfg.Value(
        None,
        help='Set the Kubernetes version.',
    )
    flannel_enabled = scfg.Value(
        None,
        isflag=True,
        help='Control whether flannel is enabled (--no-flannel_enabled to disable).',
    )
    setting = scfg.Value(
        [],
        nargs='*',
        help='Any other settings as path=value, e.g. kubernetes-port=6444 images-showAll=false.',
    )


def _port_file(p: str | None) -> Path | None:
    return Path(expand(p)) if p else None


def _settings_file(p: str | None) -> Path | None:
    return Path(expand(p)) if p else None


def _bool_text(value) -> str:
    return 'true' if value else 'false'


def _settings_args(args) -> list[str]:
    """Translate the static setting flags into ``--path=value`` options."""
    out: list[str] = []
    if args.container_engine is not None:
        out += ['--kubernetes-containerEngine', str(args.container_engine)]
    if args.kubernetes_enabled is not None:
        # Booleans need the inline form; a bare boolean option means "true".
        out.append(f'--kubernetes-enabled={_bool_text(args.kubernetes_enabled)}')
    if args.kubernetes_version is not None:
        out += ['--kubernetes-version', str(args.kubernetes_version)]
    if args.flannel_enabled is not None:
        out.append(f'--kubernetes-options-flannel={_bool_text(args.flannel_enabled)}')
    for item in args.setting or []:
        item = str(item).strip()
        if not item:
            continue
        out.append(item if item.startswith('--') else f'--{item}')
    return out


__all__ = [name for name in globals() if not name.startswith('__')]
