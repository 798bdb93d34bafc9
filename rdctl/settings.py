"""Settings document model, defaults, and JSON persistence.

The settings document travels as a plain nested ``dict`` (the JSON wire
format). The dataclasses below define which keys are legal at each level and
what type every leaf holds; ``to_dict`` and ``from_dict`` convert between the
two. Python attribute names are snake_case, and the wire key is carried in
each field's metadata when it differs.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from .errors import SettingsError, TypeMismatchError
from .runtime import appdir
from .util import ensure_dir

log = logger

SETTINGS_FILENAME = 'settings.json'
CURRENT_SETTINGS_VERSION = 4


class ContainerEngine:
    MOBY = 'moby'
    CONTAINERD = 'containerd'

    ALL = (MOBY, CONTAINERD)


class PathManagementStrategy:
    NOT_SET = 'notset'
    MANUAL = 'manual'
    RC_FILES = 'rcfiles'

    ALL = (NOT_SET, MANUAL, RC_FILES)


def _key(name: str) -> dict[str, str]:
    return {'key': name}


@dataclass
class KubernetesOptions:
    traefik: bool = True
    flannel: bool = False


@dataclass
class KubernetesSettings:
    version: str = '1.23.5'
    memory_in_gb: int = field(default=4, metadata=_key('memoryInGB'))
    number_cpus: int = field(default=2, metadata=_key('numberCPUs'))
    port: int = 6443
    container_engine: str = field(
        default=ContainerEngine.MOBY, metadata=_key('containerEngine')
    )
    check_for_existing_kim_builder: bool = field(
        default=False, metadata=_key('checkForExistingKimBuilder')
    )
    enabled: bool = True
    wsl_integrations: dict[str, bool] = field(
        default_factory=dict, metadata=_key('WSLIntegrations')
    )
    options: KubernetesOptions = field(default_factory=KubernetesOptions)
    suppress_sudo: bool = field(default=False, metadata=_key('suppressSudo'))


@dataclass
class PortForwardingSettings:
    include_kubernetes_services: bool = field(
        default=False, metadata=_key('includeKubernetesServices')
    )


@dataclass
class ImagesSettings:
    show_all: bool = field(default=True, metadata=_key('showAll'))
    namespace: str = 'k8s.io'


@dataclass
class Settings:
    version: int = CURRENT_SETTINGS_VERSION
    kubernetes: KubernetesSettings = field(default_factory=KubernetesSettings)
    port_forwarding: PortForwardingSettings = field(
        default_factory=PortForwardingSettings,
        metadata=_key('portForwarding'),
    )
    images: ImagesSettings = field(default_factory=ImagesSettings)
    telemetry: bool = True
    updater: bool = True
    debug: bool = False
    path_management_strategy: str = field(
        default=PathManagementStrategy.NOT_SET,
        metadata=_key('pathManagementStrategy'),
    )


def wire_key(f) -> str:
    return f.metadata.get('key', f.name)


def json_type_name(value: Any) -> str:
    """Name the JSON type of ``value`` the way JavaScript's ``typeof`` does."""
    # bool is a subclass of int, so it must be tested first.
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return 'object'


def default_settings() -> Settings:
    return Settings()


def to_dict(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        val = getattr(obj, f.name)
        if is_dataclass(val):
            val = to_dict(val)
        elif isinstance(val, dict):
            val = dict(val)
        out[wire_key(f)] = val
    return out


def _fill(obj: Any, raw: dict[str, Any], where: str) -> None:
    for f in fields(obj):
        key = wire_key(f)
        if key not in raw:
            continue
        val = raw[key]
        cur = getattr(obj, f.name)
        path = f'{where}.{key}' if where else key
        if is_dataclass(cur):
            if isinstance(val, dict):
                _fill(cur, val, path)
            else:
                log.warning('Ignoring non-object value for settings group {}', path)
        elif isinstance(cur, dict):
            if isinstance(val, dict):
                setattr(obj, f.name, dict(val))
            else:
                log.warning('Ignoring non-object value for settings group {}', path)
        elif json_type_name(val) == json_type_name(cur):
            setattr(obj, f.name, val)
        else:
            log.warning(
                'Ignoring {} value for {} setting {}',
                json_type_name(val),
                json_type_name(cur),
                path,
            )
    known = {wire_key(f) for f in fields(obj)}
    for key in raw:
        if key not in known:
            log.debug('Dropping unknown settings key {!r} under {!r}', key, where or '<root>')


def from_dict(raw: dict[str, Any]) -> Settings:
    """Build a ``Settings`` from a JSON document, keeping only known keys."""
    cfg = default_settings()
    _fill(cfg, raw, '')
    return cfg


def settings_path() -> Path:
    override = os.environ.get('RDCTL_SETTINGS', '').strip()
    if override:
        return Path(override)
    return appdir('config') / SETTINGS_FILENAME


def load_settings(path: Path | None = None) -> dict[str, Any]:
    fpath = path or settings_path()
    if not fpath.exists():
        log.debug('No settings file at {}; using defaults', fpath)
        return to_dict(default_settings())
    raw = json.loads(fpath.read_text(encoding='utf-8'))
    if not isinstance(raw, dict):
        raise SettingsError(f'Settings file {fpath} does not hold a JSON object')
    return to_dict(from_dict(raw))


def save_settings(document: dict[str, Any], path: Path | None = None) -> Path:
    fpath = path or settings_path()
    ensure_dir(fpath.parent)
    fpath.write_text(json.dumps(document, indent=2) + '\n', encoding='utf-8')
    log.debug('Wrote settings to {}', fpath)
    return fpath


def settings_to_args(
    document: dict[str, Any],
    *,
    prefix: str = '',
    current: dict[str, Any] | None = None,
) -> list[str]:
    """
    Flatten a (possibly partial) settings document into ``--path=value`` options.

    When ``current`` is given, each scalar must have the same JSON type as
    the setting it replaces; text options would otherwise lose that type.
    Keys missing from ``current`` are left for the patch engine to report.
    """
    args: list[str] = []
    for key, val in document.items():
        path = f'{prefix}-{key}' if prefix else key
        existing = current.get(key) if isinstance(current, dict) else None
        if isinstance(val, dict):
            args.extend(settings_to_args(val, prefix=path, current=existing))
            continue
        if existing is not None and not isinstance(existing, dict):
            actual, expected = json_type_name(val), json_type_name(existing)
            if actual != expected:
                raise TypeMismatchError(
                    f"Type of '{json.dumps(val)}' is {actual}, "
                    f'but current type of {path} is {expected}'
                )
        if isinstance(val, bool):
            args.append(f'--{path}={"true" if val else "false"}')
        elif isinstance(val, (int, float)):
            args.append(f'--{path}={json.dumps(val)}')
        elif isinstance(val, str):
            args.append(f'--{path}={val}')
        else:
            raise SettingsError(
                f"Can't set --{path} from a JSON value of type {type(val).__name__}"
            )
    return args
