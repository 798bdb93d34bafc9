"""Translate ``--dashed-path[=value]`` command-line options into a settings patch.

``update_from_command_line`` is the entry point shared by ``rdctl set``, the
socket command server, and the HTTP settings API. It never touches the
document it is given: every edit lands in a deep copy, which is returned only
once every option has been applied.

Paths are spelled with ``-`` between field names, but a field name may itself
contain ``-``. Resolution therefore matches the remaining path text against
the keys that actually exist at each level, longest key first, instead of
assuming one segment per level.
"""

from __future__ import annotations

import copy
import json
import math
from typing import Any, Sequence

from loguru import logger

from .errors import (
    CoercionError,
    MissingValueError,
    NoSuchEntryError,
    StructuralOverwriteError,
    TypeMismatchError,
    UnexpectedArgumentError,
)
from .settings import json_type_name

log = logger

OPTION_PREFIX = '--'
PATH_SEPARATOR = '-'


def get_updatable_node(
    document: dict[str, Any], path: str, *, sep: str = PATH_SEPARATOR
) -> tuple[dict[str, Any], str] | None:
    """
    Find the mapping and key that ``path`` addresses.

    Args:
        document: nested settings mapping to search.
        path: field names joined by ``sep``, e.g. ``kubernetes-options-flannel``.
        sep: separator between field names.

    Returns:
        ``(parent, key)`` such that ``parent[key]`` is the addressed value, or
        ``None`` if no such entry exists. A path naming a nested mapping still
        resolves; callers that only accept scalars use :func:`resolve_leaf`.

    Example:
        >>> doc = {'kubernetes': {'options': {'flannel': False}}}
        >>> parent, key = get_updatable_node(doc, 'kubernetes-options-flannel')
        >>> key, parent is doc['kubernetes']['options']
        ('flannel', True)
        >>> get_updatable_node(doc, 'kubernetes-zipperhead') is None
        True
    """
    if path in document:
        return document, path
    for key in _group_prefixes(document, path, sep):
        found = get_updatable_node(document[key], path[len(key) + len(sep):], sep=sep)
        if found is not None:
            return found
    return None


def _group_prefixes(node: dict[str, Any], path: str, sep: str) -> list[str]:
    # Only mappings can be descended into; a scalar that matches a prefix
    # leaves path text that cannot be consumed. Longest keys are tried first.
    return sorted(
        (
            key
            for key, val in node.items()
            if isinstance(val, dict) and path.startswith(key + sep)
        ),
        key=len,
        reverse=True,
    )


def resolve_leaf(
    document: dict[str, Any], path: str, *, sep: str = PATH_SEPARATOR
) -> tuple[dict[str, Any], str] | None:
    """Like :func:`get_updatable_node`, but ``None`` for nested mappings."""
    found = get_updatable_node(document, path, sep=sep)
    if found is None:
        return None
    parent, key = found
    if isinstance(parent[key], dict):
        return None
    return found


def _decode_json_literal(raw: str) -> Any:
    def _reject_constant(name: str) -> Any:
        raise ValueError(f'Unexpected token {name} in JSON')

    return json.loads(raw, parse_constant=_reject_constant)


def coerce_value(current: Any, raw: str, *, option: str) -> Any:
    """
    Convert ``raw`` to the type of ``current``.

    The target type always comes from the value being replaced, never from
    the text. ``option`` is the dashed path used in error messages.

    Raises:
        CoercionError: the text cannot be read as the target type.
        TypeMismatchError: the text is a clean JSON literal of another type.
    """
    expected = json_type_name(current)
    if expected == 'string':
        return raw
    if expected == 'boolean':
        try:
            value = _decode_json_literal(raw)
        except ValueError:
            raise CoercionError(
                f"Can't evaluate --{option}={raw} as boolean"
            ) from None
        if isinstance(value, bool):
            return value
        if json_type_name(value) == 'number':
            raise _type_mismatch(raw, value, option, expected)
        raise CoercionError(f"Can't evaluate --{option}={raw} as boolean")
    if expected == 'number':
        try:
            value = _decode_json_literal(raw)
        except ValueError as ex:
            raise CoercionError(
                f"Can't evaluate --{option}={raw} as number: "
                f'{type(ex).__name__}: {ex}'
            ) from ex
        if json_type_name(value) != 'number':
            raise _type_mismatch(raw, value, option, expected)
        # Overflowing literals such as 1e400 decode to inf without a constant.
        if isinstance(value, float) and not math.isfinite(value):
            raise CoercionError(
                f"Can't evaluate --{option}={raw} as number: "
                'value is out of range for a JSON number'
            )
        return value
    raise TypeMismatchError(
        f'Current value of {option} is of type {expected} and cannot be set from the command line'
    )


def _type_mismatch(raw: str, value: Any, option: str, expected: str) -> TypeMismatchError:
    return TypeMismatchError(
        f"Type of '{raw}' is {json_type_name(value)}, "
        f'but current type of {option} is {expected}'
    )


def update_from_command_line(
    document: dict[str, Any], argv: Sequence[str]
) -> dict[str, Any]:
    """
    Apply command-line options to a copy of ``document``.

    Each option is ``--path=value``, ``--path value``, or a bare ``--path``
    for a boolean setting, which sets it to ``true``. Options are applied in
    order, so later ones see the effect of earlier ones. Only existing
    scalar settings can be changed, and a setting never changes type.

    Args:
        document: current settings; left unmodified.
        argv: option tokens, e.g. ``['--kubernetes-port', '6444']``.

    Returns:
        The patched copy.

    Raises:
        SettingsError: on the first token that cannot be applied. Nothing is
            returned in that case.

    Example:
        >>> doc = {'kubernetes': {'port': 6443, 'enabled': False}}
        >>> new = update_from_command_line(doc, ['--kubernetes-port', '6444', '--kubernetes-enabled'])
        >>> new['kubernetes'], doc['kubernetes']['port']
        ({'port': 6444, 'enabled': True}, 6443)
    """
    working = copy.deepcopy(document)
    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        if not arg.startswith(OPTION_PREFIX):
            raise UnexpectedArgumentError(f"Unexpected argument '{arg}'")
        body = arg[len(OPTION_PREFIX):]
        path, has_value, value = body.partition('=')

        found = get_updatable_node(working, path)
        if found is None:
            raise NoSuchEntryError(
                f"Can't evaluate command-line argument {arg} -- "
                'no such entry in current settings'
            )
        parent, key = found
        current = parent[key]
        if isinstance(current, dict):
            raise StructuralOverwriteError(
                f"Can't overwrite existing setting {OPTION_PREFIX}{path}"
            )

        if not has_value:
            if isinstance(current, bool):
                value = 'true'
            elif i + 1 < len(args):
                i += 1
                value = args[i]
            else:
                raise MissingValueError(
                    f'No value provided for option {OPTION_PREFIX}{path} '
                    f'in command-line [{" ".join(args)}]'
                )

        parent[key] = coerce_value(current, value, option=path)
        log.debug('Setting {} = {!r}', path, parent[key])
        i += 1
    return working
