"""Result envelope exchanged between the command server and the CLI client."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

# 'error' | 'help' | 'updated' | True | False
Status = Union[str, bool]


@dataclass
class CommandResult:
    status: Status
    value: str = ''
    type: str = 'text'

    def as_dict(self) -> dict[str, Any]:
        return {'status': self.status, 'type': self.type, 'value': self.value}

    def dumps(self) -> str:
        return json.dumps(self.as_dict())

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> 'CommandResult':
        return cls(
            status=raw.get('status', 'error'),
            value=raw.get('value', ''),
            type=str(raw.get('type', 'text')),
        )

    @classmethod
    def error(cls, message: str) -> 'CommandResult':
        return cls(status='error', value=message)

    @classmethod
    def json_value(cls, status: Status, payload: Any) -> 'CommandResult':
        return cls(status=status, value=json.dumps(payload), type='json')
