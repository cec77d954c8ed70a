"""
Call payloads.

A call is an operation selector plus positional arguments. On the wire
(HTTP surface, stored init payloads) it is JSON:

    {"selector": "setValue", "args": [42]}
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Call:
    selector: str
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {'selector': self.selector, 'args': list(self.args)}


def encode_call(selector: str, *args) -> bytes:
    """Encode a call as JSON bytes"""
    return json.dumps(Call(selector, tuple(args)).to_dict()).encode('utf-8')


def decode_call(data: Any) -> Optional[Call]:
    """
    Normalize a call payload.

    Accepts a Call, a dict, JSON bytes/str, or a bare selector string.
    Empty payloads (None, b'', '') decode to None.

    Raises:
        ValueError: If the payload is not a call
    """
    if data is None or data == b'' or data == '':
        return None

    if isinstance(data, Call):
        return data

    if isinstance(data, (bytes, bytearray)):
        data = data.decode('utf-8')

    if isinstance(data, str):
        stripped = data.strip()
        if not stripped.startswith('{'):
            return Call(stripped)
        data = json.loads(stripped)

    if isinstance(data, dict):
        selector = data.get('selector')
        if not isinstance(selector, str) or not selector:
            raise ValueError(f'Call payload has no selector: {data!r}')
        args = data.get('args') or []
        if not isinstance(args, (list, tuple)):
            raise ValueError(f'Call args must be a list: {args!r}')
        return Call(selector, tuple(args))

    raise ValueError(f'Not a call payload: {data!r}')
