"""
Identities and reserved slot keys.

Identities (callers, gateways, brokers, modules) are plain strings. The null
identity is ``None``, the empty string, or the all-zero address.

Reserved slot keys are derived once, at import, from a label:
``sha256(label) - 1`` rendered as ``0x`` + 64 hex digits. Application state
fields are Python identifiers, so a reserved key can never be one of them.
"""

import hashlib
import re
import secrets
from typing import Any


ZERO_ADDRESS = '0x' + '0' * 40

_RESERVED_KEY = re.compile(r'^0x[0-9a-f]{64}$')


def derive_slot(label: str) -> str:
    """Derive a reserved slot key from a label"""
    digest = int(hashlib.sha256(label.encode()).hexdigest(), 16)
    return f'0x{digest - 1:064x}'


def is_reserved_key(key: Any) -> bool:
    """True if key lives in the reserved slot key space"""
    return isinstance(key, str) and bool(_RESERVED_KEY.match(key))


def is_null(identity: Any) -> bool:
    """True for the null identity"""
    return identity is None or identity == '' or identity == ZERO_ADDRESS


def new_address() -> str:
    """Generate a fresh random address for a gateway or broker"""
    return '0x' + secrets.token_hex(20)


def code_address(source: str) -> str:
    """Content address of module source code"""
    return '0x' + hashlib.sha256(source.encode()).hexdigest()[:40]


# Gateway slots
IMPLEMENTATION_SLOT = derive_slot('object_gateway.proxy.implementation')
ADMIN_SLOT = derive_slot('object_gateway.proxy.admin')

# Broker slot
OWNER_SLOT = derive_slot('object_gateway.broker.owner')
