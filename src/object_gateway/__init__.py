"""
Object Gateway: persistent call-forwarding gateways with swappable logic.

A gateway holds state and forwards every call to its current logic module.
The module can be replaced (upgraded) without losing that state. Only the
gateway's admin, normally an AdminBroker, can replace it.

Example:
    >>> from object_gateway import GatewayRuntime
    >>>
    >>> runtime = GatewayRuntime('./data')
    >>> v1 = runtime.deploy_module('examples/modules/counter_v1.py')
    >>> broker = runtime.create_broker(owner='alice')
    >>> gateway = runtime.create_gateway(v1, broker.address, init_data='initialize')
    >>>
    >>> gateway.dispatch('bob', 'getValue')
    1
    >>> v2 = runtime.deploy_module('examples/modules/counter_v2.py')
    >>> broker.upgrade('alice', gateway, v2)
    >>> gateway.dispatch('bob', 'getValuePlusOne')
    2
"""

__version__ = "0.1.0"

from object_gateway.core.codec import Call, encode_call
from object_gateway.core.errors import (
    AdminCallRejected,
    CallFailed,
    GatewayError,
    InitializationFailed,
    InvalidAddress,
    NoOpUpgrade,
    Unauthorized,
)
from object_gateway.core.forwarder import CallContext, ModuleRevert
from object_gateway.runtime.admin_broker import AdminBroker
from object_gateway.runtime.gateway import Gateway
from object_gateway.runtime.gateway_runtime import GatewayRuntime

__all__ = [
    "__version__",
    "AdminBroker",
    "AdminCallRejected",
    "Call",
    "CallContext",
    "CallFailed",
    "Gateway",
    "GatewayError",
    "GatewayRuntime",
    "InitializationFailed",
    "InvalidAddress",
    "ModuleRevert",
    "NoOpUpgrade",
    "Unauthorized",
    "encode_call",
]
