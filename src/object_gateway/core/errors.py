"""
Gateway Errors

Every failure raised by the gateway, the call forwarder, the admin broker
and the module registry derives from GatewayError.

Failures that originate in a forwarded call carry the module's failure
payload unchanged in ``payload`` so it can be handed back to the original
caller.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for gateway-related errors"""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class InvalidAddress(GatewayError):
    """Raised when a null (or unknown) identity is supplied where a real one is required"""
    pass


class NoOpUpgrade(GatewayError):
    """Raised when upgrading to the module that is already active"""
    pass


class InitializationFailed(GatewayError):
    """Raised when the one-shot init call at construction fails"""
    pass


class CallFailed(GatewayError):
    """Raised when a forwarded call reports failure"""
    pass


class Unauthorized(GatewayError):
    """Raised when a non-owner calls an owner-gated broker operation"""
    pass


class AdminCallRejected(GatewayError):
    """Raised in strict mode when the admin calls a non-admin operation"""
    pass


class SlotCollisionError(GatewayError):
    """Raised when application state touches a reserved slot key"""
    pass


class InvalidSlotValue(GatewayError):
    """Raised when a slot value can't be stored as JSON"""
    pass


class GatewayNotFoundError(GatewayError):
    """Raised when reopening a gateway or broker that was never constructed"""
    pass


class ModuleError(GatewayError):
    """Base exception for logic module errors"""
    pass


class ModuleLoadError(ModuleError):
    """Raised when a module file can't be loaded (syntax error, import error)"""
    pass


class ModuleNotDeployedError(ModuleError):
    """Raised when an identity doesn't point at deployed module code"""
    pass


class UnknownOperationError(ModuleError):
    """Raised when a module doesn't define the requested operation"""
    pass


def failure_payload(error: BaseException) -> Optional[dict]:
    """
    Build the failure payload reported for an exception raised by module code.

    Errors that already carry a payload (a revert, or a nested failed call)
    keep it unchanged.
    """
    payload = getattr(error, 'payload', None)
    if payload is not None:
        return payload

    return {
        'error': type(error).__name__,
        'message': str(error),
    }
