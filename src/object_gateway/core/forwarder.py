"""
Call Forwarder

Runs a logic module's operation against the calling gateway's storage.

The module does not get storage of its own: the forwarder hands it a
CallContext whose ``state`` is a StorageHandle onto the gateway's slot
store. The call runs inside a store transaction, so a failed call leaves
no trace in the gateway's state or event log.

The module's result (or failure payload) comes back unchanged.
"""

from typing import Any, Optional, Tuple

from object_gateway.core.codec import Call
from object_gateway.core.errors import failure_payload
from object_gateway.core.module_loader import get_operation
from object_gateway.core.slot_store import PersistentSlotStore, StorageHandle


class ModuleRevert(Exception):
    """
    Raised by module code to fail the current call.

    The payload is handed back to the original caller as-is.
    """

    def __init__(self, payload: Any = None):
        super().__init__(payload)
        self.payload = payload


class CallContext:
    """
    What a module operation sees of the call it is running in.

    Attributes:
        state: StorageHandle onto the gateway's application state
        caller: Identity that made the call
        value: Value attached to the call
        address: The gateway's own identity
        gateway: The gateway (for re-entrant calls)
        logger: The gateway's logger, or None
    """

    def __init__(
        self,
        state: StorageHandle,
        caller: str,
        value: Any = 0,
        address: Optional[str] = None,
        gateway: Any = None,
        logger: Any = None,
    ):
        self.state = state
        self.caller = caller
        self.value = value
        self.address = address
        self.gateway = gateway
        self.logger = logger

    def revert(self, payload: Any = None):
        raise ModuleRevert(payload)


class CallForwarder:
    """Transfers calls to module code resolved through a ModuleRegistry."""

    def __init__(self, registry):
        self.registry = registry

    def forward(
        self,
        target: str,
        call: Call,
        store: PersistentSlotStore,
        caller: str,
        value: Any = 0,
        gateway: Any = None,
        logger: Any = None,
    ) -> Tuple[bool, Any]:
        """
        Forward a call to the target module.

        Args:
            target: Module identity
            call: Selector and arguments, passed through untouched
            store: The calling gateway's slot store
            caller: Identity of the original caller
            value: Value attached to the call
            gateway: The calling gateway
            logger: The calling gateway's logger

        Returns:
            (success, payload): the operation's return value on success,
            its failure payload otherwise
        """
        try:
            with store.transaction():
                module = self.registry.resolve(target)
                context = CallContext(
                    state=StorageHandle(store, self.registry.layout(target)),
                    caller=caller,
                    value=value,
                    address=getattr(gateway, 'address', None),
                    gateway=gateway,
                    logger=logger,
                )
                operation = get_operation(module, call.selector)
                result = operation(context, *call.args)
        except ModuleRevert as e:
            return False, e.payload
        except Exception as e:
            return False, failure_payload(e)

        return True, result
