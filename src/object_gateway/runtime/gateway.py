"""
Gateway

A persistent front-end that forwards every call to a replaceable logic
module, except the admin operations, which it answers itself when (and only
when) the caller is the admin.

Reserved slots (keys derived in identity.py):
- IMPLEMENTATION_SLOT - identity of the active module
- ADMIN_SLOT - identity allowed to use the admin operations

Everything else in the slot store is application state, owned by whichever
module is active. Upgrading swaps the module pointer and keeps that state.

Every dispatch runs inside a store transaction: a call that fails leaves
neither state changes nor notifications behind. The one exception is an
upgrade whose init call fails: the upgrade stays, and only the init call
is undone.
"""

import inspect
import threading
from typing import Any, Dict, List, Optional

from object_gateway.core.codec import Call, decode_call
from object_gateway.core.errors import (
    AdminCallRejected,
    CallFailed,
    GatewayError,
    GatewayNotFoundError,
    InitializationFailed,
    InvalidAddress,
    NoOpUpgrade,
)
from object_gateway.core.events import ADMIN_CHANGED, UPGRADED
from object_gateway.core.forwarder import CallForwarder
from object_gateway.core.identity import ADMIN_SLOT, IMPLEMENTATION_SLOT, is_null
from object_gateway.core.slot_store import PersistentSlotStore, StorageHandle


# Admin selector -> handler name. Modules must not reuse these names: a
# module operation with one of them is unreachable for the admin.
ADMIN_OPERATIONS = {
    'implementation': '_get_module',
    'getModule': '_get_module',
    'admin': '_get_admin',
    'getAdmin': '_get_admin',
    'changeAdmin': '_change_admin',
    'upgradeTo': '_upgrade_module',
    'upgradeModule': '_upgrade_module',
    'upgradeToAndCall': '_upgrade_and_initialize',
    'upgradeAndInitialize': '_upgrade_and_initialize',
}


class _CommittedFailure:
    """A failure to raise once the dispatch transaction has committed"""

    def __init__(self, error: GatewayError):
        self.error = error


class Gateway:
    """
    Call-forwarding gateway.

    Construct a new one with Gateway(...); reopen a persisted one with
    Gateway.open(...).
    """

    def __init__(
        self,
        gateway_id: str,
        store: PersistentSlotStore,
        forwarder: CallForwarder,
        initial_module: str,
        initial_admin: str,
        init_data: Any = None,
        logger: Any = None,
        strict_admin: bool = False,
    ):
        """
        Construct a gateway.

        Args:
            gateway_id: The gateway's own identity
            store: Slot store for this gateway (must be empty)
            forwarder: CallForwarder resolving module identities
            initial_module: Identity of the first logic module
            initial_admin: Identity of the first admin
            init_data: Optional call forwarded to initial_module once
            logger: Optional SelfLogger
            strict_admin: Reject non-admin selectors from the admin
                instead of forwarding them

        Raises:
            InvalidAddress: If either identity is null, or the module
                identity isn't deployed code
            InitializationFailed: If the init call fails (nothing is kept)
        """
        self._bind(gateway_id, store, forwarder, logger, strict_admin)

        if store.exists():
            raise GatewayError(f'Gateway {gateway_id} is already constructed')

        init_call = decode_call(init_data)

        with self._lock, store.transaction():
            self._check_module(initial_module)
            if is_null(initial_admin):
                raise InvalidAddress('Initial admin is the null identity')

            store.set(IMPLEMENTATION_SLOT, initial_module)
            store.set(ADMIN_SLOT, initial_admin)
            store.emit(UPGRADED, module=initial_module)
            store.emit(ADMIN_CHANGED, previous=None, admin=initial_admin)

            if init_call is not None:
                success, payload = self._forward(init_call, caller=initial_admin)
                if not success:
                    raise InitializationFailed(
                        f'Initialization call {init_call.selector} failed',
                        payload=payload,
                    )

        if self.logger:
            self.logger.info(
                'Gateway constructed',
                module=initial_module,
                admin=initial_admin,
                init_selector=init_call.selector if init_call else None,
            )

    @classmethod
    def open(
        cls,
        gateway_id: str,
        store: PersistentSlotStore,
        forwarder: CallForwarder,
        logger: Any = None,
        strict_admin: bool = False,
    ) -> 'Gateway':
        """
        Reopen a persisted gateway.

        Raises:
            GatewayNotFoundError: If the store holds no constructed gateway
        """
        if is_null(store.get(IMPLEMENTATION_SLOT)) or is_null(store.get(ADMIN_SLOT)):
            raise GatewayNotFoundError(f'No gateway constructed at {gateway_id}')

        gateway = cls.__new__(cls)
        gateway._bind(gateway_id, store, forwarder, logger, strict_admin)
        return gateway

    def _bind(self, gateway_id, store, forwarder, logger, strict_admin):
        self.address = gateway_id
        self.store = store
        self.forwarder = forwarder
        self.logger = logger
        self.strict_admin = strict_admin
        self._lock = threading.RLock()

    def dispatch(self, caller: str, selector: str, *args, value: Any = 0) -> Any:
        """
        Single entry point for every call.

        The admin gets the admin operations answered locally. Everything
        else, from anyone else, is forwarded untouched to the active module.

        Args:
            caller: Identity making the call
            selector: Operation name
            *args: Operation arguments
            value: Value attached to the call

        Returns:
            The admin operation's or the module's return value

        Raises:
            CallFailed: If the forwarded call failed (payload attached). A
                failed upgrade init call raises this after the upgrade
                itself has committed.
            InvalidAddress, NoOpUpgrade: From admin operations
            AdminCallRejected: In strict mode, admin calling a module operation
        """
        with self._lock:
            with self.store.transaction():
                result = self._route(caller, selector, args, value)

            if isinstance(result, _CommittedFailure):
                raise result.error
            return result

    def _route(self, caller: str, selector: str, args: tuple, value: Any) -> Any:
        if caller == self.store.get(ADMIN_SLOT):
            if selector in ADMIN_OPERATIONS:
                return self._admin_call(selector, args, value)

            if self.strict_admin:
                raise AdminCallRejected(
                    f'Admin cannot call module operation {selector}'
                )

        return self._forward_or_fail(Call(selector, tuple(args)), caller, value)

    def get_state(self) -> Dict[str, Any]:
        """Application state as the active module sees it"""
        module = self.store.get(IMPLEMENTATION_SLOT)
        return StorageHandle(self.store, self.forwarder.registry.layout(module)).get_all()

    def get_events(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Committed notifications emitted by this gateway"""
        if self.store.event_log is None:
            return []
        return self.store.event_log.query(event_type=event_type)

    # Admin operations

    def _admin_call(self, selector: str, args: tuple, value: Any) -> Any:
        handler = getattr(self, ADMIN_OPERATIONS[selector])
        kwargs = {'value': value} if 'value' in inspect.signature(handler).parameters else {}

        try:
            inspect.signature(handler).bind(*args, **kwargs)
        except TypeError as e:
            raise CallFailed(
                f'Bad arguments for {selector}: {e}',
                payload={'error': 'TypeError', 'message': str(e)},
            ) from e

        if self.logger:
            self.logger.debug('Admin call', selector=selector)

        return handler(*args, **kwargs)

    def _get_module(self) -> str:
        return self.store.get(IMPLEMENTATION_SLOT)

    def _get_admin(self) -> str:
        return self.store.get(ADMIN_SLOT)

    def _change_admin(self, new_admin: str) -> None:
        if is_null(new_admin):
            raise InvalidAddress('New admin is the null identity')

        previous = self.store.get(ADMIN_SLOT)
        self.store.set(ADMIN_SLOT, new_admin)
        self.store.emit(ADMIN_CHANGED, previous=previous, admin=new_admin)

        if self.logger:
            self.logger.warning('Admin changed', previous=previous, admin=new_admin)

    def _upgrade_module(self, new_module: str, init_data: Any = None, *, value: Any = 0) -> Any:
        if init_data is not None:
            return self._upgrade_and_initialize(new_module, init_data, value=value)

        self._swap_module(new_module)
        return None

    def _upgrade_and_initialize(self, new_module: str, init_data: Any, *, value: Any = 0) -> Any:
        """
        Swap the module, then forward init_data to it.

        The swap stays committed when the init call fails; only the init
        call's own writes are undone, and the failure is raised after commit.
        """
        try:
            init_call = decode_call(init_data)
        except ValueError as e:
            raise CallFailed(
                f'Bad init call: {e}',
                payload={'error': 'ValueError', 'message': str(e)},
            ) from e

        # Pointer first, so the initializer runs as the active module
        self._swap_module(new_module)

        if init_call is None:
            return None

        admin = self.store.get(ADMIN_SLOT)
        success, payload = self._forward_logged(init_call, admin, value)
        if not success:
            return _CommittedFailure(
                CallFailed(f'Init call {init_call.selector} failed', payload=payload)
            )
        return payload

    def _swap_module(self, new_module: str) -> None:
        self._check_module(new_module)

        if new_module == self.store.get(IMPLEMENTATION_SLOT):
            raise NoOpUpgrade(f'Module {new_module} is already active')

        previous = self.store.get(IMPLEMENTATION_SLOT)
        self.store.set(IMPLEMENTATION_SLOT, new_module)
        self.store.emit(UPGRADED, module=new_module)

        if self.logger:
            self.logger.warning('Module upgraded', previous=previous, module=new_module)

    # Forwarding

    def _check_module(self, module: Any) -> None:
        if is_null(module):
            raise InvalidAddress('Module is the null identity')
        if not self.forwarder.registry.is_deployed(module):
            raise InvalidAddress(f'No module deployed at {module}')

    def _forward(self, call: Call, caller: str, value: Any = 0):
        return self.forwarder.forward(
            self.store.get(IMPLEMENTATION_SLOT),
            call,
            self.store,
            caller=caller,
            value=value,
            gateway=self,
            logger=self.logger,
        )

    def _forward_logged(self, call: Call, caller: str, value: Any):
        if self.logger:
            self.logger.debug('Forwarding call', selector=call.selector, caller=caller)

        success, payload = self._forward(call, caller, value)

        if not success and self.logger:
            self.logger.error(
                f'{call.selector} failed',
                selector=call.selector,
                caller=caller,
                payload=payload,
            )

        return success, payload

    def _forward_or_fail(self, call: Call, caller: str, value: Any) -> Any:
        success, payload = self._forward_logged(call, caller, value)

        if not success:
            raise CallFailed(f'Call {call.selector} failed', payload=payload)

        return payload
