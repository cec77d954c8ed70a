"""
Slot Store

Persistent key/value storage for a gateway (or broker), addressed by slot key.

Design:
- state/{object_id}/slots.tsv - one row per slot (key, JSON value)
- Reserved slots use hash-derived keys (see identity.py)
- Application state is reached only through StorageHandle, which refuses
  reserved keys, so a module can never read or overwrite them
- Values must be JSON data; they are stored (and read back live) in their
  JSON form, so a reloaded store sees exactly what the running one saw
- Changes made inside transaction() are undone if the block raises, and
  written to disk only when the outermost transaction commits
- slots.tsv is replaced whole, never rewritten in place
- Notifications emitted inside a transaction are held back until commit
"""

import copy
import csv
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from object_gateway.core.errors import InvalidSlotValue, SlotCollisionError
from object_gateway.core.identity import is_reserved_key


class PersistentSlotStore:
    """
    Slot storage for one gateway or broker instance.

    State is stored in:
    - state/{object_id}/slots.tsv
    """

    def __init__(self, object_id: str, base_dir: Path | str, event_log=None):
        """
        Initialize slot store.

        Args:
            object_id: ID of the owning gateway or broker
            base_dir: Base directory for state storage
            event_log: Optional EventLog receiving committed notifications
        """
        self.object_id = object_id
        self.base_dir = Path(base_dir)
        self.event_log = event_log

        # Directory is created on first save, so an aborted construction
        # leaves nothing behind
        self.state_dir = self.base_dir / 'state' / object_id
        self.state_file = self.state_dir / 'slots.tsv'

        self._slots = self._load()
        self._depth = 0
        self._pending_events: List[Tuple[str, Dict[str, Any]]] = []

    def exists(self) -> bool:
        """True once the store has been committed to disk"""
        return self.state_file.exists()

    def get(self, key: str, default: Any = None) -> Any:
        """Get slot value"""
        if key not in self._slots:
            return default
        return copy.deepcopy(self._slots[key])

    def set(self, key: str, value: Any) -> None:
        """
        Set slot value.

        Raises:
            InvalidSlotValue: If value is not JSON data
        """
        value = _normalize(key, value)
        with self.transaction():
            self._slots[key] = value

    def delete(self, key: str) -> None:
        """Delete slot value"""
        if key in self._slots:
            with self.transaction():
                del self._slots[key]

    def keys(self) -> List[str]:
        return sorted(self._slots)

    def get_all(self) -> Dict[str, Any]:
        """Get all slots"""
        return copy.deepcopy(self._slots)

    def emit(self, event_type: str, **payload) -> None:
        """
        Emit a notification.

        Inside a transaction the event is held until the outermost
        transaction commits; it is dropped if the transaction aborts.
        """
        self._pending_events.append((event_type, payload))
        if self._depth == 0:
            self._flush_events()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator['PersistentSlotStore']:
        """
        Run a block atomically against this store.

        Transactions nest: an inner block that raises undoes only its own
        changes. Disk writes and notifications happen when the outermost
        block completes.
        """
        snapshot = copy.deepcopy(self._slots)
        events_mark = len(self._pending_events)
        self._depth += 1

        try:
            yield self
            if self._depth == 1:
                self._save()
        except BaseException:
            self._slots = snapshot
            del self._pending_events[events_mark:]
            raise
        finally:
            self._depth -= 1

        if self._depth == 0:
            self._flush_events()

    def _flush_events(self) -> None:
        pending, self._pending_events = self._pending_events, []
        if self.event_log is None:
            return
        for event_type, payload in pending:
            self.event_log.append(event_type, payload)

    def _load(self) -> Dict[str, Any]:
        """Load slots from file"""
        if not self.state_file.exists():
            return {}

        slots = {}
        with open(self.state_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            for row in reader:
                slots[row['key']] = json.loads(row['value'])

        return slots

    def _save(self) -> None:
        """Save slots to file"""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        temp_file = self.state_file.with_suffix('.tsv.tmp')

        try:
            with open(temp_file, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=['key', 'value'], delimiter='\t')
                writer.writeheader()
                for key, value in sorted(self._slots.items()):
                    writer.writerow({'key': key, 'value': json.dumps(value)})
            temp_file.replace(self.state_file)
        except BaseException:
            temp_file.unlink(missing_ok=True)
            raise


def _normalize(key: str, value: Any) -> Any:
    """Copy a slot value through its JSON form"""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise InvalidSlotValue(f'Value for {key} is not JSON data: {e}') from e


class StorageHandle:
    """
    Application-state view of a gateway's slot store.

    Handed to module code on every forwarded call. Field defaults come from
    the module's declared layout (its ``__state__`` dict).
    """

    def __init__(self, store: PersistentSlotStore, layout: Optional[Dict[str, Any]] = None):
        self._store = store
        self._layout = layout or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get field value (layout default if unset)"""
        self._check_key(key)
        if default is None and key in self._layout:
            default = copy.deepcopy(self._layout[key])
        return self._store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set field value"""
        self._check_key(key)
        self._store.set(key, value)

    def delete(self, key: str) -> None:
        """Delete field value"""
        self._check_key(key)
        self._store.delete(key)

    def get_all(self) -> Dict[str, Any]:
        """Get all application fields (layout defaults included)"""
        fields = copy.deepcopy(self._layout)
        for key, value in self._store.get_all().items():
            if not is_reserved_key(key):
                fields[key] = value
        return fields

    def _check_key(self, key: str) -> None:
        if not isinstance(key, str) or not key.isidentifier():
            if is_reserved_key(key):
                raise SlotCollisionError(f'Key is reserved for the gateway: {key}')
            raise SlotCollisionError(f'Application state keys must be identifiers: {key!r}')
