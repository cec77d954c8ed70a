"""
Event Log

Append-only notification log for a gateway or broker.

Design:
- events/{emitter_id}/events.tsv - one row per committed notification
- Columns: event_id, timestamp, emitter, event_type, payload (JSON)
- Written by PersistentSlotStore when a transaction commits, never before
- Never rewritten; query() reads the whole file in order
"""

import csv
import json
import secrets
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


# Notification types
UPGRADED = 'Upgraded'
ADMIN_CHANGED = 'AdminChanged'
OWNERSHIP_TRANSFERRED = 'OwnershipTransferred'

FIELDNAMES = ['event_id', 'timestamp', 'emitter', 'event_type', 'payload']


class EventLog:
    """
    Notification log for one emitter.

    Stored in:
    - events/{emitter_id}/events.tsv
    """

    def __init__(self, emitter_id: str, base_dir: Path | str):
        self.emitter_id = emitter_id
        self.base_dir = Path(base_dir)
        self.events_dir = self.base_dir / 'events' / emitter_id
        self.events_file = self.events_dir / 'events.tsv'

    def append(self, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Append a notification.

        Args:
            event_type: Notification name (Upgraded, AdminChanged, ...)
            payload: Notification fields

        Returns:
            The stored event
        """
        self.events_dir.mkdir(parents=True, exist_ok=True)

        event = {
            'event_id': secrets.token_hex(8),
            'timestamp': time.time(),
            'emitter': self.emitter_id,
            'event_type': event_type,
            'payload': payload,
        }

        is_new_file = not self.events_file.exists()

        with open(self.events_file, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES, delimiter='\t')

            if is_new_file:
                writer.writeheader()

            writer.writerow({**event, 'payload': json.dumps(payload)})

        return event

    def query(
        self,
        event_type: Optional[str] = None,
        since: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get committed events, oldest first.

        Args:
            event_type: Only events of this type
            since: Only events with timestamp >= since
            limit: Maximum number of events to return
        """
        if not self.events_file.exists():
            return []

        events = []
        with open(self.events_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            for row in reader:
                row['timestamp'] = float(row['timestamp'])
                row['payload'] = json.loads(row['payload'])
                events.append(row)

        if event_type is not None:
            events = [e for e in events if e['event_type'] == event_type]

        if since is not None:
            events = [e for e in events if e['timestamp'] >= since]

        if limit is not None:
            events = events[:limit]

        return events

    def count(self) -> int:
        return len(self.query())
