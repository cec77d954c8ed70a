"""
Self-Logger

Each gateway and broker logs to itself (not to an external logging system).

Design:
- Logs stored in TSV files (human-readable, grep-able)
- Append-only
- One log directory per object: logs/{object_id}/log.tsv
- Log rotation when the file exceeds a size limit
- Query logs with filters (level, custom fields)

Logging sits outside the transaction model: an aborted call keeps the
entries it wrote, which is how failed calls stay visible.
"""

import csv
import hashlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


DEFAULT_FIELDNAMES = ['entry_id', 'timestamp', 'level', 'message']


class SelfLogger:
    """
    Self-logging for gateways and brokers.

    Each object has its own log file stored in:
    logs/{object_id}/log.tsv
    """

    def __init__(
        self,
        object_id: str,
        base_dir: Path | str,
        max_log_size: Optional[int] = None,
    ):
        """
        Initialize self-logger.

        Args:
            object_id: ID of the gateway or broker
            base_dir: Base directory for log storage
            max_log_size: Maximum log file size in bytes before rotation
                         (default: 10MB)
        """
        self.object_id = object_id
        self.base_dir = Path(base_dir)
        self.max_log_size = max_log_size or (10 * 1024 * 1024)

        self.log_dir = self.base_dir / 'logs' / object_id
        self.log_file = self.log_dir / 'log.tsv'

    def log(self, level: str, message: str, **kwargs) -> None:
        """
        Log an entry.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            message: Log message
            **kwargs: Additional fields to log (selector, caller, etc.)
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._rotate_if_needed()

        timestamp = datetime.now().isoformat()

        entry = {
            'entry_id': self._generate_entry_id(timestamp, level, message),
            'timestamp': timestamp,
            'level': level,
            'message': message,
            **kwargs,
        }

        # Don't log empty fields
        entry = {k: v for k, v in entry.items() if v is not None}

        fieldnames = self._get_fieldnames()
        for key in entry.keys():
            if key not in fieldnames:
                fieldnames.append(key)

        is_new_file = not self.log_file.exists()

        if not is_new_file and fieldnames != self._get_fieldnames():
            # New column: rewrite the file with the widened header
            self._rewrite_with_fieldnames(fieldnames)

        with open(self.log_file, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')

            if is_new_file:
                writer.writeheader()

            writer.writerow(entry)

    def debug(self, message: str, **kwargs) -> None:
        """Log DEBUG level message"""
        self.log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log INFO level message"""
        self.log('INFO', message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log WARNING level message"""
        self.log('WARNING', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log ERROR level message"""
        self.log('ERROR', message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        """Log CRITICAL level message"""
        self.log('CRITICAL', message, **kwargs)

    def get_logs(
        self,
        level: Optional[Union[str, List[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        **filters,
    ) -> List[Dict[str, Any]]:
        """
        Get log entries.

        Args:
            level: Filter by level (string or list of strings)
            limit: Maximum number of entries to return
            offset: Number of entries to skip
            **filters: Additional filters (e.g., selector='getValue')

        Returns:
            List of log entries (dictionaries)
        """
        entries = []

        # Rotated files hold the older entries
        for log_file in sorted(self.log_dir.glob('log-*.tsv')) + [self.log_file]:
            if not log_file.exists():
                continue
            with open(log_file, 'r', newline='') as f:
                reader = csv.DictReader(f, delimiter='\t')
                entries.extend(reader)

        if level is not None:
            if isinstance(level, str):
                level = [level]
            entries = [e for e in entries if e.get('level') in level]

        for key, value in filters.items():
            entries = [e for e in entries if e.get(key) == value]

        if offset > 0:
            entries = entries[offset:]

        if limit is not None:
            entries = entries[:limit]

        return entries

    def _get_fieldnames(self) -> List[str]:
        """Get existing fieldnames from log file"""
        if not self.log_file.exists():
            return list(DEFAULT_FIELDNAMES)

        with open(self.log_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            return list(reader.fieldnames or DEFAULT_FIELDNAMES)

    def _rewrite_with_fieldnames(self, fieldnames: List[str]) -> None:
        with open(self.log_file, 'r', newline='') as f:
            rows = list(csv.DictReader(f, delimiter='\t'))

        with open(self.log_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')
            writer.writeheader()
            writer.writerows(rows)

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size"""
        if not self.log_file.exists():
            return

        if self.log_file.stat().st_size < self.max_log_size:
            return

        # Rename current log to log-TIMESTAMP.tsv; next write starts a new file
        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.log_file.rename(self.log_dir / f'log-{timestamp}.tsv')

    def _generate_entry_id(self, timestamp: str, level: str, message: str) -> str:
        """Hash of timestamp + object_id + message"""
        content = f"{timestamp}:{self.object_id}:{level}:{message}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]
