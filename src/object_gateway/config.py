"""
Gateway configuration loader

Reads gateway.tsv (key <TAB> value) for runtime settings. Environment
variables override the file; defaults fill in whatever neither sets.

Priority:
1. Environment variables (GATEWAY_BASE_DIR, GATEWAY_PORT, ...)
2. gateway.tsv
3. Defaults
"""

import csv
import os
from pathlib import Path
from typing import Any, Dict


DEFAULTS = {
    'base_dir': './data',
    'station_id': 'station1',
    'host': 'localhost',
    'port': 8001,
    'strict_admin': False,
    'max_log_size': 10 * 1024 * 1024,
}

ENV_PREFIX = 'GATEWAY_'

_TRUE = {'1', 'true', 'yes', 'on'}


class GatewayConfig:
    """Load and manage gateway runtime configuration"""

    def __init__(self, config_file: str | Path = "gateway.tsv"):
        self.config_file = Path(config_file)
        self.values: Dict[str, Any] = dict(DEFAULTS)
        self.sources: Dict[str, str] = {key: 'default' for key in DEFAULTS}
        self._load()

    def _load(self):
        """Load configuration from TSV file, then environment"""
        if self.config_file.exists():
            with open(self.config_file, 'r', encoding='utf-8') as f:
                reader = csv.reader(
                    (line for line in f if line.strip() and not line.startswith('#')),
                    delimiter='\t',
                )
                for row in reader:
                    if len(row) < 2:
                        continue
                    key = row[0].strip()
                    if key in DEFAULTS:
                        self.values[key] = self._coerce(key, row[1].strip())
                        self.sources[key] = 'file'

        for key in DEFAULTS:
            env_value = os.environ.get(ENV_PREFIX + key.upper())
            if env_value is not None:
                self.values[key] = self._coerce(key, env_value)
                self.sources[key] = 'env'

    def _coerce(self, key: str, raw: str) -> Any:
        default = DEFAULTS[key]
        if isinstance(default, bool):
            return raw.lower() in _TRUE
        if isinstance(default, int):
            return int(raw)
        return raw

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    @property
    def base_dir(self) -> Path:
        return Path(self.values['base_dir'])

    @property
    def strict_admin(self) -> bool:
        return self.values['strict_admin']

    @property
    def max_log_size(self) -> int:
        return self.values['max_log_size']

    def get_url(self, path: str = "") -> str:
        """Get full URL for this station"""
        return f"http://{self.values['host']}:{self.values['port']}{path}"


# Global instance (lazy loaded)
_config = None


def get_config() -> GatewayConfig:
    """Get the global gateway configuration"""
    global _config
    if _config is None:
        _config = GatewayConfig()
    return _config


def reload_config():
    """Reload configuration from file"""
    global _config
    _config = GatewayConfig()
