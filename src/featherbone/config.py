"""
Featherbone configuration loader

Reads featherbone.tsv (key<TAB>value rows, '#' comments) for the data
source settings. Falls back to environment variables, then defaults.
"""

import csv
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .core.errors import ConfigurationError


DEFAULTS = {
    'url': 'http://localhost:8080',
    'base_dir': 'data',
    'timeout': '30',
    'data_source': 'http',
    'log_level': 'INFO',
}

ENVIRONMENT = {
    'url': 'FEATHERBONE_URL',
    'base_dir': 'FEATHERBONE_BASE_DIR',
    'timeout': 'FEATHERBONE_TIMEOUT',
    'data_source': 'FEATHERBONE_DATA_SOURCE',
    'log_level': 'FEATHERBONE_LOG_LEVEL',
}

DATA_SOURCES = ('http', 'local')


class FeatherboneConfig:
    """Load and manage client configuration"""

    def __init__(self, config_file: str | Path = "featherbone.tsv", environ: Optional[Dict[str, str]] = None):
        self.config_file = Path(config_file)
        self.environ = os.environ if environ is None else environ
        self.values: Dict[str, str] = {}
        self._load()

    def _load(self):
        """Load configuration: file first, then environment, then defaults"""
        from_file = self._read_file()

        for key, default in DEFAULTS.items():
            if key in from_file:
                self.values[key] = from_file[key]
            else:
                self.values[key] = self.environ.get(ENVIRONMENT[key], default)

        # Unknown keys in the file are kept for callers that want them
        for key, value in from_file.items():
            self.values.setdefault(key, value)

        if self.values['data_source'] not in DATA_SOURCES:
            raise ConfigurationError(
                f"data_source must be one of {', '.join(DATA_SOURCES)}, "
                f"got {self.values['data_source']!r}"
            )

    def _read_file(self) -> Dict[str, str]:
        if not self.config_file.exists():
            return {}

        values = {}
        with open(self.config_file, 'r', encoding='utf-8') as f:
            reader = csv.reader(
                (line for line in f if line.strip() and not line.startswith('#')),
                delimiter='\t'
            )
            for row in reader:
                if len(row) < 2 or not row[0].strip():
                    continue
                values[row[0].strip()] = row[1].strip()
        return values

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    @property
    def url(self) -> str:
        return self.values['url']

    @property
    def base_dir(self) -> Path:
        return Path(self.values['base_dir'])

    @property
    def timeout(self) -> float:
        try:
            return float(self.values['timeout'])
        except ValueError:
            raise ConfigurationError(f"timeout must be a number, got {self.values['timeout']!r}")

    @property
    def data_source(self) -> str:
        return self.values['data_source']

    @property
    def log_level(self) -> str:
        return self.values['log_level'].upper()


# Global instance (lazy loaded)
_config = None


def get_config() -> FeatherboneConfig:
    """Get the global configuration"""
    global _config
    if _config is None:
        _config = FeatherboneConfig()
    return _config


def reload_config():
    """Reload configuration from file"""
    global _config
    _config = FeatherboneConfig()
