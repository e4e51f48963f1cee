"""
Self-Logger

Each business object logs to itself: a model type, a list or a settings
object writes its own append-only TSV file.

Design:
- logs/{object_id}/log.tsv under the runtime's base directory
- One row per entry: timestamp, level, message, plus any keyword fields
- New keyword fields extend the header (older rows read them as empty)
- Entries below min_level are dropped
- The file is rotated to log-TIMESTAMP.tsv once it passes max_log_size
- get_logs() filters by level and by any field
"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


LEVELS = {
    'DEBUG': 10,
    'INFO': 20,
    'WARNING': 30,
    'ERROR': 40,
    'CRITICAL': 50,
}

BASE_FIELDS = ['timestamp', 'level', 'message']


class SelfLogger:
    """
    TSV logger owned by a single object.

    Example:
        >>> logger = SelfLogger('model.Contact', base_dir='/tmp/fb')
        >>> logger.info('Fetched', id='c1')
        >>> logger.get_logs(id='c1')[0]['message']
        'Fetched'
    """

    def __init__(
        self,
        object_id: str,
        base_dir: Path | str,
        max_log_size: Optional[int] = None,
        min_level: str = 'DEBUG',
    ):
        """
        Initialize self-logger.

        Args:
            object_id: Name of the logging object (e.g. 'model.Contact')
            base_dir: Base directory for log storage
            max_log_size: Rotate after this many bytes (default: 10MB)
            min_level: Lowest level written
        """
        self.object_id = object_id
        self.base_dir = Path(base_dir)
        self.max_log_size = max_log_size or (10 * 1024 * 1024)
        self.min_level = min_level.upper()

        self.log_dir = self.base_dir / 'logs' / object_id
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / 'log.tsv'

    def log(self, level: str, message: str, **fields) -> None:
        """
        Append an entry.

        Args:
            level: DEBUG, INFO, WARNING, ERROR or CRITICAL
            message: Log message
            **fields: Extra columns (None values are skipped)
        """
        level = level.upper()
        if LEVELS.get(level, 0) < LEVELS.get(self.min_level, 0):
            return

        self._rotate_if_needed()

        entry = {
            'timestamp': datetime.now().isoformat(),
            'level': level,
            'message': message,
        }
        for key, value in fields.items():
            if value is not None:
                entry[key] = _serialize(value)

        fieldnames = self._get_fieldnames()
        extended = [key for key in entry if key not in fieldnames]

        if extended and self.log_file.exists():
            # Header grows: rewrite existing rows under the wider header
            rows = self._read(self.log_file)
            fieldnames += extended
            with open(self.log_file, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')
                writer.writeheader()
                writer.writerows(rows)
        else:
            fieldnames += extended

        is_new_file = not self.log_file.exists()

        with open(self.log_file, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')
            if is_new_file:
                writer.writeheader()
            writer.writerow(entry)

    def debug(self, message: str, **fields) -> None:
        self.log('DEBUG', message, **fields)

    def info(self, message: str, **fields) -> None:
        self.log('INFO', message, **fields)

    def warning(self, message: str, **fields) -> None:
        self.log('WARNING', message, **fields)

    def error(self, message: str, **fields) -> None:
        self.log('ERROR', message, **fields)

    def critical(self, message: str, **fields) -> None:
        self.log('CRITICAL', message, **fields)

    def get_logs(
        self,
        level: Optional[Union[str, List[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        **filters,
    ) -> List[Dict[str, Any]]:
        """
        Read entries, oldest first (rotated files before the current one).

        Args:
            level: Level or list of levels to keep
            limit: Maximum number of entries
            offset: Entries to skip
            **filters: Field equality filters (e.g. event='save')

        Returns:
            List of entries (dictionaries of strings)
        """
        entries: List[Dict[str, Any]] = []

        for rotated in sorted(self.log_dir.glob('log-*.tsv')):
            entries.extend(self._read(rotated))

        if self.log_file.exists():
            entries.extend(self._read(self.log_file))

        if level is not None:
            levels = [level] if isinstance(level, str) else level
            entries = [e for e in entries if e.get('level') in levels]

        for key, value in filters.items():
            entries = [e for e in entries if e.get(key) == _serialize(value)]

        entries = entries[offset:]
        if limit is not None:
            entries = entries[:limit]

        return entries

    def _get_fieldnames(self) -> List[str]:
        """Header of the current log file"""
        if not self.log_file.exists():
            return list(BASE_FIELDS)

        with open(self.log_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            return list(reader.fieldnames or BASE_FIELDS)

    def _rotate_if_needed(self) -> None:
        """Rename the current file once it passes max_log_size"""
        if not self.log_file.exists():
            return

        if self.log_file.stat().st_size < self.max_log_size:
            return

        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.log_file.rename(self.log_dir / f'log-{timestamp}.tsv')

    @staticmethod
    def _read(path: Path) -> List[Dict[str, Any]]:
        with open(path, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            return [{k: v for k, v in row.items() if v not in (None, '')} for row in reader]


def _serialize(value: Any) -> str:
    """Render a field value as a single TSV cell"""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)
