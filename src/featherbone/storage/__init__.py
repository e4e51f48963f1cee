"""
Storage for the local data source.

Records live in TSV files (human-readable, grep-able):
- state/{name}/state.tsv with columns key and value
- value holds the record as JSON
"""

import csv
import json
from pathlib import Path
from typing import Any, Dict, Optional


__all__ = ["TsvStore"]


class TsvStore:
    """
    Key/value store for one collection of JSON records.

    Each write rewrites the whole file; collections are small.
    """

    def __init__(self, name: str, base_dir: Path | str):
        """
        Initialize store.

        Args:
            name: Collection name (feather name or '$settings')
            base_dir: Base directory for state storage
        """
        self.name = name
        self.base_dir = Path(base_dir)

        self.state_dir = self.base_dir / 'state' / name
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.state_file = self.state_dir / 'state.tsv'

        self._records = self._load()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a record (a copy, so callers can't mutate the store)"""
        if key not in self._records:
            return default
        return json.loads(json.dumps(self._records[key]))

    def set(self, key: str, value: Any) -> None:
        """Store a record"""
        self._records[key] = value
        self._save()

    def delete(self, key: str) -> bool:
        """Delete a record; False if it didn't exist"""
        if key not in self._records:
            return False
        del self._records[key]
        self._save()
        return True

    def get_all(self) -> Dict[str, Any]:
        """All records, in insertion order"""
        return json.loads(json.dumps(self._records))

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def _load(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {}

        records = {}
        with open(self.state_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            for row in reader:
                records[row['key']] = json.loads(row['value'])
        return records

    def _save(self) -> None:
        with open(self.state_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=['key', 'value'], delimiter='\t')
            writer.writeheader()
            for key, value in self._records.items():
                writer.writerow({'key': key, 'value': json.dumps(value)})


def load_json(path: Path | str) -> Optional[Any]:
    """Read a JSON file, None if missing"""
    path = Path(path)
    if not path.exists():
        return None
    return json.loads(path.read_text())
