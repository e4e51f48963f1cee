"""
Local Data Source

Serves the Featherbone data API in-process, backed by TSV files.
Useful offline and in tests; behaves like the server for the requests the
object layer makes.

Behaviour:
- POST /data/{plural} creates a record, assigning id (and etag when the
  record carries one); responds with the stored record
- GET /data/{name}/{id} returns the record, 404 if missing
- GET /data/{plural} returns all records matching equality filters
- PATCH /data/{name}/{id} applies changed attributes; a stale etag is
  rejected with 409; responds with the stored record
- DELETE /data/{name}/{id} removes the record
- GET /settings/{name} returns {etag, data} or None
- PUT /settings/{name} stores {etag, data}; 409 if another writer changed
  the settings since the caller's etag; responds with the new etag
"""

from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.stream import create_id
from ..storage import TsvStore
from ..utils import to_spinal_case
from .datasource import DataSource, error_for


SETTINGS = '$settings'


class LocalDataSource(DataSource):
    """
    File-backed data source.

    Example:
        >>> ds = LocalDataSource('/tmp/fb', catalog=catalog)
        >>> ds.request('POST', '/data/contacts', {'data': {'name': 'Alice'}}).result()
        {'id': '5f0c...', 'name': 'Alice'}
    """

    def __init__(self, base_dir: Path | str, catalog=None, logger=None):
        """
        Initialize local data source.

        Args:
            base_dir: Directory holding state/{name}/state.tsv files
            catalog: Catalog used to map plural paths to feathers
            logger: Optional SelfLogger
        """
        super().__init__(logger=logger)
        self.base_dir = Path(base_dir)
        self.catalog = catalog

    def request(self, method, path, body=None, params=None) -> Future:
        method = method.upper()
        return self._settle(method, path, lambda: self._dispatch(method, path, body, params))

    def store(self, name: str) -> TsvStore:
        """TSV store for a collection, read fresh so other writers are seen"""
        return TsvStore(name, self.base_dir)

    def _dispatch(self, method: str, path: str, body, params) -> Any:
        parts = [p for p in path.split('?')[0].split('/') if p]

        if len(parts) == 2 and parts[0] == 'settings':
            if method == 'GET':
                return self._get_settings(parts[1])
            if method == 'PUT':
                return self._put_settings(parts[1], body or {})

        elif parts and parts[0] == 'data':
            if len(parts) == 3:
                return self._record(method, path, parts[1], parts[2], body or {})
            if len(parts) == 2:
                return self._collection(method, path, parts[1], body or {}, params or {})

        raise error_for(method, f'{method} {path}: not found', 404)

    def _record(self, method: str, path: str, segment: str, record_id: str, body) -> Any:
        store = self.store(segment)

        if record_id not in store:
            raise error_for(method, f'Record {record_id} not found', 404)

        if method == 'GET':
            return store.get(record_id)

        if method == 'PATCH':
            record = store.get(record_id)
            changes = dict(body.get('data') or {})
            etag = body.get('etag', changes.pop('etag', None))

            if record.get('etag') and etag and etag != record['etag']:
                raise error_for(method, f'Record {record_id} changed by another user. '
                                        'Save failed.', 409)

            record.update(changes)
            record['id'] = record_id
            if 'etag' in record:
                record['etag'] = create_id()
            store.set(record_id, record)
            return record

        if method == 'DELETE':
            store.delete(record_id)
            return True

        raise error_for(method, f'{method} {path}: not allowed', 405)

    def _collection(self, method: str, path: str, segment: str, body, params) -> Any:
        name = self._resolve(segment)
        store = self.store(name)

        if method == 'GET':
            rows = list(store.get_all().values())
            for key, value in params.items():
                rows = [row for row in rows if row.get(key) == value]
            return rows

        if method == 'POST':
            record = dict(body.get('data') or {})
            record_id = record.get('id') or create_id()

            if record_id in store:
                raise error_for(method, f'Record {record_id} already exists', 409)

            record['id'] = record_id
            if 'etag' in record:
                record['etag'] = create_id()
            store.set(record_id, record)
            return record

        raise error_for(method, f'{method} {path}: not allowed', 405)

    def _resolve(self, segment: str) -> str:
        """Map a plural path segment to the feather's record segment"""
        if self.catalog is not None:
            for name in self.catalog.feather_names():
                feather = self.catalog.data()[name]
                plural = feather.get('plural')
                if plural and to_spinal_case(plural) == segment:
                    return to_spinal_case(name)
        return segment

    def _get_settings(self, name: str) -> Optional[Dict[str, Any]]:
        return self.store(SETTINGS).get(name)

    def _put_settings(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        store = self.store(SETTINGS)
        current = store.get(name)

        if current is not None and current.get('etag') != body.get('etag'):
            raise error_for('PUT', f'Settings for "{name}" changed by another user. '
                                   'Save failed.', 409)

        etag = create_id()
        store.set(name, {'etag': etag, 'data': body.get('data') or {}})
        return {'etag': etag}

    def records(self, segment: str) -> List[Dict[str, Any]]:
        """All stored records for a feather path segment"""
        return list(self.store(segment).get_all().values())
