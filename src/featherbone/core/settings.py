"""
Settings

Named configuration objects persisted under /settings/{name}.

Design:
- One Settings instance per name per SettingsStore
- Dirtiness is whole-object: callers signal changed() after editing data
  (set() does it for them)
- Saves carry the etag from the last fetch; the server rejects a save if
  someone else saved in between
- Data source failures are terminal: the instance stays in Error
"""

from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .errors import ConfigurationError, DataSourceError
from .state import StateMachine


class SettingsState(Enum):
    NEW = '/Ready/New'
    CLEAN = '/Ready/Fetched/Clean'
    DIRTY = '/Ready/Fetched/Dirty'
    FETCHING = '/Busy/Fetching'
    SAVING = '/Busy/Saving'
    ERROR = '/Error'


_TABLE = {
    (SettingsState.NEW, 'fetch'): SettingsState.FETCHING,
    (SettingsState.NEW, 'changed'): SettingsState.DIRTY,
    (SettingsState.CLEAN, 'fetch'): SettingsState.FETCHING,
    (SettingsState.CLEAN, 'changed'): SettingsState.DIRTY,
    (SettingsState.DIRTY, 'fetch'): SettingsState.FETCHING,
    (SettingsState.DIRTY, 'save'): SettingsState.SAVING,
    (SettingsState.FETCHING, 'fetched'): SettingsState.CLEAN,
    (SettingsState.FETCHING, 'error'): SettingsState.ERROR,
    (SettingsState.SAVING, 'saved'): SettingsState.CLEAN,
    (SettingsState.SAVING, 'error'): SettingsState.ERROR,
}


class Settings:
    """
    A named settings object.

    Example:
        >>> settings = store.get('catalog')
        >>> settings.fetch().result()
        {'Contact': {...}}
        >>> settings.set('theme', 'dark')
        >>> settings.save()
    """

    def __init__(
        self,
        name: str,
        data_source=None,
        definition: Optional[Dict[str, Any]] = None,
        logger=None,
    ):
        """
        Initialize settings.

        Args:
            name: Settings name
            data_source: Where fetch/save requests go
            definition: Optional definition (name, description, properties)
            logger: Optional SelfLogger
        """
        self.name = name
        self.data_source = data_source
        self.definition = definition or {'name': name}
        self.logger = logger

        self.data: Dict[str, Any] = {}
        self.etag: Optional[str] = None
        self._last_error: Optional[Exception] = None

        self.state = StateMachine(
            SettingsState,
            SettingsState.NEW,
            _TABLE,
            terminal=[SettingsState.ERROR],
            name=f'Settings.{name}',
            logger=logger,
        )

    def __repr__(self) -> str:
        return f'<Settings {self.name} {self.state.current.value}>'

    def path(self) -> str:
        return f'/settings/{self.name}'

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """
        Set one key and mark the settings dirty.

        Ignored while busy or in error.

        Returns:
            True if the value was stored
        """
        if not self.state.can_send('changed') and self.state.current is not SettingsState.DIRTY:
            return False
        self.data[key] = value
        self.changed()
        return True

    def changed(self) -> bool:
        """Signal that data was edited"""
        return self.state.send('changed')

    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def fetch(self, merge: bool = False) -> Optional[Future]:
        """
        Fetch settings from the server.

        Args:
            merge: Merge server keys over local data instead of replacing it

        Returns:
            Future resolving to data, or None while busy
        """
        if not self.state.can_send('fetch'):
            return None
        self._require_data_source()

        deferred: Future = Future()
        self.state.send('fetch', deferred)

        def fetched(result: Any) -> None:
            result = result or {}
            server = result.get('data') or {}
            if merge:
                self.data.update(server)
            else:
                self.data = dict(server)
            self.etag = result.get('etag')
            self.state.send('fetched')
            deferred.set_result(self.data)

        self._request('GET', None, deferred, SettingsState.FETCHING, fetched)
        return deferred

    def save(self) -> Optional[Future]:
        """
        Save settings (only when dirty).

        Returns:
            Future resolving to data, or None if not dirty
        """
        if not self.state.can_send('save'):
            return None
        self._require_data_source()

        deferred: Future = Future()
        self.state.send('save', deferred)

        def saved(result: Any) -> None:
            if isinstance(result, dict) and result.get('etag'):
                self.etag = result['etag']
            self.state.send('saved')
            deferred.set_result(self.data)

        body = {'etag': self.etag, 'data': self.data}
        self._request('PUT', body, deferred, SettingsState.SAVING, saved)
        return deferred

    def _require_data_source(self) -> None:
        if self.data_source is None:
            raise ConfigurationError(f'No data source for settings {self.name}')

    def _request(
        self,
        method: str,
        body: Optional[Dict[str, Any]],
        deferred: Future,
        busy: SettingsState,
        on_success: Callable[[Any], None],
    ) -> None:
        path = self.path()

        def done(future: Future) -> None:
            if self.state.current is not busy:
                deferred.cancel()
                return

            error = future.exception()
            if error is None:
                try:
                    on_success(future.result())
                except Exception as e:
                    error = e
            elif not isinstance(error, DataSourceError):
                error = DataSourceError(str(error))

            if error is not None:
                self._last_error = error
                if self.logger:
                    self.logger.error(str(error), method=method, path=path)
                self.state.send('error')
                deferred.set_exception(error)
                return

            if self.logger:
                self.logger.info(f'{method} {path}', etag=self.etag)

        self.data_source.request(method, path, body).add_done_callback(done)


class SettingsStore:
    """
    Cache of Settings singletons.

    Example:
        >>> store = SettingsStore(data_source=ds)
        >>> store.get('catalog') is store.get({'name': 'catalog'})
        True
    """

    def __init__(self, data_source=None, logger_factory: Optional[Callable[[str], Any]] = None):
        """
        Initialize store.

        Args:
            data_source: Data source handed to every Settings
            logger_factory: Called with the settings name to get its logger
        """
        self.data_source = data_source
        self.logger_factory = logger_factory
        self._settings: Dict[str, Settings] = {}

    def get(self, definition: Union[str, Dict[str, Any], None]) -> Settings:
        """
        Return the Settings for a name, creating it on first use.

        Args:
            definition: Settings name, or a definition dict with 'name'

        Raises:
            ConfigurationError: If no name is given
        """
        if isinstance(definition, str):
            definition = {'name': definition}

        name = (definition or {}).get('name')
        if not name:
            raise ConfigurationError('Settings name is required')

        if name not in self._settings:
            logger = self.logger_factory(name) if self.logger_factory else None
            self._settings[name] = Settings(name, self.data_source, definition, logger)

        return self._settings[name]

    def names(self):
        return sorted(self._settings)
