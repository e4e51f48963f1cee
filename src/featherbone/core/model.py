"""
Model

A persisting business object built from a feather.

A Model is:
- Data (one Property per feather property, in `model.data`)
- State (New, Fetched/Clean, Fetched/Dirty, Busy, Delete, Deleted, Error)
- Behaviour (change, validation, error and load hooks)
- Network-backed (fetch/save/delete through a data source)

Lifecycle:
    New --save--> Busy/Saving/Posting --fetched--> Fetched/Clean
    Fetched/Clean --changed--> Fetched/Dirty --save--> Busy/Saving/Patching
    Ready --fetch--> Busy/Fetching --fetched--> Fetched/Clean
    Fetched --delete--> Delete --save--> Busy/Deleting --deleted--> Deleted
    Busy --error--> Error (terminal)

Only one Busy transition runs at a time: fetch/save sent while Busy are
ignored and the call returns None. Validation runs before a save is
accepted; a failing validator rejects the returned future and leaves the
state alone.
"""

import copy
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..utils import to_spinal_case
from .errors import ConfigurationError, DataSourceError, FeatherboneError, ValidationError
from .state import StateMachine
from .stream import (
    CalculatedProperty,
    Formatter,
    Property,
    PropertyState,
    is_child,
    is_to_many,
    is_to_one,
    resolve_default,
    resolve_formatter,
)


class ModelState(Enum):
    NEW = '/Ready/New'
    CLEAN = '/Ready/Fetched/Clean'
    DIRTY = '/Ready/Fetched/Dirty'
    FETCHING = '/Busy/Fetching'
    POSTING = '/Busy/Saving/Posting'
    PATCHING = '/Busy/Saving/Patching'
    DELETING = '/Busy/Deleting'
    DELETE = '/Delete'
    DELETED = '/Deleted'
    ERROR = '/Error'


READY = (ModelState.NEW, ModelState.CLEAN, ModelState.DIRTY)
BUSY = (ModelState.FETCHING, ModelState.POSTING, ModelState.PATCHING, ModelState.DELETING)


class Model:
    """
    Stateful business object.

    Example:
        >>> contact = Model({'name': 'Alice'}, catalog.get_feather('Contact'),
        ...                 data_source=ds)
        >>> contact['name']
        'Alice'
        >>> contact.save().result()['id']()
        '5f0c...'
        >>> contact.state.current
        <ModelState.CLEAN: '/Ready/Fetched/Clean'>
    """

    is_model = True

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        feather: Optional[Dict[str, Any]] = None,
        *,
        catalog=None,
        data_source=None,
        logger=None,
    ):
        """
        Initialize model.

        Args:
            data: Initial values (missing keys get feather defaults)
            feather: Feather definition (see Catalog.get_feather)
            catalog: Catalog used to build related models
            data_source: Where fetch/save/delete requests go
            logger: Optional SelfLogger
        """
        feather = feather or {}

        self.feather = feather
        self.name = feather.get('name') or 'Object'
        self.plural = feather.get('plural')
        self.id_property = 'id'
        self.catalog = catalog
        self.data_source = data_source
        self.logger = logger

        self.data: Dict[str, Property] = {}

        self._validators: List[Callable[[], None]] = []
        self._error_handlers: List[Callable[[Exception], None]] = []
        self._load_handlers: List[Callable[['Model'], None]] = []
        self._last_error: Optional[Exception] = None
        self._last_fetched: Dict[str, Any] = {}
        self._freeze_cache: Dict[str, bool] = {}
        self._before_delete = ModelState.CLEAN
        self._save_enabled = True

        self.state = StateMachine(
            ModelState,
            ModelState.NEW,
            self._transitions(),
            terminal=[ModelState.ERROR],
            name=f'Model.{self.name}',
            logger=logger,
        )
        self.state.on_enter(ModelState.CLEAN, self._settle_children)

        self._init_properties(data or {})
        self.on_validate(self._validate_required)

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.name} id={self.id()!r} {self.state.current.value}>'

    def __getitem__(self, key: str) -> Any:
        return self.data[key]()

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key](value)

    def __contains__(self, key: str) -> bool:
        return key in self.data

    # ..........................................................
    # PUBLIC
    #

    def id(self) -> Any:
        """Unique identifier value"""
        prop = self.data.get(self.id_property)
        return prop() if prop is not None else None

    def path(self, name: str, id: Any = None) -> str:
        """Resource path for server requests"""
        path = '/data/' + to_spinal_case(name)
        if id:
            path += f'/{id}'
        return path

    def fetch(self) -> Optional[Future]:
        """
        Fetch data for the current id.

        Returns:
            Future resolving to model.data, or None if the current state
            doesn't accept a fetch

        Raises:
            ConfigurationError: If the model has no data source
        """
        if not self.state.can_send('fetch'):
            return None

        self._require_data_source()
        deferred: Future = Future()
        self.state.send('fetch', deferred)

        self._request('GET', self.path(self.name, self.id()), None,
                      deferred, ModelState.FETCHING, self._fetched)
        return deferred

    def save(self) -> Optional[Future]:
        """
        Persist the model: POST when new, PATCH when dirty, DELETE when
        marked for deletion.

        Returns:
            Future resolving to model.data (True after a delete), an already
            failed future if validation fails, or None if the current state
            doesn't accept a save
        """
        if not self._save_enabled or not self.state.can_send('save'):
            if self.logger:
                self.logger.debug('Save ignored', id=self.id(), state=self.state.current.value)
            return None

        self._require_data_source()

        if self.state.current is not ModelState.DELETE:
            try:
                self.validate()
            except ValidationError as e:
                rejected: Future = Future()
                rejected.set_exception(e)
                return rejected

        deferred: Future = Future()
        self.state.send('save', deferred)

        if self.state.current is ModelState.POSTING:
            self._post(deferred)
        elif self.state.current is ModelState.PATCHING:
            self._patch(deferred)
        else:
            self._request('DELETE', self.path(self.name, self.id()), None,
                          deferred, ModelState.DELETING, self._deleted)

        return deferred

    def delete(self, auto_save: bool = False) -> Optional[Future]:
        """
        Mark the model for deletion (properties become read only).

        Args:
            auto_save: Send the delete to the server right away

        Returns:
            Future from save() when auto_save, else None
        """
        self.state.send('delete')
        if auto_save:
            return self.save()
        return None

    def undo(self) -> bool:
        """Revert unsaved changes, or cancel a pending delete"""
        return self.state.send('undo')

    def clear(self) -> bool:
        """Reset properties to defaults and return to New"""
        return self.state.send('clear')

    def set(self, data: Dict[str, Any], silent: bool = False, is_last_fetched: bool = False) -> 'Model':
        """
        Assign several properties.

        Args:
            data: Values keyed by property name (unknown keys ignored)
            silent: Don't fire change events
            is_last_fetched: Remember the resulting values as the server's truth
        """
        if silent:
            for prop in self.data.values():
                prop.silence()

        for key, value in data.items():
            prop = self.data.get(key)
            if prop is not None and not prop.is_calculated:
                prop.set(value)

        for prop in self.data.values():
            prop.report()

        if is_last_fetched:
            self._last_fetched = copy.deepcopy(self.to_json())

        return self

    def to_json(self) -> Dict[str, Any]:
        """Stored values (calculated properties excluded)"""
        return {
            key: prop.to_json()
            for key, prop in self.data.items()
            if not prop.is_calculated
        }

    def add_calculated(
        self,
        name: str,
        function: Callable[[], Any],
        type: Optional[str] = None,
        description: str = '',
    ) -> CalculatedProperty:
        """Add a read-only property recomputed on every read"""
        prop = CalculatedProperty(function, key=name, type=type, description=description)
        self.data[name] = prop
        return prop

    def on_change(self, name: str, callback: Callable[[Property], None]) -> 'Model':
        """Call callback(prop) before property `name` changes"""
        self.data[name].on_change(callback)
        return self

    def on_changed(self, name: str, callback: Callable[[Property], None]) -> 'Model':
        """Call callback(prop) after property `name` changed"""
        self.data[name].on_changed(callback)
        return self

    def on_error(self, callback: Callable[[Exception], None]) -> 'Model':
        """Call callback(error) on validation or data source errors"""
        self._error_handlers.append(callback)
        return self

    def on_load(self, callback: Callable[['Model'], None]) -> 'Model':
        """Call callback(model) after every successful fetch"""
        self._load_handlers.append(callback)
        return self

    def on_validate(self, callback: Callable[[], None]) -> 'Model':
        """Add a validator; it raises to reject the data"""
        self._validators.append(callback)
        return self

    def validate(self) -> None:
        """
        Run validators.

        Raises:
            ValidationError: From the first failing validator (error
                             handlers are notified first)
        """
        try:
            self._run_validators()
        except ValidationError as e:
            self._report(e)
            raise
        self._last_error = None

    def is_valid(self) -> bool:
        """Whether validators pass (failures go to error handlers)"""
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def can_save(self) -> bool:
        current = self.state.current
        if not self._save_enabled or current not in (ModelState.NEW, ModelState.DIRTY):
            return False
        try:
            self._run_validators()
        except ValidationError:
            return False
        return True

    def can_undo(self) -> bool:
        return self.state.current in (ModelState.DIRTY, ModelState.DELETE)

    def can_delete(self) -> bool:
        return self.state.current in (ModelState.NEW, ModelState.CLEAN)

    def is_dirty(self) -> bool:
        return self.state.current in (ModelState.NEW, ModelState.DIRTY, ModelState.DELETE)

    def mark_clean(self) -> None:
        """Treat current values as the server's truth"""
        self._last_fetched = copy.deepcopy(self.to_json())
        self.state.goto(ModelState.CLEAN)

    def disable_save(self) -> None:
        """Ignore save requests (related models are saved by their parent)"""
        self._save_enabled = False

    def changes(self) -> Dict[str, Any]:
        """Values that differ from the last fetched snapshot"""
        return {
            key: value
            for key, value in self.to_json().items()
            if key not in self._last_fetched or self._last_fetched[key] != value
        }

    # ..........................................................
    # PRIVATE
    #

    def _transitions(self) -> Dict:
        S = ModelState
        table = {
            (S.NEW, 'save'): S.POSTING,
            (S.DIRTY, 'save'): S.PATCHING,
            (S.DELETE, 'save'): S.DELETING,
            (S.CLEAN, 'changed'): S.DIRTY,
            (S.NEW, 'delete'): S.DELETED,
            (S.CLEAN, 'delete'): (S.DELETE, self._freeze),
            (S.DIRTY, 'delete'): (S.DELETE, self._freeze),
            (S.DIRTY, 'undo'): (S.CLEAN, self._revert),
            (S.DELETE, 'undo'): self._thaw,
            (S.DELETED, 'clear'): (S.NEW, self._clear),
            (S.DELETING, 'deleted'): S.DELETED,
        }
        for state in READY:
            table[(state, 'fetch')] = S.FETCHING
            table[(state, 'clear')] = (S.NEW, self._clear)
        for state in BUSY:
            table[(state, 'error')] = S.ERROR
        for state in (S.FETCHING, S.POSTING, S.PATCHING):
            table[(state, 'fetched')] = S.CLEAN
        return table

    def _init_properties(self, data: Dict[str, Any]) -> None:
        """Create a property for each feather property"""
        for key, definition in (self.feather.get('properties') or {}).items():
            kind = definition.get('type')

            if is_child(kind):
                continue
            if (is_to_one(kind) or is_to_many(kind)) and self.catalog is None:
                value = data.get(key)
                if value is None and is_to_many(kind):
                    value = []
                prop = Property(value, Formatter(), key, **definition)
            elif is_to_one(kind):
                prop = self._to_one(key, definition, data.get(key))
            elif is_to_many(kind):
                prop = self._to_many(key, definition, data.get(key))
            else:
                formatter = resolve_formatter(definition)
                value = data[key] if key in data else resolve_default(definition, formatter)
                prop = Property(value, formatter, key, **definition)

            prop.required = bool(definition.get('isRequired'))
            prop.read_only = bool(definition.get('isReadOnly'))
            prop.on_changed(self._property_changed)
            self.data[key] = prop

    def _to_one(self, key: str, definition: Dict[str, Any], value: Any) -> Property:
        """Property holding a related model (or None)"""
        relation = definition['type']['relation']
        feather = self._related_feather(definition['type'])

        def to_type(value):
            if value is None:
                return None
            if getattr(value, 'is_model', False):
                return value
            return self._adopt(self._create_related(relation, value, feather))

        return Property(value, Formatter(to_type=to_type), key, **definition)

    def _to_many(self, key: str, definition: Dict[str, Any], value: Any) -> Property:
        """Property holding a ChildArray of related models"""
        relation = definition['type']['relation']
        feather = self._related_feather(definition['type'])
        array = ChildArray(self, lambda data: self._adopt(self._create_related(relation, data, feather)))

        def to_type(value):
            if value is array:
                return array
            if value is None:
                value = []
            if not isinstance(value, (list, tuple)):
                raise ConfigurationError(f'Value assignment for {key} must be a list')
            array.replace(value)
            return array

        prop = Property(None, Formatter(to_type=to_type), key, **definition)
        array.prop = prop
        prop.silence()
        prop.set(value)
        prop.report()
        return prop

    def _related_feather(self, kind: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Feather for a relation, limited to the listed properties"""
        if self.catalog is None:
            return None

        feather = self.catalog.get_feather(kind['relation'])
        keep = kind.get('properties')
        if keep:
            feather['properties'] = {
                k: v for k, v in feather['properties'].items()
                if k in keep or k == 'id'
            }
        return feather

    def _create_related(self, relation: str, data: Any, feather: Optional[Dict[str, Any]]) -> 'Model':
        if hasattr(data, 'to_json'):
            data = data.to_json()
        factory = self.catalog.model_factory(relation) if self.catalog is not None else None
        factory = factory or Model
        return factory(data, feather, catalog=self.catalog,
                       data_source=self.data_source, logger=self.logger)

    def _adopt(self, child: 'Model') -> 'Model':
        """Bind a related model's lifecycle to this model"""
        child.disable_save()
        child.state.on_enter(ModelState.DIRTY, lambda context: self.state.send('changed'))
        if self.state.current is ModelState.CLEAN or self.state.current in BUSY:
            child.mark_clean()
        return child

    def _settle_children(self, context: Any = None) -> None:
        """Related models reflect the server once this model does"""
        for prop in self.data.values():
            value = prop.get() if not prop.is_calculated else None
            children = value if isinstance(value, ChildArray) else [value]
            for child in children:
                if getattr(child, 'is_model', False) and child.state.current is not ModelState.CLEAN:
                    child.mark_clean()

    def _property_changed(self, prop: Property) -> None:
        self.state.send('changed')

    def _run_validators(self) -> None:
        for validator in self._validators:
            try:
                validator()
            except ValidationError:
                raise
            except Exception as e:
                raise ValidationError(str(e)) from e

    def _validate_required(self) -> None:
        for key, prop in self.data.items():
            if prop.is_required() and prop() is None:
                raise ValidationError(f'"{key}" is required')

    def _report(self, error: Exception) -> None:
        self._last_error = error
        for handler in list(self._error_handlers):
            handler(error)

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        deferred: Future,
        busy: ModelState,
        on_success: Callable[[Any, Future], None],
    ) -> None:
        """Send a request and route its outcome back into the state machine"""

        def done(future: Future) -> None:
            if self.state.current is not busy:
                if self.logger:
                    self.logger.warning('Ignored stale response', method=method, path=path,
                                        state=self.state.current.value)
                deferred.cancel()
                return

            error = future.exception()
            if error is not None:
                if not isinstance(error, FeatherboneError):
                    error = DataSourceError(str(error))
                self._fail(error, deferred)
                return

            try:
                on_success(future.result(), deferred)
            except Exception as e:
                # Bad payload or a failing on_load handler
                if not deferred.done():
                    self._fail(e, deferred)
                return

            if self.logger:
                self.logger.info(f'{method} {path}', id=self.id(), state=self.state.current.value)

        self.data_source.request(method, path, body).add_done_callback(done)

    def _require_data_source(self) -> None:
        if self.data_source is None:
            raise ConfigurationError(f'No data source for {self.name}')

    def _fail(self, error: Exception, deferred: Future) -> None:
        if self.logger:
            self.logger.error(str(error), id=self.id(), state=self.state.current.value)
        self._report(error)
        self.state.send('error')
        deferred.set_exception(error)

    def _fetched(self, result: Any, deferred: Future) -> None:
        self.set(result or {}, silent=True, is_last_fetched=True)
        self.state.send('fetched')
        for handler in list(self._load_handlers):
            handler(self)
        deferred.set_result(self.data)

    def _post(self, deferred: Future) -> None:
        cache = self.to_json()

        def posted(result: Any, deferred: Future) -> None:
            snapshot = dict(cache)
            if isinstance(result, dict):
                snapshot.update(result)
            self.set(snapshot, silent=True, is_last_fetched=True)
            self.state.send('fetched')
            deferred.set_result(self.data)

        self._request('POST', self.path(self.plural or self.name), {'data': cache},
                      deferred, ModelState.POSTING, posted)

    def _patch(self, deferred: Future) -> None:
        changes = self.changes()
        body: Dict[str, Any] = {'data': changes}
        if self._last_fetched.get('etag'):
            body['etag'] = self._last_fetched['etag']

        def patched(result: Any, deferred: Future) -> None:
            snapshot = copy.deepcopy(self._last_fetched)
            snapshot.update(changes)
            if isinstance(result, dict):
                snapshot.update(result)
            self.set(snapshot, silent=True, is_last_fetched=True)
            self.state.send('fetched')
            deferred.set_result(self.data)

        self._request('PATCH', self.path(self.name, self.id()), body,
                      deferred, ModelState.PATCHING, patched)

    def _deleted(self, result: Any, deferred: Future) -> None:
        self.state.send('deleted')
        deferred.set_result(True)

    def _freeze(self, context: Any = None) -> None:
        """Make every property read only, remembering previous flags"""
        self._before_delete = self.state.current
        for key, prop in self.data.items():
            self._freeze_cache[key] = prop.read_only
            prop.read_only = True
            prop.disable()

    def _thaw(self, context: Any = None) -> ModelState:
        """Undo _freeze; returns the state to go back to"""
        for key, prop in self.data.items():
            prop.enable()
            prop.read_only = self._freeze_cache.get(key, prop.read_only)
        self._freeze_cache = {}
        return self._before_delete

    def _revert(self, context: Any = None) -> None:
        self.set(self._last_fetched, silent=True)

    def _clear(self, context: Any = None) -> None:
        if self._freeze_cache:
            self._thaw()

        values = {}
        for key, definition in (self.feather.get('properties') or {}).items():
            if key not in self.data or self.data[key].is_calculated:
                continue
            kind = definition.get('type')
            if is_to_one(kind):
                values[key] = None
            elif is_to_many(kind):
                values[key] = []
            else:
                values[key] = resolve_default(definition, self.data[key].formatter)

        self._last_fetched = {}
        self.set(values, silent=True)


class ChildArray(list):
    """
    List of related models for a to-many property.

    Adding, removing or clearing reports a change to the parent model;
    related models becoming dirty do too.
    """

    def __init__(self, parent: Model, create: Callable[[Any], Model]):
        super().__init__()
        self.parent = parent
        self.prop: Optional[Property] = None
        self._create = create

    def add(self, value: Any = None) -> Model:
        """Append a related model built from value (dict or model)"""
        model = self._create(value or {})
        self.append(model)
        self._changed()
        return model

    def remove(self, model: Model) -> Optional[Model]:
        """Remove the model with the same id; returns it, or None"""
        for i, item in enumerate(self):
            if item is model or (model.id() is not None and item.id() == model.id()):
                del self[i]
                self._changed()
                return item
        return None

    def clear(self) -> None:
        if len(self):
            del self[:]
            self._changed()

    def replace(self, values: List[Any]) -> None:
        """Rebuild contents from a list of dicts or models"""
        del self[:]
        for value in values:
            self.append(self._create(value or {}))
        self._changed()

    def to_json(self) -> List[Dict[str, Any]]:
        return [model.to_json() for model in self]

    def _changed(self) -> None:
        if self.prop is not None and self.prop.state.current is PropertyState.SILENT:
            return
        self.parent.state.send('changed')
