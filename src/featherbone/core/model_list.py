"""
Model List

Ordered collection of models of one feather.

Design:
- Models are kept in fetch order; an id -> position index is rebuilt for
  every entry after a removal so it always matches the list
- fetch() merges by id: a known id is replaced at the same position, new
  ids are appended; merge=False starts from an empty list
- Fetched models are always Clean
- The list is Dirty while any model is New, Dirty or marked for deletion;
  save() saves those models and drops the ones that end up Deleted
"""

from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..utils import to_spinal_case
from .errors import ConfigurationError, DataSourceError
from .model import Model, ModelState
from .state import StateMachine


class ListState(Enum):
    UNINITIALIZED = '/Uninitialized'
    FETCHING = '/Busy/Fetching'
    SAVING = '/Busy/Saving'
    CLEAN = '/Fetched/Clean'
    DIRTY = '/Fetched/Dirty'


class ModelList:
    """
    List of models backed by /data/{plural}.

    Example:
        >>> contacts = ModelList('Contact', catalog=catalog, data_source=ds)
        >>> contacts.fetch({'city': 'Oslo'}).result()
        <ModelList Contact (3) /Fetched/Clean>
        >>> contacts.index_of(contacts[1].id())
        1
    """

    def __init__(
        self,
        name: str,
        catalog=None,
        data_source=None,
        factory: Optional[Callable[..., Model]] = None,
        logger=None,
    ):
        """
        Initialize list.

        Args:
            name: Feather name of the listed models
            catalog: Catalog for the feather and its model factory
            data_source: Where fetch requests go
            factory: Model factory (default: catalog's, else Model)
            logger: Optional SelfLogger
        """
        self.name = name
        self.catalog = catalog
        self.data_source = data_source
        self.logger = logger

        if catalog is not None:
            self.feather = catalog.get_feather(name)
            factory = factory or catalog.model_factory(name)
        else:
            self.feather = {'name': name}

        self.plural = self.feather.get('plural') or name
        self.factory = factory or Model

        self._models: List[Model] = []
        self._index: Dict[Any, int] = {}
        self._hooks: Dict[int, List[Callable[[], None]]] = {}
        self._last_error: Optional[Exception] = None

        self.state = StateMachine(
            ListState,
            ListState.UNINITIALIZED,
            {
                (ListState.UNINITIALIZED, 'fetch'): ListState.FETCHING,
                (ListState.UNINITIALIZED, 'changed'): ListState.DIRTY,
                (ListState.UNINITIALIZED, 'check'): self._settled,
                (ListState.CLEAN, 'fetch'): ListState.FETCHING,
                (ListState.CLEAN, 'changed'): ListState.DIRTY,
                (ListState.CLEAN, 'check'): self._settled,
                (ListState.DIRTY, 'fetch'): ListState.FETCHING,
                (ListState.DIRTY, 'save'): ListState.SAVING,
                (ListState.DIRTY, 'check'): self._settled,
                (ListState.FETCHING, 'fetched'): self._settled,
                (ListState.FETCHING, 'error'): self._settled,
                (ListState.SAVING, 'saved'): self._settled,
                (ListState.SAVING, 'error'): self._settled,
            },
            name=f'List.{name}',
            logger=logger,
        )

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self._models))

    def __getitem__(self, index: int) -> Model:
        return self._models[index]

    def __repr__(self) -> str:
        return f'<ModelList {self.name} ({len(self)}) {self.state.current.value}>'

    def index_of(self, id: Any) -> Optional[int]:
        """Position of the model with `id`, or None"""
        return self._index.get(id)

    def models(self) -> List[Model]:
        return list(self._models)

    def to_json(self) -> List[Dict[str, Any]]:
        return [model.to_json() for model in self._models]

    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def path(self) -> str:
        return '/data/' + to_spinal_case(self.plural)

    def fetch(self, filter: Optional[Dict[str, Any]] = None, merge: bool = True) -> Optional[Future]:
        """
        Fetch models matching filter.

        Args:
            filter: Query criteria sent as request params
            merge: Keep models not in the response (default True)

        Returns:
            Future resolving to the list, or None while busy

        Raises:
            ConfigurationError: If the list has no data source
        """
        if not self.state.can_send('fetch'):
            return None
        if self.data_source is None:
            raise ConfigurationError(f'No data source for list {self.name}')

        deferred: Future = Future()
        self.state.send('fetch', deferred)
        path = self.path()

        def done(future: Future) -> None:
            if self.state.current is not ListState.FETCHING:
                deferred.cancel()
                return

            error = future.exception()
            if error is not None:
                if not isinstance(error, DataSourceError):
                    error = DataSourceError(str(error))
                self._fail(error, deferred, path)
                return

            if not merge:
                self._reset()

            rows = future.result() or []
            try:
                for row in rows:
                    model = self._create(row)
                    model.mark_clean()
                    self.add(model)
            except Exception as e:
                self._fail(e, deferred, path)
                return

            if self.logger:
                self.logger.info('Fetched', path=path, count=len(rows), total=len(self))

            self.state.send('fetched')
            deferred.set_result(self)

        self.data_source.request('GET', path, params=filter).add_done_callback(done)
        return deferred

    def add(self, model: Model) -> Model:
        """
        Add a model, replacing any model with the same id in place.

        Returns:
            The added model
        """
        key = model.id()
        position = self._index.get(key) if key else None

        if position is not None:
            self._unhook(self._models[position])
            self._models[position] = model
        else:
            self._models.append(model)
            if key:
                self._index[key] = len(self._models) - 1

        self._hook(model)

        if model.is_dirty():
            self.state.send('changed')

        return model

    def remove(self, model: Model) -> Optional[Model]:
        """
        Remove a model by id (or identity for unsaved models).

        Unknown models are ignored.

        Returns:
            The removed model, or None
        """
        key = model.id()
        position = self._index.get(key) if key else None

        if position is None:
            position = next((i for i, m in enumerate(self._models) if m is model), None)
            if position is None:
                return None

        removed = self._models.pop(position)
        self._index.pop(removed.id(), None)
        for i in range(position, len(self._models)):
            other = self._models[i].id()
            if other:
                self._index[other] = i

        self._unhook(removed)
        self.state.send('check')
        return removed

    def save(self) -> Optional[Future]:
        """
        Save every New, Dirty or deleted model.

        Returns:
            Future resolving to the list once every save settled (rejected
            with the first failure), or None if nothing needs saving
        """
        if not self.state.can_send('save'):
            return None

        deferred: Future = Future()
        self.state.send('save', deferred)

        try:
            pending = [f for f in (m.save() for m in list(self._models) if m.is_dirty()) if f is not None]
        except Exception as e:
            self._last_error = e
            if self.logger:
                self.logger.error(f'Save failed: {e}', path=self.path())
            self.state.send('error')
            deferred.set_exception(e)
            return deferred

        remaining = [len(pending)]

        def finish() -> None:
            for model in list(self._models):
                if model.state.current is ModelState.DELETED:
                    self.remove(model)

            errors = [f.exception() for f in pending if not f.cancelled() and f.exception()]
            if errors:
                self._last_error = errors[0]
                self.state.send('error')
                deferred.set_exception(errors[0])
            else:
                self.state.send('saved')
                deferred.set_result(self)

            if self.logger:
                self.logger.info('Saved', count=len(pending), errors=len(errors))

        def done(future: Future) -> None:
            remaining[0] -= 1
            if remaining[0] == 0:
                finish()

        if not pending:
            finish()
        for future in pending:
            future.add_done_callback(done)

        return deferred

    def _fail(self, error: Exception, deferred: Future, path: str) -> None:
        self._last_error = error
        if self.logger:
            self.logger.error(f'Fetch failed: {error}', path=path)
        self.state.send('error')
        deferred.set_exception(error)

    def _create(self, data: Dict[str, Any]) -> Model:
        return self.factory(data, self.feather, catalog=self.catalog,
                            data_source=self.data_source, logger=self.logger)

    def _settled(self, context: Any = None) -> ListState:
        if any(model.is_dirty() for model in self._models):
            return ListState.DIRTY
        if self.state.current is ListState.UNINITIALIZED and not self._models:
            return ListState.UNINITIALIZED
        return ListState.CLEAN

    def _reindex(self) -> None:
        """Index models that got an id after being added (e.g. once posted)"""
        self._index = {m.id(): i for i, m in enumerate(self._models) if m.id()}

    def _reset(self) -> None:
        for model in self._models:
            self._unhook(model)
        self._models = []
        self._index = {}

    def _hook(self, model: Model) -> None:
        def changed(context):
            self.state.send('changed')

        def check(context):
            self._reindex()
            self.state.send('check')

        self._hooks[id(model)] = [
            model.state.on_enter(ModelState.NEW, changed),
            model.state.on_enter(ModelState.DIRTY, changed),
            model.state.on_enter(ModelState.DELETE, changed),
            model.state.on_enter(ModelState.CLEAN, check),
            model.state.on_enter(ModelState.DELETED, check),
        ]

    def _unhook(self, model: Model) -> None:
        for remove in self._hooks.pop(id(model), []):
            remove()
