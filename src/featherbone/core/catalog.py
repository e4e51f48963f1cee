"""
Catalog

Registry of feathers (schema definitions) and of named things by kind
(model factories, list factories, settings definitions...).

Design:
- One Catalog instance per runtime, passed to whatever needs it
- get_feather() flattens inheritance root-first: nearer ancestors override
  farther ones and local properties always win
- Inherited properties are copies tagged with inheritedFrom
- register(kind, name, value) is last-writer-wins; re-registering during a
  reload simply replaces the previous value
"""

import copy
from typing import Any, Callable, Dict, List, Optional

from .errors import ConfigurationError, NotFoundError


ROOT = 'Object'


class Catalog:
    """
    Feather registry.

    Example:
        >>> catalog = Catalog({
        ...     'Object': {'properties': {'id': {'type': 'string'}}},
        ...     'Contact': {'inherits': 'Object', 'plural': 'Contacts',
        ...                 'properties': {'name': {'type': 'string'}}},
        ... })
        >>> sorted(catalog.get_feather('Contact')['properties'])
        ['id', 'name']
    """

    def __init__(self, feathers: Optional[Dict[str, Any]] = None, logger=None):
        """
        Initialize catalog.

        Args:
            feathers: Map of feather name -> definition
            logger: Optional SelfLogger
        """
        self.logger = logger
        self._feathers: Dict[str, Any] = {}
        self._registry: Dict[str, Dict[str, Any]] = {}

        if feathers:
            self.load(feathers)

    def load(self, feathers: Dict[str, Any]) -> None:
        """Replace all feather definitions"""
        self._feathers = copy.deepcopy(feathers)

        if self.logger:
            self.logger.info('Catalog loaded', count=len(self._feathers))

    def data(self) -> Dict[str, Any]:
        """Raw feather definitions"""
        return self._feathers

    def feather_names(self) -> List[str]:
        return sorted(self._feathers)

    def fetch(self, data_source, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Load feathers from the 'catalog' settings resource.

        Blocks until the data source answers.

        Args:
            data_source: Where the request goes
            timeout: Seconds to wait for the answer (default: forever)

        Raises:
            FetchError: If the data source fails
            TimeoutError: If no answer arrives within `timeout`
        """
        result = data_source.request('GET', '/settings/catalog').result(timeout=timeout) or {}
        self.load(result.get('data') or {})
        return self._feathers

    def get_feather(self, name: str, include_inherited: bool = True) -> Dict[str, Any]:
        """
        Return a feather including inherited properties.

        Args:
            name: Feather name
            include_inherited: Merge ancestor properties (default True)

        Returns:
            A copy of the definition with a flattened 'properties' map

        Raises:
            NotFoundError: If the feather isn't registered
        """
        if name not in self._feathers:
            raise NotFoundError(f'Feather not found: {name}')

        definition = self._feathers[name]
        result = {'name': name, 'inherits': ROOT}
        result.update(copy.deepcopy(definition))
        result['properties'] = {}

        if include_inherited and name != ROOT:
            self._append_parent(result, result.get('inherits') or ROOT, {name})
        else:
            result.pop('inherits', None)

        for key, prop in (definition.get('properties') or {}).items():
            result['properties'][key] = copy.deepcopy(prop)

        return result

    def _append_parent(self, child: Dict[str, Any], parent: str, seen: set) -> None:
        """Copy ancestor properties onto child, root-most ancestor first"""
        if parent in seen:
            raise ConfigurationError(f'Circular inheritance through {parent}')
        if parent not in self._feathers:
            if parent == ROOT:
                return
            raise NotFoundError(f'Parent feather not found: {parent}')

        seen.add(parent)
        definition = self._feathers[parent]

        if parent != ROOT:
            self._append_parent(child, definition.get('inherits') or ROOT, seen)

        for key, prop in (definition.get('properties') or {}).items():
            inherited = copy.deepcopy(prop)
            inherited['inheritedFrom'] = parent
            child['properties'][key] = inherited

    def register(self, kind: str, name: Optional[str] = None, value: Any = None) -> Dict[str, Any]:
        """
        Register a value under kind and name, replacing any previous value.

        With only `kind`, nothing is written.

        Returns:
            The mapping for `kind`
        """
        entries = self._registry.setdefault(kind, {})

        if name is not None:
            entries[name] = value

        return entries

    def lookup(self, kind: str, name: str) -> Any:
        """Registered value, or None"""
        return self._registry.get(kind, {}).get(name)

    def register_model(self, name: str, factory: Callable) -> None:
        """Register a model factory for a feather"""
        self.register('models', name, factory)

    def model_factory(self, name: str) -> Optional[Callable]:
        return self.lookup('models', name)
