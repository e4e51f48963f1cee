"""
Featherbone: client object layer.

Business objects described by feathers (schema definitions), kept in sync
with a Featherbone data API.

The object layer provides:
- Feathers with single inheritance (Catalog)
- Reactive properties with type coercion and change hooks
- Models with an explicit lifecycle (New, Clean, Dirty, Busy, Deleted, Error)
- Lists of models merged by id
- Named settings guarded by etags
- Self-logging objects (objects log to themselves)

Core Philosophy:
- State is explicit: every object has a state machine with a fixed table
- No globals: the catalog and data source are passed in
- I/O is deferred: requests return futures that settle exactly once

Example:
    >>> from featherbone import Runtime
    >>>
    >>> runtime = Runtime('/tmp/fb')
    >>> runtime.load_catalog()
    >>> contact = runtime.model('Contact', {'lastName': 'Lovelace'})
    >>> contact['firstName'] = 'Ada'
    >>> contact['fullName']
    'Ada Lovelace'
    >>> contact.save().result()
"""

__version__ = "0.1.0"

from .config import FeatherboneConfig, get_config
from .core import (
    Catalog,
    ConfigurationError,
    FeatherboneError,
    FetchError,
    Model,
    ModelList,
    Property,
    SaveError,
    Settings,
    SettingsStore,
    ValidationError,
)
from .interfaces import HttpDataSource, LocalDataSource
from .runtime import Runtime


__all__ = [
    "__version__",
    "Catalog",
    "ConfigurationError",
    "FeatherboneConfig",
    "FeatherboneError",
    "FetchError",
    "HttpDataSource",
    "LocalDataSource",
    "Model",
    "ModelList",
    "Property",
    "Runtime",
    "SaveError",
    "Settings",
    "SettingsStore",
    "ValidationError",
    "get_config",
]
