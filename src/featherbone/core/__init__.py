"""
Core primitives of the Featherbone object layer.

- Property: reactive value cell (stream)
- StateMachine: enumerated states plus a transition table
- Catalog: feather registry with inheritance
- Model, ModelList, Settings: persisted business objects
- SelfLogger: objects log to themselves

Everything here runs on one thread. I/O results come back as
concurrent.futures.Future objects from a data source.
"""

from .catalog import Catalog
from .errors import (
    ConfigurationError,
    DataSourceError,
    FeatherboneError,
    FetchError,
    NotFoundError,
    ReadOnlyError,
    SaveError,
    ValidationError,
)
from .model import ChildArray, Model, ModelState
from .model_list import ListState, ModelList
from .self_logger import SelfLogger
from .settings import Settings, SettingsState, SettingsStore
from .state import StateMachine, Transition
from .stream import CalculatedProperty, Formatter, Property, PropertyState


__all__ = [
    "CalculatedProperty",
    "Catalog",
    "ChildArray",
    "ConfigurationError",
    "DataSourceError",
    "FeatherboneError",
    "FetchError",
    "Formatter",
    "ListState",
    "Model",
    "ModelList",
    "ModelState",
    "NotFoundError",
    "Property",
    "PropertyState",
    "ReadOnlyError",
    "SaveError",
    "SelfLogger",
    "Settings",
    "SettingsState",
    "SettingsStore",
    "StateMachine",
    "Transition",
    "ValidationError",
]
