"""
Property Stream

Reactive single-value cells. Every model attribute is a Property.

    >>> p = Property('Demo')
    >>> p()
    'Demo'
    >>> p('Hello')
    'Hello'

Design:
- prop() reads, prop(value) writes (also prop.get() / prop.set(value))
- Writes pass through the formatter's to_type filter before being stored
- Writing a value equal to the current one does nothing
- A write moves the property Ready -> Changing -> Ready; on_change hooks run
  on entering Changing (and may replace the pending value with new_value()),
  on_changed hooks and subscribers run once the value is stored
- Silent properties store writes without notifying anyone
- Disabled properties ignore writes
- Calculated properties never store a value; each read recomputes it
"""

import re
import secrets
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import ConfigurationError, ReadOnlyError
from .state import StateMachine


SCALE_DEFAULT = 8


class PropertyState(Enum):
    READY = '/Ready'
    CHANGING = '/Changing'
    SILENT = '/Silent'
    DISABLED = '/Disabled'


class Formatter:
    """Converts values on the way in (to_type) and out (from_type)"""

    def __init__(
        self,
        to_type: Optional[Callable[[Any], Any]] = None,
        from_type: Optional[Callable[[Any], Any]] = None,
        default: Any = None,
    ):
        self.to_type = to_type or _identity
        self.from_type = from_type or _identity
        self.default = default

    def default_value(self) -> Any:
        """Default value, calling it if it's a function"""
        return self.default() if callable(self.default) else self.default


def _identity(value):
    return value


def _to_string(value):
    return None if value is None else str(value)


def _to_integer(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


def _number_formatter(scale: Optional[int] = None) -> Formatter:
    scale = SCALE_DEFAULT if scale is None else scale

    def to_type(value):
        if value is None:
            return None
        if isinstance(value, str):
            value = re.sub(r'[^\d.\-eE+]', '', value)
        try:
            return round(float(value), scale)
        except (TypeError, ValueError):
            return None

    return Formatter(to_type=to_type, default=0)


def _today() -> str:
    return date.today().isoformat()


def _now() -> str:
    return datetime.now().isoformat()


def create_id() -> str:
    """Random identifier used for new records and etags"""
    return secrets.token_hex(8)


# Functions a feather default may name, e.g. {"default": "today()"}
DEFAULT_FUNCTIONS: Dict[str, Callable[[], Any]] = {
    'today': _today,
    'now': _now,
    'createId': create_id,
}

TYPES: Dict[str, Callable[[], Formatter]] = {
    'array': lambda: Formatter(default=list),
    'boolean': lambda: Formatter(to_type=bool, default=False),
    'integer': lambda: Formatter(to_type=_to_integer, default=0),
    'number': _number_formatter,
    'object': lambda: Formatter(default=dict),
    'string': lambda: Formatter(to_type=_to_string, default=''),
}

FORMATS: Dict[str, Callable[[], Formatter]] = {
    'date': lambda: Formatter(to_type=_to_string, default=_today),
    'dateTime': lambda: Formatter(to_type=_to_string, default=_now),
    'color': lambda: Formatter(to_type=_to_string, default='#000000'),
    'email': lambda: Formatter(to_type=_to_string, default=''),
    'enum': lambda: Formatter(to_type=_to_string, default=''),
    'password': lambda: Formatter(to_type=_to_string, default=''),
    'tel': lambda: Formatter(to_type=_to_string, default=''),
    'textArea': lambda: Formatter(to_type=_to_string, default=''),
    'url': lambda: Formatter(to_type=_to_string, default=''),
}


def resolve_formatter(definition: Dict[str, Any]) -> Formatter:
    """
    Build the formatter for a feather property definition.

    Formats win over types; numbers are rounded to the definition's scale.
    """
    kind = definition.get('type')
    fmt = definition.get('format')

    if kind == 'number':
        return _number_formatter(definition.get('scale'))

    if fmt in FORMATS:
        return FORMATS[fmt]()

    if isinstance(kind, str):
        if kind in FORMATS:
            return FORMATS[kind]()
        if kind in TYPES:
            return TYPES[kind]()
        raise ConfigurationError(f'Unknown property type: {kind}')

    return Formatter()


def resolve_default(definition: Dict[str, Any], formatter: Formatter) -> Any:
    """
    Default value for a property definition.

    A string default ending in '()' names a function in DEFAULT_FUNCTIONS.
    """
    if 'default' in definition and definition['default'] is not None:
        default = definition['default']
    else:
        return formatter.default_value()

    if isinstance(default, str) and default.endswith('()'):
        func = DEFAULT_FUNCTIONS.get(default[:-2])
        if func is not None:
            return func()

    return default


_PROPERTY_TABLE = {
    (PropertyState.READY, 'change'): PropertyState.CHANGING,
    (PropertyState.READY, 'silence'): PropertyState.SILENT,
    (PropertyState.READY, 'disable'): PropertyState.DISABLED,
    (PropertyState.CHANGING, 'changed'): PropertyState.READY,
    (PropertyState.SILENT, 'report'): PropertyState.READY,
    (PropertyState.SILENT, 'disable'): PropertyState.DISABLED,
    (PropertyState.DISABLED, 'enable'): PropertyState.READY,
}


class Property:
    """
    A reactive get/set cell.

    Example:
        >>> p = Property(0, TYPES['integer']())
        >>> _ = p.on_change(lambda prop: print(prop.old_value(), '->', prop.new_value()))
        >>> p('5')
        0 -> 5
        5
    """

    is_calculated = False

    def __init__(
        self,
        value: Any = None,
        formatter: Optional[Formatter] = None,
        key: Optional[str] = None,
        **definition,
    ):
        """
        Initialize property.

        Args:
            value: Initial value (passed through to_type)
            formatter: Type formatter (default: identity)
            key: Property name on its model
            **definition: Feather attributes carried forward
                          (description, type, format, default, alias)
        """
        self.formatter = formatter or Formatter()
        self.key = key
        self.description = definition.get('description', '')
        self.type = definition.get('type')
        self.format = definition.get('format')
        self.default = definition.get('default')
        self.alias = definition.get('alias')
        self.read_only = False
        self.required = False

        self.state = StateMachine(PropertyState, PropertyState.READY, _PROPERTY_TABLE,
                                  name=f'Property.{key}' if key else 'Property')

        self._store = self.formatter.to_type(value)
        self._new_value = None
        self._old_value = None
        self._subscribers: List[Callable[['Property'], None]] = []

    def __call__(self, *args):
        if args:
            self.set(args[0])
        return self.get()

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.key}={self._store!r}>'

    def get(self) -> Any:
        """Current value"""
        return self.formatter.from_type(self._store)

    def set(self, value: Any) -> None:
        """Write a value, notifying hooks and subscribers unless silent"""
        current = self.state.current

        if current is PropertyState.CHANGING:
            self._new_value = value
            return

        if current is PropertyState.DISABLED:
            return

        proposed = self.formatter.to_type(value)

        if _same(proposed, self._store):
            return

        if current is PropertyState.SILENT:
            self._store = proposed
            return

        self._new_value = value
        self._old_value = self._store

        try:
            self.state.send('change')
            stored = (
                proposed if self._new_value is value
                else self.formatter.to_type(self._new_value)
            )
        except Exception:
            # A change hook rejected the value: keep the old one
            self._new_value = None
            self._old_value = None
            self.state.reset(PropertyState.READY)
            raise

        self._store = stored
        self.state.send('changed')

        for subscriber in list(self._subscribers):
            subscriber(self)

        self._new_value = None
        self._old_value = None

    def new_value(self, *args) -> Any:
        """Pending value while changing; pass a value to replace it"""
        if args and self.state.current is PropertyState.CHANGING:
            self._new_value = args[0]
        return self._new_value

    def old_value(self) -> Any:
        """Value before the current change"""
        return self.formatter.from_type(self._old_value)

    def on_change(self, callback: Callable[['Property'], None]) -> Callable[[], None]:
        """Run callback(prop) before a change is stored"""
        return self.state.on_enter(PropertyState.CHANGING, lambda context: callback(self))

    def on_changed(self, callback: Callable[['Property'], None]) -> Callable[[], None]:
        """Run callback(prop) after a change is stored"""
        return self.state.on_exit(PropertyState.CHANGING, lambda context: callback(self))

    def subscribe(self, callback: Callable[['Property'], None]) -> Callable[[], None]:
        """
        Notify callback(prop) after every reported write.

        Returns:
            Function that unsubscribes
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def silence(self) -> None:
        self.state.send('silence')

    def report(self) -> None:
        self.state.send('report')

    def disable(self) -> None:
        self.state.send('disable')

    def enable(self) -> None:
        self.state.send('enable')

    def is_read_only(self) -> bool:
        return self.read_only or self.state.current is not PropertyState.READY

    def is_required(self) -> bool:
        return self.required

    def is_to_one(self) -> bool:
        return is_to_one(self.type)

    def is_to_many(self) -> bool:
        return is_to_many(self.type)

    def is_child(self) -> bool:
        return is_child(self.type)

    def to_json(self) -> Any:
        """Stored value in JSON-ready form"""
        if hasattr(self._store, 'to_json'):
            return self._store.to_json()
        return self._store


class CalculatedProperty(Property):
    """
    A read-only property derived from a function.

    Nothing is stored; every read calls the function again.
    """

    is_calculated = True

    def __init__(self, function: Callable[[], Any], key: Optional[str] = None, **definition):
        super().__init__(None, definition.pop('formatter', None), key, **definition)
        self.function = function
        self.read_only = True

    def get(self) -> Any:
        return self.formatter.from_type(self.function())

    def set(self, value: Any) -> None:
        raise ReadOnlyError(f'Calculated property "{self.key}" is read only')

    def is_read_only(self) -> bool:
        return True

    def to_json(self) -> Any:
        return self.get()


def is_child(kind: Any) -> bool:
    return isinstance(kind, dict) and bool(kind.get('childOf'))


def is_to_one(kind: Any) -> bool:
    return isinstance(kind, dict) and not kind.get('childOf') and not kind.get('parentOf')


def is_to_many(kind: Any) -> bool:
    return isinstance(kind, dict) and bool(kind.get('parentOf'))


def _same(a: Any, b: Any) -> bool:
    """Equality that doesn't treat 0 and False (or 1 and True) as equal"""
    return a is b or (type(a) is type(b) and a == b)
