"""
State Machine

Explicit finite state machine used by properties, models, lists and settings.

Design:
- States are members of an Enum (values are path strings like '/Ready/New')
- A transition table maps (state, event) -> Transition(target, action)
- The table is checked when the machine is built: unknown states, dead-end
  states and transitions out of terminal states raise ConfigurationError
- Events with no entry for the current state are ignored, never queued
- Terminal states refuse every exit attempt (can_exit is False)
- Enter/exit hooks receive the context passed with the event
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from .errors import ConfigurationError


class Transition:
    """
    One row of a transition table.

    If `action` returns a member of the machine's states, that member
    replaces `target`. A transition with no target runs its action only.
    """

    __slots__ = ('target', 'action')

    def __init__(self, target: Optional[Enum] = None, action: Optional[Callable] = None):
        self.target = target
        self.action = action

    def __repr__(self) -> str:
        return f'Transition(target={self.target!r}, action={self.action!r})'


class StateMachine:
    """
    Table-driven state machine.

    Example:
        >>> class Light(Enum):
        ...     OFF = '/Off'
        ...     ON = '/On'
        >>> machine = StateMachine(Light, Light.OFF, {
        ...     (Light.OFF, 'toggle'): Light.ON,
        ...     (Light.ON, 'toggle'): Light.OFF,
        ... })
        >>> machine.send('toggle')
        True
        >>> machine.current
        <Light.ON: '/On'>
    """

    def __init__(
        self,
        states: Type[Enum],
        initial: Enum,
        table: Dict[Tuple[Enum, str], Any],
        terminal: Iterable[Enum] = (),
        name: Optional[str] = None,
        logger=None,
    ):
        """
        Initialize state machine.

        Args:
            states: Enum class listing every state
            initial: Starting state (entered without running hooks)
            table: (state, event) -> target state, action callable,
                   (target, action) tuple or Transition
            terminal: States that can never be exited
            name: Name used in log entries
            logger: Optional SelfLogger
        """
        self.states = states
        self.name = name or states.__name__
        self.logger = logger

        self._terminal = frozenset(terminal)
        self._table: Dict[Tuple[Enum, str], Transition] = {
            key: self._normalize(value) for key, value in table.items()
        }
        self._enter_hooks: Dict[Enum, List[Callable]] = defaultdict(list)
        self._exit_hooks: Dict[Enum, List[Callable]] = defaultdict(list)
        self._exit_guards: Dict[Enum, Callable[[], bool]] = {}

        self._check_table(initial)
        self._current = initial

    @property
    def current(self) -> Enum:
        """Current state"""
        return self._current

    def is_in(self, path: str) -> bool:
        """True if the current state's path starts with `path`"""
        return self._current.value.startswith(path)

    def events(self) -> List[str]:
        """Events accepted in the current state"""
        return sorted(event for state, event in self._table if state is self._current)

    def can_exit(self, state: Optional[Enum] = None) -> bool:
        """Whether `state` (default: current) may be left"""
        state = self._current if state is None else state
        if state in self._terminal:
            return False
        guard = self._exit_guards.get(state)
        return guard() if guard else True

    def can_send(self, event: str) -> bool:
        """Whether `event` would be accepted right now"""
        return (self._current, event) in self._table and self.can_exit()

    def guard_exit(self, state: Enum, predicate: Callable[[], bool]) -> None:
        """Install a predicate deciding whether `state` may be left"""
        self._require_state(state)
        self._exit_guards[state] = predicate

    def on_enter(self, state: Enum, callback: Callable) -> Callable[[], None]:
        """
        Run `callback(context)` whenever `state` is entered.

        Returns:
            Function removing the hook
        """
        self._require_state(state)
        self._enter_hooks[state].append(callback)
        return lambda: self._discard(self._enter_hooks[state], callback)

    def on_exit(self, state: Enum, callback: Callable) -> Callable[[], None]:
        """
        Run `callback(context)` whenever `state` is left.

        Returns:
            Function removing the hook
        """
        self._require_state(state)
        self._exit_hooks[state].append(callback)
        return lambda: self._discard(self._exit_hooks[state], callback)

    def send(self, event: str, context: Any = None) -> bool:
        """
        Send an event.

        Args:
            event: Event name
            context: Passed to the transition action and state hooks

        Returns:
            True if the event was accepted
        """
        transition = self._table.get((self._current, event))

        if transition is None or not self.can_exit():
            if self.logger:
                self.logger.debug(
                    f'Ignored {event}',
                    machine=self.name,
                    state=self._current.value,
                    event=event,
                )
            return False

        target = transition.target

        if transition.action is not None:
            result = transition.action(context)
            if isinstance(result, self.states):
                target = result

        if target is not None:
            self.goto(target, context)

        return True

    def goto(self, target: Enum, context: Any = None, force: bool = False) -> bool:
        """
        Move directly to `target`, running exit and enter hooks.

        Going to the current state is a no-op unless `force` is True.

        Returns:
            True if the machine is now in `target`
        """
        self._require_state(target)

        if target is self._current and not force:
            return True

        if not self.can_exit():
            return False

        previous = self._current

        for hook in list(self._exit_hooks[previous]):
            hook(context)

        self._current = target

        for hook in list(self._enter_hooks[target]):
            hook(context)

        return True

    def reset(self, state: Enum) -> None:
        """Move to `state` without running any hooks, e.g. to back out of a rejected change"""
        self._require_state(state)
        self._current = state

    def _normalize(self, value: Any) -> Transition:
        """Turn a table value into a Transition"""
        if isinstance(value, Transition):
            return value
        if isinstance(value, self.states):
            return Transition(target=value)
        if isinstance(value, tuple):
            target, action = value
            return Transition(target=target, action=action)
        if callable(value):
            return Transition(action=value)
        raise ConfigurationError(f'Invalid transition in {self.name}: {value!r}')

    def _check_table(self, initial: Enum) -> None:
        """Validate the transition table against the state enum"""
        self._require_state(initial)

        sources = set()
        for (state, event), transition in self._table.items():
            self._require_state(state)
            if not isinstance(event, str):
                raise ConfigurationError(f'Event names must be strings: {event!r}')
            if transition.target is not None:
                self._require_state(transition.target)
            if state in self._terminal:
                raise ConfigurationError(
                    f'Terminal state {state.name} cannot define event {event}'
                )
            sources.add(state)

        for state in self.states:
            if state not in self._terminal and state not in sources:
                raise ConfigurationError(
                    f'State {state.name} of {self.name} has no transitions'
                )

    def _require_state(self, state: Any) -> None:
        """Raise unless `state` belongs to this machine"""
        if not isinstance(state, self.states):
            raise ConfigurationError(f'Unknown state for {self.name}: {state!r}')

    @staticmethod
    def _discard(hooks: List[Callable], callback: Callable) -> None:
        if callback in hooks:
            hooks.remove(callback)
