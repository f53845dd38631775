"""In-process action registry mirroring the host's hook dispatch."""

import itertools
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Tuple

from core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRIORITY = 10


class HookRegistry:
    """Named actions with prioritized callbacks.

    Callbacks run in ascending priority, then registration order, and their
    return values are collected so the caller can act on side effects.
    """

    def __init__(self):
        self._actions: DefaultDict[str, List[Tuple[int, int, Callable[..., Any]]]] = defaultdict(list)
        self._order = itertools.count()

    def add_action(self, name: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        self._actions[name].append((priority, next(self._order), callback))
        self._actions[name].sort(key=lambda entry: entry[:2])

    def has_action(self, name: str) -> bool:
        return bool(self._actions.get(name))

    def do_action(self, name: str, *args: Any) -> List[Any]:
        callbacks = list(self._actions.get(name, ()))
        logger.debug("Dispatching action", action=name, callbacks=len(callbacks))
        return [callback(*args) for _, _, callback in callbacks]
