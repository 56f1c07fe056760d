from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


EVENTS = ("before_node", "command", "on_error", "program_end")


class HookError(Exception):
    pass


@dataclass
class HookRegistry:
    # event -> list[(priority, handler, owner)]
    _events: Dict[str, List[Tuple[int, Callable[..., None], str]]] = field(default_factory=dict)

    def on_event(
        self,
        event: str,
        handler: Optional[Callable[..., None]] = None,
        *,
        priority: int = 0,
        owner: str = "host",
    ):
        if event not in EVENTS:
            raise HookError(f"Unknown event '{event}' (expected one of: {', '.join(EVENTS)})")
        if handler is None:
            def deco(fn: Callable[..., None]) -> Callable[..., None]:
                self._register(event, fn, priority, owner)
                return fn
            return deco
        self._register(event, handler, priority, owner)
        return handler

    def _register(self, event: str, handler: Callable[..., None], priority: int, owner: str) -> None:
        self._events.setdefault(event, []).append((priority, handler, owner))
        self._events[event].sort(key=lambda t: t[0], reverse=True)

    def emit(self, event: str, *args: Any, **kwargs: Any) -> None:
        for _priority, handler, _owner in self._events.get(event, []):
            handler(*args, **kwargs)

    def has_handlers(self, event: str) -> bool:
        return bool(self._events.get(event))
